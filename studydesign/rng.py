"""
studydesign/rng.py

Seeded pseudo-random primitives used by the randomization engine:
  - SeededRandom: linear congruential generator, reproducible from an int seed
  - shuffle: in-place Fisher–Yates driven by a draw function
  - weighted_select: pick an index with probability weight / total
  - default_seed: wall-clock seed source, injected explicitly by callers

The LCG recurrence is fixed so that stored seeds replay to the same
allocation sequence forever.
"""

from __future__ import annotations

import math
import time
from typing import Callable, List, MutableSequence, Sequence, TypeVar

T = TypeVar("T")

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280

DrawFn = Callable[[], float]


class SeededRandom:
    """Reproducible stream of floats in [0, 1).

    state' = (state * 9301 + 49297) mod 233280 ; value = state' / 233280
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        self._state = self.seed

    @property
    def state(self) -> int:
        return self._state

    def next_float(self) -> float:
        self._state = (self._state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self._state / LCG_MODULUS

    __call__ = next_float

    def take(self, n: int) -> List[float]:
        return [self.next_float() for _ in range(n)]

    def __repr__(self) -> str:
        return f"SeededRandom(seed={self.seed}, state={self._state})"


def shuffle(items: MutableSequence[T], rng: DrawFn) -> None:
    """Fisher–Yates, last index down to 1; index 0 is never the swap driver."""
    for i in range(len(items) - 1, 0, -1):
        j = math.floor(rng() * (i + 1))
        items[i], items[j] = items[j], items[i]


def weighted_select(weights: Sequence[float], total_weight: float, rng: DrawFn) -> int:
    """
    Return index k with probability weights[k] / total_weight.
    Falls back to the last index if rounding leaves r at the upper edge.
    """
    r = rng() * total_weight
    cumulative = 0.0
    for i, w in enumerate(weights):
        cumulative += w
        if r < cumulative:
            return i
    return len(weights) - 1


def default_seed() -> int:
    """Milliseconds since the epoch; only used when no seed is supplied."""
    return time.time_ns() // 1_000_000
