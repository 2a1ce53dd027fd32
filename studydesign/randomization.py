"""
studydesign/randomization.py

Randomization engine: turns a RandomizationConfig and a participant count into
a reproducible allocation sequence.

Methods:
  - simple  : independent weighted draw per participant
  - block   : shuffled balanced blocks (default size 4)
  - stratified -> block (no covariate data is modelled here)
  - minimization / cluster / covariate_adaptive -> simple

Fallbacks are reported on the result (MethodFallback) and logged; pass
strict=True to reject methods that have no real algorithm.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from .errors import InvalidConfiguration, UnsupportedMethod
from .models import RandomizationConfig, RandomizationMethod
from .rng import SeededRandom, default_seed, shuffle, weighted_select


# -------------------------
# Result types
# -------------------------

@dataclass(frozen=True)
class Assignment:
    participant_id: int
    arm_index: int


@dataclass(frozen=True)
class MethodApplied:
    method: RandomizationMethod

    @property
    def actual(self) -> RandomizationMethod:
        return self.method

    @property
    def fell_back(self) -> bool:
        return False


@dataclass(frozen=True)
class MethodFallback:
    requested: RandomizationMethod
    actual: RandomizationMethod
    reason: str

    @property
    def fell_back(self) -> bool:
        return True


MethodOutcome = Union[MethodApplied, MethodFallback]


@dataclass(frozen=True)
class AllocationSequence:
    """Ordered (participant_id -> arm_index) assignments plus how they were made."""
    assignments: Tuple[Assignment, ...]
    seed: int
    requested: RandomizationMethod
    outcome: MethodOutcome
    ratio: Tuple[int, ...]
    block_size: Optional[int] = None

    def __len__(self) -> int:
        return len(self.assignments)

    def __iter__(self) -> Iterator[Assignment]:
        return iter(self.assignments)

    def __getitem__(self, i):
        return self.assignments[i]

    @property
    def method(self) -> RandomizationMethod:
        """The method whose algorithm actually produced the sequence."""
        return self.outcome.actual

    @property
    def n_arms(self) -> int:
        return len(self.ratio)

    def arm_indices(self) -> np.ndarray:
        return np.fromiter((a.arm_index for a in self.assignments), dtype=int, count=len(self.assignments))

    def pairs(self) -> List[Tuple[int, int]]:
        return [(a.participant_id, a.arm_index) for a in self.assignments]

    def to_frame(self, arm_names: Optional[List[str]] = None) -> pd.DataFrame:
        """
        One row per participant. When block randomization was used a 0-based
        `block` column is included; `arm` is added when arm_names is given.
        """
        df = pd.DataFrame(self.pairs(), columns=["participant_id", "arm_index"])
        if self.block_size:
            df["block"] = (df["participant_id"] - 1) // self.block_size
        if arm_names is not None:
            if len(arm_names) != self.n_arms:
                raise ValueError(f"Expected {self.n_arms} arm names, got {len(arm_names)}")
            df["arm"] = [arm_names[i] for i in df["arm_index"]]
        return df


# -------------------------
# Method resolution
# -------------------------

_IMPLEMENTED = {RandomizationMethod.SIMPLE, RandomizationMethod.BLOCK}

_FALLBACKS = {
    RandomizationMethod.STRATIFIED: (
        RandomizationMethod.BLOCK,
        "stratified randomization approximated by block randomization; "
        "participant covariates are not available to the engine",
    ),
    RandomizationMethod.MINIMIZATION: (RandomizationMethod.SIMPLE, "minimization is not implemented"),
    RandomizationMethod.CLUSTER: (RandomizationMethod.SIMPLE, "cluster randomization is not implemented"),
    RandomizationMethod.COVARIATE_ADAPTIVE: (
        RandomizationMethod.SIMPLE, "covariate-adaptive randomization is not implemented",
    ),
}


def resolve_method(method: RandomizationMethod, strict: bool = False) -> MethodOutcome:
    if method in _IMPLEMENTED:
        return MethodApplied(method)
    actual, reason = _FALLBACKS[method]
    if strict and method is not RandomizationMethod.STRATIFIED:
        raise UnsupportedMethod(method, actual)
    return MethodFallback(requested=method, actual=actual, reason=reason)


# -------------------------
# Algorithms
# -------------------------

def _simple(ratio: Tuple[int, ...], n: int, rng: SeededRandom) -> List[int]:
    total = sum(ratio)
    return [weighted_select(ratio, total, rng) for _ in range(n)]


def build_block(ratio: Tuple[int, ...], block_size: int, rng: SeededRandom) -> List[int]:
    """
    One shuffled block. Arm i gets floor(ratio[i] * block_size / total) fixed
    slots in ratio order; leftover slots are drawn by weight.
    """
    total = sum(ratio)
    block: List[int] = []
    for i, r in enumerate(ratio):
        block.extend([i] * ((r * block_size) // total))
    while len(block) < block_size:
        block.append(weighted_select(ratio, total, rng))
    shuffle(block, rng)
    return block


def _blocks(ratio: Tuple[int, ...], block_size: int, n: int, rng: SeededRandom) -> List[int]:
    out: List[int] = []
    for _ in range(math.ceil(n / block_size)):
        out.extend(build_block(ratio, block_size, rng))
    return out[:n]


# -------------------------
# Public API
# -------------------------

def generate_sequence(
    config: RandomizationConfig,
    participant_count: int,
    *,
    rng: Optional[SeededRandom] = None,
    seed_source: Callable[[], int] = default_seed,
    strict: bool = False,
) -> AllocationSequence:
    """
    Generate the allocation sequence for participants 1..participant_count.

    Seed resolution: an explicit `rng` wins, then `config.seed`, then
    `seed_source()`. The seed used is recorded on the result so the sequence
    can be replayed.
    """
    if isinstance(participant_count, bool) or not isinstance(participant_count, numbers.Integral):
        raise InvalidConfiguration(f"participant_count must be an integer, got {participant_count!r}")
    if participant_count < 0:
        raise InvalidConfiguration(f"participant_count must be >= 0, got {participant_count}")
    participant_count = int(participant_count)

    outcome = resolve_method(config.method, strict=strict)
    if outcome.fell_back:
        logger.warning(
            "Randomization method {requested} falling back to {actual}: {reason}",
            requested=outcome.requested.value, actual=outcome.actual.value, reason=outcome.reason,
        )

    if rng is None:
        seed = config.seed if config.seed is not None else seed_source()
        rng = SeededRandom(seed)
    seed = rng.seed

    logger.info(
        "Generating randomization sequence using method {method} (n={n}, ratio={ratio}, seed={seed})",
        method=outcome.actual.value, n=participant_count, ratio=list(config.ratio), seed=seed,
    )

    block_size = None
    if outcome.actual is RandomizationMethod.BLOCK:
        block_size = config.block_length
        arms = _blocks(config.ratio, block_size, participant_count, rng)
    else:
        arms = _simple(config.ratio, participant_count, rng)

    assignments = tuple(Assignment(participant_id=i + 1, arm_index=a) for i, a in enumerate(arms))
    logger.debug("Allocated {n} participants across {k} arms", n=len(assignments), k=config.n_arms)

    return AllocationSequence(
        assignments=assignments,
        seed=seed,
        requested=config.method,
        outcome=outcome,
        ratio=config.ratio,
        block_size=block_size,
    )
