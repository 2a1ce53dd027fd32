"""
studydesign/sanity.py

Sanity checks for generated allocation sequences:
  - arm counts
  - SRM (sample ratio mismatch) against the configured ratio
  - per-block balance for block randomization
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd
from scipy import stats

from .randomization import AllocationSequence


# -------------------------
# Counts
# -------------------------

def arm_counts(sequence: AllocationSequence) -> Dict[int, int]:
    """Assignments per arm index; arms that received nobody are reported as 0."""
    counts = np.bincount(sequence.arm_indices(), minlength=sequence.n_arms)
    return {i: int(c) for i, c in enumerate(counts)}

def expected_shares(sequence: AllocationSequence) -> Dict[int, float]:
    total = float(sum(sequence.ratio))
    return {i: r / total for i, r in enumerate(sequence.ratio)}


# -------------------------
# SRM (Sample Ratio Mismatch)
# -------------------------

@dataclass(frozen=True)
class SRMResult:
    chi2: float
    p_value: float
    observed: Dict[int, int]
    expected: Dict[int, float]

def srm_chisquare(sequence: AllocationSequence) -> SRMResult:
    """
    Chi-square goodness-of-fit test comparing observed arm counts to the
    shares implied by the allocation ratio.
    """
    if len(sequence) == 0:
        raise ValueError("Cannot test an empty allocation sequence.")
    observed = arm_counts(sequence)
    shares = expected_shares(sequence)

    obs = np.array([observed[i] for i in range(sequence.n_arms)], dtype=float)
    exp = np.array([shares[i] for i in range(sequence.n_arms)], dtype=float) * obs.sum()

    if sequence.n_arms == 1:
        return SRMResult(chi2=0.0, p_value=1.0, observed=observed, expected=shares)

    chi2, p = stats.chisquare(f_obs=obs, f_exp=exp)
    return SRMResult(
        chi2=float(chi2),
        p_value=float(p),
        observed=observed,
        expected=shares,
    )


# -------------------------
# Block balance
# -------------------------

def minimum_per_block(sequence: AllocationSequence) -> Dict[int, int]:
    """Guaranteed slots per arm in every complete block."""
    if not sequence.block_size:
        raise ValueError("Sequence was not generated with block randomization.")
    total = sum(sequence.ratio)
    return {i: (r * sequence.block_size) // total for i, r in enumerate(sequence.ratio)}

def block_balance(sequence: AllocationSequence) -> pd.DataFrame:
    """
    One row per block: counts per arm (columns arm_0..arm_k), block length,
    whether the block is complete and whether it meets the per-arm minimum.
    The final partial block is reported but never flagged as unbalanced.
    """
    floors = minimum_per_block(sequence)
    df = sequence.to_frame()
    cols = [f"arm_{i}" for i in range(sequence.n_arms)]

    table = (
        pd.crosstab(df["block"], df["arm_index"])
        .reindex(columns=range(sequence.n_arms), fill_value=0)
    )
    table.columns = cols
    table = table.reset_index()
    table["size"] = table[cols].sum(axis=1)
    table["complete"] = table["size"] == sequence.block_size

    meets = np.ones(len(table), dtype=bool)
    for i, col in enumerate(cols):
        meets &= (table[col] >= floors[i]).to_numpy()
    table["balanced"] = meets | ~table["complete"].to_numpy()
    return table

def check_block_invariant(sequence: AllocationSequence) -> bool:
    if not sequence.block_size:
        raise ValueError("Sequence was not generated with block randomization.")
    if len(sequence) == 0:
        return True
    return bool(block_balance(sequence)["balanced"].all())
