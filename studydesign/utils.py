"""
studydesign/utils.py

Utility functions used across the repo:
  - Parsing ratio / block-size strings from the command line
  - Allocation summaries as DataFrames
  - Conversion of results to plain dicts for JSON output
  - Formatting for reports
"""

from __future__ import annotations
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import InvalidConfiguration
from .randomization import AllocationSequence


# -------------------------
# Parsing
# -------------------------

def parse_ratio(text: str) -> Tuple[int, ...]:
    """
    "2:1" -> (2, 1); "1,1,1" -> (1, 1, 1).
    """
    parts = [p.strip() for p in text.replace(",", ":").split(":") if p.strip()]
    try:
        ratio = tuple(int(p) for p in parts)
    except ValueError:
        raise InvalidConfiguration(f"Invalid ratio {text!r}; expected e.g. '1:1' or '2:1'") from None
    if not ratio:
        raise InvalidConfiguration(f"Invalid ratio {text!r}; expected e.g. '1:1' or '2:1'")
    return ratio

def fmt_ratio(ratio: Sequence[int]) -> str:
    return ":".join(str(r) for r in ratio)


# -------------------------
# Summaries
# -------------------------

def allocation_summary(sequence: AllocationSequence,
                       arm_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Per-arm table: configured ratio, count, observed share and expected share.
    """
    k = sequence.n_arms
    counts = np.bincount(sequence.arm_indices(), minlength=k)
    total = counts.sum()
    ratio = np.asarray(sequence.ratio, dtype=float)
    out = pd.DataFrame({
        "arm_index": np.arange(k),
        "ratio": list(sequence.ratio),
        "count": counts,
        "share": counts / total if total else np.zeros(k),
        "expected_share": ratio / ratio.sum(),
    })
    if arm_names is not None:
        if len(arm_names) != k:
            raise ValueError(f"Expected {k} arm names, got {len(arm_names)}")
        out.insert(1, "arm", list(arm_names))
    return out


# -------------------------
# Reporting / formatting
# -------------------------

def _plain(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(_plain(v) for v in obj)
    return obj

def as_report_dict(obj) -> Dict:
    """
    Convert dataclass or dict-like result to a plain dict for JSON/printing.
    """
    if is_dataclass(obj):
        return _plain(asdict(obj))
    if isinstance(obj, dict):
        return _plain(obj)
    raise TypeError("Expected dataclass or dict.")

def sequence_report(sequence: AllocationSequence) -> Dict[str, Any]:
    outcome = sequence.outcome
    return {
        "requested_method": sequence.requested.value,
        "method": sequence.method.value,
        "fallback": as_report_dict(outcome) if outcome.fell_back else None,
        "seed": sequence.seed,
        "ratio": list(sequence.ratio),
        "block_size": sequence.block_size,
        "assignments": [
            {"participantId": a.participant_id, "armIndex": a.arm_index} for a in sequence
        ],
    }

def fmt_pct(x: float, digits: int = 2) -> str:
    return f"{100.0 * x:.{digits}f}%"
