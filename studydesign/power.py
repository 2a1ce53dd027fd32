"""
studydesign/power.py

Sample-size calculation for study designs.

calculate() applies, in order:
  1. base = ceil(16 / d^2)                 (two-sample means, alpha=.05 / power=.80)
  2. design multiplier                     (RCT x2, crossover x0.6, factorial x2^(k-1), adaptive x0.7)
  3. multiple comparisons                  (x1.2)
  4. dropout                               (/ (1 - dropout_rate))
Each step is rounded up before the next.

The 16/d^2 baseline deliberately ignores the requested alpha/power;
normal_approx_per_group() is provided as an alpha/power-sensitive reference.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from scipy import stats

from .errors import InvalidEffectSize, InvalidSampleSizeRequest
from .models import DEFAULT_FACTORS, PowerAnalysis, SampleSizeRequest, StudyDesignType

BASE_NUMERATOR = 16.0
MULTIPLE_COMPARISONS_INFLATION = 1.2

_FIXED_MULTIPLIERS = {
    StudyDesignType.RCT: 2.0,
    StudyDesignType.CROSSOVER: 0.6,
    StudyDesignType.ADAPTIVE: 0.7,
}


@dataclass(frozen=True)
class SampleSizeResult:
    n_base: int
    n_design: int
    n_comparisons: int
    n_total: int
    design_type: StudyDesignType
    design_multiplier: float
    effect_size: float
    alpha: float
    power: float
    adjustments: Tuple[str, ...] = ()

    def to_power_analysis(self) -> PowerAnalysis:
        return PowerAnalysis(
            effect_size=self.effect_size,
            alpha=self.alpha,
            power=self.power,
            sample_size=self.n_total,
            adjustments=self.adjustments,
        )


def base_sample_size(effect_size: float) -> int:
    if not math.isfinite(effect_size) or effect_size <= 0:
        raise InvalidEffectSize(f"effect_size must be a finite number > 0, got {effect_size!r}")
    return math.ceil(BASE_NUMERATOR / (effect_size * effect_size))


def design_multiplier(design_type: StudyDesignType, factors: int | None = None) -> float:
    if design_type is StudyDesignType.FACTORIAL:
        k = DEFAULT_FACTORS if factors is None else factors
        return float(2 ** (k - 1))
    return _FIXED_MULTIPLIERS.get(design_type, 1.0)


def calculate_breakdown(request: SampleSizeRequest) -> SampleSizeResult:
    logger.info(
        "Calculating sample size for study design {design} (effect_size={d})",
        design=request.design_type.value, d=request.effect_size,
    )
    adjustments = []

    n_base = base_sample_size(request.effect_size)

    mult = design_multiplier(request.design_type, request.factors)
    n = math.ceil(n_base * mult)
    if mult != 1.0:
        adjustments.append(f"{request.design_type.value} design x{mult:g}")
    n_design = n

    if request.multiple_comparisons:
        n = math.ceil(n * MULTIPLE_COMPARISONS_INFLATION)
        k = request.comparisons or 1
        adjustments.append(f"multiple comparisons ({k}) x{MULTIPLE_COMPARISONS_INFLATION:g}")
    n_comparisons = n

    if request.dropout_rate:
        n = math.ceil(n / (1.0 - request.dropout_rate))
        adjustments.append(f"dropout {request.dropout_rate:.0%} /(1 - {request.dropout_rate:g})")

    n_total = max(1, n)
    logger.debug(
        "Sample size steps: base={base} design={design} comparisons={cmp} total={total}",
        base=n_base, design=n_design, cmp=n_comparisons, total=n_total,
    )

    return SampleSizeResult(
        n_base=n_base,
        n_design=n_design,
        n_comparisons=n_comparisons,
        n_total=n_total,
        design_type=request.design_type,
        design_multiplier=mult,
        effect_size=request.effect_size,
        alpha=request.alpha,
        power=request.power,
        adjustments=tuple(adjustments),
    )


def calculate(request: SampleSizeRequest) -> int:
    """Minimum number of participants (>= 1) for the request."""
    return calculate_breakdown(request).n_total


def sample_size_curve(request: SampleSizeRequest,
                      effect_sizes: Optional[Iterable[float]] = None) -> pd.DataFrame:
    """
    Required sample size across a range of effect sizes, all other request
    fields held fixed. Defaults to d = 0.10, 0.15, ..., 1.00.
    """
    if effect_sizes is None:
        effect_sizes = np.round(np.arange(0.10, 1.0 + 1e-9, 0.05), 2)
    rows = []
    for d in effect_sizes:
        res = calculate_breakdown(replace(request, effect_size=float(d)))
        rows.append({"effect_size": res.effect_size, "n_base": res.n_base, "sample_size": res.n_total})
    return pd.DataFrame(rows, columns=["effect_size", "n_base", "sample_size"])


# -------------------------
# Reference formulas (not used by calculate)
# -------------------------

def z_alpha(alpha: float, two_sided: bool = True) -> float:
    a = alpha / 2.0 if two_sided else alpha
    return float(stats.norm.ppf(1.0 - a))


def z_beta(power: float) -> float:
    return float(stats.norm.ppf(power))


def bonferroni_alpha(alpha: float, comparisons: int) -> float:
    if not (0 < alpha < 1):
        raise InvalidSampleSizeRequest("alpha must be in (0,1)")
    if comparisons < 1:
        raise InvalidSampleSizeRequest("comparisons must be >= 1")
    return alpha / comparisons


def normal_approx_per_group(
    effect_size: float,
    alpha: float = 0.05,
    power: float = 0.8,
    two_sided: bool = True,
) -> int:
    """
    Per-group n for a two-sample comparison of means with standardized effect d:
      n = 2 * (z_{1-a/2} + z_{power})^2 / d^2
    At alpha=.05 / power=.80 this is ~15.7/d^2, the figure the 16/d^2 rule rounds.
    """
    if not math.isfinite(effect_size) or effect_size <= 0:
        raise InvalidEffectSize(f"effect_size must be a finite number > 0, got {effect_size!r}")
    if not (0 < alpha < 1) or not (0 < power < 1):
        raise InvalidSampleSizeRequest("alpha and power must be in (0,1)")
    za = z_alpha(alpha, two_sided)
    zb = z_beta(power)
    return math.ceil(2.0 * (za + zb) ** 2 / effect_size ** 2)
