"""
studydesign/models.py

Data model shared by the randomization engine and the sample-size calculator:
  - Enums for arm kinds, randomization methods, design types, blinding
  - StudyArm / StudyPhase / StudyDesign (read-only view of a designed study)
  - RandomizationConfig (engine input)
  - SampleSizeRequest (calculator input) and PowerAnalysis (summary)

All dataclasses are frozen and validate eagerly in __post_init__.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from .errors import (
    InvalidConfiguration,
    InvalidDropoutRate,
    InvalidEffectSize,
    InvalidSampleSizeRequest,
)


# -------------------------
# Defaults
# -------------------------

DEFAULT_RATIO: Tuple[int, ...] = (1, 1)
DEFAULT_BLOCK_SIZE = 4
DEFAULT_ALPHA = 0.05
DEFAULT_POWER = 0.8
DEFAULT_FACTORS = 2


# -------------------------
# Enums
# -------------------------

class ArmKind(str, Enum):
    EXPERIMENTAL = "experimental"
    CONTROL = "control"
    PLACEBO = "placebo"
    STANDARD_CARE = "standard_care"


class RandomizationMethod(str, Enum):
    SIMPLE = "simple"
    BLOCK = "block"
    STRATIFIED = "stratified"
    MINIMIZATION = "minimization"
    CLUSTER = "cluster"
    COVARIATE_ADAPTIVE = "covariate_adaptive"


class StudyDesignType(str, Enum):
    OBSERVATIONAL = "observational"
    CASE_CONTROL = "case_control"
    COHORT = "cohort"
    RCT = "randomized_controlled_trial"
    CROSSOVER = "crossover"
    FACTORIAL = "factorial"
    ADAPTIVE = "adaptive"
    N_OF_1 = "n_of_1"


class BlindingType(str, Enum):
    OPEN_LABEL = "open_label"
    SINGLE_BLIND = "single_blind"
    DOUBLE_BLIND = "double_blind"
    TRIPLE_BLIND = "triple_blind"


def _parse_enum(enum_cls, value, error_cls):
    """Accept an enum member, its value ("block") or its name ("BLOCK"/"rct")."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.lower())
        except ValueError:
            pass
        try:
            return enum_cls[value.upper()]
        except KeyError:
            pass
    allowed = [m.value for m in enum_cls]
    raise error_cls(f"Unknown {enum_cls.__name__} {value!r}; expected one of {allowed}")


def _is_int(x: Any) -> bool:
    return isinstance(x, numbers.Integral) and not isinstance(x, bool)


def _open_unit(name: str, value: Any) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        raise InvalidSampleSizeRequest(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(x) or not (0 < x < 1):
        raise InvalidSampleSizeRequest(f"{name} must be in (0,1), got {value!r}")
    return x


def _or_default(value: Any, default: Any) -> Any:
    return default if value is None else value


def _factor_set(value: Any) -> FrozenSet[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset((value,))
    return frozenset(value)


def _pick(d: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d:
            return d[k]
    return default


# -------------------------
# Randomization config
# -------------------------

@dataclass(frozen=True)
class RandomizationConfig:
    method: RandomizationMethod
    ratio: Tuple[int, ...] = DEFAULT_RATIO
    block_size: Optional[Tuple[int, ...]] = None
    stratification_factors: FrozenSet[str] = frozenset()
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "method", _parse_enum(RandomizationMethod, self.method, InvalidConfiguration)
        )

        ratio = DEFAULT_RATIO if self.ratio is None else tuple(self.ratio)
        if not ratio:
            raise InvalidConfiguration("ratio must be non-empty")
        if any(not _is_int(r) or r <= 0 for r in ratio):
            raise InvalidConfiguration(f"ratio must contain positive integers, got {list(ratio)}")
        object.__setattr__(self, "ratio", ratio)

        if self.block_size is not None:
            bs = (self.block_size,) if _is_int(self.block_size) else tuple(self.block_size)
            if not bs:
                bs = None
            elif any(not _is_int(b) or b <= 0 for b in bs):
                raise InvalidConfiguration(f"block_size must contain positive integers, got {list(bs)}")
            object.__setattr__(self, "block_size", bs)

        object.__setattr__(self, "stratification_factors", _factor_set(self.stratification_factors))

        if self.seed is not None and not _is_int(self.seed):
            raise InvalidConfiguration(f"seed must be an integer, got {self.seed!r}")

    @property
    def n_arms(self) -> int:
        return len(self.ratio)

    @property
    def total_ratio(self) -> int:
        return sum(self.ratio)

    @property
    def block_length(self) -> int:
        """Effective block size: first configured element, else DEFAULT_BLOCK_SIZE."""
        return self.block_size[0] if self.block_size else DEFAULT_BLOCK_SIZE

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RandomizationConfig":
        """
        Build from a JSON-like mapping. camelCase keys (as stored by the
        orchestration layer) and snake_case keys are both accepted:
          {"method": "block", "ratio": [2, 1], "blockSize": [6], "seed": 42}
        """
        if "method" not in d:
            raise InvalidConfiguration("randomization config requires a 'method'")
        return cls(
            method=d["method"],
            ratio=_pick(d, "ratio", default=None),
            block_size=_pick(d, "blockSize", "block_size"),
            stratification_factors=_factor_set(_pick(d, "stratificationFactors", "stratification_factors")),
            seed=_pick(d, "seed"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "ratio": list(self.ratio),
            "blockSize": list(self.block_size) if self.block_size else None,
            "stratificationFactors": sorted(self.stratification_factors),
            "seed": self.seed,
        }


# -------------------------
# Sample size request / summary
# -------------------------

@dataclass(frozen=True)
class SampleSizeRequest:
    effect_size: float
    design_type: StudyDesignType
    alpha: float = DEFAULT_ALPHA
    power: float = DEFAULT_POWER
    factors: Optional[int] = None
    multiple_comparisons: bool = False
    comparisons: Optional[int] = None
    dropout_rate: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "design_type",
            _parse_enum(StudyDesignType, self.design_type, InvalidSampleSizeRequest),
        )

        try:
            es = float(self.effect_size)
        except (TypeError, ValueError):
            raise InvalidEffectSize(f"effect_size must be a number, got {self.effect_size!r}") from None
        if not math.isfinite(es) or es <= 0:
            raise InvalidEffectSize(f"effect_size must be a finite number > 0, got {self.effect_size!r}")
        object.__setattr__(self, "effect_size", es)

        object.__setattr__(self, "alpha", _open_unit("alpha", self.alpha))
        object.__setattr__(self, "power", _open_unit("power", self.power))

        if self.factors is not None and (not _is_int(self.factors) or self.factors < 1):
            raise InvalidSampleSizeRequest(f"factors must be an integer >= 1, got {self.factors!r}")
        if self.comparisons is not None and (not _is_int(self.comparisons) or self.comparisons < 1):
            raise InvalidSampleSizeRequest(f"comparisons must be an integer >= 1, got {self.comparisons!r}")

        if self.dropout_rate is not None:
            d = self.dropout_rate
            if isinstance(d, bool) or not isinstance(d, (int, float)) or not (0 <= d < 1):
                raise InvalidDropoutRate(f"dropout_rate must be in [0,1), got {d!r}")
            object.__setattr__(self, "dropout_rate", float(d))

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "SampleSizeRequest":
        """
        Accepts the stored form, with adjustment parameters either nested
        under "additionalParams" or flattened alongside the other fields.
        """
        extra = dict(_pick(d, "additionalParams", "additional_params", default={}) or {})
        merged = {**d, **extra}
        return cls(
            effect_size=_pick(merged, "effectSize", "effect_size"),
            design_type=_pick(merged, "designType", "design_type"),
            alpha=_or_default(_pick(merged, "alpha"), DEFAULT_ALPHA),
            power=_or_default(_pick(merged, "power"), DEFAULT_POWER),
            factors=_pick(merged, "factors"),
            multiple_comparisons=bool(_pick(merged, "multipleComparisons", "multiple_comparisons", default=False)),
            comparisons=_pick(merged, "comparisons"),
            dropout_rate=_pick(merged, "dropoutRate", "dropout_rate"),
        )


@dataclass(frozen=True)
class PowerAnalysis:
    effect_size: float
    alpha: float
    power: float
    sample_size: int
    adjustments: Tuple[str, ...] = ()


# -------------------------
# Study design (external aggregate)
# -------------------------

@dataclass(frozen=True)
class StudyArm:
    id: str
    name: str
    kind: ArmKind
    target_size: int = 0
    current_size: int = 0
    description: str = ""
    intervention: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", _parse_enum(ArmKind, self.kind, InvalidConfiguration))
        for name in ("target_size", "current_size"):
            v = getattr(self, name)
            if not _is_int(v) or v < 0:
                raise InvalidConfiguration(f"StudyArm.{name} must be an integer >= 0, got {v!r}")


@dataclass(frozen=True)
class StudyPhase:
    id: str
    name: str
    duration_days: int
    description: str = ""
    arm_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StudyDesign:
    id: str
    study_id: str
    type: StudyDesignType
    arms: Tuple[StudyArm, ...]
    blinding: BlindingType = BlindingType.OPEN_LABEL
    randomization: Optional[RandomizationConfig] = None
    primary_outcomes: Tuple[str, ...] = ()
    secondary_outcomes: Tuple[str, ...] = ()
    phases: Tuple[StudyPhase, ...] = ()
    power_analysis: Optional[PowerAnalysis] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _parse_enum(StudyDesignType, self.type, InvalidConfiguration))
        object.__setattr__(self, "blinding", _parse_enum(BlindingType, self.blinding, InvalidConfiguration))
        object.__setattr__(self, "arms", tuple(self.arms))
        object.__setattr__(self, "phases", tuple(self.phases))
        object.__setattr__(self, "primary_outcomes", tuple(self.primary_outcomes))
        object.__setattr__(self, "secondary_outcomes", tuple(self.secondary_outcomes))

    def validate(self) -> None:
        """
        Cross-field checks the orchestration layer should run before handing
        the design to the engine.
        """
        arm_ids = [a.id for a in self.arms]
        if len(set(arm_ids)) != len(arm_ids):
            raise InvalidConfiguration(f"Duplicate arm ids: {arm_ids}")
        if self.randomization is not None and self.randomization.n_arms != len(self.arms):
            raise InvalidConfiguration(
                f"Randomization ratio has {self.randomization.n_arms} entries "
                f"but the design has {len(self.arms)} arms"
            )
        known = set(arm_ids)
        for phase in self.phases:
            unknown = sorted(set(phase.arm_ids) - known)
            if unknown:
                raise InvalidConfiguration(f"Phase {phase.id!r} references unknown arms: {unknown}")

    def arm_at(self, arm_index: int) -> StudyArm:
        if not 0 <= arm_index < len(self.arms):
            raise IndexError(f"arm_index {arm_index} out of range for {len(self.arms)} arms")
        return self.arms[arm_index]

    def arm_names(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.arms)


def arms_from_dicts(rows: Iterable[Mapping[str, Any]]) -> Tuple[StudyArm, ...]:
    return tuple(
        StudyArm(
            id=r["id"],
            name=r["name"],
            kind=_pick(r, "type", "kind"),
            target_size=_pick(r, "targetSize", "target_size", default=0),
            current_size=_pick(r, "currentSize", "current_size", default=0),
            description=r.get("description", ""),
            intervention=r.get("intervention"),
        )
        for r in rows
    )
