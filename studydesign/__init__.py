"""
studydesign: study randomization and sample-size utilities.

Public API is re-exported here for convenience.
"""

from importlib.metadata import PackageNotFoundError, version as _version

# ---- Version ----
try:
    __version__ = _version("studydesign")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

# ---- Re-exports ----
# Errors
from .errors import (  # noqa: F401
    StudyDesignError,
    InvalidConfiguration,
    InvalidSampleSizeRequest,
    InvalidEffectSize,
    InvalidDropoutRate,
    UnsupportedMethod,
)

# Data model
from .models import (  # noqa: F401
    ArmKind,
    BlindingType,
    PowerAnalysis,
    RandomizationConfig,
    RandomizationMethod,
    SampleSizeRequest,
    StudyArm,
    StudyDesign,
    StudyDesignType,
    StudyPhase,
)

# Randomization
from .rng import SeededRandom, shuffle, weighted_select  # noqa: F401
from .randomization import (  # noqa: F401
    AllocationSequence,
    Assignment,
    MethodApplied,
    MethodFallback,
    generate_sequence,
)

# Power / sample size
from .power import (  # noqa: F401
    SampleSizeResult,
    calculate,
    calculate_breakdown,
    normal_approx_per_group,
    sample_size_curve,
)

# Sanity checks
from .sanity import (  # noqa: F401
    arm_counts,
    srm_chisquare,
    block_balance,
    check_block_invariant,
)

__all__ = [
    "__version__",
    # errors
    "StudyDesignError",
    "InvalidConfiguration",
    "InvalidSampleSizeRequest",
    "InvalidEffectSize",
    "InvalidDropoutRate",
    "UnsupportedMethod",
    # models
    "ArmKind",
    "BlindingType",
    "PowerAnalysis",
    "RandomizationConfig",
    "RandomizationMethod",
    "SampleSizeRequest",
    "StudyArm",
    "StudyDesign",
    "StudyDesignType",
    "StudyPhase",
    # randomization
    "SeededRandom",
    "shuffle",
    "weighted_select",
    "AllocationSequence",
    "Assignment",
    "MethodApplied",
    "MethodFallback",
    "generate_sequence",
    # power
    "SampleSizeResult",
    "calculate",
    "calculate_breakdown",
    "normal_approx_per_group",
    "sample_size_curve",
    # sanity
    "arm_counts",
    "srm_chisquare",
    "block_balance",
    "check_block_invariant",
]
