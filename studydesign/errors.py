"""
studydesign/errors.py

Error kinds raised by the randomization engine and the sample-size calculator.

Everything derives from ValueError, so callers that already catch ValueError
around input validation keep working.
"""

from __future__ import annotations


class StudyDesignError(ValueError):
    """Base class for all studydesign input errors."""


class InvalidConfiguration(StudyDesignError):
    """Malformed RandomizationConfig, StudyArm/StudyDesign, or participant count."""


class InvalidSampleSizeRequest(StudyDesignError):
    """Malformed SampleSizeRequest (alpha, power, factors, comparisons)."""


class InvalidEffectSize(InvalidSampleSizeRequest):
    pass


class InvalidDropoutRate(InvalidSampleSizeRequest):
    pass


class UnsupportedMethod(StudyDesignError):
    """A randomization method with no real algorithm was requested in strict mode."""

    def __init__(self, method, fallback) -> None:
        self.method = method
        self.fallback = fallback
        super().__init__(
            f"Randomization method '{getattr(method, 'value', method)}' is not implemented "
            f"(non-strict mode would fall back to '{getattr(fallback, 'value', fallback)}')"
        )
