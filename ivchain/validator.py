"""
IVChain Statistical Validator

Deterministic accept/reject classifier for IV vectors.

Design principles:
- Pure: no I/O, no clock, no randomness
- Ordered: checks run in a fixed order and stop at the first failure, so the
  reported reason is reproducible
- Integer-only: all arithmetic happens on the x1000 scaled values

Check order:
    1. range         every value in [min_value, max_value]
    2. spread        max - min <= max_range
    3. variance      min_variance <= variance <= max_variance
    4. monotonicity  not entirely non-decreasing / non-increasing
    5. uniqueness    at least min_unique distinct values
    6. alternation   at most max_alternations large adjacent jumps

Variance is checked before monotonicity, so a steep monotonic ramp such as
[100, 200, ..., 700] is reported as VARIANCE_TOO_HIGH, not MONOTONIC_PATTERN.

The alternation check cannot fire under DEFAULT_RULESET: a single jump
over 1500 already pushes variance past 1200. It only bites for custom
rulesets with a looser max_variance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from .vector import IVVector, as_vector


class ValidationReason(str, Enum):
    """Reason codes for a rejected vector, in check order."""
    OUT_OF_RANGE = "OutOfRange"
    RANGE_TOO_WIDE = "RangeTooWide"
    VARIANCE_TOO_LOW = "VarianceTooLow"
    VARIANCE_TOO_HIGH = "VarianceTooHigh"
    MONOTONIC_PATTERN = "MonotonicPattern"
    TOO_MANY_DUPLICATES = "TooManyDuplicates"
    TOO_MANY_ALTERNATIONS = "TooManyAlternations"

    @property
    def message(self) -> str:
        return REASON_MESSAGES[self]


REASON_MESSAGES = {
    ValidationReason.OUT_OF_RANGE: "Value outside valid range",
    ValidationReason.RANGE_TOO_WIDE: "Value range too wide",
    ValidationReason.VARIANCE_TOO_LOW: "Variance too low - values too similar",
    ValidationReason.VARIANCE_TOO_HIGH: "Variance too high - values too scattered",
    ValidationReason.MONOTONIC_PATTERN: "Monotonic pattern detected",
    ValidationReason.TOO_MANY_DUPLICATES: "Too many duplicate values",
    ValidationReason.TOO_MANY_ALTERNATIONS: "Too many large alternations",
}


@dataclass(frozen=True)
class IVRuleset:
    """
    Validation constants, all in x1000 scaled units.

    The variance bounds apply to the integer variance of the scaled values
    and match the deployed ruleset (50..1200).
    """
    min_value: int = 10
    max_value: int = 3000
    max_range: int = 2500
    min_variance: int = 50
    max_variance: int = 1200
    min_unique: int = 4
    alternation_threshold: int = 1500
    max_alternations: int = 3

    def to_dict(self) -> Dict[str, int]:
        return {
            "min_value": self.min_value,
            "max_value": self.max_value,
            "max_range": self.max_range,
            "min_variance": self.min_variance,
            "max_variance": self.max_variance,
            "min_unique": self.min_unique,
            "alternation_threshold": self.alternation_threshold,
            "max_alternations": self.max_alternations,
        }


DEFAULT_RULESET = IVRuleset()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one vector. `reason` is None when accepted."""
    accepted: bool
    reason: Optional[ValidationReason] = None

    @property
    def message(self) -> str:
        return self.reason.message if self.reason else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: ValidationReason) -> "ValidationResult":
        return cls(accepted=False, reason=reason)


def mean(values: IVVector) -> int:
    """Truncated integer mean."""
    return sum(values) // len(values)


def variance(values: IVVector) -> int:
    """Population variance with truncating integer division."""
    m = mean(values)
    return sum((v - m) * (v - m) for v in values) // len(values)


def is_monotonic(values: IVVector) -> bool:
    pairs = list(zip(values, values[1:]))
    return all(a <= b for a, b in pairs) or all(a >= b for a, b in pairs)


def count_alternations(values: IVVector, threshold: int) -> int:
    """Number of adjacent pairs whose absolute difference exceeds threshold."""
    return sum(1 for a, b in zip(values, values[1:]) if abs(b - a) > threshold)


def validate(
    values: Union[IVVector, Iterable[int]],
    rules: IVRuleset = DEFAULT_RULESET
) -> ValidationResult:
    """
    Classify a vector of scaled integers.

    Raises ValueError/TypeError only for malformed input (wrong length,
    non-integer values); every well-formed vector yields a result.
    """
    vec = as_vector(values)

    if any(v < rules.min_value or v > rules.max_value for v in vec):
        return ValidationResult.rejected(ValidationReason.OUT_OF_RANGE)

    if max(vec) - min(vec) > rules.max_range:
        return ValidationResult.rejected(ValidationReason.RANGE_TOO_WIDE)

    var = variance(vec)
    if var < rules.min_variance:
        return ValidationResult.rejected(ValidationReason.VARIANCE_TOO_LOW)
    if var > rules.max_variance:
        return ValidationResult.rejected(ValidationReason.VARIANCE_TOO_HIGH)

    if is_monotonic(vec):
        return ValidationResult.rejected(ValidationReason.MONOTONIC_PATTERN)

    if len(set(vec)) < rules.min_unique:
        return ValidationResult.rejected(ValidationReason.TOO_MANY_DUPLICATES)

    if count_alternations(vec, rules.alternation_threshold) > rules.max_alternations:
        return ValidationResult.rejected(ValidationReason.TOO_MANY_ALTERNATIONS)

    return ValidationResult.ok()
