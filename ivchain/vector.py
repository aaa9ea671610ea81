"""
IVChain Vector Model

A fixed-length vector of seven scaled measurements. Values are stored as
fixed-point integers scaled by 1000 (1.000 unit == 1000) so that validation,
duplicate detection and hashing never depend on float formatting.

Real-valued measurements are converted exactly once, at the boundary, with
`IVVector.from_units()`.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

IV_LENGTH = 7
SCALE = 1000

Number = Union[int, float, str, Decimal]


class IVVector(Sequence[int]):
    """Immutable 7-element vector of scaled integer measurements."""

    __slots__ = ("_values",)

    def __init__(self, values: Iterable[int]):
        values = tuple(values)
        if len(values) != IV_LENGTH:
            raise ValueError(f"IV vector must have exactly {IV_LENGTH} values, got {len(values)}")
        for v in values:
            # bool is an int subclass; a True/False measurement is always a caller bug
            if isinstance(v, bool) or not isinstance(v, int):
                raise TypeError(f"IV values must be scaled integers, got {type(v).__name__}")
        self._values: Tuple[int, ...] = values

    @classmethod
    def from_units(cls, values: Iterable[Number]) -> "IVVector":
        """
        Build a vector from real-unit measurements (e.g. 1.02 -> 1020).

        Conversion goes through Decimal(str(value)) so 1.015 scales to 1015
        rather than whatever the binary float happens to round to.
        """
        scaled: List[int] = []
        for v in values:
            if isinstance(v, bool):
                raise TypeError("IV values must be numeric")
            try:
                d = Decimal(str(v))
            except InvalidOperation as e:
                raise ValueError(f"Not a number: {v!r}") from e
            if not d.is_finite():
                raise ValueError(f"IV values must be finite, got {v!r}")
            scaled.append(int((d * SCALE).quantize(Decimal(1), rounding=ROUND_HALF_UP)))
        return cls(scaled)

    def to_units(self) -> List[str]:
        """Real-unit view with three decimals, for display only."""
        return [str((Decimal(v) / SCALE).quantize(Decimal("0.001"))) for v in self._values]

    def __getitem__(self, index):
        return self._values[index]

    def __len__(self) -> int:
        return IV_LENGTH

    def __iter__(self) -> Iterator[int]:
        return iter(self._values)

    def __eq__(self, other) -> bool:
        if isinstance(other, IVVector):
            return self._values == other._values
        if isinstance(other, (list, tuple)):
            return self._values == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        return f"IVVector({list(self._values)})"

    def to_list(self) -> List[int]:
        return list(self._values)


def as_vector(values: Union[IVVector, Iterable[int]]) -> IVVector:
    """Coerce a sequence of scaled integers to an IVVector."""
    if isinstance(values, IVVector):
        return values
    return IVVector(values)
