"""Boundary policies for surface accesses outside the array extents."""

from enum import IntEnum
from typing import Union


class BoundaryMode(IntEnum):
    """How a surface access with an out-of-range coordinate is handled.

    ZERO
        Reads return the element type's zero; writes are discarded.
    CLAMP
        Each coordinate component is clamped to ``[0, extent - 1]``.
    TRAP
        The access faults, aborting the kernel launch.
    """

    ZERO = 0
    CLAMP = 1
    TRAP = 2


def boundary_mode_converter(value: Union[BoundaryMode, str, int]) -> BoundaryMode:
    """Accept a BoundaryMode, its integer value or its case-insensitive name."""
    if isinstance(value, BoundaryMode):
        return value
    if isinstance(value, str):
        try:
            return BoundaryMode[value.strip().upper()]
        except KeyError:
            valid = ", ".join(m.name.lower() for m in BoundaryMode)
            raise ValueError(
                f"Unknown boundary mode '{value}'; expected one of {valid}."
            ) from None
    return BoundaryMode(value)
