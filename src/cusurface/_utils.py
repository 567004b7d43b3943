"""Shared validators and converters for cusurface attrs containers."""

from typing import Any, Tuple

import numpy as np
from attrs import fields, has

from cusurface.errors import InvalidGeometryError

# Element formats a surface channel descriptor can represent.
SURFACE_DTYPES = (
    np.int8,
    np.uint8,
    np.int16,
    np.uint16,
    np.int32,
    np.uint32,
    np.float16,
    np.float32,
)


def in_attr(name, attrs_class_instance):
    """Checks if a name is in the attributes of a class instance."""
    field_names = {field.name for field in
                   fields(attrs_class_instance.__class__)}
    return name in field_names or ("_" + name) in field_names


def is_attrs_class(putative_class_instance):
    """Checks if the given object is an attrs class instance."""
    return has(putative_class_instance)


def precision_converter(value: Any) -> type:
    """Return the numpy scalar type for a dtype-like value."""
    return np.dtype(value).type


def precision_validator(instance, attribute, value) -> None:
    """Reject dtypes that are not numpy scalar types."""
    if not isinstance(value, type) or not issubclass(value, np.generic):
        raise TypeError(
            f"{attribute.name} must be a numpy scalar type, got {value!r}."
        )


def is_surface_dtype(dtype: Any) -> bool:
    """Return ``True`` when surfaces can hold elements of ``dtype``."""
    try:
        scalar = np.dtype(dtype).type
    except TypeError:
        return False
    return scalar in SURFACE_DTYPES


def check_extent(name: str, value: Any) -> int:
    """Return ``value`` as an int, rejecting non-positive extents.

    Parameters
    ----------
    name
        Dimension name used in the error message.
    value
        Candidate extent.

    Returns
    -------
    int
        The validated extent.

    Raises
    ------
    InvalidGeometryError
        If ``value`` is not an integer or is less than one.
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidGeometryError(
            f"{name} must be an integer, got {type(value).__name__}."
        )
    if value < 1:
        raise InvalidGeometryError(f"{name} must be positive, got {value}.")
    return int(value)


def check_dim3(name: str, value: Any) -> Tuple[int, int, int]:
    """Validate a 3-tuple of positive extents such as a block size."""
    try:
        items = tuple(value)
    except TypeError:
        raise InvalidGeometryError(
            f"{name} must be a 3-tuple of positive integers, got {value!r}."
        ) from None
    if len(items) != 3:
        raise InvalidGeometryError(
            f"{name} must have exactly three entries, got {len(items)}."
        )
    return tuple(
        check_extent(f"{name}[{i}]", item) for i, item in enumerate(items)
    )


def extent_validator(instance, attribute, value) -> None:
    """attrs validator wrapping :func:`check_extent`."""
    check_extent(attribute.name, value)


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer ceiling division for positive operands."""
    return -(-numerator // denominator)
