"""Structured surface allocation requests.

A :class:`SurfaceRequest` captures everything needed to allocate one surface
resource: the logical extents, the element type and whether the resource is a
stack of 2D layers or a single 3D volume. It derives the backing device array
shape and byte size and checks the request against the platform surface
limits before any device memory is touched.
"""

from typing import Tuple

import attrs
import attrs.validators as val
import numpy as np

from cusurface._utils import (
    extent_validator,
    is_surface_dtype,
    precision_converter,
)
from cusurface.errors import AllocationError

# Maximum (width, height, layers) of a layered 2D surface.
MAX_SURFACE_2D_LAYERED = (32768, 32768, 2048)
# Maximum (width, height, depth) of a 3D surface.
MAX_SURFACE_3D = (16384, 16384, 16384)


@attrs.define(frozen=True)
class SurfaceRequest:
    """Specification for requesting a surface allocation.

    Parameters
    ----------
    width, height, depth
        Logical extents along x, y and z (or layer index).
    dtype
        Element type; converted to its numpy scalar type.
    is_layered
        ``True`` for a stack of independent 2D layers, ``False`` for a
        single volumetric surface.

    Attributes
    ----------
    shape
        Shape of the backing device array.
    nbytes
        Total size of the resource in bytes.
    """

    width: int = attrs.field(validator=extent_validator)
    height: int = attrs.field(validator=extent_validator)
    depth: int = attrs.field(validator=extent_validator)
    dtype: type = attrs.field(converter=precision_converter)
    is_layered: bool = attrs.field(
        default=False, validator=val.instance_of(bool)
    )

    @property
    def shape(self) -> Tuple[int, ...]:
        """Backing array shape: rows of stacked layers, or a 3D volume."""
        if self.is_layered:
            return (self.depth * self.height, self.width)
        return (self.depth, self.height, self.width)

    @property
    def size(self) -> int:
        """Number of elements in the resource."""
        return self.width * self.height * self.depth

    @property
    def itemsize(self) -> int:
        """Bytes per element."""
        return np.dtype(self.dtype).itemsize

    @property
    def nbytes(self) -> int:
        """Total size of the resource in bytes."""
        return self.size * self.itemsize

    @property
    def limits(self) -> Tuple[int, int, int]:
        """Platform extent limits for this layout."""
        if self.is_layered:
            return MAX_SURFACE_2D_LAYERED
        return MAX_SURFACE_3D

    def check_supported(self) -> None:
        """Reject requests the surface hardware cannot satisfy.

        Raises
        ------
        AllocationError
            If the element format is not a surface format, or any extent
            exceeds the platform limit for this layout.
        """
        if not is_surface_dtype(self.dtype):
            raise AllocationError(
                f"Unsupported surface format {np.dtype(self.dtype).name}; "
                "surfaces hold 8, 16 or 32-bit integer and 16 or 32-bit "
                "float elements."
            )
        extents = (self.width, self.height, self.depth)
        for name, extent, limit in zip(
            ("width", "height", "depth"), extents, self.limits
        ):
            if extent > limit:
                kind = "layered 2D" if self.is_layered else "3D"
                raise AllocationError(
                    f"{name} {extent} exceeds the {kind} surface limit "
                    f"of {limit}."
                )
