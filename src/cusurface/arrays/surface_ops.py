"""Device-side surface read and write intrinsics.

The factories here build the device functions that stand in for the hardware
surface instructions: ``surf2DLayeredread``/``surf2DLayeredwrite`` for layered
resources and ``surf3Dread``/``surf3Dwrite`` for volumes. Like the hardware
instructions, x is given as a byte offset and the boundary mode is fixed when
the function is built, so the compiled code carries no runtime dispatch.

Resource layouts:

- layered: a 2D device array of shape ``(layers * height, width)``; layer
  ``l`` occupies rows ``l * height`` to ``(l + 1) * height - 1``.
- volume: a 3D device array of shape ``(depth, height, width)``.
"""

from typing import Callable, Dict, Any

from numba import cuda
import numpy as np

from cusurface.arrays.boundary import BoundaryMode
from cusurface.cuda_simsafe import compile_kwargs, trap_compile_kwargs
from cusurface.errors import OutOfRangeAccess


def accessor_compile_kwargs(boundary_mode: BoundaryMode) -> Dict[str, Any]:
    """Jit options for device functions and kernels under ``boundary_mode``.

    TRAP faults are exceptions raised in device code, which only reach the
    host from code compiled in debug mode on hardware. Numba warns when
    ``lineinfo`` is combined with ``debug``, so it is dropped in that mode.
    """
    kwargs = dict(compile_kwargs)
    if boundary_mode == BoundaryMode.TRAP:
        kwargs.pop("lineinfo", None)
        kwargs.update(trap_compile_kwargs)
    return kwargs


def _layered_element_access(height: int, jit_kwargs: Dict[str, Any]):
    """Element load/store for a stack of 2D layers."""

    # no cover: start
    @cuda.jit(device=True, inline=True, **jit_kwargs)
    def load(surface, x, y, layer):
        return surface[layer * height + y, x]

    @cuda.jit(device=True, inline=True, **jit_kwargs)
    def store(surface, x, y, layer, value):
        surface[layer * height + y, x] = value
    # no cover: end

    return load, store


def _volume_element_access(jit_kwargs: Dict[str, Any]):
    """Element load/store for a single 3D volume."""

    # no cover: start
    @cuda.jit(device=True, inline=True, **jit_kwargs)
    def load(surface, x, y, z):
        return surface[z, y, x]

    @cuda.jit(device=True, inline=True, **jit_kwargs)
    def store(surface, x, y, z, value):
        surface[z, y, x] = value
    # no cover: end

    return load, store


def _bounded_read(
    load: Callable,
    precision: type,
    width: int,
    height: int,
    depth: int,
    boundary_mode: BoundaryMode,
    jit_kwargs: Dict[str, Any],
) -> Callable:
    """Wrap ``load`` with byte-offset x addressing and a boundary policy."""
    itemsize = np.dtype(precision).itemsize
    max_x = width - 1
    max_y = height - 1
    max_z = depth - 1

    # no cover: start
    if boundary_mode == BoundaryMode.ZERO:

        @cuda.jit(device=True, inline=True, **jit_kwargs)
        def read(surface, x_bytes, y, z):
            x = x_bytes // itemsize
            if (
                x >= 0 and x < width
                and y >= 0 and y < height
                and z >= 0 and z < depth
            ):
                return load(surface, x, y, z)
            return precision(0)

    elif boundary_mode == BoundaryMode.CLAMP:

        @cuda.jit(device=True, inline=True, **jit_kwargs)
        def read(surface, x_bytes, y, z):
            x = min(max(x_bytes // itemsize, 0), max_x)
            y = min(max(y, 0), max_y)
            z = min(max(z, 0), max_z)
            return load(surface, x, y, z)

    else:

        @cuda.jit(device=True, inline=True, **jit_kwargs)
        def read(surface, x_bytes, y, z):
            x = x_bytes // itemsize
            if (
                x < 0 or x >= width
                or y < 0 or y >= height
                or z < 0 or z >= depth
            ):
                raise OutOfRangeAccess("surface read out of range")
            return load(surface, x, y, z)
    # no cover: end

    return read


def _bounded_write(
    store: Callable,
    precision: type,
    width: int,
    height: int,
    depth: int,
    boundary_mode: BoundaryMode,
    jit_kwargs: Dict[str, Any],
) -> Callable:
    """Wrap ``store`` with byte-offset x addressing and a boundary policy."""
    itemsize = np.dtype(precision).itemsize
    max_x = width - 1
    max_y = height - 1
    max_z = depth - 1

    # no cover: start
    if boundary_mode == BoundaryMode.ZERO:

        @cuda.jit(device=True, inline=True, **jit_kwargs)
        def write(value, surface, x_bytes, y, z):
            x = x_bytes // itemsize
            if (
                x >= 0 and x < width
                and y >= 0 and y < height
                and z >= 0 and z < depth
            ):
                store(surface, x, y, z, value)

    elif boundary_mode == BoundaryMode.CLAMP:

        @cuda.jit(device=True, inline=True, **jit_kwargs)
        def write(value, surface, x_bytes, y, z):
            x = min(max(x_bytes // itemsize, 0), max_x)
            y = min(max(y, 0), max_y)
            z = min(max(z, 0), max_z)
            store(surface, x, y, z, value)

    else:

        @cuda.jit(device=True, inline=True, **jit_kwargs)
        def write(value, surface, x_bytes, y, z):
            x = x_bytes // itemsize
            if (
                x < 0 or x >= width
                or y < 0 or y >= height
                or z < 0 or z >= depth
            ):
                raise OutOfRangeAccess("surface write out of range")
            store(surface, x, y, z, value)
    # no cover: end

    return write


def surf2d_layered_read_factory(
    precision: type,
    width: int,
    height: int,
    layers: int,
    boundary_mode: BoundaryMode,
) -> Callable:
    """Build ``read(surface, x_bytes, y, layer)`` for a layered resource."""
    jit_kwargs = accessor_compile_kwargs(boundary_mode)
    load, _ = _layered_element_access(height, jit_kwargs)
    return _bounded_read(
        load, precision, width, height, layers, boundary_mode, jit_kwargs
    )


def surf2d_layered_write_factory(
    precision: type,
    width: int,
    height: int,
    layers: int,
    boundary_mode: BoundaryMode,
) -> Callable:
    """Build ``write(value, surface, x_bytes, y, layer)`` for a layered
    resource."""
    jit_kwargs = accessor_compile_kwargs(boundary_mode)
    _, store = _layered_element_access(height, jit_kwargs)
    return _bounded_write(
        store, precision, width, height, layers, boundary_mode, jit_kwargs
    )


def surf3d_read_factory(
    precision: type,
    width: int,
    height: int,
    depth: int,
    boundary_mode: BoundaryMode,
) -> Callable:
    """Build ``read(surface, x_bytes, y, z)`` for a volume resource."""
    jit_kwargs = accessor_compile_kwargs(boundary_mode)
    load, _ = _volume_element_access(jit_kwargs)
    return _bounded_read(
        load, precision, width, height, depth, boundary_mode, jit_kwargs
    )


def surf3d_write_factory(
    precision: type,
    width: int,
    height: int,
    depth: int,
    boundary_mode: BoundaryMode,
) -> Callable:
    """Build ``write(value, surface, x_bytes, y, z)`` for a volume resource."""
    jit_kwargs = accessor_compile_kwargs(boundary_mode)
    _, store = _volume_element_access(jit_kwargs)
    return _bounded_write(
        store, precision, width, height, depth, boundary_mode, jit_kwargs
    )
