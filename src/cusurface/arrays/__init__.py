"""Surface-memory 3D arrays and their device-side accessors."""

from cusurface.arrays.boundary import BoundaryMode, boundary_mode_converter
from cusurface.arrays.geometry import (
    BLOCK_DIM,
    MAX_THREADS_PER_BLOCK,
    Array3DBase,
)
from cusurface.arrays.traits import (
    VariantTraits,
    register_variant,
    registered_variants,
    variant_traits,
)
from cusurface.arrays.surface_base import (
    SurfaceAccessConfig,
    SurfaceAccessorCache,
    SurfaceArray3DBase,
)
from cusurface.arrays.surface_arrays import Surface2DArray, Surface3D

__all__ = [
    "BLOCK_DIM",
    "MAX_THREADS_PER_BLOCK",
    "Array3DBase",
    "BoundaryMode",
    "Surface2DArray",
    "Surface3D",
    "SurfaceAccessConfig",
    "SurfaceAccessorCache",
    "SurfaceArray3DBase",
    "VariantTraits",
    "boundary_mode_converter",
    "register_variant",
    "registered_variants",
    "variant_traits",
]
