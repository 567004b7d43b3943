"""Concrete surface array variants.

``Surface2DArray`` stores ``depth`` independent 2D layers of ``width`` by
``height`` elements; ``Surface3D`` stores one volume. Both expose the same
element addressing, ``get(surface, x, y, z)`` and ``set(surface, x, y, z, v)``,
where ``z`` is the layer index for the layered variant. Each variant only
names the read and write factories for its resource layout; the base class
wraps them into accessors that turn the element index ``x`` into a byte
offset.
"""

from cusurface.arrays.surface_base import SurfaceArray3DBase
from cusurface.arrays.surface_ops import (
    surf2d_layered_read_factory,
    surf2d_layered_write_factory,
    surf3d_read_factory,
    surf3d_write_factory,
)
from cusurface.arrays.traits import register_variant


@register_variant(is_layered=True)
class Surface2DArray(SurfaceArray3DBase):
    """Layered 2D surface array; ``depth`` is the number of layers.

    Layers are addressed independently: no filtering or clamping ever mixes
    values across the layer axis.
    """

    read_factory = staticmethod(surf2d_layered_read_factory)
    write_factory = staticmethod(surf2d_layered_write_factory)


@register_variant(is_layered=False)
class Surface3D(SurfaceArray3DBase):
    """Volumetric 3D surface array."""

    read_factory = staticmethod(surf3d_read_factory)
    write_factory = staticmethod(surf3d_write_factory)
