"""Registry mapping concrete surface variants to their element and layout.

Each variant class registers once, when its module is imported, with
:func:`register_variant`. A concrete variant is the pair (variant class,
element dtype); :func:`variant_traits` resolves it to a frozen
:class:`VariantTraits` that the surface base consults when allocating.
"""

from typing import Any, Dict

import attrs
import numpy as np

from cusurface._utils import is_surface_dtype, precision_converter
from cusurface.errors import AllocationError


@attrs.define(frozen=True)
class VariantTraits:
    """Element type and layout of one concrete variant.

    Attributes
    ----------
    scalar
        Numpy scalar type of each element.
    is_layered
        Whether the resource is a stack of 2D layers.
    """

    scalar: type = attrs.field(converter=precision_converter)
    is_layered: bool = attrs.field(
        validator=attrs.validators.instance_of(bool)
    )

    @property
    def itemsize(self) -> int:
        """Bytes per element, the stride of the byte-offset x axis."""
        return np.dtype(self.scalar).itemsize


_LAYOUTS: Dict[type, bool] = {}


def register_variant(is_layered: bool):
    """Class decorator recording a variant's layout.

    Parameters
    ----------
    is_layered
        ``True`` if the variant addresses a stack of 2D layers.
    """

    def decorator(cls):
        _LAYOUTS[cls] = is_layered
        cls.IS_LAYERED = is_layered
        return cls

    return decorator


def variant_traits(variant: type, dtype: Any) -> VariantTraits:
    """Resolve the traits of ``variant`` instantiated with ``dtype``.

    Raises
    ------
    TypeError
        If ``variant`` was never registered.
    AllocationError
        If surfaces cannot hold ``dtype`` elements.
    """
    layered = None
    for klass in variant.__mro__:
        if klass in _LAYOUTS:
            layered = _LAYOUTS[klass]
            break
    if layered is None:
        raise TypeError(
            f"{variant.__name__} is not a registered surface variant."
        )
    if not is_surface_dtype(dtype):
        raise AllocationError(
            f"Unsupported surface format {dtype!r} for {variant.__name__}."
        )
    return VariantTraits(scalar=dtype, is_layered=layered)


def registered_variants() -> Dict[type, bool]:
    """Copy of the registration table, variant class to layered flag."""
    return dict(_LAYOUTS)
