import pytest
import numpy as np

from cusurface.arrays import Surface2DArray, Surface3D
from cusurface.arrays.traits import (
    VariantTraits,
    register_variant,
    registered_variants,
    variant_traits,
)
from cusurface.errors import AllocationError


def test_builtin_variants_registered():
    table = registered_variants()
    assert table[Surface2DArray] is True
    assert table[Surface3D] is False
    assert Surface2DArray.IS_LAYERED is True
    assert Surface3D.IS_LAYERED is False


@pytest.mark.parametrize(
    "dtype, itemsize",
    [(np.int8, 1), (np.uint16, 2), (np.float16, 2), (np.int32, 4),
     (np.float32, 4)],
)
def test_variant_traits(variant, dtype, itemsize):
    traits = variant_traits(variant, dtype)
    assert traits.scalar is dtype
    assert traits.is_layered is variant.IS_LAYERED
    assert traits.itemsize == itemsize


def test_traits_accept_dtype_names():
    traits = variant_traits(Surface3D, "uint8")
    assert traits.scalar is np.uint8


def test_unsupported_format(variant):
    with pytest.raises(AllocationError, match="Unsupported surface format"):
        variant_traits(variant, np.float64)


def test_unregistered_class():
    class NotASurface:
        pass

    with pytest.raises(TypeError, match="not a registered"):
        variant_traits(NotASurface, np.float32)


def test_subclass_inherits_registration():
    class TaggedVolume(Surface3D):
        pass

    traits = variant_traits(TaggedVolume, np.float32)
    assert traits.is_layered is False


def test_register_variant_decorator():
    @register_variant(is_layered=True)
    class CustomLayout:
        pass

    try:
        assert CustomLayout.IS_LAYERED is True
        assert variant_traits(CustomLayout, np.int16).is_layered is True
    finally:
        from cusurface.arrays import traits

        traits._LAYOUTS.pop(CustomLayout)


def test_traits_are_frozen():
    traits = VariantTraits(scalar=np.float32, is_layered=False)
    with pytest.raises(AttributeError):
        traits.is_layered = True
