import pytest
import numpy as np
from numba import cuda

from cusurface.memory.transfers import (
    from_surface,
    surface_to_surface,
    to_surface,
    zeros_on_device,
)


@pytest.fixture(scope="function", params=[0, "stream"],
                ids=["default_stream", "explicit_stream"])
def stream(request):
    if request.param == "stream":
        return cuda.stream()
    return 0


def test_zeros_on_device(stream):
    dev_array = zeros_on_device((2, 3, 4), np.int32, stream)
    host = dev_array.copy_to_host()
    assert host.shape == (2, 3, 4)
    assert host.dtype == np.int32
    assert np.all(host == 0)


def test_round_trip(stream):
    values = np.arange(24, dtype=np.float32).reshape(2, 3, 4)
    dev_array = zeros_on_device(values.shape, values.dtype, stream)
    to_surface(values, dev_array, stream)

    result = np.zeros_like(values)
    from_surface(dev_array, result, stream)
    np.testing.assert_array_equal(result, values)


def test_surface_to_surface(stream):
    values = np.arange(12, dtype=np.uint16).reshape(3, 4)
    src = cuda.to_device(values)
    dst = zeros_on_device(values.shape, values.dtype, stream)
    surface_to_surface(src, dst, stream)
    np.testing.assert_array_equal(dst.copy_to_host(), values)
    # Source untouched
    np.testing.assert_array_equal(src.copy_to_host(), values)
