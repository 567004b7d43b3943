import os

# Default to the CUDA simulator when no device is configured. This must run
# before numba.cuda is first imported.
os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")

import numpy as np
import pytest

from cusurface.arrays import BoundaryMode, Surface2DArray, Surface3D
from cusurface.memory import SurfaceMemoryTracker

np.set_printoptions(linewidth=120, threshold=np.inf, precision=12)


# --------------------------------------------------------------------------- #
#                        Simulator-incompatible tests                         #
# --------------------------------------------------------------------------- #
def pytest_collection_modifyitems(config, items):
    if os.environ.get("NUMBA_ENABLE_CUDASIM", "0") != "1":
        return
    skip_sim = pytest.mark.skip(reason="needs a real CUDA device")
    for item in items:
        if "nocudasim" in item.keywords:
            item.add_marker(skip_sim)


# ========================================
# FIXTURES
# ========================================

# Small extents keep simulated kernels fast.
TEST_BLOCK = (4, 4, 4)


@pytest.fixture(scope="function")
def block_dim():
    return TEST_BLOCK


@pytest.fixture(scope="function", params=[Surface2DArray, Surface3D],
                ids=["layered", "volume"])
def variant(request):
    """Each concrete surface array class."""
    return request.param


@pytest.fixture(scope="function")
def geometry_override(request):
    return request.param if hasattr(request, "param") else {}


@pytest.fixture(scope="function")
def geometry(geometry_override):
    settings = {"width": 5, "height": 3, "depth": 2}
    settings.update(geometry_override)
    return settings


@pytest.fixture(scope="function")
def surface_array(variant, geometry, block_dim):
    """A zero-filled float32 array of each variant."""
    arr = variant(
        geometry["width"],
        geometry["height"],
        geometry["depth"],
        dtype=np.float32,
        block_dim=block_dim,
    )
    yield arr
    if not arr.freed:
        arr.free()


@pytest.fixture(scope="function")
def volume_4x4x4(block_dim):
    """4x4x4 float32 volume with ZERO boundary mode."""
    return Surface3D(
        4, 4, 4,
        dtype=np.float32,
        block_dim=block_dim,
        boundary_mode=BoundaryMode.ZERO,
    )


@pytest.fixture(scope="function")
def tracker():
    """A private tracker so counts are independent of other tests."""
    return SurfaceMemoryTracker()


@pytest.fixture(scope="function")
def host_pattern(geometry):
    """Distinct values in host buffer order, depth slowest."""
    size = geometry["width"] * geometry["height"] * geometry["depth"]
    return np.arange(size, dtype=np.float32).reshape(
        geometry["depth"], geometry["height"], geometry["width"]
    ) + np.float32(1.0)
