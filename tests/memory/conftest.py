import pytest
import numpy as np

from cusurface.memory.surface_requests import SurfaceRequest


@pytest.fixture(scope="function")
def surface_request_override(request):
    return request.param if hasattr(request, "param") else {}


@pytest.fixture(scope="function")
def surface_request_settings(surface_request_override):
    """Fixture to provide settings for SurfaceRequest."""
    defaults = {
        "width": 6,
        "height": 4,
        "depth": 3,
        "dtype": np.float32,
        "is_layered": False,
    }
    if surface_request_override:
        for key, value in surface_request_override.items():
            if key in defaults:
                defaults[key] = value
    return defaults


@pytest.fixture(scope="function")
def surface_request(surface_request_settings):
    return SurfaceRequest(**surface_request_settings)
