import pytest
import numpy as np

from cusurface.errors import AllocationError, InvalidGeometryError
from cusurface.memory.surface_requests import (
    MAX_SURFACE_2D_LAYERED,
    MAX_SURFACE_3D,
    SurfaceRequest,
)


class TestSurfaceRequests:
    def test_instantiation(self, surface_request):
        assert surface_request.width == 6
        assert surface_request.height == 4
        assert surface_request.depth == 3
        assert surface_request.dtype == np.float32
        assert surface_request.is_layered is False

    @pytest.mark.parametrize(
        "surface_request_override",
        [{"dtype": "int16"}, {"dtype": np.dtype(np.uint8)}],
        indirect=True,
    )
    def test_dtype_converted_to_scalar_type(self, surface_request):
        assert isinstance(surface_request.dtype, type)
        assert issubclass(surface_request.dtype, np.generic)

    def test_volume_shape(self, surface_request):
        assert surface_request.shape == (3, 4, 6)

    @pytest.mark.parametrize(
        "surface_request_override", [{"is_layered": True}], indirect=True
    )
    def test_layered_shape_stacks_layers_along_rows(self, surface_request):
        assert surface_request.shape == (12, 6)

    @pytest.mark.parametrize(
        "surface_request_override",
        [
            {"dtype": np.float32},
            {"dtype": np.int8},
            {"dtype": np.float16, "is_layered": True},
        ],
        indirect=True,
    )
    def test_size(self, surface_request):
        assert surface_request.size == 6 * 4 * 3
        assert (
            surface_request.nbytes
            == surface_request.size * np.dtype(surface_request.dtype).itemsize
        ), "Incorrect size calculated"

    def test_limits_follow_layout(self):
        volume = SurfaceRequest(1, 1, 1, np.float32, is_layered=False)
        layered = SurfaceRequest(1, 1, 1, np.float32, is_layered=True)
        assert volume.limits == MAX_SURFACE_3D
        assert layered.limits == MAX_SURFACE_2D_LAYERED

    @pytest.mark.parametrize("extent", [0, -2, 1.5, True, "4"])
    def test_invalid_extent(self, extent):
        with pytest.raises(InvalidGeometryError):
            SurfaceRequest(extent, 4, 4, np.float32)

    @pytest.mark.parametrize("dtype", [np.float64, np.int64, np.complex64])
    def test_unsupported_format(self, dtype):
        request = SurfaceRequest(4, 4, 4, dtype)
        with pytest.raises(AllocationError, match="Unsupported"):
            request.check_supported()

    def test_supported_request_passes(self, surface_request):
        surface_request.check_supported()

    @pytest.mark.parametrize(
        "is_layered, extents",
        [
            (True, (32769, 1, 1)),
            (True, (1, 1, 2049)),
            (False, (1, 16385, 1)),
            (False, (1, 1, 16385)),
        ],
    )
    def test_extent_beyond_limit(self, is_layered, extents):
        request = SurfaceRequest(*extents, np.uint8, is_layered=is_layered)
        with pytest.raises(AllocationError, match="exceeds"):
            request.check_supported()

    def test_layered_allows_taller_stacks_than_volume_limit(self):
        request = SurfaceRequest(
            1, 1, 2048, np.uint8, is_layered=True
        )
        request.check_supported()

    def test_frozen(self, surface_request):
        with pytest.raises(AttributeError):
            surface_request.width = 10
