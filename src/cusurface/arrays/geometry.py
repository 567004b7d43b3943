"""Geometry, launch tiling and stream shared by every 3D array family."""

from typing import Any, Tuple

from cusurface._utils import ceil_div, check_dim3, check_extent
from cusurface.errors import InvalidGeometryError

# Default threads per block along x, y and z.
BLOCK_DIM = (8, 8, 8)

MAX_THREADS_PER_BLOCK = 1024


class Array3DBase:
    """Extents, default kernel tiling and execution stream of a 3D array.

    Parameters
    ----------
    width, height, depth
        Number of elements along x, y and z.
    block_dim
        Default threads per block for kernels over this array.
    stream
        Stream on which host operations for this array are ordered; ``0``
        selects the default stream.

    Notes
    -----
    The default grid covers the array with ``ceil(extent / block)`` blocks
    per axis. Extents never change once set; only the tiling and stream may.
    """

    def __init__(
        self,
        width: int,
        height: int,
        depth: int,
        block_dim: Tuple[int, int, int] = BLOCK_DIM,
        stream: Any = 0,
    ) -> None:
        self._width = check_extent("width", width)
        self._height = check_extent("height", height)
        self._depth = check_extent("depth", depth)
        self._stream = stream
        self.set_block_dim(block_dim)

    def _assign_geometry(self, other: "Array3DBase") -> None:
        self._width = other._width
        self._height = other._height
        self._depth = other._depth
        self._block_dim = other._block_dim
        self._grid_dim = other._grid_dim
        self._stream = other._stream

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Host-side shape, depth slowest: ``(depth, height, width)``."""
        return (self._depth, self._height, self._width)

    @property
    def size(self) -> int:
        """Number of elements."""
        return self._width * self._height * self._depth

    @property
    def block_dim(self) -> Tuple[int, int, int]:
        return self._block_dim

    @property
    def grid_dim(self) -> Tuple[int, int, int]:
        return self._grid_dim

    @property
    def stream(self) -> Any:
        return self._stream

    def set_block_dim(self, block_dim: Tuple[int, int, int]) -> None:
        """Change the default block size and recompute the grid.

        Raises
        ------
        InvalidGeometryError
            If ``block_dim`` is not three positive ints, or asks for more
            than ``MAX_THREADS_PER_BLOCK`` threads.
        """
        block_dim = check_dim3("block_dim", block_dim)
        threads = block_dim[0] * block_dim[1] * block_dim[2]
        if threads > MAX_THREADS_PER_BLOCK:
            raise InvalidGeometryError(
                f"block_dim {block_dim} has {threads} threads; at most "
                f"{MAX_THREADS_PER_BLOCK} are allowed per block."
            )
        self._block_dim = block_dim
        self._grid_dim = (
            ceil_div(self._width, block_dim[0]),
            ceil_div(self._height, block_dim[1]),
            ceil_div(self._depth, block_dim[2]),
        )

    def set_stream(self, stream: Any) -> None:
        """Order subsequent host operations on ``stream``."""
        self._stream = stream

    def launch(self, kernel, *args) -> None:
        """Launch ``kernel`` over the default grid on this array's stream."""
        kernel[self._grid_dim, self._block_dim, self._stream](*args)
