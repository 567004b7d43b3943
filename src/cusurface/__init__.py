"""
cusurface: typed 3D arrays with CUDA surface-style access

The element storage is emulated on linear Numba device arrays; accessors
follow the addressing and boundary rules of CUDA surface load and store.
"""

from importlib.metadata import PackageNotFoundError, version

# Suppress Numba performance warnings for library users. They are emitted
# when small surfaces are launched over grids too small to fill the device,
# which is expected for tests and small volumes.
import warnings
from numba.core.errors import NumbaPerformanceWarning
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

from cusurface.arrays import *          # noqa
from cusurface.memory import *          # noqa
from cusurface.errors import (          # noqa
    AllocationError,
    InvalidGeometryError,
    OutOfRangeAccess,
    SizeMismatchError,
)
from cusurface.time_logger import TimeLogger, default_timelogger  # noqa

__all__ = [
    "AllocationError",
    "BoundaryMode",
    "InvalidGeometryError",
    "OutOfRangeAccess",
    "SharedSurfaceObject",
    "SizeMismatchError",
    "Surface2DArray",
    "Surface3D",
    "SurfaceArray3DBase",
    "TimeLogger",
    "default_timelogger",
    "default_tracker",
]

try:
    __version__ = version("cusurface")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "unknown"
