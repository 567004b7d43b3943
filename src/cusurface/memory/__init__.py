"""Surface resource ownership, allocation bookkeeping and transfers."""

from cusurface.memory.surface_requests import (
    MAX_SURFACE_2D_LAYERED,
    MAX_SURFACE_3D,
    SurfaceRequest,
)
from cusurface.memory.tracker import SurfaceMemoryTracker, default_tracker
from cusurface.memory.surface_handle import SharedSurfaceObject

__all__ = [
    "MAX_SURFACE_2D_LAYERED",
    "MAX_SURFACE_3D",
    "SharedSurfaceObject",
    "SurfaceMemoryTracker",
    "SurfaceRequest",
    "default_tracker",
]
