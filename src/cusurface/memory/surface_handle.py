"""
Reference-counted ownership of a single surface resource.

A surface resource is a linear Numba device array holding the elements. No
CUDA array or surface object is created; kernels receive the device array and
the compiled accessors index it as a surface would be addressed.

Array instances never own a resource directly; they hold a
:class:`SharedSurfaceObject`, and shallow copies of an array share the same
handle. The count is raised by :meth:`SharedSurfaceObject.clone` and
lowered by :meth:`SharedSurfaceObject.release`; the resource is freed exactly
once, when the count reaches zero.

Allocation and release are the only operations that touch the device memory
pool. Everything else reads or writes an already bound resource.
"""

from __future__ import annotations

import threading
from typing import Any, Tuple

import numpy as np

from cusurface.cuda_simsafe import CudaAPIError, current_mem_info
from cusurface.errors import AllocationError
from cusurface.memory.surface_requests import SurfaceRequest
from cusurface.memory.tracker import SurfaceMemoryTracker, default_tracker
from cusurface.memory.transfers import zeros_on_device
from cusurface.time_logger import default_timelogger


class SharedSurfaceObject:
    """
    Shared handle to one surface resource.

    Use :meth:`acquire` to allocate; the constructor wraps an existing device
    array and starts the count at one.

    Parameters
    ----------
    request
        Description of the resource geometry, dtype and layout.
    dev_array
        Device array backing the resource, shaped ``request.shape``.
    tracker
        Registry notified of allocation and release.

    Notes
    -----
    Count updates are guarded by a lock so handles may be cloned and
    released from several host threads. Kernels never clone or release:
    they receive the bound device array for the duration of a launch.
    """

    def __init__(
        self,
        request: SurfaceRequest,
        dev_array: Any,
        tracker: SurfaceMemoryTracker = default_tracker,
    ) -> None:
        self.request = request
        self._dev_array = dev_array
        self._tracker = tracker
        self._refcnt = 1
        self._lock = threading.Lock()
        tracker.register(id(self), request.nbytes, request.shape)

    @classmethod
    def acquire(
        cls,
        width: int,
        height: int,
        depth: int,
        dtype: Any,
        is_layered: bool,
        stream: Any = 0,
        tracker: SurfaceMemoryTracker = default_tracker,
    ) -> "SharedSurfaceObject":
        """Allocate a zero-filled surface resource.

        Parameters
        ----------
        width, height, depth
            Logical extents of the resource.
        dtype
            Element type.
        is_layered
            Allocate a stack of 2D layers instead of a 3D volume.
        stream
            Stream ordering the initial zero fill.
        tracker
            Registry notified of allocation and release.

        Returns
        -------
        SharedSurfaceObject
            A handle with a reference count of one.

        Raises
        ------
        AllocationError
            If the format or extents are unsupported, or memory is exhausted.
        """
        request = SurfaceRequest(
            width=width,
            height=height,
            depth=depth,
            dtype=dtype,
            is_layered=is_layered,
        )
        request.check_supported()

        free, _ = current_mem_info()
        if request.nbytes > free:
            raise AllocationError(
                f"Surface of {request.nbytes} bytes requested but only "
                f"{free} bytes of device memory are free."
            )

        default_timelogger.start_event(
            "surface_allocation", shape=request.shape, nbytes=request.nbytes
        )
        try:
            dev_array = zeros_on_device(request.shape, request.dtype, stream)
        except (CudaAPIError, MemoryError) as e:
            raise AllocationError(
                f"Failed to allocate a {request.nbytes}-byte surface: {e}"
            ) from e
        finally:
            default_timelogger.stop_event("surface_allocation")

        return cls(request, dev_array, tracker=tracker)

    def clone(self) -> "SharedSurfaceObject":
        """Add a reference to this resource and return the shared handle.

        Raises
        ------
        RuntimeError
            If the resource has already been released.
        """
        with self._lock:
            if self._refcnt == 0:
                raise RuntimeError(
                    "Cannot share a surface resource that was released."
                )
            self._refcnt += 1
        return self

    def release(self) -> None:
        """Drop one reference, freeing the resource when none remain.

        Raises
        ------
        RuntimeError
            If called more times than the handle was acquired and cloned.
        """
        with self._lock:
            if self._refcnt == 0:
                raise RuntimeError(
                    "Surface resource released more times than it was "
                    "acquired."
                )
            self._refcnt -= 1
            if self._refcnt > 0:
                return
            # Dropping the last reference returns the allocation to the
            # context's memory pool.
            self._dev_array = None
        self._tracker.unregister(id(self))

    def get_cuda_api_object(self) -> Any:
        """Return the linear device array that kernel accessors index."""
        if self._dev_array is None:
            raise RuntimeError("Surface resource has been released.")
        return self._dev_array

    @property
    def dev_array(self) -> Any:
        """Device array backing the resource."""
        return self.get_cuda_api_object()

    @property
    def refcount(self) -> int:
        """Number of live references to the resource."""
        with self._lock:
            return self._refcnt

    @property
    def released(self) -> bool:
        """Whether the resource has been freed."""
        return self._dev_array is None

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.request.shape

    @property
    def dtype(self) -> type:
        return self.request.dtype

    @property
    def nbytes(self) -> int:
        return self.request.nbytes

    @property
    def is_layered(self) -> bool:
        return self.request.is_layered

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return (
            f"SharedSurfaceObject(shape={self.shape}, "
            f"dtype={np.dtype(self.dtype).name}, "
            f"is_layered={self.is_layered}, refcount={self.refcount}, "
            f"{state})"
        )
