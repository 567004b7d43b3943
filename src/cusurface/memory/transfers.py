"""Stream-ordered copies between host buffers and surface resources.

All copies here are synchronous with respect to the calling host thread: each
one is queued on the given stream and the stream is synchronised before the
function returns. No implicit synchronisation with other streams is done.
"""

from typing import Any

from numba import cuda
import numpy as np

from cusurface.cuda_simsafe import ensure_cuda_context, synchronize_stream


def zeros_on_device(shape: tuple, dtype: Any, stream: Any = 0):
    """Allocate a zero-filled device array on ``stream``.

    Parameters
    ----------
    shape
        Shape of the device array.
    dtype
        Element type.
    stream
        Stream that orders the upload, or ``0`` for the default stream.

    Returns
    -------
    DeviceNDArray
        The new device array.
    """
    ensure_cuda_context()
    dev_array = cuda.to_device(np.zeros(shape, dtype=dtype), stream=stream)
    synchronize_stream(stream)
    return dev_array


def to_surface(host_array: np.ndarray, dev_array: Any, stream: Any = 0) -> None:
    """Copy a host array with the device array's shape onto the device.

    Parameters
    ----------
    host_array
        C-contiguous source array, already shaped like ``dev_array``.
    dev_array
        Destination device array.
    stream
        Stream that orders the copy.

    Returns
    -------
    None
    """
    ensure_cuda_context()
    dev_array.copy_to_device(host_array, stream=stream)
    synchronize_stream(stream)


def from_surface(dev_array: Any, host_array: np.ndarray, stream: Any = 0) -> None:
    """Copy a device array into a host array of the same shape.

    Parameters
    ----------
    dev_array
        Source device array.
    host_array
        Writable, C-contiguous destination shaped like ``dev_array``.
    stream
        Stream that orders the copy.

    Returns
    -------
    None
    """
    ensure_cuda_context()
    dev_array.copy_to_host(host_array, stream=stream)
    synchronize_stream(stream)


def surface_to_surface(src: Any, dst: Any, stream: Any = 0) -> None:
    """Copy one device array into another of identical shape and dtype."""
    ensure_cuda_context()
    dst.copy_to_device(src, stream=stream)
    synchronize_stream(stream)
