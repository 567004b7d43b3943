"""Simulation-safe CUDA helpers and stand-ins.

This module centralises compatibility utilities for environments running with
``NUMBA_ENABLE_CUDASIM=1``.  It exposes a consistent surface so callers can
import CUDA-facing helpers without branching on simulator state.
"""
from __future__ import annotations

import os
from typing import Any, Callable, Dict, Tuple

from numba import cuda
import numpy as np


CUDA_SIMULATION: bool = os.environ.get("NUMBA_ENABLE_CUDASIM") == "1"


class FakeCudaAPIError(Exception):  # pragma: no cover - placeholder
    """Stand-in for driver API errors, never raised by the simulator."""

    def __init__(self, code: int = 0, msg: str = "") -> None:
        super().__init__(code, msg)
        self.code = code
        self.msg = msg


class FakeMemoryInfo:  # pragma: no cover - placeholder
    """Container for fake memory statistics."""

    free = 1024 ** 3
    total = 8 * 1024 ** 3


if CUDA_SIMULATION:  # pragma: no cover - simulated
    CudaAPIError = FakeCudaAPIError

    # Line info is meaningless for simulated kernels.
    compile_kwargs: Dict[str, Any] = {}
    # The simulator reports kernel exceptions unconditionally.
    trap_compile_kwargs: Dict[str, Any] = {}

    def current_mem_info() -> Tuple[int, int]:
        """Return fake free and total memory values."""

        fakemem = FakeMemoryInfo()
        return fakemem.free, fakemem.total

else:  # pragma: no cover - exercised in GPU environments
    from numba.cuda.cudadrv.driver import (  # type: ignore[attr-defined]
        CudaAPIError,
    )

    compile_kwargs = {"lineinfo": True}
    # Exceptions raised in device code only reach the host from kernels
    # compiled in debug mode.
    trap_compile_kwargs = {"debug": True, "opt": False}

    def current_mem_info() -> Tuple[int, int]:
        """Return free and total memory from the active CUDA context."""

        return cuda.current_context().get_memory_info()


def ensure_cuda_context() -> None:
    """Validate that a CUDA context exists before touching device memory.

    Raises
    ------
    RuntimeError
        If the CUDA context cannot be created or is unusable.
    """
    if CUDA_SIMULATION:
        return
    try:
        ctx = cuda.current_context()
    except Exception as e:
        raise RuntimeError(
            f"Failed to initialize or verify CUDA context: {e}. "
            "This may indicate GPU driver issues, insufficient "
            "permissions, or an unrecoverable device state. Try "
            "restarting the process or checking GPU availability."
        ) from e
    if ctx is None:
        raise RuntimeError("CUDA context is None - GPU may not be accessible")


def synchronize_stream(stream: Any) -> None:
    """Block the host until all work queued on ``stream`` has finished.

    Parameters
    ----------
    stream
        A Numba stream, or ``0`` for the default stream.
    """
    if stream == 0 or stream is None:
        cuda.synchronize()
    else:
        stream.synchronize()


def is_cuda_array(value: Any) -> bool:
    """Check whether ``value`` should be treated as a CUDA array."""

    if CUDA_SIMULATION:
        return hasattr(value, "shape") and not isinstance(value, np.ndarray)
    return cuda.is_cuda_array(value)


def is_devfunc(func: Callable[..., Any]) -> bool:
    """Test whether ``func`` represents a Numba CUDA device function.

    Parameters
    ----------
    func
        Callable object to inspect for CUDA device metadata.

    Returns
    -------
    bool
        ``True`` when ``func`` is tagged as a CUDA device function.
    """

    if CUDA_SIMULATION:  # pragma: no cover - simulated
        return bool(getattr(func, "_device", False))
    target_options = getattr(func, "targetoptions", None)
    if isinstance(target_options, dict):
        return bool(target_options.get("device", False))
    return False


def is_cudasim_enabled() -> bool:
    """Return ``True`` when running under the CUDA simulator."""

    return CUDA_SIMULATION


__all__ = [
    "CUDA_SIMULATION",
    "CudaAPIError",
    "FakeCudaAPIError",
    "FakeMemoryInfo",
    "compile_kwargs",
    "current_mem_info",
    "ensure_cuda_context",
    "is_cuda_array",
    "is_cudasim_enabled",
    "is_devfunc",
    "synchronize_stream",
    "trap_compile_kwargs",
]
