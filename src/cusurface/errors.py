"""Exceptions raised by cusurface arrays and surface resources.

Host-side failures (allocation, geometry, transfer sizes) propagate
synchronously to the caller. :class:`OutOfRangeAccess` is raised from inside
kernels when an accessor compiled with the ``TRAP`` boundary mode receives a
coordinate outside the array extents.
"""


class AllocationError(MemoryError):
    """Raised when a surface resource cannot be allocated.

    Covers device memory exhaustion, failure to stage the zero-filled
    initial contents on the host, element formats that surfaces cannot hold,
    and extents beyond the platform's surface limits.
    """


class InvalidGeometryError(ValueError):
    """Raised for non-positive or non-integer array or block dimensions."""


class SizeMismatchError(ValueError):
    """Raised when a buffer or source array does not fit an array's geometry.

    Attributes
    ----------
    expected
        Number of elements required by the array geometry.
    received
        Number of elements in the supplied buffer.
    """

    def __init__(
        self, expected: int, received: int, message: str = None
    ) -> None:
        if message is None:
            message = (
                f"Host buffer holds {received} elements but the surface "
                f"array requires exactly {expected}."
            )
        super().__init__(message)
        self.expected = expected
        self.received = received


class OutOfRangeAccess(IndexError):
    """Kernel-side fault for out-of-range access under ``TRAP`` mode."""
