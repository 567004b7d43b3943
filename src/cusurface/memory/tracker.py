"""Process-wide bookkeeping of live surface resources.

Every :class:`~cusurface.memory.surface_handle.SharedSurfaceObject` registers
itself here when its resource is allocated and unregisters when the last
reference releases it. The tracker never owns device memory; it only counts,
so tests and callers can observe that each resource is released exactly once.
"""

import threading
from typing import Dict, Tuple
from warnings import warn

from attrs import define, field, Factory as attrsFactory
from attrs.validators import instance_of as attrsval_instance_of


@define(eq=False)
class SurfaceMemoryTracker:
    """Registry of live surface allocations.

    Attributes
    ----------
    allocations : dict
        Byte size and shape of each live resource, keyed by handle id.
    total_allocations : int
        Number of resources ever registered.
    total_releases : int
        Number of resources ever unregistered.
    """

    allocations: Dict[int, Tuple[int, Tuple[int, ...]]] = field(
        default=attrsFactory(dict), validator=attrsval_instance_of(dict)
    )
    total_allocations: int = field(default=0)
    total_releases: int = field(default=0)
    _lock: threading.Lock = field(
        factory=threading.Lock, repr=False, init=False
    )

    def register(
        self, handle_id: int, nbytes: int, shape: Tuple[int, ...]
    ) -> None:
        """Record a newly allocated resource.

        Raises
        ------
        ValueError
            If ``handle_id`` is already registered.
        """
        with self._lock:
            if handle_id in self.allocations:
                raise ValueError(
                    f"Surface resource {handle_id} is already registered."
                )
            self.allocations[handle_id] = (nbytes, shape)
            self.total_allocations += 1

    def unregister(self, handle_id: int) -> None:
        """Record the release of a resource.

        Emits a warning if the resource was never registered.
        """
        with self._lock:
            if handle_id not in self.allocations:
                warn(
                    f"Attempted to release surface resource {handle_id}, "
                    "but it was not found in the live allocations."
                )
                return
            del self.allocations[handle_id]
            self.total_releases += 1

    def is_live(self, handle_id: int) -> bool:
        """Whether the resource ``handle_id`` is still allocated."""
        with self._lock:
            return handle_id in self.allocations

    @property
    def live_count(self) -> int:
        """Number of resources currently allocated."""
        with self._lock:
            return len(self.allocations)

    @property
    def allocated_bytes(self) -> int:
        """Total bytes across live resources."""
        with self._lock:
            return sum(nbytes for nbytes, _ in self.allocations.values())


default_tracker = SurfaceMemoryTracker()
