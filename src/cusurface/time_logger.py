"""Time logging for surface allocation, accessor builds and transfers."""

import time
from typing import Optional, Dict, Any
import attrs


_VERBOSITIES = {None, 'default', 'verbose', 'debug'}


@attrs.define(frozen=True)
class TimingEvent:
    """Record of a single timing event.

    Attributes
    ----------
    name : str
        Identifier for the event (e.g., 'surface_allocation')
    event_type : str
        Type of event: 'start', 'stop', or 'progress'
    timestamp : float
        Wall-clock time from time.perf_counter()
    metadata : dict
        Optional metadata (shapes, byte counts, boundary modes, etc.)
    """
    name: str = attrs.field(validator=attrs.validators.instance_of(str))
    event_type: str = attrs.field(
        validator=attrs.validators.in_({'start', 'stop', 'progress'})
    )
    timestamp: float = attrs.field(
        validator=attrs.validators.instance_of(float)
    )
    metadata: dict = attrs.field(factory=dict)


class TimeLogger:
    """Callback-based timing system for cusurface operations.

    Parameters
    ----------
    verbosity : str or None, default='default'
        Output verbosity level. Options:
        - None: record nothing
        - 'default': Aggregate times only, via print_summary
        - 'verbose': Print each duration as it completes
        - 'debug': All events with start/stop/progress

    Attributes
    ----------
    verbosity : str or None
        Current verbosity level
    events : list[TimingEvent]
        Chronological list of all recorded events
    registry : dict[str, dict]
        Registered event names mapped to their category and description
    """

    def __init__(self, verbosity: Optional[str] = 'default') -> None:
        self.verbosity = self._check_verbosity(verbosity)
        self.events: list[TimingEvent] = []
        self.registry: Dict[str, Dict[str, str]] = {}
        self._active_starts: dict[str, float] = {}

    @staticmethod
    def _check_verbosity(verbosity: Optional[str]) -> Optional[str]:
        if verbosity == 'None':
            verbosity = None
        if verbosity not in _VERBOSITIES:
            raise ValueError(
                f"verbosity must be None, 'default', 'verbose', or 'debug', "
                f"got '{verbosity}'"
            )
        return verbosity

    def set_verbosity(self, verbosity: Optional[str]) -> None:
        """Change the verbosity level for subsequent events."""
        self.verbosity = self._check_verbosity(verbosity)

    def register_event(
        self, event_name: str, category: str, description: str
    ) -> None:
        """Declare an event name with a category used for aggregation."""
        self.registry[event_name] = {
            'category': category,
            'description': description,
        }

    def _record(
        self, event_name: str, event_type: str, metadata: Dict[str, Any]
    ) -> Optional[float]:
        if not event_name:
            raise ValueError("event_name cannot be empty")
        if self.verbosity is None:
            return None
        registered = self.registry.get(event_name)
        if registered is not None:
            metadata.setdefault('category', registered['category'])
        timestamp = time.perf_counter()
        self.events.append(
            TimingEvent(
                name=event_name,
                event_type=event_type,
                timestamp=timestamp,
                metadata=metadata,
            )
        )
        return timestamp

    def start_event(self, event_name: str, **metadata: Any) -> None:
        """Record the start of a timed operation.

        Parameters
        ----------
        event_name : str
            Unique identifier for this event
        **metadata : Any
            Optional metadata to store with event
        """
        timestamp = self._record(event_name, 'start', dict(metadata))
        if timestamp is None:
            return
        self._active_starts[event_name] = timestamp

        if self.verbosity == 'debug':
            print(f"[DEBUG] Started: {event_name}")

    def stop_event(self, event_name: str, **metadata: Any) -> None:
        """Record the end of a timed operation.

        Parameters
        ----------
        event_name : str
            Identifier matching a previous start_event call
        **metadata : Any
            Optional metadata to store with event

        Notes
        -----
        A stop without a matching start is still stored, for diagnostics.
        """
        timestamp = self._record(event_name, 'stop', dict(metadata))
        if timestamp is None:
            return

        if event_name in self._active_starts:
            duration = timestamp - self._active_starts.pop(event_name)
            if self.verbosity == 'debug':
                print(f"[DEBUG] Stopped: {event_name} ({duration:.3f}s)")
            elif self.verbosity == 'verbose':
                print(f"{event_name}: {duration:.3f}s")
        elif self.verbosity == 'debug':
            print(f"[DEBUG] Warning: stop_event('{event_name}') "
                  "without matching start")

    def progress(
        self, event_name: str, message: str, **metadata: Any
    ) -> None:
        """Record a progress update within an operation.

        Only printed in debug mode.
        """
        metadata_with_msg = dict(metadata)
        metadata_with_msg['message'] = message
        timestamp = self._record(event_name, 'progress', metadata_with_msg)
        if timestamp is not None and self.verbosity == 'debug':
            print(f"[DEBUG] Progress: {event_name} - {message}")

    def get_event_duration(self, event_name: str) -> Optional[float]:
        """Duration of the most recent completed event with this name.

        Returns
        -------
        float or None
            Duration in seconds, or None if no matching start/stop pair
        """
        start_time = None
        stop_time = None

        for event in reversed(self.events):
            if event.name == event_name:
                if event.event_type == 'stop' and stop_time is None:
                    stop_time = event.timestamp
                elif event.event_type == 'start' and stop_time is not None:
                    start_time = event.timestamp
                    break

        if start_time is not None and stop_time is not None:
            return stop_time - start_time
        return None

    def get_aggregate_durations(
        self, category: Optional[str] = None
    ) -> dict[str, float]:
        """Sum durations per event name, optionally filtered by category."""
        durations: dict[str, float] = {}
        event_starts: dict[str, float] = {}

        for event in self.events:
            if category is not None:
                if event.metadata.get('category') != category:
                    continue

            if event.event_type == 'start':
                event_starts[event.name] = event.timestamp
            elif event.event_type == 'stop':
                if event.name in event_starts:
                    duration = event.timestamp - event_starts.pop(event.name)
                    durations[event.name] = (
                        durations.get(event.name, 0.0) + duration
                    )

        return durations

    def clear(self) -> None:
        """Forget all recorded events."""
        self.events.clear()
        self._active_starts.clear()

    def print_summary(self) -> None:
        """Print aggregate durations when in 'default' mode.

        verbose and debug modes already print inline.
        """
        if self.verbosity == 'default':
            durations = self.get_aggregate_durations()
            if durations:
                print("\nTiming Summary:")
                for name, duration in sorted(durations.items()):
                    print(f"  {name}: {duration:.3f}s")


# Silent until a caller opts in with set_verbosity.
default_timelogger = TimeLogger(verbosity=None)

default_timelogger.register_event(
    "surface_allocation", "memory", "Allocate and zero a surface resource"
)
default_timelogger.register_event(
    "accessor_build", "compile", "Build get/set device functions"
)
default_timelogger.register_event(
    "host_to_surface", "transfer", "Copy a host buffer into a surface"
)
default_timelogger.register_event(
    "surface_to_host", "transfer", "Copy a surface into a host buffer"
)
