import pytest

from cusurface.memory.tracker import SurfaceMemoryTracker, default_tracker


def test_register_and_unregister(tracker):
    tracker.register(1, 64, (4, 4))
    tracker.register(2, 32, (2, 4))
    assert tracker.live_count == 2
    assert tracker.allocated_bytes == 96
    assert tracker.is_live(1)

    tracker.unregister(1)
    assert not tracker.is_live(1)
    assert tracker.live_count == 1
    assert tracker.allocated_bytes == 32
    assert tracker.total_allocations == 2
    assert tracker.total_releases == 1


def test_duplicate_registration_raises(tracker):
    tracker.register(7, 8, (2,))
    with pytest.raises(ValueError, match="already registered"):
        tracker.register(7, 8, (2,))


def test_unregister_unknown_warns(tracker):
    with pytest.warns(UserWarning, match="not found"):
        tracker.unregister(12345)
    assert tracker.total_releases == 0


def test_trackers_are_independent(tracker):
    other = SurfaceMemoryTracker()
    tracker.register(3, 4, (1,))
    assert other.live_count == 0
    assert other.allocations == {}


def test_default_tracker_is_a_tracker():
    assert isinstance(default_tracker, SurfaceMemoryTracker)
