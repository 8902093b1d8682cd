from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from fleettrack.services.tracking import (
    PERMISSION_DENIED,
    POSITION_UNAVAILABLE,
    TIMEOUT,
    GeolocationError,
    PositionOptions,
    PositionSample,
    TripTracker,
    UpdateThrottle,
    describe_geolocation_error,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeGeolocation:
    def __init__(self) -> None:
        self.watches: Dict[int, Tuple] = {}
        self.cleared: List[int] = []
        self.one_shot: Optional[Tuple] = None
        self._next_id = 1

    def get_current_position(self, on_success, on_error, options: PositionOptions) -> None:
        self.one_shot = (on_success, on_error, options)

    def watch_position(self, on_success, on_error, options: PositionOptions) -> int:
        watch_id = self._next_id
        self._next_id += 1
        self.watches[watch_id] = (on_success, on_error, options)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        self.watches.pop(watch_id, None)
        self.cleared.append(watch_id)

    def emit(self, lat: float, lng: float) -> None:
        for on_success, _, _ in list(self.watches.values()):
            on_success(PositionSample(latitude=lat, longitude=lng))

    def fail(self, code: int) -> None:
        for _, on_error, _ in list(self.watches.values()):
            on_error(GeolocationError(code=code, message="test"))


def _tracker(clock: FakeClock, commits: List[Tuple[str, float, float]]) -> Tuple[TripTracker, FakeGeolocation]:
    geolocation = FakeGeolocation()
    tracker = TripTracker(
        geolocation,
        commit=lambda trip_id, lat, lng: commits.append((trip_id, lat, lng)),
        throttle=UpdateThrottle(min_interval=10.0, clock=clock),
    )
    return tracker, geolocation


def test_throttle_allows_one_commit_per_window() -> None:
    clock = FakeClock()
    throttle = UpdateThrottle(min_interval=10.0, clock=clock)

    assert throttle.should_commit()
    clock.now += 9.9
    assert not throttle.should_commit()
    clock.now += 0.1
    assert throttle.should_commit()


def test_throttle_reset_commits_immediately() -> None:
    clock = FakeClock()
    throttle = UpdateThrottle(min_interval=10.0, clock=clock)
    throttle.should_commit()

    throttle.reset()

    assert throttle.should_commit()


def test_five_fixes_in_window_commit_once_and_sixth_after_window_commits_again() -> None:
    clock = FakeClock()
    commits: List[Tuple[str, float, float]] = []
    tracker, geolocation = _tracker(clock, commits)
    tracker.start("trip-1")

    for step in range(5):
        clock.now = 1000.0 + step * 2
        geolocation.emit(-8.8 - step * 0.001, 13.2)

    assert commits == [("trip-1", -8.8, 13.2)]

    clock.now = 1010.5
    geolocation.emit(-8.9, 13.25)

    assert len(commits) == 2
    assert commits[-1] == ("trip-1", -8.9, 13.25)


def test_starting_a_new_trip_sends_first_fix_immediately() -> None:
    clock = FakeClock()
    commits: List[Tuple[str, float, float]] = []
    tracker, geolocation = _tracker(clock, commits)

    tracker.start("trip-1")
    geolocation.emit(-8.8, 13.2)
    tracker.stop()

    clock.now += 1.0
    tracker.start("trip-2")
    geolocation.emit(-8.81, 13.21)

    assert [trip_id for trip_id, _, _ in commits] == ["trip-1", "trip-2"]


def test_watch_is_released_on_stop_and_context_exit() -> None:
    commits: List[Tuple[str, float, float]] = []
    tracker, geolocation = _tracker(FakeClock(), commits)

    with tracker:
        tracker.start("trip-1")
        assert tracker.tracking
        assert geolocation.watches[tracker.watch_id][2].maximum_age_ms == 5_000

    assert not tracker.tracking
    assert geolocation.watches == {}
    assert geolocation.cleared == [1]


def test_restarting_replaces_existing_watch() -> None:
    tracker, geolocation = _tracker(FakeClock(), [])

    tracker.start("trip-1")
    tracker.start("trip-2")

    assert list(geolocation.watches) == [2]
    assert geolocation.cleared == [1]


def test_commit_failure_does_not_stop_tracking() -> None:
    geolocation = FakeGeolocation()

    def failing_commit(trip_id: str, lat: float, lng: float) -> None:
        raise OSError("offline")

    tracker = TripTracker(geolocation, commit=failing_commit, throttle=UpdateThrottle(10.0, clock=FakeClock()))
    tracker.start("trip-1")

    assert tracker.handle_position(PositionSample(-8.8, 13.2)) is False
    assert tracker.tracking
    assert tracker.commits == 0


def test_fixes_without_trip_are_not_committed() -> None:
    commits: List[Tuple[str, float, float]] = []
    tracker, geolocation = _tracker(FakeClock(), commits)

    tracker.request_position()
    on_success, _, options = geolocation.one_shot
    on_success(PositionSample(-8.8, 13.2))

    assert options.maximum_age_ms == 0
    assert options.timeout_ms == 30_000
    assert commits == []
    assert tracker.start_label == "-8.80000, 13.20000"


def test_first_fix_is_reverse_geocoded() -> None:
    geolocation = FakeGeolocation()
    lookups: List[Tuple[float, float]] = []

    def reverse(lat: float, lng: float) -> str:
        lookups.append((lat, lng))
        return "Ingombota, Luanda"

    tracker = TripTracker(
        geolocation,
        commit=lambda *args: None,
        throttle=UpdateThrottle(10.0, clock=FakeClock()),
        reverse_geocode=reverse,
    )
    tracker.start("trip-1")
    geolocation.emit(-8.81, 13.23)
    geolocation.emit(-8.82, 13.24)

    assert tracker.start_label == "Ingombota, Luanda"
    assert lookups == [(-8.81, 13.23)]


def test_error_messages_point_to_manual_entry() -> None:
    for code in (PERMISSION_DENIED, POSITION_UNAVAILABLE, TIMEOUT, 99):
        message = describe_geolocation_error(GeolocationError(code=code))
        assert "manually" in message

    assert describe_geolocation_error(GeolocationError(PERMISSION_DENIED)) != describe_geolocation_error(
        GeolocationError(TIMEOUT)
    )


def test_errors_after_a_fix_are_not_surfaced() -> None:
    tracker, geolocation = _tracker(FakeClock(), [])
    tracker.start("trip-1")

    geolocation.fail(TIMEOUT)
    assert tracker.error_message is not None

    geolocation.emit(-8.8, 13.2)
    geolocation.fail(POSITION_UNAVAILABLE)
    assert tracker.error_message is None
