"""Driver-side GPS tracking with throttled location commits."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from fleettrack import settings

logger = logging.getLogger(__name__)

PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

_ERROR_MESSAGES: Dict[int, str] = {
    PERMISSION_DENIED: "GPS access is blocked. Enter your location manually.",
    POSITION_UNAVAILABLE: "GPS position is unavailable. Enter your location manually.",
    TIMEOUT: "GPS took too long to respond. Enter your location manually.",
}
_UNKNOWN_ERROR_MESSAGE = "GPS error. Enter your location manually."


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout_ms: int = 60_000
    maximum_age_ms: int = 5_000


# One-shot fix used to prompt for permission; always fresh.
ONE_SHOT_OPTIONS = PositionOptions(enable_high_accuracy=True, timeout_ms=30_000, maximum_age_ms=0)
WATCH_OPTIONS = PositionOptions(enable_high_accuracy=True, timeout_ms=60_000, maximum_age_ms=5_000)


@dataclass(frozen=True)
class PositionSample:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class GeolocationError:
    code: int
    message: str = ""


def describe_geolocation_error(error: GeolocationError) -> str:
    return _ERROR_MESSAGES.get(error.code, _UNKNOWN_ERROR_MESSAGE)


PositionCallback = Callable[[PositionSample], None]
ErrorCallback = Callable[[GeolocationError], None]
CommitLocation = Callable[[str, float, float], object]


class GeolocationSource(Protocol):
    def get_current_position(
        self,
        on_success: PositionCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        ...

    def watch_position(
        self,
        on_success: PositionCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> int:
        ...

    def clear_watch(self, watch_id: int) -> None:
        ...


class UpdateThrottle:
    """Allows at most one commit per ``min_interval`` seconds."""

    def __init__(self, min_interval: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval if min_interval is not None else settings.gps_update_interval()
        self._clock = clock
        self._last_commit: Optional[float] = None

    def should_commit(self) -> bool:
        now = self._clock()
        if self._last_commit is not None and now - self._last_commit < self.min_interval:
            return False
        self._last_commit = now
        return True

    def reset(self) -> None:
        self._last_commit = None


class TripTracker:
    """
    Streams GPS fixes of an active trip to the server.

    The watch subscription is acquired by ``start`` and released by ``stop``;
    using the tracker as a context manager guarantees the release even when
    the trip ends with an error.
    """

    def __init__(
        self,
        geolocation: GeolocationSource,
        commit: CommitLocation,
        throttle: Optional[UpdateThrottle] = None,
        reverse_geocode: Optional[Callable[[float, float], Optional[str]]] = None,
    ):
        self.geolocation = geolocation
        self.commit = commit
        self.throttle = throttle if throttle is not None else UpdateThrottle()
        self.reverse_geocode = reverse_geocode

        self.trip_id: Optional[str] = None
        self.watch_id: Optional[int] = None
        self.last_position: Optional[PositionSample] = None
        self.start_label: Optional[str] = None
        self.error_message: Optional[str] = None
        self.commits = 0

    @property
    def tracking(self) -> bool:
        return self.watch_id is not None

    def __enter__(self) -> "TripTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def request_position(self) -> None:
        """One-shot fix; prompts for permission on devices that need it."""
        self.error_message = None
        self.geolocation.get_current_position(self._on_first_fix, self.handle_error, ONE_SHOT_OPTIONS)

    def start(self, trip_id: str) -> None:
        if self.watch_id is not None:
            self.geolocation.clear_watch(self.watch_id)
            self.watch_id = None

        self.trip_id = trip_id
        self.start_label = None
        self.throttle.reset()
        self.watch_id = self.geolocation.watch_position(self.handle_position, self.handle_error, WATCH_OPTIONS)
        logger.info("GPS tracking started for trip %s (watch %s)", trip_id, self.watch_id)

    def stop(self) -> None:
        if self.watch_id is not None:
            self.geolocation.clear_watch(self.watch_id)
            logger.info("GPS tracking stopped for trip %s", self.trip_id)
        self.watch_id = None
        self.trip_id = None

    def handle_position(self, sample: PositionSample) -> bool:
        """Record a fix and commit it when the throttle allows. Returns True on commit."""
        self.last_position = sample
        self.error_message = None
        self._label_start(sample)

        if self.trip_id is None or not self.throttle.should_commit():
            return False

        try:
            self.commit(self.trip_id, sample.latitude, sample.longitude)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to send location for trip %s: %s", self.trip_id, exc)
            return False

        self.commits += 1
        return True

    def handle_error(self, error: GeolocationError) -> None:
        logger.warning("GPS error %s: %s", error.code, error.message)
        # Keep tracking quietly once a fix has been received.
        if self.last_position is None:
            self.error_message = describe_geolocation_error(error)

    def _on_first_fix(self, sample: PositionSample) -> None:
        self.last_position = sample
        self._label_start(sample)

    def _label_start(self, sample: PositionSample) -> None:
        if self.start_label is not None:
            return

        self.start_label = f"{sample.latitude:.5f}, {sample.longitude:.5f}"
        if self.reverse_geocode is None:
            return

        label = self.reverse_geocode(sample.latitude, sample.longitude)
        if label:
            self.start_label = label
