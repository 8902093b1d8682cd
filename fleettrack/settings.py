"""Environment-driven settings for the tracking backend."""

import os

COUNTRY_DEFAULT = "Angola"


def get_float_env(name: str, default: float) -> float:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def get_int_env(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def geocoder_url() -> str:
    return os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org").rstrip("/")


def geocoder_country() -> str:
    return os.getenv("GEOCODER_COUNTRY", COUNTRY_DEFAULT)


def user_agent() -> str:
    # Nominatim rejects requests without an identifying agent.
    return os.getenv("GEOCODER_USER_AGENT", "fleettrack/0.1")


def router_url() -> str:
    return os.getenv("ROUTER_URL", "https://router.project-osrm.org").rstrip("/")


def routing_timeout() -> float:
    return get_float_env("ROUTING_TIMEOUT_SECONDS", 10.0)


def geocoding_timeout() -> float:
    return get_float_env("GEOCODING_TIMEOUT_SECONDS", 5.0)


def gps_update_interval() -> float:
    return get_float_env("GPS_UPDATE_INTERVAL_SECONDS", 10.0)


def map_poll_interval() -> float:
    return get_float_env("MAP_POLL_INTERVAL_SECONDS", 4.0)


def database_url() -> str:
    url = os.getenv("DATABASE_URL", "sqlite:///./fleettrack.db")
    # Hosted Postgres often provides postgres://, SQLAlchemy expects postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def database_echo() -> bool:
    return os.getenv("DATABASE_ECHO", "").strip().lower() in ("1", "true", "yes")
