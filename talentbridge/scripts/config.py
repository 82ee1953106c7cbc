"""Environment-driven configuration.

Values are read at call time (not import time) so tests and operators can
change the environment without reloading modules. A local .env is loaded once
on import if present.
"""
import math
import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

DEFAULT_NATIVE_SECRET = "development-secret-key-replace-in-production"
DEFAULT_MAX_DISTANCE_KM = 50.0


def _finite(raw, default: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _float_env(name: str, default: float) -> float:
    return _finite(os.getenv(name, str(default)), default)


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class MongoSettings(BaseModel):
    uri: str = "mongodb://localhost:27017"
    db_name: str = "talentbridge"
    timeout_ms: int = 800


class AuthSettings(BaseModel):
    native_secret: str = DEFAULT_NATIVE_SECRET
    legacy_secret: str = DEFAULT_NATIVE_SECRET
    token_ttl: int = 7 * 24 * 60 * 60


class MatchSettings(BaseModel):
    """Matching policy handed to the matcher explicitly (never looked up globally)."""

    default_radius_km: float = Field(default=DEFAULT_MAX_DISTANCE_KM, ge=0, allow_inf_nan=False)
    # Off: the radius only annotates results. On: known distances beyond it exclude.
    strict_radius: bool = False


def mongo_settings() -> MongoSettings:
    return MongoSettings(
        uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
        db_name=os.getenv("DB_NAME", "talentbridge"),
        timeout_ms=_int_env("MONGO_TIMEOUT_MS", 800),
    )


def auth_settings() -> AuthSettings:
    native = os.getenv("NATIVE_JWT_SECRET") or DEFAULT_NATIVE_SECRET
    # Legacy CMS deployments sometimes shared the new secret during cut-over.
    legacy = os.getenv("LEGACY_JWT_SECRET") or os.getenv("JWT_AUTH_SECRET_KEY") or native
    return AuthSettings(
        native_secret=native,
        legacy_secret=legacy,
        token_ttl=_int_env("JWT_TTL", 7 * 24 * 60 * 60),
    )


def match_settings(overrides: dict | None = None) -> MatchSettings:
    """Env defaults, optionally overridden by operator-stored settings.

    ``overrides`` is the key/value map read from the ``settings`` collection
    (``maximum_distance``, ``strict_radius``); unparseable or non-finite values are ignored.
    """
    radius = _float_env("MAX_DISTANCE_KM", DEFAULT_MAX_DISTANCE_KM)
    strict = _bool_env("STRICT_RADIUS", False)
    overrides = overrides or {}
    if overrides.get("maximum_distance") not in (None, ""):
        radius = _finite(overrides["maximum_distance"], radius)
    if "strict_radius" in overrides:
        raw = overrides["strict_radius"]
        strict = raw if isinstance(raw, bool) else str(raw).strip().lower() in {"1", "true", "yes", "on"}
    return MatchSettings(default_radius_km=max(radius, 0.0), strict_radius=strict)
