"""
Centralized configuration with environment variable overrides.

Business details, session retention, booking limits, and routing weights
are configurable here. Agents and tools read from ``settings`` instead of
hardcoding values.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from concierge.logging_context import CallIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag such as ``true``/``0``/``yes`` from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BusinessConfig:
    """Business-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "The Golden Fork")
    hours_lunch: str = os.getenv("BUSINESS_HOURS_LUNCH", "11:30 AM to 2:30 PM")
    hours_dinner: str = os.getenv("BUSINESS_HOURS_DINNER", "5 PM to 10 PM")
    closed_days: str = os.getenv("BUSINESS_CLOSED_DAYS", "Mondays")
    lead_followup_window: str = os.getenv("LEAD_FOLLOWUP_WINDOW", "within 24 hours")
    human_callback_window: str = os.getenv("HUMAN_CALLBACK_WINDOW", "within the hour")


@dataclass(frozen=True)
class SessionConfig:
    """Session retention and sweeping."""

    retention_hours: float = _safe_float("SESSION_RETENTION_HOURS", "24")
    sweep_interval_minutes: float = _safe_float("SESSION_SWEEP_INTERVAL_MINUTES", "30")
    idle_minutes: float = _safe_float("SESSION_IDLE_MINUTES", "5")


@dataclass(frozen=True)
class BookingConfig:
    """Reservation limits and mock availability generation."""

    default_dinner_time: str = os.getenv("DEFAULT_DINNER_TIME", "19:00")
    max_party_size: int = _safe_int("MAX_PARTY_SIZE", "20")
    availability_days: int = _safe_int("AVAILABILITY_DAYS", "30")
    availability_seed: int = _safe_int("AVAILABILITY_SEED", "42")
    alternative_slots_offered: int = _safe_int("ALTERNATIVE_SLOTS_OFFERED", "3")


@dataclass(frozen=True)
class RoutingConfig:
    """Intent detection and override thresholds."""

    intent_confidence_weight: float = _safe_float("INTENT_CONFIDENCE_WEIGHT", "2.0")
    high_priority_override: int = _safe_int("HIGH_PRIORITY_OVERRIDE", "8")
    switch_confidence: float = _safe_float("INTENT_SWITCH_CONFIDENCE", "0.6")
    auto_handoff: bool = _safe_bool("INTENT_AUTO_HANDOFF", "false")


@dataclass(frozen=True)
class CRMConfig:
    """CRM capability switches."""

    enabled: bool = _safe_bool("CRM_ENABLED", "true")
    lead_source: str = os.getenv("CRM_LEAD_SOURCE", "Voice Agent")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    crm: CRMConfig = field(default_factory=CRMConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "voice-concierge")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.session.retention_hours <= 0:
        raise ValueError(
            f"SESSION_RETENTION_HOURS must be > 0, got {config.session.retention_hours}"
        )
    if config.session.sweep_interval_minutes <= 0:
        raise ValueError(
            "SESSION_SWEEP_INTERVAL_MINUTES must be > 0, "
            f"got {config.session.sweep_interval_minutes}"
        )
    if config.session.idle_minutes <= 0:
        raise ValueError(
            f"SESSION_IDLE_MINUTES must be > 0, got {config.session.idle_minutes}"
        )
    if not 1 <= config.booking.max_party_size <= 100:
        raise ValueError(
            f"MAX_PARTY_SIZE must be between 1 and 100, got {config.booking.max_party_size}"
        )
    if config.booking.availability_days < 1:
        raise ValueError(
            f"AVAILABILITY_DAYS must be >= 1, got {config.booking.availability_days}"
        )
    if config.booking.alternative_slots_offered < 1:
        raise ValueError(
            "ALTERNATIVE_SLOTS_OFFERED must be >= 1, "
            f"got {config.booking.alternative_slots_offered}"
        )
    hour, _, minute = config.booking.default_dinner_time.partition(":")
    if not (hour.isdigit() and minute.isdigit() and int(hour) < 24 and int(minute) < 60):
        raise ValueError(
            "DEFAULT_DINNER_TIME must be HH:MM, "
            f"got {config.booking.default_dinner_time!r}"
        )
    if config.routing.intent_confidence_weight < 0:
        raise ValueError(
            "INTENT_CONFIDENCE_WEIGHT must be >= 0, "
            f"got {config.routing.intent_confidence_weight}"
        )
    if not 1 <= config.routing.high_priority_override <= 10:
        raise ValueError(
            "HIGH_PRIORITY_OVERRIDE must be between 1 and 10, "
            f"got {config.routing.high_priority_override}"
        )
    if not 0.0 <= config.routing.switch_confidence <= 1.0:
        raise ValueError(
            "INTENT_SWITCH_CONFIDENCE must be between 0 and 1, "
            f"got {config.routing.switch_confidence}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(call_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CallIdFilter) for f in handler.filters):
            handler.addFilter(CallIdFilter())
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
