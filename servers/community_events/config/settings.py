"""
Pipeline configuration.

Config is a plain nested dict:
- geo: primary/secondary radius in miles
- dedup: fuzzy thresholds
- matching: relevance weights, threshold, per-community cap
- scheduler: interval, warm-up delay
- adapters: timeout, inter-request delay, keyword/keyword-set caps
"""

import copy
import os
from typing import Any, Optional

import structlog

from ..errors import ConfigError

log = structlog.get_logger(__name__)

# Environment overrides: variable -> (section, key, type)
ENV_OVERRIDES = {
    "AGGREGATOR_PRIMARY_RADIUS": ("geo", "primary_radius_miles", float),
    "AGGREGATOR_SECONDARY_RADIUS": ("geo", "secondary_radius_miles", float),
    "AGGREGATOR_INTERVAL_HOURS": ("scheduler", "interval_hours", float),
    "AGGREGATOR_WARMUP_SECONDS": ("scheduler", "warmup_seconds", float),
    "AGGREGATOR_ADAPTER_TIMEOUT": ("adapters", "timeout_seconds", float),
    "AGGREGATOR_REQUEST_DELAY": ("adapters", "request_delay_seconds", float),
}


def get_default_config() -> dict[str, Any]:
    """Return default config for a new deployment."""
    return {
        "geo": {
            "primary_radius_miles": 50.0,
            "secondary_radius_miles": 100.0,
        },
        "dedup": {
            "title_threshold": 0.8,
            "location_threshold": 0.6,
        },
        "matching": {
            "threshold": 0.7,
            "weights": {
                "category": 0.4,
                "keyword": 0.3,
                "name": 0.2,
                "source": 0.1,
            },
            "max_events_per_community": 15,
        },
        "scheduler": {
            "interval_hours": 6.0,
            "warmup_seconds": 30.0,
        },
        "adapters": {
            "timeout_seconds": 90.0,
            "request_delay_seconds": 2.0,
            "max_keywords": 10,
            "failure_threshold": 3,
            "recovery_timeout_seconds": 6 * 3600,
        },
    }


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env(config: dict[str, Any]) -> dict[str, Any]:
    for var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            config[section][key] = cast(raw)
        except ValueError:
            raise ConfigError([f"{var} must be a number, got {raw!r}"])
        log.info("config_env_override", variable=var, value=config[section][key])
    return config


def validate_config(config: dict[str, Any]) -> list[str]:
    """
    Validate config and return list of errors.

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []

    geo = config.get("geo", {})
    primary = geo.get("primary_radius_miles", 0)
    secondary = geo.get("secondary_radius_miles", 0)
    if primary <= 0:
        errors.append(f"Invalid primary radius: {primary} (must be > 0)")
    if secondary < primary:
        errors.append(
            f"Secondary radius {secondary} must not be smaller than primary radius {primary}"
        )

    dedup = config.get("dedup", {})
    for key in ("title_threshold", "location_threshold"):
        value = dedup.get(key, 0)
        if not 0 < value <= 1:
            errors.append(f"Invalid dedup {key}: {value} (must be 0-1)")

    matching = config.get("matching", {})
    threshold = matching.get("threshold", 0)
    if not 0 < threshold <= 1:
        errors.append(f"Invalid matching threshold: {threshold} (must be 0-1)")

    weights = matching.get("weights", {})
    missing = {"category", "keyword", "name", "source"} - set(weights)
    if missing:
        errors.append(f"Missing relevance weights: {', '.join(sorted(missing))}")
    elif abs(sum(weights.values()) - 1.0) > 0.01:
        errors.append(f"Relevance weights must sum to 1.0, got {sum(weights.values())}")

    scheduler = config.get("scheduler", {})
    if scheduler.get("interval_hours", 0) <= 0:
        errors.append("Scheduler interval must be positive")
    if scheduler.get("warmup_seconds", 0) < 0:
        errors.append("Scheduler warm-up delay must not be negative")

    adapters = config.get("adapters", {})
    if adapters.get("timeout_seconds", 0) <= 0:
        errors.append("Adapter timeout must be positive")
    if adapters.get("request_delay_seconds", 0) < 0:
        errors.append("Adapter request delay must not be negative")

    return errors


def load_config(overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """
    Build the effective config: defaults, then overrides, then environment.

    Raises:
        ConfigError: If the result fails validation
    """
    config = get_default_config()
    if overrides:
        config = _deep_merge(config, overrides)
    config = _apply_env(config)

    errors = validate_config(config)
    if errors:
        log.error("config_invalid", errors=errors)
        raise ConfigError(errors)
    return config


def get_credential(env_var: Optional[str]) -> Optional[str]:
    """Look up a provider credential from process configuration."""
    if not env_var:
        return None
    value = os.environ.get(env_var, "").strip()
    return value or None
