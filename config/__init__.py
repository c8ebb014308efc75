"""Configuration management.

Precedence, lowest first: packaged default_config.yaml, an optional override
file (--config / SWAPWATCH_CONFIG), then SWAPWATCH_* environment variables.
"""
import os
import yaml
from pathlib import Path

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

# env var -> (config path, type)
ENV_OVERRIDES = {
    "SWAPWATCH_DB_PATH": (("database", "path"), str),
    "SWAPWATCH_SWEEP_INTERVAL": (("engine", "sweep_interval"), int),
    "SWAPWATCH_LOG_LEVEL": (("logging", "level"), str),
    "SWAPWATCH_WEBHOOK_URL": (("notifications", "webhook", "url"), str),
}

REQUIRED_SECTIONS = ("database", "rules", "engine", "notifications", "web", "logging")
RULE_SECTIONS = ("congestion", "low_inventory", "hardware", "demand", "optimize")
SEVERITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    global _config

    with open(_DEFAULT_CONFIG) as f:
        defaults = yaml.safe_load(f)

    config = defaults
    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    _apply_env_overrides(config)
    _validate_config(config, defaults)
    _config = config
    return config


def get_config():
    """Return cached config, loading defaults if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _apply_env_overrides(config):
    for env_key, (keys, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_key)
        if not raw:
            continue
        try:
            value = cast(raw)
        except ValueError:
            raise ValueError(f"{env_key} must be {cast.__name__}, got {raw!r}")
        section = config
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config, defaults):
    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    # Unknown threshold keys would otherwise surface as a TypeError deep in RuleThresholds
    rules = config["rules"] or {}
    for name, values in rules.items():
        if name not in RULE_SECTIONS:
            raise ValueError(f"Unknown rule section: rules.{name}")
        unknown = set(values or {}) - set(defaults["rules"][name])
        if unknown:
            raise ValueError(f"Unknown keys in rules.{name}: {', '.join(sorted(unknown))}")

    engine = config["engine"]
    if engine["sweep_interval"] < 10:
        raise ValueError("sweep_interval must be >= 10 seconds")
    for key in ("lookback_minutes", "active_station_minutes"):
        if engine[key] <= 0:
            raise ValueError(f"engine.{key} must be positive")

    webhook = config["notifications"].get("webhook") or {}
    if str(webhook.get("min_severity", "LOW")).upper() not in SEVERITIES:
        raise ValueError(f"notifications.webhook.min_severity must be one of: {', '.join(SEVERITIES)}")
