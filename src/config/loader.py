"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY (Junior Developer Guide) ──────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- Static defaults checked into the repo
#   2. .env file           -- Local developer overrides (not committed)
#   3. Environment vars    -- Set at deploy time
#
# The _deep_merge helper does recursive dict merging:
#   base = {"phases": {"type": {"confidence_threshold": 0.7}}}
#   overrides = {"phases": {"type": {"retry_on_low_confidence": False}}}
#   result = {"phases": {"type": {"confidence_threshold": 0.7,
#                                 "retry_on_low_confidence": False}}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Optional pre-built Settings; a fresh instance is read otherwise.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "vision": {
            "default_model": settings.default_model_key,
            "available_providers": settings.get_available_vision_providers(),
        },
        "phases": {
            "type": {"confidence_threshold": settings.type_confidence_threshold},
            "artist": {"confidence_threshold": settings.artist_confidence_threshold},
            "venue": {"confidence_threshold": settings.venue_confidence_threshold},
            "event": {"confidence_threshold": settings.event_confidence_threshold},
        },
        "review": {
            "pass_threshold": settings.review_pass_threshold,
            "min_correction_confidence": settings.review_min_correction_confidence,
        },
        "consensus": {
            "min_agreement_ratio": settings.consensus_min_agreement_ratio,
            "parallel": settings.consensus_parallel,
            "model_timeout_ms": settings.consensus_model_timeout_ms,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
