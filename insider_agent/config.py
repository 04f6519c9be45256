"""
Configuration loading.

Settings come from, in increasing priority: built-in defaults, ``config.json``
next to this package, environment variables, and explicit overrides (CLI flags
or ``InsiderAgent.update_settings``).
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from insider_agent.errors import ConfigError
from insider_agent.models import Settings
from insider_agent.services.enrichment import STRATEGIES

logger = logging.getLogger(__name__)

CADENCE_CHOICES = (10, 30, 60)

DEFAULTS: Dict[str, Any] = {
    "cadence": 10,
    "language": "pt-BR",
    "enrichment_strategy": "generative",
    "detailed": False,
    "model": "gemini-2.0-flash",
    "extraction_timeout": 20,
    "enrichment_timeout": 10,
    "feed_file": "insider_feed.json",
}


def load_config(config_filename: str = "config.json") -> Dict[str, Any]:
    """Loads configuration from a JSON file."""
    # Build absolute path relative to this package
    base_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(base_dir, config_filename)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using defaults.", config_path)
        return dict(DEFAULTS)
    except ValueError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    config = dict(DEFAULTS)
    config.update(data)
    if config["enrichment_strategy"] not in STRATEGIES:
        raise ConfigError(
            f"enrichment_strategy must be one of {STRATEGIES}, "
            f"got {config['enrichment_strategy']!r}"
        )
    return config


def validate_settings(settings: Settings) -> Settings:
    """Checks types and ranges of the user settings."""
    cadence = settings.get("cadence")
    if isinstance(cadence, bool) or not isinstance(cadence, (int, float)) or cadence <= 0:
        raise ConfigError(f"cadence must be a positive number of seconds, got {cadence!r}")
    language = settings.get("language")
    if not isinstance(language, str) or not language.strip():
        raise ConfigError(f"language must be a locale tag, got {language!r}")
    api_key = settings.get("apiKey")
    if not isinstance(api_key, str):
        raise ConfigError("apiKey must be a string")
    return settings


def build_settings(
    config: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None
) -> Settings:
    """Merges config file values, environment variables and overrides."""
    settings = Settings(
        cadence=config.get("cadence", DEFAULTS["cadence"]),
        language=os.environ.get("INSIDER_LANGUAGE")
        or config.get("language", DEFAULTS["language"]),
        apiKey=os.environ.get("GEMINI_KEY", ""),
    )
    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value  # type: ignore[literal-required]
    return validate_settings(settings)


def news_api_key() -> str:
    """Key for the NewsAPI retrieval source."""
    return os.environ.get("NEWSAPI_KEY", "")


def gcp_project_id() -> Optional[str]:
    """Project used by the Firestore feed store."""
    return os.environ.get("GCP_PROJECT_ID")
