# fittrack/core/config_loader.py
"""
Loads, merges, and validates configuration for the application.
"""
import copy
import logging
import logging.config
import os
from pathlib import Path
from functools import lru_cache
from typing import Dict, Any, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
ENV_PREFIX = "APP_"
NESTING_SEPARATOR = "__"

# Load environment variables from .env file
load_dotenv(PROJECT_ROOT / ".env")

OPTIONAL_SECRETS = {
    "DATABASE_URL": "Daily records will be kept in memory and lost on restart.",
    "API_NINJAS_API_KEY": "Meal calorie lookup will not work; meals are logged with 0 calories.",
    "SESSION_SECRET_KEY": "An ephemeral key will be generated; sessions end on restart.",
}


@lru_cache(maxsize=8)
def load_yaml(file_path: Path) -> Dict[str, Any]:
    """
    Loads a single YAML file and returns its content.
    Uses LRU cache to avoid reading the same file multiple times.
    """
    if not file_path.is_file():
        logger.warning(f"Config file not found at {file_path}")
        return {}
    with open(file_path, 'r') as f:
        return yaml.safe_load(f) or {}


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered in ('true', 'false'):
        return lowered == 'true'
    if value.isdigit():
        return int(value)
    return value


def apply_env_overrides(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Overrides config leaves from APP_-prefixed environment variables.

    `APP_NUTRITION__TIMEOUT_SECONDS=10` sets config["nutrition"]["timeout_seconds"] = 10.
    """
    environ = os.environ if environ is None else environ
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        config_keys = key[len(ENV_PREFIX):].lower().split(NESTING_SEPARATOR)

        temp_config = config
        for k in config_keys[:-1]:
            temp_config = temp_config.setdefault(k, {})
        temp_config[config_keys[-1]] = _coerce(value)
    return config


@lru_cache(maxsize=1)
def _load_config() -> Dict[str, Any]:
    # deepcopy so callers mutating the result never touch the cached YAML
    base_config = copy.deepcopy(load_yaml(CONFIG_DIR / "settings.yaml"))
    base_config["logging"] = copy.deepcopy(load_yaml(CONFIG_DIR / "logging_config.yaml"))
    return apply_env_overrides(base_config)


def get_config() -> Dict[str, Any]:
    """
    Loads and merges configuration.

    The loading order is:
    1. `settings.yaml` (base settings)
    2. `logging_config.yaml` (stored under the "logging" key)
    3. Environment variables with the APP_ prefix (override everything)
    """
    return copy.deepcopy(_load_config())


def reload_config():
    """
    Clears the caches, forcing configs to be reloaded from disk and the
    environment on next access.
    """
    load_yaml.cache_clear()
    _load_config.cache_clear()


def setup_logging(config: Optional[Dict[str, Any]] = None):
    """Applies the logging section of the config, or a basic console setup if it is empty."""
    config = config if config is not None else get_config()
    logging_section = config.get("logging")
    if logging_section:
        logging.config.dictConfig(logging_section)
    else:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def validate_required_env_vars():
    """
    Checks for the presence of the secrets the application reads from the
    environment. FitTrack degrades rather than refusing to start, so missing
    values are reported as warnings.
    """
    missing_vars = [var for var in OPTIONAL_SECRETS if not os.getenv(var)]
    for var in missing_vars:
        logger.warning(f"{var} is not set. {OPTIONAL_SECRETS[var]}")
    return missing_vars
