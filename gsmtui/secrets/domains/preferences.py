"""Preferences and well-known paths for gsmtui.

Everything lives under the XDG Base Directory location:
~/.config/gsmtui/
    config.yml          user-edited configuration (optional)
    preferences.json    values set through 'gsmtui config ...'
    gsmtui.log          default log file
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "gsmtui"
PREFERENCES_FILE = CONFIG_DIR / "preferences.json"

CONFIG_PATH_KEY = "config_path"


def default_config_path() -> Path:
    return CONFIG_DIR / "config.yml"


def default_log_path() -> Path:
    return CONFIG_DIR / "gsmtui.log"


def _load_preferences() -> Dict[str, Any]:
    """
    Load preferences from JSON file.

    Returns:
        Dictionary of preferences, or empty dict if the file is missing or unreadable
    """
    if not PREFERENCES_FILE.exists():
        return {}

    try:
        with open(PREFERENCES_FILE, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read preferences file {PREFERENCES_FILE}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Ignoring preferences file {PREFERENCES_FILE}: expected a JSON object")
        return {}
    return data


def _save_preferences(preferences: Dict[str, Any]) -> None:
    """Write preferences, replacing the file in one step."""
    PREFERENCES_FILE.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = PREFERENCES_FILE.with_suffix(".json.tmp")
    with open(tmp_file, 'w') as f:
        json.dump(preferences, f, indent=2)
    tmp_file.replace(PREFERENCES_FILE)


def get_preference(key: str) -> Optional[str]:
    return _load_preferences().get(key)


def set_preference(key: str, value: str) -> None:
    preferences = _load_preferences()
    preferences[key] = value
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' set to: {value}")


def clear_preference(key: str) -> bool:
    """
    Remove a preference.

    Returns:
        True if the key existed and was removed
    """
    preferences = _load_preferences()
    if key not in preferences:
        logger.debug(f"Preference '{key}' not found, nothing to clear")
        return False
    del preferences[key]
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' cleared")
    return True


def get_all_preferences() -> Dict[str, Any]:
    return _load_preferences()
