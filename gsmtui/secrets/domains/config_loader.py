"""Configuration loader for gsmtui."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from . import preferences

logger = logging.getLogger(__name__)

AUTH_TYPES = ("application_default", "service_account")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Configuration error exception."""
    pass


@dataclass
class RetryPolicy:
    """Bounded exponential backoff for transient provider errors."""
    attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0


@dataclass
class AppConfig:
    auth_type: str = "application_default"
    service_account_path: Optional[str] = None
    project_id: Optional[str] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    source: Optional[str] = None  # path the config was read from, None for defaults


def _get_config_path(explicit_path: Optional[str] = None) -> Optional[str]:
    """
    Resolve which config file to read.

    Priority order:
    1. Explicit path (--config)
    2. User preference (stored in ~/.config/gsmtui/preferences.json)
    3. Default location: ~/.config/gsmtui/config.yml

    Returns:
        Absolute path to the config file, or None when no file exists and
        defaults should be used

    Raises:
        ConfigError: If an explicit path was given but does not exist
    """
    if explicit_path:
        config_path = Path(explicit_path).expanduser()
        if not config_path.is_file():
            raise ConfigError(f"Configuration file not found at: {config_path}")
        return str(config_path)

    config_path_pref = preferences.get_preference(preferences.CONFIG_PATH_KEY)
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = preferences.default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    logger.info("No configuration file found, using defaults")
    return None


def _section(config: Dict[str, Any], name: str, config_path: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' in config at {config_path} must be a mapping")
    return value


def _parse_retry(section: Dict[str, Any]) -> RetryPolicy:
    defaults = RetryPolicy()
    try:
        policy = RetryPolicy(
            attempts=int(section.get("attempts", defaults.attempts)),
            base_delay=float(section.get("base_delay", defaults.base_delay)),
            max_delay=float(section.get("max_delay", defaults.max_delay)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid 'retry' settings: {e}")

    if policy.attempts < 1:
        raise ConfigError("'retry.attempts' must be at least 1")
    if policy.base_delay < 0 or policy.max_delay < 0:
        raise ConfigError("'retry' delays cannot be negative")
    return policy


def load_config(explicit_path: Optional[str] = None) -> AppConfig:
    """
    Load and validate configuration from YAML file.

    A missing config file is not an error: the TUI falls back to Application
    Default Credentials and the built-in retry settings.

    Returns:
        AppConfig populated from the file, or defaults

    Raises:
        ConfigError: If the config file is invalid or the service account file doesn't exist
    """
    config_path = _get_config_path(explicit_path)
    if config_path is None:
        return AppConfig()

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")
    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a YAML mapping")

    auth = _section(config, "authentication", config_path)
    auth_type = auth.get("type", "application_default")
    if auth_type not in AUTH_TYPES:
        raise ConfigError(
            f"Unsupported authentication type: {auth_type}\n"
            f"Supported types: {', '.join(AUTH_TYPES)}"
        )

    service_account_path = auth.get("service_account_path")
    if auth_type == "service_account":
        if not service_account_path:
            raise ConfigError(
                "Missing 'authentication.service_account_path' in config\n"
                "Required format:\n"
                "authentication:\n"
                "  type: service_account\n"
                "  service_account_path: /path/to/service-account.json"
            )
        service_account_path = os.path.expanduser(service_account_path)
        if not os.path.exists(service_account_path):
            raise ConfigError(
                f"Service account file not found at: {service_account_path}\n"
                f"Please ensure the file exists or update the path in {config_path}"
            )
        if not os.path.isfile(service_account_path):
            raise ConfigError(f"Service account path is not a file: {service_account_path}")

    gcp = _section(config, "gcp", config_path)
    logging_section = _section(config, "logging", config_path)

    log_level = str(logging_section.get("level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Invalid 'logging.level': {log_level}")

    log_file = logging_section.get("file")
    app_config = AppConfig(
        auth_type=auth_type,
        service_account_path=service_account_path,
        project_id=gcp.get("project_id") or None,
        retry=_parse_retry(_section(config, "retry", config_path)),
        log_level=log_level,
        log_file=os.path.expanduser(log_file) if log_file else None,
        source=config_path,
    )

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Authentication type: {auth_type}")
    return app_config


def apply_credentials(config: AppConfig) -> None:
    """Point Google client libraries at the configured service account, if any."""
    if config.auth_type == "service_account" and config.service_account_path:
        os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = config.service_account_path
        logger.info(f"Set GOOGLE_APPLICATION_CREDENTIALS from config: {config.service_account_path}")


def resolve_project_id(cli_project_id: Optional[str], config: AppConfig) -> Optional[str]:
    """
    Pick the project to open at startup.

    Priority order:
    1. --project-id flag
    2. GCP_PROJECT environment variable
    3. gcp.project_id in the config file

    Returns:
        Project ID, or None to start at the project picker
    """
    if cli_project_id:
        return cli_project_id

    gcp_project_env = os.getenv("GCP_PROJECT")
    if gcp_project_env:
        logger.debug(f"Using GCP_PROJECT from environment: {gcp_project_env}")
        return gcp_project_env

    if config.project_id:
        logger.debug(f"Using project_id from config: {config.project_id}")
    return config.project_id
