"""
Configuration Management for the Hotel Dashboard API client.

This module handles client configuration including the backend API URL, locale,
request timeouts, credential storage and logging, with support for configuration
files and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from configparser import ConfigParser

from hotel_shared.exceptions import ConfigurationError, ErrorCode
from hotel_shared.interfaces import IConfigurationManager
from hotel_shared.logging_config import LogFormat, LogLevel, setup_logging

logger = logging.getLogger(__name__)


CREDENTIAL_BACKENDS = ('keyring', 'file', 'memory')

DEFAULT_CONFIG_TEMPLATE = """# Hotel Dashboard client configuration
# Configuration file: {config_path}

[api]
# Backend API base URL (required)
url = http://localhost:5000

# Locale code sent as Accept-Language and used in endpoint paths
language = en

# Timeout for every API request, in seconds
request_timeout = 30

# Timeout for the refresh-token exchange, in seconds
refresh_timeout = 15

[auth]
# Where the access/refresh token pair is kept: keyring, file or memory
credential_backend = keyring

[logging]
# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
level = INFO

# Log format: standard, detailed or json
format = standard
"""


class ClientConfiguration(IConfigurationManager):
    """
    Configuration manager for the Hotel Dashboard client.

    Supports configuration from:
    1. Overrides set at runtime (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    def __init__(self, config_file: Optional[str] = None):
        self._config_file = config_file or self._get_default_config_path()
        self._config_data: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _get_default_config_path(self) -> str:
        """Get default configuration file path, creating it if missing."""
        config_dir = Path.home() / '.hotel-dashboard'
        config_dir.mkdir(parents=True, exist_ok=True)
        user_config_path = str(config_dir / 'client.conf')

        if not os.path.exists(user_config_path):
            self._create_default_config(user_config_path)

        return user_config_path

    def _create_default_config(self, config_path: str) -> None:
        """Create a minimal default configuration file."""
        try:
            with open(config_path, 'w') as f:
                f.write(DEFAULT_CONFIG_TEMPLATE.format(config_path=config_path))

            logger.info(f"Created default configuration file: {config_path}")

        except OSError as e:
            logger.error(f"Failed to create default configuration: {e}")
            raise ConfigurationError(
                f"Failed to create default configuration: {e}",
                error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                cause=e
            )

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if os.path.exists(self._config_file):
            try:
                self._load_from_file()
                logger.info(f"Configuration loaded from: {self._config_file}")
            except Exception as e:
                logger.warning(f"Failed to load configuration file: {e}")
        else:
            logger.info(f"Configuration file not found: {self._config_file}")

        self._load_from_environment()
        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        config.read(self._config_file)

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                # Try to parse as JSON for numbers, booleans and lists
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        env_mappings = {
            'HOTEL_DASHBOARD_API_URL': ('api', 'url'),
            'HOTEL_DASHBOARD_LANGUAGE': ('api', 'language'),
            'HOTEL_DASHBOARD_REQUEST_TIMEOUT': ('api', 'request_timeout'),
            'HOTEL_DASHBOARD_REFRESH_TIMEOUT': ('api', 'refresh_timeout'),
            'HOTEL_DASHBOARD_CREDENTIAL_BACKEND': ('auth', 'credential_backend'),
            'HOTEL_DASHBOARD_STORAGE_DIR': ('auth', 'storage_dir'),
            'HOTEL_DASHBOARD_LOG_LEVEL': ('logging', 'level'),
            'HOTEL_DASHBOARD_LOG_FORMAT': ('logging', 'format'),
            'HOTEL_DASHBOARD_LOG_FILE': ('logging', 'file'),
        }

        for env_var, (section, key) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                if section not in self._config_data:
                    self._config_data[section] = {}

                if value.lower() in ('true', 'false'):
                    self._config_data[section][key] = value.lower() == 'true'
                else:
                    try:
                        self._config_data[section][key] = float(value) if '.' in value else int(value)
                    except ValueError:
                        self._config_data[section][key] = value

    def _set_defaults(self) -> None:
        """Set default configuration values."""
        defaults = {
            'api': {
                'url': 'http://localhost:5000',
                'language': 'en',
                'request_timeout': 30.0,
                'refresh_timeout': 15.0,
                'refresh_path': '/api/{lang}/auth/refresh-token'
            },
            'auth': {
                'credential_backend': 'keyring',
                'storage_dir': None,
                'service_name': 'hotel-dashboard'
            },
            'logging': {
                'level': 'INFO',
                'format': 'standard',
                'file': None,
                'max_size': 10485760,  # 10MB
                'backup_count': 3
            }
        }

        for section, section_defaults in defaults.items():
            if section not in self._config_data:
                self._config_data[section] = {}

            for key, default_value in section_defaults.items():
                if key not in self._config_data[section]:
                    self._config_data[section][key] = default_value

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if key in self._overrides:
            return self._overrides[key]

        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_config(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            value: Value to set
        """
        if '.' not in key:
            self._config_data[key] = value
            return

        section, config_key = key.split('.', 1)
        self._config_data.setdefault(section, {})[config_key] = value

    def set_override(self, key: str, value: Any) -> None:
        """
        Set configuration override (highest priority).

        Args:
            key: Configuration key in format 'section.key'
            value: Override value
        """
        self._overrides[key] = value

    def save_configuration(self) -> None:
        """Save current configuration to file."""
        config = ConfigParser()

        for section_name, section_data in self._config_data.items():
            config.add_section(section_name)
            for key, value in section_data.items():
                if value is None:
                    continue
                if isinstance(value, (dict, list, bool)):
                    config.set(section_name, key, json.dumps(value))
                else:
                    config.set(section_name, key, str(value))

        config_path = Path(self._config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, 'w') as f:
                config.write(f)
        except OSError as e:
            logger.error(f"Failed to save configuration: {e}")
            raise ConfigurationError(f"Failed to save configuration: {e}", cause=e)

        logger.info(f"Configuration saved to: {self._config_file}")

    def get_all_config(self) -> Dict[str, Any]:
        """Get all configuration data."""
        return self._config_data.copy()

    def get_config_file_path(self) -> str:
        """Get configuration file path."""
        return self._config_file

    def reload_configuration(self) -> None:
        """Reload configuration from file and environment."""
        self._config_data.clear()
        self._load_configuration()
        logger.info("Configuration reloaded")

    # Convenience methods for common configuration values

    def get_api_url(self) -> str:
        """Get backend API base URL."""
        url = self.get_config('api.url')
        if not url:
            raise ConfigurationError("API URL is not configured", config_key='api.url')
        return str(url).rstrip('/')

    def get_language(self) -> str:
        """Get locale code."""
        return str(self.get_config('api.language', 'en'))

    def get_request_timeout(self) -> float:
        """Get timeout for API requests in seconds."""
        return self._get_positive_float('api.request_timeout', 30.0)

    def get_refresh_timeout(self) -> float:
        """Get timeout for the refresh-token exchange in seconds."""
        return self._get_positive_float('api.refresh_timeout', 15.0)

    def get_refresh_path(self) -> str:
        """Get the refresh endpoint path with the locale filled in."""
        template = self.get_config('api.refresh_path', '/api/{lang}/auth/refresh-token')
        return template.format(lang=self.get_language())

    def get_credential_backend(self) -> str:
        """Get the credential storage backend name."""
        backend = str(self.get_config('auth.credential_backend', 'keyring')).lower()
        if backend not in CREDENTIAL_BACKENDS:
            raise ConfigurationError(
                f"Unknown credential backend '{backend}', expected one of {', '.join(CREDENTIAL_BACKENDS)}",
                config_key='auth.credential_backend'
            )
        return backend

    def get_storage_dir(self) -> Optional[str]:
        """Get directory for the encrypted credential file."""
        return self.get_config('auth.storage_dir')

    def get_service_name(self) -> str:
        """Get keyring service name."""
        return self.get_config('auth.service_name', 'hotel-dashboard')

    def get_log_level(self) -> LogLevel:
        """Get logging level."""
        level = str(self.get_config('logging.level', 'INFO')).upper()
        try:
            return LogLevel(level)
        except ValueError:
            raise ConfigurationError(f"Invalid log level: {level}", config_key='logging.level')

    def get_log_format(self) -> LogFormat:
        """Get logging format."""
        log_format = str(self.get_config('logging.format', 'standard')).lower()
        try:
            return LogFormat(log_format)
        except ValueError:
            raise ConfigurationError(f"Invalid log format: {log_format}", config_key='logging.format')

    def get_log_file(self) -> Optional[str]:
        """Get log file path."""
        return self.get_config('logging.file')

    def get_log_max_size(self) -> int:
        """Get size in bytes at which log files are rotated."""
        return int(self.get_config('logging.max_size', 10485760))

    def get_log_backup_count(self) -> int:
        """Get number of rotated log files to keep."""
        return int(self.get_config('logging.backup_count', 3))

    def _get_positive_float(self, key: str, default: float) -> float:
        value = self.get_config(key, default)
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be a number, got {value!r}", config_key=key)
        if value <= 0:
            raise ConfigurationError(f"{key} must be positive, got {value}", config_key=key)
        return value


def configure_logging(config: ClientConfiguration) -> Dict[str, logging.Logger]:
    """
    Set up client logging from configuration.

    When a log file is configured the audit trail is written beside it as
    client-audit.log; otherwise audit records go to the console.

    Args:
        config: ClientConfiguration instance

    Returns:
        Dictionary of configured loggers
    """
    log_file = config.get_log_file()
    audit_file = None
    if log_file:
        audit_file = os.path.join(os.path.dirname(log_file), 'client-audit.log')

    loggers = setup_logging(
        log_level=config.get_log_level(),
        log_format=config.get_log_format(),
        log_file=log_file,
        max_file_size=config.get_log_max_size(),
        backup_count=config.get_log_backup_count(),
        enable_audit=True,
        audit_file=audit_file
    )

    logger.info("Logging configured")
    return loggers
