"""
Tests for client configuration.

This module tests configuration layering (defaults, INI file, environment
variables and overrides) and validation of typed values.
"""

import logging
import logging.handlers

import pytest

from hotel_client.config import ClientConfiguration, configure_logging
from hotel_shared.exceptions import ConfigurationError
from hotel_shared.logging_config import LogFormat, LogLevel


ENV_VARS = [
    'HOTEL_DASHBOARD_API_URL', 'HOTEL_DASHBOARD_LANGUAGE',
    'HOTEL_DASHBOARD_REQUEST_TIMEOUT', 'HOTEL_DASHBOARD_REFRESH_TIMEOUT',
    'HOTEL_DASHBOARD_CREDENTIAL_BACKEND', 'HOTEL_DASHBOARD_STORAGE_DIR',
    'HOTEL_DASHBOARD_LOG_LEVEL', 'HOTEL_DASHBOARD_LOG_FORMAT', 'HOTEL_DASHBOARD_LOG_FILE',
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'client.conf'
    path.write_text(
        "[api]\n"
        "url = https://hotel.example/\n"
        "language = fr\n"
        "request_timeout = 20\n"
        "\n"
        "[auth]\n"
        "credential_backend = file\n"
    )
    return str(path)


class TestClientConfiguration:
    """Test configuration loading."""

    def test_defaults(self, clean_env, tmp_path):
        config = ClientConfiguration(str(tmp_path / 'missing.conf'))

        assert config.get_api_url() == 'http://localhost:5000'
        assert config.get_language() == 'en'
        assert config.get_request_timeout() == 30.0
        assert config.get_refresh_timeout() == 15.0
        assert config.get_refresh_path() == '/api/en/auth/refresh-token'
        assert config.get_credential_backend() == 'keyring'
        assert config.get_log_level() == LogLevel.INFO
        assert config.get_log_format() == LogFormat.STANDARD

    def test_file_values(self, clean_env, config_file):
        config = ClientConfiguration(config_file)

        assert config.get_api_url() == 'https://hotel.example'
        assert config.get_language() == 'fr'
        assert config.get_request_timeout() == 20.0
        assert config.get_refresh_timeout() == 15.0
        assert config.get_refresh_path() == '/api/fr/auth/refresh-token'
        assert config.get_credential_backend() == 'file'

    def test_environment_overrides_file(self, clean_env, config_file):
        clean_env.setenv('HOTEL_DASHBOARD_LANGUAGE', 'ar')
        clean_env.setenv('HOTEL_DASHBOARD_REFRESH_TIMEOUT', '2.5')
        clean_env.setenv('HOTEL_DASHBOARD_CREDENTIAL_BACKEND', 'memory')

        config = ClientConfiguration(config_file)

        assert config.get_language() == 'ar'
        assert config.get_refresh_timeout() == 2.5
        assert config.get_credential_backend() == 'memory'

    def test_override_wins(self, clean_env, config_file):
        config = ClientConfiguration(config_file)
        config.set_override('api.url', 'http://staging.example')

        assert config.get_api_url() == 'http://staging.example'

    def test_invalid_timeout(self, clean_env, config_file):
        config = ClientConfiguration(config_file)
        config.set_config('api.request_timeout', 0)

        with pytest.raises(ConfigurationError):
            config.get_request_timeout()

        config.set_config('api.request_timeout', 'soon')
        with pytest.raises(ConfigurationError):
            config.get_request_timeout()

    def test_unknown_credential_backend(self, clean_env, config_file):
        config = ClientConfiguration(config_file)
        config.set_config('auth.credential_backend', 'cookies')

        with pytest.raises(ConfigurationError) as exc_info:
            config.get_credential_backend()
        assert exc_info.value.context['config_key'] == 'auth.credential_backend'

    def test_empty_api_url(self, clean_env, config_file):
        config = ClientConfiguration(config_file)
        config.set_override('api.url', '')

        with pytest.raises(ConfigurationError):
            config.get_api_url()

    def test_save_and_reload(self, clean_env, config_file):
        config = ClientConfiguration(config_file)
        config.set_config('api.language', 'es')
        config.save_configuration()

        reloaded = ClientConfiguration(config_file)

        assert reloaded.get_language() == 'es'
        assert reloaded.get_api_url() == 'https://hotel.example'


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    audit_logger = logging.getLogger('audit')
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for logger_ in (root, audit_logger):
        for handler in logger_.handlers[:]:
            logger_.removeHandler(handler)
            handler.close()
    audit_logger.propagate = True
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


class TestConfigureLogging:
    """Test logging set up from configuration."""

    def test_configured_level_format_and_files(self, clean_env, tmp_path, restore_logging):
        log_file = tmp_path / 'logs' / 'client.log'
        clean_env.setenv('HOTEL_DASHBOARD_LOG_LEVEL', 'debug')
        clean_env.setenv('HOTEL_DASHBOARD_LOG_FORMAT', 'json')
        clean_env.setenv('HOTEL_DASHBOARD_LOG_FILE', str(log_file))
        config = ClientConfiguration(str(tmp_path / 'missing.conf'))
        config.set_config('logging.backup_count', 7)

        loggers = configure_logging(config)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        file_handlers = [
            h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 10485760
        assert file_handlers[0].backupCount == 7
        assert log_file.exists()
        assert (tmp_path / 'logs' / 'client-audit.log').exists()
        assert loggers['audit'].propagate is False

    def test_invalid_level_rejected(self, clean_env, tmp_path, restore_logging):
        clean_env.setenv('HOTEL_DASHBOARD_LOG_LEVEL', 'LOUD')
        config = ClientConfiguration(str(tmp_path / 'missing.conf'))

        with pytest.raises(ConfigurationError):
            configure_logging(config)
