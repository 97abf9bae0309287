"""
Tests for settings loading and validation.
"""

import pytest

from contract_pdf_service.configuration import DEFAULT_SALT, ServiceSettings, load_settings
from contract_pdf_service.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory with none of the service variables set."""
    for name in (
        "APP_ENV",
        "API_KEY",
        "PDF_ENCRYPTION_SALT",
        "MAX_PDF_SIZE",
        "PDF_TEMP_DIR",
        "PDF_SERVICE_CONFIG",
        "RATE_LIMIT_PER_MINUTE",
        "PDF_ENCRYPTION_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(use_env=False)
        assert isinstance(settings, ServiceSettings)
        assert settings.max_pdf_size == 10 * 1024 * 1024
        assert settings.server_salt == DEFAULT_SALT
        assert settings.encryption_backend == "pikepdf"
        assert settings.is_development

    def test_overrides_are_converted(self):
        """String values are converted to the declared types."""
        settings = load_settings({"max_pdf_size": "2048", "encryption_timeout": "1.5"}, use_env=False)
        assert settings.max_pdf_size == 2048
        assert settings.encryption_timeout == 1.5

    def test_environment_variables(self, clean_env):
        clean_env.setenv("PDF_ENCRYPTION_SALT", "from-env")
        clean_env.setenv("MAX_PDF_SIZE", "4096")
        clean_env.setenv("RATE_LIMIT_PER_MINUTE", "3")

        settings = load_settings()
        assert settings.server_salt == "from-env"
        assert settings.max_pdf_size == 4096
        assert settings.rate_limit_per_minute == 3

    def test_yaml_file(self, clean_env, tmp_path):
        config_file = tmp_path / "service.yaml"
        config_file.write_text("rate_limit_per_minute: 42\nlog_level: WARNING\n")
        clean_env.setenv("PDF_SERVICE_CONFIG", str(config_file))

        settings = load_settings()
        assert settings.rate_limit_per_minute == 42
        assert settings.log_level == "WARNING"

    def test_environment_beats_yaml(self, clean_env, tmp_path):
        config_file = tmp_path / "service.yaml"
        config_file.write_text("rate_limit_per_minute: 42\n")
        clean_env.setenv("PDF_SERVICE_CONFIG", str(config_file))
        clean_env.setenv("RATE_LIMIT_PER_MINUTE", "7")

        assert load_settings().rate_limit_per_minute == 7

    def test_missing_explicit_config_file(self, clean_env, tmp_path):
        clean_env.setenv("PDF_SERVICE_CONFIG", str(tmp_path / "nope.yaml"))
        with pytest.raises(ConfigurationError):
            load_settings()


class TestValidateSettings:
    def test_production_requires_api_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings({"environment": "production"}, use_env=False)
        assert "API_KEY is required in production" in exc_info.value.details

    def test_production_with_key(self):
        settings = load_settings({"environment": "production", "api_key": "k", "server_salt": "s"}, use_env=False)
        assert not settings.is_development

    def test_default_salt_warns_outside_development(self, caplog):
        load_settings({"environment": "staging"}, use_env=False)
        assert "default salt" in caplog.text

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_pdf_size": 0},
            {"rate_limit_per_minute": -1},
            {"encryption_backend": "openssl"},
            {"server_salt": ""},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            load_settings(overrides, use_env=False)

    def test_wrong_type(self):
        with pytest.raises(ConfigurationError):
            load_settings({"port": "not-a-port"}, use_env=False)
