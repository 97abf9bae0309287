from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SALT = "default-salt-change-in-production"
ENCRYPTION_BACKENDS = ("pikepdf", "qpdf")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_CANDIDATE_CONFIG_PATHS = [Path.cwd() / "config/config.yaml"]

# Environment variable -> settings field
ENV_VARS: Dict[str, str] = {
    "APP_ENV": "environment",
    "HOST": "host",
    "PORT": "port",
    "API_KEY": "api_key",
    "PDF_ENCRYPTION_SALT": "server_salt",
    "MAX_PDF_SIZE": "max_pdf_size",
    "MAX_REQUEST_SIZE": "max_request_size",
    "PDF_TEMP_DIR": "temp_dir",
    "LOG_LEVEL": "log_level",
    "RATE_LIMIT_PER_MINUTE": "rate_limit_per_minute",
    "PDF_ENCRYPTION_BACKEND": "encryption_backend",
    "QPDF_BINARY": "qpdf_binary",
    "PDF_ENCRYPTION_TIMEOUT": "encryption_timeout",
}


@dataclass
class ServiceSettings:
    """
    Runtime configuration passed explicitly into every component.

    ``server_salt`` is a secret: changing it invalidates every password that
    was issued for existing documents.
    """

    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001
    api_key: Optional[str] = None
    server_salt: str = DEFAULT_SALT
    max_pdf_size: int = 10 * 1024 * 1024
    max_request_size: int = 20 * 1024 * 1024
    temp_dir: str = field(default_factory=lambda: str(Path(tempfile.gettempdir()) / "pdf-service"))
    log_level: str = "INFO"
    rate_limit_per_minute: int = 10
    encryption_backend: str = "pikepdf"
    qpdf_binary: str = "qpdf"
    encryption_timeout: Optional[float] = 60.0

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def temp_path(self) -> Path:
        return Path(self.temp_dir)


def _find_config_file() -> Optional[Path]:
    explicit = os.environ.get("PDF_SERVICE_CONFIG")
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise ConfigurationError(f"Config file not found at {path}")
        return path
    return next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)


def _env_overrides() -> Dict[str, Any]:
    return {key: os.environ[name] for name, key in ENV_VARS.items() if os.environ.get(name)}


def load_settings(overrides: Optional[Dict[str, Any]] = None, use_env: bool = True) -> ServiceSettings:
    """
    Merge defaults, the optional YAML file, the environment and ``overrides``.

    Later sources win. OmegaConf converts string values from the environment
    into the declared field types.
    """
    base = OmegaConf.structured(ServiceSettings)
    layers = []

    if use_env:
        load_dotenv()
        config_path = _find_config_file()
        if config_path is not None:
            layers.append(OmegaConf.load(config_path))
        layers.append(OmegaConf.create(_env_overrides()))

    if overrides:
        layers.append(OmegaConf.create(overrides))

    try:
        merged = OmegaConf.merge(base, *layers)
        settings: ServiceSettings = OmegaConf.to_object(merged)  # type: ignore[assignment]
    except Exception as exc:  # noqa: BLE001
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    validate_settings(settings)
    return settings


def validate_settings(settings: ServiceSettings) -> None:
    errors = []

    if settings.environment == "production" and not settings.api_key:
        errors.append("API_KEY is required in production")
    if settings.max_pdf_size <= 0:
        errors.append("max_pdf_size must be positive")
    if settings.max_request_size <= 0:
        errors.append("max_request_size must be positive")
    if settings.rate_limit_per_minute <= 0:
        errors.append("rate_limit_per_minute must be positive")
    if settings.encryption_backend not in ENCRYPTION_BACKENDS:
        errors.append(f"encryption_backend must be one of {', '.join(ENCRYPTION_BACKENDS)}")
    if settings.log_level.upper() not in LOG_LEVELS:
        errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")
    if not settings.server_salt:
        errors.append("server_salt must not be empty")

    if errors:
        raise ConfigurationError("Configuration errors:\n" + "\n".join(errors), details=errors)

    if settings.server_salt == DEFAULT_SALT and not settings.is_development:
        logger.warning("PDF_ENCRYPTION_SALT is not set; using the default salt")
