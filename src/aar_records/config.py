"""Configuration management for the AAR records service."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from aar_records.utils.masking import mask_secret

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")
    request_logging: bool = Field(default=True, description="Log start/end of each request")


class ServerSettings(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    http_enable_cors: bool = Field(default=False)
    http_allowed_origins: tuple[str, ...] = Field(default=())


class ObjectStorageSettings(BaseModel):
    """S3-compatible object storage holding report attachments.

    Leave ``endpoint`` empty to talk to AWS S3 itself; set it for MinIO,
    LocalStack and similar services.
    """

    endpoint: str | None = Field(default=None)
    region: str = Field(default="us-east-1")
    access_key: str = Field(default="", repr=False)
    secret_key: str = Field(default="", repr=False)
    bucket: str = Field(default="")
    verify_tls: bool = Field(
        default=True,
        description="Set False for S3-compatible services with self-signed certificates.",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    max_retries: int = Field(default=2, ge=0, le=10)
    validate_on_startup: bool = Field(default=True)

    @field_validator("endpoint")
    @classmethod
    def _blank_endpoint_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip().rstrip("/")


class UploadSettings(BaseModel):
    max_upload_mb: int = Field(default=100, ge=1, le=5120)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


class ReportSettings(BaseModel):
    wkhtmltopdf_path: str = Field(default="wkhtmltopdf")
    timeout_seconds: float = Field(default=60.0, gt=0, le=600)


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: ObjectStorageSettings = Field(default_factory=ObjectStorageSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    reports: ReportSettings = Field(default_factory=ReportSettings)


ENV_KEYS = {
    "host": "HOST",
    "port": "PORT",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "s3_endpoint": "S3_ENDPOINT",
    "s3_region": "S3_REGION",
    "s3_access_key": "S3_ACCESS_KEY",
    "s3_secret_key": "S3_SECRET_KEY",
    "s3_bucket": "S3_BUCKET",
    "s3_verify_tls": "S3_VERIFY_TLS",
    "s3_timeout": "S3_TIMEOUT_SECONDS",
    "s3_max_retries": "S3_MAX_RETRIES",
    "s3_validate": "S3_VALIDATE_ON_STARTUP",
    "max_upload_mb": "MAX_UPLOAD_MB",
    "wkhtmltopdf_path": "REPORT_WKHTMLTOPDF_PATH",
    "report_timeout": "REPORT_TIMEOUT_SECONDS",
}

REQUIRED_STORAGE_KEYS = ("s3_access_key", "s3_secret_key", "s3_bucket")

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _split_csv_preserve_case(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def _missing_required_keys() -> list[str]:
    missing = []
    for name in REQUIRED_STORAGE_KEYS:
        env_key = ENV_KEYS[name]
        if not os.getenv(env_key, "").strip():
            missing.append(env_key)
    return missing


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")

    missing = _missing_required_keys()
    if missing:
        raise RuntimeError(
            "Invalid configuration: missing required object storage variables: "
            + ", ".join(missing)
        )

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
            "http_enable_cors": _env_bool(
                "HTTP_ENABLE_CORS",
                ServerSettings().http_enable_cors,
            ),
            "http_allowed_origins": tuple(
                _split_csv_preserve_case(os.getenv("HTTP_ALLOWED_ORIGINS"))
            ),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": os.getenv(ENV_KEYS["log_file"]) or None,
            "request_logging": _env_bool(
                "LOG_REQUESTS",
                LoggingSettings().request_logging,
            ),
        },
        "storage": {
            "endpoint": os.getenv(ENV_KEYS["s3_endpoint"]),
            "region": os.getenv(ENV_KEYS["s3_region"], "").strip()
            or ObjectStorageSettings().region,
            "access_key": os.getenv(ENV_KEYS["s3_access_key"], "").strip(),
            "secret_key": os.getenv(ENV_KEYS["s3_secret_key"], "").strip(),
            "bucket": os.getenv(ENV_KEYS["s3_bucket"], "").strip(),
            "verify_tls": _env_bool(
                ENV_KEYS["s3_verify_tls"],
                ObjectStorageSettings().verify_tls,
            ),
            "timeout_seconds": _env_float(
                ENV_KEYS["s3_timeout"],
                ObjectStorageSettings().timeout_seconds,
            ),
            "max_retries": _env_int(
                ENV_KEYS["s3_max_retries"],
                ObjectStorageSettings().max_retries,
            ),
            "validate_on_startup": _env_bool(
                ENV_KEYS["s3_validate"],
                ObjectStorageSettings().validate_on_startup,
            ),
        },
        "uploads": {
            "max_upload_mb": _env_int(
                ENV_KEYS["max_upload_mb"],
                UploadSettings().max_upload_mb,
            ),
        },
        "reports": {
            "wkhtmltopdf_path": os.getenv(
                ENV_KEYS["wkhtmltopdf_path"], ReportSettings().wkhtmltopdf_path
            ),
            "timeout_seconds": _env_float(
                ENV_KEYS["report_timeout"],
                ReportSettings().timeout_seconds,
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc


def describe_storage_settings(settings: ObjectStorageSettings) -> list[str]:
    """Human-readable storage settings with credentials masked, for startup logs."""
    return [
        f"S3_ENDPOINT:   {settings.endpoint or '(AWS S3)'}",
        f"S3_REGION:     {settings.region}",
        f"S3_ACCESS_KEY: {mask_secret(settings.access_key)}",
        f"S3_SECRET_KEY: {mask_secret(settings.secret_key)}",
        f"S3_BUCKET:     {settings.bucket}",
    ]
