from __future__ import annotations

import os
from typing import Any, Optional

import boto3
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lognexus.errors import ConfigurationError
from lognexus.utils.durations import parse_duration

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024
DEFAULT_NAME_TEMPLATE = "%Y-%m-%d-%H-%M-{app}.log"
DEFAULT_FOLDER = "logs/{app}/"


def _env_flag(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def _env_optional(name: str) -> Optional[str]:
    raw = os.getenv(name)
    return raw if raw else None


class S3Settings(BaseModel):
    """Bucket and credentials shared by the shipper and the retriever."""

    bucket: Optional[str] = Field(None, description="S3 bucket receiving log objects")
    access_key_id: Optional[str] = Field(None, description="AWS access key id")
    secret_access_key: Optional[str] = Field(
        None, description="AWS secret access key", repr=False
    )
    region: Optional[str] = Field("us-east-1", description="AWS region")
    endpoint_url: Optional[str] = Field(
        None, description="Custom endpoint for S3-compatible stores"
    )
    server_side_encryption: Optional[str] = Field(
        None, description="ServerSideEncryption applied to uploads, e.g. AES256"
    )
    storage_class: Optional[str] = Field(
        None, description="StorageClass applied to uploads, e.g. STANDARD_IA"
    )

    def missing_fields(self, *, require_region: bool = False) -> list[str]:
        required = ["bucket", "access_key_id", "secret_access_key"]
        if require_region:
            required.append("region")
        return [name for name in required if not (getattr(self, name) or "").strip()]

    def require(self, *, require_region: bool = False) -> None:
        """Raise ConfigurationError unless bucket and credentials are present."""
        missing = self.missing_fields(require_region=require_region)
        if missing:
            raise ConfigurationError(
                "Missing AWS S3 configuration: " + ", ".join(missing)
            )

    def build_client(self) -> Any:
        """Create a boto3 S3 client from these settings."""
        return boto3.client(
            "s3",
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            endpoint_url=self.endpoint_url,
        )

    @classmethod
    def from_env(cls) -> "S3Settings":
        return cls(
            bucket=_env_optional("AWS_S3_BUCKET_NAME"),
            access_key_id=_env_optional("AWS_S3_ACCESS_KEY_ID"),
            secret_access_key=_env_optional("AWS_S3_SECRET_ACCESS_KEY"),
            region=os.getenv("AWS_REGION") or "us-east-1",
            endpoint_url=_env_optional("AWS_S3_ENDPOINT_URL"),
            server_side_encryption=_env_optional("AWS_S3_SERVER_SIDE_ENCRYPTION"),
            storage_class=_env_optional("AWS_S3_STORAGE_CLASS"),
        )


class RotationPolicy(BaseModel):
    """When segments roll over and how their object keys look."""

    model_config = ConfigDict(frozen=True)

    max_file_size_bytes: int = Field(
        DEFAULT_MAX_FILE_SIZE,
        gt=0,
        description="Rotate once a segment holds at least this many bytes",
    )
    rotate_every: float = Field(
        3600.0,
        description="Rotation interval in seconds (accepts '1h', '1d', ...)",
    )
    compress: bool = Field(True, description="gzip segments before upload")
    name_template: str = Field(
        DEFAULT_NAME_TEMPLATE,
        description="strftime template; {app} is replaced by the app identifier",
    )
    folder: str = Field(DEFAULT_FOLDER, description="Key prefix for uploaded objects")

    @field_validator("rotate_every", mode="before")
    @classmethod
    def _parse_rotate_every(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("name_template")
    @classmethod
    def _check_template(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name_template must be non-empty")
        return value


class ShipperConfig(BaseModel):
    """Configuration for one LogShipper instance."""

    s3: S3Settings = Field(default_factory=S3Settings)
    app_id: str = Field("development", description="Application identifier ({app})")
    policy: RotationPolicy = Field(default_factory=RotationPolicy)
    upload_every: Optional[float] = Field(
        None,
        description="Checkpoint the in-progress segment this often (seconds)",
    )
    max_in_flight: int = Field(2, ge=1, description="Concurrent segment uploads")
    upload_max_attempts: int = Field(5, ge=1, description="Attempts per segment")
    upload_backoff_base: float = Field(
        2.0, ge=0, description="Backoff base; wait = base ** attempt seconds"
    )
    upload_backoff_max: float = Field(30.0, gt=0, description="Cap for a single wait")

    @field_validator("upload_every", mode="before")
    @classmethod
    def _parse_upload_every(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        return parse_duration(value)

    @classmethod
    def from_env(cls) -> "ShipperConfig":
        app_id = os.getenv("APP_TYPE") or "development"
        policy_fields: dict[str, Any] = {
            "folder": os.getenv("S3_LOG_FOLDER") or DEFAULT_FOLDER,
            "name_template": os.getenv("S3_LOG_NAME_FORMAT") or DEFAULT_NAME_TEMPLATE,
            "rotate_every": os.getenv("S3_LOG_ROTATE_EVERY") or "1h",
            "compress": _env_flag("S3_LOG_COMPRESS", True),
        }
        max_size = os.getenv("S3_LOG_MAX_FILE_SIZE")
        if max_size:
            policy_fields["max_file_size_bytes"] = max_size
        try:
            return cls(
                s3=S3Settings.from_env(),
                app_id=app_id,
                policy=RotationPolicy(**policy_fields),
                upload_every=_env_optional("S3_LOG_UPLOAD_EVERY"),
                max_in_flight=int(os.getenv("S3_LOG_MAX_IN_FLIGHT", "2")),
            )
        except (ValidationError, ValueError) as exc:
            raise ConfigurationError(f"Invalid shipper configuration: {exc}") from exc


class LognexusConfig(BaseModel):
    """Top-level configuration consumed by init_logging()."""

    shipper: ShipperConfig = Field(default_factory=ShipperConfig)
    log_level: str = Field("INFO", description="Root log level")
    json_logs: bool = Field(True, description="Render records as JSON")
    enable_console_logging: bool = Field(True, description="Log to stderr")
    enable_s3_logging: bool = Field(True, description="Ship logs to S3")
    cache_clear_interval: Optional[float] = Field(
        3 * 3600.0,
        description="Seconds between cache clears; None disables the timer",
    )

    @field_validator("cache_clear_interval", mode="before")
    @classmethod
    def _parse_cache_interval(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        return parse_duration(value)

    @classmethod
    def from_env(cls) -> "LognexusConfig":
        enable_s3 = _env_flag("ENABLE_S3_LOGGING", True)
        try:
            return cls(
                shipper=ShipperConfig.from_env(),
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                json_logs=_env_flag("LOG_JSON", True),
                enable_console_logging=_env_flag("ENABLE_CONSOLE_LOGGING", True),
                enable_s3_logging=enable_s3,
                cache_clear_interval=os.getenv("CACHE_CLEAR_INTERVAL", "3h"),
            )
        except (ValidationError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc


__all__ = ["S3Settings", "RotationPolicy", "ShipperConfig", "LognexusConfig"]
