"""Environment-aware configuration with validation.

This module provides centralized configuration management using Pydantic Settings.
All environment variables are validated once at startup so that a run never
creates remote resources with half of its configuration missing.
"""

import posixpath
import re
from functools import lru_cache
from typing import Literal

from bitmovin_api_sdk import CloudRegion
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import AudioRendition, ContentKey, VideoRendition

HEX_32 = re.compile(r"^[0-9a-fA-F]{32}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Required settings have no default and are rejected when absent.
    A ``.env`` file in the working directory is read if present.

    Example:
        >>> settings = get_settings()
        >>> print(settings.build_absolute_path("video"))
        '/outputs/CencDrmContentProtection/video'
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        alias="ENVIRONMENT",
        description="Deployment environment",
    )

    # Encoding service
    bitmovin_api_key: str = Field(
        alias="BITMOVIN_API_KEY",
        min_length=1,
        description="API key for the encoding service",
    )
    bitmovin_tenant_org_id: str | None = Field(
        default=None,
        alias="BITMOVIN_TENANT_ORG_ID",
        description="Organisation to encode in (multi-tenant accounts only)",
    )
    cloud_region: str = Field(
        default="AUTO",
        alias="CLOUD_REGION",
        description="Cloud region the encoding runs in",
    )
    example_name: str = Field(
        default="CencDrmContentProtection",
        alias="EXAMPLE_NAME",
        min_length=1,
        description="Encoding name, also used as the output folder",
    )
    encoding_description: str = Field(
        default="Example with CENC DRM protection",
        alias="ENCODING_DESCRIPTION",
    )

    # S3 storage
    s3_access_key: str = Field(
        alias="S3_ACCESS_KEY",
        min_length=1,
        description="Access key for the input and output bucket",
    )
    s3_secret_key: str = Field(
        alias="S3_SECRET_KEY",
        min_length=1,
        description="Secret key for the input and output bucket",
    )
    s3_bucket_name: str = Field(
        alias="S3_BUCKET_NAME",
        min_length=1,
        description="Bucket holding the source file and receiving outputs",
    )
    s3_input_name: str = Field(
        default="S3 input",
        alias="S3_INPUT_NAME",
    )
    s3_output_name: str = Field(
        default="Fragmented Output",
        alias="S3_OUTPUT_NAME",
    )
    s3_input_path: str = Field(
        alias="S3_INPUT_PATH",
        min_length=1,
        description="Path of the source file inside the bucket",
    )
    s3_output_path: str = Field(
        alias="S3_OUTPUT_PATH",
        min_length=1,
        description="Base path for all outputs inside the bucket",
    )

    # Codec ladder
    video_bitrate: int = Field(default=1500000, ge=10000, alias="VIDEO_BITRATE")
    video_width: int = Field(default=1024, ge=16, le=7680, alias="VIDEO_WIDTH")
    audio_bitrate: int = Field(default=128000, ge=8000, le=512000, alias="AUDIO_BITRATE")
    segment_length: float = Field(
        default=4.0,
        gt=0.0,
        le=60.0,
        alias="SEGMENT_LENGTH",
        description="fMP4 segment length in seconds",
    )
    extra_video_renditions: str = Field(
        default="",
        alias="EXTRA_VIDEO_RENDITIONS",
        description="Additional rungs as comma-separated bitrate:width pairs",
    )

    # Static DRM key material
    cenc_key: str | None = Field(default=None, alias="CENC_KEY")
    cenc_kid: str | None = Field(default=None, alias="CENC_KID")
    cenc_widevine_pssh: str | None = Field(default=None, alias="CENC_WIDEVINE_PSSH")
    cenc_playready_la_url: str | None = Field(default=None, alias="CENC_PLAYREADY_LA_URL")

    # Key delivery service
    key_delivery_url: str | None = Field(
        default=None,
        alias="KEY_DELIVERY_URL",
        description="Base URL of the key-delivery API",
    )
    key_delivery_username: str | None = Field(default=None, alias="KEY_DELIVERY_USERNAME")
    key_delivery_password: str | None = Field(default=None, alias="KEY_DELIVERY_PASSWORD")
    key_delivery_content_id: str | None = Field(
        default=None,
        alias="KEY_DELIVERY_CONTENT_ID",
        description="Content ID registered with the key service (defaults to the encoding name)",
    )
    key_delivery_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        alias="KEY_DELIVERY_TIMEOUT_SECONDS",
    )

    # Polling
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        alias="POLL_INTERVAL_SECONDS",
    )
    max_wait_seconds: float = Field(
        default=14400.0,
        ge=0.0,
        alias="MAX_WAIT_SECONDS",
        description="Polling deadline in seconds; 0 disables the deadline",
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        alias="MAX_RETRIES",
        description="Maximum retry attempts for transient failures",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.1,
        le=30.0,
        alias="RETRY_DELAY_SECONDS",
        description="Initial delay between retries (exponential backoff)",
    )

    # Feature Flags
    start_encoding: bool = Field(
        default=True,
        alias="START_ENCODING",
        description="Start and poll the encoding after building it",
    )
    cleanup_on_failure: bool = Field(
        default=False,
        alias="CLEANUP_ON_FAILURE",
        description="Delete created resources when the run fails before starting",
    )
    verify_outputs: bool = Field(
        default=False,
        alias="VERIFY_OUTPUTS",
        description="Check the output bucket for manifests after success",
    )
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_REGION",
        description="Region of the output bucket (output verification only)",
    )

    # Status server
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("cenc_key", "cenc_kid", mode="before")
    @classmethod
    def validate_hex_key(cls, v: str | None) -> str | None:
        """Ensure key material is 16 bytes of hex."""
        if v in (None, ""):
            return None
        if not HEX_32.match(v):
            raise ValueError("Must be exactly 32 hexadecimal characters")
        return v.lower()

    @field_validator("key_delivery_url", "cenc_playready_la_url", mode="before")
    @classmethod
    def validate_https_url(cls, v: str | None) -> str | None:
        """Ensure service URLs use HTTPS."""
        if v in (None, ""):
            return None
        if not v.startswith("https://"):
            raise ValueError("URL must start with https://")
        return v.rstrip("/")

    @field_validator("cloud_region", mode="before")
    @classmethod
    def validate_cloud_region(cls, v: str) -> str:
        """Ensure the region is one the encoding service knows."""
        region = str(v).strip().upper()
        if region not in {member.value for member in CloudRegion}:
            raise ValueError(f"Unknown cloud region '{v}'")
        return region

    @field_validator("extra_video_renditions")
    @classmethod
    def validate_extra_renditions(cls, v: str) -> str:
        """Validate bitrate:width pairs against the rendition limits."""
        for pair in _split_pairs(v):
            bitrate, _, width = pair.partition(":")
            if not (bitrate.isdigit() and width.isdigit()):
                raise ValueError(f"Invalid rendition '{pair}' - expected bitrate:width")
            try:
                VideoRendition(bitrate=int(bitrate), width=int(width))
            except ValidationError as e:
                problems = "; ".join(
                    f"{'.'.join(map(str, err['loc']))} {err['msg']}" for err in e.errors()
                )
                raise ValueError(f"Invalid rendition '{pair}': {problems}") from None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return str(v).strip().upper()

    @model_validator(mode="after")
    def validate_key_source(self) -> "Settings":
        """Require one usable DRM key source."""
        if self.key_delivery_url:
            if not (self.key_delivery_username and self.key_delivery_password):
                raise ValueError(
                    "KEY_DELIVERY_USERNAME and KEY_DELIVERY_PASSWORD are required "
                    "when KEY_DELIVERY_URL is set"
                )
        elif not (self.cenc_key and self.cenc_kid):
            raise ValueError(
                "Either KEY_DELIVERY_URL or both CENC_KEY and CENC_KID must be set"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"

    @property
    def uses_key_delivery(self) -> bool:
        """Check if content keys come from the key-delivery service."""
        return self.key_delivery_url is not None

    @property
    def max_wait(self) -> float | None:
        """Get the polling deadline, or None when unbounded."""
        return self.max_wait_seconds or None

    @property
    def content_id(self) -> str:
        return self.key_delivery_content_id or self.example_name

    @property
    def video_renditions(self) -> list[VideoRendition]:
        """Get the video ladder: the primary rung followed by the extras."""
        renditions = [VideoRendition(bitrate=self.video_bitrate, width=self.video_width)]
        for pair in _split_pairs(self.extra_video_renditions):
            bitrate, _, width = pair.partition(":")
            renditions.append(VideoRendition(bitrate=int(bitrate), width=int(width)))
        return renditions

    @property
    def audio_rendition(self) -> AudioRendition:
        return AudioRendition(bitrate=self.audio_bitrate)

    def static_content_key(self) -> ContentKey | None:
        """Get the key configured through CENC_KEY/CENC_KID, if any."""
        if self.cenc_key and self.cenc_kid:
            return ContentKey(key=self.cenc_key, kid=self.cenc_kid)
        return None

    def build_absolute_path(self, relative_path: str) -> str:
        """Join the output base path, the encoding name and a relative path.

        Example:
            >>> settings.build_absolute_path("video")
            '/outputs/CencDrmContentProtection/video'
        """
        # "/" means the encoding folder itself, not the bucket root
        return posixpath.normpath(
            posixpath.join(self.s3_output_path, self.example_name, relative_path.lstrip("/"))
        )


def _split_pairs(value: str) -> list[str]:
    return [pair.strip() for pair in value.split(",") if pair.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached for the lifetime of the process.

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If required environment variables are missing or invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} problem(s)",
            {"errors": _describe_errors(e)},
        ) from e


def _describe_errors(error: ValidationError) -> list[dict[str, str]]:
    """Summarize validation errors without echoing secret input values."""
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "settings",
            "problem": err["msg"],
        }
        for err in error.errors()
    ]


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when environment variables change.
    """
    get_settings.cache_clear()
