"""Shared utilities for the CENC encoding orchestrator."""

from .config import Settings, clear_settings_cache, get_settings
from .exceptions import (
    EncodingPipelineError,
    ConfigurationError,
    KeyDeliveryError,
    RemoteCallError,
    RetryableError,
    EncodingFailedError,
    EncodingTimeoutError,
    OutputVerificationError,
)
from .models import (
    EncodingStatus,
    PollState,
    ResourceKind,
    VideoRendition,
    AudioRendition,
    ContentKey,
    CreatedResource,
    EncodingRunResult,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Exceptions
    "EncodingPipelineError",
    "ConfigurationError",
    "KeyDeliveryError",
    "RemoteCallError",
    "RetryableError",
    "EncodingFailedError",
    "EncodingTimeoutError",
    "OutputVerificationError",
    # Models
    "EncodingStatus",
    "PollState",
    "ResourceKind",
    "VideoRendition",
    "AudioRendition",
    "ContentKey",
    "CreatedResource",
    "EncodingRunResult",
]
