"""Pydantic models for data validation and serialization.

This module defines the values passed between orchestration steps:
- Codec ladder rungs
- Content key material for CENC DRM
- The ledger of remote resources created during a run
- Encoding status values and the final run result

All models use Pydantic v2 for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

HEX_32_PATTERN = r"^[0-9a-fA-F]{32}$"


class EncodingStatus(str, Enum):
    """Status values reported by the encoding service."""

    CREATED = "CREATED"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    CANCELED = "CANCELED"
    TRANSFER_ERROR = "TRANSFER_ERROR"

    @property
    def is_failure(self) -> bool:
        """Check if this status ends the encoding unsuccessfully."""
        return self in (
            EncodingStatus.ERROR,
            EncodingStatus.CANCELED,
            EncodingStatus.TRANSFER_ERROR,
        )


class PollState(str, Enum):
    """States of the status polling state machine."""

    POLLING = "POLLING"
    FINISHED = "FINISHED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self != PollState.POLLING


class ResourceKind(str, Enum):
    """Top-level remote resources that can be torn down after a failure."""

    ENCODING = "encoding"
    INPUT = "input"
    OUTPUT = "output"
    VIDEO_CONFIG = "video_config"
    AUDIO_CONFIG = "audio_config"
    DASH_MANIFEST = "dash_manifest"
    HLS_MANIFEST = "hls_manifest"


class VideoRendition(BaseModel):
    """One H.264 rung of the video ladder."""

    model_config = ConfigDict(frozen=True)

    bitrate: Annotated[int, Field(gt=0)] = Field(
        description="Target bitrate in bits per second",
    )
    width: Annotated[int, Field(gt=0, le=7680)] = Field(
        description="Output width in pixels; height follows the aspect ratio",
    )

    @property
    def name(self) -> str:
        """Generate configuration name (e.g., 'H264 1024w 1500kbps')."""
        return f"H264 {self.width}w {self.bitrate // 1000}kbps"


class AudioRendition(BaseModel):
    """AAC audio configuration."""

    model_config = ConfigDict(frozen=True)

    bitrate: Annotated[int, Field(gt=0)] = Field(
        default=128000,
        description="Target bitrate in bits per second",
    )

    @property
    def name(self) -> str:
        return f"AAC {self.bitrate // 1000}kbps"


class ContentKey(BaseModel):
    """Key material bound to each CENC DRM attachment.

    When the key comes from the key-delivery service, ``iv``, ``uri`` and
    ``asset_id`` are set and a FairPlay section is added to the DRM.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(
        pattern=HEX_32_PATTERN,
        description="16-byte content key as 32 hex characters",
    )
    kid: str = Field(
        pattern=HEX_32_PATTERN,
        description="16-byte key ID as 32 hex characters",
    )
    iv: str | None = Field(
        default=None,
        pattern=r"^([0-9a-fA-F]{16}|[0-9a-fA-F]{32})$",
        description="Initialization vector (8 or 16 bytes as hex)",
    )
    uri: str | None = Field(
        default=None,
        min_length=1,
        description="Key-delivery URI written into HLS playlists",
    )
    asset_id: str | None = Field(
        default=None,
        description="Asset identifier assigned by the key-delivery service",
    )

    @property
    def has_fairplay(self) -> bool:
        """Check if the key carries the fields needed for FairPlay."""
        return self.iv is not None and self.uri is not None


class CreatedResource(BaseModel):
    """Entry of the ledger of resources created during a run."""

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    resource_id: str = Field(min_length=1)
    name: str | None = None


class EncodingRunResult(BaseModel):
    """Result of one orchestrated run."""

    model_config = ConfigDict(frozen=True)

    encoding_id: str = Field(
        description="Remote encoding ID",
    )
    status: EncodingStatus = Field(
        description="Final encoding status",
    )
    started: bool = Field(
        default=True,
        description="False when the run only built the encoding",
    )
    manifest_ids: list[str] = Field(
        default_factory=list,
        description="IDs of the DASH and HLS manifests",
    )
    messages: list[str] = Field(
        default_factory=list,
        description="Diagnostic messages collected from the service",
    )
    started_at: datetime = Field(
        description="Run start timestamp",
    )
    completed_at: datetime | None = Field(
        default=None,
        description="Run completion timestamp",
    )

    @field_validator("manifest_ids")
    @classmethod
    def validate_manifest_ids(cls, v: list[str]) -> list[str]:
        if any(not manifest_id for manifest_id in v):
            raise ValueError("Manifest IDs cannot be empty")
        return v

    @property
    def is_success(self) -> bool:
        """Check if the encoding finished successfully."""
        return self.status == EncodingStatus.FINISHED

    @property
    def duration_seconds(self) -> float | None:
        """Calculate run duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
