"""Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup before application imports
- A mocked encoding service API that hands out predictable IDs
- Sample key-delivery payloads
- Fake clock/sleep for polling
"""

import itertools
import os
from types import SimpleNamespace
from typing import Any, Callable, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# Set application environment variables BEFORE importing any application code
os.environ["ENVIRONMENT"] = "dev"
os.environ["BITMOVIN_API_KEY"] = "test-api-key"
os.environ["S3_ACCESS_KEY"] = "testing"
os.environ["S3_SECRET_KEY"] = "testing"
os.environ["S3_BUCKET_NAME"] = "test-output-bucket"
os.environ["S3_INPUT_PATH"] = "inputs/sintel.mp4"
os.environ["S3_OUTPUT_PATH"] = "/outputs"
os.environ["CENC_KEY"] = "eb676abbcb345e96bbcf616630f1a3da"
os.environ["CENC_KID"] = "e6c28e0ef5fc4f3a9c1b4b5a1e2f3d4c"
os.environ["CENC_WIDEVINE_PSSH"] = "QWRvYmVhc2Rmc2FkZmFzZg=="
os.environ["CENC_PLAYREADY_LA_URL"] = "https://playready.example.com/rightsmanager.asmx"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["POWERTOOLS_METRICS_NAMESPACE"] = "CencEncoderTests"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

from cenc_encoder.shared.config import Settings, clear_settings_cache  # noqa: E402

KEY_DELIVERY_ENV = {
    "KEY_DELIVERY_URL": "https://keys.example.com/api",
    "KEY_DELIVERY_USERNAME": "drm-user",
    "KEY_DELIVERY_PASSWORD": "drm-secret",
}


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Every test sees settings built from its own environment."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    """Settings with static CENC key material."""
    return Settings(
        poll_interval_seconds=5.0,
        max_wait_seconds=60.0,
        max_retries=2,
    )


@pytest.fixture
def key_delivery_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings that fetch keys from the key-delivery service."""
    monkeypatch.delenv("CENC_KEY", raising=False)
    monkeypatch.delenv("CENC_KID", raising=False)
    for name, value in KEY_DELIVERY_ENV.items():
        monkeypatch.setenv(name, value)
    return Settings()


# =============================================================================
# Encoding service fixtures
# =============================================================================


def _resource(resource_id: str) -> SimpleNamespace:
    return SimpleNamespace(id=resource_id)


def _id_sequence(prefix: str) -> Callable[..., SimpleNamespace]:
    counter = itertools.count(1)
    return lambda **kwargs: _resource(f"{prefix}{next(counter)}")


def make_task(status: str, progress: int = 0, messages: list[Any] | None = None) -> SimpleNamespace:
    """Build a status task shaped like the SDK's Task."""
    return SimpleNamespace(status=status, progress=progress, messages=messages or [])


def make_message(message_type: str, text: str) -> SimpleNamespace:
    return SimpleNamespace(type=message_type, text=text)


@pytest.fixture
def bitmovin_api() -> MagicMock:
    """Mocked BitmovinApi returning predictable resource IDs.

    encoding=E1, input=in1, output=out1, video configs vc1.., audio ac1,
    streams st1.., muxings mx1.., DRM drm1.., manifests dash1/hls1.
    """
    api = MagicMock(name="BitmovinApi")
    api.encoding.encodings.create.return_value = _resource("E1")
    api.encoding.inputs.s3.create.return_value = _resource("in1")
    api.encoding.outputs.s3.create.return_value = _resource("out1")
    api.encoding.configurations.video.h264.create.side_effect = _id_sequence("vc")
    api.encoding.configurations.audio.aac.create.side_effect = _id_sequence("ac")
    api.encoding.encodings.streams.create.side_effect = _id_sequence("st")
    api.encoding.encodings.muxings.fmp4.create.side_effect = _id_sequence("mx")
    api.encoding.encodings.muxings.fmp4.drm.cenc.create.side_effect = _id_sequence("drm")
    api.encoding.manifests.dash.default.create.return_value = _resource("dash1")
    api.encoding.manifests.hls.default.create.return_value = _resource("hls1")
    api.encoding.encodings.status.return_value = make_task("FINISHED", progress=100)
    return api


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def asset_response_xml() -> bytes:
    return b"""<?xml version="1.0" encoding="UTF-8"?>
<Asset>
    <AssetId>6f1c2a4e-9b7d-4c1e-8a3f-2d5e6b7c8d9e</AssetId>
</Asset>"""


@pytest.fixture
def key_response_xml() -> bytes:
    """Key response with a 48-character hex blob (32 key + 16 IV)."""
    return b"""<?xml version="1.0" encoding="UTF-8"?>
<KeyResponse>
    <KeyData>00112233445566778899AABBCCDDEEFF0123456789ABCDEF</KeyData>
    <KeyUri>skd://6f1c2a4e9b7d4c1e8a3f2d5e6b7c8d9e</KeyUri>
</KeyResponse>"""


# =============================================================================
# AWS Mocking Fixtures
# =============================================================================


@pytest.fixture
def s3_client() -> Generator[Any, None, None]:
    """Mocked S3 client."""
    with mock_aws():
        yield boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def output_bucket(s3_client: Any) -> str:
    s3_client.create_bucket(Bucket="test-output-bucket")
    return "test-output-bucket"
