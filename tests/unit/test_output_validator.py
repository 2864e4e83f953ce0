"""Unit tests for output verification."""

from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cenc_encoder.output_validator.verifier import list_output_keys, verify_outputs
from cenc_encoder.shared.aws_clients import clear_client_cache, get_s3_client
from cenc_encoder.shared.exceptions import OutputVerificationError

OUTPUT_PATH = "/outputs/CencDrmContentProtection"
MANIFESTS = ["stream.mpd", "stream.m3u8"]


def _put(s3_client: Any, bucket: str, *keys: str) -> None:
    for key in keys:
        s3_client.put_object(Bucket=bucket, Key=key, Body=b"data")


class TestVerifyOutputs:
    """Tests for manifest and segment checks against S3."""

    def test_complete_output_passes(self, s3_client, output_bucket):
        _put(
            s3_client,
            output_bucket,
            "outputs/CencDrmContentProtection/stream.mpd",
            "outputs/CencDrmContentProtection/stream.m3u8",
            "outputs/CencDrmContentProtection/video/init.mp4",
            "outputs/CencDrmContentProtection/video/segment_0.m4s",
            "outputs/CencDrmContentProtection/audio/segment_0.m4s",
        )

        result = verify_outputs(s3_client, output_bucket, OUTPUT_PATH, MANIFESTS)

        assert result["passed"] is True
        assert result["prefix"] == "outputs/CencDrmContentProtection/"
        assert all(check["passed"] for check in result["checks"])

    def test_missing_manifest(self, s3_client, output_bucket):
        _put(
            s3_client,
            output_bucket,
            "outputs/CencDrmContentProtection/stream.mpd",
            "outputs/CencDrmContentProtection/video/segment_0.m4s",
        )

        with pytest.raises(OutputVerificationError) as exc_info:
            verify_outputs(s3_client, output_bucket, OUTPUT_PATH, MANIFESTS)

        assert exc_info.value.details["missing"] == ["stream.m3u8"]

    def test_init_segments_do_not_count(self, s3_client, output_bucket):
        """Test an output with only init segments is rejected."""
        _put(
            s3_client,
            output_bucket,
            "outputs/CencDrmContentProtection/stream.mpd",
            "outputs/CencDrmContentProtection/stream.m3u8",
            "outputs/CencDrmContentProtection/video/init.mp4",
        )

        with pytest.raises(OutputVerificationError, match="segment_files"):
            verify_outputs(s3_client, output_bucket, OUTPUT_PATH, MANIFESTS)

    def test_other_prefixes_ignored(self, s3_client, output_bucket):
        _put(
            s3_client,
            output_bucket,
            "outputs/OtherEncoding/stream.mpd",
            "outputs/OtherEncoding/stream.m3u8",
            "outputs/OtherEncoding/video/segment_0.m4s",
        )

        with pytest.raises(OutputVerificationError) as exc_info:
            verify_outputs(s3_client, output_bucket, OUTPUT_PATH, MANIFESTS)

        assert exc_info.value.details["missing"] == ["stream.mpd", "stream.m3u8", "segment_files"]


class TestListOutputKeys:
    def test_missing_bucket(self, s3_client):
        with pytest.raises(OutputVerificationError, match="Failed to list"):
            list_output_keys(s3_client, "no-such-bucket", "outputs/")

    def test_client_error_wrapped(self):
        s3_client = MagicMock()
        s3_client.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "ListObjectsV2"
        )

        with pytest.raises(OutputVerificationError) as exc_info:
            list_output_keys(s3_client, "bucket", "outputs/")

        assert exc_info.value.details == {"bucket": "bucket", "prefix": "outputs/"}


class TestS3Client:
    def test_client_is_cached(self):
        clear_client_cache()

        client = get_s3_client()

        assert client is get_s3_client()
        assert client.meta.region_name == "us-east-1"
        clear_client_cache()
