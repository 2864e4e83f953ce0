"""Output verification after a finished encoding.

Validates:
1. The DASH MPD and HLS master playlist exist in the output bucket
2. At least one encrypted media segment was written
"""

from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from ..shared.exceptions import OutputVerificationError

logger = Logger(service="output-validator")

SEGMENT_SUFFIXES = (".m4s", ".mp4")


def list_output_keys(s3_client: Any, bucket: str, prefix: str) -> list[str]:
    """List every object key under a prefix.

    Raises:
        OutputVerificationError: If the bucket cannot be listed
    """
    keys: list[str] = []
    try:
        paginator = s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
    except (ClientError, BotoCoreError) as e:
        raise OutputVerificationError(
            f"Failed to list output files: {e}",
            {"bucket": bucket, "prefix": prefix},
        ) from e
    return keys


def verify_outputs(
    s3_client: Any,
    bucket: str,
    output_path: str,
    manifest_names: list[str],
) -> dict[str, Any]:
    """Check that manifests and segments landed in the output bucket.

    Args:
        s3_client: boto3 S3 client
        bucket: Output bucket name
        output_path: Absolute output folder of the encoding
        manifest_names: File names expected directly in the output folder

    Returns:
        Verification result with the individual checks

    Raises:
        OutputVerificationError: If any expected file is missing
    """
    prefix = output_path.strip("/")
    prefix = f"{prefix}/" if prefix else ""
    keys = list_output_keys(s3_client, bucket, prefix)

    result: dict[str, Any] = {
        "bucket": bucket,
        "prefix": prefix,
        "passed": True,
        "checks": [],
    }

    for manifest_name in manifest_names:
        found = f"{prefix}{manifest_name}" in keys
        result["checks"].append({
            "check": "manifest_exists",
            "file": manifest_name,
            "passed": found,
        })
        if not found:
            result["passed"] = False

    segment_files = [
        key for key in keys
        if key.endswith(SEGMENT_SUFFIXES) and "init" not in key.rsplit("/", 1)[-1].lower()
    ]
    result["checks"].append({
        "check": "segment_files",
        "passed": len(segment_files) > 0,
        "message": f"Found {len(segment_files)} segment file(s)",
    })
    if not segment_files:
        result["passed"] = False

    logger.info(
        "Output verification complete",
        extra={
            "bucket": bucket,
            "prefix": prefix,
            "passed": result["passed"],
            "file_count": len(keys),
        },
    )

    if not result["passed"]:
        missing = [c.get("file", c["check"]) for c in result["checks"] if not c["passed"]]
        raise OutputVerificationError(
            f"Output verification failed: missing {', '.join(missing)}",
            {"bucket": bucket, "prefix": prefix, "missing": missing},
        )

    return result
