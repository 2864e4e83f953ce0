"""AWS client wrappers.

Only S3 is used, to check the output bucket after an encoding finishes.
The encoding service writes to the same bucket with its own credentials;
this client uses the S3 credentials from the settings.
"""

from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from .config import get_settings

# AWS service configuration with retry
AWS_CONFIG = Config(
    retries={
        "max_attempts": 3,
        "mode": "adaptive",
    },
    connect_timeout=5,
    read_timeout=30,
)


@lru_cache(maxsize=1)
def get_s3_client() -> Any:
    """Get cached S3 client.

    Returns:
        boto3 S3 client authenticated with the output bucket credentials
    """
    settings = get_settings()
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        config=AWS_CONFIG,
    )


def clear_client_cache() -> None:
    """Clear cached AWS clients.

    Useful for testing when mocking needs to be reset.
    """
    get_s3_client.cache_clear()
