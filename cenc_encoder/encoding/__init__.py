"""Encoding module for the CENC orchestrator.

This module drives the remote encoding service:
- Service client with retries
- Ordered resource creation
- Status polling state machine
- Teardown of partially created resources
"""

from .client import EncodingServiceClient, create_encoding_client
from .orchestrator import EncodingOrchestrator, EncodingPlan
from .polling import EncodingStatusPoller, collect_error_messages
from .teardown import ResourceLedger

__all__ = [
    "EncodingServiceClient",
    "create_encoding_client",
    "EncodingOrchestrator",
    "EncodingPlan",
    "EncodingStatusPoller",
    "collect_error_messages",
    "ResourceLedger",
]
