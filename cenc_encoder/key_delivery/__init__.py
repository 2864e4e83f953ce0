"""Key-delivery module.

This module obtains CENC key material from the remote key service:
- Two-step asset/key retrieval over HTTPS
- XML response parsing and key/IV splitting
"""

from .client import KeyDeliveryClient, create_key_delivery_client
from .xml_parser import asset_id_to_kid, parse_asset_response, parse_key_response, split_key_data

__all__ = [
    "KeyDeliveryClient",
    "create_key_delivery_client",
    "asset_id_to_kid",
    "parse_asset_response",
    "parse_key_response",
    "split_key_data",
]
