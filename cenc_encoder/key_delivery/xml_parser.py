"""XML parsing for key-delivery responses.

The service answers both requests with small XML documents:

    <Asset>
        <AssetId>6f1c2a4e-9b7d-4c1e-8a3f-2d5e6b7c8d9e</AssetId>
    </Asset>

    <KeyResponse>
        <KeyData>00112233445566778899aabbccddeeff0011223344556677</KeyData>
        <KeyUri>skd://6f1c2a4e9b7d4c1e8a3f2d5e6b7c8d9e</KeyUri>
    </KeyResponse>

Namespaces are ignored. Entity expansion and network access are disabled.
"""

import re

from lxml import etree

from ..shared.exceptions import KeyDeliveryError

KEY_HEX_LENGTH = 32
HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")


def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_blank_text=True,
    )


def _parse_document(content: bytes, expected_root: str) -> etree._Element:
    """Parse a response body and check its root element.

    Raises:
        KeyDeliveryError: If XML is malformed or the root is unexpected
    """
    try:
        root = etree.fromstring(content, parser=_parser())
    except etree.XMLSyntaxError as e:
        raise KeyDeliveryError(
            f"Invalid XML from key-delivery service: {e}",
            {"parse_error": str(e), "expected_root": expected_root},
        ) from e

    root_tag = etree.QName(root).localname
    if root_tag != expected_root:
        raise KeyDeliveryError(
            f"Invalid root element: expected '{expected_root}', got '{root_tag}'",
            {"actual_root": root_tag},
        )
    return root


def _get_required_text(parent: etree._Element, tag: str) -> str:
    """Get required child text, matching the tag without its namespace.

    Raises:
        KeyDeliveryError: If element not found or empty
    """
    for child in parent:
        if not isinstance(child.tag, str):
            continue
        if etree.QName(child).localname == tag:
            text = (child.text or "").strip()
            if not text:
                raise KeyDeliveryError(
                    f"Element '{tag}' cannot be empty",
                    {"element": tag},
                )
            return text

    raise KeyDeliveryError(
        f"Missing required element: {tag}",
        {"missing_element": tag},
    )


def parse_asset_response(content: bytes) -> str:
    """Extract the asset identifier from the asset registration response.

    Args:
        content: Raw response body

    Returns:
        Asset identifier as sent by the service
    """
    root = _parse_document(content, "Asset")
    return _get_required_text(root, "AssetId")


def parse_key_response(content: bytes) -> dict[str, str]:
    """Extract key, IV and key URI from the key response.

    Args:
        content: Raw response body

    Returns:
        Dictionary with ``key``, ``iv`` and ``uri``

    Raises:
        KeyDeliveryError: If any field is missing or the key blob is malformed
    """
    root = _parse_document(content, "KeyResponse")
    key_data = _get_required_text(root, "KeyData")
    uri = _get_required_text(root, "KeyUri")

    key, iv = split_key_data(key_data)
    return {"key": key, "iv": iv, "uri": uri}


def split_key_data(key_data: str) -> tuple[str, str]:
    """Split a hex blob into key and IV.

    The first 32 hex characters are the content key; everything after is
    the initialization vector.

    Example:
        >>> split_key_data("00" * 16 + "ff" * 8)
        ('00000000000000000000000000000000', 'ffffffffffffffff')

    Raises:
        KeyDeliveryError: If the blob is not hex or has no IV part
    """
    blob = key_data.strip()
    if not HEX_PATTERN.match(blob):
        raise KeyDeliveryError(
            "Key data is not hexadecimal",
            {"length": len(blob)},
        )
    if len(blob) <= KEY_HEX_LENGTH:
        raise KeyDeliveryError(
            f"Key data too short: expected more than {KEY_HEX_LENGTH} hex characters",
            {"length": len(blob)},
        )

    return blob[:KEY_HEX_LENGTH].lower(), blob[KEY_HEX_LENGTH:].lower()


def asset_id_to_kid(asset_id: str) -> str:
    """Derive the 16-byte key ID from a GUID asset identifier.

    Raises:
        KeyDeliveryError: If the asset ID is not a GUID
    """
    kid = asset_id.replace("-", "").lower()
    if len(kid) != KEY_HEX_LENGTH or not HEX_PATTERN.match(kid):
        raise KeyDeliveryError(
            "Asset ID is not a GUID; cannot derive key ID",
            {"asset_id": asset_id},
        )
    return kid
