"""Client for the remote key-delivery service.

Retrieves content-key material in two sequential POST requests:
1. Register (or look up) the asset for a content ID
2. Request the key blob and key URI for that asset

Credentials are sent in an HTTP Basic Authorization header. They are never
placed in the URL, so they do not end up in proxy or server access logs.
"""

import base64
import ssl
import urllib.request
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote

from aws_lambda_powertools import Logger
from lxml import etree
from pydantic import ValidationError

from ..shared.exceptions import KeyDeliveryError
from ..shared.models import ContentKey
from .xml_parser import asset_id_to_kid, parse_asset_response, parse_key_response

logger = Logger(service="key-delivery")

USER_AGENT = "CencEncoder/1.0"
MAX_RESPONSE_BYTES = 64 * 1024


class KeyDeliveryClient:
    """Fetches content keys from the key-delivery API.

    Example:
        >>> client = KeyDeliveryClient("https://keys.example.com/api", "user", "secret")
        >>> key = client.fetch_content_key("my-movie")
        >>> key.has_fairplay
        True
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        self._auth_header = f"Basic {token}"
        self._ssl_context = ssl.create_default_context()

    def fetch_content_key(self, content_id: str) -> ContentKey:
        """Retrieve key material for a content ID.

        Args:
            content_id: Identifier of the content being protected

        Returns:
            ContentKey with key, key ID, IV, key URI and asset ID

        Raises:
            KeyDeliveryError: On any HTTP failure or malformed payload
        """
        logger.info("Registering asset with key-delivery service", extra={"content_id": content_id})
        asset_body = self._post(
            "/assets",
            _build_asset_request(content_id),
        )
        asset_id = parse_asset_response(asset_body)

        logger.info("Requesting content key", extra={"asset_id": asset_id})
        key_body = self._post(
            f"/assets/{quote(asset_id, safe='')}/keys",
            b"",
        )
        fields = parse_key_response(key_body)

        try:
            content_key = ContentKey(
                key=fields["key"],
                kid=asset_id_to_kid(asset_id),
                iv=fields["iv"],
                uri=fields["uri"],
                asset_id=asset_id,
            )
        except ValidationError as e:
            raise KeyDeliveryError(
                "Key-delivery response failed validation",
                {"asset_id": asset_id, "fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
            ) from e

        logger.info(
            "Content key retrieved",
            extra={"asset_id": asset_id, "key_uri": content_key.uri, "iv_length": len(fields["iv"])},
        )
        return content_key

    def _post(self, path: str, body: bytes) -> bytes:
        """POST to the key-delivery API and return the response body.

        Raises:
            KeyDeliveryError: If the request fails or returns a non-2xx status
        """
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": self._auth_header,
            "Content-Type": "application/xml",
            "Accept": "application/xml",
            "User-Agent": USER_AGENT,
        }
        request = urllib.request.Request(url, data=body, headers=headers, method="POST")

        try:
            with urllib.request.urlopen(
                request, context=self._ssl_context, timeout=self.timeout
            ) as response:
                status_code = response.status
                content = response.read(MAX_RESPONSE_BYTES + 1)
        except HTTPError as e:
            raise KeyDeliveryError(
                f"Key-delivery request failed with HTTP {e.code}",
                {"url": url, "status_code": e.code, "reason": str(e.reason)},
            ) from e
        except URLError as e:
            raise KeyDeliveryError(
                f"Key-delivery service unreachable: {e.reason}",
                {"url": url, "error": str(e.reason)},
            ) from e

        if not 200 <= status_code < 300:
            raise KeyDeliveryError(
                f"Key-delivery request failed with HTTP {status_code}",
                {"url": url, "status_code": status_code},
            )
        if len(content) > MAX_RESPONSE_BYTES:
            raise KeyDeliveryError(
                "Key-delivery response too large",
                {"url": url, "limit_bytes": MAX_RESPONSE_BYTES},
            )

        logger.debug("Key-delivery response received", extra={"url": url, "status_code": status_code})
        return content


def _build_asset_request(content_id: str) -> bytes:
    root = etree.Element("AssetRequest")
    etree.SubElement(root, "ContentId").text = content_id
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def create_key_delivery_client(settings: Any) -> KeyDeliveryClient:
    """Build a client from validated settings."""
    return KeyDeliveryClient(
        base_url=settings.key_delivery_url,
        username=settings.key_delivery_username,
        password=settings.key_delivery_password,
        timeout=settings.key_delivery_timeout_seconds,
    )
