"""
Request Authentication
Pluggable signing of CLOB REST requests.

The order itself always carries its own EIP-712 signature; these
authenticators only decide which extra headers accompany the HTTP call.
"""
import base64
import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from execution.errors import ConfigError


class RequestAuthenticator(ABC):
    """Produces auth headers for one request."""

    @abstractmethod
    def headers(self, method: str, request_path: str, body: str = "") -> Dict[str, str]:
        ...


class NoRequestAuth(RequestAuthenticator):
    """For venues that accept a signed order without request-level auth."""

    def headers(self, method: str, request_path: str, body: str = "") -> Dict[str, str]:
        return {}


def generate_hmac_signature(
    api_secret: str,
    timestamp: str,
    method: str,
    request_path: str,
    body: str = "",
) -> str:
    """
    Generate HMAC-SHA256 signature for API request

    Args:
        api_secret: url-safe base64 API secret
        timestamp: Unix timestamp string
        method: HTTP method
        request_path: API endpoint path
        body: Request body (empty for GET requests)

    Returns:
        url-safe base64 signature
    """
    message = timestamp + method + request_path + body
    digest = hmac.new(
        base64.urlsafe_b64decode(api_secret),
        message.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8")


class HmacRequestAuth(RequestAuthenticator):
    """Level-2 API key auth: timestamped HMAC over method, path and body."""

    def __init__(
        self,
        address: str,
        api_key: Optional[str],
        api_secret: Optional[str],
        api_passphrase: Optional[str],
        clock: Callable[[], float] = time.time,
    ):
        if not api_key or not api_secret or not api_passphrase:
            raise ConfigError(
                "POLYMARKET_API_KEY, POLYMARKET_API_SECRET and POLYMARKET_PASSPHRASE "
                "are required for HMAC authentication"
            )
        self.address = address
        self.api_key = api_key
        self._api_secret = api_secret
        self._api_passphrase = api_passphrase
        self._clock = clock

    def headers(self, method: str, request_path: str, body: str = "") -> Dict[str, str]:
        timestamp = str(int(self._clock()))
        signature = generate_hmac_signature(
            self._api_secret, timestamp, method, request_path, body
        )
        return {
            "POLY_ADDRESS": self.address,
            "POLY_SIGNATURE": signature,
            "POLY_TIMESTAMP": timestamp,
            "POLY_API_KEY": self.api_key,
            "POLY_PASSPHRASE": self._api_passphrase,
        }
