"""
HTTP client for stats endpoints.

Performs a single authenticated GET and decodes the JSON body into a
StatSnapshot. Retry policy belongs to the caller.
"""

import http.client
import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from typing import Dict, Optional

from ..utils.errors import DecodeError, InvalidEndpoint, ServerError, TransportError
from .models import StatSnapshot

logger = logging.getLogger(__name__)

# Default request timeout in seconds
DEFAULT_TIMEOUT = 30.0

# Supported ways of sending the secret key
AUTH_STYLES = ("bearer", "api_key")


class StatsClient:
    """
    Fetch stats from a user-registered endpoint.

    Example:
        >>> client = StatsClient(timeout=10)
        >>> snapshot = client.fetch("https://example.com/stats", "secret")
        >>> snapshot.stats[0].label
        'USERS'
    """

    user_agent = "statly/0.3"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, auth_style: str = "bearer"):
        """
        Initialize the client.

        Args:
            timeout: Socket timeout in seconds for connect and read
            auth_style: "bearer" sends ``Authorization: Bearer <key>``,
                "api_key" sends ``api_key: <key>``

        Raises:
            ValueError: If auth_style is not supported
        """
        if auth_style not in AUTH_STYLES:
            raise ValueError(f"Unsupported auth_style: {auth_style!r} (expected one of {AUTH_STYLES})")
        self.timeout = timeout
        self.auth_style = auth_style

    def fetch(self, endpoint_url: str, secret_key: str, timeout: Optional[float] = None) -> StatSnapshot:
        """
        Fetch and decode a stats snapshot.

        Args:
            endpoint_url: Endpoint to GET
            secret_key: Secret sent in the auth header
            timeout: Optional override of the client timeout

        Returns:
            Decoded snapshot

        Raises:
            InvalidEndpoint: If the URL cannot be parsed
            TransportError: On connection failure or timeout
            ServerError: On any status other than 200
            DecodeError: If the body is not a valid stats payload
        """
        url = self._validate_url(endpoint_url)
        request = urllib.request.Request(url, headers=self._headers(secret_key), method="GET")
        timeout = self.timeout if timeout is None else timeout

        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                status = response.status
                body = response.read()

        except UnicodeError as e:
            # http.client only sends ASCII request lines and headers
            logger.warning(f"Stats request could not be encoded: {e}")
            raise InvalidEndpoint(str(e))

        except urllib.error.HTTPError as e:
            logger.warning(f"Stats endpoint returned HTTP {e.code} for {self._redact(url)}")
            raise ServerError(e.code)

        except urllib.error.URLError as e:
            logger.warning(f"Stats endpoint connection error for {self._redact(url)}: {e.reason}")
            raise TransportError(str(e.reason))

        except (socket.timeout, TimeoutError):
            logger.warning(f"Stats endpoint timed out after {timeout}s: {self._redact(url)}")
            raise TransportError(f"request timed out after {timeout:g}s")

        except (http.client.HTTPException, OSError) as e:
            logger.warning(f"Stats endpoint transport error for {self._redact(url)}: {e}")
            raise TransportError(str(e))

        if status != 200:
            logger.warning(f"Stats endpoint returned HTTP {status} for {self._redact(url)}")
            raise ServerError(status)

        return self._decode(body)

    def test_connection(self, endpoint_url: str, secret_key: str) -> StatSnapshot:
        """
        Validate a draft endpoint.

        Identical to fetch(); the full snapshot is returned so the caller can
        offer the available stats for selection.
        """
        logger.info(f"Testing connection to {self._redact(endpoint_url)}")
        return self.fetch(endpoint_url, secret_key)

    def _headers(self, secret_key: str) -> Dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        if self.auth_style == "bearer":
            headers["Authorization"] = f"Bearer {secret_key}"
        else:
            headers["api_key"] = secret_key
        return headers

    @staticmethod
    def _validate_url(endpoint_url: str) -> str:
        """Return the stripped URL or raise InvalidEndpoint."""
        if not isinstance(endpoint_url, str) or not endpoint_url.strip():
            raise InvalidEndpoint()

        url = endpoint_url.strip()
        try:
            parsed = urllib.parse.urlsplit(url)
            # Accessing port validates it
            parsed.port
        except ValueError as e:
            raise InvalidEndpoint(str(e))

        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise InvalidEndpoint(url)
        if any(ch.isspace() for ch in url):
            raise InvalidEndpoint(url)
        try:
            url.encode("ascii")
        except UnicodeEncodeError:
            raise InvalidEndpoint(f"{url} (non-ASCII characters must be percent-encoded)")
        return url

    @staticmethod
    def _decode(body: bytes) -> StatSnapshot:
        try:
            payload = json.loads(body.decode("utf-8"))
        except (ValueError, RecursionError) as e:
            # ValueError covers JSONDecodeError, bad UTF-8 and oversized integers
            logger.warning(f"Invalid JSON response from stats endpoint: {e}")
            raise DecodeError(str(e))

        try:
            return StatSnapshot.from_dict(payload)
        except ValueError as e:
            logger.warning(f"Unexpected stats response format: {e}")
            raise DecodeError(str(e))

    @staticmethod
    def _redact(url: str) -> str:
        """Drop the query string so tokens passed in URLs stay out of logs."""
        try:
            parts = urllib.parse.urlsplit(url)
        except ValueError:
            return "<invalid url>"
        return urllib.parse.urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
