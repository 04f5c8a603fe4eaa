"""Authorization for the repository endpoints.

An authorizer answers whether the current caller holds a capability. The
HTTP server builds one per request from the caller's credentials.
"""

import base64
import binascii
import hmac
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Optional

from composer_catalog.exceptions import Unauthorized

logger = logging.getLogger(__name__)

VIEW_PACKAGES = "view_packages"
DOWNLOAD_PACKAGES = "download_packages"


class Authorizer(ABC):
    """Abstract base class for capability checks."""

    @abstractmethod
    def can(self, capability: str) -> bool:
        """Check whether the caller holds a capability.

        Args:
            capability: Capability name (e.g., "view_packages").

        Returns:
            True if the caller holds the capability.
        """
        ...

    def require(self, capability: str) -> None:
        """Raise Unauthorized unless the caller holds the capability."""
        if not self.can(capability):
            raise Unauthorized(capability)


class AllowAllAuthorizer(Authorizer):
    """Grants every capability, for public repositories."""

    def can(self, capability: str) -> bool:
        return True


class DenyAllAuthorizer(Authorizer):
    """Grants nothing, for anonymous callers of a private repository."""

    def can(self, capability: str) -> bool:
        return False


class ApiKeyAuthorizer(Authorizer):
    """Grants capabilities to callers presenting a known API key.

    Composer sends credentials as HTTP Basic auth; the API key is the
    username and the password is ignored.

    Attributes:
        api_keys: Accepted API keys.
        capabilities: Capabilities granted to a valid key.
    """

    def __init__(
        self,
        api_keys: Iterable[str],
        presented_key: Optional[str],
        capabilities: Iterable[str] = (VIEW_PACKAGES, DOWNLOAD_PACKAGES),
    ) -> None:
        """Initialize the authorizer for one caller.

        Args:
            api_keys: Accepted API keys.
            presented_key: Key the caller presented, if any.
            capabilities: Capabilities a valid key grants.
        """
        self.api_keys = tuple(api_keys)
        self.capabilities = frozenset(capabilities)
        self._authenticated = presented_key is not None and any(
            # compare_digest only accepts ASCII str, so compare encoded bytes
            hmac.compare_digest(presented_key.encode("utf-8"), key.encode("utf-8"))
            for key in self.api_keys
        )

    def can(self, capability: str) -> bool:
        return self._authenticated and capability in self.capabilities


def parse_basic_auth(header: Optional[str]) -> Optional[str]:
    """Extract the username from an HTTP Basic Authorization header.

    Args:
        header: Raw Authorization header value.

    Returns:
        The username (API key), or None if the header is absent or malformed.
    """
    if not header:
        return None

    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.debug("Ignoring malformed Basic credentials")
        return None

    username, _, _password = decoded.partition(":")
    return username or None
