"""
Watch descriptor resolution.

Turns an opaque identifier into an AccessDescriptor with a single call to
the backend. Ownership, creator self-access and share-token validity are
decided server-side; this module only interprets the answer. Every failure
leaves as an AccessResolutionError carrying a ClassifiedError.
"""

import requests

from .api_client import WatchApiClient
from .error_classifier import classify
from .exceptions import AccessResolutionError, ApiRequestError, ValidationError, WatchAccessError
from .logger import get_library_logger
from .models import AccessDescriptor

# Identifiers longer than this are probably share tokens. Only ever used to
# pick error copy when no descriptor could be fetched.
SHARE_LINK_LENGTH_HINT = 20


class AccessResolver:
    """Resolves content identifiers to access descriptors."""

    def __init__(self, client: WatchApiClient):
        self.client = client
        self.logger = get_library_logger()

    def resolve(self, identifier: str) -> AccessDescriptor:
        """
        Resolve an identifier to the viewer's access descriptor.

        Args:
            identifier: Content id or share token

        Returns:
            AccessDescriptor for the current viewer

        Raises:
            AccessResolutionError: For any failure, with the classified error attached
        """
        if not isinstance(identifier, str) or not identifier.strip():
            self.logger.warning("Refusing to resolve an empty identifier")
            raise AccessResolutionError(classify("Empty identifier"))

        identifier = identifier.strip()
        try:
            data = self.client.fetch_watch_descriptor(identifier)
        except ApiRequestError as e:
            raise AccessResolutionError(classify(e, e.status_code))
        except (requests.exceptions.RequestException, WatchAccessError) as e:
            raise AccessResolutionError(classify(e))

        if not data.get("success", False):
            message = data.get("error") or "Failed to load video"
            self.logger.warning(f"Watch descriptor for {identifier} unsuccessful: {message}")
            raise AccessResolutionError(classify(message))

        try:
            descriptor = AccessDescriptor.from_response(data)
        except (ValidationError, TypeError, ValueError, AttributeError) as e:
            self.logger.error(f"Malformed watch descriptor for {identifier}: {e}")
            raise AccessResolutionError(classify({"error": "Unexpected response format from server"}))

        self.logger.info(
            f"Resolved {identifier}: access={descriptor.has_access} "
            f"type={descriptor.access_type} cost={descriptor.unit_cost}"
        )
        return descriptor


def looks_like_share_link(identifier: str) -> bool:
    """Length-based guess used for error copy only, never for access decisions."""
    return isinstance(identifier, str) and len(identifier.strip()) > SHARE_LINK_LENGTH_HINT
