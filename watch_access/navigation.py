"""
Navigation intents emitted to the presentation layer.

Routing itself is external; the pipeline only names where the viewer should
be offered to go next. Intents are delivered through a plain callback.
"""

from typing import Callable, List, Optional
from urllib.parse import quote

from .models import ClassifiedError

HOME = "home"
DISCOVER = "discover"
WALLET_TOP_UP = "wallet_top_up"
MEMBERSHIP = "membership"
SIGN_IN = "sign_in"
SIGN_UP = "sign_up"
CONTACT_SUPPORT = "contact_support"
RETRY = "retry"

NavigationCallback = Callable[[str, dict], None]


def remediation_actions(error: ClassifiedError, can_retry: bool) -> List[str]:
    """
    Actions to offer for a classified error, most relevant first.

    Args:
        error: The classified error being displayed
        can_retry: Whether the caller's retry budget still allows a retry

    Returns:
        List of action names (navigation intents plus "retry")
    """
    actions = []
    if can_retry and error.is_retryable:
        actions.append(RETRY)

    if error.kind == "access_denied":
        if error.requires_credits:
            actions.append(WALLET_TOP_UP)
        elif error.requires_membership:
            actions.append(MEMBERSHIP)
        elif error.requires_auth:
            actions.extend([SIGN_IN, SIGN_UP])

    if error.kind in ("not_found", "invalid_link"):
        actions.append(DISCOVER)

    actions.append(HOME)
    if error.kind in ("server_error", "unknown"):
        actions.append(CONTACT_SUPPORT)
    return actions


def support_mailto(
    support_email: str,
    error: ClassifiedError,
    identifier: Optional[str],
    retry_count: int
) -> str:
    """Build the contact-support mailto: URL with a prefilled error report."""
    subject = "Video Error Report"
    body = (
        f"Error: {error.message}\n"
        f"Identifier: {identifier}\n"
        f"Status: {error.status_code}\n"
        f"Retry Count: {retry_count}"
    )
    return f"mailto:{support_email}?subject={quote(subject)}&body={quote(body)}"
