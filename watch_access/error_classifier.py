"""
Failure classification for the watch pipeline.

Maps heterogeneous failure signals (HTTP status codes, transport exceptions,
free-text API errors) onto the closed ClassifiedError taxonomy:

    network, not_found, access_denied, invalid_link, server_error, unknown

Priority order:
    1. Network indicators anywhere in the stringified input
    2. HTTP status code table
    3. Ordered message substring rules
    4. Fallback to unknown (retryable)

classify() is total: it returns a ClassifiedError for any input and never
raises. The rule tables below are immutable and ordered; the first match wins.
"""

import re
from typing import Any, NamedTuple, Optional, Tuple

import requests

from .connectivity import get_network_monitor
from .models import ClassifiedError

NETWORK_INDICATORS: Tuple[str, ...] = (
    "fetch",
    "network",
    "connection",
    "timeout",
    "timed out",
    "offline",
    "err_network",
    "err_internet_disconnected",
    "networkerror",
)

NETWORK_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    ConnectionError,
    TimeoutError,
)

GENERIC_MESSAGE = "An unexpected error occurred"

_SHORTFALL_PATTERN = re.compile(r"(\d+)\s*credit", re.IGNORECASE)


class _StatusRule(NamedTuple):
    kind: str
    message: str
    retryable: bool
    requires_auth: bool = False
    requires_credits: bool = False


STATUS_RULES = {
    400: _StatusRule("invalid_link", "Invalid video identifier", False),
    401: _StatusRule("access_denied", "Authentication required", False, requires_auth=True),
    402: _StatusRule("access_denied", "Insufficient credits", False, requires_credits=True),
    404: _StatusRule("not_found", "Video not found or link expired", False),
    410: _StatusRule("not_found", "Share link has expired", False),
    429: _StatusRule("server_error", "Too many requests. Please try again later.", True),
    500: _StatusRule("server_error", "Server temporarily unavailable", True),
    502: _StatusRule("server_error", "Server temporarily unavailable", True),
    503: _StatusRule("server_error", "Server temporarily unavailable", True),
    504: _StatusRule("server_error", "Server temporarily unavailable", True),
}


class _MessageRule(NamedTuple):
    indicators: Tuple[str, ...]
    kind: str
    message: str
    retryable: bool
    requires_credits: bool = False
    requires_membership: bool = False
    auth_marker: Optional[str] = None


MESSAGE_RULES: Tuple[_MessageRule, ...] = (
    _MessageRule(("not found", "does not exist"), "not_found", "Video not found", False),
    _MessageRule(("expired", "token not found"), "not_found", "Share link has expired", False),
    _MessageRule(("invalid", "malformed", "empty identifier"), "invalid_link", "Invalid video link", False),
    _MessageRule(
        ("access denied", "unauthorized", "forbidden"),
        "access_denied", "Access denied", False,
        auth_marker="unauthorized",
    ),
    _MessageRule(
        ("credit", "insufficient funds"),
        "access_denied", "Insufficient credits", False,
        requires_credits=True,
    ),
    _MessageRule(
        ("membership", "premium", "subscription"),
        "access_denied", "Membership required", False,
        requires_membership=True,
    ),
    _MessageRule(
        ("server error", "internal error", "service unavailable", "server temporarily unavailable"),
        "server_error", "Server error", True,
    ),
    _MessageRule(("network", "connection", "timeout"), "network", "Network error", True),
)


def classify(error: Any, status_code: Optional[int] = None, *, online: Optional[bool] = None) -> ClassifiedError:
    """
    Classify any failure signal into a ClassifiedError.

    Args:
        error: A string, exception, dict with an "error" key, None, or anything else
        status_code: HTTP status code when the failure came from a response
        online: Connectivity override; defaults to the process network monitor

    Returns:
        ClassifiedError; never raises
    """
    message = _message_of(error)
    stringified = message if message or error is None else _safe_str(error)
    status_code = _as_status(status_code)

    if _is_network_error(error, stringified):
        return ClassifiedError(
            kind="network",
            message="Network connection failed",
            is_retryable=True,
            status_code=0,
            is_offline=_is_offline(online),
        )

    if status_code:
        result = _classify_status(status_code, message)
    elif message:
        result = _classify_message(message, online)
    else:
        result = ClassifiedError(kind="unknown", message=GENERIC_MESSAGE, is_retryable=True)

    if result.kind == "access_denied":
        result.credit_shortfall = extract_credit_shortfall(message)
    return result


def extract_credit_shortfall(message: Any) -> Optional[int]:
    """Return N from the first "N credit(s)" in a message, or None."""
    if not isinstance(message, str):
        return None
    match = _SHORTFALL_PATTERN.search(message)
    return int(match.group(1)) if match else None


def _message_of(error: Any) -> str:
    """Best-effort human-readable message for any input."""
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        inner = error.get("error") or error.get("message") or ""
        return inner if isinstance(inner, str) else _safe_str(inner)
    if isinstance(error, BaseException):
        return _safe_str(error)
    return ""


def _as_status(status_code: Any) -> Optional[int]:
    if status_code is None or isinstance(status_code, bool):
        return None
    try:
        return int(status_code)
    except (TypeError, ValueError, OverflowError):
        return None


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return ""


def _is_network_error(error: Any, message: str) -> bool:
    if isinstance(error, NETWORK_EXCEPTIONS):
        return True
    if not message:
        return False
    lowered = message.lower()
    return any(indicator in lowered for indicator in NETWORK_INDICATORS)


def _is_offline(online: Optional[bool]) -> bool:
    if online is None:
        online = get_network_monitor().is_online
    return not online


def _classify_status(status_code: int, message: str) -> ClassifiedError:
    if status_code == 403:
        lowered = message.lower()
        requires_credits = "credit" in lowered
        requires_membership = "membership" in lowered
        if requires_credits:
            text = "Insufficient credits"
        elif requires_membership:
            text = "Membership required"
        else:
            text = "Access denied"
        return ClassifiedError(
            kind="access_denied",
            message=text,
            is_retryable=False,
            status_code=status_code,
            requires_credits=requires_credits,
            requires_membership=requires_membership,
        )

    rule = STATUS_RULES.get(status_code)
    if rule is None and 500 <= status_code < 600:
        rule = STATUS_RULES[500]

    if rule is not None:
        return ClassifiedError(
            kind=rule.kind,
            message=rule.message,
            is_retryable=rule.retryable,
            status_code=status_code,
            requires_auth=rule.requires_auth,
            requires_credits=rule.requires_credits,
        )

    return ClassifiedError(
        kind="unknown",
        message=f"HTTP {status_code}: {message or 'Unknown error'}",
        is_retryable=status_code >= 500,
        status_code=status_code,
    )


def _classify_message(message: str, online: Optional[bool]) -> ClassifiedError:
    lowered = message.lower()
    for rule in MESSAGE_RULES:
        if not any(indicator in lowered for indicator in rule.indicators):
            continue
        return ClassifiedError(
            kind=rule.kind,
            message=rule.message,
            is_retryable=rule.retryable,
            requires_auth=bool(rule.auth_marker and rule.auth_marker in lowered),
            requires_credits=rule.requires_credits,
            requires_membership=rule.requires_membership,
            is_offline=_is_offline(online) if rule.kind == "network" else None,
        )

    return ClassifiedError(kind="unknown", message=message, is_retryable=True)


def user_message(error: ClassifiedError, is_share_link: bool = False) -> str:
    """
    Viewer-facing copy for a classified error.

    Args:
        error: The classified error
        is_share_link: Whether the viewer arrived through a share link

    Returns:
        A sentence suitable for an error view
    """
    if error.kind == "network":
        if error.is_offline:
            return "You appear to be offline. Please check your internet connection."
        return "Connection problem. Please check your internet and try again."

    if error.kind == "not_found":
        if is_share_link or error.status_code == 410:
            return "This share link has expired or is no longer valid."
        return "The video you're looking for could not be found."

    if error.kind == "access_denied":
        if error.requires_credits:
            if error.credit_shortfall:
                return f"You need {error.credit_shortfall} credits to watch this video."
            return "You need more credits to watch this video."
        if error.requires_membership:
            return "This content requires a premium membership to access."
        if error.requires_auth:
            return "Please sign in to watch this video."
        return "You don't have permission to access this content."

    if error.kind == "invalid_link":
        return "The video link appears to be invalid or malformed."

    if error.kind == "server_error":
        return "Our servers are experiencing issues. Please try again in a few minutes."

    return error.message or "An unexpected error occurred."
