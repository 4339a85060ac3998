"""
Data model for watch access resolution.

Dataclasses for the access descriptor returned by the backend, classified
errors, wallet balances and the per-click unlock attempt. Invariants are
checked in __post_init__ so an inconsistent record never leaves this module.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from .exceptions import ValidationError

AccessType = Literal["owned", "creator_self_access", "token_preview", "requires_purchase"]
ACCESS_TYPES = ("owned", "creator_self_access", "token_preview", "requires_purchase")

ErrorKind = Literal["network", "not_found", "access_denied", "invalid_link", "server_error", "unknown"]
ERROR_KINDS = ("network", "not_found", "access_denied", "invalid_link", "server_error", "unknown")

ALWAYS_RETRYABLE_KINDS = ("network", "server_error")
NEVER_RETRYABLE_KINDS = ("not_found", "invalid_link", "access_denied")

# Unlock attempt states
IDLE = "idle"
CONFIRMING = "confirming"
PROCESSING = "processing"
SUCCESS = "success"
INSUFFICIENT_FUNDS = "insufficient_funds"
FAILED = "failed"
UNLOCK_STATUSES = (IDLE, CONFIRMING, PROCESSING, SUCCESS, INSUFFICIENT_FUNDS, FAILED)


def _coerce_cost(value: Any) -> int:
    """Parse a credit price, rejecting negatives and non-integers."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"Invalid unit cost: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Unit cost must be a whole number of credits: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        try:
            value = int(str(value).strip())
        except ValueError:
            raise ValidationError(f"Invalid unit cost: {value!r}")
    if value < 0:
        raise ValidationError(f"Unit cost cannot be negative: {value}")
    return value


@dataclass
class ClassifiedError:
    """Normalized representation of any failure in the pipeline."""
    kind: ErrorKind
    message: str
    is_retryable: bool
    status_code: Optional[int] = None
    requires_auth: bool = False
    requires_credits: bool = False
    requires_membership: bool = False
    credit_shortfall: Optional[int] = None
    is_offline: Optional[bool] = None

    def __post_init__(self):
        if self.kind not in ERROR_KINDS:
            raise ValidationError(f"Unknown error kind: {self.kind}")
        if self.kind in ALWAYS_RETRYABLE_KINDS and not self.is_retryable:
            raise ValidationError(f"{self.kind} errors must be retryable")
        if self.kind in NEVER_RETRYABLE_KINDS and self.is_retryable:
            raise ValidationError(f"{self.kind} errors cannot be retryable")
        if self.credit_shortfall is not None and self.credit_shortfall < 0:
            raise ValidationError("Credit shortfall cannot be negative")


@dataclass
class VideoSummary:
    """The subset of the backend's video record the pipeline cares about."""
    id: str
    title: str = "Untitled"
    creator_name: Optional[str] = None
    duration: int = 0
    video_url: Optional[str] = None
    share_token: Optional[str] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "VideoSummary":
        creator = data.get("creator")
        if not isinstance(creator, dict):
            creator = {}
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "Untitled",
            creator_name=creator.get("displayName") or creator.get("username"),
            duration=int(data.get("duration") or 0),
            video_url=data.get("videoUrl") or None,
            share_token=data.get("shareToken") or None,
        )


@dataclass
class AccessDescriptor:
    """Server-derived record of whether and how the viewer may watch a video."""
    content_id: str
    has_access: bool
    access_type: AccessType
    requires_purchase: bool
    unit_cost: int = 0
    share_token: Optional[str] = None
    video: Optional[VideoSummary] = None

    def __post_init__(self):
        if self.access_type not in ACCESS_TYPES:
            raise ValidationError(f"Unknown access type: {self.access_type}")
        if self.has_access and self.requires_purchase:
            raise ValidationError("A descriptor granting access cannot also require purchase")
        if self.access_type == "requires_purchase" and not self.requires_purchase:
            raise ValidationError("Access type requires_purchase must set requires_purchase")
        self.unit_cost = _coerce_cost(self.unit_cost)

    @property
    def is_share_link(self) -> bool:
        """True when the content was reached through a share token."""
        return bool(self.share_token or (self.video and self.video.share_token))

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "AccessDescriptor":
        """
        Build a descriptor from a watch-descriptor response body.

        Args:
            data: Decoded JSON body with a successful result

        Returns:
            AccessDescriptor

        Raises:
            ValidationError: If required fields are missing or inconsistent
        """
        video_data = data.get("video")
        if not isinstance(video_data, dict):
            raise ValidationError("Watch descriptor response has no video record")

        access_type = data.get("accessType")
        if access_type is None:
            raise ValidationError("Watch descriptor response has no access type")

        if "coinPrice" in video_data and video_data["coinPrice"] is not None:
            unit_cost = video_data["coinPrice"]
        else:
            unit_cost = video_data.get("creditCost")

        video = VideoSummary.from_response(video_data)
        return cls(
            content_id=video.id,
            has_access=bool(data.get("hasAccess")),
            access_type=access_type,
            requires_purchase=bool(data.get("requiresPurchase")),
            unit_cost=unit_cost,
            share_token=data.get("shareToken") or None,
            video=video,
        )


@dataclass
class WalletBalance:
    """A freshly fetched credit balance. Never cached across attempts."""
    balance: int

    def __post_init__(self):
        if isinstance(self.balance, bool) or not isinstance(self.balance, int) or self.balance < 0:
            raise ValidationError(f"Invalid wallet balance: {self.balance!r}")

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "WalletBalance":
        if not isinstance(data, dict) or "balance" not in data:
            raise ValidationError("Wallet balance response has no balance field")
        value = data["balance"]
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return cls(balance=value)


@dataclass
class UnlockAttempt:
    """One run of the balance check -> confirmation -> deduction state machine."""
    status: str = IDLE
    error: Optional[ClassifiedError] = None
    balance_before: Optional[int] = None
    balance_after: Optional[int] = None
    credit_shortfall: Optional[int] = None
    failed_step: Optional[str] = None

    def __post_init__(self):
        if self.status not in UNLOCK_STATUSES:
            raise ValidationError(f"Unknown unlock status: {self.status}")

    @property
    def is_terminal(self) -> bool:
        return self.status in (SUCCESS, INSUFFICIENT_FUNDS, FAILED)


@dataclass
class AccessDecision:
    """What the presentation layer should render for the current session."""
    outcome: str
    descriptor: Optional[AccessDescriptor] = None
    error: Optional[ClassifiedError] = None
    message: Optional[str] = None
    unlock_status: Optional[str] = None
    credit_shortfall: Optional[int] = None
    remaining_free_watches: Optional[int] = None
    is_share_link: bool = False
    can_retry: bool = False
    actions: List[str] = field(default_factory=list)
