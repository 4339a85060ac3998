"""
Watch session coordination.

WatchSessionController sequences one viewer's visit to a watch page:

1. Resolve the identifier to an access descriptor.
2. Owned / creator / already-unlocked content plays immediately.
3. Zero-cost content for a guest goes through the free-watch gate.
4. Paid content hands off to the credit unlock flow; after a successful
   charge the descriptor is resolved once more, since the server decides
   what the viewer may now watch.

Failures at any step are kept as ClassifiedErrors. retry() re-runs only the
step that failed and keeps everything already resolved.
"""

from typing import Optional

from .access_resolver import AccessResolver, looks_like_share_link
from .api_client import WatchApiClient
from .config import WatchConfig
from .error_classifier import user_message
from .exceptions import AccessResolutionError
from .guest_gate import GuestAccessGate
from .logger import get_library_logger
from .models import AccessDecision, ClassifiedError, FAILED, IDLE, INSUFFICIENT_FUNDS, SUCCESS
from .navigation import (
    NavigationCallback,
    remediation_actions,
    support_mailto,
    CONTACT_SUPPORT,
    DISCOVER,
    HOME,
    MEMBERSHIP,
    SIGN_IN,
    SIGN_UP,
)
from .retry_utils import RetryBudget, wait_before_retry
from .unlock_flow import CreditUnlockFlow

# Session outcomes
LOADING = "loading"
PLAY = "play"
PURCHASE_PROMPT = "purchase_prompt"
UNLOCKING = "unlocking"
GUEST_LIMIT_REACHED = "guest_limit_reached"
SIGN_IN_REQUIRED = "sign_in_required"
ERROR = "error"

# Steps that can fail and be retried
STEP_RESOLVE = "resolve"
STEP_UNLOCK = "unlock"
STEP_REFRESH = "refresh"


class WatchSessionController:
    """Coordinates access resolution, the guest gate and the unlock flow."""

    def __init__(
        self,
        identifier: str,
        client: WatchApiClient,
        gate: GuestAccessGate,
        config: WatchConfig,
        is_authenticated: bool = False,
        navigate: Optional[NavigationCallback] = None,
        resolver: Optional[AccessResolver] = None
    ):
        """
        Initialize a watch session.

        Args:
            identifier: Content id or share token from the watch URL
            client: Backend API client
            gate: Guest free-watch gate
            config: Retry and support settings
            is_authenticated: Whether the viewer is signed in
            navigate: Callback receiving (intent, details) navigation requests
            resolver: Descriptor resolver; built from the client when omitted
        """
        self.identifier = identifier
        self.client = client
        self.gate = gate
        self.config = config
        self.is_authenticated = is_authenticated
        self.navigate = navigate
        self.resolver = resolver or AccessResolver(client)
        self.logger = get_library_logger()

        self.outcome = LOADING
        self.descriptor = None
        self.error: Optional[ClassifiedError] = None
        self.failed_step: Optional[str] = None
        self.unlock_flow: Optional[CreditUnlockFlow] = None
        self.retry_budget = RetryBudget(config.max_retries)

    def load(self) -> AccessDecision:
        """Resolve the identifier and apply the access rules to the result."""
        self.outcome = LOADING
        try:
            self.descriptor = self.resolver.resolve(self.identifier)
        except AccessResolutionError as e:
            return self._set_error(e.error, STEP_RESOLVE)

        self._clear_error()
        self._apply_descriptor()
        return self.decision()

    def request_watch(self) -> AccessDecision:
        """Viewer pressed "Watch now" on paid content: start an unlock attempt."""
        if self.outcome != PURCHASE_PROMPT:
            self.logger.debug(f"Ignoring watch request in state {self.outcome}")
            return self.decision()

        if self.unlock_flow is None:
            self.unlock_flow = CreditUnlockFlow(
                self.client, self.descriptor, navigate=self.navigate
            )
        self.outcome = UNLOCKING
        self.unlock_flow.begin()
        self._track_unlock_failure()
        return self.decision()

    def confirm_unlock(self) -> AccessDecision:
        """Viewer confirmed the charge."""
        if self.outcome != UNLOCKING or self.unlock_flow is None:
            return self.decision()

        attempt = self.unlock_flow.confirm()
        if attempt.status == SUCCESS:
            self._refresh_after_purchase()
        else:
            self._track_unlock_failure()
        return self.decision()

    def cancel_unlock(self) -> bool:
        """Abandon the unlock attempt and return to the purchase prompt."""
        if self.unlock_flow is None or self.outcome != UNLOCKING:
            return False

        accepted = self.unlock_flow.cancel()
        if accepted and self.unlock_flow.status != "processing":
            self.outcome = PURCHASE_PROMPT
            self._clear_error()
        return accepted

    def top_up(self) -> bool:
        """Send a short viewer to the wallet and reset to the purchase prompt."""
        if self.unlock_flow is None or not self.unlock_flow.top_up():
            return False
        self.outcome = PURCHASE_PROMPT
        self._clear_error()
        return True

    def retry(self) -> AccessDecision:
        """
        Re-run the step that failed, if the error allows it.

        Already resolved state is kept: a failed unlock does not re-fetch the
        descriptor, and a failed post-purchase refresh does not charge again.
        """
        error = self._current_error()
        if error is None or not self.retry_budget.can_retry(error):
            self.logger.debug("Retry not available")
            return self.decision()

        count = self.retry_budget.consume()
        self.logger.info(f"Retrying {self.failed_step} (attempt {count}/{self.retry_budget.max_retries})")
        wait_before_retry(count, self.config, self.logger)

        if self.failed_step == STEP_RESOLVE:
            return self.load()
        if self.failed_step == STEP_REFRESH:
            self._refresh_after_purchase()
            return self.decision()
        if self.failed_step == STEP_UNLOCK and self.unlock_flow is not None:
            self.unlock_flow.retry()
            self._track_unlock_failure()
        return self.decision()

    def sign_in(self) -> AccessDecision:
        """The guest signed in: the free-watch counter no longer applies."""
        self.is_authenticated = True
        self.gate.reset()
        if self.descriptor is not None and self.outcome in (GUEST_LIMIT_REACHED, SIGN_IN_REQUIRED):
            self._apply_descriptor()
        return self.decision()

    def go_home(self) -> None:
        self._emit(HOME, {})

    def go_discover(self) -> None:
        self._emit(DISCOVER, {})

    def go_membership(self) -> None:
        self._emit(MEMBERSHIP, {})

    def contact_support(self) -> None:
        error = self._current_error()
        if error is None:
            return
        url = support_mailto(
            self.config.support_email, error, self.identifier, self.retry_budget.retry_count
        )
        self._emit(CONTACT_SUPPORT, {"url": url})

    def decision(self) -> AccessDecision:
        """Snapshot of what the presentation layer should render now."""
        error = self._current_error()
        can_retry = bool(error and self.retry_budget.can_retry(error))
        is_share_link = self._is_share_link()

        attempt = self.unlock_flow.attempt if self.unlock_flow else None
        decision = AccessDecision(
            outcome=self.outcome,
            descriptor=self.descriptor,
            error=error,
            message=user_message(error, is_share_link) if error else None,
            unlock_status=attempt.status if attempt else None,
            credit_shortfall=attempt.credit_shortfall if attempt else None,
            is_share_link=is_share_link,
            can_retry=can_retry,
        )

        if not self.is_authenticated:
            decision.remaining_free_watches = self.gate.remaining_free_watches()

        if error is not None:
            decision.actions = remediation_actions(error, can_retry)
        elif self.outcome == GUEST_LIMIT_REACHED:
            decision.actions = [SIGN_IN, SIGN_UP, HOME]
        elif self.outcome == SIGN_IN_REQUIRED:
            decision.actions = [SIGN_IN, SIGN_UP]
        return decision

    def _apply_descriptor(self) -> None:
        descriptor = self.descriptor

        if descriptor.has_access:
            self.outcome = PLAY
            self.logger.info(f"Playback granted ({descriptor.access_type})")
            return

        if descriptor.unit_cost == 0:
            if self.is_authenticated:
                self.outcome = PLAY
            elif self.gate.can_watch_free(self.is_authenticated, descriptor.unit_cost):
                self.gate.record_free_watch()
                self.outcome = PLAY
                self.logger.info("Free playback granted to guest")
            else:
                self.outcome = GUEST_LIMIT_REACHED
            return

        if not self.is_authenticated:
            self.logger.info("Paid content requested by a guest; sign-in required")
            self.outcome = SIGN_IN_REQUIRED
            return

        self.outcome = PURCHASE_PROMPT

    def _refresh_after_purchase(self) -> None:
        try:
            descriptor = self.resolver.resolve(self.identifier)
        except AccessResolutionError as e:
            self.logger.warning("Unlock succeeded but refreshing access failed")
            self._set_error(e.error, STEP_REFRESH)
            return

        self.descriptor = descriptor
        if descriptor.has_access:
            self.unlock_flow = None
            self._clear_error()
            self.outcome = PLAY
            self.logger.info("Playback granted after purchase")
            return

        self._set_error(
            ClassifiedError(
                kind="unknown",
                message="Purchase completed but access is not yet available",
                is_retryable=True,
            ),
            STEP_REFRESH,
        )

    def _track_unlock_failure(self) -> None:
        attempt = self.unlock_flow.attempt
        if attempt.status == FAILED:
            if self.failed_step != STEP_UNLOCK:
                self.retry_budget.reset()
            self.failed_step = STEP_UNLOCK
        elif attempt.status in (IDLE, SUCCESS):
            self.failed_step = None

    def _current_error(self) -> Optional[ClassifiedError]:
        if self.outcome == ERROR:
            return self.error
        if self.outcome == UNLOCKING and self.unlock_flow is not None:
            attempt = self.unlock_flow.attempt
            if attempt.status in (FAILED, INSUFFICIENT_FUNDS):
                return attempt.error
        return None

    def _set_error(self, error: ClassifiedError, step: str) -> AccessDecision:
        if step != self.failed_step:
            self.retry_budget.reset()
        self.outcome = ERROR
        self.error = error
        self.failed_step = step
        self.logger.warning(f"{step} failed: {error.kind}: {error.message}")
        return self.decision()

    def _clear_error(self) -> None:
        self.error = None
        self.failed_step = None
        self.retry_budget.reset()

    def _is_share_link(self) -> bool:
        if self.descriptor is not None:
            return self.descriptor.is_share_link
        return looks_like_share_link(self.identifier)

    def _emit(self, intent: str, details: dict) -> None:
        if self.navigate:
            self.navigate(intent, details)
