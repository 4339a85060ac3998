"""
Credit-gated unlock flow.

State machine for one viewer request to watch paid content:

    idle -> confirming -> processing -> success
    confirming -> insufficient_funds | failed
    processing -> insufficient_funds | failed

failed and insufficient_funds may go back to idle (retry, as a fresh
attempt) or exit to a wallet top-up. The balance is read fresh on entering
confirming and again after a successful deduction; exactly one deduction
request is issued per confirming -> processing transition.
"""

from typing import Any, Dict, Optional

import requests

from .api_client import WatchApiClient
from .error_classifier import classify, extract_credit_shortfall
from .exceptions import ApiRequestError, InvalidTransitionError, ValidationError, WatchAccessError
from .logger import get_library_logger
from .models import (
    AccessDescriptor,
    ClassifiedError,
    UnlockAttempt,
    IDLE,
    CONFIRMING,
    PROCESSING,
    SUCCESS,
    INSUFFICIENT_FUNDS,
    FAILED,
)
from .navigation import NavigationCallback, WALLET_TOP_UP

TRANSITIONS = {
    IDLE: (CONFIRMING,),
    CONFIRMING: (PROCESSING, INSUFFICIENT_FUNDS, FAILED),
    PROCESSING: (SUCCESS, INSUFFICIENT_FUNDS, FAILED),
    SUCCESS: (),
    INSUFFICIENT_FUNDS: (IDLE,),
    FAILED: (IDLE,),
}

STEP_BALANCE_CHECK = "balance_check"
STEP_DEDUCTION = "deduction"

INSUFFICIENT_CREDITS_CODE = "insufficient_credits"
SHORTFALL_KEYS = ("shortfall", "coinsShortfall")
REQUIRED_KEYS = ("requiredCredits", "coinsRequired")
AVAILABLE_KEYS = ("currentBalance", "coinsAvailable")

MALFORMED_RESPONSE_MESSAGE = "Unexpected response format from server"


class CreditUnlockFlow:
    """Runs unlock attempts for one piece of paid content."""

    def __init__(
        self,
        client: WatchApiClient,
        descriptor: AccessDescriptor,
        identifier: Optional[str] = None,
        navigate: Optional[NavigationCallback] = None
    ):
        """
        Initialize the unlock flow.

        Args:
            client: Backend client used for balance reads and the deduction
            descriptor: Resolved descriptor of the content being unlocked
            identifier: Identifier to unlock; defaults to the share token or content id
            navigate: Callback receiving navigation intents (e.g. wallet top-up)
        """
        self.client = client
        self.descriptor = descriptor
        self.identifier = identifier or descriptor.share_token or descriptor.content_id
        self.navigate = navigate
        self.logger = get_library_logger()
        self.attempt = UnlockAttempt()
        self._cancel_requested = False

    @property
    def status(self) -> str:
        return self.attempt.status

    @property
    def unit_cost(self) -> int:
        return self.descriptor.unit_cost

    def begin(self) -> UnlockAttempt:
        """
        Start an attempt: idle -> confirming, with a fresh balance read.

        A call while an attempt is already under way is ignored.
        """
        if self.attempt.status != IDLE:
            self.logger.debug(f"Ignoring watch request while unlock is {self.attempt.status}")
            return self.attempt

        self._transition(CONFIRMING)
        try:
            wallet = self.client.fetch_wallet_balance()
        except ApiRequestError as e:
            return self._fail(classify(e, e.status_code), STEP_BALANCE_CHECK)
        except ValidationError as e:
            self.logger.error(f"Malformed wallet balance: {e}")
            return self._fail(classify({"error": MALFORMED_RESPONSE_MESSAGE}), STEP_BALANCE_CHECK)
        except (requests.exceptions.RequestException, WatchAccessError) as e:
            return self._fail(classify(e), STEP_BALANCE_CHECK)

        self.attempt.balance_before = wallet.balance
        self.logger.info(
            f"Unlock {self.identifier}: cost {self.unit_cost} credits, balance {wallet.balance}"
        )
        return self.attempt

    def confirm(self) -> UnlockAttempt:
        """
        Viewer confirmed the charge: confirming -> processing -> outcome.

        Only the first confirm of an attempt issues a deduction; any confirm
        outside the confirming state is a no-op.
        """
        if self.attempt.status != CONFIRMING:
            self.logger.debug(f"Ignoring confirm while unlock is {self.attempt.status}")
            return self.attempt

        balance = self.attempt.balance_before
        if balance is not None and balance < self.unit_cost:
            shortfall = self.unit_cost - balance
            self.logger.info(f"Pre-flight check: {shortfall} credits short, no deduction issued")
            return self._insufficient(shortfall, status_code=None)

        self._transition(PROCESSING)
        try:
            result = self.client.unlock(self.identifier)
        except ApiRequestError as e:
            return self._deduction_failed(classify(e, e.status_code), str(e), e.status_code, e.payload)
        except (requests.exceptions.RequestException, WatchAccessError) as e:
            return self._deduction_failed(classify(e), str(e), None, {})

        if result.get("success") is False:
            message = result.get("error") or "Failed to purchase access"
            return self._deduction_failed(classify(message), message, None, result)

        return self._complete(result)

    def cancel(self) -> bool:
        """
        Abandon the current attempt.

        Returns:
            True if the attempt was discarded (or will be, should an
            in-flight deduction fail); False once the charge has succeeded
        """
        status = self.attempt.status
        if status == SUCCESS:
            self.logger.debug("Unlock already succeeded, nothing to cancel")
            return False
        if status == PROCESSING:
            self.logger.info("Cancel requested while deduction is in flight")
            self._cancel_requested = True
            return True
        if status != IDLE:
            self.logger.info(f"Unlock attempt cancelled from {status}")
        self._discard()
        return True

    def retry(self) -> UnlockAttempt:
        """Replace a failed or short attempt with a fresh one and begin it."""
        if self.attempt.status not in (FAILED, INSUFFICIENT_FUNDS):
            self.logger.debug(f"Ignoring retry while unlock is {self.attempt.status}")
            return self.attempt
        self._transition(IDLE)
        self._discard()
        return self.begin()

    def top_up(self) -> bool:
        """Leave an insufficient-funds attempt for the wallet top-up page."""
        if self.attempt.status != INSUFFICIENT_FUNDS:
            return False
        shortfall = self.attempt.credit_shortfall
        self._transition(IDLE)
        self._discard()
        if self.navigate:
            self.navigate(WALLET_TOP_UP, {"shortfall": shortfall, "identifier": self.identifier})
        return True

    def _transition(self, target: str) -> None:
        current = self.attempt.status
        if target not in TRANSITIONS[current]:
            raise InvalidTransitionError(current, target)
        self.logger.debug(f"Unlock {self.identifier}: {current} -> {target}")
        if target != IDLE:
            self.attempt.status = target

    def _discard(self) -> None:
        self.attempt = UnlockAttempt()
        self._cancel_requested = False

    def _complete(self, result: Dict[str, Any]) -> UnlockAttempt:
        if self._cancel_requested:
            self.logger.warning("Cancel arrived after the deduction was issued; charge stands")
            self._cancel_requested = False

        try:
            self.attempt.balance_after = self.client.fetch_wallet_balance().balance
        except (requests.exceptions.RequestException, WatchAccessError) as e:
            self.logger.warning(f"Could not refresh balance after unlock: {e}")
            new_balance = result.get("newBalance")
            if isinstance(new_balance, int) and not isinstance(new_balance, bool):
                self.attempt.balance_after = new_balance

        self._transition(SUCCESS)
        self.logger.info(f"Unlocked {self.identifier}; balance now {self.attempt.balance_after}")
        return self.attempt

    def _deduction_failed(
        self,
        error: ClassifiedError,
        raw_message: str,
        status_code: Optional[int],
        payload: Optional[Dict[str, Any]]
    ) -> UnlockAttempt:
        payload = payload or {}

        if self._cancel_requested:
            self.logger.info("Deduction failed after cancel; discarding attempt")
            self._transition(FAILED)
            self._discard()
            return self.attempt

        if self._signals_shortfall(error, status_code, payload):
            shortfall = self._shortfall_amount(payload, raw_message)
            return self._insufficient(shortfall, status_code=status_code)

        self.logger.error(f"Unlock of {self.identifier} failed: {error.kind}: {error.message}")
        return self._fail(error, STEP_DEDUCTION)

    def _signals_shortfall(self, error: ClassifiedError, status_code: Optional[int], payload: Dict[str, Any]) -> bool:
        if status_code == 402:
            return True
        if payload.get("code") == INSUFFICIENT_CREDITS_CODE:
            return True
        if any(key in payload for key in SHORTFALL_KEYS):
            return True
        if any(key in payload for key in REQUIRED_KEYS) and any(key in payload for key in AVAILABLE_KEYS):
            return True
        # Text-scanning fallback for backends without structured fields
        return error.requires_credits

    def _shortfall_amount(self, payload: Dict[str, Any], raw_message: str) -> Optional[int]:
        for key in SHORTFALL_KEYS:
            value = _as_int(payload.get(key))
            if value is not None:
                return max(0, value)

        required = _first_int(payload, REQUIRED_KEYS)
        available = _first_int(payload, AVAILABLE_KEYS)
        if required is not None and available is not None:
            return max(0, required - available)

        extracted = extract_credit_shortfall(raw_message)
        if extracted is not None:
            return extracted

        if self.attempt.balance_before is not None:
            return max(0, self.unit_cost - self.attempt.balance_before)
        return None

    def _insufficient(self, shortfall: Optional[int], status_code: Optional[int]) -> UnlockAttempt:
        self._transition(INSUFFICIENT_FUNDS)
        self.attempt.credit_shortfall = shortfall
        self.attempt.error = ClassifiedError(
            kind="access_denied",
            message="Insufficient credits",
            is_retryable=False,
            status_code=status_code,
            requires_credits=True,
            credit_shortfall=shortfall,
        )
        self.logger.warning(f"Insufficient credits to unlock {self.identifier} (short {shortfall})")
        return self.attempt

    def _fail(self, error: ClassifiedError, step: str) -> UnlockAttempt:
        self._transition(FAILED)
        self.attempt.error = error
        self.attempt.failed_step = step
        return self.attempt


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _first_int(payload: Dict[str, Any], keys) -> Optional[int]:
    for key in keys:
        value = _as_int(payload.get(key))
        if value is not None:
            return value
    return None
