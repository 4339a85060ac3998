"""
Unit tests for unlock_flow.py.

The backend client is a MagicMock; every test checks how many deduction
requests were issued as well as the resulting attempt state.
"""

import unittest
from unittest.mock import MagicMock

import requests

from watch_access.api_client import WatchApiClient
from watch_access.exceptions import ApiRequestError, InvalidTransitionError, ValidationError
from watch_access.models import (
    AccessDescriptor,
    WalletBalance,
    CONFIRMING,
    FAILED,
    IDLE,
    INSUFFICIENT_FUNDS,
    PROCESSING,
    SUCCESS,
)
from watch_access.navigation import WALLET_TOP_UP
from watch_access.unlock_flow import CreditUnlockFlow, STEP_BALANCE_CHECK, STEP_DEDUCTION
from watch_access import unlock_flow


def paid_descriptor(cost=10, share_token=None):
    return AccessDescriptor(
        content_id="vid_1",
        has_access=False,
        access_type="requires_purchase",
        requires_purchase=True,
        unit_cost=cost,
        share_token=share_token,
    )


class UnlockFlowTestCase(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock(spec=WatchApiClient)
        self.client.fetch_wallet_balance.return_value = WalletBalance(50)
        self.client.unlock.return_value = {"success": True, "newBalance": 40}
        self.navigate = MagicMock()
        self.flow = CreditUnlockFlow(self.client, paid_descriptor(), navigate=self.navigate)


class TestHappyPath(UnlockFlowTestCase):

    def test_begin_reads_balance(self):
        attempt = self.flow.begin()

        self.assertEqual(attempt.status, CONFIRMING)
        self.assertEqual(attempt.balance_before, 50)
        self.client.unlock.assert_not_called()

    def test_confirm_deducts_once_and_rereads_balance(self):
        self.client.fetch_wallet_balance.side_effect = [WalletBalance(50), WalletBalance(40)]

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, SUCCESS)
        self.assertTrue(attempt.is_terminal)
        self.assertEqual(attempt.balance_after, 40)
        self.client.unlock.assert_called_once_with("vid_1")
        self.assertEqual(self.client.fetch_wallet_balance.call_count, 2)

    def test_share_token_is_unlock_identifier(self):
        flow = CreditUnlockFlow(self.client, paid_descriptor(share_token="tok_abc"))
        flow.begin()
        flow.confirm()
        self.client.unlock.assert_called_once_with("tok_abc")

    def test_balance_reread_failure_falls_back_to_response(self):
        self.client.fetch_wallet_balance.side_effect = [
            WalletBalance(50),
            requests.exceptions.ConnectionError("down"),
        ]

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, SUCCESS)
        self.assertEqual(attempt.balance_after, 40)

    def test_malformed_balance_after_unlock_keeps_success(self):
        self.client.fetch_wallet_balance.side_effect = [
            WalletBalance(50),
            ValidationError("Invalid wallet balance: -1"),
        ]

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, SUCCESS)
        self.assertIsNone(attempt.error)
        self.assertEqual(attempt.balance_after, 40)


class TestSingleDeduction(UnlockFlowTestCase):

    def test_confirm_during_processing_is_ignored(self):
        def reentrant_unlock(identifier):
            self.assertEqual(self.flow.status, PROCESSING)
            self.flow.confirm()
            return {"success": True}

        self.client.unlock.side_effect = reentrant_unlock

        self.flow.begin()
        self.flow.confirm()

        self.assertEqual(self.client.unlock.call_count, 1)
        self.assertEqual(self.flow.status, SUCCESS)

    def test_confirm_after_success_is_ignored(self):
        self.flow.begin()
        self.flow.confirm()
        self.flow.confirm()
        self.assertEqual(self.client.unlock.call_count, 1)

    def test_confirm_without_begin_is_ignored(self):
        self.assertEqual(self.flow.confirm().status, IDLE)
        self.client.unlock.assert_not_called()

    def test_begin_while_confirming_is_ignored(self):
        self.flow.begin()
        self.flow.begin()
        self.assertEqual(self.client.fetch_wallet_balance.call_count, 1)


class TestInsufficientFunds(UnlockFlowTestCase):

    def test_preflight_shortfall_skips_deduction(self):
        self.client.fetch_wallet_balance.return_value = WalletBalance(3)

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, INSUFFICIENT_FUNDS)
        self.assertEqual(attempt.credit_shortfall, 7)
        self.assertTrue(attempt.error.requires_credits)
        self.assertEqual(attempt.error.kind, "access_denied")
        self.client.unlock.assert_not_called()

    def test_exact_balance_is_enough(self):
        self.client.fetch_wallet_balance.return_value = WalletBalance(10)
        self.flow.begin()
        self.assertEqual(self.flow.confirm().status, SUCCESS)

    def test_402_with_required_and_current(self):
        self.client.unlock.side_effect = ApiRequestError(
            "Insufficient credits", 402,
            {"success": False, "error": "Insufficient credits", "requiredCredits": 100, "currentBalance": 50},
        )

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, INSUFFICIENT_FUNDS)
        self.assertEqual(attempt.credit_shortfall, 50)
        self.assertEqual(attempt.error.status_code, 402)

    def test_400_with_shortfall_field(self):
        self.client.unlock.side_effect = ApiRequestError(
            "Not enough coins", 400, {"code": "insufficient_credits", "coinsShortfall": 12},
        )

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, INSUFFICIENT_FUNDS)
        self.assertEqual(attempt.credit_shortfall, 12)
        self.assertEqual(attempt.error.kind, "access_denied")

    def test_shortfall_from_message_text(self):
        self.client.unlock.return_value = {"success": False, "error": "You need 8 credits to watch this video"}

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, INSUFFICIENT_FUNDS)
        self.assertEqual(attempt.credit_shortfall, 8)

    def test_top_up_emits_navigation_and_resets(self):
        self.client.fetch_wallet_balance.return_value = WalletBalance(3)
        self.flow.begin()
        self.flow.confirm()

        self.assertTrue(self.flow.top_up())

        self.navigate.assert_called_once_with(WALLET_TOP_UP, {"shortfall": 7, "identifier": "vid_1"})
        self.assertEqual(self.flow.status, IDLE)

    def test_top_up_outside_insufficient_funds(self):
        self.assertFalse(self.flow.top_up())
        self.navigate.assert_not_called()


class TestFailures(UnlockFlowTestCase):

    def test_balance_check_failure(self):
        self.client.fetch_wallet_balance.side_effect = ApiRequestError("Service unavailable", 503)

        attempt = self.flow.begin()

        self.assertEqual(attempt.status, FAILED)
        self.assertEqual(attempt.failed_step, STEP_BALANCE_CHECK)
        self.assertEqual(attempt.error.kind, "server_error")

    def test_malformed_balance_is_retryable_unknown(self):
        self.client.fetch_wallet_balance.side_effect = ValidationError("Invalid wallet balance: 12.5")

        attempt = self.flow.begin()

        self.assertEqual(attempt.status, FAILED)
        self.assertEqual(attempt.failed_step, STEP_BALANCE_CHECK)
        self.assertEqual(attempt.error.kind, "unknown")
        self.assertTrue(attempt.error.is_retryable)
        self.client.unlock.assert_not_called()

    def test_deduction_failure_carries_error(self):
        self.client.unlock.side_effect = ApiRequestError("Internal server error", 500)

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, FAILED)
        self.assertEqual(attempt.failed_step, STEP_DEDUCTION)
        self.assertEqual(attempt.error.kind, "server_error")
        self.assertTrue(attempt.error.is_retryable)

    def test_network_failure_during_deduction(self):
        self.client.unlock.side_effect = requests.exceptions.ConnectionError("reset")

        self.flow.begin()
        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, FAILED)
        self.assertEqual(attempt.error.kind, "network")

    def test_retry_starts_fresh_attempt(self):
        self.client.unlock.side_effect = [ApiRequestError("Internal server error", 500), {"success": True}]
        self.flow.begin()
        failed = self.flow.confirm()

        fresh = self.flow.retry()

        self.assertIsNot(fresh, failed)
        self.assertEqual(fresh.status, CONFIRMING)
        self.assertIsNone(fresh.error)
        self.assertEqual(self.flow.confirm().status, SUCCESS)
        self.assertEqual(self.client.unlock.call_count, 2)

    def test_retry_outside_failure_is_ignored(self):
        self.flow.begin()
        self.assertEqual(self.flow.retry().status, CONFIRMING)
        self.assertEqual(self.client.fetch_wallet_balance.call_count, 1)


class TestCancel(UnlockFlowTestCase):

    def test_cancel_while_confirming(self):
        self.flow.begin()

        self.assertTrue(self.flow.cancel())

        self.assertEqual(self.flow.status, IDLE)
        self.client.unlock.assert_not_called()

    def test_cancel_after_success_is_refused(self):
        self.flow.begin()
        self.flow.confirm()
        self.assertFalse(self.flow.cancel())
        self.assertEqual(self.flow.status, SUCCESS)

    def test_cancel_in_flight_then_failure_discards(self):
        def failing_unlock(identifier):
            self.flow.cancel()
            raise ApiRequestError("Internal server error", 500)

        self.client.unlock.side_effect = failing_unlock
        self.flow.begin()

        attempt = self.flow.confirm()

        self.assertEqual(attempt.status, IDLE)
        self.assertIsNone(attempt.error)

    def test_cancel_in_flight_then_success_keeps_charge(self):
        def cancelling_unlock(identifier):
            self.flow.cancel()
            return {"success": True}

        self.client.unlock.side_effect = cancelling_unlock
        self.flow.begin()

        self.assertEqual(self.flow.confirm().status, SUCCESS)


class TestTransitionTable(UnlockFlowTestCase):

    def test_illegal_transition_raises(self):
        with self.assertRaises(InvalidTransitionError):
            self.flow._transition(SUCCESS)

    def test_module_diagram_has_no_escape_sequences(self):
        self.assertNotIn("\\", unlock_flow.__doc__)
        for target in ("success", "insufficient_funds", "failed"):
            self.assertIn(target, unlock_flow.__doc__)


if __name__ == "__main__":
    unittest.main()
