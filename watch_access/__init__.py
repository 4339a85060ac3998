"""
Watch Access Package

Client-side access resolution and credit-gated playback for a
content-monetization platform.

Architecture:
- Each stage of the pipeline is a small module with an injected collaborator
- Every failure is normalized by the error classifier before it reaches a caller
- Backend access goes through a single requests-based API client

Core Modules:
- error_classifier: Maps status codes, exceptions and messages to ClassifiedError
- guest_gate: Bounded free-watch allowance for unauthenticated viewers
- access_resolver: Identifier -> AccessDescriptor via the watch-descriptor endpoint
- unlock_flow: Balance check -> confirmation -> deduction state machine
- session: WatchSessionController, the top-level coordinator
- api_client: HTTP transport for the watch backend
- config: Configuration and environment setup
- logger: Centralized logging infrastructure
"""

__version__ = "1.0.0"

from .access_resolver import AccessResolver
from .api_client import WatchApiClient
from .config import WatchConfig
from .error_classifier import classify, extract_credit_shortfall, user_message
from .guest_gate import GuestAccessGate, InMemoryCounterStore, JsonFileCounterStore
from .logger import init_library_logger, get_library_logger
from .models import AccessDecision, AccessDescriptor, ClassifiedError, UnlockAttempt, WalletBalance
from .session import WatchSessionController
from .unlock_flow import CreditUnlockFlow

__all__ = [
    'AccessResolver',
    'WatchApiClient',
    'WatchConfig',
    'classify',
    'extract_credit_shortfall',
    'user_message',
    'GuestAccessGate',
    'InMemoryCounterStore',
    'JsonFileCounterStore',
    'init_library_logger',
    'get_library_logger',
    'AccessDecision',
    'AccessDescriptor',
    'ClassifiedError',
    'UnlockAttempt',
    'WalletBalance',
    'WatchSessionController',
    'CreditUnlockFlow',
]
