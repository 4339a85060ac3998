#!/usr/bin/env python3

"""
Watch Access CLI

Resolve a video id or share link against the watch backend and walk through
the access rules the web player applies: owned content plays, free content
counts against the guest allowance, paid content asks to confirm the charge.

Usage:
    ./watchctl.py abc123
    ./watchctl.py --guest 8f2c4e1d9a7b6c5d4e3f2a1b
    ./watchctl.py --yes abc123
    ./watchctl.py --classify "You need 5 credits to watch this video" --status 403

For detailed usage information, run:
    ./watchctl.py --help
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Add the package to the path for local imports
sys.path.insert(0, str(Path(__file__).parent))

from watch_access.api_client import WatchApiClient
from watch_access.arg_parser import WatchArgumentParser
from watch_access.config import WatchConfig
from watch_access.error_classifier import classify, user_message
from watch_access.exceptions import ConfigurationError
from watch_access.guest_gate import GuestAccessGate, JsonFileCounterStore
from watch_access.logger import init_library_logger
from watch_access.models import CONFIRMING, FAILED, INSUFFICIENT_FUNDS
from watch_access.session import (
    WatchSessionController,
    ERROR,
    GUEST_LIMIT_REACHED,
    PLAY,
    PURCHASE_PROMPT,
    SIGN_IN_REQUIRED,
    UNLOCKING,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INSUFFICIENT_FUNDS = 2
EXIT_SIGN_IN = 3


def _print_classification(message, status):
    """Print how a message/status pair is classified."""
    error = classify(message, status)
    print("🔎 Classification")
    print("=" * 50)
    print(f"   Kind: {error.kind}")
    print(f"   Message: {error.message}")
    print(f"   Retryable: {error.is_retryable}")
    if error.status_code is not None:
        print(f"   Status: {error.status_code}")
    if error.requires_auth:
        print("   Requires sign-in")
    if error.requires_credits:
        print("   Requires credits")
    if error.requires_membership:
        print("   Requires membership")
    if error.credit_shortfall is not None:
        print(f"   Credit shortfall: {error.credit_shortfall}")
    print(f"\n💬 {user_message(error)}")


def _print_navigation(intent, details):
    """Navigation callback: the CLI can only tell the viewer where to go."""
    destinations = {
        "wallet_top_up": "Top up your wallet to continue",
        "membership": "Upgrade your membership",
        "contact_support": f"Contact support: {details.get('url', '')}",
        "home": "Back to home",
        "discover": "Discover other videos",
    }
    print(f"➡️  {destinations.get(intent, intent)}")


def _ask(question, assume_yes):
    if assume_yes:
        return True
    try:
        answer = input(f"{question} [y/N] ").strip().lower()
    except EOFError:
        return False
    return answer in ("y", "yes")


def _build_session(args):
    """Create the session controller from config and parsed arguments."""
    config = WatchConfig.from_environment()
    if args['guest']:
        config.api_token = None

    store = JsonFileCounterStore(args['counter-file'] or config.guest_counter_path)
    gate = GuestAccessGate(store, config.guest_free_limit)
    client = WatchApiClient(config)

    return WatchSessionController(
        args['identifier'],
        client,
        gate,
        config,
        is_authenticated=config.is_authenticated,
        navigate=_print_navigation,
    )


def _handle_error_outcome(session, decision, assume_yes):
    """Show an error and retry if allowed. Returns the next decision or None to stop."""
    print(f"❌ {decision.message}")
    if decision.can_retry and _ask("Try again?", assume_yes):
        return session.retry()
    if decision.error and decision.error.kind in ("server_error", "unknown"):
        session.contact_support()
    return None


def _run_session(session, assume_yes):
    """Drive the session until playback, a terminal prompt, or an unrecoverable error."""
    decision = session.load()

    while True:
        if decision.outcome == PLAY:
            video = decision.descriptor.video
            print(f"▶️  Playing: {video.title if video else decision.descriptor.content_id}")
            if video and video.video_url:
                print(f"   {video.video_url}")
            return EXIT_OK

        if decision.outcome == GUEST_LIMIT_REACHED:
            print("🔒 Free video limit reached. Sign in to keep watching free videos.")
            return EXIT_SIGN_IN

        if decision.outcome == SIGN_IN_REQUIRED:
            print("🔒 Sign in to purchase this video (set WATCH_API_TOKEN).")
            return EXIT_SIGN_IN

        if decision.outcome == PURCHASE_PROMPT:
            decision = session.request_watch()
            continue

        if decision.outcome == ERROR:
            decision = _handle_error_outcome(session, decision, assume_yes)
            if decision is None:
                return EXIT_ERROR
            continue

        if decision.outcome == UNLOCKING:
            attempt = session.unlock_flow.attempt
            if attempt.status == CONFIRMING:
                cost = decision.descriptor.unit_cost
                print(f"💰 Cost to watch: {cost} credits (balance: {attempt.balance_before})")
                if not _ask("Unlock this video?", assume_yes):
                    session.cancel_unlock()
                    print("Cancelled; no credits were charged.")
                    return EXIT_OK
                decision = session.confirm_unlock()
                continue

            if attempt.status == INSUFFICIENT_FUNDS:
                print(f"❌ {decision.message}")
                session.top_up()
                return EXIT_INSUFFICIENT_FUNDS

            if attempt.status == FAILED:
                decision = _handle_error_outcome(session, decision, assume_yes)
                if decision is None:
                    return EXIT_ERROR
                continue

        print(f"❌ Unexpected session state: {decision.outcome}")
        return EXIT_ERROR


def main():
    """Main entry point for the watch access CLI."""
    try:
        args = WatchArgumentParser().parse_arguments()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(EXIT_ERROR)

    init_library_logger(verbose=args['verbose'])

    if args['classify'] is not None:
        _print_classification(args['classify'], args['status'])
        sys.exit(EXIT_OK)

    try:
        if args['reset-guest-counter']:
            path = args['counter-file'] or WatchConfig.from_environment().guest_counter_path
            JsonFileCounterStore(path).reset()
            print(f"✅ Guest free-watch allowance reset ({path})")
            sys.exit(EXIT_OK)

        session = _build_session(args)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        print("   Check your environment variables and .env file")
        sys.exit(EXIT_ERROR)

    print("🎬 Watch Access")
    print("=" * 50)
    try:
        sys.exit(_run_session(session, args['yes']))
    except KeyboardInterrupt:
        print("\n⚠️  Cancelled by user")
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
