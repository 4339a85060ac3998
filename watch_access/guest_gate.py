"""
Guest free-watch allowance.

Unauthenticated viewers may watch a bounded number of zero-cost videos
before being asked to sign in. The counter lives in an injected store so it
can be persisted to disk in production and kept in memory under test.

The gate cannot fail: a missing or corrupt counter reads as zero.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

from .config import DEFAULT_GUEST_FREE_LIMIT
from .logger import get_library_logger


class CounterStore(Protocol):
    """Storage capability for the guest watch counter."""

    def read(self) -> int: ...

    def increment(self) -> int: ...

    def reset(self) -> None: ...


class InMemoryCounterStore:
    """Counter store that lives only as long as the process."""

    def __init__(self, count: int = 0):
        self.count = count

    def read(self) -> int:
        return self.count

    def increment(self) -> int:
        self.count += 1
        return self.count

    def reset(self) -> None:
        self.count = 0


class JsonFileCounterStore:
    """Counter store persisted as a small JSON document on the client machine."""

    def __init__(self, path: str):
        """
        Initialize the file-backed counter store.

        Args:
            path: Location of the counter file; parent directories are created on write
        """
        self.path = Path(path)
        self.logger = get_library_logger()

    def read(self) -> int:
        """Return the stored count, or 0 if the file is missing or unreadable."""
        if not self.path.exists():
            return 0
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            count = data.get("count", 0) if isinstance(data, dict) else 0
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ValueError(f"invalid count {count!r}")
            return count
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable guest counter at {self.path}: {e}")
            return 0

    def increment(self) -> int:
        count = self.read() + 1
        self._write(count)
        return count

    def reset(self) -> None:
        self._write(0)

    def _write(self, count: int) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump({"count": count, "updated_at": datetime.now().isoformat()}, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to save guest counter to {self.path}: {e}")


class GuestAccessGate:
    """Enforces the free-watch limit for unauthenticated viewers."""

    def __init__(self, store: CounterStore, limit: int = DEFAULT_GUEST_FREE_LIMIT):
        self.store = store
        self.limit = limit
        self.logger = get_library_logger()

    def can_watch_free(self, is_authenticated: bool, unit_cost: int) -> bool:
        """
        Check whether the viewer may watch without signing in.

        Authenticated viewers and paid content bypass the gate entirely.

        Args:
            is_authenticated: Whether the viewer is signed in
            unit_cost: Credit price of the content

        Returns:
            True if playback may proceed
        """
        if is_authenticated or unit_cost != 0:
            return True
        allowed = self._count() < self.limit
        if not allowed:
            self.logger.info(f"Guest free-watch limit reached ({self.limit})")
        return allowed

    def record_free_watch(self) -> None:
        """Count one granted free watch. Call exactly once per permit."""
        try:
            count = self.store.increment()
        except Exception as e:
            self.logger.warning(f"Could not record guest watch: {e}")
            return
        self.logger.debug(f"Guest free watches used: {count}/{self.limit}")

    def remaining_free_watches(self) -> int:
        return max(0, self.limit - self._count())

    def has_exhausted_free_watches(self) -> bool:
        return self._count() >= self.limit

    def reset(self) -> None:
        """Clear the allowance, e.g. once the guest signs in."""
        try:
            self.store.reset()
        except Exception as e:
            self.logger.warning(f"Could not reset guest counter: {e}")

    def _count(self) -> int:
        try:
            count = self.store.read()
        except Exception as e:
            self.logger.warning(f"Guest counter unavailable, treating as 0: {e}")
            return 0
        return count if isinstance(count, int) and count >= 0 else 0
