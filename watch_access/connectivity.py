"""
Ambient connectivity signal.

The API client reports every transport outcome here: a response of any
status means the network is reachable, a connection failure means it is
not. The error classifier reads the latest signal to flag offline errors.
"""

from typing import Optional

from .logger import get_library_logger


class NetworkMonitor:
    """Tracks whether the most recent request could reach the backend."""

    def __init__(self, online: bool = True):
        self._online = online
        self.logger = get_library_logger()

    @property
    def is_online(self) -> bool:
        return self._online

    def mark_online(self) -> None:
        if not self._online:
            self.logger.info("Connection restored")
        self._online = True

    def mark_offline(self) -> None:
        if self._online:
            self.logger.warning("Backend unreachable, treating client as offline")
        self._online = False


_network_monitor: Optional[NetworkMonitor] = None


def get_network_monitor() -> NetworkMonitor:
    """Get the process-wide network monitor, creating it if needed."""
    global _network_monitor
    if _network_monitor is None:
        _network_monitor = NetworkMonitor()
    return _network_monitor
