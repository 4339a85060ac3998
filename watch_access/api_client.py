"""
HTTP client for the watch backend.

Wraps the three endpoints the pipeline consumes:

    GET  /watch-descriptor/{identifier}   access descriptor
    GET  /wallet/balance                  current credit balance
    POST /watch/{identifier}/unlock       credit deduction

Non-2xx responses raise ApiRequestError with the decoded body attached;
transport failures propagate as requests exceptions. Callers classify both.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from .config import WatchConfig
from .connectivity import NetworkMonitor, get_network_monitor
from .exceptions import ApiRequestError, WatchAccessError
from .logger import get_library_logger
from .models import WalletBalance


class WatchApiClient:
    """Watch backend API client with timeout handling and connectivity tracking."""

    def __init__(self, config: WatchConfig, monitor: Optional[NetworkMonitor] = None):
        """
        Initialize the watch API client.

        Args:
            config: Configuration containing the base URL, token and timeout
            monitor: Connectivity signal to update; defaults to the process monitor
        """
        self.config = config
        self.monitor = monitor or get_network_monitor()
        self.logger = get_library_logger()
        self.timeout = config.request_timeout

        self.logger.debug(f"WatchApiClient initialized for {config.base_url}")

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        return headers

    def fetch_watch_descriptor(self, identifier: str) -> Dict[str, Any]:
        """
        Fetch the raw watch descriptor for an identifier.

        Args:
            identifier: Content id or share token, exactly as it appeared in the URL

        Returns:
            Decoded response body

        Raises:
            ApiRequestError: For non-2xx responses
            requests.exceptions.RequestException: For transport failures
        """
        url = self.config.endpoint(self.config.descriptor_path, identifier=quote(identifier, safe=""))
        self.logger.debug(f"Fetching watch descriptor: {url}")
        return self._send("GET", url)

    def fetch_wallet_balance(self) -> WalletBalance:
        """
        Fetch the viewer's current credit balance.

        Returns:
            WalletBalance parsed from the response

        Raises:
            ApiRequestError: For non-2xx responses
            ValidationError: If the body has no usable balance
            requests.exceptions.RequestException: For transport failures
        """
        url = self.config.endpoint(self.config.balance_path)
        self.logger.debug("Fetching wallet balance")
        return WalletBalance.from_response(self._send("GET", url))

    def unlock(self, identifier: str) -> Dict[str, Any]:
        """
        Ask the backend to deduct credits and unlock a video.

        Not retried here: one call is one deduction request.

        Args:
            identifier: Content id or share token being unlocked

        Returns:
            Decoded response body

        Raises:
            ApiRequestError: For non-2xx responses (402 signals insufficient credits)
            requests.exceptions.RequestException: For transport failures
        """
        url = self.config.endpoint(self.config.unlock_path, identifier=quote(identifier, safe=""))
        self.logger.info(f"Requesting unlock for {identifier}")
        return self._send("POST", url)

    def _send(self, method: str, url: str) -> Dict[str, Any]:
        try:
            if method == "POST":
                response = requests.post(url, headers=self._get_headers(), json={}, timeout=self.timeout)
            else:
                response = requests.get(url, headers=self._get_headers(), timeout=self.timeout)
        except requests.exceptions.Timeout:
            self.logger.warning(f"Request timed out after {self.timeout}s: {method} {url}")
            raise
        except requests.exceptions.ConnectionError as e:
            self.monitor.mark_offline()
            self.logger.warning(f"Connection error: {method} {url}: {e}")
            raise

        self.monitor.mark_online()
        return self._handle_response(response)

    def _handle_response(self, response) -> Dict[str, Any]:
        """Decode a response, raising ApiRequestError for non-2xx statuses."""
        payload = self._decode_json(response)

        if not 200 <= response.status_code < 300:
            error_message = None
            if isinstance(payload, dict):
                error_message = payload.get("error") or payload.get("message")
            if not error_message:
                error_message = f"HTTP {response.status_code}: {response.reason}"
            self.logger.error(f"Backend returned {response.status_code}: {error_message}")
            raise ApiRequestError(
                str(error_message),
                status_code=response.status_code,
                payload=payload if isinstance(payload, dict) else None,
            )

        if not isinstance(payload, dict):
            self.logger.error(f"Expected JSON object, got: {response.text[:200]}")
            raise WatchAccessError("Unexpected response format from server")

        return payload

    def _decode_json(self, response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
