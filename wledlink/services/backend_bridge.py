"""HTTP client for the backend message-broker bridge"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from .. import config

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one bridge call"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class BackendBridgeClient:
    """
    Sends device commands to the backend, which forwards them to the
    device over its message broker.

        POST {base_url}/api/devices/{device_id}/command  {action, payload}
        GET  {base_url}/health
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.LUMINA_BACKEND_URL).rstrip("/")
        self.token = token if token is not None else config.LUMINA_BACKEND_TOKEN
        self.timeout = timeout or config.LUMINA_BACKEND_TIMEOUT_S
        self._session = session or requests.Session()

        logger.info(f"Backend bridge client initialized ({self.base_url}, authenticated: {self.is_authenticated})")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def set_token(self, token: Optional[str]):
        self.token = token

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def send_command(self, device_id: str, action: str, payload: Optional[Mapping] = None) -> CommandResult:
        """Blocking; callers on the event loop go through asyncio.to_thread."""
        if not self.is_authenticated:
            return CommandResult(success=False, error="Not authenticated")

        body = {"action": action}
        if payload is not None:
            body["payload"] = dict(payload)

        url = f"{self.base_url}/api/devices/{device_id}/command"
        try:
            response = self._session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Backend command {action} for {device_id} failed: {e}")
            return CommandResult(success=False, error=str(e))

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            logger.error(f"Malformed backend response for {action}: {e}")
            return CommandResult(success=False, error=f"Malformed response: {e}")

        if response.ok:
            logger.debug(f"Backend command {action} for {device_id} accepted")
            return CommandResult(success=True, data=data)

        error = data.get("error") if isinstance(data, dict) else None
        logger.warning(f"Backend command {action} returned {response.status_code}: {error}")
        return CommandResult(success=False, error=error or f"HTTP {response.status_code}")

    def send_wled_state(self, device_id: str, state: Mapping) -> CommandResult:
        return self.send_command(device_id, "setState", state)

    def check_health(self) -> bool:
        try:
            response = self._session.get(f"{self.base_url}/health", timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Backend health check failed: {e}")
            return False
        return response.ok

    def close(self):
        self._session.close()
