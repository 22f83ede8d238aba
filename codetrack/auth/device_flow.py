"""Interactive GitHub sign-in using the OAuth device authorization flow.

Opens the user's browser to GitHub's device verification page and polls
for the access token while the user enters the one-time code.

Flow:
1. Request a device code and user code for the configured OAuth app
2. Open the browser at the verification URI, show the user code
3. Poll the token endpoint at the advertised interval
4. Return the access token once the user approves
"""

import logging
import threading
import time
import webbrowser
from dataclasses import dataclass
from typing import Callable, Optional

import requests

__all__ = ["DeviceAuthFlow", "AuthFlowResult", "DEFAULT_SCOPES"]

logger = logging.getLogger(__name__)

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

# Read the account identity, read/write repositories.
DEFAULT_SCOPES = ("read:user", "repo")


@dataclass
class AuthFlowResult:
    """Result of the device flow."""

    success: bool
    access_token: Optional[str] = None
    scope: Optional[str] = None
    error: Optional[str] = None


class DeviceAuthFlow:
    """Runs the GitHub device authorization flow."""

    TIMEOUT_SECONDS = 900  # GitHub device codes expire after 15 minutes
    SLOW_DOWN_STEP = 5

    def __init__(
        self,
        client_id: Optional[str],
        scopes: tuple[str, ...] = DEFAULT_SCOPES,
        on_user_code: Optional[Callable[[str, str], None]] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        """Initialize device flow.

        Args:
            client_id: GitHub OAuth app client id
            scopes: Requested OAuth scopes
            on_user_code: Called with (user_code, verification_uri) so the UI
                can show the code the user has to type
            session: Optional requests session (for testing)
            timeout: Per-request timeout in seconds
        """
        self.client_id = client_id
        self.scopes = scopes
        self._on_user_code = on_user_code
        self._session = session or requests.Session()
        self._timeout = timeout
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Cancel a running flow, unblocking start() immediately."""
        self._cancelled.set()

    def _post(self, url: str, data: dict) -> dict:
        response = self._session.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    def start(self) -> AuthFlowResult:
        """Run the full flow and return the access token."""
        if not self.client_id:
            return AuthFlowResult(success=False, error="no OAuth client id configured")

        self._cancelled.clear()
        try:
            grant = self._post(
                DEVICE_CODE_URL,
                {"client_id": self.client_id, "scope": " ".join(self.scopes)},
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Device code request failed: {e}")
            return AuthFlowResult(success=False, error=str(e))

        device_code = grant.get("device_code")
        user_code = grant.get("user_code", "")
        verification_uri = grant.get("verification_uri", "https://github.com/login/device")
        interval = int(grant.get("interval", 5))
        expires_in = min(int(grant.get("expires_in", self.TIMEOUT_SECONDS)), self.TIMEOUT_SECONDS)
        if not device_code:
            return AuthFlowResult(success=False, error=grant.get("error", "no device code"))

        logger.info(f"Opening browser for GitHub sign-in (code {user_code})")
        if self._on_user_code:
            self._on_user_code(user_code, verification_uri)
        webbrowser.open(verification_uri)

        return self._poll(device_code, interval, expires_in)

    def _poll(self, device_code: str, interval: int, expires_in: int) -> AuthFlowResult:
        deadline = time.monotonic() + expires_in
        while time.monotonic() < deadline:
            if self._cancelled.wait(interval):
                logger.info("GitHub sign-in cancelled")
                return AuthFlowResult(success=False, error="cancelled")

            try:
                payload = self._post(
                    ACCESS_TOKEN_URL,
                    {
                        "client_id": self.client_id,
                        "device_code": device_code,
                        "grant_type": GRANT_TYPE,
                    },
                )
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"Token polling failed, retrying: {e}")
                continue

            token = payload.get("access_token")
            if token:
                logger.info("GitHub sign-in approved")
                return AuthFlowResult(success=True, access_token=token, scope=payload.get("scope"))

            error = payload.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval = int(payload.get("interval", interval + self.SLOW_DOWN_STEP))
                continue

            logger.warning(f"GitHub sign-in failed: {error}")
            return AuthFlowResult(success=False, error=error or "unknown")

        logger.warning("GitHub sign-in timed out")
        return AuthFlowResult(success=False, error="timeout")
