"""GitHub REST API client - repository lookup/creation and identity."""

import logging
from typing import Optional

import requests

from .retry import RetryConfig, RetryExhausted, retry_with_backoff

__all__ = [
    "GitHubClient",
    "GitHubClientError",
    "GitHubAuthError",
    "GitHubNotFoundError",
    "DEFAULT_API_URL",
]

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class GitHubClientError(Exception):
    """GitHub client error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubAuthError(GitHubClientError):
    """Token missing, invalid, expired or lacking scopes."""

    pass


class GitHubNotFoundError(GitHubClientError):
    """Resource does not exist (or is invisible to the token)."""

    pass


class _TransientError(Exception):
    """Internal: Marks an error as transient/retryable."""

    pass


class GitHubClient:
    """Thin client for the three GitHub endpoints the agent needs."""

    DEFAULT_RETRY_CONFIG = RetryConfig(
        max_retries=3,
        base_delay=1.0,
        max_delay=30.0,
        exponential_base=2.0,
        jitter=True,
    )

    USER_AGENT = "CodeTrack-Sync/0.4.0"

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: int = 30,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize GitHub client.

        Args:
            token: Personal access token or OAuth token
            api_url: REST API base URL
            timeout: Request timeout in seconds
            retry_config: Configuration for retry with exponential backoff
            session: Optional requests session (for dependency injection/testing)
        """
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        self._session = session or requests.Session()
        self._owns_session = session is None

    def _get_headers(self) -> dict:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": self.USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, endpoint: str, data: Optional[dict] = None) -> dict:
        """Make a request to the GitHub API.

        Raises:
            GitHubAuthError: For 401 responses, and 403 without rate limiting
            GitHubNotFoundError: For 404 responses
            GitHubClientError: For other errors
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        kwargs: dict = {"timeout": self.timeout, "headers": self._get_headers()}
        if data is not None:
            kwargs["json"] = data

        def do_request() -> dict:
            try:
                response = self._session.request(method, url, **kwargs)
            except requests.exceptions.ConnectionError:
                raise _TransientError("Cannot connect to GitHub API")
            except requests.exceptions.Timeout:
                raise _TransientError("GitHub API request timed out")

            status = response.status_code
            if status >= 500:
                raise _TransientError(f"Server error: {status}")
            if status == 401:
                raise GitHubAuthError("Invalid or expired GitHub token", status)
            if status == 403 and response.headers.get("X-RateLimit-Remaining") != "0":
                raise GitHubAuthError("GitHub token lacks permission", status)
            if status == 404:
                raise GitHubNotFoundError(f"Not found: {endpoint}", status)
            if status >= 400:
                detail = ""
                try:
                    detail = response.json().get("message", "")
                except ValueError:
                    pass
                raise GitHubClientError(f"API error ({status}): {detail or response.reason}", status)
            return response.json() if response.content else {}

        try:
            return retry_with_backoff(
                do_request,
                config=self.retry_config,
                retryable_exceptions=(_TransientError,),
            )
        except RetryExhausted as e:
            if e.last_error:
                raise GitHubClientError(str(e.last_error)) from e.last_error
            raise GitHubClientError("Request failed after retries") from e

    def get_repository(self, owner: str, repo: str) -> dict:
        """GET /repos/{owner}/{repo}."""
        return self._request("GET", f"repos/{owner}/{repo}")

    def create_repository(self, name: str, private: bool = True, auto_init: bool = True) -> dict:
        """Create a repository for the authenticated user."""
        return self._request(
            "POST",
            "user/repos",
            {"name": name, "private": private, "auto_init": auto_init},
        )

    def get_authenticated_user(self) -> dict:
        """GET /user - the account the token belongs to."""
        return self._request("GET", "user")

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
