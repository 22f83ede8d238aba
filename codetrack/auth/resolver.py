"""Credential resolution: keychain cache, static settings, interactive sign-in."""

import logging
from typing import Callable, Optional

from ..config import Config
from ..errors import AuthenticationError
from ..sync.github_client import GitHubAuthError, GitHubClient, GitHubClientError
from .device_flow import DeviceAuthFlow
from .keychain import Credentials, KeychainManager

__all__ = ["CredentialResolver"]

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Finds a GitHub token and the account it belongs to.

    ``resolve()`` runs once per activation; ``refresh()`` runs before every
    sync so a rotated token is picked up without a restart.
    """

    def __init__(
        self,
        config: Config,
        keychain: Optional[KeychainManager] = None,
        github_factory: Callable[[str], GitHubClient] = GitHubClient,
        auth_flow: Optional[DeviceAuthFlow] = None,
    ):
        """Initialize resolver.

        Args:
            config: Settings holding the static token/username
            keychain: Secret storage (creates default if None)
            github_factory: Builds an API client for a token
            auth_flow: Interactive sign-in (built from config if None)
        """
        self.config = config
        self.keychain = keychain or KeychainManager()
        self._github_factory = github_factory
        self.auth_flow = auth_flow or DeviceAuthFlow(config.oauth_client_id)
        self.current: Optional[Credentials] = None

    def update_config(self, config: Config) -> None:
        self.config = config

    def resolve(self) -> Credentials:
        """Resolve credentials in priority order, caching what succeeds.

        Raises:
            AuthenticationError: If sign-in is declined or GitHub rejects
                the token
        """
        cached = self.keychain.load()
        if cached:
            logger.info(f"Using cached GitHub credentials for {cached.username}")
            self.current = cached
            return cached

        token, username = self.config.static_credentials
        if token and username:
            credentials = Credentials(token=token, username=username)
            self.keychain.store(credentials)
            logger.info(f"Using configured GitHub credentials for {username}")
            self.current = credentials
            return credentials

        logger.info("No stored or configured credentials, starting GitHub sign-in")
        result = self.auth_flow.start()
        if not result.success or not result.access_token:
            raise AuthenticationError(f"GitHub sign-in failed: {result.error or 'declined'}")

        username = self._confirm_identity(result.access_token)
        credentials = Credentials(token=result.access_token, username=username)
        self.keychain.store(credentials)
        self.current = credentials
        return credentials

    def refresh(self) -> Credentials:
        """Re-read credentials right before talking to the remote.

        Never prompts: a background sync with no usable credentials fails.
        """
        cached = self.keychain.load() or self.current
        token, username = self.config.static_credentials
        if token and username and (cached is None or cached.token != token or cached.username != username):
            credentials = Credentials(token=token, username=username)
            self.keychain.store(credentials)
            logger.info("Configured GitHub token changed, cache updated")
            self.current = credentials
            return credentials

        if cached is None:
            raise AuthenticationError("No GitHub credentials available, sign in again")
        self.current = cached
        return cached

    def forget(self) -> bool:
        """Drop cached credentials."""
        self.current = None
        return self.keychain.delete()

    def _confirm_identity(self, token: str) -> str:
        client = self._github_factory(token)
        try:
            user = client.get_authenticated_user()
        except GitHubAuthError as e:
            raise AuthenticationError(f"GitHub rejected the token: {e}") from e
        except GitHubClientError as e:
            raise AuthenticationError(f"Could not confirm GitHub identity: {e}") from e
        finally:
            client.close()

        login = user.get("login")
        if not login:
            raise AuthenticationError("GitHub did not return an account login")
        logger.info(f"Signed in to GitHub as {login}")
        return login
