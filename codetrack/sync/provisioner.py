"""Repository provisioning - remote repository and local working copy."""

import logging
import shutil
from pathlib import Path
from typing import Callable

from git import GitCommandNotFound

from ..errors import CloneError, RepositoryProvisioningError
from .git_client import GitClient, GitCommandError, redact_url
from .github_client import GitHubClient, GitHubClientError, GitHubNotFoundError

__all__ = ["RepositoryProvisioner", "remote_url", "EXISTS", "CREATED"]

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
EXISTS = "exists"
CREATED = "created"


def remote_url(username: str, token: str, repo_name: str, host: str = GITHUB_HOST) -> str:
    """HTTPS remote with credentials embedded, so fetch/push need no helper."""
    return f"https://{username}:{token}@{host}/{username}/{repo_name}.git"


class RepositoryProvisioner:
    """Makes sure the tracking repository exists remotely and locally."""

    def __init__(
        self,
        github: GitHubClient,
        repo_name: str,
        branch: str = "main",
        git_factory: Callable[[Path], GitClient] = GitClient,
    ):
        self.github = github
        self.repo_name = repo_name
        self.branch = branch
        self._git_factory = git_factory

    def ensure_repository(self, username: str) -> str:
        """Look the repository up, creating a private one if missing.

        Returns:
            "exists" or "created"

        Raises:
            RepositoryProvisioningError: On any failure other than "not found"
        """
        try:
            self.github.get_repository(username, self.repo_name)
            logger.info(f"Repository '{self.repo_name}' exists")
            return EXISTS
        except GitHubNotFoundError:
            logger.info(f"Repository '{self.repo_name}' not found, creating it")
        except GitHubClientError as e:
            raise RepositoryProvisioningError(f"Error checking repository: {e}") from e

        try:
            # auto_init gives the repo an initial commit so the branch exists
            self.github.create_repository(self.repo_name, private=True, auto_init=True)
        except GitHubClientError as e:
            raise RepositoryProvisioningError(f"Failed to create repository: {e}") from e
        logger.info(f"Repository '{self.repo_name}' created")
        return CREATED

    def ensure_local_clone(self, path: Path, username: str, token: str) -> GitClient:
        """Clone into ``path`` if needed and point origin at fresh credentials.

        A directory without git metadata is removed first so the clone never
        lands on top of partial state.

        Raises:
            CloneError: If cloning or rewriting the remote fails
        """
        path = Path(path)
        client = self._git_factory(path)
        url = remote_url(username, token, self.repo_name)

        if path.exists() and not path.is_dir():
            raise CloneError(f"Clone path {path} exists and is not a directory")

        try:
            if path.exists() and not client.is_repository():
                logger.warning(f"{path} has no git metadata, removing before clone")
                shutil.rmtree(path)
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CloneError(f"Failed to prepare clone directory {path}: {e}") from e

        if not path.exists():
            try:
                client.clone(url, branch=self.branch)
            except (GitCommandError, GitCommandNotFound, OSError) as e:
                raise CloneError(f"Failed to clone repository: {redact_url(str(e))}") from e
            logger.info("Repository cloned locally")

        try:
            client.set_remote_url(url)
            client.ensure_identity(username, f"{username}@users.noreply.github.com")
        except (GitCommandError, OSError) as e:
            raise CloneError(f"Failed to configure local clone: {redact_url(str(e))}") from e
        return client
