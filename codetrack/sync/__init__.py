"""Sync module - GitHub provisioning, git plumbing and the sync engine."""

from .git_client import GitClient
from .github_client import GitHubClient
from .metrics import DiffMetricsCollector, DiffStats
from .provisioner import RepositoryProvisioner
from .retry import RetryConfig, retry_with_backoff
from .sync_engine import SyncEngine, SyncOutcome

__all__ = [
    "GitClient",
    "GitHubClient",
    "DiffMetricsCollector",
    "DiffStats",
    "RepositoryProvisioner",
    "RetryConfig",
    "retry_with_backoff",
    "SyncEngine",
    "SyncOutcome",
]
