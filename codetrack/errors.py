"""Error types raised by CodeTrack Sync components."""

__all__ = [
    "CodeTrackError",
    "AuthenticationError",
    "RepositoryProvisioningError",
    "CloneError",
    "SyncError",
    "MetricsError",
]


class CodeTrackError(Exception):
    """Base error for CodeTrack Sync."""

    pass


class AuthenticationError(CodeTrackError):
    """Credentials could not be resolved or were rejected by GitHub."""

    pass


class RepositoryProvisioningError(CodeTrackError):
    """The tracking repository could not be looked up or created."""

    pass


class CloneError(CodeTrackError):
    """The local working copy could not be cloned."""

    pass


class SyncError(CodeTrackError):
    """A fetch/merge/append/commit/push step failed during a sync cycle."""

    pass


class MetricsError(CodeTrackError):
    """Diff statistics could not be computed."""

    pass
