"""CodeTrack Sync - logs coding activity to a private GitHub repository."""

__version__ = "0.4.0"
