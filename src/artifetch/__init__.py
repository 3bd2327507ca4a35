"""Resolve and download the artifacts of a GitHub Actions workflow run."""

from artifetch.errors import (
    ArtifactNotFoundError,
    ArtifetchError,
    ConfigurationError,
    ResolutionError,
)
from artifetch.models import Artifact, DownloadOutcome, DownloadSummary, SelectionMode

__all__ = [
    "Artifact",
    "ArtifactNotFoundError",
    "ArtifetchError",
    "ConfigurationError",
    "DownloadOutcome",
    "DownloadSummary",
    "ResolutionError",
    "SelectionMode",
]
