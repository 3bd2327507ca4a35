"""Artifact listing and transfer collaborators."""

from artifetch.client.base import ArtifactClient, DownloadResponse
from artifetch.client.github import GitHubArtifactClient, normalize_artifact

__all__ = ["ArtifactClient", "DownloadResponse", "GitHubArtifactClient", "normalize_artifact"]
