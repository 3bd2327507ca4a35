"""ArtifactClient protocol and DownloadResponse model."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from artifetch.models import Artifact, ArtifactPage, PublicRunSource, RunQuery


class DownloadResponse(BaseModel):
    """What the transfer layer reports back for one artifact."""

    digest_mismatch: bool = False
    digest: str | None = None  # computed "sha256:<hex>" of the archive


class ArtifactClient(Protocol):
    """Listing and transfer operations the download pipeline relies on."""

    async def list_artifacts(self) -> list[Artifact]:
        """List every artifact of the current run via the internal service."""
        ...

    async def get_artifact(self, name: str, *, source: RunQuery) -> Artifact:
        """Look up one artifact by name.

        Raises:
            ArtifactNotFoundError: No artifact with that name exists.
        """
        ...

    async def fetch_artifact_page(
        self, source: PublicRunSource, *, page: int, per_page: int
    ) -> ArtifactPage:
        """Fetch one page of the public listing for a workflow run."""
        ...

    async def download_artifact(
        self,
        artifact_id: int,
        *,
        path: Path,
        expected_hash: str | None,
        source: RunQuery,
    ) -> DownloadResponse:
        """Download and extract an artifact into path.

        Args:
            artifact_id: Artifact to fetch.
            path: Directory to extract into; created if missing.
            expected_hash: Digest to verify against, or None to skip.
            source: Which API to download through.

        Returns:
            DownloadResponse telling whether the digest matched.
        """
        ...
