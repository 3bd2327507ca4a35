"""Bounded-concurrency artifact downloads."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

from artifetch.client.base import ArtifactClient
from artifetch.models import Artifact, DownloadOutcome, RunQuery, SelectionMode

logger = logging.getLogger(__name__)

PARALLEL_DOWNLOADS = 5

T = TypeVar("T")


def chunk(items: Sequence[T], n: int) -> list[list[T]]:
    """Split items into consecutive lists of at most n, preserving order."""
    if n < 1:
        raise ValueError(f"chunk size must be positive, got {n}")
    return [list(items[i : i + n]) for i in range(0, len(items), n)]


def is_flat_layout(mode: SelectionMode, merge_multiple: bool, count: int) -> bool:
    """Whether artifacts go straight into the root instead of per-name subdirectories."""
    return mode is SelectionMode.NAME or merge_multiple or count == 1


def resolve_destination(artifact: Artifact, root: Path, *, flat: bool) -> Path:
    return root if flat else root / artifact.name


async def _download_one(
    artifact: Artifact,
    client: ArtifactClient,
    *,
    path: Path,
    source: RunQuery,
) -> DownloadOutcome:
    response = await client.download_artifact(
        artifact.id, path=path, expected_hash=artifact.digest, source=source
    )
    if response.digest_mismatch:
        logger.warning(
            "Artifact '%s' digest validation failed. "
            "Please verify the integrity of the artifact.",
            artifact.name,
        )
    return DownloadOutcome(
        artifact_id=artifact.id,
        name=artifact.name,
        path=path,
        integrity_mismatch=response.digest_mismatch,
    )


async def download_artifacts(
    artifacts: list[Artifact],
    client: ArtifactClient,
    *,
    root: Path,
    flat: bool,
    source: RunQuery,
    width: int = PARALLEL_DOWNLOADS,
) -> list[DownloadOutcome]:
    """Download artifacts in chunks of `width`, one chunk at a time.

    Every download in a chunk runs concurrently; the next chunk starts only
    once the whole chunk has finished. A digest mismatch is logged for that
    artifact and does not stop the others. A download that raises lets the
    rest of its chunk finish; the first error is then raised and no further
    chunk is started.

    Returns:
        One outcome per artifact, in input order.
    """
    outcomes: list[DownloadOutcome] = []
    batches = chunk(artifacts, width)
    for idx, batch in enumerate(batches, start=1):
        logger.debug("Downloading chunk %d/%d (%d artifact(s))", idx, len(batches), len(batch))
        results = await asyncio.gather(
            *(
                _download_one(
                    artifact,
                    client,
                    path=resolve_destination(artifact, root, flat=flat),
                    source=source,
                )
                for artifact in batch
            ),
            return_exceptions=True,
        )
        # The whole chunk has settled; only now surface the first failure
        for result in results:
            if isinstance(result, BaseException):
                raise result
        outcomes.extend(results)
    return outcomes
