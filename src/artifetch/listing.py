"""Artifact enumeration across the internal service and the paginated public API."""

from __future__ import annotations

import logging

from artifetch.client.base import ArtifactClient
from artifetch.client.github import normalize_artifact
from artifetch.errors import ConfigurationError
from artifetch.models import Artifact, InternalSource, PublicRunSource, RunQuery

logger = logging.getLogger(__name__)

PUBLIC_API_PAGE_SIZE = 100


def filter_latest_artifacts(artifacts: list[Artifact]) -> list[Artifact]:
    """Keep only the highest-id artifact for each name, newest first.

    Records sharing an id are one artifact; the last one seen wins.
    """
    by_id = {a.id: a for a in artifacts}
    latest: list[Artifact] = []
    seen: set[str] = set()
    for artifact in sorted(by_id.values(), key=lambda a: a.id, reverse=True):
        if artifact.name not in seen:
            latest.append(artifact)
            seen.add(artifact.name)
    return latest


def check_public_source(source: PublicRunSource) -> None:
    """Reject a cross-run query that cannot be sent. No network access."""
    if not source.token:
        raise ConfigurationError(
            "Input 'github-token' is required when using 'repository' and 'run-id' "
            "to download artifacts from another workflow run."
        )
    if source.run_id is None or source.run_id <= 0:
        raise ConfigurationError(
            "Input 'run-id' must be a positive integer when 'github-token' is provided. "
            f"Received '{source.raw_run_id}'."
        )


class PageFetcher:
    """Fetches and normalizes single pages of a run's public artifact listing."""

    def __init__(
        self,
        client: ArtifactClient,
        source: PublicRunSource,
        *,
        page_size: int = PUBLIC_API_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.source = source
        self.page_size = page_size

    async def fetch(self, page: int) -> tuple[list[Artifact], int | None]:
        """Return (artifacts on this page, server-reported total or None)."""
        logger.debug("Fetching artifacts page %d (page size: %d)", page, self.page_size)
        result = await self.client.fetch_artifact_page(
            self.source, page=page, per_page=self.page_size
        )
        return [normalize_artifact(raw) for raw in result.artifacts], result.total_count


async def _list_public(client: ArtifactClient, source: PublicRunSource) -> list[Artifact]:
    check_public_source(source)
    logger.info(
        "Fetching artifact list for workflow run %s in repository %s/%s",
        source.run_id,
        source.owner,
        source.repo,
    )

    fetcher = PageFetcher(client, source)
    collected: list[Artifact] = []
    total_count: int | None = None
    page = 1

    while True:
        artifacts, reported = await fetcher.fetch(page)
        if reported is not None:
            total_count = reported
        if not artifacts:
            break

        collected.extend(artifacts)

        reached_total = total_count is not None and len(collected) >= total_count
        short_page = len(artifacts) < fetcher.page_size
        if reached_total or short_page:
            break
        page += 1

    logger.debug(
        "Fetched %d artifact(s) across %d page(s) from public API", len(collected), page
    )
    return collected


async def list_artifacts(
    query: RunQuery,
    client: ArtifactClient,
    *,
    latest: bool = False,
) -> list[Artifact]:
    """Enumerate a run's artifacts from exactly one source.

    Args:
        query: Internal (this run) or public (any run, token required).
        client: Listing collaborator.
        latest: Reduce to the newest artifact per name.

    Returns:
        Artifacts in discovery order, or newest-first when latest is set.
    """
    match query:
        case PublicRunSource():
            artifacts = await _list_public(client, query)
        case InternalSource():
            artifacts = await client.list_artifacts()
        case _:
            raise TypeError(f"Unknown run query: {query!r}")

    if latest:
        return filter_latest_artifacts(artifacts)
    return artifacts
