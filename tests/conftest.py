"""Shared test fixtures for artifetch."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from artifetch.client.base import DownloadResponse
from artifetch.errors import ArtifactNotFoundError
from artifetch.models import Artifact, ArtifactPage, PublicRunSource, RunQuery


class FakeArtifactClient:
    """In-memory ArtifactClient that records every call."""

    def __init__(self) -> None:
        self.artifacts: list[Artifact] = []
        self.pages: list[ArtifactPage] = []
        self.mismatched_ids: set[int] = set()
        self.failing_ids: set[int] = set()
        self.delay = 0.0
        self.list_calls = 0
        self.page_calls: list[tuple[int, int]] = []
        self.get_calls: list[str] = []
        self.downloads: list[tuple[int, Path, str | None]] = []
        self.events: list[tuple[str, int]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_artifacts(self) -> list[Artifact]:
        self.list_calls += 1
        return list(self.artifacts)

    async def get_artifact(self, name: str, *, source: RunQuery) -> Artifact:
        self.get_calls.append(name)
        matches = [a for a in self.artifacts if a.name == name]
        if not matches:
            raise ArtifactNotFoundError(f"no artifact named {name}")
        return max(matches, key=lambda a: a.id)

    async def fetch_artifact_page(
        self, source: PublicRunSource, *, page: int, per_page: int
    ) -> ArtifactPage:
        self.page_calls.append((page, per_page))
        if page - 1 < len(self.pages):
            return self.pages[page - 1]
        return ArtifactPage(artifacts=[])

    async def download_artifact(
        self,
        artifact_id: int,
        *,
        path: Path,
        expected_hash: str | None,
        source: RunQuery,
    ) -> DownloadResponse:
        self.downloads.append((artifact_id, path, expected_hash))
        if artifact_id in self.failing_ids:
            raise OSError(f"disk full while writing artifact {artifact_id}")
        self.events.append(("start", artifact_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)
        self.in_flight -= 1
        self.events.append(("end", artifact_id))
        return DownloadResponse(digest_mismatch=artifact_id in self.mismatched_ids)


@pytest.fixture
def fake_client() -> FakeArtifactClient:
    return FakeArtifactClient()


@pytest.fixture
def public_source() -> PublicRunSource:
    return PublicRunSource(owner="actions", repo="toolkit", run_id=321, raw_run_id="321", token="t")


@pytest.fixture(autouse=True)
def _clean_actions_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's Actions environment out of the tests."""
    for var in (
        "GITHUB_ACTIONS",
        "GITHUB_OUTPUT",
        "GITHUB_WORKSPACE",
        "GITHUB_REPOSITORY",
        "GITHUB_RUN_ID",
        "ACTIONS_RUNTIME_TOKEN",
        "ACTIONS_RESULTS_URL",
        "RUNNER_DEBUG",
        "ARTIFETCH_DEBUG",
    ):
        monkeypatch.delenv(var, raising=False)
    for var in [v for v in os.environ if v.startswith("INPUT_")]:
        monkeypatch.delenv(var)
