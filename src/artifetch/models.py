"""Data models for artifact selection and download."""

from __future__ import annotations

import enum
from datetime import datetime
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class SelectionMode(enum.StrEnum):
    """How the user narrowed the run's artifacts down to a download set."""

    NAME = "name"
    IDS = "ids"
    PATTERN = "pattern"
    ALL = "all"


class Artifact(BaseModel):
    """Canonical artifact metadata, whichever API it came from."""

    id: int
    name: str
    size: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    digest: str | None = None  # "sha256:<hex>"; None skips integrity check


class RawArtifact(BaseModel):
    """One record of the public REST listing, before normalization."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    size_in_bytes: int = 0
    created_at: str | None = None
    digest: str | None = None


class ArtifactPage(BaseModel):
    """One page of the public REST listing."""

    total_count: int | None = None
    artifacts: list[RawArtifact] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Run query: where the artifacts live
# ---------------------------------------------------------------------------


class InternalSource(BaseModel):
    """Artifacts of the current workflow run, via the internal results service."""

    kind: Literal["internal"] = "internal"


class PublicRunSource(BaseModel):
    """Artifacts of any workflow run, via the paginated public REST API."""

    kind: Literal["public"] = "public"
    owner: str
    repo: str
    run_id: int | None  # None when the raw input was not an integer
    token: str = Field(repr=False)
    raw_run_id: str = ""


RunQuery = Annotated[InternalSource | PublicRunSource, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class Selection(BaseModel):
    """Artifacts chosen for download plus selection-time diagnostics."""

    mode: SelectionMode
    artifacts: list[Artifact] = Field(default_factory=list)
    missing_ids: list[int] = Field(default_factory=list)


class DownloadOutcome(BaseModel):
    """Result of a single artifact download."""

    model_config = ConfigDict(frozen=True)

    artifact_id: int
    name: str
    path: Path
    integrity_mismatch: bool = False


class DownloadSummary(BaseModel):
    """What a download run produced."""

    path: Path
    mode: SelectionMode
    outcomes: list[DownloadOutcome] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.outcomes)

    @property
    def mismatches(self) -> list[str]:
        return [o.name for o in self.outcomes if o.integrity_mismatch]
