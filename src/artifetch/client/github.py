"""GitHub artifact client: internal results service plus the public REST API."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import httpx
import jwt

from artifetch.client.base import DownloadResponse
from artifetch.client.transfer import stream_archive
from artifetch.config import RuntimeConfig
from artifetch.errors import ArtifactNotFoundError, ConfigurationError
from artifetch.models import Artifact, ArtifactPage, PublicRunSource, RawArtifact, RunQuery

log = logging.getLogger(__name__)

_TWIRP_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"
_GITHUB_ACCEPT = "application/vnd.github+json"


def parse_backend_ids(runtime_token: str) -> tuple[str, str]:
    """Extract (workflow run, workflow job run) backend ids from the runtime token.

    The ids live in the ``scp`` claim as ``Actions.Results:<run>:<job>``. The
    token is only read here, never verified; the results service does that.
    """
    try:
        claims = jwt.decode(runtime_token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise ConfigurationError(f"Failed to decode ACTIONS_RUNTIME_TOKEN: {exc}") from exc

    for scope in str(claims.get("scp", "")).split(" "):
        parts = scope.split(":")
        if parts[0] == "Actions.Results" and len(parts) == 3:
            return parts[1], parts[2]

    raise ConfigurationError("ACTIONS_RUNTIME_TOKEN has no Actions.Results scope")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def normalize_artifact(raw: RawArtifact) -> Artifact:
    """Map a public REST record onto the canonical Artifact."""
    return Artifact(
        id=raw.id,
        name=raw.name,
        size=raw.size_in_bytes,
        created_at=_parse_timestamp(raw.created_at),
        digest=raw.digest or None,
    )


def _from_results_service(item: dict) -> Artifact:
    """Map a results-service record; int64 fields come back as strings."""
    digest = item.get("digest")
    if isinstance(digest, dict):
        digest = digest.get("value")
    return Artifact(
        id=int(item["database_id"]),
        name=item["name"],
        size=int(item.get("size") or 0),
        created_at=_parse_timestamp(item.get("created_at")),
        digest=digest or None,
    )


class GitHubArtifactClient:
    """ArtifactClient backed by httpx, for both same-run and cross-run access."""

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or RuntimeConfig.from_env()
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=300.0))
        self._backend_ids: tuple[str, str] | None = None

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> GitHubArtifactClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internal results service
    # ------------------------------------------------------------------

    def _runtime_ids(self) -> tuple[str, str]:
        if self._backend_ids is None:
            if not self.config.runtime_token or not self.config.results_url:
                raise ConfigurationError(
                    "ACTIONS_RUNTIME_TOKEN and ACTIONS_RESULTS_URL are required to access "
                    "artifacts of the current run. Provide 'github-token', 'repository' "
                    "and 'run-id' to download from another run."
                )
            self._backend_ids = parse_backend_ids(self.config.runtime_token)
        return self._backend_ids

    async def _twirp(self, method: str, body: dict) -> dict:
        run_id, job_id = self._runtime_ids()
        url = f"{self.config.results_url.rstrip('/')}/{_TWIRP_SERVICE}/{method}"
        payload = {"workflow_run_backend_id": run_id, "workflow_job_run_backend_id": job_id}
        payload.update(body)
        r = await self._http.post(
            url,
            headers={"Authorization": f"Bearer {self.config.runtime_token}"},
            json=payload,
        )
        r.raise_for_status()
        return r.json()

    async def list_artifacts(self) -> list[Artifact]:
        data = await self._twirp("ListArtifacts", {})
        artifacts = [_from_results_service(item) for item in data.get("artifacts") or []]
        log.debug("results service listed %d artifact(s)", len(artifacts))
        return artifacts

    async def _get_internal(self, name: str) -> Artifact:
        data = await self._twirp("ListArtifacts", {"name_filter": name})
        matches = [_from_results_service(item) for item in data.get("artifacts") or []]
        if not matches:
            raise ArtifactNotFoundError(f"Artifact '{name}' not found")
        return max(matches, key=lambda a: a.id)

    async def _signed_url(self, artifact_id: int) -> str:
        # GetSignedArtifactURL is keyed by name, so resolve the id first
        data = await self._twirp("ListArtifacts", {"id_filter": str(artifact_id)})
        items = data.get("artifacts") or []
        if not items:
            raise ArtifactNotFoundError(f"Artifact with ID {artifact_id} not found")
        signed = await self._twirp("GetSignedArtifactURL", {"name": items[0]["name"]})
        return signed["signed_url"]

    # ------------------------------------------------------------------
    # Public REST API
    # ------------------------------------------------------------------

    def _rest_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Accept": _GITHUB_ACCEPT}

    def _runs_url(self, source: PublicRunSource) -> str:
        base = self.config.api_url.rstrip("/")
        return f"{base}/repos/{source.owner}/{source.repo}/actions/runs/{source.run_id}/artifacts"

    async def fetch_artifact_page(
        self, source: PublicRunSource, *, page: int, per_page: int
    ) -> ArtifactPage:
        r = await self._http.get(
            self._runs_url(source),
            headers=self._rest_headers(source.token),
            params={"per_page": per_page, "page": page},
        )
        r.raise_for_status()
        return ArtifactPage.model_validate(r.json())

    async def _get_public(self, name: str, source: PublicRunSource) -> Artifact:
        r = await self._http.get(
            self._runs_url(source),
            headers=self._rest_headers(source.token),
            params={"name": name},
        )
        r.raise_for_status()
        page = ArtifactPage.model_validate(r.json())
        matches = [normalize_artifact(raw) for raw in page.artifacts if raw.name == name]
        if not matches:
            raise ArtifactNotFoundError(
                f"Artifact '{name}' not found in {source.owner}/{source.repo} run {source.run_id}"
            )
        return max(matches, key=lambda a: a.id)

    # ------------------------------------------------------------------
    # Protocol surface
    # ------------------------------------------------------------------

    async def get_artifact(self, name: str, *, source: RunQuery) -> Artifact:
        if isinstance(source, PublicRunSource):
            return await self._get_public(name, source)
        return await self._get_internal(name)

    async def download_artifact(
        self,
        artifact_id: int,
        *,
        path: Path,
        expected_hash: str | None,
        source: RunQuery,
    ) -> DownloadResponse:
        if isinstance(source, PublicRunSource):
            base = self.config.api_url.rstrip("/")
            url = f"{base}/repos/{source.owner}/{source.repo}/actions/artifacts/{artifact_id}/zip"
            headers = self._rest_headers(source.token)
        else:
            # Signed blob URLs carry their own credentials
            url = await self._signed_url(artifact_id)
            headers = None

        log.debug("downloading artifact %d into %s", artifact_id, path)
        return await stream_archive(
            self._http, url, path, expected_hash=expected_hash, headers=headers
        )
