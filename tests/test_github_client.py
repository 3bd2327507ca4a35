"""Tests for the httpx-backed GitHub artifact client."""

from __future__ import annotations

import asyncio
import hashlib
import io
import json
import zipfile
from pathlib import Path

import httpx
import jwt
import pytest

from artifetch.client.github import GitHubArtifactClient, parse_backend_ids
from artifetch.client.transfer import extract_archive, normalize_digest, stream_archive
from artifetch.config import RuntimeConfig
from artifetch.errors import ArtifactNotFoundError, ConfigurationError
from artifetch.models import InternalSource, PublicRunSource

RESULTS_URL = "https://results.example"


def _runtime_token(scope: str = "Actions.ExampleScope Actions.Results:run-bid:job-bid") -> str:
    return jwt.encode({"scp": scope}, "test-signing-key-" + "0" * 32, algorithm="HS256")


def _zip(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def _client(handler, **config) -> GitHubArtifactClient:
    cfg = RuntimeConfig(
        runtime_token=config.get("runtime_token", _runtime_token()),
        results_url=config.get("results_url", RESULTS_URL),
        api_url="https://api.github.test",
    )
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubArtifactClient(cfg, http=http)


def _call(client: GitHubArtifactClient, coro_fn):
    async def _run():
        async with client:
            return await coro_fn(client)

    return asyncio.run(_run())


@pytest.fixture
def source() -> PublicRunSource:
    return PublicRunSource(owner="myorg", repo="myrepo", run_id=789, raw_run_id="789", token="ghp")


class TestBackendIds:
    def test_reads_results_scope(self):
        assert parse_backend_ids(_runtime_token()) == ("run-bid", "job-bid")

    def test_missing_scope(self):
        with pytest.raises(ConfigurationError, match="Actions.Results"):
            parse_backend_ids(_runtime_token("Actions.ExampleScope"))

    def test_garbage_token(self):
        with pytest.raises(ConfigurationError, match="decode"):
            parse_backend_ids("not-a-jwt")


class TestPublicApi:
    def test_fetch_page(self, source):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "total_count": 1,
                    "artifacts": [
                        {
                            "id": 5,
                            "node_id": "n5",
                            "name": "dist",
                            "size_in_bytes": 10,
                            "expired": False,
                            "created_at": "2024-01-02T03:04:05Z",
                            "digest": None,
                        }
                    ],
                },
            )

        page = _call(
            _client(handler), lambda c: c.fetch_artifact_page(source, page=2, per_page=100)
        )
        assert page.total_count == 1
        assert page.artifacts[0].size_in_bytes == 10

        request = seen[0]
        assert request.url.path == "/repos/myorg/myrepo/actions/runs/789/artifacts"
        assert request.url.params["per_page"] == "100"
        assert request.url.params["page"] == "2"
        assert request.headers["Authorization"] == "Bearer ghp"
        assert request.headers["Accept"] == "application/vnd.github+json"

    def test_get_artifact_picks_latest(self, source):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["name"] == "dist"
            return httpx.Response(
                200,
                json={
                    "total_count": 2,
                    "artifacts": [
                        {"id": 3, "name": "dist", "size_in_bytes": 1},
                        {"id": 9, "name": "dist", "size_in_bytes": 2, "digest": "sha256:ff"},
                    ],
                },
            )

        artifact = _call(_client(handler), lambda c: c.get_artifact("dist", source=source))
        assert artifact.id == 9
        assert artifact.digest == "sha256:ff"

    def test_get_artifact_not_found(self, source):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"total_count": 0, "artifacts": []})

        with pytest.raises(ArtifactNotFoundError):
            _call(_client(handler), lambda c: c.get_artifact("dist", source=source))

    def test_http_errors_propagate(self, source):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        with pytest.raises(httpx.HTTPStatusError):
            _call(
                _client(handler), lambda c: c.fetch_artifact_page(source, page=1, per_page=100)
            )

    def test_download_follows_redirect_and_verifies(self, source, tmp_path: Path):
        archive = _zip({"hello.txt": b"hello", "nested/data.bin": b"\x00\x01"})
        digest = "sha256:" + hashlib.sha256(archive).hexdigest()
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "api.github.test":
                return httpx.Response(302, headers={"Location": "https://blob.test/a.zip"})
            return httpx.Response(200, content=archive)

        result = _call(
            _client(handler),
            lambda c: c.download_artifact(
                42, path=tmp_path / "out", expected_hash=digest, source=source
            ),
        )
        assert result.digest_mismatch is False
        assert result.digest == digest
        assert seen[0].url.path == "/repos/myorg/myrepo/actions/artifacts/42/zip"
        assert "Authorization" not in seen[1].headers
        assert (tmp_path / "out" / "hello.txt").read_bytes() == b"hello"
        assert (tmp_path / "out" / "nested" / "data.bin").read_bytes() == b"\x00\x01"
        assert [p.name for p in (tmp_path / "out").iterdir() if p.suffix == ".zip"] == []

    def test_download_reports_mismatch(self, source, tmp_path: Path):
        archive = _zip({"a.txt": b"a"})

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=archive)

        result = _call(
            _client(handler),
            lambda c: c.download_artifact(
                1, path=tmp_path, expected_hash="sha256:" + "0" * 64, source=source
            ),
        )
        assert result.digest_mismatch is True
        assert (tmp_path / "a.txt").read_bytes() == b"a"

    def test_download_without_expected_hash(self, source, tmp_path: Path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_zip({"a.txt": b"a"}))

        result = _call(
            _client(handler),
            lambda c: c.download_artifact(1, path=tmp_path, expected_hash=None, source=source),
        )
        assert result.digest_mismatch is False


class TestResultsService:
    def test_list_artifacts(self):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/ArtifactService/ListArtifacts")
            assert request.headers["Authorization"].startswith("Bearer ")
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "artifacts": [
                        {
                            "workflow_run_backend_id": "run-bid",
                            "workflow_job_run_backend_id": "job-bid",
                            "database_id": "123",
                            "name": "artifact1",
                            "size": "1024",
                            "created_at": "2024-01-02T03:04:05Z",
                            "digest": {"value": "sha256:abc123"},
                        },
                        {"database_id": "456", "name": "artifact2", "size": "2048"},
                    ]
                },
            )

        artifacts = _call(_client(handler), lambda c: c.list_artifacts())
        assert [(a.id, a.name, a.size) for a in artifacts] == [
            (123, "artifact1", 1024),
            (456, "artifact2", 2048),
        ]
        assert artifacts[0].digest == "sha256:abc123"
        assert artifacts[1].digest is None
        assert bodies[0] == {
            "workflow_run_backend_id": "run-bid",
            "workflow_job_run_backend_id": "job-bid",
        }

    def test_get_artifact_not_found(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["name_filter"] == "missing"
            return httpx.Response(200, json={"artifacts": []})

        with pytest.raises(ArtifactNotFoundError):
            _call(_client(handler), lambda c: c.get_artifact("missing", source=InternalSource()))

    def test_requires_runtime_environment(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = _client(handler, runtime_token="", results_url="")
        with pytest.raises(ConfigurationError, match="ACTIONS_RUNTIME_TOKEN"):
            _call(client, lambda c: c.list_artifacts())

    def test_download_uses_signed_url(self, tmp_path: Path):
        archive = _zip({"report.html": b"<html/>"})

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/ListArtifacts"):
                assert json.loads(request.content)["id_filter"] == "77"
                return httpx.Response(200, json={"artifacts": [{"database_id": "77", "name": "r"}]})
            if request.url.path.endswith("/GetSignedArtifactURL"):
                assert json.loads(request.content)["name"] == "r"
                return httpx.Response(200, json={"signed_url": "https://blob.test/r.zip?sig=1"})
            assert "Authorization" not in request.headers
            return httpx.Response(200, content=archive)

        result = _call(
            _client(handler),
            lambda c: c.download_artifact(
                77, path=tmp_path, expected_hash=None, source=InternalSource()
            ),
        )
        assert result.digest_mismatch is False
        assert (tmp_path / "report.html").read_bytes() == b"<html/>"


class TestTransfer:
    def test_normalize_digest(self):
        assert normalize_digest("sha256:ABC") == "abc"
        assert normalize_digest("abc") == "abc"

    def test_extract_blocks_traversal(self, tmp_path: Path):
        archive = tmp_path / "evil.zip"
        archive.write_bytes(_zip({"../escape.txt": b"x"}))
        with pytest.raises(ValueError, match="escapes"):
            extract_archive(archive, tmp_path / "dest")
        assert not (tmp_path / "escape.txt").exists()

    def test_stream_writes_run_in_worker_threads(self, monkeypatch, tmp_path: Path):
        archive = _zip({"a.txt": b"a" * 4096})
        offloaded: list[str] = []
        to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            offloaded.append(func.__name__)
            return await to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

        async def _run():
            transport = httpx.MockTransport(lambda request: httpx.Response(200, content=archive))
            async with httpx.AsyncClient(transport=transport) as http:
                return await stream_archive(
                    http, "https://blob.test/a.zip", tmp_path, expected_hash=None
                )

        result = asyncio.run(_run())
        assert result.digest == "sha256:" + hashlib.sha256(archive).hexdigest()
        assert "write" in offloaded
        assert offloaded[-1] == "extract_archive"
        assert (tmp_path / "a.txt").read_bytes() == b"a" * 4096
