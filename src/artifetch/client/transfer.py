"""Streaming archive download with SHA-256 verification and safe extraction."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
import zipfile
from pathlib import Path

import httpx

from artifetch.client.base import DownloadResponse

log = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def normalize_digest(value: str) -> str:
    """Strip an optional ``sha256:`` prefix and lowercase the hex."""
    return value.removeprefix("sha256:").strip().lower()


def _resolve_member(dest: Path, member: str) -> Path:
    """Resolve an archive member under dest, blocking traversal attempts."""
    resolved = (dest / member).resolve()
    if not resolved.is_relative_to(dest.resolve()):
        raise ValueError(f"Archive entry escapes destination: {member}")
    return resolved


def extract_archive(archive: Path, dest: Path) -> int:
    """Extract a zip archive into dest. Returns the number of files written."""
    dest.mkdir(parents=True, exist_ok=True)
    written = 0
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = _resolve_member(dest, info.filename)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, target.open("wb") as out:
                while block := src.read(_CHUNK_SIZE):
                    out.write(block)
            written += 1
    return written


async def stream_archive(
    http: httpx.AsyncClient,
    url: str,
    dest: Path,
    *,
    expected_hash: str | None,
    headers: dict[str, str] | None = None,
) -> DownloadResponse:
    """Stream a zip archive from url, hash it, and extract it into dest.

    A digest mismatch is reported, not raised; the content is still extracted.
    """
    dest.mkdir(parents=True, exist_ok=True)
    sha = hashlib.sha256()
    fd, tmp_name = tempfile.mkstemp(prefix=".artifact-", suffix=".zip", dir=dest)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            async with http.stream("GET", url, headers=headers, follow_redirects=True) as resp:
                resp.raise_for_status()
                async for block in resp.aiter_bytes(_CHUNK_SIZE):
                    sha.update(block)
                    await asyncio.to_thread(fh.write, block)

        digest = f"sha256:{sha.hexdigest()}"
        mismatch = False
        if expected_hash:
            mismatch = normalize_digest(expected_hash) != sha.hexdigest()
            if mismatch:
                log.debug("digest mismatch: expected %s, computed %s", expected_hash, digest)

        files = await asyncio.to_thread(extract_archive, tmp, dest)
        log.debug("extracted %d file(s) into %s", files, dest)
        return DownloadResponse(digest_mismatch=mismatch, digest=digest)
    finally:
        tmp.unlink(missing_ok=True)
