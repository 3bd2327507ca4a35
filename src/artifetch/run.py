"""Download orchestration: inputs → listing → selection → downloads → outputs."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from artifetch.client.base import ArtifactClient
from artifetch.config import DownloadInputs, build_run_query, resolve_download_path
from artifetch.download import download_artifacts, is_flat_layout
from artifetch.models import DownloadSummary
from artifetch.selection import select_artifacts, selection_mode

logger = logging.getLogger(__name__)

DOWNLOAD_PATH_OUTPUT = "download-path"


def set_output(name: str, value: str) -> None:
    """Publish a step output via $GITHUB_OUTPUT; log it either way."""
    output_file = os.environ.get("GITHUB_OUTPUT")
    if output_file:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with Path(output_file).open("a") as f:
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    logger.debug("output %s=%s", name, value)


async def run_download(inputs: DownloadInputs, client: ArtifactClient) -> DownloadSummary:
    """Resolve and download the artifacts described by inputs.

    Configuration errors surface before any request; resolution errors
    surface before any download.
    """
    mode = selection_mode(inputs)
    root = resolve_download_path(inputs.path)
    logger.debug("Resolved path is %s", root)
    query = build_run_query(inputs)

    selection = await select_artifacts(inputs, query, client)
    artifacts = selection.artifacts

    if artifacts:
        logger.info("Preparing to download the following artifacts:")
        for a in artifacts:
            logger.info(
                "- %s (ID: %d, Size: %d, Expected Digest: %s)", a.name, a.id, a.size, a.digest
            )

    flat = is_flat_layout(mode, inputs.merge_multiple, len(artifacts))
    outcomes = await download_artifacts(artifacts, client, root=root, flat=flat, source=query)

    summary = DownloadSummary(path=root, mode=mode, outcomes=outcomes)
    logger.info("Total of %d artifact(s) downloaded", summary.count)
    set_output(DOWNLOAD_PATH_OUTPUT, str(root))
    logger.info("Download artifact has finished successfully")
    return summary
