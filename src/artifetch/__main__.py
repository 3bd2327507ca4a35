"""CLI entrypoint for downloading workflow run artifacts.

Usage:
    artifetch                                  # inputs from INPUT_* (Actions)
    artifetch --pattern 'dist-*' --merge-multiple --path out/
    artifetch --github-token $TOKEN --repository owner/repo --run-id 123
    artifetch --inputs download.yaml

Flags override values from --inputs, which override INPUT_* environment
variables. ARTIFETCH_DEBUG or RUNNER_DEBUG=1 enables debug logging.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from artifetch.client import GitHubArtifactClient
from artifetch.config import DownloadInputs
from artifetch.logs import configure_logging
from artifetch.models import DownloadSummary
from artifetch.run import run_download

logger = logging.getLogger("artifetch")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="artifetch",
        description="Download the artifacts of a GitHub Actions workflow run.",
    )
    parser.add_argument("--name", help="Download a single artifact by name")
    parser.add_argument("--artifact-ids", help="Comma separated artifact IDs to download")
    parser.add_argument("--pattern", help="Glob matched against artifact names")
    parser.add_argument("--path", help="Destination directory (default: workspace or cwd)")
    parser.add_argument(
        "--merge-multiple",
        action="store_true",
        default=None,
        help="Extract every artifact into the same directory",
    )
    parser.add_argument("--github-token", help="Token for downloading from another run")
    parser.add_argument("--repository", help="owner/repo of the other run")
    parser.add_argument("--run-id", help="Workflow run ID of the other run")
    parser.add_argument("--inputs", type=Path, help="YAML file with download inputs")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def load_inputs(args: argparse.Namespace) -> DownloadInputs:
    """Layer inputs: INPUT_* env, then the --inputs file, then flags."""
    inputs = DownloadInputs.from_env()
    if args.inputs:
        file_inputs = DownloadInputs.from_file(args.inputs)
        inputs = inputs.merged(**file_inputs.model_dump(exclude_defaults=True))
    return inputs.merged(
        name=args.name,
        artifact_ids=args.artifact_ids,
        pattern=args.pattern,
        path=args.path,
        merge_multiple=args.merge_multiple,
        github_token=args.github_token,
        repository=args.repository,
        run_id=args.run_id,
    )


async def _run(inputs: DownloadInputs) -> DownloadSummary:
    async with GitHubArtifactClient() as client:
        return await run_download(inputs, client)


def main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    args = _build_parser().parse_args(argv)
    debug = args.debug or bool(os.environ.get("ARTIFETCH_DEBUG"))
    debug = debug or os.environ.get("RUNNER_DEBUG") == "1"
    configure_logging(debug)

    try:
        inputs = load_inputs(args)
        asyncio.run(_run(inputs))
    except Exception as exc:
        logger.error("Unable to download artifact(s): %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
