"""Narrowing a run's artifacts down to the set the user asked for."""

from __future__ import annotations

import fnmatch
import json
import logging
import re

from artifetch.client.base import ArtifactClient
from artifetch.config import DownloadInputs
from artifetch.errors import ArtifactNotFoundError, ConfigurationError, ResolutionError
from artifetch.listing import check_public_source, list_artifacts
from artifetch.models import Artifact, PublicRunSource, RunQuery, Selection, SelectionMode

logger = logging.getLogger(__name__)


def selection_mode(inputs: DownloadInputs) -> SelectionMode:
    """Determine the selection mode from which inputs are set."""
    if inputs.name and inputs.artifact_ids:
        raise ConfigurationError(
            "Inputs 'name' and 'artifact-ids' cannot be used together. "
            "Please specify only one."
        )
    if inputs.name:
        return SelectionMode.NAME
    if inputs.artifact_ids:
        return SelectionMode.IDS
    if inputs.pattern:
        return SelectionMode.PATTERN
    return SelectionMode.ALL


def parse_artifact_ids(raw: str) -> list[int]:
    """Parse a comma separated id list. Repeated ids are kept once, in order."""
    tokens = [t.strip() for t in raw.split(",")]
    tokens = [t for t in tokens if t]
    if not tokens:
        raise ConfigurationError("No valid artifact IDs provided in 'artifact-ids' input")

    logger.debug("Parsed artifact IDs: %s", json.dumps(tokens, separators=(",", ":")))

    ids: list[int] = []
    for token in tokens:
        if not (token.isascii() and token.isdigit()):
            raise ConfigurationError(f"Invalid artifact ID: '{token}'. Must be a number.")
        ids.append(int(token))
    return list(dict.fromkeys(ids))


_RANGE_RE = re.compile(r"(-?\d+)\.\.(-?\d+)")


def _closing_brace(pattern: str, start: int) -> int:
    depth = 0
    for idx in range(start, len(pattern)):
        if pattern[idx] == "{":
            depth += 1
        elif pattern[idx] == "}":
            depth -= 1
            if depth == 0:
                return idx
    return -1


def _brace_options(body: str) -> list[str] | None:
    """Alternatives for one brace body, or None when it is not an expansion."""
    options, depth, last = [], 0, 0
    for idx, ch in enumerate(body):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            options.append(body[last:idx])
            last = idx + 1
    if options:
        return [*options, body[last:]]

    m = _RANGE_RE.fullmatch(body)
    if m is None:
        return None
    lo, hi = int(m.group(1)), int(m.group(2))
    step = 1 if hi >= lo else -1
    return [str(n) for n in range(lo, hi + step, step)]


def expand_braces(pattern: str) -> list[str]:
    """Expand `{a,b}` alternatives and `{1..3}` ranges, nested braces included.

    A brace pair with neither a top-level comma nor a range stays literal.
    """
    start = pattern.find("{")
    while start != -1:
        end = _closing_brace(pattern, start)
        if end != -1:
            options = _brace_options(pattern[start + 1 : end])
            if options is not None:
                head, tail = pattern[:start], pattern[end + 1 :]
                return [x for opt in options for x in expand_braces(head + opt + tail)]
        start = pattern.find("{", start + 1)
    return [pattern]


def _glob_match(name: str, pattern: str) -> bool:
    # Wildcards never match a leading dot; the pattern has to spell it out
    if name.startswith(".") and not pattern.startswith("."):
        return False
    return fnmatch.fnmatchcase(name, pattern)


def match_pattern(artifacts: list[Artifact], pattern: str) -> list[Artifact]:
    """Keep artifacts whose name matches a shell glob.

    Besides `*`, `?` and `[...]`, the pattern may use brace alternatives
    (`{linux,macos}-*`) and a leading `!` to keep everything that does not
    match. Matching is case-sensitive, and names starting with `.` only
    match patterns that start with `.` too.
    """
    negated = False
    while pattern.startswith("!"):
        negated = not negated
        pattern = pattern[1:]
    globs = expand_braces(pattern)
    return [
        a for a in artifacts if any(_glob_match(a.name, g) for g in globs) != negated
    ]


async def _select_by_name(name: str, query: RunQuery, client: ArtifactClient) -> list[Artifact]:
    logger.info("Downloading single artifact")
    if isinstance(query, PublicRunSource):
        check_public_source(query)
    try:
        artifact = await client.get_artifact(name, source=query)
    except ArtifactNotFoundError as exc:
        raise ArtifactNotFoundError(f"Artifact '{name}' not found") from exc
    logger.debug("Found named artifact '%s' (ID: %d, Size: %d)", name, artifact.id, artifact.size)
    return [artifact]


async def _select_by_ids(
    raw_ids: str, query: RunQuery, client: ArtifactClient
) -> tuple[list[Artifact], list[int]]:
    logger.info("Downloading artifacts by ID")
    requested = parse_artifact_ids(raw_ids)

    available = await list_artifacts(query, client, latest=True)
    wanted = set(requested)
    found = [a for a in available if a.id in wanted]
    if not found:
        raise ResolutionError("None of the provided artifact IDs were found")

    found_ids = {a.id for a in found}
    missing = [i for i in requested if i not in found_ids]
    if missing:
        logger.warning(
            "Could not find the following artifact IDs: %s", ", ".join(map(str, missing))
        )
    logger.debug("Found %d artifacts by ID", len(found))
    return found, missing


async def select_artifacts(
    inputs: DownloadInputs,
    query: RunQuery,
    client: ArtifactClient,
) -> Selection:
    """Resolve the user's selection inputs against the run's artifacts.

    Raises:
        ConfigurationError: Contradictory or malformed inputs.
        ArtifactNotFoundError: The named artifact does not exist.
        ResolutionError: None of the requested ids exist.
    """
    mode = selection_mode(inputs)

    if mode is SelectionMode.NAME:
        artifacts = await _select_by_name(inputs.name, query, client)
        return Selection(mode=mode, artifacts=artifacts)

    if mode is SelectionMode.IDS:
        artifacts, missing = await _select_by_ids(inputs.artifact_ids, query, client)
        return Selection(mode=mode, artifacts=artifacts, missing_ids=missing)

    available = await list_artifacts(query, client, latest=True)
    logger.debug("Found %d artifacts in run", len(available))

    if mode is SelectionMode.PATTERN:
        logger.info("Filtering artifacts by pattern '%s'", inputs.pattern)
        artifacts = match_pattern(available, inputs.pattern)
        logger.debug("Filtered from %d to %d artifacts", len(available), len(artifacts))
        return Selection(mode=mode, artifacts=artifacts)

    logger.info(
        "No input name, artifact-ids or pattern filtered specified, downloading all artifacts"
    )
    if not inputs.merge_multiple:
        logger.info("An extra directory with the artifact name will be created for each download")
    return Selection(mode=mode, artifacts=available)
