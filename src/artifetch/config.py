"""Download inputs and runtime settings, loaded from the environment or a YAML file."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from artifetch.errors import ConfigurationError
from artifetch.models import InternalSource, PublicRunSource, RunQuery

DEFAULT_API_URL = "https://api.github.com"

_TRUE_VALUES = ("true", "True", "TRUE")
_FALSE_VALUES = ("false", "False", "FALSE")


def _input(name: str) -> str:
    """Read an action input the way the runner exposes it: INPUT_<NAME>, spaces as _."""
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return os.environ.get(key, "").strip()


def _bool_input(name: str) -> bool:
    raw = _input(name)
    if not raw or raw in _FALSE_VALUES:
        return False
    if raw in _TRUE_VALUES:
        return True
    raise ConfigurationError(
        f"Input '{name}' must be one of true/True/TRUE/false/False/FALSE. Received '{raw}'."
    )


class DownloadInputs(BaseModel):
    """User intent: what to download and where."""

    name: str = ""
    path: str = ""
    github_token: str = Field(default="", repr=False)
    repository: str = ""  # owner/repo
    run_id: str = ""
    pattern: str = ""
    merge_multiple: bool = False
    artifact_ids: str = ""  # comma separated

    @classmethod
    def from_env(cls) -> DownloadInputs:
        """Load inputs from INPUT_* variables set by the Actions runner."""
        return cls(
            name=_input("name"),
            path=_input("path"),
            github_token=_input("github-token"),
            repository=_input("repository") or os.environ.get("GITHUB_REPOSITORY", ""),
            run_id=_input("run-id") or os.environ.get("GITHUB_RUN_ID", ""),
            pattern=_input("pattern"),
            merge_multiple=_bool_input("merge-multiple"),
            artifact_ids=_input("artifact-ids"),
        )

    @classmethod
    def from_file(cls, path: Path) -> DownloadInputs:
        """Load inputs from a YAML mapping. Keys use either dashes or underscores."""
        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Cannot read inputs file {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Inputs file {path} must contain a mapping")
        data = {str(k).replace("-", "_"): v for k, v in raw.items()}
        for key in ("run_id", "artifact_ids"):
            # YAML reads `run-id: 123` as an int
            if key in data and data[key] is not None:
                data[key] = str(data[key])
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid inputs file {path}: {exc}") from exc

    def merged(self, **overrides: object) -> DownloadInputs:
        """Return a copy with every non-empty override applied."""
        updates = {k: v for k, v in overrides.items() if v not in (None, "")}
        return self.model_copy(update=updates)


class RuntimeConfig(BaseModel):
    """Endpoints and credentials of the Actions runtime."""

    runtime_token: str = Field(default="", repr=False)
    results_url: str = ""
    api_url: str = DEFAULT_API_URL

    @classmethod
    def from_env(cls) -> RuntimeConfig:
        return cls(
            runtime_token=os.environ.get("ACTIONS_RUNTIME_TOKEN", ""),
            results_url=os.environ.get("ACTIONS_RESULTS_URL", ""),
            api_url=os.environ.get("GITHUB_API_URL", DEFAULT_API_URL),
        )


def resolve_download_path(raw: str) -> Path:
    """Turn the path input into an absolute directory.

    Empty means the workspace (or the current directory outside Actions);
    a leading ``~`` is the home directory.
    """
    if not raw:
        raw = os.environ.get("GITHUB_WORKSPACE") or os.getcwd()
    if raw.startswith("~"):
        raw = str(Path.home()) + raw[1:]
    return Path(raw).resolve()


def _parse_run_id(raw: str) -> int | None:
    try:
        return int(raw.strip())
    except ValueError:
        return None


def build_run_query(inputs: DownloadInputs) -> RunQuery:
    """Pick the artifact source: a token means another run through the public API."""
    if not inputs.github_token:
        return InternalSource()

    owner, _, repo = inputs.repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigurationError(
            f"Invalid repository: '{inputs.repository}'. Must be in format owner/repo"
        )

    return PublicRunSource(
        owner=owner,
        repo=repo,
        run_id=_parse_run_id(inputs.run_id),
        raw_run_id=inputs.run_id,
        token=inputs.github_token,
    )
