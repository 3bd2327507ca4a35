"""Exception hierarchy for artifact resolution and download."""

from __future__ import annotations


class ArtifetchError(Exception):
    """Base class for errors that abort a download run."""


class ConfigurationError(ArtifetchError, ValueError):
    """Inputs are invalid or contradictory. Raised before any network call."""


class ResolutionError(ArtifetchError):
    """The requested artifacts could not be resolved after enumeration."""


class ArtifactNotFoundError(ResolutionError):
    """A named artifact does not exist in the run."""
