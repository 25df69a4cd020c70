"""Fatal pipeline errors.

Each error carries a ``kind`` so the orchestrator can log and report which
stage failed without matching on message text. Per-item extraction failures
are never raised; they simply drop the item.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class AcquisitionErrorKind(str, Enum):
    NAVIGATION_FAILED = "NavigationFailed"
    INIT_FAILED = "InitFailed"
    CHALLENGE_UNRESOLVED = "ChallengeUnresolved"


class LocateErrorKind(str, Enum):
    NO_CONTENT_FOUND = "NoContentFound"


class NormalizeErrorKind(str, Enum):
    EMPTY_RESULT = "EmptyResult"


class PipelineError(Exception):
    """Base class for errors that end a pipeline run in the fallback path."""

    stage = "pipeline"

    def __init__(self, kind: Enum, message: str = "", *, url: Optional[str] = None):
        self.kind = kind
        self.url = url
        text = f"{kind.value}: {message}" if message else kind.value
        super().__init__(text)


class AcquisitionError(PipelineError):
    """The page could not be loaded into a usable document."""

    stage = "acquiring"


class LocateError(PipelineError):
    """No candidate selector matched the rendered listing."""

    stage = "locating"


class NormalizeError(PipelineError):
    """No item survived extraction and normalization."""

    stage = "normalizing"


__all__ = [
    "AcquisitionError",
    "AcquisitionErrorKind",
    "LocateError",
    "LocateErrorKind",
    "NormalizeError",
    "NormalizeErrorKind",
    "PipelineError",
]
