"""Page acquisition and content location for institutional listing pages."""

from .acquirer import BrowserPageAcquirer, BrowserSession, NAVIGATION_STRATEGIES
from .document import RenderedDocument
from .errors import (
    AcquisitionError,
    AcquisitionErrorKind,
    LocateError,
    LocateErrorKind,
    NormalizeError,
    NormalizeErrorKind,
    PipelineError,
)
from .http_acquirer import HttpPageAcquirer, HttpSession
from .locator import ContentLocator, LocateResult
from .retry import RetryPolicy

__all__ = [
    "AcquisitionError",
    "AcquisitionErrorKind",
    "BrowserPageAcquirer",
    "BrowserSession",
    "ContentLocator",
    "HttpPageAcquirer",
    "HttpSession",
    "LocateError",
    "LocateErrorKind",
    "LocateResult",
    "NAVIGATION_STRATEGIES",
    "NormalizeError",
    "NormalizeErrorKind",
    "PipelineError",
    "RenderedDocument",
    "RetryPolicy",
]
