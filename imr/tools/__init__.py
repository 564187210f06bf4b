"""Third-party helper tools fetched at build time."""

from .http import HttpClient, HttpError, MockHttpClient, RealHttpClient
from .rcedit import Rcedit, RceditError

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    "Rcedit",
    "RceditError",
]
