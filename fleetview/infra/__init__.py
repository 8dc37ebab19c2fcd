"""Internal machinery: the coordinator HTTP client."""

from .http import (
    Auth,
    BearerAuth,
    HttpClient,
    HttpError,
    NetworkError,
    ParseError,
)

__all__ = [
    "Auth",
    "BearerAuth",
    "HttpClient",
    "HttpError",
    "NetworkError",
    "ParseError",
]
