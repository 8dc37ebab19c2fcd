"""Error taxonomy for fleet refreshes and entity mutations.

- NetworkError: the request never completed (connection refused, timeout).
- HttpError: the coordinator answered with a failure status.
- ParseError: the response body could not be decoded into the expected shape.
- AbortError: a detail request was cancelled on purpose. Not a failure.
"""

from __future__ import annotations

from dataclasses import dataclass


class FleetError(Exception):
    """Base class for every error raised while talking to the coordinator."""


class NetworkError(FleetError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True, slots=True)
class HttpError(FleetError):
    status: int
    body: str = ""

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.body}"

    @property
    def not_found(self) -> bool:
        return self.status == 404


class ParseError(FleetError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AbortError(FleetError):
    """Raised to awaiters of a request that was superseded or closed."""

    def __init__(self, entity_id: str | None = None) -> None:
        super().__init__(f"request aborted for {entity_id or '-'}")
        self.entity_id = entity_id
