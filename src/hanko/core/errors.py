"""Errors raised while resolving keys from a source.

Adapters normalize every transport/HTTP outcome into one of these classes, so
the orchestrator never inspects raw status codes. Only `UserNotFound` is a soft
failure; every other `SourceError` aborts the run.
"""

from __future__ import annotations


class SourceError(Exception):
    """Base class for errors when interacting with a source."""

    message = "source error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class UserNotFound(SourceError):
    message = "requested user could not be found"


class BadCredentials(SourceError):
    message = "used credentials are invalid"


class RatelimitExceeded(SourceError):
    message = "rate limit has been exceeded"


class SourceConnectionError(SourceError):
    message = "connection error occurred"


class ClientError(SourceError):
    """A 4xx response not claimed by a provider specific rule."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"client request error (HTTP {status_code})")


class ServerError(SourceError):
    """The server failed or answered with something we cannot use.

    Carries either the 5xx status code or a diagnostic reason (undecodable
    body, malformed header).
    """

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"server error occurred, {reason}")

    @classmethod
    def from_status(cls, status_code: int) -> "ServerError":
        return cls(f"unexpected status code {status_code}", status_code=status_code)


class MalformedHeader(ServerError):
    def __init__(self, name: str, msg: str) -> None:
        self.name = name
        super().__init__(f"malformed `{name}` header: {msg}")


class UnclassifiedOutcome(RuntimeError):
    """Internal bug: an HTTP outcome escaped every classification rule.

    Not a `SourceError`: it must never be handled as a source failure.
    """


class ResolutionError(Exception):
    """A hard source failure aborted the resolution of all signers."""

    def __init__(self, signer: str, source: str, error: SourceError) -> None:
        self.signer = signer
        self.source = source
        self.error = error
        super().__init__(
            f"Failed to get keys of signer {signer!r} from source {source!r}: {error}"
        )


class ConfigurationError(ValueError):
    """The configuration file is unreadable or semantically invalid."""
