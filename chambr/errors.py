"""Error taxonomy.

Every error raised by chambr carries a stable machine-readable ``code``
(e.g. "CHAMBER_NOT_FOUND") and an ``ErrorKind``. The kind's integer value
doubles as the process exit code a front-end should use.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorKind(IntEnum):
    UNEXPECTED = 1
    AUTH_CONFIG = 2
    FIXTURE_REPLAY_MISS = 3
    PROVIDER = 4
    VALIDATION = 5


class ChambrError(Exception):
    """Base class for all chambr errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, *, code: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        if kind is not None:
            self.kind = kind

    @property
    def exit_code(self) -> int:
        return int(self.kind)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(ChambrError):
    """Bad caller input: missing id, duplicate roomie, blank required field."""

    kind = ErrorKind.VALIDATION


class ChamberNotFoundError(ValidationError):
    def __init__(self, chamber_id: str) -> None:
        super().__init__(f"Chamber '{chamber_id}' was not found.", code="CHAMBER_NOT_FOUND")
        self.chamber_id = chamber_id


class InvalidChamberPayloadError(ValidationError):
    def __init__(self, chamber_id: str) -> None:
        super().__init__(
            f"Invalid chamber payload for '{chamber_id}'.", code="INVALID_CHAMBER_PAYLOAD"
        )
        self.chamber_id = chamber_id


class AuthConfigError(ChambrError):
    kind = ErrorKind.AUTH_CONFIG


class FixtureNotFoundError(ChambrError):
    kind = ErrorKind.FIXTURE_REPLAY_MISS

    def __init__(self, fixture_name: str) -> None:
        super().__init__(
            f"Fixture '{fixture_name}' was not found for replay mode.",
            code="FIXTURE_NOT_FOUND",
        )
        self.fixture_name = fixture_name


class FixtureReplayMissError(ChambrError):
    kind = ErrorKind.FIXTURE_REPLAY_MISS

    def __init__(self, fixture_name: str, request_hash: str) -> None:
        super().__init__(
            f"Fixture replay miss for '{fixture_name}' (hash={request_hash[:12]}).",
            code="FIXTURE_REPLAY_MISS",
        )
        self.fixture_name = fixture_name
        self.request_hash = request_hash


class ProviderError(ChambrError):
    """Raised when the text-generation backend fails or a run cannot complete."""

    kind = ErrorKind.PROVIDER
