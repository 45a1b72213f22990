"""Exception hierarchy shared by the build passes and the request path."""

from __future__ import annotations

import asyncio


class FnsplitError(Exception):
    """Base class for every error raised by fnsplit."""


# ---------------------------------------------------------------------------
# Build-time errors (fatal, abort generation)
# ---------------------------------------------------------------------------

class ParseError(FnsplitError):
    def __init__(self, path: str, location: tuple[int, int] | None = None, reason: str = "") -> None:
        self.path = path
        self.location = location
        self.reason = reason
        where = path if location is None else f"{path}:{location[0]}:{location[1]}"
        super().__init__(f"{where}: {reason}" if reason else where)


class DuplicateFunctionError(FnsplitError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"function {path!r} is defined more than once")


class DuplicateIdentifierError(FnsplitError):
    def __init__(self, identifier: int, path_a: str, path_b: str) -> None:
        self.identifier = identifier
        self.path_a = path_a
        self.path_b = path_b
        super().__init__(
            f"identifier {identifier:#018x} is shared by {path_a!r} and {path_b!r}"
        )


class SchemaError(FnsplitError):
    def __init__(self, annotation: str, reason: str = "unsupported type") -> None:
        self.annotation = annotation
        super().__init__(f"{reason}: {annotation!r}")


class ConfigError(FnsplitError):
    pass


# ---------------------------------------------------------------------------
# Request-time errors (recoverable, one per call)
# ---------------------------------------------------------------------------

class UnknownMethodError(FnsplitError):
    def __init__(self, identifier: int) -> None:
        self.identifier = identifier
        super().__init__(f"Unknown method id: {identifier:#018x}")


class CodecError(FnsplitError):
    pass


class TransportError(FnsplitError):
    pass


class CallCancelledError(TransportError, asyncio.CancelledError):
    """Raised by a stub whose transport call was cancelled."""
