"""Wire contract shared by generated stubs and the generated dispatcher.

Request  = identifier (8 bytes, big-endian) + codec(argument tuple)
Response = codec(return value)

Failure signalling is left to the serving layer.
"""

from __future__ import annotations

import struct
from typing import Any, Protocol, Sequence, runtime_checkable

from .errors import CodecError

IDENTIFIER = struct.Struct(">Q")
IDENTIFIER_SIZE = IDENTIFIER.size


@runtime_checkable
class Codec(Protocol):
    """Pluggable serialization strategy; must be self-delimiting."""

    def schema(self, annotation: str | None) -> Any:
        ...

    def encode(self, value: Any, schema: Any) -> bytes:
        ...

    def decode(self, data: bytes, schema: Any) -> Any:
        ...


@runtime_checkable
class Transport(Protocol):
    """Moves request bytes to a dispatcher and returns the response bytes."""

    async def send(self, payload: bytes) -> bytes:
        ...


def args_schema(codec: Codec, annotations: Sequence[str | None]) -> Any:
    """Schema for an argument tuple, i.e. ``tuple[<annotations>]``."""
    inner = ", ".join(a if a is not None else "None" for a in annotations)
    return codec.schema(f"tuple[{inner}]" if annotations else "tuple[()]")


def encode_request(codec: Codec, identifier: int, args: tuple, schema: Any) -> bytearray:
    buf = bytearray(IDENTIFIER.pack(identifier))
    buf += codec.encode(args, schema)
    return buf


def split_request(request: bytes) -> tuple[int, bytes]:
    if len(request) < IDENTIFIER_SIZE:
        raise CodecError(
            f"request of {len(request)} byte(s) is shorter than the {IDENTIFIER_SIZE}-byte identifier"
        )
    (identifier,) = IDENTIFIER.unpack_from(request, 0)
    return identifier, bytes(request[IDENTIFIER_SIZE:])
