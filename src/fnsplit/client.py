"""Runtime half of a generated client stub."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from .errors import CallCancelledError, CodecError, FnsplitError, TransportError
from .protocol import Codec, Transport, args_schema, encode_request

logger = logging.getLogger(__name__)


class Stub:
    """Callable that forwards its arguments to the function behind *identifier*.

    Generated code builds one Stub per marked function and hands it the
    configured codec and transport::

        _fnsplit_add = Stub(0x9F..., ("u64", "i32"), "f32",
                            codec=binary_codec, transport=transport, name="add")

        async def add(a: u64, b: i32) -> f32:
            return await _fnsplit_add(a, b)
    """

    def __init__(
        self,
        identifier: int,
        params: Sequence[str],
        returns: str | None,
        *,
        codec: Codec,
        transport: Transport,
        name: str = "",
    ) -> None:
        self.identifier = identifier
        self.name = name or f"{identifier:#018x}"
        self.codec = codec
        self.transport = transport
        self.args_schema = args_schema(codec, params)
        self.return_schema = codec.schema(returns)

    async def __call__(self, *args: Any) -> Any:
        request = _codec_call(encode_request, self.codec, self.identifier, args, self.args_schema)
        try:
            response = await self.transport.send(bytes(request))
        except asyncio.CancelledError as exc:
            raise CallCancelledError(f"call to {self.name} was cancelled") from exc
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(f"call to {self.name} failed: {exc}") from exc
        finally:
            request.clear()

        logger.debug("%s: %d byte response", self.name, len(response))
        return _codec_call(self.codec.decode, response, self.return_schema)

    def __repr__(self) -> str:
        return f"Stub({self.name}, {self.identifier:#018x})"


def _codec_call(func, *args):
    try:
        return func(*args)
    except FnsplitError:
        raise
    except Exception as exc:
        raise CodecError(str(exc)) from exc
