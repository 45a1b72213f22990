"""Runtime half of the generated dispatcher."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping

from .errors import CodecError, DuplicateIdentifierError, FnsplitError, UnknownMethodError
from .protocol import Codec, args_schema, split_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Route:
    identifier: int
    name: str
    func: Callable[..., Any]
    params: tuple[str, ...] = ()
    returns: str | None = None


class DispatchTable(Mapping[int, Route]):
    """Read-only identifier -> Route mapping, built once."""

    def __init__(self, routes: Iterable[Route]) -> None:
        table: dict[int, Route] = {}
        for route in routes:
            existing = table.get(route.identifier)
            if existing is not None:
                raise DuplicateIdentifierError(route.identifier, existing.name, route.name)
            table[route.identifier] = route
        self._routes = MappingProxyType(table)

    def __getitem__(self, identifier: int) -> Route:
        return self._routes[identifier]

    def __iter__(self) -> Iterator[int]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)


@dataclass(frozen=True, slots=True)
class _Entry:
    route: Route
    args_schema: Any
    return_schema: Any


class Dispatcher:
    """Decodes a request, invokes the matched implementation, encodes the result.

    Holds no per-request state, so one instance serves concurrent requests.
    Arguments are fully decoded before the implementation is called.
    """

    def __init__(self, table: DispatchTable, codec: Codec) -> None:
        self.table = table
        self.codec = codec
        self._entries: Mapping[int, _Entry] = MappingProxyType({
            identifier: _Entry(
                route=route,
                args_schema=args_schema(codec, route.params),
                return_schema=codec.schema(route.returns),
            )
            for identifier, route in table.items()
        })

    async def __call__(self, request: bytes) -> bytes:
        identifier, payload = split_request(request)
        entry = self._entries.get(identifier)
        if entry is None:
            logger.warning("unknown method id %#018x", identifier)
            raise UnknownMethodError(identifier)

        args = self._codec(self.codec.decode, payload, entry.args_schema)

        result = entry.route.func(*args)
        if inspect.isawaitable(result):
            result = await result
        return self._codec(self.codec.encode, result, entry.return_schema)

    @staticmethod
    def _codec(func, data, schema):
        try:
            return func(data, schema)
        except FnsplitError:
            raise
        except Exception as exc:
            raise CodecError(str(exc)) from exc
