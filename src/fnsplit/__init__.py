"""Author a function once; ship a client stub and a server implementation.

Mark functions with :func:`server`, then run the two build passes::

    fnsplit client src/ --output build/client --transport myapp.net:transport
    fnsplit server src/ --output build/server --package remote_api
"""

from typing import Callable, TypeVar

from .client import Stub
from .dispatch import DispatchTable, Dispatcher, Route
from .errors import (
    CallCancelledError,
    CodecError,
    ConfigError,
    DuplicateFunctionError,
    DuplicateIdentifierError,
    FnsplitError,
    ParseError,
    SchemaError,
    TransportError,
    UnknownMethodError,
)

F = TypeVar("F", bound=Callable)

__version__ = "0.1.0"


def server(func: F | None = None):
    """Mark *func* for server-side execution.

    Usable as ``@server`` or ``@server()``.  At runtime the decorator changes
    nothing; the build passes find it in source text.
    """
    if func is None:
        return server
    func.__fnsplit_server__ = True
    return func


__all__ = [
    "server",
    "Stub",
    "DispatchTable",
    "Dispatcher",
    "Route",
    "CallCancelledError",
    "CodecError",
    "ConfigError",
    "DuplicateFunctionError",
    "DuplicateIdentifierError",
    "FnsplitError",
    "ParseError",
    "SchemaError",
    "TransportError",
    "UnknownMethodError",
]
