from __future__ import annotations

from typing import Iterable

from ..errors import FnsplitError, SchemaError
from ..parser.scanner import ServerFunction
from ..protocol import Codec, args_schema


def check_schemas(codec: Codec, functions: Iterable[ServerFunction]) -> None:
    """Compile every signature with *codec* so unsupported types fail the build."""
    for fn in functions:
        try:
            args_schema(codec, [p.annotation for p in fn.params])
            codec.schema(fn.returns)
        except FnsplitError:
            raise
        except Exception as exc:
            raise SchemaError(fn.qualified_name, str(exc)) from exc
