"""Identifier derivation for marked functions."""

from __future__ import annotations

import ast
import hashlib
from typing import Iterable, Protocol, Sequence

from ..errors import DuplicateIdentifierError

# Fields that vary between interpreter versions without changing meaning.
IGNORED_FIELDS = {"type_comment", "type_params", "kind"}


class SignatureHasher(Protocol):
    version: str

    def identify(self, module_path: Sequence[str], node: ast.FunctionDef | ast.AsyncFunctionDef) -> int:
        ...


def canonical_text(node: ast.AST) -> str:
    """Position-free rendering of *node*.

    Unlike ``ast.dump`` the output does not depend on the interpreter version:
    empty lists and ``None`` fields are always left out.
    """
    parts: list[str] = []

    def emit(value: object) -> None:
        if isinstance(value, ast.AST):
            parts.append(type(value).__name__)
            parts.append("(")
            for name in value._fields:
                if name in IGNORED_FIELDS:
                    continue
                field_value = getattr(value, name, None)
                if field_value is None or field_value == []:
                    continue
                parts.append(name)
                parts.append("=")
                emit(field_value)
                parts.append(",")
            parts.append(")")
        elif isinstance(value, list):
            parts.append("[")
            for item in value:
                emit(item)
                parts.append(",")
            parts.append("]")
        else:
            parts.append(repr(value))

    emit(node)
    return "".join(parts)


class Blake2bHasher:
    """64-bit BLAKE2b over the module path and the canonical AST text.

    Formatting and comments do not affect the result while every token does.
    The node must already have the marker decorator removed.
    """

    version = "fnsplit-id-v1"

    def identify(self, module_path: Sequence[str], node: ast.FunctionDef | ast.AsyncFunctionDef) -> int:
        digest = hashlib.blake2b(digest_size=8)
        digest.update(self.version.encode("ascii"))
        digest.update(b"\0")
        digest.update(".".join(module_path).encode("utf-8"))
        digest.update(b"\0")
        digest.update(canonical_text(node).encode("utf-8"))
        return int.from_bytes(digest.digest(), "big")


DEFAULT_HASHER = Blake2bHasher()


def check_unique_identifiers(functions: Iterable) -> None:
    """Raise DuplicateIdentifierError on the first colliding pair."""
    seen: dict[int, str] = {}
    for fn in functions:
        other = seen.get(fn.identifier)
        if other is not None and other != fn.qualified_name:
            raise DuplicateIdentifierError(fn.identifier, other, fn.qualified_name)
        seen[fn.identifier] = fn.qualified_name
