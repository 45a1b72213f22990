"""
codec.py: default self-delimiting binary codec.

Values are encoded against a schema compiled from annotation source text, so
both build passes derive the same layout from the same characters.  Integers
are LEB128 varints (zigzag for signed), floats are little-endian IEEE-754,
sequences and strings carry a varint length prefix.
"""

from __future__ import annotations

import ast
import struct
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Sequence

from .errors import CodecError, SchemaError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

INT_RANGES: dict[str, tuple[int, int]] = {
    "u8": (0, 2**8 - 1),
    "u16": (0, 2**16 - 1),
    "u32": (0, 2**32 - 1),
    "u64": (0, 2**64 - 1),
    "i8": (-(2**7), 2**7 - 1),
    "i16": (-(2**15), 2**15 - 1),
    "i32": (-(2**31), 2**31 - 1),
    "i64": (-(2**63), 2**63 - 1),
}

SCALARS = {"None", "bool", "int", "float", "f32", "f64", "str", "bytes", *INT_RANGES}
SEQUENCES = {"list", "List", "Sequence", "tuple", "Tuple"}
MAPPINGS = {"dict", "Dict", "Mapping"}


@dataclass(frozen=True, slots=True)
class Schema:
    kind: str
    items: tuple[Schema, ...] = ()

    def __str__(self) -> str:
        if not self.items:
            return self.kind
        return f"{self.kind}[{', '.join(str(item) for item in self.items)}]"


def _name_of(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Constant) and node.value is None:
        return "None"
    return None


def _compile(node: ast.expr, text: str) -> Schema:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        # String annotations ("forward references") hold the real expression.
        return _compile(ast.parse(node.value, mode="eval").body, text)

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        options = [node.left, node.right]
        none = [o for o in options if _name_of(o) == "None"]
        rest = [o for o in options if _name_of(o) != "None"]
        if len(none) == 1 and len(rest) == 1:
            return Schema("optional", (_compile(rest[0], text),))
        raise SchemaError(text, "only 'T | None' unions are supported")

    name = _name_of(node)
    if name in SCALARS:
        return Schema(name)

    if not isinstance(node, ast.Subscript):
        raise SchemaError(text)

    base = _name_of(node.value)
    args = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]

    if base == "Optional" and len(args) == 1:
        return Schema("optional", (_compile(args[0], text),))
    if base in SEQUENCES and base.lower() == "tuple":
        if len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis:
            return Schema("list", (_compile(args[0], text),))
        return Schema("tuple", tuple(_compile(arg, text) for arg in args))
    if base in SEQUENCES and len(args) == 1:
        return Schema("list", (_compile(args[0], text),))
    if base in MAPPINGS and len(args) == 2:
        return Schema("dict", (_compile(args[0], text), _compile(args[1], text)))
    raise SchemaError(text)


@lru_cache(maxsize=None)
def compile_schema(annotation: str | None) -> Schema:
    """Compile annotation source text (``"list[u32]"``) into a Schema.

    ``None`` means "no annotation" and is treated like ``-> None``.
    """
    if annotation is None:
        return Schema("None")
    try:
        node = ast.parse(annotation, mode="eval").body
    except SyntaxError as exc:
        raise SchemaError(annotation, "invalid annotation") from exc
    return _compile(node, annotation)


def tuple_schema(annotations: Sequence[str | None]) -> Schema:
    return Schema("tuple", tuple(compile_schema(a) for a in annotations))


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

_F32 = struct.Struct("<f")
_F64 = struct.Struct("<d")


class BinaryCodec:
    name = "fnsplit-binary-v1"

    def schema(self, annotation: str | None) -> Schema:
        return compile_schema(annotation)

    def encode(self, value: Any, schema: Schema) -> bytes:
        out = bytearray()
        try:
            self._write(out, value, schema)
        except CodecError:
            raise
        except (TypeError, ValueError, OverflowError, struct.error, UnicodeError) as exc:
            raise CodecError(f"cannot encode {value!r} as {schema}: {exc}") from exc
        return bytes(out)

    def decode(self, data: bytes, schema: Schema) -> Any:
        """Decode exactly one value; trailing bytes are an error."""
        value, offset = self.decode_prefix(data, 0, schema)
        if offset != len(data):
            raise CodecError(f"{len(data) - offset} trailing byte(s) after {schema}")
        return value

    def decode_prefix(self, data: bytes, offset: int, schema: Schema) -> tuple[Any, int]:
        try:
            return self._read(bytes(data), offset, schema)
        except CodecError:
            raise
        except (IndexError, ValueError, struct.error, UnicodeError) as exc:
            raise CodecError(f"malformed {schema} at offset {offset}: {exc}") from exc

    # ── writing ──────────────────────────────────────────────────────────────

    def _write(self, out: bytearray, value: Any, schema: Schema) -> None:
        kind = schema.kind
        if kind == "None":
            if value is not None:
                raise CodecError(f"expected None, got {value!r}")
        elif kind == "bool":
            if not isinstance(value, bool):
                raise CodecError(f"expected bool, got {value!r}")
            out.append(1 if value else 0)
        elif kind == "int" or kind in INT_RANGES:
            if isinstance(value, bool) or not isinstance(value, int):
                raise CodecError(f"expected {kind}, got {value!r}")
            if kind in INT_RANGES:
                low, high = INT_RANGES[kind]
                if not low <= value <= high:
                    raise CodecError(f"{value} out of range for {kind}")
            _write_varint(out, value if kind.startswith("u") else _zigzag(value))
        elif kind in ("float", "f64", "f32"):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise CodecError(f"expected {kind}, got {value!r}")
            out += (_F32 if kind == "f32" else _F64).pack(float(value))
        elif kind == "str":
            if not isinstance(value, str):
                raise CodecError(f"expected str, got {value!r}")
            raw = value.encode("utf-8")
            _write_varint(out, len(raw))
            out += raw
        elif kind == "bytes":
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise CodecError(f"expected bytes, got {value!r}")
            raw = bytes(value)
            _write_varint(out, len(raw))
            out += raw
        elif kind == "optional":
            if value is None:
                out.append(0)
            else:
                out.append(1)
                self._write(out, value, schema.items[0])
        elif kind == "list":
            items = list(value)
            _write_varint(out, len(items))
            for item in items:
                self._write(out, item, schema.items[0])
        elif kind == "tuple":
            items = tuple(value)
            if len(items) != len(schema.items):
                raise CodecError(f"expected {len(schema.items)} item(s), got {len(items)}")
            for item, item_schema in zip(items, schema.items):
                self._write(out, item, item_schema)
        elif kind == "dict":
            if not isinstance(value, dict):
                raise CodecError(f"expected dict, got {value!r}")
            _write_varint(out, len(value))
            for key, item in value.items():
                self._write(out, key, schema.items[0])
                self._write(out, item, schema.items[1])
        else:
            raise CodecError(f"unknown schema kind {kind!r}")

    # ── reading ──────────────────────────────────────────────────────────────

    def _read(self, data: bytes, offset: int, schema: Schema) -> tuple[Any, int]:
        kind = schema.kind
        if kind == "None":
            return None, offset
        if kind == "bool":
            flag = data[offset]
            if flag > 1:
                raise CodecError(f"invalid bool byte {flag}")
            return flag == 1, offset + 1
        if kind == "int" or kind in INT_RANGES:
            raw, offset = _read_varint(data, offset)
            value = raw if kind.startswith("u") else _unzigzag(raw)
            if kind in INT_RANGES:
                low, high = INT_RANGES[kind]
                if not low <= value <= high:
                    raise CodecError(f"{value} out of range for {kind}")
            return value, offset
        if kind in ("float", "f64"):
            return _F64.unpack_from(data, offset)[0], offset + _F64.size
        if kind == "f32":
            return _F32.unpack_from(data, offset)[0], offset + _F32.size
        if kind in ("str", "bytes"):
            length, offset = _read_varint(data, offset)
            end = offset + length
            if end > len(data):
                raise CodecError(f"{kind} of length {length} overruns buffer")
            raw = data[offset:end]
            return (raw.decode("utf-8") if kind == "str" else raw), end
        if kind == "optional":
            tag = data[offset]
            if tag == 0:
                return None, offset + 1
            if tag != 1:
                raise CodecError(f"invalid option tag {tag}")
            return self._read(data, offset + 1, schema.items[0])
        if kind == "list":
            count, offset = _read_varint(data, offset)
            _check_count(count, data, offset, schema.items[0])
            items = []
            for _ in range(count):
                item, offset = self._read(data, offset, schema.items[0])
                items.append(item)
            return items, offset
        if kind == "tuple":
            items = []
            for item_schema in schema.items:
                item, offset = self._read(data, offset, item_schema)
                items.append(item)
            return tuple(items), offset
        if kind == "dict":
            count, offset = _read_varint(data, offset)
            _check_count(count, data, offset, schema.items[0])
            result = {}
            for _ in range(count):
                key, offset = self._read(data, offset, schema.items[0])
                result[key], offset = self._read(data, offset, schema.items[1])
            return result, offset
        raise CodecError(f"unknown schema kind {kind!r}")


def _check_count(count: int, data: bytes, offset: int, item: Schema) -> None:
    # Zero-width items (None, empty tuples) cannot be bounded by the buffer.
    if item.kind == "None" or (item.kind == "tuple" and not item.items):
        return
    if count > len(data) - offset:
        raise CodecError(f"count {count} exceeds remaining {len(data) - offset} byte(s)")


def _zigzag(value: int) -> int:
    return value * 2 if value >= 0 else -value * 2 - 1


def _unzigzag(raw: int) -> int:
    return raw // 2 if raw % 2 == 0 else -(raw + 1) // 2


def _write_varint(out: bytearray, value: int) -> None:
    if value < 0:
        raise CodecError(f"negative varint {value}")
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _read_varint(data: memoryview, offset: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise CodecError("truncated varint")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7


binary_codec = BinaryCodec()
