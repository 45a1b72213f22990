"""Rewrite marked functions in a copy of the client source tree into call stubs."""

from __future__ import annotations

import logging
import shutil
from collections import defaultdict
from pathlib import Path

from ..config import parse_reference, resolve_reference
from ..errors import ConfigError
from ..parser.hasher import DEFAULT_HASHER, SignatureHasher, check_unique_identifiers
from ..parser.scanner import ServerFunction, scan
from .common import check_schemas

logger = logging.getLogger(__name__)

# Stub names never start with an import alias, whatever the function is called.
IMPORT_PREFIX = "_fnsplit_"
STUB_PREFIX = "_fnsplit_stub_"
COPY_IGNORE = shutil.ignore_patterns(".git", "__pycache__", "*.pyc")


def generate_client(
    source_root: Path | str,
    output_dir: Path | str,
    transport: str,
    codec: str = "fnsplit.codec:binary_codec",
    hasher: SignatureHasher = DEFAULT_HASHER,
) -> list[str]:
    """
    Copy *source_root* to *output_dir* and turn every marked function into a stub.

    Args:
        source_root: Client source directory (or single ``.py`` file).
        output_dir: Destination; replaced if it exists. Must not contain,
            or sit inside, the source directory.
        transport: ``"module:attribute"`` reference imported by the stubs.
        codec: ``"module:attribute"`` reference to the codec object.

    Returns:
        List of file paths that were rewritten.
    """
    source_root = Path(source_root).resolve()
    output_dir = Path(output_dir).resolve()
    parse_reference(transport)
    _check_separate(source_root, output_dir)

    result = scan([source_root], hasher=hasher)
    check_unique_identifiers(result.functions)
    check_schemas(resolve_reference(codec), result.functions)

    # ── Copy the whole tree; stubs are spliced into the copy ─────────────────
    if output_dir.exists():
        shutil.rmtree(output_dir)
    if source_root.is_file():
        output_dir.mkdir(parents=True)
        shutil.copy2(source_root, output_dir / source_root.name)
        base = source_root.parent
    else:
        shutil.copytree(source_root, output_dir, ignore=COPY_IGNORE)
        base = source_root

    by_file: dict[str, list[ServerFunction]] = defaultdict(list)
    for fn in result.functions:
        by_file[fn.file_path].append(fn)

    modified: list[str] = []
    for source_file, funcs in by_file.items():
        target = output_dir / Path(source_file).relative_to(base)
        original_text = target.read_text(encoding="utf-8")
        new_text = rewrite_source(original_text, funcs, transport=transport, codec=codec)
        if new_text == original_text:
            continue
        target.write_text(new_text, encoding="utf-8")
        modified.append(str(target))
        logger.info("wrote %d stub(s) to %s", len(funcs), target)

    return modified


def rewrite_source(text: str, funcs: list[ServerFunction], *, transport: str, codec: str) -> str:
    """Replace each function's lines in *text* with its stub.

    The import block goes right above the first marked function so that it
    never lands ahead of a module docstring or ``from __future__`` import.
    """
    lines = text.splitlines(keepends=True)
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"

    # Sort bottom-to-top so earlier line numbers remain valid.
    ordered = sorted(funcs, key=lambda fn: fn.line, reverse=True)
    for fn in ordered:
        start = fn.line - 1
        end = fn.end_line
        lines[start:end] = [ln + "\n" for ln in render_stub(fn).splitlines()]

    first = ordered[-1].line - 1
    lines[first:first] = [ln + "\n" for ln in render_imports(transport, codec).splitlines()]
    return "".join(lines)


def render_imports(transport: str, codec: str) -> str:
    codec_module, codec_attr = parse_reference(codec)
    transport_module, transport_attr = parse_reference(transport)
    return "\n".join([
        f"from fnsplit.client import Stub as {IMPORT_PREFIX}Stub",
        f"from {codec_module} import {codec_attr} as {IMPORT_PREFIX}codec",
        f"from {transport_module} import {transport_attr} as {IMPORT_PREFIX}transport",
        "",
        "",
    ])


def render_stub(fn: ServerFunction) -> str:
    """Stub assignment plus an async def with the original signature.

    Decorators other than the marker stay with the server implementation;
    they are hashed into the identifier but not applied to the stub.
    """
    stub_name = STUB_PREFIX + fn.name
    params = ", ".join(repr(p.annotation) for p in fn.params)
    if len(fn.params) == 1:
        params += ","

    signature = ", ".join(
        f"{p.name}: {p.annotation}" + (f" = {p.default}" if p.default is not None else "")
        for p in fn.params
    )
    returns = f" -> {fn.returns}" if fn.returns is not None else ""
    call_args = ", ".join(p.name for p in fn.params)

    out = [
        f"{stub_name} = {IMPORT_PREFIX}Stub(",
        f"    {fn.identifier:#018x},",
        f"    ({params}),",
        f"    {fn.returns!r},",
        f"    codec={IMPORT_PREFIX}codec,",
        f"    transport={IMPORT_PREFIX}transport,",
        f"    name={fn.qualified_name!r},",
        ")",
        "",
        "",
        f"async def {fn.name}({signature}){returns}:",
    ]
    if fn.docstring is not None:
        out.append(f"    {_docstring_literal(fn.docstring)}")
    out.append(f"    return await {stub_name}({call_args})")
    return "\n".join(out)


def _docstring_literal(doc: str) -> str:
    if '"""' not in doc and "\\" not in doc and not doc.endswith('"'):
        return f'"""{doc}"""'
    return repr(doc)


def _check_separate(source_root: Path, output_dir: Path) -> None:
    """The output directory is deleted before copying, so it must not overlap the source."""
    source_dir = source_root.parent if source_root.is_file() else source_root
    if source_dir.is_relative_to(output_dir) or (
        source_root.is_dir() and output_dir.is_relative_to(source_root)
    ):
        raise ConfigError(f"output directory {output_dir} overlaps source root {source_root}")
