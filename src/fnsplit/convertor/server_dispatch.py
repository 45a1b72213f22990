"""Emit a standalone implementation package plus a dispatch entry point."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Sequence

from ..config import parse_reference, resolve_reference
from ..errors import DuplicateFunctionError
from ..parser.hasher import DEFAULT_HASHER, SignatureHasher, check_unique_identifiers
from ..parser.module_tree import ModuleNode
from ..parser.scanner import ScanResult, ServerFunction, scan
from .common import check_schemas

logger = logging.getLogger(__name__)

HEADER = '"""Generated by fnsplit from {sources}. Do not edit."""\n'
DISPATCH_MODULE = "_dispatch"
EXPORTED_NAMES = ("dispatch", "dispatcher", "table")


def generate_server(
    source_roots: Sequence[Path | str],
    output_dir: Path | str,
    package: str = "remote_api",
    codec: str = "fnsplit.codec:binary_codec",
    hasher: SignatureHasher = DEFAULT_HASHER,
) -> list[Path]:
    """
    Scan the client *source_roots* and write ``<output_dir>/<package>/``.

    Nothing is written unless every root scans cleanly, identifiers are
    unique and every signature is encodable; the previous package is
    replaced only once the new one is fully rendered.

    Returns:
        Paths of the written files, inside the final package directory.
    """
    output_dir = Path(output_dir).resolve()
    parse_reference(codec)

    result = scan(source_roots, hasher=hasher)
    check_unique_identifiers(result.functions)
    check_schemas(resolve_reference(codec), result.functions)

    files = render_package(result, codec)

    output_dir.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".fnsplit-", dir=output_dir))
    try:
        for relative, text in files.items():
            path = staging / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")

        target = output_dir / package
        if target.exists():
            shutil.rmtree(target)
        shutil.move(str(staging), str(target))
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    written = [target / relative for relative in files]
    for path in written:
        logger.info("wrote %s", path)
    return written


def render_package(result: ScanResult, codec: str) -> dict[Path, str]:
    """Render the package as ``{relative path: source}``, relative to its root."""
    tree = result.tree
    root_names = set(tree.nodes[0].functions) | set(tree.nodes[0].children)
    for name in (DISPATCH_MODULE, *EXPORTED_NAMES):
        if name in root_names:
            raise DuplicateFunctionError(name)

    files: dict[Path, str] = {}
    for index, node in enumerate(tree.nodes):
        if not tree.has_functions_below(index):
            continue
        relative = Path(*node.path, "__init__.py")
        text = render_module(node, result.imports.get(node.path, []))
        if index == 0:
            text += "\nfrom ._dispatch import dispatch, dispatcher, table  # noqa: E402\n"
        files[relative] = text

    if not files:
        files[Path("__init__.py")] = (
            HEADER.format(sources="no marked functions")
            + "\nfrom ._dispatch import dispatch, dispatcher, table  # noqa: F401\n"
        )
    files[Path(DISPATCH_MODULE + ".py")] = render_dispatch(result.functions, codec)
    return files


def render_module(node: ModuleNode[ServerFunction], imports: list[str]) -> str:
    functions = list(node.functions.values())
    sources = sorted({fn.file_path for fn in functions})
    out = [HEADER.format(sources=", ".join(sources) or "nested modules")]

    # __future__ imports must stay first; identical imports are merged.
    unique = list(dict.fromkeys(imports))
    ordered = [i for i in unique if i.startswith("from __future__")]
    ordered += [i for i in unique if not i.startswith("from __future__")]
    if ordered:
        out.append("\n".join(ordered) + "\n")

    for fn in functions:
        out.append("\n\n" + fn.source + "\n")

    public = [fn.name for fn in functions if fn.visibility == "public"]
    out.append(f"\n\n__all__ = {public!r}\n")
    return "".join(out)


def render_dispatch(functions: list[ServerFunction], codec: str) -> str:
    codec_module, codec_attr = parse_reference(codec)
    out = [
        HEADER.format(sources="all marked functions"),
        "",
        "from fnsplit.dispatch import DispatchTable, Dispatcher, Route",
        f"from {codec_module} import {codec_attr} as _codec",
        "",
    ]
    for number, fn in enumerate(functions):
        module = "." + ".".join(fn.module_path)
        out.append(f"from {module} import {fn.name} as _f{number}")

    out += ["", "table = DispatchTable(["]
    for number, fn in enumerate(functions):
        params = "".join(f"{p.annotation!r}, " for p in fn.params).rstrip(" ")
        out.append(
            f"    Route({fn.identifier:#018x}, {fn.qualified_name!r}, _f{number}, "
            f"({params}), {fn.returns!r}),"
        )
    out += [
        "])",
        "",
        "dispatcher = Dispatcher(table, _codec)",
        "",
        "",
        "async def dispatch(request: bytes) -> bytes:",
        "    return await dispatcher(request)",
        "",
    ]
    return "\n".join(out)
