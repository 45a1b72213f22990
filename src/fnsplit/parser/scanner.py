from __future__ import annotations

import ast
import copy
import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from ..errors import ParseError
from .hasher import DEFAULT_HASHER, SignatureHasher
from .module_tree import ModuleTree

logger = logging.getLogger(__name__)

MARKER_MODULE = "fnsplit"
MARKER_NAME = "server"

EXCLUDED_DIR_NAMES = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "env",
    "__pycache__",
    "build",
    "dist",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "site-packages",
}


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    annotation: str
    default: str | None = None


@dataclass(slots=True)
class ServerFunction:
    module_path: tuple[str, ...]
    name: str
    params: tuple[Parameter, ...]
    returns: str | None
    is_async: bool
    source: str
    file_path: str
    line: int
    end_line: int
    identifier: int = 0
    docstring: str | None = None
    decorators: tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        return ".".join((*self.module_path, self.name))

    @property
    def visibility(self) -> str:
        return "private" if self.name.startswith("_") else "public"


@dataclass(slots=True)
class ScanResult:
    functions: list[ServerFunction] = field(default_factory=list)
    tree: ModuleTree[ServerFunction] = field(default_factory=ModuleTree)
    # Top-level import statements per module path, in source order.
    imports: dict[tuple[str, ...], list[str]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# File discovery
# ---------------------------------------------------------------------------

def discover_python_files(project_root: Path) -> list[Path]:
    if project_root.is_file():
        return [project_root]
    discovered_files: list[Path] = []
    for path in project_root.rglob("*.py"):
        if any(part in EXCLUDED_DIR_NAMES for part in path.relative_to(project_root).parts):
            continue
        discovered_files.append(path)
    return sorted(discovered_files)


def path_to_module_path(project_root: Path, file_path: Path) -> tuple[str, ...]:
    base = project_root.parent if project_root.is_file() else project_root
    parts = file_path.relative_to(base).with_suffix("").parts
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return tuple(parts)


def parse_python_file(file_path: Path) -> tuple[str, ast.Module]:
    try:
        source = file_path.read_text(encoding="utf-8")
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", SyntaxWarning)
            return source, ast.parse(source, filename=str(file_path))
    except SyntaxError as e:
        raise ParseError(str(file_path), (e.lineno or 0, e.offset or 0), e.msg) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(str(file_path), None, str(e)) from e


# ---------------------------------------------------------------------------
# Marker detection
# ---------------------------------------------------------------------------

class MarkerResolver:
    """Knows which expressions in one file spell the ``fnsplit.server`` marker."""

    def __init__(self, tree: ast.Module) -> None:
        self.direct: set[str] = set()
        self.modules: set[str] = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom) and node.module == MARKER_MODULE and not node.level:
                for alias in node.names:
                    if alias.name == MARKER_NAME:
                        self.direct.add(alias.asname or alias.name)
            elif isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.name == MARKER_MODULE:
                        self.modules.add(alias.asname or alias.name)

    def is_reference(self, node: ast.AST) -> bool:
        if isinstance(node, ast.Name):
            return node.id in self.direct
        if isinstance(node, ast.Attribute):
            return (
                node.attr == MARKER_NAME
                and isinstance(node.value, ast.Name)
                and node.value.id in self.modules
            )
        return False

    def is_marker(self, decorator: ast.expr) -> bool:
        if isinstance(decorator, ast.Call) and not decorator.args and not decorator.keywords:
            decorator = decorator.func
        return self.is_reference(decorator)

    @property
    def active(self) -> bool:
        return bool(self.direct or self.modules)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

class ServerFunctionCollector:
    def __init__(
        self,
        file_path: Path,
        module_path: tuple[str, ...],
        source: str,
        hasher: SignatureHasher,
    ) -> None:
        self.file_path = file_path
        self.module_path = module_path
        self.lines = source.splitlines()
        self.hasher = hasher
        self.collected: list[ServerFunction] = []
        self.imports: list[str] = []

    def collect(self, tree: ast.Module) -> None:
        marker = MarkerResolver(tree)
        accepted: set[int] = set()

        for node in tree.body:
            if isinstance(node, (ast.Import, ast.ImportFrom)):
                self.imports.append(self._segment(node.lineno, node.end_lineno))
                continue
            if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            markers = [d for d in node.decorator_list if marker.is_marker(d)]
            if not markers:
                continue
            for decorator in markers:
                accepted.add(id(decorator))
                if isinstance(decorator, ast.Call):
                    accepted.add(id(decorator.func))
            self._collect_function(node, markers)

        if marker.active:
            self._reject_stray_markers(tree, marker, accepted)

    def _collect_function(
        self,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        markers: list[ast.expr],
    ) -> None:
        params = self._parameters(node)
        stripped = copy.deepcopy(node)
        stripped.decorator_list = [
            d for original, d in zip(node.decorator_list, stripped.decorator_list)
            if not any(original is m for m in markers)
        ]

        kept = [
            "@" + self._expr_text(d) for d in node.decorator_list
            if not any(d is m for m in markers)
        ]
        body = self._segment(node.lineno, node.end_lineno)
        start = min([node.lineno, *(d.lineno for d in node.decorator_list)])

        fn = ServerFunction(
            module_path=self.module_path,
            name=node.name,
            params=params,
            returns=self._expr_text(node.returns) if node.returns is not None else None,
            is_async=isinstance(node, ast.AsyncFunctionDef),
            source="\n".join([*kept, body]),
            file_path=self.file_path.as_posix(),
            line=start,
            end_line=node.end_lineno or node.lineno,
            identifier=self.hasher.identify(self.module_path, stripped),
            docstring=ast.get_docstring(node, clean=False),
            decorators=tuple(kept),
        )
        logger.debug("found %s (%#018x) at %s:%d", fn.qualified_name, fn.identifier, fn.file_path, fn.line)
        self.collected.append(fn)

    def _parameters(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> tuple[Parameter, ...]:
        args = node.args
        if args.posonlyargs or args.vararg or args.kwonlyargs or args.kwarg:
            raise self._error(
                node, f"{node.name}: only plain positional-or-keyword parameters are supported"
            )
        defaults: list[ast.expr | None] = [None] * (len(args.args) - len(args.defaults))
        defaults.extend(args.defaults)

        params = []
        for arg, default in zip(args.args, defaults):
            if arg.annotation is None:
                raise self._error(arg, f"{node.name}: parameter {arg.arg!r} needs a type annotation")
            params.append(
                Parameter(
                    name=arg.arg,
                    annotation=self._expr_text(arg.annotation),
                    default=self._expr_text(default) if default is not None else None,
                )
            )
        return tuple(params)

    def _reject_stray_markers(self, tree: ast.Module, marker: MarkerResolver, accepted: set[int]) -> None:
        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                if node not in tree.body and any(marker.is_marker(d) for d in node.decorator_list):
                    raise self._error(node, f"{node.name}: marked functions must be defined at module level")
            if marker.is_reference(node) and id(node) not in accepted:
                raise self._error(node, "marker used outside a function decorator")

    def _segment(self, start: int, end: int | None) -> str:
        return "\n".join(self.lines[start - 1:(end or start)])

    def _expr_text(self, node: ast.expr) -> str:
        # Single-line expressions keep their exact spelling; others are normalised.
        if node.lineno == node.end_lineno:
            return self.lines[node.lineno - 1].encode("utf-8")[node.col_offset:node.end_col_offset].decode("utf-8")
        return ast.unparse(node)

    def _error(self, node: Any, reason: str) -> ParseError:
        return ParseError(
            self.file_path.as_posix(),
            (getattr(node, "lineno", 0), getattr(node, "col_offset", 0) + 1),
            reason,
        )


def scan(source_roots: Sequence[Path | str], hasher: SignatureHasher = DEFAULT_HASHER) -> ScanResult:
    """Scan *source_roots* in order and collect every marked function.

    Any file that cannot be read or parsed aborts the whole scan.
    """
    result = ScanResult()

    for root_entry in source_roots:
        root = Path(root_entry).resolve()
        if not root.exists():
            raise ParseError(str(root), None, "source root does not exist")

        for file_path in discover_python_files(root):
            source, module_tree = parse_python_file(file_path)
            module_path = path_to_module_path(root, file_path)
            collector = ServerFunctionCollector(
                file_path=file_path,
                module_path=module_path,
                source=source,
                hasher=hasher,
            )
            collector.collect(module_tree)
            if not collector.collected:
                continue
            bad = [segment for segment in module_path if not segment.isidentifier()]
            if bad:
                raise ParseError(file_path.as_posix(), None, f"module name {bad[0]!r} is not importable")

            for fn in collector.collected:
                result.tree.insert(fn.module_path, fn.name, fn)
            result.functions.extend(collector.collected)
            result.imports.setdefault(module_path, []).extend(collector.imports)

    logger.info("scanned %d root(s), found %d marked function(s)", len(source_roots), len(result.functions))
    return result
