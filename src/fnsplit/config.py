"""
Build configuration.

Priority, lowest first: DEFAULT_CONFIG, environment (optionally from a .env
file in the working directory), explicit overrides from the CLI.
"""

from __future__ import annotations

import importlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigError

# ---------------------------------------------------------------------------
# CONFIG: defaults
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: dict[str, Any] = {
    # Ordered list of directories or .py files scanned for marked functions.
    "source_roots": [],

    # "module:attribute" reference to the codec object used on both sides.
    "codec": "fnsplit.codec:binary_codec",

    # "module:attribute" reference to the transport the client stubs send through.
    "transport": None,

    # Name of the generated server package.
    "package": "remote_api",

    # Where generated code is written.
    "output": Path("generated"),
}

ENV_PREFIX = "FNSPLIT_"


@dataclass(slots=True)
class BuildConfig:
    source_roots: list[Path] = field(default_factory=list)
    codec: str = DEFAULT_CONFIG["codec"]
    transport: str | None = None
    package: str = DEFAULT_CONFIG["package"]
    output: Path = DEFAULT_CONFIG["output"]

    def __post_init__(self) -> None:
        self.source_roots = [Path(p) for p in self.source_roots]
        self.output = Path(self.output)
        parse_reference(self.codec)
        if self.transport is not None:
            parse_reference(self.transport)
        if not self.package.isidentifier():
            raise ConfigError(f"package name {self.package!r} is not a valid identifier")


def _from_env() -> dict[str, Any]:
    values: dict[str, Any] = {}
    roots = os.getenv(ENV_PREFIX + "SOURCE_ROOTS")
    if roots:
        values["source_roots"] = [Path(p) for p in roots.split(os.pathsep) if p]
    for key in ("codec", "transport", "package", "output"):
        value = os.getenv(ENV_PREFIX + key.upper())
        if value:
            values[key] = value
    return values


def load_config(env_file: Path | str | None = ".env", **overrides: Any) -> BuildConfig:
    """Merge defaults, environment and *overrides* (``None`` values are ignored)."""
    if env_file is not None and Path(env_file).exists():
        load_dotenv(env_file)

    merged = dict(DEFAULT_CONFIG)
    merged.update(_from_env())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    unknown = set(merged) - set(DEFAULT_CONFIG)
    if unknown:
        raise ConfigError(f"unknown option(s): {', '.join(sorted(unknown))}")
    return BuildConfig(**merged)


def parse_reference(reference: str) -> tuple[str, str]:
    """Split ``"package.module:attribute"`` into its two halves."""
    module, sep, attribute = reference.partition(":")
    if (
        not sep
        or not attribute.isidentifier()
        or not all(part.isidentifier() for part in module.split("."))
    ):
        raise ConfigError(f"expected 'module:attribute', got {reference!r}")
    return module, attribute


def resolve_reference(reference: str) -> Any:
    module_name, attribute = parse_reference(reference)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"cannot import {module_name!r} for {reference!r}: {exc}") from exc
    try:
        return getattr(module, attribute)
    except AttributeError as exc:
        raise ConfigError(f"{module_name!r} has no attribute {attribute!r}") from exc
