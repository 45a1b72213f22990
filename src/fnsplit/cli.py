"""CLI for the client and server build passes."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import load_config
from .convertor import generate_client, generate_server
from .errors import ConfigError, FnsplitError
from .parser import scan

ROOT_NOTE = (
    "Note: identifiers include module paths relative to the source roots; "
    "run the client and server passes on the same roots."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fnsplit",
        description="Split marked functions into client stubs and a server dispatcher.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Optional .env file with FNSPLIT_* settings (default: .env).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scan_cmd = sub.add_parser("scan", help="List marked functions and their identifiers.")
    scan_cmd.add_argument("roots", nargs="*", type=Path, help="Source roots (default: configured).")

    client = sub.add_parser("client", help="Write a copy of the client source with stubs.")
    client.add_argument("root", type=Path, help="Client source root (same root as the server pass).")
    client.add_argument("-o", "--output", type=Path, help="Output directory.")
    client.add_argument("--transport", help="'module:attribute' of the transport object.")
    client.add_argument("--codec", help="'module:attribute' of the codec object.")

    server = sub.add_parser("server", help="Write the server implementation package.")
    server.add_argument(
        "roots", nargs="*", type=Path,
        help="Client source roots, as given to the client pass (default: configured).",
    )
    server.add_argument("-o", "--output", type=Path, help="Output directory.")
    server.add_argument("-p", "--package", help="Generated package name.")
    server.add_argument("--codec", help="'module:attribute' of the codec object.")
    return parser


def run(args: argparse.Namespace) -> int:
    config = load_config(
        env_file=args.env_file,
        source_roots=getattr(args, "roots", None) or None,
        output=getattr(args, "output", None),
        codec=getattr(args, "codec", None),
        transport=getattr(args, "transport", None),
        package=getattr(args, "package", None),
    )

    if args.command == "scan":
        if not config.source_roots:
            raise ConfigError("no source roots given")
        result = scan(config.source_roots)
        print(f"Found {len(result.functions)} marked function(s):")
        for fn in result.functions:
            print(f"  {fn.identifier:#018x}  {fn.qualified_name}  ({fn.file_path}:{fn.line})")
        print(ROOT_NOTE)
        return 0

    if args.command == "client":
        if config.transport is None:
            raise ConfigError("the client pass needs --transport or FNSPLIT_TRANSPORT")
        print(f"[fnsplit] client pass: {args.root} -> {config.output}")
        modified = generate_client(
            args.root, config.output, transport=config.transport, codec=config.codec
        )
        print(f"[OK] {len(modified)} file(s) rewritten in {config.output}")
        return 0

    if not config.source_roots:
        raise ConfigError("no source roots given (arguments or FNSPLIT_SOURCE_ROOTS)")
    print(f"[fnsplit] server pass: {len(config.source_roots)} root(s) -> {config.output / config.package}")
    written = generate_server(
        config.source_roots, config.output, package=config.package, codec=config.codec
    )
    print(f"[OK] {len(written)} file(s) written to {config.output / config.package}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        code = run(args)
    except FnsplitError as exc:
        print(f"[ERROR] {exc}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
