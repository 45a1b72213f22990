"""Convertor: turn scanned marked functions into client stubs and a server package."""

from .client_stub import generate_client, rewrite_source
from .server_dispatch import generate_server, render_package

__all__ = ["generate_client", "rewrite_source", "generate_server", "render_package"]
