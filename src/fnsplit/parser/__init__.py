from .hasher import Blake2bHasher, SignatureHasher, canonical_text, check_unique_identifiers
from .module_tree import ModuleNode, ModuleTree
from .scanner import (
    Parameter,
    ScanResult,
    ServerFunction,
    discover_python_files,
    parse_python_file,
    scan,
)

__all__ = [
    "Blake2bHasher",
    "SignatureHasher",
    "canonical_text",
    "check_unique_identifiers",
    "ModuleNode",
    "ModuleTree",
    "Parameter",
    "ScanResult",
    "ServerFunction",
    "discover_python_files",
    "parse_python_file",
    "scan",
]
