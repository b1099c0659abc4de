"""
rscgen Utilities Subpackage.

Pure helpers: ABI introspection, binding resolution and typed Solidity
fragments.
"""

from .abi import extract_events, extract_functions, load_abi, topic0
from .bindings import resolve_binding

__all__ = ["extract_events", "extract_functions", "load_abi", "topic0", "resolve_binding"]
