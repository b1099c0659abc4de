"""
rscgen Client Subpackage.

This package provides the clients that talk to collaborators: the solc
compiler adapter, the verified-contract explorer, and the RscClient facade
that runs the whole generation pipeline.
"""

from .base_client import BaseClient
from .compiler_client import CompilerClient, SolcxBackend
from .abi_source import ExplorerAbiSource
from .rsc_client import RscClient

__all__ = [
    "BaseClient",
    "CompilerClient",
    "SolcxBackend",
    "ExplorerAbiSource",
    "RscClient",
]
