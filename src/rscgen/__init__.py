"""
rscgen: generates and compiles reactive smart contracts.

A reactive contract subscribes to events on an origin chain and, for each
matching log, emits a callback that invokes a function on a destination
contract. rscgen turns event/function bindings into that contract's source
and compiles it with solc.
"""

from .clients import CompilerClient, ExplorerAbiSource, RscClient
from .config import RscgenConfig, setup_logging
from .errors import (
    CompilationError,
    ContractNotFoundError,
    ExternalServiceError,
    InvalidAbiError,
    RscgenError,
    UnsupportedTopologyError,
    ValidationError,
)
from .generator import emit, plan
from .types import GeneratedArtifact, GenerationConfig, Topology

__all__ = [
    "CompilerClient",
    "ExplorerAbiSource",
    "RscClient",
    "RscgenConfig",
    "setup_logging",
    "RscgenError",
    "InvalidAbiError",
    "ValidationError",
    "UnsupportedTopologyError",
    "ExternalServiceError",
    "CompilationError",
    "ContractNotFoundError",
    "emit",
    "plan",
    "GeneratedArtifact",
    "GenerationConfig",
    "Topology",
]
