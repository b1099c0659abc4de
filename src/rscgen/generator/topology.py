"""Topology strategy selection.

The three topologies differ only in how the origin-contract criterion of
each subscription is obtained. ``origin_plan`` switches on the closed
``Topology`` enum exactly once; there is no default branch.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from rscgen.errors import UnsupportedTopologyError, ValidationError
from rscgen.types import GenerationConfig, Topology
from rscgen.utils.solidity import ConstantDecl

# The subscription service treats a zero contract address as "any contract".
ANY_CONTRACT = "address(0)"


@dataclass(frozen=True)
class OriginPlan:
    """Origin-side fragments for one contract.

    Attributes:
        constants: Origin address constants to declare, in order.
        criteria: The origin contract expression for each binding's
            subscription, aligned with ``config.bindings``.
    """
    constants: Tuple[ConstantDecl, ...]
    criteria: Tuple[str, ...]


def resolve_topology(value: Any) -> Topology:
    """Maps a raw topology value onto the closed enum.

    Raises:
        UnsupportedTopologyError: For anything that is not a known topology.
    """
    if isinstance(value, Topology):
        return value
    try:
        return Topology(value)
    except ValueError:
        raise UnsupportedTopologyError(f"Unsupported topology: {value!r}") from None


def _protocol_to_protocol(config: GenerationConfig) -> OriginPlan:
    origins = config.origin_addresses
    if len(origins) != len(config.bindings):
        raise ValidationError(
            f"PROTOCOL_TO_PROTOCOL needs one origin address per binding "
            f"({len(config.bindings)}), got {len(origins)}",
            field="originAddresses",
        )
    names: Dict[str, str] = {}
    constants: List[ConstantDecl] = []
    for address in origins:
        if address not in names:
            names[address] = f"ORIGIN_CONTRACT_{len(names)}"
            constants.append(ConstantDecl("address", names[address], address))
    return OriginPlan(tuple(constants), tuple(names[a] for a in origins))


def _origin_to_protocol(config: GenerationConfig) -> OriginPlan:
    if len(config.origin_addresses) != 1:
        raise ValidationError(
            f"ORIGIN_TO_PROTOCOL needs exactly one origin address, got {len(config.origin_addresses)}",
            field="originAddresses",
        )
    constant = ConstantDecl("address", "ORIGIN_CONTRACT", config.origin_addresses[0])
    return OriginPlan((constant,), tuple(constant.name for _ in config.bindings))


def _blockchain_wide(config: GenerationConfig) -> OriginPlan:
    if config.origin_addresses:
        raise ValidationError("BLOCKCHAIN_WIDE does not take origin addresses", field="originAddresses")
    return OriginPlan((), tuple(ANY_CONTRACT for _ in config.bindings))


def origin_plan(config: GenerationConfig) -> OriginPlan:
    """Selects the emission strategy for ``config.topology`` and applies it.

    Raises:
        UnsupportedTopologyError: If the topology is not one of the three known kinds.
        ValidationError: If the origin addresses do not fit the topology.
    """
    topology = resolve_topology(config.topology)
    if topology is Topology.PROTOCOL_TO_PROTOCOL:
        return _protocol_to_protocol(config)
    elif topology is Topology.ORIGIN_TO_PROTOCOL:
        return _origin_to_protocol(config)
    elif topology is Topology.BLOCKCHAIN_WIDE:
        return _blockchain_wide(config)
    raise UnsupportedTopologyError(f"No emission strategy for topology {topology!r}")
