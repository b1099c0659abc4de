"""Code emission: topology strategies, the contract skeleton and the emitter."""

from .emitter import ContractPlan, emit, plan
from .topology import origin_plan, resolve_topology

__all__ = ["ContractPlan", "emit", "plan", "origin_plan", "resolve_topology"]
