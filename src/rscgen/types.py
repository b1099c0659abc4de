"""Defines the core data structures and Pydantic models for rscgen.

This module contains the central types used while turning an origin event
and a destination function into reactive smart-contract source: raw ABI
entries, the introspected event/function records, parameter bindings, the
generation configuration, and the artifacts and diagnostics produced by the
compiler. All models are immutable; every request builds fresh instances.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from web3 import Web3


def _checksum(value: str, what: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Invalid {what}: {value!r}")
    return Web3.to_checksum_address(value)


class Topology(str, Enum):
    """The three contract shapes a generated reactive contract can take.

    Attributes:
        PROTOCOL_TO_PROTOCOL: Every binding listens to its own origin contract.
        ORIGIN_TO_PROTOCOL: All bindings share a single origin contract.
        BLOCKCHAIN_WIDE: No origin contract filter; events match chain-wide
            by topic only.
    """
    PROTOCOL_TO_PROTOCOL = "PROTOCOL_TO_PROTOCOL"
    ORIGIN_TO_PROTOCOL = "ORIGIN_TO_PROTOCOL"
    BLOCKCHAIN_WIDE = "BLOCKCHAIN_WIDE"

    @classmethod
    def _missing_(cls, value: object) -> Optional["Topology"]:
        # Accept "ProtocolToProtocol", "protocol-to-protocol", etc.
        if isinstance(value, str):
            key = value.replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.value.replace("_", "").lower() == key:
                    return member
        return None


class AbiParam(BaseModel):
    """One input of a raw ABI entry.

    Attributes:
        name: Parameter name; may be empty for unnamed parameters.
        type: Solidity type string as written in the ABI (e.g. "uint256").
        indexed: Whether an event parameter is stored in the log topics.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    type: Optional[str] = None
    indexed: bool = False


class AbiEntry(BaseModel):
    """One element of a raw ABI array, as published by contract explorers.

    The wire field ``type`` is exposed as ``kind``. It is optional here so the
    introspector can report a missing kind as an invalid ABI rather than a
    generic parsing failure.
    """
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    kind: Optional[str] = Field(default=None, alias="type")
    name: str = ""
    inputs: List[AbiParam] = Field(default_factory=list)
    stateMutability: Optional[str] = None
    anonymous: bool = False
    # Pre-0.4.16 ABIs carry these flags instead of stateMutability.
    constant: Optional[bool] = None
    payable: Optional[bool] = None

    @property
    def mutability(self) -> str:
        """The declared state mutability, derived from the legacy flags when absent."""
        if self.stateMutability:
            return self.stateMutability
        if self.constant:
            return "view"
        if self.payable:
            return "payable"
        return "nonpayable"


class EventParam(BaseModel):
    """An event input after introspection.

    Attributes:
        name: Field name from the ABI.
        type: Canonical Solidity type.
        indexed: True if the value travels in a log topic.
        position: Zero-based declaration position within the event.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    indexed: bool
    position: int


class FunctionParam(BaseModel):
    """A destination-function input after introspection."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    position: int


class EventInfo(BaseModel):
    """An event that a reactive contract can subscribe to.

    Attributes:
        name: Event name.
        inputs: Ordered event inputs.
        signature: Canonical signature, e.g. "Transfer(address,address,uint256)".
        topic0: 0x-prefixed keccak-256 hash of ``signature``.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    inputs: List[EventParam]
    signature: str
    topic0: str

    @property
    def indexed_inputs(self) -> List[EventParam]:
        """Indexed inputs in declaration order; the k-th one is read from topic_k."""
        return [p for p in self.inputs if p.indexed]

    @property
    def data_inputs(self) -> List[EventParam]:
        """Non-indexed inputs in declaration order, i.e. the layout of the data blob."""
        return [p for p in self.inputs if not p.indexed]


class FunctionInfo(BaseModel):
    """A state-changing destination function.

    Attributes:
        name: Function name.
        inputs: Ordered function inputs.
        signature: Canonical signature, e.g. "transfer(address,uint256)".
        stateMutability: "nonpayable" or "payable".
    """
    model_config = ConfigDict(frozen=True)

    name: str
    inputs: List[FunctionParam]
    signature: str
    stateMutability: str = "nonpayable"


class FixedLiteral(BaseModel):
    """Passes a Solidity literal to the destination parameter verbatim."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["fixed"] = "fixed"
    value: str


class EventTopic(BaseModel):
    """Reads the destination parameter from log topic 1, 2 or 3."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["topic"] = "topic"
    topic_index: int = Field(alias="topicIndex")


class EventDataField(BaseModel):
    """Decodes the destination parameter from a named field of the log data."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["data"] = "data"
    field_name: str = Field(alias="fieldName")


class Unbound(BaseModel):
    """Leaves the destination parameter at the zero value of its type.

    ``value`` is filled with the zero literal when the binding is resolved.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["unbound"] = "unbound"
    value: Optional[str] = None


MappingSource = Annotated[
    Union[FixedLiteral, EventTopic, EventDataField, Unbound],
    Field(discriminator="kind"),
]


class InputMapping(BaseModel):
    """How one destination-function parameter is sourced.

    Attributes:
        target_param_name: Name of the destination parameter.
        target_type: Declared Solidity type of the destination parameter.
        source: One of FixedLiteral, EventTopic, EventDataField or Unbound.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_param_name: str = Field(default="", alias="targetParamName")
    target_type: str = Field(alias="targetType")
    source: MappingSource = Field(default_factory=Unbound)


class Binding(BaseModel):
    """An event/function pair with one mapping per destination input, order-aligned.

    ``condition`` is an optional boolean Solidity expression; the callback is
    only emitted when it holds.
    """
    model_config = ConfigDict(frozen=True)

    event: EventInfo
    function: FunctionInfo
    mappings: List[InputMapping]
    condition: Optional[str] = None


class _TargetSettings(BaseModel):
    """Fields shared by the generation config and the raw generation request."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    topology: Topology
    origin_chain_id: int = Field(alias="originChainId", gt=0)
    destination_chain_id: int = Field(alias="destinationChainId", gt=0)
    origin_addresses: List[str] = Field(default_factory=list, alias="originAddresses")
    destination_address: str = Field(alias="destinationAddress")
    pausable: bool = False
    owner_address: Optional[str] = Field(default=None, alias="ownerAddress")
    contract_name: str = Field(default="ReactiveSmartContract", alias="contractName")
    callback_gas_limit: int = Field(default=1_000_000, alias="callbackGasLimit", gt=0, lt=2**64)
    applicable_addresses: List[str] = Field(default_factory=list, alias="applicableAddresses")

    @model_validator(mode="before")
    @classmethod
    def _single_origin_shorthand(cls, data: Any) -> Any:
        if isinstance(data, dict) and "originAddress" in data:
            data = dict(data)
            origin = data.pop("originAddress")
            if "originAddresses" not in data and "origin_addresses" not in data:
                data["originAddresses"] = [] if origin in (None, "") else [origin]
        return data

    @field_validator("topology", mode="before")
    @classmethod
    def _lenient_topology(cls, value: Any) -> Any:
        return Topology(value) if isinstance(value, str) else value

    @field_validator("origin_addresses")
    @classmethod
    def _checksum_origins(cls, value: List[str]) -> List[str]:
        return [_checksum(v, "origin contract address") for v in value]

    @field_validator("applicable_addresses")
    @classmethod
    def _checksum_applicable(cls, value: List[str]) -> List[str]:
        return [_checksum(v, "applicable address") for v in value]

    @field_validator("destination_address")
    @classmethod
    def _checksum_destination(cls, value: str) -> str:
        return _checksum(value, "destination contract address")

    @field_validator("owner_address")
    @classmethod
    def _checksum_owner(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _checksum(value, "owner address")

    @field_validator("contract_name")
    @classmethod
    def _identifier(cls, value: str) -> str:
        if not value.isidentifier() or not value.isascii():
            raise ValueError(f"Contract name must be a Solidity identifier, got {value!r}")
        return value


class GenerationConfig(_TargetSettings):
    """The single input of the code emitter.

    Attributes:
        topology: Which contract shape to emit.
        origin_chain_id: Chain the subscribed events are emitted on.
        destination_chain_id: Chain the callbacks are delivered to.
        origin_addresses: Origin contracts; one per binding for
            PROTOCOL_TO_PROTOCOL, exactly one for ORIGIN_TO_PROTOCOL and none
            for BLOCKCHAIN_WIDE.
        destination_address: Contract receiving the callbacks.
        bindings: Resolved bindings; their order is the dispatch order.
        pausable: Whether to emit a pausable contract with a subscription table.
        owner_address: Optional explicit owner of a pausable contract.
        contract_name: Name of the emitted contract.
        callback_gas_limit: Gas limit attached to every callback.
        applicable_addresses: If non-empty, react() only handles logs emitted
            by one of these contracts.
    """
    bindings: List[Binding]


class CompilationDiagnostic(BaseModel):
    """A single message reported by the compiler backend."""
    model_config = ConfigDict(frozen=True)

    severity: Literal["error", "warning"]
    message: str
    location: Optional[str] = None


class GeneratedArtifact(BaseModel):
    """Emitted source plus, once compiled, its ABI and bytecode.

    Attributes:
        source_text: Complete Solidity source unit.
        contract_name: Contract the compiler output must contain.
        destination_signatures: Canonical signatures of the destination
            functions the dispatch chain calls, in binding order.
        compiled_abi: Contract ABI, present after successful compilation.
        compiled_bytecode: 0x-prefixed creation bytecode, present after
            successful compilation.
        warnings: Non-fatal compiler diagnostics.
    """
    model_config = ConfigDict(frozen=True)

    source_text: str
    contract_name: str
    destination_signatures: List[str] = Field(default_factory=list)
    compiled_abi: Optional[List[Dict[str, Any]]] = None
    compiled_bytecode: Optional[str] = None
    warnings: List[CompilationDiagnostic] = Field(default_factory=list)

    @property
    def is_compiled(self) -> bool:
        return self.compiled_abi is not None and self.compiled_bytecode is not None


class BindingRequest(BaseModel):
    """A binding as submitted by a caller: raw ABI fragments plus raw mappings."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event: AbiEntry
    function: AbiEntry
    input_mappings: List[InputMapping] = Field(default_factory=list, alias="inputMappings")
    condition: Optional[str] = None


class GenerationRequest(_TargetSettings):
    """The logical generation request; bindings are resolved before emission."""
    bindings: List[BindingRequest]


class GenerationResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_text: str = Field(alias="sourceText")
    contract_name: str = Field(alias="contractName")
    destination_signatures: List[str] = Field(default_factory=list, alias="destinationSignatures")


class CompileRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_text: str = Field(alias="sourceText", min_length=1)
    contract_name: str = Field(default="ReactiveSmartContract", alias="contractName")


class CompileResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    abi: List[Dict[str, Any]]
    bytecode: str
    warnings: List[CompilationDiagnostic] = Field(default_factory=list)


class ContractDescription(BaseModel):
    """A verified contract's ABI together with what can be bound from it."""
    model_config = ConfigDict(frozen=True)

    address: str
    abi: List[Dict[str, Any]]
    events: List[EventInfo]
    functions: List[FunctionInfo]
