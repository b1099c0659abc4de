"""Assembles reactive smart-contract source from a GenerationConfig.

Workflow:
  1. Select the topology strategy to obtain origin constants and the
     per-binding origin criterion.
  2. Declare one ``EVENT_<i>_TOPIC_0`` constant per binding.
  3. Issue one subscription per binding in the constructor, OR-ing every
     failure into a single flag.
  4. Build the ``topic_0`` dispatch chain, one branch per binding.
  5. For pausable contracts, build the subscription table mirroring step 3.
  6. With an address allow-list, guard react() on the log emitter.
  7. Render the typed fragments into the fixed skeleton.

Emission is pure: the same config always yields byte-identical source.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from rscgen.errors import ValidationError
from rscgen.generator.templates import (
    BASE_CONTRACT,
    CONTRACT_SKELETON,
    PAUSABLE_BASE_CONTRACT,
    REACTIVE_LIBRARY,
    SOLIDITY_PRAGMA,
)
from rscgen.generator.topology import origin_plan
from rscgen.types import (
    Binding,
    EventDataField,
    EventTopic,
    FixedLiteral,
    GeneratedArtifact,
    GenerationConfig,
    Unbound,
)
from rscgen.utils.bindings import topic_expression, zero_value
from rscgen.utils.solidity import (
    AddressAllowList,
    CallbackEmit,
    ConstantDecl,
    DecodeData,
    DispatchBranch,
    DispatchChain,
    ReactParameters,
    Require,
    Statement,
    SubscriptionCall,
    SubscriptionCriteria,
    SubscriptionTable,
    indent,
)

logger = logging.getLogger(__name__)

RESERVED_CONTRACT_NAMES = frozenset({
    "IReactive",
    "IPayable",
    "IPayer",
    "AbstractPayer",
    "ISubscriptionService",
    "ISystemContract",
    "AbstractReactive",
    "AbstractPausableReactive",
    "Subscription",
    "Callback",
})

# Reserved words and elementary type names solc refuses as contract identifiers.
SOLIDITY_KEYWORDS = frozenset({
    "abstract", "address", "after", "alias", "anonymous", "apply", "as", "assembly", "auto", "bool",
    "break", "byte", "bytes", "calldata", "case", "catch", "constant", "constructor", "continue",
    "contract", "copyof", "default", "define", "delete", "do", "else", "emit", "enum",
    "event", "external", "false", "final", "fixed", "for", "function", "hex", "if",
    "immutable", "implements", "import", "in", "indexed", "inline", "int", "interface", "internal",
    "is", "let", "library", "macro", "mapping", "match", "memory", "modifier", "mutable", "new",
    "null", "of", "override", "partial", "payable", "pragma", "private", "promise", "public", "pure",
    "reference", "relocatable", "return", "returns", "sealed", "sizeof", "static",
    "storage", "string", "struct", "super", "supports", "switch", "this", "throw", "true", "try",
    "type", "typedef", "typeof", "ufixed", "uint", "unchecked", "using", "var", "view", "virtual",
    "while",
})
_ELEMENTARY_TYPE = re.compile(r"(u?int|bytes|u?fixed)\d+(x\d+)?")

GUARD_VISIBLE_PARAMETERS = frozenset({"chain_id", "_contract", "topic_1", "topic_2", "topic_3", "block_number"})


def topic_constant_name(index: int) -> str:
    return f"EVENT_{index}_TOPIC_0"


def data_local_name(field_name: str) -> str:
    return f"evt_{field_name}"


@dataclass(frozen=True)
class ContractPlan:
    """Every generated fragment of one contract, before rendering."""
    contract_name: str
    base_contract: str
    origin_chain_id: int
    destination_chain_id: int
    destination_contract: str
    callback_gas_limit: int
    origin_constants: Tuple[ConstantDecl, ...]
    event_constants: Tuple[ConstantDecl, ...]
    subscriptions: Tuple[SubscriptionCall, ...]
    dispatch: DispatchChain
    react_parameters: ReactParameters
    pausable_table: Optional[SubscriptionTable]
    owner_address: Optional[str]
    destination_signatures: Tuple[str, ...]
    allow_list: Optional[AddressAllowList] = None

    def _constants(self) -> List[str]:
        constants = list(self.event_constants)
        if self.allow_list is not None:
            constants += self.allow_list.constants()
        return [c.render() for c in constants]

    def _helpers(self) -> str:
        blocks = [
            helper.render() for helper in (self.pausable_table, self.allow_list) if helper is not None
        ]
        if not blocks:
            return ""
        return "\n" + "\n\n".join("\n".join(indent(block, 1)) for block in blocks) + "\n"

    def _react_body(self) -> List[str]:
        lines = []
        if self.allow_list is not None:
            lines += self.allow_list.guard("_contract").render()
        return lines + self.dispatch.render()

    def _constructor_body(self) -> List[str]:
        lines = []
        if self.pausable_table is not None:
            lines.append("paused = false;")
        if self.owner_address:
            lines.append(f"owner = {self.owner_address};")
        lines.append("bool subscription_failed = false;")
        for call in self.subscriptions:
            lines.append("")
            lines += call.render()
        lines += ["", "vm = subscription_failed;"]
        return lines

    def render(self) -> str:
        return CONTRACT_SKELETON.substitute(
            pragma=SOLIDITY_PRAGMA,
            library=REACTIVE_LIBRARY,
            contract_name=self.contract_name,
            base_contract=self.base_contract,
            origin_chain_id=self.origin_chain_id,
            destination_chain_id=self.destination_chain_id,
            origin_constants="\n".join(indent([c.render() for c in self.origin_constants], 1)),
            destination_contract=self.destination_contract,
            callback_gas_limit=self.callback_gas_limit,
            event_constants="\n".join(indent(self._constants(), 1)),
            constructor_body="\n".join(indent(self._constructor_body(), 2)),
            helpers=self._helpers(),
            react_parameters="\n".join(indent(self.react_parameters.render(), 2)),
            dispatch="\n".join(indent(self._react_body(), 2)),
        )


def _branch(index: int, binding: Binding, used: Set[str]) -> DispatchBranch:
    """Builds the dispatch branch calling ``binding.function``, behind its guard if any."""
    if len(binding.mappings) != len(binding.function.inputs):
        raise ValidationError(
            f"binding #{index} has {len(binding.mappings)} mappings for "
            f"{len(binding.function.inputs)} inputs of '{binding.function.signature}'",
            field="bindings",
        )

    arguments: List[str] = []
    decoded: Set[str] = set()
    for mapping in binding.mappings:
        source = mapping.source
        if isinstance(source, EventTopic):
            used.add(f"topic_{source.topic_index}")
            arguments.append(topic_expression(mapping.target_type, source.topic_index))
        elif isinstance(source, EventDataField):
            decoded.add(source.field_name)
            arguments.append(data_local_name(source.field_name))
        elif isinstance(source, FixedLiteral):
            arguments.append(source.value)
        elif isinstance(source, Unbound):
            arguments.append(source.value or zero_value(mapping.target_type))

    statements: List[Statement] = []
    if binding.condition:
        # The guard may read any react() argument or any named data field.
        used.update(GUARD_VISIBLE_PARAMETERS)
        decoded.update(p.name for p in binding.event.data_inputs if p.name)
    if decoded:
        used.add("data")
        statements.append(DecodeData(tuple(
            (p.type, data_local_name(p.name) if p.name in decoded else None)
            for p in binding.event.data_inputs
        )))
    if binding.condition:
        statements.append(Require(binding.condition, "Condition not met"))
    statements.append(CallbackEmit(binding.function.signature, tuple(arguments)))
    return DispatchBranch(topic_constant_name(index), tuple(statements))


def plan(config: GenerationConfig) -> ContractPlan:
    """Builds the typed fragments for ``config`` without rendering them.

    Raises:
        ValidationError: If the config has no bindings, an owner without
            pausability, a reserved contract name (library types and
            Solidity keywords), or origin addresses that do not fit the
            topology.
        UnsupportedTopologyError: If the topology is unknown.
    """
    if not config.bindings:
        raise ValidationError("at least one binding is required", field="bindings")
    name = config.contract_name
    if name in RESERVED_CONTRACT_NAMES or name in SOLIDITY_KEYWORDS or _ELEMENTARY_TYPE.fullmatch(name):
        raise ValidationError(f"contract name '{name}' is reserved", field="contractName")
    if config.owner_address and not config.pausable:
        raise ValidationError("an owner address only applies to pausable contracts", field="ownerAddress")

    origins = origin_plan(config)

    seen_topics = {}
    event_constants = []
    subscriptions = []
    branches = []
    used = {"topic_0"}
    for i, binding in enumerate(config.bindings):
        first = seen_topics.setdefault(binding.event.topic0, i)
        if first != i:
            logger.debug(
                "Bindings #%d and #%d share topic0 %s (%s); only #%d is reachable",
                first, i, binding.event.topic0, binding.event.signature, first,
            )
        event_constants.append(ConstantDecl("uint256", topic_constant_name(i), binding.event.topic0))
        subscriptions.append(SubscriptionCall(i, SubscriptionCriteria(
            chain_id="ORIGIN_CHAIN_ID",
            contract=origins.criteria[i],
            topic_0=topic_constant_name(i),
        )))
        branches.append(_branch(i, binding, used))
        logger.debug("Binding #%d: %s -> %s", i, binding.event.signature, binding.function.signature)

    table = None
    if config.pausable:
        table = SubscriptionTable(tuple(call.criteria for call in subscriptions))

    allow_list = None
    if config.applicable_addresses:
        allow_list = AddressAllowList(tuple(dict.fromkeys(config.applicable_addresses)))
        used.add("_contract")

    return ContractPlan(
        contract_name=config.contract_name,
        base_contract=PAUSABLE_BASE_CONTRACT if config.pausable else BASE_CONTRACT,
        origin_chain_id=config.origin_chain_id,
        destination_chain_id=config.destination_chain_id,
        destination_contract=config.destination_address,
        callback_gas_limit=config.callback_gas_limit,
        origin_constants=origins.constants,
        event_constants=tuple(event_constants),
        subscriptions=tuple(subscriptions),
        dispatch=DispatchChain(tuple(branches)),
        react_parameters=ReactParameters(frozenset(used)),
        pausable_table=table,
        owner_address=config.owner_address,
        destination_signatures=tuple(b.function.signature for b in config.bindings),
        allow_list=allow_list,
    )


def emit(config: GenerationConfig) -> GeneratedArtifact:
    """Generates the contract source for ``config``.

    Args:
        config: Topology, chains, addresses and resolved bindings.

    Returns:
        A GeneratedArtifact carrying the source text and the contract name
        the compiler output must contain.

    Raises:
        ValidationError: See ``plan``.
        UnsupportedTopologyError: If the topology is unknown.
    """
    contract = plan(config)
    source_text = contract.render()
    logger.info(
        "Generated %s (%s, %d bindings, pausable=%s)",
        contract.contract_name, config.topology.value, len(config.bindings), config.pausable,
    )
    return GeneratedArtifact(
        source_text=source_text,
        contract_name=contract.contract_name,
        destination_signatures=list(contract.destination_signatures),
    )
