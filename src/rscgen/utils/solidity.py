"""Typed Solidity fragments rendered to source text.

The code emitter never interpolates raw strings into the contract skeleton.
It builds the fragments below (constants, subscription calls, dispatch
branches, guards, the pausable subscription table and the address
allow-list) and renders them at the end, so ordering and one-to-one
correspondences can be checked on the objects themselves rather than by
diffing source text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

INDENT = "    "
REACTIVE_IGNORE = "REACTIVE_IGNORE"
SUBSCRIBE_SIGNATURE = "subscribe(uint256,address,uint256,uint256,uint256,uint256)"

# Types that live in memory when declared as local variables.
_REFERENCE_TYPES = frozenset({"string", "bytes"})


def indent(lines: Sequence[str], level: int) -> List[str]:
    """Prefixes every non-empty line with ``level`` indentation units."""
    return [(INDENT * level + line) if line else "" for line in lines]


def local_decl(type_str: str, name: str) -> str:
    location = " memory" if type_str in _REFERENCE_TYPES else ""
    return f"{type_str}{location} {name}"


@dataclass(frozen=True)
class ConstantDecl:
    """``<type> private constant <name> = <value>;``"""
    type: str
    name: str
    value: str

    def render(self) -> str:
        return f"{self.type} private constant {self.name} = {self.value};"


@dataclass(frozen=True)
class SubscriptionCriteria:
    """The six arguments of a subscription, as Solidity expressions."""
    chain_id: str
    contract: str
    topic_0: str
    topic_1: str = REACTIVE_IGNORE
    topic_2: str = REACTIVE_IGNORE
    topic_3: str = REACTIVE_IGNORE

    def arguments(self) -> Tuple[str, str, str, str, str, str]:
        return (self.chain_id, self.contract, self.topic_0, self.topic_1, self.topic_2, self.topic_3)


@dataclass(frozen=True)
class SubscriptionCall:
    """A constructor-time subscription whose failure is OR-ed into ``subscription_failed``."""
    index: int
    criteria: SubscriptionCriteria

    @property
    def result_name(self) -> str:
        return f"subscribed_{self.index}"

    def render(self) -> List[str]:
        lines = [
            f"(bool {self.result_name},) = address(service).call(",
            f'{INDENT}abi.encodeWithSignature(',
            f'{INDENT * 2}"{SUBSCRIBE_SIGNATURE}",',
        ]
        args = self.criteria.arguments()
        lines += [f"{INDENT * 2}{arg}," for arg in args[:-1]]
        lines += [
            f"{INDENT * 2}{args[-1]}",
            f"{INDENT})",
            ");",
            f"subscription_failed = subscription_failed || !{self.result_name};",
        ]
        return lines


@dataclass(frozen=True)
class DecodeData:
    """Destructures the non-indexed event fields out of the log data blob.

    ``fields`` lists every data field in layout order as (type, local name);
    fields whose local name is None are decoded but left unnamed.
    """
    fields: Tuple[Tuple[str, Optional[str]], ...]

    def render(self) -> List[str]:
        types = ", ".join(t for t, _ in self.fields)
        if len(self.fields) == 1:
            type_str, name = self.fields[0]
            return [f"{local_decl(type_str, name)} = abi.decode(data, ({types}));"]
        targets = ", ".join(local_decl(t, n) if n else "" for t, n in self.fields)
        return [f"({targets}) = abi.decode(data, ({types}));"]


@dataclass(frozen=True)
class CallbackEmit:
    """Encodes the destination call and emits it as a Callback."""
    signature: str
    arguments: Tuple[str, ...]

    def render(self) -> List[str]:
        lines = ["bytes memory payload = abi.encodeWithSignature("]
        items = [f'"{self.signature}"', *self.arguments]
        lines += [f"{INDENT}{item}," for item in items[:-1]]
        lines += [
            f"{INDENT}{items[-1]}",
            ");",
            "emit Callback(DESTINATION_CHAIN_ID, DESTINATION_CONTRACT, CALLBACK_GAS_LIMIT, payload);",
        ]
        return lines


@dataclass(frozen=True)
class Require:
    """``require(<condition>, "<message>");``"""
    condition: str
    message: str

    def render(self) -> List[str]:
        return [f'require({self.condition}, "{self.message}");']


Statement = Union[DecodeData, Require, CallbackEmit]


@dataclass(frozen=True)
class DispatchBranch:
    """One ``topic_0 == <constant>`` arm of the react() dispatch chain."""
    topic_constant: str
    statements: Tuple[Statement, ...]

    @property
    def condition(self) -> str:
        return f"topic_0 == {self.topic_constant}"


@dataclass(frozen=True)
class DispatchChain:
    """An if / else-if chain over topic_0, one branch per binding, in binding order."""
    branches: Tuple[DispatchBranch, ...]

    def render(self) -> List[str]:
        lines: List[str] = []
        for i, branch in enumerate(self.branches):
            keyword = "if" if i == 0 else "} else if"
            lines.append(f"{keyword} ({branch.condition}) {{")
            for statement in branch.statements:
                lines += indent(statement.render(), 1)
        if self.branches:
            lines.append("}")
        return lines


@dataclass(frozen=True)
class SubscriptionTable:
    """``getPausableSubscriptions()``: the subscriptions pause/resume iterate over."""
    entries: Tuple[SubscriptionCriteria, ...]

    def render(self) -> List[str]:
        lines = [
            "function getPausableSubscriptions() internal pure override returns (Subscription[] memory) {",
            f"{INDENT}Subscription[] memory result = new Subscription[]({len(self.entries)});",
        ]
        for i, criteria in enumerate(self.entries):
            args = criteria.arguments()
            lines.append(f"{INDENT}result[{i}] = Subscription(")
            lines += [f"{INDENT * 2}{arg}," for arg in args[:-1]]
            lines += [f"{INDENT * 2}{args[-1]}", f"{INDENT});"]
        lines += [f"{INDENT}return result;", "}"]
        return lines


@dataclass(frozen=True)
class ReactParameters:
    """The react() parameter list; parameters the body never reads stay unnamed."""
    used: frozenset = field(default_factory=frozenset)

    _PARAMS = (
        ("uint256", "chain_id"),
        ("address", "_contract"),
        ("uint256", "topic_0"),
        ("uint256", "topic_1"),
        ("uint256", "topic_2"),
        ("uint256", "topic_3"),
        ("bytes calldata", "data"),
        ("uint256", "block_number"),
        ("uint256", "op_code"),
    )

    def render(self) -> List[str]:
        rendered = [
            f"{type_str} {name}" if name in self.used else f"{type_str} /* {name} */"
            for type_str, name in self._PARAMS
        ]
        return [f"{param}," for param in rendered[:-1]] + [rendered[-1]]


@dataclass(frozen=True)
class AddressAllowList:
    """``isApplicableAddress()``: membership test over ``APPLICABLE_ADDRESS_<i>`` constants."""
    addresses: Tuple[str, ...]

    @staticmethod
    def constant_name(index: int) -> str:
        return f"APPLICABLE_ADDRESS_{index}"

    def constants(self) -> Tuple[ConstantDecl, ...]:
        return tuple(
            ConstantDecl("address", self.constant_name(i), address) for i, address in enumerate(self.addresses)
        )

    def guard(self, subject: str) -> Require:
        return Require(f"isApplicableAddress({subject})", "Address not allowed")

    def render(self) -> List[str]:
        checks = [f"addr == {self.constant_name(i)}" for i in range(len(self.addresses))]
        body = [f"{INDENT}return {checks[0]}"] + [f"{INDENT * 2}|| {check}" for check in checks[1:]]
        body[-1] += ";"
        return [
            "function isApplicableAddress(address addr) private pure returns (bool) {",
            *body,
            "}",
        ]
