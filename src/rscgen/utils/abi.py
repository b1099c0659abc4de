"""Introspects raw contract ABIs into bindable events and functions.

This module contains self-contained, pure functions over ABI arrays as
published by contract-verification explorers. It parses entries, rejects
types the code generator cannot handle, and computes the canonical
signatures and topic hashes that the generated contract subscribes to.

Supported parameter types:
  - address, bool, string, bytes
  - uintN / intN for N in 8..256 (step 8); ``uint``/``int`` normalize to 256 bits
  - bytesN for N in 1..32

Arrays, tuples and fixed-point types are rejected, never coerced.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Mapping, Sequence, Union

from eth_abi.exceptions import ParseError
from eth_abi.grammar import BasicType, normalize, parse
from eth_typing import HexStr
from pydantic import ValidationError as PydanticValidationError
from web3 import Web3

from rscgen.errors import InvalidAbiError
from rscgen.types import AbiEntry, EventInfo, EventParam, FunctionInfo, FunctionParam

logger = logging.getLogger(__name__)

# --- Constants ---

ABI_ENTRY_KINDS = frozenset({"function", "constructor", "event", "fallback", "receive", "error"})
READ_ONLY_MUTABILITIES = frozenset({"view", "pure"})
SUPPORTED_BASE_TYPES = frozenset({"address", "bool", "string", "bytes", "uint", "int"})


# --- Types ---

def parse_type(type_str: Any) -> BasicType:
    """Parses and validates a single supported Solidity type.

    Args:
        type_str: Type string from an ABI input (e.g. "uint", "bytes32").

    Returns:
        The normalized eth_abi BasicType.

    Raises:
        InvalidAbiError: If the type is missing, malformed, or unsupported.
    """
    if not isinstance(type_str, str) or not type_str:
        raise InvalidAbiError(f"Missing parameter type: {type_str!r}")
    try:
        abi_type = parse(normalize(type_str))
        abi_type.validate()
    except (ParseError, ValueError) as e:
        raise InvalidAbiError(f"Unrecognized ABI type '{type_str}'") from e

    if not isinstance(abi_type, BasicType) or abi_type.is_array:
        raise InvalidAbiError(f"Unsupported ABI type '{type_str}': arrays and tuples are not supported")
    if abi_type.base not in SUPPORTED_BASE_TYPES:
        raise InvalidAbiError(f"Unsupported ABI type '{type_str}'")
    return abi_type


def canonical_type(type_str: Any) -> str:
    """Returns the canonical spelling of a supported type ("uint" -> "uint256")."""
    return parse_type(type_str).to_type_str()


def canonical_signature(name: str, types: Iterable[str]) -> str:
    """Builds ``name(type1,type2,...)`` from already-canonical types."""
    return f"{name}({','.join(types)})"


def topic0(signature: str) -> HexStr:
    """Computes the 0x-prefixed keccak-256 hash of a canonical event signature."""
    return Web3.to_hex(Web3.keccak(text=signature))


# --- Intake ---

def load_abi(data: Union[str, bytes, Sequence[Any], Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Normalizes the ABI shapes seen in the wild into a plain list of entries.

    Accepts a JSON array, a compiler artifact with an ``abi`` list, or an
    explorer envelope whose ``result`` is a JSON-encoded array, either as
    Python objects or as JSON text.

    Raises:
        InvalidAbiError: If the input is none of the above.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise InvalidAbiError(f"ABI is not valid JSON: {e}") from e

    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        if isinstance(data.get("abi"), list):
            return data["abi"]
        result = data.get("result")
        if isinstance(result, str):
            try:
                decoded = json.loads(result)
            except ValueError as e:
                raise InvalidAbiError(f"Explorer result is not an ABI: {result[:80]}") from e
            if isinstance(decoded, list):
                return decoded
    raise InvalidAbiError("Unrecognized ABI format")


def parse_entry(raw: Any, position: int = 0) -> AbiEntry:
    """Parses one raw ABI entry and checks that its kind is known.

    Raises:
        InvalidAbiError: If the entry is not an object, has no ``type`` field,
            or names an unknown kind.
    """
    if isinstance(raw, AbiEntry):
        entry = raw
    elif isinstance(raw, Mapping):
        try:
            entry = AbiEntry.model_validate(raw)
        except PydanticValidationError as e:
            raise InvalidAbiError(f"Malformed ABI entry #{position}: {e}") from e
    else:
        raise InvalidAbiError(f"ABI entry #{position} is not an object")

    if entry.kind is None:
        raise InvalidAbiError(f"ABI entry #{position} ({entry.name or 'unnamed'}) has no 'type' field")
    if entry.kind not in ABI_ENTRY_KINDS:
        raise InvalidAbiError(f"ABI entry #{position} has unrecognized type '{entry.kind}'")
    return entry


def _parse_entries(abi: Sequence[Any]) -> List[AbiEntry]:
    if isinstance(abi, (str, bytes)) or not isinstance(abi, Sequence):
        raise InvalidAbiError("ABI must be an array of entries")
    return [parse_entry(raw, i) for i, raw in enumerate(abi)]


# --- Extraction ---

def event_info(entry: AbiEntry) -> EventInfo:
    """Builds an EventInfo from an event entry, computing signature and topic0."""
    params = []
    for position, param in enumerate(entry.inputs):
        try:
            type_str = canonical_type(param.type)
        except InvalidAbiError as e:
            raise InvalidAbiError(f"Event '{entry.name}' input #{position}: {e}") from e
        params.append(EventParam(name=param.name, type=type_str, indexed=param.indexed, position=position))

    signature = canonical_signature(entry.name, (p.type for p in params))
    return EventInfo(name=entry.name, inputs=params, signature=signature, topic0=topic0(signature))


def function_info(entry: AbiEntry) -> FunctionInfo:
    """Builds a FunctionInfo from a state-changing function entry."""
    params = []
    for position, param in enumerate(entry.inputs):
        try:
            type_str = canonical_type(param.type)
        except InvalidAbiError as e:
            raise InvalidAbiError(f"Function '{entry.name}' input #{position}: {e}") from e
        params.append(FunctionParam(name=param.name, type=type_str, position=position))

    return FunctionInfo(
        name=entry.name,
        inputs=params,
        signature=canonical_signature(entry.name, (p.type for p in params)),
        stateMutability=entry.mutability,
    )


def extract_events(abi: Sequence[Any]) -> List[EventInfo]:
    """Extracts every subscribable event, in ABI declaration order.

    Anonymous events are skipped: their logs carry no topic0.

    Args:
        abi: Raw ABI entries (dicts or AbiEntry).

    Returns:
        A list of EventInfo records.

    Raises:
        InvalidAbiError: If any entry is malformed or an event uses an
            unsupported type.
    """
    events = []
    for entry in _parse_entries(abi):
        if entry.kind != "event":
            continue
        if entry.anonymous:
            logger.debug("Skipping anonymous event %s", entry.name)
            continue
        events.append(event_info(entry))
    return events


def extract_functions(abi: Sequence[Any]) -> List[FunctionInfo]:
    """Extracts every state-changing function, in ABI declaration order.

    Functions declared ``view`` or ``pure`` are excluded before their inputs
    are inspected; they can never be callback targets. Legacy entries without
    ``stateMutability`` are classified by their ``constant`` and ``payable`` flags.

    Args:
        abi: Raw ABI entries (dicts or AbiEntry).

    Returns:
        A list of FunctionInfo records.

    Raises:
        InvalidAbiError: If any entry is malformed or a candidate function
            uses an unsupported type.
    """
    return [
        function_info(entry)
        for entry in _parse_entries(abi)
        if entry.kind == "function" and entry.mutability not in READ_ONLY_MUTABILITIES
    ]
