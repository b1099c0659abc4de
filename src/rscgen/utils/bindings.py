"""Resolves how each destination-function parameter is sourced from an event.

Given an introspected event, a destination function, and one raw mapping
per destination input, ``resolve_binding`` validates every mapping against
the EVM log layout and returns an immutable ``Binding`` ready for the code
emitter. It also owns the two small type tables the emitter relies on:
canonical zero literals for unbound parameters and the casts that
reinterpret a 32-byte topic as a typed value.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError
from web3 import Web3

from rscgen.errors import InvalidAbiError, ValidationError
from rscgen.types import (
    Binding,
    EventDataField,
    EventInfo,
    EventTopic,
    FixedLiteral,
    FunctionInfo,
    InputMapping,
    Unbound,
)
from rscgen.utils.abi import parse_type

MAX_TOPIC_MAPPINGS = 3

# Zero literal per base type; bytesN is handled separately.
_ZERO_VALUES: Dict[str, str] = {
    "address": "address(0)",
    "bool": "false",
    "uint": "0",
    "int": "0",
    "string": '""',
    "bytes": '""',
}

# Outside string literals these end the expression or comment out what follows.
_STATEMENT_CHARS = frozenset(";{}")
_COMMENT_OPENERS = ("//", "/*")


def zero_value(type_str: str) -> str:
    """Returns the canonical zero literal for a supported type.

    Raises:
        InvalidAbiError: If the type is not supported.
    """
    abi_type = parse_type(type_str)
    if abi_type.base == "bytes" and abi_type.sub is not None:
        return f"bytes{abi_type.sub}(0)"
    return _ZERO_VALUES[abi_type.base]


def topic_expression(type_str: str, topic_index: int) -> str:
    """Returns the Solidity expression reading ``topic_<topic_index>`` as ``type_str``.

    Raises:
        ValueError: If the type cannot be held in a single topic word.
    """
    topic = f"topic_{topic_index}"
    abi_type = parse_type(type_str)
    base, sub = abi_type.base, abi_type.sub

    if base == "address":
        return f"address(uint160({topic}))"
    if base == "bool":
        return f"{topic} != 0"
    if base == "uint":
        return topic if sub == 256 else f"uint{sub}({topic})"
    if base == "int":
        return f"int256({topic})" if sub == 256 else f"int{sub}(int256({topic}))"
    if base == "bytes" and sub is not None:
        return f"bytes32({topic})" if sub == 32 else f"bytes{sub}(bytes32({topic}))"
    raise ValueError(f"type '{type_str}' cannot be read from a log topic")


def _coerce(raw: Union[InputMapping, Mapping[str, Any]], index: int) -> InputMapping:
    if isinstance(raw, InputMapping):
        return raw
    try:
        return InputMapping.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"malformed mapping: {e}", index=index) from e


def is_single_expression(value: str) -> bool:
    """Tells whether ``value`` can be spliced into an argument list as one expression.

    Statement separators, braces and comment openers are only allowed inside
    quoted string literals. Line breaks and unterminated quotes are rejected.
    """
    quote = None
    escaped = False
    for i, ch in enumerate(value):
        if ch in "\r\n":
            return False
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in _STATEMENT_CHARS or value.startswith(_COMMENT_OPENERS, i):
            return False
    return quote is None


def check_expression(value: str, what: str, index: Optional[int] = None, field: Optional[str] = None) -> str:
    """Strips ``value`` and checks that it is one non-empty Solidity expression.

    Raises:
        ValidationError: If the value is empty or not a single expression.
    """
    value = value.strip()
    if not value:
        raise ValidationError(f"{what} is empty", index=index, field=field)
    if not is_single_expression(value):
        raise ValidationError(f"{what} {value!r} is not a single expression", index=index, field=field)
    return value


def _resolve_literal(mapping: InputMapping, source: FixedLiteral, index: int) -> FixedLiteral:
    value = check_expression(source.value, "fixed literal", index=index, field="value")
    # solc rejects address literals that are not EIP-55 checksummed
    if parse_type(mapping.target_type).base == "address" and Web3.is_address(value):
        value = Web3.to_checksum_address(value)
    return FixedLiteral(value=value)


def resolve_binding(
    event: EventInfo,
    fn: FunctionInfo,
    raw_mappings: Sequence[Union[InputMapping, Mapping[str, Any]]],
    condition: Optional[str] = None,
) -> Binding:
    """Validates and normalizes the mappings for one event/function pair.

    Rules:
      1. There is exactly one mapping per destination input, in order, and
         each mapping's target type equals the input's type (no widening).
      2. EventTopic(k): k is 1, 2 or 3; the event has at least k indexed
         inputs (topic_k carries the k-th one); no two mappings claim the
         same topic; at most three topic mappings in total.
      3. EventDataField(name): ``name`` is a non-indexed event input whose
         type equals the target type.
      4. FixedLiteral: a single non-empty expression; address literals are
         checksummed.
      5. Unbound: receives the zero literal of the target type.
      6. condition: if given, a single boolean expression guarding the
         callback, checked like a FixedLiteral.

    Args:
        event: The origin event.
        fn: The destination function.
        raw_mappings: InputMapping instances or their dict form.
        condition: Optional guard evaluated before the callback is emitted.

    Returns:
        A validated Binding.

    Raises:
        ValidationError: On the first violated rule, naming the mapping index.
    """
    mappings = [_coerce(raw, i) for i, raw in enumerate(raw_mappings)]
    if len(mappings) != len(fn.inputs):
        raise ValidationError(
            f"function '{fn.signature}' takes {len(fn.inputs)} inputs but {len(mappings)} mappings were given",
            field="inputMappings",
        )

    topic_mappings = [m for m in mappings if isinstance(m.source, EventTopic)]
    if len(topic_mappings) > MAX_TOPIC_MAPPINGS:
        fourth = mappings.index(topic_mappings[MAX_TOPIC_MAPPINGS])
        raise ValidationError(
            f"at most {MAX_TOPIC_MAPPINGS} topic mappings are allowed per binding",
            index=fourth,
            field="topicIndex",
        )

    indexed = event.indexed_inputs
    claimed_topics: Dict[int, int] = {}
    resolved: List[InputMapping] = []

    for i, (mapping, param) in enumerate(zip(mappings, fn.inputs)):
        try:
            target_type = parse_type(mapping.target_type).to_type_str()
        except InvalidAbiError as e:
            raise ValidationError(str(e), index=i, field="targetType") from e
        if target_type != param.type:
            raise ValidationError(
                f"target type '{mapping.target_type}' does not match parameter type '{param.type}'",
                index=i,
                field="targetType",
            )
        if param.name and mapping.target_param_name and mapping.target_param_name != param.name:
            raise ValidationError(
                f"target parameter '{mapping.target_param_name}' does not match '{param.name}'",
                index=i,
                field="targetParamName",
            )

        source = mapping.source
        if isinstance(source, EventTopic):
            k = source.topic_index
            if k not in (1, 2, 3):
                raise ValidationError(f"topic index {k} is out of range 1..3", index=i, field="topicIndex")
            if k in claimed_topics:
                raise ValidationError(
                    f"topic {k} is already claimed by mapping #{claimed_topics[k]}",
                    index=i,
                    field="topicIndex",
                )
            if k > len(indexed):
                raise ValidationError(
                    f"event '{event.signature}' has {len(indexed)} indexed inputs, so topic_{k} is not an indexed field",
                    index=i,
                    field="topicIndex",
                )
            try:
                topic_expression(target_type, k)
            except ValueError as e:
                raise ValidationError(str(e), index=i, field="targetType") from e
            claimed_topics[k] = i

        elif isinstance(source, EventDataField):
            field = next((p for p in event.inputs if source.field_name and p.name == source.field_name), None)
            if field is None:
                raise ValidationError(
                    f"event '{event.name}' has no field '{source.field_name}'", index=i, field="fieldName"
                )
            if field.indexed:
                raise ValidationError(
                    f"field '{source.field_name}' is indexed and travels in the topics, not the data",
                    index=i,
                    field="fieldName",
                )
            if field.type != target_type:
                raise ValidationError(
                    f"field '{source.field_name}' is '{field.type}', target expects '{target_type}'",
                    index=i,
                    field="fieldName",
                )

        elif isinstance(source, FixedLiteral):
            source = _resolve_literal(mapping, source, i)

        elif isinstance(source, Unbound):
            source = Unbound(value=zero_value(target_type))

        resolved.append(
            InputMapping(target_param_name=param.name or mapping.target_param_name, target_type=target_type, source=source)
        )

    if condition is not None:
        condition = check_expression(condition, "condition", field="condition")

    return Binding(event=event, function=fn, mappings=resolved, condition=condition)
