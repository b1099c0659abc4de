# tests/conftest.py
import pytest
from web3 import Web3

from rscgen.types import GenerationConfig, InputMapping, EventTopic, EventDataField, Topology
from rscgen.utils.abi import event_info, function_info, parse_entry
from rscgen.utils.bindings import resolve_binding

TRANSFER_TOPIC0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
APPROVAL_TOPIC0 = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"

ORIGIN_A = Web3.to_checksum_address("0x" + "a1" * 20)
ORIGIN_B = Web3.to_checksum_address("0x" + "b2" * 20)
DESTINATION = Web3.to_checksum_address("0x" + "c3" * 20)
OWNER = Web3.to_checksum_address("0x" + "d4" * 20)

ERC20_ABI = [
    {
        "type": "event",
        "name": "Transfer",
        "anonymous": False,
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "Approval",
        "anonymous": False,
        "inputs": [
            {"name": "owner", "type": "address", "indexed": True},
            {"name": "spender", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

MINT_ENTRY = {
    "type": "function",
    "name": "mint",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "to", "type": "address"},
        {"name": "amount", "type": "uint256"},
    ],
}

PING_ENTRY = {
    "type": "function",
    "name": "ping",
    "stateMutability": "nonpayable",
    "inputs": [{"name": "spender", "type": "address"}],
}


# --- Fixtures ---------------------------------------------------------------

@pytest.fixture
def erc20_abi():
    return [dict(entry) for entry in ERC20_ABI]


@pytest.fixture
def transfer_event():
    return event_info(parse_entry(ERC20_ABI[0]))


@pytest.fixture
def approval_event():
    return event_info(parse_entry(ERC20_ABI[1]))


@pytest.fixture
def mint_function():
    return function_info(parse_entry(MINT_ENTRY))


@pytest.fixture
def ping_function():
    return function_info(parse_entry(PING_ENTRY))


@pytest.fixture
def transfer_binding(transfer_event, mint_function):
    # Transfer(from, to, value) -> mint(to, value)
    return resolve_binding(transfer_event, mint_function, [
        InputMapping(target_param_name="to", target_type="address", source=EventTopic(topic_index=2)),
        InputMapping(target_param_name="amount", target_type="uint256", source=EventDataField(field_name="value")),
    ])


@pytest.fixture
def approval_binding(approval_event, ping_function):
    # Approval(owner, spender, value) -> ping(spender)
    return resolve_binding(approval_event, ping_function, [
        InputMapping(target_param_name="spender", target_type="address", source=EventTopic(topic_index=2)),
    ])


@pytest.fixture
def make_config(transfer_binding):
    def _make(**overrides):
        fields = dict(
            topology=Topology.ORIGIN_TO_PROTOCOL,
            origin_chain_id=11155111,
            destination_chain_id=5318008,
            origin_addresses=[ORIGIN_A],
            destination_address=DESTINATION,
            bindings=[transfer_binding],
        )
        fields.update(overrides)
        return GenerationConfig(**fields)
    return _make


@pytest.fixture
def generation_request():
    """A camelCase generation request as an external caller would send it."""
    return {
        "topology": "ORIGIN_TO_PROTOCOL",
        "originChainId": 11155111,
        "destinationChainId": 5318008,
        "originAddress": ORIGIN_A.lower(),
        "destinationAddress": DESTINATION.lower(),
        "bindings": [
            {
                "event": ERC20_ABI[0],
                "function": MINT_ENTRY,
                "inputMappings": [
                    {"targetParamName": "to", "targetType": "address", "source": {"kind": "topic", "topicIndex": 2}},
                    {"targetParamName": "amount", "targetType": "uint256", "source": {"kind": "data", "fieldName": "value"}},
                ],
            }
        ],
    }
