"""Fixed contract skeleton and the reactive base library it builds on.

The generated contract is a single self-contained source unit: the base
interfaces and abstract contracts are embedded ahead of the generated
contract so that compilation needs no import resolution.
"""
from string import Template

SOLIDITY_PRAGMA = ">=0.8.0"
SOURCE_FILE_NAME = "Contract.sol"

BASE_CONTRACT = "AbstractReactive"
PAUSABLE_BASE_CONTRACT = "AbstractPausableReactive"

REACTIVE_LIBRARY = """\
interface IReactive {
    event Callback(
        uint256 indexed chain_id,
        address indexed _contract,
        uint64 indexed gas_limit,
        bytes payload
    );

    // op_code is the number of topics in the log record (0 to 4).
    function react(
        uint256 chain_id,
        address _contract,
        uint256 topic_0,
        uint256 topic_1,
        uint256 topic_2,
        uint256 topic_3,
        bytes calldata data,
        uint256 block_number,
        uint256 op_code
    ) external;
}

interface IPayable {
    receive() external payable;

    function debt(address _contract) external view returns (uint256);
}

interface IPayer {
    function pay(uint256 amount) external;
}

abstract contract AbstractPayer is IPayer {
    IPayable internal vendor;

    modifier authorizedSenderOnly() {
        require(address(vendor) == address(0) || msg.sender == address(vendor), 'Authorized sender only');
        _;
    }

    function pay(uint256 amount) external authorizedSenderOnly {
        _pay(payable(msg.sender), amount);
    }

    function coverDebt() external {
        uint256 amount = vendor.debt(address(this));
        _pay(payable(address(vendor)), amount);
    }

    function _pay(address payable recipient, uint256 amount) internal {
        require(address(this).balance >= amount, 'Insufficient funds');
        if (amount > 0) {
            (bool success,) = payable(recipient).call{value: amount}(new bytes(0));
            require(success, 'Transfer failed');
        }
    }
}

// A zero chain id or contract address matches everything; so does
// REACTIVE_IGNORE in a topic slot. Duplicate subscriptions are accepted.
interface ISubscriptionService {
    function subscribe(
        uint256 chain_id,
        address _contract,
        uint256 topic_0,
        uint256 topic_1,
        uint256 topic_2,
        uint256 topic_3
    ) external;

    function unsubscribe(
        uint256 chain_id,
        address _contract,
        uint256 topic_0,
        uint256 topic_1,
        uint256 topic_2,
        uint256 topic_3
    ) external;
}

interface ISystemContract is IPayable, ISubscriptionService {
}

abstract contract AbstractReactive is IReactive, AbstractPayer {
    uint256 internal constant REACTIVE_IGNORE = 0xa65f96fc951c35ead38878e0f0b7a3c744a6f5ccc1476b313353ce31712313ad;
    ISystemContract internal constant SERVICE_ADDR = ISystemContract(payable(0x0000000000000000000000000000000000fffFfF));

    // True in the ReactVM copy of the contract, where the system contract is absent.
    bool internal vm;

    ISystemContract internal service;

    constructor() {
        vendor = service = SERVICE_ADDR;
    }

    modifier rnOnly() {
        require(!vm, 'Reactive Network only');
        _;
    }

    modifier vmOnly() {
        require(vm, 'VM only');
        _;
    }

    modifier sysConOnly() {
        require(msg.sender == address(service), 'System contract only');
        _;
    }
}

abstract contract AbstractPausableReactive is IReactive, AbstractReactive {
    struct Subscription {
        uint256 chain_id;
        address _contract;
        uint256 topic_0;
        uint256 topic_1;
        uint256 topic_2;
        uint256 topic_3;
    }

    address internal owner;
    bool internal paused;

    constructor() {
        owner = msg.sender;
    }

    function getPausableSubscriptions() internal view virtual returns (Subscription[] memory);

    modifier onlyOwner() {
        require(msg.sender == owner, 'Unauthorized');
        _;
    }

    function pause() external rnOnly onlyOwner {
        require(!paused, 'Already paused');
        Subscription[] memory subscriptions = getPausableSubscriptions();
        for (uint256 ix = 0; ix != subscriptions.length; ++ix) {
            service.unsubscribe(
                subscriptions[ix].chain_id,
                subscriptions[ix]._contract,
                subscriptions[ix].topic_0,
                subscriptions[ix].topic_1,
                subscriptions[ix].topic_2,
                subscriptions[ix].topic_3
            );
        }
        paused = true;
    }

    function resume() external rnOnly onlyOwner {
        require(paused, 'Not paused');
        Subscription[] memory subscriptions = getPausableSubscriptions();
        for (uint256 ix = 0; ix != subscriptions.length; ++ix) {
            service.subscribe(
                subscriptions[ix].chain_id,
                subscriptions[ix]._contract,
                subscriptions[ix].topic_0,
                subscriptions[ix].topic_1,
                subscriptions[ix].topic_2,
                subscriptions[ix].topic_3
            );
        }
        paused = false;
    }
}
"""

CONTRACT_SKELETON = Template("""\
// SPDX-License-Identifier: GPL-2.0-or-later
pragma solidity $pragma;

$library
contract $contract_name is $base_contract {
    uint256 private constant ORIGIN_CHAIN_ID = $origin_chain_id;
    uint256 private constant DESTINATION_CHAIN_ID = $destination_chain_id;
$origin_constants
    address private constant DESTINATION_CONTRACT = $destination_contract;
    uint64 private constant CALLBACK_GAS_LIMIT = $callback_gas_limit;

$event_constants

    constructor() {
$constructor_body
    }

    receive() external payable {}
$helpers
    function react(
$react_parameters
    ) external override vmOnly {
$dispatch
    }
}
""")
