from rscgen.utils.solidity import (
    CallbackEmit,
    ConstantDecl,
    DecodeData,
    DispatchBranch,
    DispatchChain,
    ReactParameters,
    SubscriptionCall,
    SubscriptionCriteria,
    SubscriptionTable,
    indent,
    local_decl,
)


def _criteria(topic):
    return SubscriptionCriteria(chain_id="ORIGIN_CHAIN_ID", contract="ORIGIN_CONTRACT", topic_0=topic)


def test_constant_decl():
    decl = ConstantDecl("uint256", "EVENT_0_TOPIC_0", "0x01")
    assert decl.render() == "uint256 private constant EVENT_0_TOPIC_0 = 0x01;"


def test_criteria_default_to_reactive_ignore():
    assert _criteria("T").arguments() == (
        "ORIGIN_CHAIN_ID", "ORIGIN_CONTRACT", "T", "REACTIVE_IGNORE", "REACTIVE_IGNORE", "REACTIVE_IGNORE",
    )


def test_subscription_call_ors_failure_into_flag():
    lines = SubscriptionCall(3, _criteria("EVENT_3_TOPIC_0")).render()
    assert lines[0] == "(bool subscribed_3,) = address(service).call("
    assert lines[-1] == "subscription_failed = subscription_failed || !subscribed_3;"
    assert '"subscribe(uint256,address,uint256,uint256,uint256,uint256)",' in lines[2]
    assert sum("REACTIVE_IGNORE" in line for line in lines) == 3


def test_decode_single_field():
    assert DecodeData((("uint256", "evt_value"),)).render() == [
        "uint256 evt_value = abi.decode(data, (uint256));",
    ]


def test_decode_leaves_unused_fields_unnamed():
    lines = DecodeData((("string", "evt_memo"), ("uint256", None), ("bytes", "evt_blob"))).render()
    assert lines == [
        "(string memory evt_memo, , bytes memory evt_blob) = abi.decode(data, (string, uint256, bytes));",
    ]


def test_callback_emit():
    lines = CallbackEmit("mint(address,uint256)", ("address(uint160(topic_2))", "evt_value")).render()
    assert lines[0] == "bytes memory payload = abi.encodeWithSignature("
    assert lines[1].strip() == '"mint(address,uint256)",'
    assert lines[-2] == ");"
    assert lines[-1] == "emit Callback(DESTINATION_CHAIN_ID, DESTINATION_CONTRACT, CALLBACK_GAS_LIMIT, payload);"


def test_callback_emit_without_arguments():
    lines = CallbackEmit("ping()", ()).render()
    assert lines[1].strip() == '"ping()"'


def test_dispatch_chain_is_if_else_if_in_order():
    emit_ = CallbackEmit("ping()", ())
    chain = DispatchChain((
        DispatchBranch("EVENT_0_TOPIC_0", (emit_,)),
        DispatchBranch("EVENT_1_TOPIC_0", (emit_,)),
    ))
    lines = chain.render()
    heads = [line for line in lines if "topic_0 ==" in line]
    assert heads == ["if (topic_0 == EVENT_0_TOPIC_0) {", "} else if (topic_0 == EVENT_1_TOPIC_0) {"]
    assert lines[-1] == "}"


def test_empty_dispatch_chain_renders_nothing():
    assert DispatchChain(()).render() == []


def test_subscription_table_mirrors_entries():
    table = SubscriptionTable((_criteria("A"), _criteria("B")))
    text = "\n".join(table.render())
    assert "internal pure override returns (Subscription[] memory)" in text
    assert "new Subscription[](2);" in text
    assert "result[0] = Subscription(" in text
    assert "result[1] = Subscription(" in text
    assert "result[2]" not in text


def test_react_parameters_hide_unused_names():
    lines = ReactParameters(frozenset({"topic_0", "data"})).render()
    assert lines[2] == "uint256 topic_0,"
    assert lines[1] == "address /* _contract */,"
    assert lines[6] == "bytes calldata data,"
    assert lines[-1] == "uint256 /* op_code */"


def test_local_decl_and_indent():
    assert local_decl("string", "s") == "string memory s"
    assert local_decl("uint8", "n") == "uint8 n"
    assert indent(["a", "", "b"], 2) == ["        a", "", "        b"]
