import json
import threading

import pytest
import solcx
from solcx.exceptions import SolcError

from rscgen.clients.compiler_client import CompilerClient, SolcxBackend, format_bytecode
from rscgen.config import CompilerConfig, RscgenConfig
from rscgen.errors import (
    CompilationError,
    ContractNotFoundError,
    ExternalServiceError,
    ValidationError,
)
from rscgen.generator.emitter import emit
from rscgen.types import EventDataField, EventTopic, InputMapping, Topology
from rscgen.utils.bindings import resolve_binding
from tests.conftest import ORIGIN_A, ORIGIN_B

SOURCE = "pragma solidity >=0.8.0; contract ReactiveSmartContract {}"
ABI = [{"type": "constructor", "inputs": [], "stateMutability": "nonpayable"}]


def _output(contracts=None, errors=None):
    output = {"sources": {"Contract.sol": {"id": 0}}}
    if contracts is not None:
        output["contracts"] = {"Contract.sol": contracts}
    if errors is not None:
        output["errors"] = errors
    return output


def _compiled(abi=ABI, bytecode="6080604052"):
    return {"abi": abi, "evm": {"bytecode": {"object": bytecode}}}


def _diag(severity, message, start=0):
    return {
        "severity": severity,
        "type": "Warning" if severity != "error" else "TypeError",
        "message": message,
        "formattedMessage": f"{message}\n --> Contract.sol",
        "sourceLocation": {"file": "Contract.sol", "start": start, "end": start + 4},
    }


class FakeBackend:
    def __init__(self, output=None, raise_exc=None):
        self.output = output
        self.raise_exc = raise_exc
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.raise_exc:
            raise self.raise_exc
        return self.output


# --- compile ----------------------------------------------------------------

def test_compile_returns_abi_and_prefixed_bytecode():
    backend = FakeBackend(_output({"ReactiveSmartContract": _compiled()}))
    artifact = CompilerClient(backend=backend).compile(SOURCE, "ReactiveSmartContract")
    assert artifact.compiled_abi == ABI
    assert artifact.compiled_bytecode == "0x6080604052"
    assert artifact.source_text == SOURCE
    assert artifact.is_compiled
    assert artifact.warnings == []


def test_compile_sends_standard_json_request():
    backend = FakeBackend(_output({"ReactiveSmartContract": _compiled()}))
    CompilerClient(backend=backend).compile(SOURCE, "ReactiveSmartContract")
    (request,) = backend.requests
    assert request["language"] == "Solidity"
    assert request["sources"] == {"Contract.sol": {"content": SOURCE}}
    assert request["settings"]["outputSelection"] == {"*": {"*": ["abi", "evm.bytecode.object"]}}
    assert "optimizer" not in request["settings"]
    assert "evmVersion" not in request["settings"]


def test_compile_request_honours_optimizer_and_evm_version():
    config = RscgenConfig(compiler=CompilerConfig(optimize=True, optimize_runs=1000, evm_version="paris"))
    settings = CompilerClient(config=config, backend=FakeBackend()).build_request(SOURCE)["settings"]
    assert settings["optimizer"] == {"enabled": True, "runs": 1000}
    assert settings["evmVersion"] == "paris"


def test_compile_keeps_warnings():
    output = _output(
        {"ReactiveSmartContract": _compiled()},
        errors=[_diag("warning", "Unused local variable.", 10), _diag("info", "Consider pragma.")],
    )
    artifact = CompilerClient(backend=FakeBackend(output)).compile(SOURCE, "ReactiveSmartContract")
    assert [w.message for w in artifact.warnings] == ["Unused local variable.", "Consider pragma."]
    assert all(w.severity == "warning" for w in artifact.warnings)
    assert artifact.warnings[0].location == "Contract.sol:10:14"


def test_compile_error_diagnostics_raise():
    output = _output(errors=[
        _diag("warning", "Shadowed declaration."),
        _diag("error", "Undeclared identifier."),
        _diag("error", "Expected ';'."),
    ])
    with pytest.raises(CompilationError) as exc:
        CompilerClient(backend=FakeBackend(output)).compile(SOURCE, "ReactiveSmartContract")
    assert str(exc.value) == "Undeclared identifier."
    assert len(exc.value.diagnostics) == 3
    assert [d.message for d in exc.value.errors] == ["Undeclared identifier.", "Expected ';'."]
    assert [d.message for d in exc.value.warnings] == ["Shadowed declaration."]


def test_missing_contract_raises_not_found(caplog):
    backend = FakeBackend(_output({"Other": _compiled()}))
    with pytest.raises(ContractNotFoundError) as exc:
        CompilerClient(backend=backend).compile(SOURCE, "ReactiveSmartContract")
    assert exc.value.contract_name == "ReactiveSmartContract"
    assert exc.value.available == ["Other"]
    assert any(r.levelname == "CRITICAL" for r in caplog.records)


def test_empty_output_raises_not_found():
    with pytest.raises(ContractNotFoundError):
        CompilerClient(backend=FakeBackend(_output())).compile(SOURCE, "ReactiveSmartContract")


def test_empty_source_is_rejected_before_compiling():
    backend = FakeBackend()
    with pytest.raises(ValidationError):
        CompilerClient(backend=backend).compile("  \n", "ReactiveSmartContract")
    assert backend.requests == []


def test_backend_failure_is_external():
    backend = FakeBackend(raise_exc=RuntimeError("solc crashed"))
    with pytest.raises(ExternalServiceError) as exc:
        CompilerClient(backend=backend).compile(SOURCE, "ReactiveSmartContract")
    assert "solc crashed" in str(exc.value)


def test_backend_rscgen_errors_pass_through():
    backend = FakeBackend(raise_exc=ExternalServiceError("solc 0.8.23 is not installed"))
    with pytest.raises(ExternalServiceError, match="not installed"):
        CompilerClient(backend=backend).compile(SOURCE, "ReactiveSmartContract")


def test_non_object_output_is_external():
    with pytest.raises(ExternalServiceError):
        CompilerClient(backend=FakeBackend(["not", "json"])).compile(SOURCE, "ReactiveSmartContract")


def test_compile_times_out():
    release = threading.Event()

    def slow_backend(request):
        release.wait(5)
        return _output({"ReactiveSmartContract": _compiled()})

    try:
        with pytest.raises(ExternalServiceError, match="timed out"):
            CompilerClient(backend=slow_backend).compile(SOURCE, "ReactiveSmartContract", timeout=0.05)
    finally:
        release.set()


@pytest.mark.parametrize("timeout", [0, -1.5])
def test_non_positive_timeout_is_rejected(timeout):
    backend = FakeBackend(_output({"ReactiveSmartContract": _compiled()}))
    with pytest.raises(ValidationError) as exc:
        CompilerClient(backend=backend).compile(SOURCE, "ReactiveSmartContract", timeout=timeout)
    assert exc.value.field == "timeout"
    assert backend.requests == []


def test_default_timeout_comes_from_config(monkeypatch):
    seen = {}
    client = CompilerClient(
        config=RscgenConfig(compiler=CompilerConfig(timeout=7.5)),
        backend=FakeBackend(_output({"ReactiveSmartContract": _compiled()})),
    )

    def fake_call(fn, *args, timeout, what):
        seen["timeout"] = timeout
        return fn(*args)

    monkeypatch.setattr(client, "_call_with_timeout", fake_call)
    client.compile(SOURCE, "ReactiveSmartContract")
    assert seen["timeout"] == 7.5


@pytest.mark.parametrize("raw, expected", [("6080", "0x6080"), ("0x6080", "0x6080"), ("", "")])
def test_format_bytecode(raw, expected):
    assert format_bytecode(raw) == expected


# --- SolcxBackend -----------------------------------------------------------

def test_backend_refuses_missing_solc_without_install(monkeypatch):
    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: [])
    monkeypatch.setattr(solcx, "install_solc", lambda version: pytest.fail("must not install"))
    backend = SolcxBackend(CompilerConfig(install_missing=False))
    with pytest.raises(ExternalServiceError, match="not installed"):
        backend.ensure_installed()


def test_backend_installs_missing_solc_once(monkeypatch):
    installed = []
    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: list(installed))
    monkeypatch.setattr(solcx, "install_solc", lambda version: installed.append(version))
    backend = SolcxBackend(CompilerConfig(solc_version="0.8.23"))
    backend.ensure_installed()
    backend.ensure_installed()
    assert installed == ["0.8.23"]


def test_backend_install_failure_is_external(monkeypatch):
    def fail(version):
        raise OSError("network unreachable")

    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: [])
    monkeypatch.setattr(solcx, "install_solc", fail)
    with pytest.raises(ExternalServiceError, match="Unable to install"):
        SolcxBackend(CompilerConfig()).ensure_installed()


def test_backend_returns_structured_output_of_failed_compile(monkeypatch):
    output = _output(errors=[_diag("error", "Undeclared identifier.")])

    def failing_compile(standard_input, **kwargs):
        raise SolcError(
            "solc returned errors",
            command=["solc", "--standard-json"],
            return_code=1,
            stdin_data=json.dumps(standard_input),
            stdout_data=json.dumps(output),
            stderr_data="",
        )

    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: ["0.8.23"])
    monkeypatch.setattr(solcx, "compile_standard", failing_compile)
    client = CompilerClient(backend=SolcxBackend(CompilerConfig()))
    with pytest.raises(CompilationError, match="Undeclared identifier."):
        client.compile(SOURCE, "ReactiveSmartContract")


def test_backend_without_structured_output_is_external(monkeypatch):
    def failing_compile(standard_input, **kwargs):
        raise SolcError(
            "solc crashed",
            command=["solc", "--standard-json"],
            return_code=139,
            stdin_data="",
            stdout_data="",
            stderr_data="Segmentation fault",
        )

    monkeypatch.setattr(solcx, "get_installed_solc_versions", lambda: ["0.8.23"])
    monkeypatch.setattr(solcx, "compile_standard", failing_compile)
    with pytest.raises(ExternalServiceError):
        SolcxBackend(CompilerConfig())({"language": "Solidity", "sources": {}})


# --- End to end with a real solc ----------------------------------------------

@pytest.fixture(scope="module")
def solc_backend():
    backend = SolcxBackend(CompilerConfig())
    try:
        backend.ensure_installed()
    except ExternalServiceError as e:
        pytest.skip(f"solc unavailable: {e}")
    return backend


@pytest.mark.parametrize("topology, origins, pausable", [
    (Topology.PROTOCOL_TO_PROTOCOL, [ORIGIN_A, ORIGIN_B], False),
    (Topology.ORIGIN_TO_PROTOCOL, [ORIGIN_A], True),
    (Topology.BLOCKCHAIN_WIDE, [], True),
])
def test_generated_contract_compiles(
    solc_backend, make_config, transfer_binding, approval_binding, topology, origins, pausable
):
    generated = emit(make_config(
        topology=topology,
        origin_addresses=origins,
        pausable=pausable,
        bindings=[transfer_binding, approval_binding],
    ))

    compiled = CompilerClient(backend=solc_backend).compile(generated.source_text, generated.contract_name, timeout=120)

    assert len(compiled.compiled_bytecode) > 2
    assert compiled.compiled_bytecode.startswith("0x")
    assert compiled.compiled_abi
    names = {entry.get("name") for entry in compiled.compiled_abi}
    assert "react" in names
    assert ("pause" in names) is pausable


def test_real_solc_reports_errors(solc_backend):
    broken = "pragma solidity >=0.8.0;\ncontract ReactiveSmartContract { function f() public { undefinedThing(); } }"
    with pytest.raises(CompilationError) as exc:
        CompilerClient(backend=solc_backend).compile(broken, "ReactiveSmartContract", timeout=120)
    assert exc.value.errors
    assert exc.value.errors[0].location.startswith("Contract.sol:")


def test_guarded_contract_compiles(solc_backend, make_config, transfer_event, mint_function, approval_binding):
    guarded = resolve_binding(transfer_event, mint_function, [
        InputMapping(target_param_name="to", target_type="address", source=EventTopic(topic_index=2)),
        InputMapping(target_param_name="amount", target_type="uint256", source=EventDataField(field_name="value")),
    ], condition="evt_value > 0 && address(uint160(topic_1)) != address(0)")
    generated = emit(make_config(
        bindings=[guarded, approval_binding],
        applicable_addresses=[ORIGIN_A, ORIGIN_B],
        pausable=True,
    ))

    compiled = CompilerClient(backend=solc_backend).compile(generated.source_text, generated.contract_name, timeout=120)

    assert compiled.is_compiled
