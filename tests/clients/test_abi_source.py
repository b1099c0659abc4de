import json

import httpx
import pytest
from web3 import Web3

from rscgen.clients.abi_source import ExplorerAbiSource
from rscgen.config import ExplorerConfig, RscgenConfig
from rscgen.errors import ExternalServiceError, InvalidAbiError, ValidationError

TOKEN = "0x" + "5e" * 20


def _source(handler, api_key="KEY"):
    config = RscgenConfig(explorer=ExplorerConfig(api_url="https://explorer.test/api", api_key=api_key))
    return ExplorerAbiSource(config=config, transport=httpx.MockTransport(handler))


def _ok(abi):
    return httpx.Response(200, json={"status": "1", "message": "OK", "result": json.dumps(abi)})


def test_fetch_abi_queries_explorer(erc20_abi):
    seen = []

    def handler(request):
        seen.append(request)
        return _ok(erc20_abi)

    with _source(handler) as source:
        assert source.fetch_abi(TOKEN) == erc20_abi

    (request,) = seen
    assert request.url.host == "explorer.test"
    assert request.url.params["module"] == "contract"
    assert request.url.params["action"] == "getabi"
    assert request.url.params["address"] == Web3.to_checksum_address(TOKEN)
    assert request.url.params["apikey"] == "KEY"


def test_fetch_abi_without_api_key(erc20_abi):
    seen = []

    def handler(request):
        seen.append(request)
        return _ok(erc20_abi)

    _source(handler, api_key=None).fetch_abi(TOKEN)
    assert "apikey" not in seen[0].url.params


def test_unverified_contract_is_invalid_abi():
    def handler(request):
        return httpx.Response(200, json={"status": "0", "message": "NOTOK", "result": "Contract source code not verified"})

    with pytest.raises(InvalidAbiError, match="not verified"):
        _source(handler).fetch_abi(TOKEN)


def test_invalid_address_never_hits_network():
    def handler(request):
        pytest.fail("no request expected")

    with pytest.raises(ValidationError):
        _source(handler).fetch_abi("0xnothex")


@pytest.mark.parametrize("exc", [httpx.ConnectError, httpx.ReadTimeout])
def test_network_failures_are_external(exc):
    def handler(request):
        raise exc("boom", request=request)

    with pytest.raises(ExternalServiceError):
        _source(handler).fetch_abi(TOKEN)


def test_http_error_status_is_external():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(ExternalServiceError):
        _source(handler).fetch_abi(TOKEN)


def test_non_json_body_is_external():
    def handler(request):
        return httpx.Response(200, text="<html>rate limited</html>")

    with pytest.raises(ExternalServiceError):
        _source(handler).fetch_abi(TOKEN)


def test_describe_contract(erc20_abi):
    description = _source(lambda request: _ok(erc20_abi)).describe_contract(TOKEN)
    assert description.address == Web3.to_checksum_address(TOKEN)
    assert [e.signature for e in description.events] == [
        "Transfer(address,address,uint256)", "Approval(address,address,uint256)",
    ]
    assert [f.signature for f in description.functions] == ["transfer(address,uint256)"]
    assert description.abi == erc20_abi


def test_describe_contract_rejects_unsupported_abi():
    abi = [{"type": "event", "name": "Batch", "inputs": [{"name": "ids", "type": "uint256[]", "indexed": False}]}]
    with pytest.raises(InvalidAbiError):
        _source(lambda request: _ok(abi)).describe_contract(TOKEN)
