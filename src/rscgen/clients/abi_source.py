import logging
from typing import Any, Dict, List, Optional

import httpx

from rscgen.clients.base_client import BaseClient
from rscgen.config import RscgenConfig
from rscgen.errors import ExternalServiceError, InvalidAbiError
from rscgen.types import ContractDescription
from rscgen.utils.abi import extract_events, extract_functions, load_abi

logger = logging.getLogger(__name__)


class ExplorerAbiSource(BaseClient):
    """
    Fetches verified contract ABIs from an Etherscan-compatible explorer.

    Keeps an internal httpx.Client; safe to use as a context manager.
    """

    def __init__(
        self,
        *,
        config: Optional[RscgenConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize an ExplorerAbiSource.

        Args:
            config: Configuration bundle; only ``config.explorer`` is used.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
        """
        super().__init__(config=config)
        self._http = httpx.Client(timeout=self._config.explorer.timeout, transport=transport)

    def __enter__(self) -> "ExplorerAbiSource":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def fetch_abi(self, address: str) -> List[Dict[str, Any]]:
        """
        Download the ABI of a verified contract.

        Args:
            address: Contract address; any case is accepted.

        Returns:
            The raw ABI entries.

        Raises:
            ValidationError: If the address is invalid.
            ExternalServiceError: If the explorer is unreachable, times out,
                or answers with a non-JSON body.
            InvalidAbiError: If the contract is not verified or the ABI is malformed.
        """
        checksum = self._checksum(address)
        cfg = self._config.explorer
        params = {"module": "contract", "action": "getabi", "address": checksum}
        if cfg.api_key:
            params["apikey"] = cfg.api_key

        logger.debug("Fetching ABI for %s from %s", checksum, cfg.api_url)
        try:
            response = self._http.get(cfg.api_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            logger.error("Explorer request for %s timed out", checksum)
            raise ExternalServiceError(f"Explorer request timed out after {cfg.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error("Explorer request for %s failed: %s", checksum, e)
            raise ExternalServiceError(f"Explorer request failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError("Explorer returned a non-JSON response") from e

        if not isinstance(payload, dict) or str(payload.get("status")) != "1":
            detail = payload.get("result") if isinstance(payload, dict) else payload
            logger.warning("No verified ABI for %s: %s", checksum, detail)
            raise InvalidAbiError(f"No verified ABI for {checksum}: {detail}")

        abi = load_abi(payload)
        logger.info("Fetched ABI for %s (%d entries)", checksum, len(abi))
        return abi

    def describe_contract(self, address: str) -> ContractDescription:
        """
        Fetch a contract's ABI and introspect it.

        Returns:
            A ContractDescription listing the subscribable events and the
            state-changing functions of the contract.

        Raises:
            ValidationError: If the address is invalid.
            ExternalServiceError: If the explorer cannot be reached.
            InvalidAbiError: If the ABI is missing, malformed or uses unsupported types.
        """
        abi = self.fetch_abi(address)
        return ContractDescription(
            address=self._checksum(address),
            abi=abi,
            events=extract_events(abi),
            functions=extract_functions(abi),
        )
