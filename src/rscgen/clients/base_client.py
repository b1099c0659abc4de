import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Optional, TypeVar

from eth_typing import ChecksumAddress
from web3 import Web3

from rscgen.config import RscgenConfig
from rscgen.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseClient:
    """Common functionality for rscgen clients: configuration, timeouts and address checks."""

    def __init__(self, *, config: Optional[RscgenConfig] = None) -> None:
        """
        Initialize the BaseClient.

        Args:
            config: Configuration bundle; defaults to built-in values, not the
                environment (use ``RscgenConfig.from_env()`` for that).
        """
        self._config = config or RscgenConfig()

    @property
    def config(self) -> RscgenConfig:
        return self._config

    def _call_with_timeout(self, fn: Callable[..., T], *args: Any, timeout: float, what: str) -> T:
        """
        Run a blocking collaborator call, giving up after ``timeout`` seconds.

        The worker thread is not interrupted on timeout; its eventual result is
        discarded.

        Args:
            fn: The blocking callable.
            *args: Arguments for the call.
            timeout: Seconds to wait.
            what: Human-readable name of the collaborator for error messages.

        Returns:
            Whatever ``fn`` returns.

        Raises:
            ExternalServiceError: timed out waiting for the call.
        """
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rscgen")
        try:
            future = pool.submit(fn, *args)
            try:
                return future.result(timeout=timeout)
            except FuturesTimeoutError as e:
                future.cancel()
                logger.error("%s timed out after %ss", what, timeout)
                raise ExternalServiceError(f"{what} timed out after {timeout}s") from e
        finally:
            pool.shutdown(wait=False)

    @staticmethod
    def _checksum(address: str) -> ChecksumAddress:
        """
        Validate and checksum an address.

        Raises:
            ValidationError: If the address is not a valid Ethereum address.
        """
        if not isinstance(address, str) or not Web3.is_address(address):
            raise ValidationError(f"Invalid contract address: {address}", field="address")
        return Web3.to_checksum_address(address)
