"""Configuration management for rscgen.

This module provides type-safe configuration dataclasses with validation
for the compiler adapter, the contract explorer ABI source, and the code
generator. Configuration is loaded from environment variables with
sensible defaults where appropriate.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

# Get logger for this module
logger = logging.getLogger(__name__)

_SOLC_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def setup_logging(level: Optional[str] = None) -> None:
    """Configure logging for an application embedding rscgen.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to the LOG_LEVEL environment variable, then INFO.
    """
    level = level or os.environ.get("LOG_LEVEL", "INFO")
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name: str, default: str, cast=int):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class CompilerConfig:
    """Configuration for the solc compiler backend.

    Attributes:
        solc_version: Exact solc release used for every compile
        optimize: Whether to enable the solc optimizer
        optimize_runs: Optimizer runs parameter
        evm_version: Target EVM version (e.g. 'paris'); compiler default if None
        timeout: Seconds to wait for a compile before giving up
        install_missing: Install the solc release on first use if absent
    """

    solc_version: str = "0.8.23"
    optimize: bool = False
    optimize_runs: int = 200
    evm_version: Optional[str] = None
    timeout: float = 60.0
    install_missing: bool = True

    def __post_init__(self) -> None:
        """Validate compiler configuration."""
        if not _SOLC_VERSION_RE.match(self.solc_version):
            raise ValueError(
                f"Invalid solc version (RSCGEN_SOLC_VERSION): {self.solc_version}. "
                "Expected MAJOR.MINOR.PATCH"
            )
        if not 1 <= self.optimize_runs <= 1_000_000:
            raise ValueError(
                f"Optimizer runs (RSCGEN_SOLC_OPTIMIZE_RUNS) must be in 1..1000000, got {self.optimize_runs}"
            )
        if self.timeout <= 0:
            raise ValueError(f"Compile timeout (RSCGEN_COMPILE_TIMEOUT) must be positive, got {self.timeout}")
        if self.timeout > 600:
            raise ValueError(f"Compile timeout too long (max 600s), got {self.timeout}")

    @classmethod
    def from_env(cls) -> "CompilerConfig":
        return cls(
            solc_version=os.environ.get("RSCGEN_SOLC_VERSION", "0.8.23"),
            optimize=_env_bool("RSCGEN_SOLC_OPTIMIZE", False),
            optimize_runs=_env_number("RSCGEN_SOLC_OPTIMIZE_RUNS", "200"),
            evm_version=os.environ.get("RSCGEN_EVM_VERSION") or None,
            timeout=_env_number("RSCGEN_COMPILE_TIMEOUT", "60", float),
            install_missing=_env_bool("RSCGEN_SOLC_INSTALL", True),
        )


@dataclass(frozen=True, slots=True)
class ExplorerConfig:
    """Configuration for the verified-contract explorer.

    Attributes:
        api_url: Explorer API endpoint (Etherscan-compatible)
        api_key: Explorer API key; some explorers accept anonymous calls
        timeout: HTTP request timeout in seconds
    """

    api_url: str = "https://api.etherscan.io/api"
    api_key: Optional[str] = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate explorer configuration."""
        parsed = urlparse(self.api_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(
                f"Invalid explorer URL (RSCGEN_EXPLORER_URL): {self.api_url}. Expected http or https"
            )
        if self.timeout <= 0:
            raise ValueError(f"Explorer timeout (RSCGEN_EXPLORER_TIMEOUT) must be positive, got {self.timeout}")

    @classmethod
    def from_env(cls) -> "ExplorerConfig":
        return cls(
            api_url=os.environ.get("RSCGEN_EXPLORER_URL", "https://api.etherscan.io/api"),
            api_key=os.environ.get("RSCGEN_EXPLORER_API_KEY") or None,
            timeout=_env_number("RSCGEN_EXPLORER_TIMEOUT", "30", float),
        )


@dataclass(frozen=True, slots=True)
class GeneratorSettings:
    """Defaults applied to generation requests that leave them unset."""
    callback_gas_limit: int = 1_000_000

    def __post_init__(self) -> None:
        if not 0 < self.callback_gas_limit < 2**64:
            raise ValueError(
                f"Callback gas limit (RSCGEN_CALLBACK_GAS_LIMIT) must fit uint64, got {self.callback_gas_limit}"
            )

    @classmethod
    def from_env(cls) -> "GeneratorSettings":
        return cls(callback_gas_limit=_env_number("RSCGEN_CALLBACK_GAS_LIMIT", "1000000"))


@dataclass(frozen=True, slots=True)
class RscgenConfig:
    """Main configuration for rscgen.

    Attributes:
        compiler: Configuration for the solc backend
        explorer: Configuration for the ABI explorer
        generator: Generation defaults
    """

    compiler: CompilerConfig = CompilerConfig()
    explorer: ExplorerConfig = ExplorerConfig()
    generator: GeneratorSettings = GeneratorSettings()

    @classmethod
    def from_env(cls) -> "RscgenConfig":
        """Load configuration from environment variables.

        Returns:
            RscgenConfig instance with loaded values

        Raises:
            ValueError: If an environment variable is invalid
        """
        config = cls(
            compiler=CompilerConfig.from_env(),
            explorer=ExplorerConfig.from_env(),
            generator=GeneratorSettings.from_env(),
        )
        logger.debug("Loaded configuration: solc %s, timeout %ss",
                     config.compiler.solc_version, config.compiler.timeout)
        return config
