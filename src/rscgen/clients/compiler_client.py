import json
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

import solcx
from solcx.exceptions import (
    DownloadError,
    SolcError,
    SolcInstallationError,
    SolcNotInstalled,
    UnsupportedVersionError,
)

from rscgen.clients.base_client import BaseClient
from rscgen.config import CompilerConfig, RscgenConfig
from rscgen.errors import (
    CompilationError,
    ContractNotFoundError,
    ExternalServiceError,
    RscgenError,
    ValidationError,
)
from rscgen.generator.templates import SOURCE_FILE_NAME
from rscgen.types import CompilationDiagnostic, GeneratedArtifact

logger = logging.getLogger(__name__)

# A backend takes a standard-JSON compile request and returns the standard-JSON output.
CompilerBackend = Callable[[Dict[str, Any]], Mapping[str, Any]]


def format_bytecode(bytecode: str) -> str:
    if not bytecode:
        return bytecode
    return bytecode if bytecode.startswith("0x") else f"0x{bytecode}"


class SolcxBackend:
    """Runs solc through py-solc-x, installing the configured release on first use."""

    def __init__(self, config: CompilerConfig) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._ready = False

    def ensure_installed(self) -> None:
        """
        Make sure the configured solc release is available.

        Raises:
            ExternalServiceError: If it is missing and cannot be installed.
        """
        with self._lock:
            if self._ready:
                return
            version = self._config.solc_version
            try:
                installed = {str(v) for v in solcx.get_installed_solc_versions()}
                if version not in installed:
                    if not self._config.install_missing:
                        raise ExternalServiceError(f"solc {version} is not installed")
                    logger.info("Installing solc %s", version)
                    solcx.install_solc(version)
            except (SolcInstallationError, DownloadError, UnsupportedVersionError, OSError) as e:
                raise ExternalServiceError(f"Unable to install solc {version}: {e}") from e
            self._ready = True

    def __call__(self, standard_input: Dict[str, Any]) -> Mapping[str, Any]:
        """
        Compile a standard-JSON request.

        py-solc-x raises on error-severity diagnostics; the structured output
        it carries is returned as-is so diagnostics can be classified.

        Raises:
            ExternalServiceError: If solc is unavailable or produced no parsable output.
        """
        self.ensure_installed()
        try:
            return solcx.compile_standard(
                standard_input,
                solc_version=self._config.solc_version,
                allow_empty=True,
            )
        except SolcNotInstalled as e:
            raise ExternalServiceError(f"solc {self._config.solc_version} is not installed") from e
        except SolcError as e:
            output = _structured_output(getattr(e, "stdout_data", None))
            if output is None:
                raise ExternalServiceError(f"solc failed without structured output: {e}") from e
            return output
        except OSError as e:
            raise ExternalServiceError(f"Unable to run solc: {e}") from e


def _structured_output(stdout_data: Any) -> Optional[Dict[str, Any]]:
    if not stdout_data:
        return None
    try:
        output = json.loads(stdout_data)
    except ValueError:
        return None
    return output if isinstance(output, dict) and "errors" in output else None


def _diagnostic(raw: Mapping[str, Any]) -> CompilationDiagnostic:
    location = None
    source_location = raw.get("sourceLocation")
    if isinstance(source_location, Mapping):
        location = f"{source_location.get('file')}:{source_location.get('start')}:{source_location.get('end')}"
    return CompilationDiagnostic(
        severity="error" if raw.get("severity") == "error" else "warning",
        message=raw.get("message") or raw.get("formattedMessage") or "unknown compiler diagnostic",
        location=location,
    )


class CompilerClient(BaseClient):
    """Compiles generated source into an ABI and bytecode, classifying diagnostics."""

    def __init__(
        self,
        *,
        config: Optional[RscgenConfig] = None,
        backend: Optional[CompilerBackend] = None,
    ) -> None:
        """
        Initialize a CompilerClient.

        Args:
            config: Configuration bundle; only ``config.compiler`` is used.
            backend: Compiler backend callable; defaults to py-solc-x.
        """
        super().__init__(config=config)
        self._backend = backend or SolcxBackend(self._config.compiler)

    def build_request(self, source_text: str) -> Dict[str, Any]:
        """Wraps ``source_text`` in a standard-JSON request selecting ABI and bytecode."""
        cfg = self._config.compiler
        settings: Dict[str, Any] = {
            "outputSelection": {"*": {"*": ["abi", "evm.bytecode.object"]}},
        }
        if cfg.optimize:
            settings["optimizer"] = {"enabled": True, "runs": cfg.optimize_runs}
        if cfg.evm_version:
            settings["evmVersion"] = cfg.evm_version
        return {
            "language": "Solidity",
            "sources": {SOURCE_FILE_NAME: {"content": source_text}},
            "settings": settings,
        }

    def compile(self, source_text: str, contract_name: str, timeout: Optional[float] = None) -> GeneratedArtifact:
        """
        Compile a source unit and extract one contract from the output.

        This is a single synchronous call; it never retries.

        Args:
            source_text: Complete Solidity source.
            contract_name: Contract to extract from the output.
            timeout: Seconds to wait; defaults to the configured compile timeout.

        Returns:
            A GeneratedArtifact with ``compiled_abi`` and ``compiled_bytecode``.

        Raises:
            ValidationError: If the source text is empty or the timeout is not positive.
            ExternalServiceError: backend unavailable or timed out.
            CompilationError: the compiler reported error-severity diagnostics.
            ContractNotFoundError: the output lacks ``contract_name``.
        """
        if not source_text or not source_text.strip():
            raise ValidationError("source text is empty", field="sourceText")
        if timeout is None:
            timeout = self._config.compiler.timeout
        elif timeout <= 0:
            raise ValidationError(f"timeout must be positive, got {timeout}", field="timeout")

        request = self.build_request(source_text)
        logger.debug("Compiling %d bytes of source for %s", len(source_text), contract_name)
        try:
            output = self._call_with_timeout(
                self._backend,
                request,
                timeout=timeout,
                what="solc compile",
            )
        except RscgenError:
            raise
        except Exception as e:
            logger.error("Compiler backend failed: %s", e)
            raise ExternalServiceError(f"Compiler backend failed: {e}") from e

        return self.parse_output(output, source_text, contract_name)

    def parse_output(self, output: Mapping[str, Any], source_text: str, contract_name: str) -> GeneratedArtifact:
        """
        Classify diagnostics and extract ``contract_name`` from standard-JSON output.

        Raises:
            ExternalServiceError: If the output is not a JSON object.
            CompilationError: If any diagnostic has error severity.
            ContractNotFoundError: If the contract is missing from the output.
        """
        if not isinstance(output, Mapping):
            raise ExternalServiceError("Compiler backend returned a non-object response")

        diagnostics: List[CompilationDiagnostic] = [_diagnostic(raw) for raw in output.get("errors") or []]
        errors = [d for d in diagnostics if d.severity == "error"]
        warnings = [d for d in diagnostics if d.severity == "warning"]
        if errors:
            logger.error("Compilation failed with %d error(s): %s", len(errors), errors[0].message)
            raise CompilationError(errors[0].message, diagnostics)
        if warnings:
            logger.warning("Compilation produced %d warning(s)", len(warnings))

        contracts = (output.get("contracts") or {}).get(SOURCE_FILE_NAME) or {}
        if contract_name not in contracts:
            logger.critical(
                "Compiled output lacks %s (found: %s); emitter and compiler disagree on the contract name",
                contract_name, ", ".join(sorted(contracts)) or "none",
            )
            raise ContractNotFoundError(contract_name, sorted(contracts))

        compiled = contracts[contract_name]
        bytecode = ((compiled.get("evm") or {}).get("bytecode") or {}).get("object") or ""
        logger.info("Compiled %s (%d bytes of bytecode)", contract_name, len(bytecode) // 2)
        return GeneratedArtifact(
            source_text=source_text,
            contract_name=contract_name,
            compiled_abi=compiled.get("abi") or [],
            compiled_bytecode=format_bytecode(bytecode),
            warnings=warnings,
        )
