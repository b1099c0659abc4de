from __future__ import annotations

from typing import List, Optional, Sequence

from rscgen.types import CompilationDiagnostic


class RscgenError(Exception):
    """
    Base class for all rscgen errors.

    This exception serves as the root of the rscgen error hierarchy.
    """
    pass


class InvalidAbiError(RscgenError):
    """
    Raised when an ABI entry is malformed or uses an unsupported type.

    Examples include an entry without a ``type`` field, an unknown entry
    kind, or an input declared as an array or tuple. Never retried.
    """
    pass


class ValidationError(RscgenError):
    """
    Raised when a binding, mapping or generation request is invalid.

    Attributes:
        index: Position of the offending input mapping, if the error concerns one.
        field: Name of the offending field, if known.
    """

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        """
        Initialize a ValidationError.

        Args:
            message: Description of the violation.
            index: Optional index of the offending input mapping.
            field: Optional name of the offending field.
        """
        if index is not None:
            message = f"mapping #{index}: {message}"
        super().__init__(message)
        self.index = index
        self.field = field


class UnsupportedTopologyError(RscgenError):
    """
    Raised when a generation request names a topology with no emission strategy.

    This is a programming or configuration error and is never defaulted.
    """
    pass


class ExternalServiceError(RscgenError):
    """
    Raised when a collaborator service is unreachable or times out.

    Examples include a solc binary that cannot be installed or executed, a
    compile exceeding its timeout, or an unreachable contract explorer.
    Callers may retry with backoff; rscgen itself never retries.
    """
    pass


class CompilationError(RscgenError):
    """
    Raised when the compiler reports error-severity diagnostics.

    The first error message is the exception message; the complete
    diagnostic list, warnings included, stays available for inspection.

    Attributes:
        diagnostics: Every diagnostic returned by the compiler.
    """

    def __init__(self, message: str, diagnostics: Sequence[CompilationDiagnostic]):
        """
        Initialize a CompilationError.

        Args:
            message: Primary failure reason.
            diagnostics: Full diagnostic list from the compiler.
        """
        super().__init__(message)
        self.diagnostics: List[CompilationDiagnostic] = list(diagnostics)

    @property
    def errors(self) -> List[CompilationDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> List[CompilationDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]


class ContractNotFoundError(RscgenError):
    """
    Raised when compiled output lacks the contract the emitter named.

    This indicates a bug in the code emitter, not a user input error.

    Attributes:
        contract_name: The contract that was looked up.
        available: Contract names present in the compiler output.
    """

    def __init__(self, contract_name: str, available: Sequence[str] = ()):
        """
        Initialize a ContractNotFoundError.

        Args:
            contract_name: Name the emitter told the caller to expect.
            available: Names actually found in the compiler output.
        """
        super().__init__(
            f"Contract '{contract_name}' not found in compiler output "
            f"(available: {', '.join(available) or 'none'})"
        )
        self.contract_name = contract_name
        self.available = list(available)
