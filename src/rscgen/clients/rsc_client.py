import logging
from typing import Any, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from rscgen.clients.abi_source import ExplorerAbiSource
from rscgen.clients.base_client import BaseClient
from rscgen.clients.compiler_client import CompilerClient
from rscgen.config import RscgenConfig
from rscgen.errors import ValidationError
from rscgen.generator.emitter import emit
from rscgen.generator.topology import resolve_topology
from rscgen.types import (
    Binding,
    BindingRequest,
    CompileRequest,
    CompileResponse,
    ContractDescription,
    GeneratedArtifact,
    GenerationConfig,
    GenerationRequest,
    GenerationResponse,
)
from rscgen.utils.abi import READ_ONLY_MUTABILITIES, event_info, function_info, parse_entry
from rscgen.utils.bindings import resolve_binding

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _describe(error: PydanticValidationError) -> ValidationError:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    field = str(first["loc"][0]) if first["loc"] else None
    return ValidationError(f"{location}: {first['msg']}" if location else first["msg"], field=field)


class RscClient(BaseClient):
    """
    Facade over the generation pipeline.

    ``generate`` introspects and resolves every binding, then emits source;
    ``compile`` hands source to the compiler adapter; ``generate_and_compile``
    does both. Requests are handled independently and share no state.
    """

    def __init__(
        self,
        *,
        config: Optional[RscgenConfig] = None,
        compiler: Optional[CompilerClient] = None,
        abi_source: Optional[ExplorerAbiSource] = None,
    ) -> None:
        """
        Initialize an RscClient.

        Args:
            config: Configuration bundle; defaults to built-in values.
            compiler: Compiler adapter; defaults to a py-solc-x backed CompilerClient.
            abi_source: Explorer ABI source; created on first use of ``describe_contract``.
        """
        super().__init__(config=config)
        self._compiler = compiler or CompilerClient(config=self._config)
        self._abi_source = abi_source

    @staticmethod
    def _parse(model: Type[M], request: Union[M, Mapping[str, Any]]) -> M:
        if isinstance(request, model):
            return request
        if not isinstance(request, Mapping):
            raise ValidationError(f"{model.__name__} must be an object, got {type(request).__name__}")
        if "topology" in request:
            resolve_topology(request["topology"])
        try:
            return model.model_validate(request)
        except PydanticValidationError as e:
            raise _describe(e) from e

    def _resolve_bindings(self, requested: List[BindingRequest]) -> List[Binding]:
        bindings = []
        for i, raw in enumerate(requested):
            event_entry = parse_entry(raw.event, i)
            function_entry = parse_entry(raw.function, i)
            if event_entry.kind != "event" or event_entry.anonymous:
                raise ValidationError(f"binding #{i}: '{event_entry.name}' is not a subscribable event", field="event")
            if function_entry.kind != "function" or function_entry.mutability in READ_ONLY_MUTABILITIES:
                raise ValidationError(
                    f"binding #{i}: '{function_entry.name}' is not a state-changing function", field="function"
                )
            try:
                binding = resolve_binding(
                    event_info(event_entry), function_info(function_entry), raw.input_mappings, raw.condition
                )
            except ValidationError:
                logger.warning("Binding #%d (%s -> %s) rejected", i, event_entry.name, function_entry.name)
                raise
            bindings.append(binding)
        return bindings

    def build_config(self, request: Union[GenerationRequest, Mapping[str, Any]]) -> GenerationConfig:
        """
        Turn a raw generation request into an emitter config.

        Raises:
            ValidationError: If the request or any binding is invalid.
            UnsupportedTopologyError: If the topology is unknown.
            InvalidAbiError: If an event or function fragment is malformed.
        """
        parsed = self._parse(GenerationRequest, request)
        settings = parsed.model_dump(exclude={"bindings"})
        if "callback_gas_limit" not in parsed.model_fields_set:
            settings["callback_gas_limit"] = self._config.generator.callback_gas_limit
        settings["bindings"] = self._resolve_bindings(parsed.bindings)
        try:
            return GenerationConfig.model_validate(settings)
        except PydanticValidationError as e:
            raise _describe(e) from e

    def generate_artifact(self, request: Union[GenerationRequest, Mapping[str, Any]]) -> GeneratedArtifact:
        """Resolves and emits; the returned artifact is not compiled."""
        return emit(self.build_config(request))

    def generate(self, request: Union[GenerationRequest, Mapping[str, Any]]) -> GenerationResponse:
        """
        Generate reactive contract source.

        Args:
            request: A GenerationRequest or its camelCase dict form.

        Returns:
            GenerationResponse with ``sourceText`` and ``contractName``.

        Raises:
            ValidationError: If the request or any binding is invalid.
            UnsupportedTopologyError: If the topology is unknown.
            InvalidAbiError: If an event or function fragment is malformed.
        """
        artifact = self.generate_artifact(request)
        return GenerationResponse(
            source_text=artifact.source_text,
            contract_name=artifact.contract_name,
            destination_signatures=artifact.destination_signatures,
        )

    def compile(self, request: Union[CompileRequest, Mapping[str, Any]]) -> CompileResponse:
        """
        Compile source text.

        Raises:
            ValidationError: If the request is malformed.
            ExternalServiceError: If the compiler is unavailable or times out.
            CompilationError: If the source does not compile.
            ContractNotFoundError: If the named contract is absent from the output.
        """
        parsed = self._parse(CompileRequest, request)
        compiled = self._compiler.compile(parsed.source_text, parsed.contract_name)
        return CompileResponse(
            abi=compiled.compiled_abi or [],
            bytecode=compiled.compiled_bytecode or "",
            warnings=compiled.warnings,
        )

    def generate_and_compile(self, request: Union[GenerationRequest, Mapping[str, Any]]) -> GeneratedArtifact:
        """
        Generate source and compile it in one call.

        Validation always completes before the compiler is invoked.

        Returns:
            The GeneratedArtifact with ``compiled_abi`` and ``compiled_bytecode`` set.
        """
        artifact = self.generate_artifact(request)
        compiled = self._compiler.compile(artifact.source_text, artifact.contract_name)
        return artifact.model_copy(update={
            "compiled_abi": compiled.compiled_abi,
            "compiled_bytecode": compiled.compiled_bytecode,
            "warnings": compiled.warnings,
        })

    def describe_contract(self, address: str) -> ContractDescription:
        """Fetches a verified contract's ABI and lists what can be bound from it."""
        if self._abi_source is None:
            self._abi_source = ExplorerAbiSource(config=self._config)
        return self._abi_source.describe_contract(address)
