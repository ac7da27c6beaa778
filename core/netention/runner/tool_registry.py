"""Capability registration, input validation and invocation."""

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from netention.errors import ExecutionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CapabilityInput(BaseModel):
    """Base for capability input shapes: unknown keys and coercion are rejected."""

    model_config = ConfigDict(extra="forbid", strict=True)


class EmptyInput(CapabilityInput):
    pass


class ToolResult(BaseModel):
    """What a capability hands back to the invoking Note."""

    status: Literal["running", "done", "failed"] = "done"
    content: dict[str, Any] = Field(default_factory=dict)
    memory: str | None = None


@dataclass
class Tool:
    """Public description of a capability."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


class Capability(ABC):
    """A named, schema-validated unit of behavior."""

    name: ClassVar[str]
    description: ClassVar[str] = ""
    input_model: ClassVar[type[BaseModel]] = EmptyInput

    @abstractmethod
    async def call(self, args: BaseModel) -> ToolResult | dict[str, Any]:
        """Run the capability on already-validated input."""

    def definition(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description or f"Execute {self.name}",
            parameters=self.input_model.model_json_schema(),
        )


class FunctionCapability(Capability):
    """Wraps a plain (sync or async) function as a capability."""

    def __init__(
        self,
        func: Callable[..., Any],
        name: str,
        description: str,
        input_model: type[BaseModel],
    ):
        self._func = func
        self.name = name  # type: ignore[misc]
        self.description = description  # type: ignore[misc]
        self.input_model = input_model  # type: ignore[misc]

    async def call(self, args: BaseModel) -> ToolResult | dict[str, Any]:
        result = self._func(**args.model_dump())
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """
    Lookup table from capability name to implementation.

    Names are unique; registering a name twice replaces the earlier entry.
    """

    def __init__(self):
        self._capabilities: dict[str, Capability] = {}

    def register(self, capability: Capability) -> None:
        if capability.name in self._capabilities:
            logger.warning(f"Capability '{capability.name}' re-registered, replacing previous")
        self._capabilities[capability.name] = capability

    def register_function(
        self,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
    ) -> Capability:
        """
        Register a function as a capability, deriving its input model from the signature.

        Parameters without a default are required; unannotated ones accept anything.
        """
        tool_name = name or func.__name__
        tool_desc = description or inspect.getdoc(func) or f"Execute {tool_name}"

        fields: dict[str, Any] = {}
        for param_name, param in inspect.signature(func).parameters.items():
            if param_name in ("self", "cls"):
                continue
            annotation = Any if param.annotation is inspect.Parameter.empty else param.annotation
            default = ... if param.default is inspect.Parameter.empty else param.default
            fields[param_name] = (annotation, default)

        model_name = "".join(part.capitalize() for part in tool_name.split("_")) + "Input"
        input_model = pydantic.create_model(model_name, __base__=CapabilityInput, **fields)

        capability = FunctionCapability(func, tool_name, tool_desc, input_model)
        self.register(capability)
        return capability

    def unregister(self, name: str) -> bool:
        return self._capabilities.pop(name, None) is not None

    def get(self, name: str) -> Capability:
        capability = self._capabilities.get(name)
        if capability is None:
            raise NotFoundError("capability", name)
        return capability

    def has(self, name: str) -> bool:
        return name in self._capabilities

    def names(self) -> list[str]:
        return list(self._capabilities)

    def get_tools(self) -> list[Tool]:
        return [capability.definition() for capability in self._capabilities.values()]

    def validate(self, name: str, raw_input: dict[str, Any] | None) -> BaseModel:
        capability = self.get(name)
        try:
            return capability.input_model.model_validate(raw_input or {})
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid input for {name}: {e.error_count()} error(s): {_first_error(e)}",
                errors=e.errors(include_url=False, include_context=False),
            ) from e

    async def invoke(self, name: str, raw_input: dict[str, Any] | None = None) -> ToolResult:
        """
        Resolve, validate, call and normalize.

        Raises:
            NotFoundError: Unknown capability
            ValidationError: Input does not fit the capability's model
            ExecutionError: The capability raised, or returned an invalid result
        """
        capability = self.get(name)
        args = self.validate(name, raw_input)

        try:
            result = await capability.call(args)
        except (NotFoundError, ValidationError, ExecutionError):
            raise
        except Exception as e:
            raise ExecutionError(name, str(e) or type(e).__name__) from e

        if isinstance(result, ToolResult):
            return result
        try:
            return ToolResult.model_validate(result or {})
        except pydantic.ValidationError as e:
            raise ExecutionError(name, f"invalid result: {_first_error(e)}") from e


def _first_error(error: pydantic.ValidationError) -> str:
    first = error.errors(include_url=False)[0]
    location = ".".join(str(part) for part in first["loc"]) or "input"
    return f"{location}: {first['msg']}"
