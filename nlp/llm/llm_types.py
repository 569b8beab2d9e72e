from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Literal, Mapping

JSONDict = dict[str, Any]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    id: str
    output_text: str


@dataclass(frozen=True, slots=True)
class ChatFunctionRequest:
    id: str
    call_id: str
    function_name: str
    function_args: str


@dataclass(frozen=True, slots=True)
class ChatResponse:
    id: str
    model: str
    messages: tuple[ChatMessage, ...] = ()
    function_requests: tuple[ChatFunctionRequest, ...] = ()

    @property
    def output_text(self) -> str:
        return "\n".join(message.output_text for message in self.messages)


@dataclass(frozen=True, slots=True)
class ChatStreamChunk:
    type: Literal["output_text", "response"]
    data: str | ChatResponse


@dataclass(frozen=True, slots=True)
class FunctionDefinition:
    name: str
    description: str
    params_schema: JSONDict
    strict: bool = True

    @staticmethod
    def from_dict(value: Mapping[str, Any]) -> "FunctionDefinition":
        return FunctionDefinition(
            name=value["name"],
            description=value.get("description", ""),
            params_schema=value.get("params_schema") or {},
            strict=bool(value.get("strict", True)),
        )


@dataclass(frozen=True, slots=True)
class FunctionResult:
    call_id: str
    output: Any

    @staticmethod
    def from_dict(value: Mapping[str, Any]) -> "FunctionResult":
        return FunctionResult(call_id=value["call_id"], output=value.get("output"))


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    """Outcome of one provider call: either data or an error, never both."""

    success: bool
    data: Any = None
    error: Exception | None = None

    @staticmethod
    def ok(data: Any) -> "ProviderResponse":
        return ProviderResponse(success=True, data=data, error=None)

    @staticmethod
    def failed(error: Exception) -> "ProviderResponse":
        return ProviderResponse(success=False, data=None, error=error)
