from __future__ import annotations

import json
from typing import Any

from nlp.llm.llm_errors import MalformedResponseError
from nlp.llm.llm_types import ChatFunctionRequest, ChatMessage, ChatResponse

_MISSING = object()


def dig(value: Any, *path: str | int, default: Any = None) -> Any:
    """Walk nested dicts/lists, returning ``default`` on any missing step."""
    current = value
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not 0 <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, dict):
                return default
            current = current.get(key, _MISSING)
            if current is _MISSING:
                return default
    return default if current is None else current


def as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _arguments(value: Any) -> str:
    # Some OpenAI-compatible servers send decoded argument objects
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return as_str(value)


def check_completion_shape(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Chat completion must be a JSON object, got {type(payload).__name__}"
        )
    choices = payload.get("choices")
    if choices is not None and not isinstance(choices, list):
        raise MalformedResponseError(
            f"Chat completion 'choices' must be a list, got {type(choices).__name__}"
        )


class ChatParser:
    """Normalizes one complete Chat Completions payload into a ChatResponse."""

    def __init__(self, payload: Any) -> None:
        check_completion_shape(payload)
        self.payload: dict[str, Any] = payload

    def parsed(self) -> ChatResponse:
        return ChatResponse(
            id=self._response_id(),
            model=as_str(dig(self.payload, "model", default="")),
            messages=self._messages(),
            function_requests=self._function_requests(),
        )

    def _response_id(self) -> str:
        return as_str(dig(self.payload, "id", default=""))

    def _message(self) -> dict[str, Any] | None:
        message = dig(self.payload, "choices", 0, "message")
        return message if isinstance(message, dict) else None

    def _messages(self) -> tuple[ChatMessage, ...]:
        message = self._message()
        if message is None:
            return ()
        return (
            ChatMessage(
                id=self._response_id(),
                output_text=as_str(dig(message, "content", default="")),
            ),
        )

    def _function_requests(self) -> tuple[ChatFunctionRequest, ...]:
        message = self._message()
        if message is None:
            return ()

        tool_calls = dig(message, "tool_calls", default=[])
        if not isinstance(tool_calls, list):
            return ()

        requests_: list[ChatFunctionRequest] = []
        for tool_call in tool_calls:
            # The Chat Completions API has a single id per call
            call_id = as_str(dig(tool_call, "id", default=""))
            requests_.append(
                ChatFunctionRequest(
                    id=call_id,
                    call_id=call_id,
                    function_name=as_str(dig(tool_call, "function", "name", default="")),
                    function_args=_arguments(dig(tool_call, "function", "arguments", default="")),
                )
            )
        return tuple(requests_)
