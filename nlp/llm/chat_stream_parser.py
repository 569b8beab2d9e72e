from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from nlp.llm.chat_parser import ChatParser, as_str, check_completion_shape, dig
from nlp.llm.llm_errors import IncompleteStreamError
from nlp.llm.llm_types import ChatResponse, ChatStreamChunk, JSONDict

StreamState = Literal["idle", "streaming", "terminal", "aborted"]
ChunkSink = Callable[[ChatStreamChunk], None]

TOOL_FINISH_REASONS = {"tool_calls", "function_call"}


def _generate_response_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


@dataclass
class _ToolCallFragments:
    id: str = ""
    type: str = "function"
    name_parts: list[str] = field(default_factory=list)
    argument_parts: list[str] = field(default_factory=list)

    def to_tool_call(self) -> JSONDict:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": "".join(self.name_parts),
                "arguments": "".join(self.argument_parts),
            },
        }


class ChatStreamReassembler:
    """
    Rebuilds one chat turn from Chat Completions stream events.

    Events are fed in arrival order. Every ``output_text`` chunk is handed to
    the sink before ``feed`` returns, so a slow sink back-pressures the
    transport reading the stream. Exactly one ``response`` chunk is emitted,
    as the last chunk, once a ``finish_reason`` is seen.
    """

    def __init__(
        self,
        model: str,
        on_chunk: ChunkSink | None = None,
        *,
        id_factory: Callable[[], str] = _generate_response_id,
    ) -> None:
        self.model = model
        self.on_chunk = on_chunk
        self.state: StreamState = "idle"
        self.response_id: str | None = None
        self.finish_reason: str | None = None
        self.usage: dict[str, Any] | None = None
        self._id_factory = id_factory
        self._text_parts: list[str] = []
        self._tool_calls: dict[int, _ToolCallFragments] = {}
        self._response: ChatResponse | None = None
        self._abort_reason: str | None = None

    @property
    def done(self) -> bool:
        return self.state in ("terminal", "aborted")

    def feed(self, event: Any) -> list[ChatStreamChunk]:
        if self.done:
            # Usage trailers arrive after the finish_reason frame
            if isinstance(event, dict) and isinstance(event.get("usage"), dict):
                self.usage = event["usage"]
            return []

        check_completion_shape(event)
        self._remember_metadata(event)

        choices = event.get("choices") or []
        if not choices:
            return []

        self.state = "streaming"
        choice = choices[0] if isinstance(choices[0], dict) else {}
        delta = choice.get("delta")
        delta = delta if isinstance(delta, dict) else {}

        emitted: list[ChatStreamChunk] = []

        content = delta.get("content")
        if content is not None:
            text = as_str(content)
            self._text_parts.append(text)
            emitted.append(self._emit(ChatStreamChunk(type="output_text", data=text)))

        if "tool_calls" in delta:
            self._buffer_tool_calls(delta.get("tool_calls"))

        finish_reason = as_str(choice.get("finish_reason"))
        if finish_reason:
            self.finish_reason = finish_reason
            response = self._terminal_response(event, choice, finish_reason)
            self._response = response
            self._clear_buffers()
            self.state = "terminal"
            emitted.append(self._emit(ChatStreamChunk(type="response", data=response)))

        return emitted

    def finish(self) -> ChatResponse:
        if self.state == "terminal" and self._response is not None:
            return self._response
        if self.state == "aborted":
            raise IncompleteStreamError(f"Stream aborted before completion: {self._abort_reason}")
        raise IncompleteStreamError("Stream ended without a finish_reason")

    def abort(self, reason: str = "cancelled") -> None:
        if self.state == "terminal":
            return
        self._clear_buffers()
        self._abort_reason = reason
        self.state = "aborted"

    # ----- INTERNALS -----

    def _emit(self, chunk: ChatStreamChunk) -> ChatStreamChunk:
        if self.on_chunk is not None:
            self.on_chunk(chunk)
        return chunk

    def _remember_metadata(self, event: dict[str, Any]) -> None:
        event_id = event.get("id")
        if self.response_id is None and isinstance(event_id, str) and event_id:
            self.response_id = event_id

        model = event.get("model")
        if isinstance(model, str) and model:
            self.model = model

        usage = event.get("usage")
        if isinstance(usage, dict):
            self.usage = usage

    def _buffer_tool_calls(self, tool_calls: Any) -> None:
        if not isinstance(tool_calls, list):
            return

        for position, fragment in enumerate(tool_calls):
            if not isinstance(fragment, dict):
                continue
            index = fragment.get("index")
            if not isinstance(index, int):
                index = position
            entry = self._tool_calls.setdefault(index, _ToolCallFragments())

            call_id = as_str(fragment.get("id"))
            if call_id:
                entry.id = call_id
            call_type = as_str(fragment.get("type"))
            if call_type:
                entry.type = call_type

            name = dig(fragment, "function", "name")
            # Some servers repeat the full name on every fragment
            if name and as_str(name) != "".join(entry.name_parts):
                entry.name_parts.append(as_str(name))
            arguments = dig(fragment, "function", "arguments")
            if isinstance(arguments, (dict, list)):
                entry.argument_parts.append(json.dumps(arguments))
            elif arguments:
                entry.argument_parts.append(as_str(arguments))

    def _terminal_response(
        self,
        event: dict[str, Any],
        choice: dict[str, Any],
        finish_reason: str,
    ) -> ChatResponse:
        if finish_reason in TOOL_FINISH_REASONS:
            if isinstance(choice.get("message"), dict):
                return ChatParser(event).parsed()
            tool_calls = [self._tool_calls[index].to_tool_call() for index in sorted(self._tool_calls)]
            return ChatParser(self._completion_payload(tool_calls)).parsed()
        return ChatParser(self._completion_payload()).parsed()

    def _completion_payload(self, tool_calls: list[JSONDict] | None = None) -> JSONDict:
        message: JSONDict = {"role": "assistant", "content": "".join(self._text_parts)}
        if tool_calls:
            message["tool_calls"] = tool_calls
        return {
            "id": self.response_id or self._id_factory(),
            "object": "chat.completion",
            "model": self.model,
            "choices": [{"index": 0, "message": message, "finish_reason": self.finish_reason}],
        }

    def _clear_buffers(self) -> None:
        self._text_parts = []
        self._tool_calls = {}
