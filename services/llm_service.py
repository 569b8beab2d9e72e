from __future__ import annotations

from dataclasses import dataclass, field
import logging
import sys
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sized, TypeVar

from config.llm_request_config import LlmRequestConfig
from config.provider_config import ProviderConfig
from nlp.llm.chat_config import ChatConfig
from nlp.llm.chat_parser import ChatParser
from nlp.llm.chat_stream_parser import ChatStreamReassembler, ChunkSink
from nlp.llm.llm_client import OpenAICompatChatClient
from nlp.llm.llm_errors import (
    IncompleteStreamError,
    LlmProviderError,
    RequestTooLargeError,
    TransportError,
    UnsupportedModelError,
)
from nlp.llm.llm_types import (
    ChatResponse,
    ChatStreamChunk,
    FunctionDefinition,
    FunctionResult,
    JSONDict,
    ProviderResponse,
)
from nlp.llm.trace_sink import TraceSink

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BATCH_SIZE = 25

FunctionsArg = Iterable[FunctionDefinition | Mapping[str, Any]]
ResultsArg = Iterable[FunctionResult | Mapping[str, Any]]


@dataclass
class LlmService:
    client: OpenAICompatChatClient
    provider_cfg: ProviderConfig
    request_cfg: LlmRequestConfig = field(default_factory=LlmRequestConfig)
    trace_sink: TraceSink | None = None

    def supports_model(self, model: str) -> bool:
        # Any model name is passed through to an overridden endpoint
        if self.provider_cfg.has_base_url_override:
            return True
        return model in self.provider_cfg.models

    @staticmethod
    def check_batch_size(
        items: Sized,
        *,
        label: str = "transactions",
        action: str = "process",
        limit: int = MAX_BATCH_SIZE,
    ) -> None:
        if len(items) > limit:
            raise RequestTooLargeError(
                f"Too many {label} to {action}. Max is {limit} per request."
            )

    def with_provider_response(self, fn: Callable[[], T]) -> ProviderResponse:
        try:
            return ProviderResponse.ok(fn())
        except LlmProviderError as exc:
            logger.warning("LLM provider call failed: %s", exc)
            return ProviderResponse.failed(exc)

    async def with_provider_response_async(
        self,
        fn: Callable[[], Awaitable[T]],
    ) -> ProviderResponse:
        try:
            return ProviderResponse.ok(await fn())
        except LlmProviderError as exc:
            logger.warning("LLM provider call failed: %s", exc)
            return ProviderResponse.failed(exc)

    # ----- API: chat_response, chat_response_async -----

    def chat_response(
        self,
        prompt: str,
        *,
        model: str,
        functions: FunctionsArg = (),
        function_results: ResultsArg = (),
        streamer: ChunkSink | None = None,
        instructions: str | None = None,
        previous_response_id: str | None = None,
    ) -> ProviderResponse:
        # instructions and previous_response_id have no Chat Completions counterpart
        # Serialization errors in function_results are the caller's to fix
        parameters = self._build_parameters(prompt, model, functions, function_results)

        def _run() -> ChatResponse:
            self._ensure_model(model)
            if streamer is None:
                raw = self.client.send_chat(parameters)
                parsed = ChatParser(raw).parsed()
                usage = raw.get("usage")
            else:
                parsed, usage = self._stream_turn(parameters, model, streamer)

            self._log_generation(
                name="chat_response",
                model=model,
                input=parameters["messages"],
                output=parsed.output_text,
                usage=usage if isinstance(usage, dict) else None,
            )
            return parsed

        return self.with_provider_response(_run)

    async def chat_response_async(
        self,
        prompt: str,
        *,
        model: str,
        functions: FunctionsArg = (),
        function_results: ResultsArg = (),
        streamer: ChunkSink | None = None,
        instructions: str | None = None,
        previous_response_id: str | None = None,
    ) -> ProviderResponse:
        parameters = self._build_parameters(prompt, model, functions, function_results)

        async def _run() -> ChatResponse:
            self._ensure_model(model)
            if streamer is None:
                raw = await self.client.send_chat_async(parameters)
                parsed = ChatParser(raw).parsed()
                usage = raw.get("usage")
            else:
                parsed, usage = await self._stream_turn_async(parameters, model, streamer)

            self._log_generation(
                name="chat_response",
                model=model,
                input=parameters["messages"],
                output=parsed.output_text,
                usage=usage if isinstance(usage, dict) else None,
            )
            return parsed

        return await self.with_provider_response_async(_run)

    def chat_stream_to_terminal(self, prompt: str, *, model: str, **kwargs: Any) -> ProviderResponse:
        def _write(chunk: ChatStreamChunk) -> None:
            if chunk.type == "output_text" and isinstance(chunk.data, str):
                sys.stdout.write(chunk.data)
                sys.stdout.flush()

        result = self.chat_response(prompt, model=model, streamer=_write, **kwargs)
        sys.stdout.write("\n")
        sys.stdout.flush()
        return result

    # ----- INTERNALS -----

    def _ensure_model(self, model: str) -> None:
        if not self.supports_model(model):
            raise UnsupportedModelError(model)

    def _build_parameters(
        self,
        prompt: str,
        model: str,
        functions: FunctionsArg,
        function_results: ResultsArg,
    ) -> JSONDict:
        chat_config = ChatConfig(functions=functions, function_results=function_results)
        return chat_config.build_parameters(prompt, model=model, request_cfg=self.request_cfg)

    def _stream_parameters(self, parameters: JSONDict) -> JSONDict:
        if not self.request_cfg.stream_include_usage:
            return parameters
        return {**parameters, "stream_options": {"include_usage": True}}

    def _stream_turn(
        self,
        parameters: JSONDict,
        model: str,
        streamer: ChunkSink,
    ) -> tuple[ChatResponse, dict[str, Any] | None]:
        reassembler = ChatStreamReassembler(model=model, on_chunk=streamer)
        try:
            self.client.send_chat_streaming(self._stream_parameters(parameters), reassembler.feed)
        except TransportError as exc:
            self._interrupt(reassembler, exc)
        except BaseException:
            reassembler.abort("stream consumer failed")
            raise
        return reassembler.finish(), reassembler.usage

    async def _stream_turn_async(
        self,
        parameters: JSONDict,
        model: str,
        streamer: ChunkSink,
    ) -> tuple[ChatResponse, dict[str, Any] | None]:
        reassembler = ChatStreamReassembler(model=model, on_chunk=streamer)
        try:
            await self.client.send_chat_streaming_async(
                self._stream_parameters(parameters),
                reassembler.feed,
            )
        except TransportError as exc:
            self._interrupt(reassembler, exc)
        except BaseException:
            reassembler.abort("stream consumer failed")
            raise
        return reassembler.finish(), reassembler.usage

    @staticmethod
    def _interrupt(reassembler: ChatStreamReassembler, exc: TransportError) -> None:
        if reassembler.state == "terminal":
            logger.debug("Transport closed after the final chunk: %s", exc)
            return
        started = reassembler.state == "streaming"
        reassembler.abort(str(exc))
        if started:
            raise IncompleteStreamError(f"Stream interrupted before completion: {exc}") from exc
        raise exc

    def _log_generation(
        self,
        *,
        name: str,
        model: str,
        input: Any,
        output: Any,
        usage: dict[str, Any] | None = None,
    ) -> None:
        if self.trace_sink is None:
            return
        try:
            self.trace_sink.record(name=name, model=model, input=input, output=output, usage=usage)
        except Exception as exc:
            logger.warning("Langfuse logging failed: %s", exc)
