from __future__ import annotations
from dataclasses import dataclass
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Iterable, Iterator
import httpx
import requests

from nlp.llm.llm_errors import MalformedResponseError, TransportError
from nlp.llm.llm_types import JSONDict

logger = logging.getLogger(__name__)

EventHandler = Callable[[JSONDict], None]
AsyncEventHandler = Callable[[JSONDict], "Awaitable[None] | None"]

_DONE = object()


# ----- Server-sent event decoding -----
def decode_stream_line(line: str) -> Any:
    """
    Decode one SSE line from a Chat Completions stream.

    Returns the parsed JSON object, ``None`` for lines carrying no event, or
    the ``_DONE`` sentinel for the ``[DONE]`` terminator.
    """
    stripped = line.strip()
    if not stripped or not stripped.startswith("data:"):
        return None

    payload = stripped[len("data:"):].strip()
    if not payload:
        return None
    if payload == "[DONE]":
        return _DONE

    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Malformed stream JSON chunk: {payload}") from exc


def iter_stream_events(lines: Iterable[Any]) -> Iterator[Any]:
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if not isinstance(line, str):
            continue
        event = decode_stream_line(line)
        if event is _DONE:
            return
        if event is not None:
            yield event


# ----- Transport -----
@dataclass
class OpenAICompatChatClient:
    base_url: str
    access_token: str
    timeout_s: float = 120.0
    organization: str | None = None

    def __post_init__(self) -> None:
        logger.debug("Initializing OpenAI-compatible client for %s", self.base_url)

    @property
    def chat_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if self.organization:
            headers["OpenAI-Organization"] = self.organization
        return headers

    @staticmethod
    def _stream_payload(payload: JSONDict) -> JSONDict:
        return {**payload, "stream": True}

    @staticmethod
    def _decode_body(response: Any) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Chat completion body is not JSON: {exc}") from exc

    # ----- API: send_chat, send_chat_streaming -----

    def send_chat(self, payload: JSONDict) -> Any:
        try:
            response = requests.post(
                self.chat_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout_s,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TransportError(f"LLM server returned an error: {e}", status_code=status) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"LLM server connection failed: {e}") from e

        return self._decode_body(response)

    def send_chat_streaming(self, payload: JSONDict, on_event: EventHandler) -> None:
        try:
            response = requests.post(
                self.chat_url,
                json=self._stream_payload(payload),
                headers=self._headers(),
                timeout=self.timeout_s,
                stream=True,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TransportError(f"LLM server returned an error: {e}", status_code=status) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"LLM server connection failed: {e}") from e

        with response:
            try:
                for event in iter_stream_events(response.iter_lines()):
                    on_event(event)
            except requests.exceptions.RequestException as e:
                raise TransportError(f"LLM stream interrupted: {e}") from e

    # ----- API: send_chat_async, send_chat_streaming_async -----

    async def send_chat_async(self, payload: JSONDict) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            try:
                response = await client.post(
                    self.chat_url,
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise TransportError(
                    f"LLM server returned an error: {exc}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"LLM server connection failed: {exc}") from exc

            return self._decode_body(response)

    async def send_chat_streaming_async(
        self,
        payload: JSONDict,
        on_event: AsyncEventHandler,
    ) -> None:
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            try:
                async with client.stream(
                    "POST",
                    self.chat_url,
                    json=self._stream_payload(payload),
                    headers=self._headers(),
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not isinstance(line, str):
                            continue
                        event = decode_stream_line(line)
                        if event is _DONE:
                            return
                        if event is None:
                            continue
                        result = on_event(event)
                        if inspect.isawaitable(result):
                            await result
            except httpx.HTTPStatusError as exc:
                raise TransportError(
                    f"LLM server returned an error: {exc}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise TransportError(f"LLM server connection failed: {exc}") from exc
