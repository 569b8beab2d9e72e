from __future__ import annotations

import io
import unittest
from unittest.mock import patch

import requests

from nlp.llm.llm_client import OpenAICompatChatClient, decode_stream_line, iter_stream_events
from nlp.llm.llm_errors import MalformedResponseError, TransportError


class _FakeStreamResponse:
    def __init__(self, lines: list[str], error: Exception | None = None) -> None:
        self._lines = lines
        self._error = error
        self.closed = False

    def raise_for_status(self) -> None:
        return

    def iter_lines(self):
        for line in self._lines:
            yield line
        if self._error is not None:
            raise self._error

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False


class OpenAICompatChatClientStreamingTests(unittest.TestCase):
    def _build_client(self) -> OpenAICompatChatClient:
        return OpenAICompatChatClient(
            base_url="http://127.0.0.1:11434/v1/",
            access_token="sk-test",
        )

    def test_send_chat_streaming_delivers_events_in_order(self) -> None:
        client = self._build_client()
        lines = [
            ": keep-alive",
            "",
            'data: {"choices":[{"delta":{"content":"Hel"}}]}',
            'data: {"choices":[{"delta":{"content":"lo"},"finish_reason":"stop"}]}',
            'data: {"choices":[],"usage":{"total_tokens":7}}',
            "data: [DONE]",
            'data: {"choices":[{"delta":{"content":"ignored"}}]}',
        ]
        fake = _FakeStreamResponse(lines)
        events: list[dict] = []

        with patch("nlp.llm.llm_client.requests.post", return_value=fake) as post_mock:
            client.send_chat_streaming({"model": "m", "messages": []}, events.append)

        self.assertEqual(len(events), 3)
        self.assertEqual(events[0]["choices"][0]["delta"]["content"], "Hel")
        self.assertEqual(events[2]["usage"], {"total_tokens": 7})
        self.assertTrue(fake.closed)

        kwargs = post_mock.call_args.kwargs
        self.assertTrue(kwargs["stream"])
        self.assertTrue(kwargs["json"]["stream"])
        self.assertEqual(post_mock.call_args.args[0], "http://127.0.0.1:11434/v1/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk-test")

    def test_stream_malformed_json_raises_malformed_response(self) -> None:
        client = self._build_client()
        lines = ['data: {"choices":[{"delta":{"content":"ok"}}]}', "data: {bad json}"]

        with patch("nlp.llm.llm_client.requests.post", return_value=_FakeStreamResponse(lines)):
            with self.assertRaises(MalformedResponseError):
                client.send_chat_streaming({"model": "m"}, lambda event: None)

    def test_connection_failure_raises_transport_error(self) -> None:
        client = self._build_client()
        with patch(
            "nlp.llm.llm_client.requests.post",
            side_effect=requests.exceptions.ConnectionError("refused"),
        ):
            with self.assertRaises(TransportError):
                client.send_chat_streaming({"model": "m"}, lambda event: None)

    def test_read_timeout_mid_stream_raises_transport_error(self) -> None:
        client = self._build_client()
        fake = _FakeStreamResponse(
            ['data: {"choices":[{"delta":{"content":"Hel"}}]}'],
            error=requests.exceptions.ConnectionError("read timed out"),
        )
        events: list[dict] = []

        with patch("nlp.llm.llm_client.requests.post", return_value=fake):
            with self.assertRaises(TransportError):
                client.send_chat_streaming({"model": "m"}, events.append)
        self.assertEqual(len(events), 1)

    def test_decode_stream_line_skips_non_data_lines(self) -> None:
        self.assertIsNone(decode_stream_line(""))
        self.assertIsNone(decode_stream_line(": comment"))
        self.assertIsNone(decode_stream_line("event: message"))
        self.assertIsNone(decode_stream_line("data:   "))
        self.assertEqual(decode_stream_line('data: {"a": 1}'), {"a": 1})

    def test_iter_stream_events_stops_at_done_and_decodes_bytes(self) -> None:
        events = list(iter_stream_events([b'data: {"a": 1}', None, "data: [DONE]", 'data: {"b": 2}']))
        self.assertEqual(events, [{"a": 1}])

    def test_stream_without_charset_is_read_as_utf8(self) -> None:
        client = self._build_client()
        body = 'data: {"choices":[{"delta":{"content":"café ✓"}}]}\n\ndata: [DONE]\n\n'.encode("utf-8")
        response = requests.Response()
        response.status_code = 200
        response.headers["Content-Type"] = "text/event-stream"
        response.encoding = requests.utils.get_encoding_from_headers(response.headers)
        response.raw = io.BytesIO(body)
        events: list[dict] = []

        with patch("nlp.llm.llm_client.requests.post", return_value=response):
            client.send_chat_streaming({"model": "m", "messages": []}, events.append)

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["choices"][0]["delta"]["content"], "café ✓")


if __name__ == "__main__":
    unittest.main()
