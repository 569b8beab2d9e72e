from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from config.trace_config import TraceConfig
from nlp.llm.llm_types import JSONDict


class TraceSink(Protocol):
    def record(
        self,
        *,
        name: str,
        model: str,
        input: Any,
        output: Any,
        usage: dict[str, Any] | None = None,
    ) -> None: ...


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _usage_body(usage: dict[str, Any] | None) -> JSONDict | None:
    if not usage:
        return None
    return {
        "input": usage.get("prompt_tokens"),
        "output": usage.get("completion_tokens"),
        "total": usage.get("total_tokens"),
        "unit": "TOKENS",
    }


class LangfuseTraceSink:
    """Sends one trace plus generation per chat turn to Langfuse's ingestion API."""

    def __init__(self, cfg: TraceConfig) -> None:
        if not cfg.enabled:
            raise ValueError("LangfuseTraceSink requires public_key and secret_key")
        self.cfg = cfg

    @property
    def ingestion_url(self) -> str:
        return f"{self.cfg.host}/api/public/ingestion"

    def build_batch(
        self,
        *,
        name: str,
        model: str,
        input: Any,
        output: Any,
        usage: dict[str, Any] | None = None,
    ) -> JSONDict:
        trace_id = str(uuid.uuid4())
        now = _timestamp()

        generation: JSONDict = {
            "id": str(uuid.uuid4()),
            "traceId": trace_id,
            "name": name,
            "model": model,
            "input": input,
            "output": output,
            "startTime": now,
            "endTime": now,
        }
        usage_body = _usage_body(usage)
        if usage_body is not None:
            generation["usage"] = usage_body

        return {
            "batch": [
                {
                    "id": str(uuid.uuid4()),
                    "timestamp": now,
                    "type": "trace-create",
                    "body": {
                        "id": trace_id,
                        "name": f"openai.{name}",
                        "input": input,
                        "output": output,
                        "timestamp": now,
                    },
                },
                {
                    "id": str(uuid.uuid4()),
                    "timestamp": now,
                    "type": "generation-create",
                    "body": generation,
                },
            ]
        }

    def record(
        self,
        *,
        name: str,
        model: str,
        input: Any,
        output: Any,
        usage: dict[str, Any] | None = None,
    ) -> None:
        batch = self.build_batch(name=name, model=model, input=input, output=output, usage=usage)
        response = requests.post(
            self.ingestion_url,
            json=batch,
            auth=(self.cfg.public_key or "", self.cfg.secret_key or ""),
            timeout=self.cfg.timeout_s,
        )
        response.raise_for_status()


def build_trace_sink(cfg: TraceConfig) -> LangfuseTraceSink | None:
    if not cfg.enabled:
        return None
    return LangfuseTraceSink(cfg)
