from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from nlp.llm.llm_types import ChatResponse, ProviderResponse


def print_model_list(models: tuple[str, ...], base_url_override: str | None) -> None:
    if base_url_override:
        print(f"Any model is accepted by the overridden endpoint: {base_url_override}")
        return
    print("Supported models:")
    for model in models:
        print(f"  - {model}")


def print_function_requests(response: ChatResponse) -> None:
    for request in response.function_requests:
        print(
            json.dumps(
                {
                    "call_id": request.call_id,
                    "function_name": request.function_name,
                    "function_args": request.function_args,
                },
                ensure_ascii=True,
            )
        )


def print_chat_result(result: ProviderResponse, *, streamed: bool) -> None:
    if not result.success:
        print(f"Error: {result.error}")
        return

    response: ChatResponse = result.data
    if not streamed:
        print(response.output_text)
    print_function_requests(response)


def read_functions(path: Path) -> list[dict[str, Any]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Functions file must contain a JSON list: {path}")
    return payload
