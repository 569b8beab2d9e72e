from __future__ import annotations

import json
from typing import Any, Iterable, Mapping

from config.llm_request_config import LlmRequestConfig
from nlp.llm.llm_types import FunctionDefinition, FunctionResult, JSONDict


def _as_definition(value: FunctionDefinition | Mapping[str, Any]) -> FunctionDefinition:
    if isinstance(value, FunctionDefinition):
        return value
    return FunctionDefinition.from_dict(value)


def _as_result(value: FunctionResult | Mapping[str, Any]) -> FunctionResult:
    if isinstance(value, FunctionResult):
        return value
    return FunctionResult.from_dict(value)


class ChatConfig:
    """Builds the Chat Completions request body for one turn."""

    def __init__(
        self,
        functions: Iterable[FunctionDefinition | Mapping[str, Any]] = (),
        function_results: Iterable[FunctionResult | Mapping[str, Any]] = (),
    ) -> None:
        self.functions = [_as_definition(fn) for fn in functions]
        self.function_results = [_as_result(result) for result in function_results]

    def tools(self) -> list[JSONDict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": fn.name,
                    "description": fn.description,
                    "parameters": fn.params_schema,
                    "strict": fn.strict,
                },
            }
            for fn in self.functions
        ]

    def build_input(self, prompt: str) -> list[JSONDict]:
        messages: list[JSONDict] = [{"role": "user", "content": prompt}]

        for result in self.function_results:
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": result.call_id,
                    # Raises TypeError/ValueError for outputs JSON cannot represent
                    "content": json.dumps(result.output, allow_nan=False),
                }
            )
        return messages

    def build_parameters(
        self,
        prompt: str,
        *,
        model: str,
        request_cfg: LlmRequestConfig,
    ) -> JSONDict:
        parameters: JSONDict = {
            "model": model,
            "messages": self.build_input(prompt),
        }

        tools = self.tools()
        if tools:
            parameters["tools"] = tools
            parameters["tool_choice"] = request_cfg.tool_choice
            parameters["max_tokens"] = request_cfg.max_tokens
        elif request_cfg.always_send_max_tokens:
            parameters["max_tokens"] = request_cfg.max_tokens

        if request_cfg.temperature is not None:
            parameters["temperature"] = request_cfg.temperature
        return parameters
