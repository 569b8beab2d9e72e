from __future__ import annotations

from dataclasses import dataclass

ALLOWED_TOOL_CHOICES = {"auto", "none", "required"}


@dataclass(frozen=True, slots=True)
class LlmRequestConfig:
    max_tokens: int = 4096
    tool_choice: str = "auto"
    temperature: float | None = None
    stream_include_usage: bool = True
    always_send_max_tokens: bool = False
    timeout_s: float = 120.0

    @staticmethod
    def from_values(
        max_tokens: int = 4096,
        tool_choice: str = "auto",
        temperature: float | None = None,
        stream_include_usage: bool = True,
        always_send_max_tokens: bool = False,
        timeout_s: float = 120.0,
    ) -> "LlmRequestConfig":
        return LlmRequestConfig(
            max_tokens=max_tokens,
            tool_choice=tool_choice.strip().lower(),
            temperature=temperature,
            stream_include_usage=stream_include_usage,
            always_send_max_tokens=always_send_max_tokens,
            timeout_s=timeout_s,
        )

    def validate(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if self.tool_choice not in ALLOWED_TOOL_CHOICES:
            raise ValueError(
                f"tool_choice must be one of {sorted(ALLOWED_TOOL_CHOICES)}, got: {self.tool_choice}"
            )
        if self.temperature is not None and self.temperature < 0:
            raise ValueError("temperature must be >= 0 when provided")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
