from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_request_config import LlmRequestConfig
from config.provider_config import ProviderConfig
from config.trace_config import TraceConfig


@dataclass(frozen=True, slots=True)
class AppConfig:
    provider: ProviderConfig
    llm_request: LlmRequestConfig
    trace: TraceConfig


class EnvSettings(BaseSettings):
    """Raw process environment, read once and then validated into the frozen configs."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # --- Provider ---
    OPENAI_ACCESS_TOKEN: str = ""
    # OpenAI-compatible servers such as Ollama
    AI_BASE_URL: str | None = None
    OPENAI_MODELS: str | None = None
    OPENAI_ORGANIZATION: str | None = None

    # --- Request ---
    LLM_MAX_TOKENS: int = 4096
    LLM_TOOL_CHOICE: str = "auto"
    LLM_TEMPERATURE: float | None = None
    LLM_STREAM_INCLUDE_USAGE: bool = True
    LLM_ALWAYS_SEND_MAX_TOKENS: bool = False
    LLM_TIMEOUT_S: float = 120.0

    # --- Langfuse ---
    LANGFUSE_PUBLIC_KEY: str | None = None
    LANGFUSE_SECRET_KEY: str | None = None
    LANGFUSE_HOST: str | None = None


def load_env(env: Mapping[str, str] | None = None) -> EnvSettings:
    # An explicit mapping is validated on its own, without the process env or .env
    if env is None:
        return EnvSettings()
    return EnvSettings.model_validate(dict(env))


def build_settings(env: Mapping[str, str] | None = None) -> AppConfig:
    raw = load_env(env)

    provider = ProviderConfig.from_strings(
        access_token=raw.OPENAI_ACCESS_TOKEN,
        base_url=raw.AI_BASE_URL,
        models=raw.OPENAI_MODELS,
        organization=raw.OPENAI_ORGANIZATION,
    )
    provider.validate()

    llm_request = LlmRequestConfig.from_values(
        max_tokens=raw.LLM_MAX_TOKENS,
        tool_choice=raw.LLM_TOOL_CHOICE or "auto",
        temperature=raw.LLM_TEMPERATURE,
        stream_include_usage=raw.LLM_STREAM_INCLUDE_USAGE,
        always_send_max_tokens=raw.LLM_ALWAYS_SEND_MAX_TOKENS,
        timeout_s=raw.LLM_TIMEOUT_S,
    )
    llm_request.validate()

    trace = TraceConfig.from_strings(
        public_key=raw.LANGFUSE_PUBLIC_KEY,
        secret_key=raw.LANGFUSE_SECRET_KEY,
        host=raw.LANGFUSE_HOST,
    )
    trace.validate()

    return AppConfig(provider=provider, llm_request=llm_request, trace=trace)
