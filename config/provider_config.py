from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODELS: tuple[str, ...] = ("gpt-4.1",)


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    access_token: str
    base_url: str | None = None
    models: tuple[str, ...] = DEFAULT_MODELS
    organization: str | None = None

    @staticmethod
    def from_strings(
        access_token: str,
        base_url: str | None = None,
        models: str | tuple[str, ...] | list[str] | None = None,
        organization: str | None = None,
    ) -> "ProviderConfig":
        return ProviderConfig(
            access_token=(access_token or "").strip(),
            base_url=ProviderConfig._norm_optional_text(base_url),
            models=ProviderConfig._norm_models(models),
            organization=ProviderConfig._norm_optional_text(organization),
        )

    @property
    def has_base_url_override(self) -> bool:
        return self.base_url is not None

    @property
    def effective_base_url(self) -> str:
        return self.base_url or DEFAULT_BASE_URL

    def validate(self) -> None:
        # OpenAI-compatible local servers (e.g. Ollama) accept any token.
        if not self.access_token and not self.has_base_url_override:
            raise ValueError("access_token must be a non-empty string")

        if self.base_url is not None and not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got: {self.base_url}")

        if not self.models:
            raise ValueError("models must contain at least one model name")
        for model in self.models:
            if not model.strip():
                raise ValueError("models must only contain non-empty strings")

    @staticmethod
    def _norm_optional_text(value: str | None) -> str | None:
        if value is None:
            return None
        if not value.strip():
            return None
        return value.strip()

    @staticmethod
    def _norm_models(value: str | tuple[str, ...] | list[str] | None) -> tuple[str, ...]:
        if value is None:
            return DEFAULT_MODELS
        if isinstance(value, str):
            value = value.split(",")
        models = tuple(item.strip() for item in value if item and item.strip())
        return models or DEFAULT_MODELS
