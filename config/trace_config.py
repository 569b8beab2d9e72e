from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LANGFUSE_HOST = "https://cloud.langfuse.com"


@dataclass(frozen=True, slots=True)
class TraceConfig:
    public_key: str | None = None
    secret_key: str | None = None
    host: str = DEFAULT_LANGFUSE_HOST
    timeout_s: float = 5.0

    @staticmethod
    def from_strings(
        public_key: str | None = None,
        secret_key: str | None = None,
        host: str | None = None,
        timeout_s: float = 5.0,
    ) -> "TraceConfig":
        return TraceConfig(
            public_key=TraceConfig._norm_optional_text(public_key),
            secret_key=TraceConfig._norm_optional_text(secret_key),
            host=(TraceConfig._norm_optional_text(host) or DEFAULT_LANGFUSE_HOST).rstrip("/"),
            timeout_s=timeout_s,
        )

    @property
    def enabled(self) -> bool:
        return self.public_key is not None and self.secret_key is not None

    def validate(self) -> None:
        if (self.public_key is None) != (self.secret_key is None):
            raise ValueError("public_key and secret_key must be provided together")
        if not self.host.startswith(("http://", "https://")):
            raise ValueError(f"host must be an http(s) URL, got: {self.host}")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")

    @staticmethod
    def _norm_optional_text(value: str | None) -> str | None:
        if value is None:
            return None
        if not value.strip():
            return None
        return value.strip()
