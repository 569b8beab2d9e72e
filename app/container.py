from __future__ import annotations

from typing import Any

from app.settings import AppConfig
from nlp.llm.llm_client import OpenAICompatChatClient
from nlp.llm.trace_sink import build_trace_sink
from services.llm_service import LlmService


def build_container(app_cfg: AppConfig) -> dict[str, Any]:
    """
    Dependency container builder
    Responsibility
    - Takes a fully loaded config object
    - Constructs the transport, trace sink and provider exactly once
    - Returns a dictionary of ready-to-use services
    """

    # ----- Transport -----
    client = OpenAICompatChatClient(
        base_url=app_cfg.provider.effective_base_url,
        access_token=app_cfg.provider.access_token,
        timeout_s=app_cfg.llm_request.timeout_s,
        organization=app_cfg.provider.organization,
    )

    # ----- Tracing (optional) -----
    trace_sink = build_trace_sink(app_cfg.trace)

    # ----- Provider -----
    llm_service = LlmService(
        client=client,
        provider_cfg=app_cfg.provider,
        request_cfg=app_cfg.llm_request,
        trace_sink=trace_sink,
    )

    return {
        "client": client,
        "trace_sink": trace_sink,
        "llm_service": llm_service,
    }
