from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from app.settings import AppConfig, build_settings


class BuildSettingsTests(unittest.TestCase):
    def test_build_settings_from_minimal_env(self) -> None:
        app_cfg = build_settings({"OPENAI_ACCESS_TOKEN": "sk-test"})

        self.assertIsInstance(app_cfg, AppConfig)
        self.assertEqual(app_cfg.provider.access_token, "sk-test")
        self.assertFalse(app_cfg.provider.has_base_url_override)
        self.assertEqual(app_cfg.llm_request.max_tokens, 4096)
        self.assertTrue(app_cfg.llm_request.stream_include_usage)
        self.assertFalse(app_cfg.trace.enabled)

    def test_build_settings_reads_overrides(self) -> None:
        app_cfg = build_settings(
            {
                "AI_BASE_URL": "http://localhost:11434/v1",
                "OPENAI_MODELS": "llama3,qwen2",
                "LLM_MAX_TOKENS": "2048",
                "LLM_TIMEOUT_S": "30",
                "LLM_STREAM_INCLUDE_USAGE": "false",
                "LLM_ALWAYS_SEND_MAX_TOKENS": "true",
                "LANGFUSE_PUBLIC_KEY": "pk",
                "LANGFUSE_SECRET_KEY": "sk",
            }
        )

        self.assertEqual(app_cfg.provider.base_url, "http://localhost:11434/v1")
        self.assertEqual(app_cfg.provider.models, ("llama3", "qwen2"))
        self.assertEqual(app_cfg.llm_request.max_tokens, 2048)
        self.assertEqual(app_cfg.llm_request.timeout_s, 30.0)
        self.assertFalse(app_cfg.llm_request.stream_include_usage)
        self.assertTrue(app_cfg.llm_request.always_send_max_tokens)
        self.assertTrue(app_cfg.trace.enabled)

    def test_build_settings_rejects_bad_numbers(self) -> None:
        with self.assertRaises(ValueError):
            build_settings({"OPENAI_ACCESS_TOKEN": "sk", "LLM_MAX_TOKENS": "many"})

    def test_build_settings_coerces_numeric_booleans(self) -> None:
        app_cfg = build_settings(
            {
                "OPENAI_ACCESS_TOKEN": "sk",
                "LLM_STREAM_INCLUDE_USAGE": "0",
                "LLM_ALWAYS_SEND_MAX_TOKENS": "1",
                "LLM_TEMPERATURE": "0.2",
            }
        )

        self.assertFalse(app_cfg.llm_request.stream_include_usage)
        self.assertTrue(app_cfg.llm_request.always_send_max_tokens)
        self.assertEqual(app_cfg.llm_request.temperature, 0.2)

    def test_build_settings_rejects_bad_booleans(self) -> None:
        with self.assertRaises(ValueError):
            build_settings({"OPENAI_ACCESS_TOKEN": "sk", "LLM_STREAM_INCLUDE_USAGE": "maybe"})

    def test_build_settings_reads_process_environment(self) -> None:
        with patch.dict(
            os.environ,
            {"OPENAI_ACCESS_TOKEN": "sk-env", "LLM_MAX_TOKENS": "512", "LLM_TOOL_CHOICE": ""},
            clear=True,
        ):
            app_cfg = build_settings()

        self.assertEqual(app_cfg.provider.access_token, "sk-env")
        self.assertEqual(app_cfg.llm_request.max_tokens, 512)
        self.assertEqual(app_cfg.llm_request.tool_choice, "auto")

    def test_explicit_mapping_ignores_process_environment(self) -> None:
        with patch.dict(os.environ, {"OPENAI_ACCESS_TOKEN": "sk-env"}, clear=True):
            with self.assertRaises(ValueError):
                build_settings({})

    def test_build_settings_requires_token_without_override(self) -> None:
        with self.assertRaises(ValueError):
            build_settings({})


if __name__ == "__main__":
    unittest.main()
