from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from app.container import build_container
from app.settings import build_settings
from cli.output import print_chat_result, print_model_list, read_functions
from services.llm_service import LlmService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatbridge")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat")
    chat.add_argument("prompt")
    chat.add_argument("--model", default=None)
    chat.add_argument("--stream", action="store_true")
    chat.add_argument("--functions", default=None)

    sub.add_parser("models")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        app_cfg = build_settings()
        deps = build_container(app_cfg)
        service: LlmService = deps["llm_service"]

        if args.command == "models":
            print_model_list(app_cfg.provider.models, app_cfg.provider.base_url)
            return 0

        if args.command == "chat":
            model = args.model or app_cfg.provider.models[0]
            functions = read_functions(Path(args.functions)) if args.functions else []
            if args.stream:
                result = service.chat_stream_to_terminal(args.prompt, model=model, functions=functions)
            else:
                result = service.chat_response(args.prompt, model=model, functions=functions)
            print_chat_result(result, streamed=args.stream)
            return 0 if result.success else 1

        parser.error(f"Unknown command: {args.command}")
        return 2
    except Exception as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
