"""CLI entry point for chatcli."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .config import DEFAULT_MODEL_ALIAS, MODEL_ALIASES, ConfigError, RenderStyle, load_config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatcli",
        description="A convenient ChatGPT CLI. Words after the options are sent as one message.",
    )
    parser.add_argument("text", nargs="*", help="Message to send (joined with spaces)")
    parser.add_argument(
        "-p", "--model", dest="model", default=None,
        help=f"Chat model alias [{', '.join(MODEL_ALIASES)}] (default: {DEFAULT_MODEL_ALIAS})",
    )
    parser.add_argument(
        "--OPENAI_API_KEY", dest="api_key", default=None,
        help="OpenAI API key (default: $OPENAI_API_KEY)",
    )
    parser.add_argument("-i", "--interactive", action="store_true", help="Interactive mode")
    parser.add_argument(
        "--style", default=None, choices=[s.value for s in RenderStyle],
        help="Reply rendering style (default: dark)",
    )
    parser.add_argument("--plain", action="store_true", default=None, help="Print replies as plain text")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait for a reply (default: 60)")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--debug", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if debug:
        # The SDK's transport chatter drowns out the session's own messages.
        for name in ("httpx", "httpcore", "openai"):
            logging.getLogger(name).setLevel(logging.INFO)


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "api_key": args.api_key,
        "model": args.model,
        "style": args.style,
        "plain": args.plain,
        "timeout": args.timeout,
        "interactive": args.interactive,
    }


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.debug)

    try:
        config = load_config(args.config, overrides=_overrides(args))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    text = " ".join(args.text)
    if not config.interactive and not text.strip():
        parser.print_help()
        sys.exit(0)

    from .cli.repl import run_cli

    try:
        code = asyncio.run(run_cli(config, prompt=text if text.strip() else None))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
