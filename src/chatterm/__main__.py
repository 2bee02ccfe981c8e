"""CLI entry point for chatterm."""

from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .config import AppConfig, load_config


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config_or_exit() -> AppConfig:
    try:
        return load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Cannot read configuration: {e}", file=sys.stderr)
        sys.exit(1)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatterm",
        description="Chat with an OpenAI-compatible model from the terminal",
    )
    parser.add_argument("text", nargs="*", help="Prompt to send (omit for the REPL)")
    parser.add_argument("-H", "--no-highlight", action="store_true", help="Print the reply without Markdown styling")
    parser.add_argument("-S", "--no-stream", action="store_true", help="Wait for the whole reply before printing")
    parser.add_argument("-m", "--model", dest="model", default=None, help="Override the model (e.g., gpt-4o)")
    parser.add_argument("-p", "--prompt", dest="system_prompt", default=None, help="System prompt for this run")
    parser.add_argument("--info", action="store_true", help="Show the effective configuration and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    config = _load_config_or_exit()
    if args.model:
        config.ai.model = args.model
    if args.system_prompt is not None:
        config.ai.system_prompt = args.system_prompt
    if args.no_highlight:
        config.app.highlight = False

    if args.info:
        print(config.info())
        return

    from .cli.exec_mode import _read_stdin, build_prompt, run_directive
    from .services.ai_client import create_ai_client

    prompt = build_prompt(" ".join(args.text).strip() or None, _read_stdin())
    client = create_ai_client(config.ai)
    try:
        if prompt is not None:
            exit_code = run_directive(config, client, prompt, no_stream=args.no_stream)
            if exit_code:
                sys.exit(exit_code)
            return

        from .cli.repl import run_repl

        try:
            run_repl(config, client, version=__version__)
        except KeyboardInterrupt:
            pass
    finally:
        client.close()


if __name__ == "__main__":
    main()
