"""
Command-line interface for Nexus Gateway.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import structlog

from .compaction import (
    CompactionContext,
    ModelResolver,
    WireMessage,
    create_default_pipeline,
    resolve_price,
)
from .config import get_settings


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for console output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="nexus-gateway",
        description="Nexus Gateway - conversational agent gateway with context compaction",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    compact_parser = subparsers.add_parser("compact", help="Compact a conversation file")
    compact_parser.add_argument("file", help="JSON file with a list of wire messages")
    compact_parser.add_argument("--usage", type=int, required=True, help="Current token usage")
    compact_parser.add_argument("--limit", type=int, required=True, help="Model context window")
    compact_parser.add_argument("--window", type=int, default=None, help="User turns to protect")

    model_parser = subparsers.add_parser("model", help="Show model metadata and pricing")
    model_parser.add_argument("name", help="Model identifier")
    model_parser.add_argument("--provider", default=None, help="Provider type")
    model_parser.add_argument("--endpoint", default=None, help="Provider endpoint")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(get_settings().log_level)

    if args.command == "compact":
        compact_file(Path(args.file), args.usage, args.limit, args.window)
    elif args.command == "model":
        asyncio.run(show_model(args.name, args.provider, args.endpoint))
    elif args.command == "config":
        show_config(args.check)
    else:
        parser.print_help()


def compact_file(path: Path, usage: int, limit: int, window: int | None) -> None:
    """Run the default pipeline over a conversation file and print the result."""
    settings = get_settings()
    messages = [WireMessage.from_dict(m) for m in json.loads(path.read_text())]

    result = create_default_pipeline().run(messages, CompactionContext(
        token_usage=usage,
        token_limit=limit,
        recent_window_size=window if window is not None else settings.compaction_recent_window,
    ))

    print(json.dumps({
        "messages": [m.to_dict() for m in result.messages],
        "report": result.report.to_dict(),
    }, indent=2))


async def show_model(name: str, provider: str | None, endpoint: str | None) -> None:
    """Show resolved metadata and pricing for a model."""
    meta = await ModelResolver().resolve(name, provider, endpoint)
    pricing = resolve_price(name)

    print(f"\n=== {meta.name} ===\n")
    print(f"  Family: {meta.family}")
    print(f"  Context Window: {meta.context_window:,} tokens")
    print(f"  Input: ${pricing.input_per_1m}/1M tokens")
    print(f"  Output: ${pricing.output_per_1m}/1M tokens")


def show_config(check: bool) -> None:
    """Show current configuration."""
    settings = get_settings()

    def mask(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"

    print("\n=== Nexus Gateway Configuration ===\n")

    print("LLM:")
    print(f"  Provider: {settings.default_provider}")
    print(f"  Model: {settings.default_model}")
    print(f"  Endpoint: {settings.llm_endpoint}")
    print(f"  Anthropic Key: {mask(settings.anthropic_api_key)}")
    print(f"  Max Tool Rounds: {settings.max_tool_rounds}")

    print("\nCompaction:")
    print(f"  Enabled: {settings.compaction_enabled}")
    print(f"  Recent Window: {settings.compaction_recent_window} user turns")
    print(f"  Kept Results Between Rounds: {settings.inter_round_keep_results}")

    if check:
        print("\n=== Configuration Check ===\n")
        errors = []

        if settings.default_provider == "anthropic" and not settings.anthropic_api_key:
            errors.append("ANTHROPIC_API_KEY is required for the anthropic provider")

        if settings.max_tool_rounds < 1:
            errors.append("MAX_TOOL_ROUNDS must be at least 1")

        if errors:
            print("Errors:")
            for e in errors:
                print(f"   - {e}")
            sys.exit(1)

        print("Configuration looks good!")


if __name__ == "__main__":
    main()
