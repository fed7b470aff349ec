"""Command line entry point: ``perplexity-mcp [serve|history]``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import UTC, datetime

from pydantic import ValidationError

from perplexity_mcp.errors import PerplexityMCPError
from perplexity_mcp.models.config import PerplexityMCPConfig, Settings
from perplexity_mcp.observability import configure_logging
from perplexity_mcp.server import serve
from perplexity_mcp.store.sessions import SessionStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perplexity-mcp",
        description="MCP server exposing Perplexity search, documentation and chat tools.",
    )
    parser.add_argument("--log-level", default=None, help="Override PERPLEXITY_MCP_LOG_LEVEL")
    parser.add_argument("--db-path", default=None, help="Override PERPLEXITY_MCP_DB_PATH")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the MCP server over stdio (default)")

    history = sub.add_parser("history", help="Print the stored turns of a chat")
    history.add_argument("chat_id")
    history.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    return parser


async def print_history(config: PerplexityMCPConfig, chat_id: str, as_json: bool) -> int:
    async with SessionStore(config.store) as store:
        count = await store.count_turns(chat_id)
        turns = await store.list_turns(chat_id) if count else []

    if as_json:
        print(json.dumps([t.model_dump() for t in turns], indent=2, ensure_ascii=False))
        return 0
    if not count:
        print(f"No messages for chat {chat_id}", file=sys.stderr)
        return 1
    print(f"Chat {chat_id}: {count} message(s)\n")
    for turn in turns:
        stamp = datetime.fromtimestamp(turn.created_at / 1000, tz=UTC).isoformat(
            timespec="seconds"
        )
        print(f"[{turn.id}] {stamp} {turn.role}:\n{turn.content}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
        if args.db_path:
            settings = settings.model_copy(update={"db_path": args.db_path})
        configure_logging(args.log_level or settings.log_level, settings.log_format)
        config = settings.to_config()

        if args.command == "history":
            return asyncio.run(print_history(config, args.chat_id, args.json))

        settings.require_api_key()
        asyncio.run(serve(config))
    except PerplexityMCPError as exc:
        print(f"perplexity-mcp: {exc}", file=sys.stderr)
        return 2
    except ValidationError as exc:
        print(f"perplexity-mcp: invalid configuration:\n{exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130
    return 0
