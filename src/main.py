"""Main entry point for the todo app.

    todo serve [--bind HOST:PORT] [--db PATH]   run the web server
    todo cli [--db PATH]                        run the terminal REPL (default)
"""
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from config import Settings, parse_bind
from storage import StoreError, TodoStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="todo", description="Todo list on an embedded key-value store")
    parser.add_argument("--log-level", help="Logging level (env TODO_LOG_LEVEL, default INFO)")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the web server")
    serve.add_argument("--bind", help="host:port to listen on (env TODO_BIND)")
    serve.add_argument("--db", type=Path, help="Path to the store (env TODO_DB)")

    repl = sub.add_parser("cli", help="Run the terminal REPL")
    repl.add_argument("--db", type=Path, help="Path to the store (env TODO_DB)")
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.load()
    if getattr(args, "db", None):
        settings.db_path = args.db
    if getattr(args, "bind", None):
        parse_bind(args.bind)
        settings.bind = args.bind
    if args.log_level:
        settings.log_level = args.log_level.upper()
    if not isinstance(logging.getLevelName(settings.log_level), int):
        raise ValueError(f"invalid log level: {settings.log_level!r}")
    return settings


def serve(store: TodoStore, settings: Settings) -> None:
    import uvicorn
    from web import create_app

    logger.info("listening on %s (store %s)", settings.bind, settings.db_path)
    uvicorn.run(create_app(store), host=settings.host, port=settings.port, log_level="warning")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = resolve_settings(args)
    except ValueError as exc:
        parser.error(str(exc))
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        store = TodoStore.open(settings.db_path)
    except StoreError as exc:
        logger.error("cannot open store: %s", exc)
        return 1
    try:
        if args.command == "serve":
            serve(store, settings)
        else:
            from cli import CLI
            CLI(store, alt_screen=settings.alt_screen).run()
    finally:
        store.close()
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
