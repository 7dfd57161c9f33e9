from __future__ import annotations

import argparse
import asyncio
import json
import sys

from question_engine.errors import StoreUnavailableError
from question_engine.settings import settings


def _configure_logging() -> None:
    import logging

    level = (settings.log_level or "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def cmd_version() -> int:
    from question_engine import __version__

    print(__version__)
    return 0


async def _with_engine(fn):
    from question_engine.bootstrap import build_engine

    engine = await build_engine(settings)
    try:
        return await fn(engine)
    finally:
        await engine.close()


def cmd_suggest(args: argparse.Namespace) -> int:
    _configure_logging()

    async def run(engine):
        return await engine.orchestrator.get_top_questions(args.user_id, args.limit)

    questions = asyncio.run(_with_engine(run))
    print(json.dumps([q.model_dump(mode="json", by_alias=True) for q in questions], indent=2, ensure_ascii=False))
    return 0


def cmd_clear_cache(args: argparse.Namespace) -> int:
    _configure_logging()

    async def run(engine):
        await engine.orchestrator.clear_cache(args.user_id)

    asyncio.run(_with_engine(run))
    print(f"cleared {args.user_id}")
    return 0


def cmd_cleanup(_args: argparse.Namespace) -> int:
    _configure_logging()

    async def run(engine):
        return await engine.store.cleanup_expired()

    print(f"deleted {asyncio.run(_with_engine(run))} expired suggestions")
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    _configure_logging()

    async def run(engine):
        return await engine.analytics.render_report(args.days)

    print(asyncio.run(_with_engine(run)), end="")
    return 0


def cmd_init_db(_args: argparse.Namespace) -> int:
    _configure_logging()
    from question_engine.stores.postgres import PostgresRepository

    async def run():
        repo = await PostgresRepository.connect(settings.postgres_dsn)
        try:
            await repo.ensure_schema()
        finally:
            await repo.close()

    asyncio.run(run())
    print("schema ready")
    return 0


def cmd_serve(_args: argparse.Namespace) -> int:
    from question_engine.service.server import main

    main()
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="qengine")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("version").set_defaults(func=lambda _a: cmd_version())

    suggest = sub.add_parser("suggest", help="Print ranked question suggestions for a user as JSON")
    suggest.add_argument("user_id")
    suggest.add_argument("--limit", type=int, default=settings.default_limit)
    suggest.set_defaults(func=cmd_suggest)

    clear = sub.add_parser("clear-cache", help="Drop a user's cached suggestions")
    clear.add_argument("user_id")
    clear.set_defaults(func=cmd_clear_cache)

    sub.add_parser("cleanup", help="Delete expired suggested questions").set_defaults(func=cmd_cleanup)

    report = sub.add_parser("report", help="Print the analytics report as Markdown")
    report.add_argument("--days", type=int, default=30)
    report.set_defaults(func=cmd_report)

    sub.add_parser("init-db", help="Create the suggestion tables").set_defaults(func=cmd_init_db)
    sub.add_parser("serve", help="Run the HTTP service").set_defaults(func=cmd_serve)

    return p


def app(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        rc = args.func(args)
    except StoreUnavailableError as e:
        print(f"error: {e}", file=sys.stderr)
        rc = 2
    raise SystemExit(rc)


if __name__ == "__main__":
    app()
