"""CLI harness for the background pipeline: process, status, init-db."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys

from newsletter_intel.db.session import create_all, init_db
from newsletter_intel.log import configure_logging
from newsletter_intel.pipeline.continuation import (
    QueueContinuationDispatcher,
    continuation_worker_tick,
    register_continuation_worker,
    unregister_continuation_worker,
)
from newsletter_intel.pipeline.factory import create_processor
from newsletter_intel.pipeline.settings import PipelineSettings
from newsletter_intel.pipeline.store import SqlWorkStore


def _cmd_process(args: argparse.Namespace) -> int:
    init_db()
    settings = PipelineSettings(continuation_backend="queue")
    processor = create_processor(settings, dispatcher=QueueContinuationDispatcher())

    async def run() -> dict:
        response = (await processor.process(args.user, args.batch_size, trigger="cli")).to_response()
        if args.drain:
            # Each tick runs the continuation queued by the previous invocation.
            while await continuation_worker_tick(processor):
                pass
        return response

    if args.drain:
        register_continuation_worker("cli")
    try:
        response = asyncio.run(run())
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        unregister_continuation_worker("cli")
    print(json.dumps(response, indent=2))
    if args.drain:
        remaining = SqlWorkStore().count_pending(args.user)
        print(f"\nDrained continuations; pending now={remaining}")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    init_db()
    store = SqlWorkStore()
    counts = store.status_counts(args.user)
    totals = store.company_counts(args.user)
    print(f"user={args.user}")
    for status in ("pending", "processing", "completed", "failed"):
        print(f"  {status}={counts.get(status, 0)}")
    print(f"  companies={totals['companies']} mentions={totals['mentions']}")
    print(f"  locked={store.is_user_locked(args.user)}")
    return 0


def _cmd_init_db(args: argparse.Namespace) -> int:
    init_db()
    create_all()
    print("Tables created")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Newsletter pipeline CLI")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_process = sub.add_parser("process", help="Run one time-boxed invocation for a user")
    p_process.add_argument("--user", "-u", required=True, help="User ID")
    p_process.add_argument("--batch-size", "-b", type=int, default=None, help="Batch size (clamped to 1..25)")
    p_process.add_argument("--drain", action="store_true", help="Keep running queued continuations until none remain")
    p_process.set_defaults(func=_cmd_process)

    p_status = sub.add_parser("status", help="Show e-mail counts per status for a user")
    p_status.add_argument("--user", "-u", required=True, help="User ID")
    p_status.set_defaults(func=_cmd_status)

    p_init = sub.add_parser("init-db", help="Create all tables (dev convenience; use Alembic in prod)")
    p_init.set_defaults(func=_cmd_init_db)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
