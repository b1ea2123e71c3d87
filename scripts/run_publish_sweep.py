#!/usr/bin/env python
"""
Run one publish sweep over scheduled Instagram content.

Intended for managed schedulers that start a process instead of calling the
HTTP cron endpoints. Each run is independent; schedule it every minute.

Usage:
    python scripts/run_publish_sweep.py [--kind posts|stories|all]
                                        [--policy cron|scheduler_check]
                                        [--limit N] [--debug]
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.api.publishing.service import PublishSweepService, SelectionPolicy, SweepKind
from app.database import SessionLocal
from app.logger.logger import AppLogger, logger


async def run_sweep(kinds, policy: SelectionPolicy, limit: int = None):
    logger.info(f"Starting publish sweep at {datetime.now(timezone.utc)}")

    summaries = {}
    async with SessionLocal() as session:
        service = PublishSweepService(session)
        for kind in kinds:
            result = await service.run(kind=kind, policy=policy, limit=limit)
            summaries[kind.value] = result.to_dict()
            logger.info(
                f"{kind.value}: {result.processed} processed, "
                f"{result.published} published, {result.failed} failed"
            )
    return summaries


def main():
    parser = argparse.ArgumentParser(description="Publish due scheduled content")
    parser.add_argument(
        "--kind", choices=["posts", "stories", "all"], default="all"
    )
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in SelectionPolicy],
        default=SelectionPolicy.CRON.value,
    )
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    AppLogger.set_level(logging.DEBUG if args.debug else logging.INFO)

    policy = SelectionPolicy(args.policy)
    if args.kind == "all":
        kinds = [SweepKind.POSTS]
        if policy == SelectionPolicy.CRON:
            kinds.append(SweepKind.STORIES)
    else:
        kinds = [SweepKind(args.kind)]

    try:
        summaries = asyncio.run(run_sweep(kinds, policy, args.limit))

        print("\nPublish Sweep Summary:")
        for kind, summary in summaries.items():
            print(f"{kind}: {summary}")
        sys.exit(0)

    except Exception as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
