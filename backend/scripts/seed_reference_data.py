"""CLI script to seed the canonical faculty reference rows."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Insert the canonical faculties used for reviewer clustering.",
    )
    parser.add_argument(
        "--init-db",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Create or migrate the schema before seeding (default: true)",
    )
    return parser.parse_args()


async def _run() -> int:
    from grant_review.core.logging import configure_logging
    from grant_review.db.session import init_db, session_scope
    from grant_review.services.faculty_clusters import seed_faculties

    args = _parse_args()
    configure_logging()
    if args.init_db:
        await init_db()
    async with session_scope() as session:
        created = await seed_faculties(session)
    sys.stdout.write(f"created={len(created)}\n")
    for faculty in created:
        sys.stdout.write(f"  {faculty.title}\n")
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
