"""Session retention CLI: ``neuro-intake-cleanup``.

Permanently deletes old sessions.  Intended for cron jobs.  Patient
profiles are never touched; they outlive the sessions that built them.

Examples::

    # Delete terminal sessions older than $DEFAULT_CLEANUP_DAYS (90)
    neuro-intake-cleanup

    # Delete terminal sessions older than 30 days
    neuro-intake-cleanup --days 30

    # Also drop abandoned dialogues that never reached the analysis
    neuro-intake-cleanup --days 7 --state collecting --state routing --state init
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

logger = logging.getLogger(__name__)

_STATE_CHOICES = ["init", "routing", "collecting", "offer_assessment", "terminal"]


async def run_cleanup(
    *,
    days: int = int(os.getenv("DEFAULT_CLEANUP_DAYS", "90")),
    states: list[str] | None = None,
) -> int:
    """Delete matching sessions and return the number of rows removed."""
    # Lazy imports keep DB machinery out of module import
    from neuro_intake_db.engine import dispose_engine, get_session_factory
    from neuro_intake_db.repository import SessionRepository

    repo = SessionRepository()
    factory = get_session_factory()

    try:
        async with factory() as db:
            affected = await repo.purge_old_sessions(
                db, older_than_days=days, states=states,
            )
            await db.commit()

        logger.info(
            "Cleanup complete: deleted_rows=%d, days=%d, states=%s",
            affected, days, ",".join(states) if states else "terminal",
        )
        return affected
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``neuro-intake-cleanup``."""
    parser = argparse.ArgumentParser(
        prog="neuro-intake-cleanup",
        description="Delete old triage sessions from the database.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=int(os.getenv("DEFAULT_CLEANUP_DAYS", os.getenv("SESSION_TTL_DAYS", "90"))),
        help=(
            "Age threshold in days (default: $DEFAULT_CLEANUP_DAYS, "
            "falling back to $SESSION_TTL_DAYS, or 90). 0 means no age filter."
        ),
    )
    parser.add_argument(
        "--state",
        action="append",
        default=None,
        choices=_STATE_CHOICES,
        help="Only delete sessions in this dialogue state (repeatable). Default: terminal",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    affected = asyncio.run(run_cleanup(days=args.days, states=args.state))
    print(f"Deleted rows: {affected}")
    sys.exit(0)
