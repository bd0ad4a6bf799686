"""
Session expiry sweep runner.

Ends sessions past their TTL and deletes their participants, presence and
routes. Schedule it externally (cron, Kubernetes CronJob, ...), e.g. every
15 minutes:

    python -m waypoint.expire_sessions
"""

import asyncio
import logging

from waypoint.app.core.config import settings
from waypoint.app.core.observability import configure_logging
from waypoint.app.db.session import AsyncSessionLocal, engine
from waypoint.app.services.session_cleanup import expire_stale_sessions

logger = logging.getLogger("waypoint.cleanup")


async def run_sweep() -> int:
    async with AsyncSessionLocal() as db:
        try:
            expired = await expire_stale_sessions(db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Session expiry sweep failed")
            raise
    await engine.dispose()
    return expired


def main():
    configure_logging(settings.log_level)
    expired = asyncio.run(run_sweep())
    logger.info("Sweep complete: %d sessions expired", expired)


if __name__ == "__main__":
    main()
