# AccomBook API - Short-term Accommodation Booking Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Scheduler service using APScheduler."""

import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from accombook.config import get_settings
from accombook.database import get_session_local
from accombook.models.auth import RefreshToken

logger = structlog.get_logger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler()
    return scheduler


def run_daily_cleanup(db: Session) -> Dict[str, Any]:
    """Delete refresh tokens that expired more than the retention period ago."""
    settings = get_settings()
    cutoff = datetime.utcnow() - timedelta(days=settings.cleanup.refresh_token_retention_days)

    deleted = (
        db.query(RefreshToken)
        .filter(RefreshToken.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()

    return {"expired_refresh_tokens_deleted": deleted}


async def _cleanup_job() -> None:
    """Run the cleanup with its own session."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    start_time = time.time()
    try:
        result = run_daily_cleanup(db)
        logger.info(
            "cron_job_finished",
            job="daily_cleanup",
            duration_ms=int((time.time() - start_time) * 1000),
            **result,
        )
    except Exception:
        db.rollback()
        logger.exception("cron_job_failed", job="daily_cleanup")
    finally:
        db.close()


def setup_scheduler() -> AsyncIOScheduler:
    """Set up the scheduler with cron jobs."""
    sched = get_scheduler()

    # Daily cleanup - 3 AM UTC
    sched.add_job(
        _cleanup_job,
        CronTrigger(hour=3, minute=0),
        id="daily_cleanup",
        replace_existing=True,
    )

    return sched


def start_scheduler() -> AsyncIOScheduler:
    """Start the scheduler."""
    sched = setup_scheduler()
    if not sched.running:
        sched.start()
    return sched


def stop_scheduler() -> None:
    """Stop the scheduler."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
