"""Periodic Reddit scans: pick due brands, enqueue one scan job per brand."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from apps.backend.config import get_settings
from apps.backend.database import get_session_factory
from apps.backend.models.reddit import RedditAgentSettings

logger = logging.getLogger(__name__)
_SCHEDULE_LOCK_KEY = "reddit_scan_schedule:lock"


def is_scan_due(row: RedditAgentSettings, now: datetime) -> bool:
    if row.last_scan_at is None:
        return True
    hours_since = (now - row.last_scan_at).total_seconds() / 3600
    return hours_since >= (row.scan_frequency_hours or 0)


def brands_due_for_scan(db: Session, now: datetime | None = None) -> tuple[int, list[int]]:
    """Returns (brands_checked, due_brand_ids) over enabled agent settings."""
    now = now or datetime.utcnow()
    rows = db.execute(
        select(RedditAgentSettings).where(RedditAgentSettings.is_enabled.is_(True))
    ).scalars().all()
    return len(rows), [row.brand_id for row in rows if is_scan_due(row, now)]


def enqueue_reddit_scan(queue, brand_id: int):
    from rq import Retry

    s = get_settings()
    return queue.enqueue(
        "apps.worker.jobs.run_reddit_scan",
        brand_id,
        job_timeout=max(60, int(s.reddit_scan_job_timeout_seconds or 300)),
        retry=Retry(max=1),
    )


def schedule_reddit_scans_once(queue, now: datetime | None = None) -> dict:
    factory = get_session_factory()
    with factory() as db:
        checked, due = brands_due_for_scan(db, now)
    results = []
    for brand_id in due:
        try:
            job = enqueue_reddit_scan(queue, brand_id)
            results.append({"brand_id": brand_id, "job_id": getattr(job, "id", None)})
        except Exception as e:
            logger.warning("reddit_scan_enqueue_failed brand_id=%s err=%s", brand_id, str(e)[:200])
            results.append({"brand_id": brand_id, "error": str(e)[:200]})
    logger.info("reddit_schedule checked=%s triggered=%s", checked, len(due))
    return {"brands_checked": checked, "brands_triggered": len(due), "results": results}


def run_scheduled_scan_cycle(queue=None) -> dict:
    """Single guarded scheduling cycle with Redis lock."""
    s = get_settings()
    if not s.reddit_scan_enabled:
        return {"skipped": "disabled"}
    try:
        from redis import Redis
        from rq import Queue

        r = Redis(host=s.redis_host, port=s.redis_port)
        lock_ttl = max(30, int((s.reddit_scan_interval_seconds or 21600) * 0.9))
        if not r.set(_SCHEDULE_LOCK_KEY, "1", nx=True, ex=lock_ttl):
            return {"skipped": "lock_not_acquired"}
        if queue is None:
            queue = Queue(s.rq_default_queue_name, connection=r)
    except Exception:
        logger.exception("reddit_schedule_redis_unavailable")
        return {"error": "redis_unavailable"}
    try:
        return schedule_reddit_scans_once(queue)
    except Exception:
        logger.exception("reddit_schedule_cycle_failed")
        return {"error": "schedule_failed"}
