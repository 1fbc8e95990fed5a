"""Scheduler loop: queue one Reddit scan cycle per interval; the worker runs it under a Redis lock.

Run with `python -m apps.worker.scheduler` next to the RQ worker.
"""
import logging
import time

from redis import Redis
from rq import Queue

from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

CYCLE_JOB = "apps.worker.jobs.scheduled_reddit_scan"


def enqueue_cycle(queue) -> str | None:
    job = queue.enqueue(CYCLE_JOB, job_timeout=120)
    return getattr(job, "id", None)


def run_forever() -> None:
    s = get_settings()
    interval = max(60, int(s.reddit_scan_interval_seconds or 21600))
    queue = Queue(s.rq_default_queue_name, connection=Redis(host=s.redis_host, port=s.redis_port))
    logger.info("scheduler_started interval_seconds=%s queue=%s", interval, s.rq_default_queue_name)
    while True:
        try:
            job_id = enqueue_cycle(queue)
            logger.info("scheduler_cycle_queued job_id=%s", job_id)
        except Exception as e:
            logger.warning("scheduler_enqueue_failed err=%s", str(e)[:200])
        time.sleep(interval)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    run_forever()
