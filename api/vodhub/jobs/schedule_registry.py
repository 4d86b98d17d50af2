from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from redis import Redis
from rq_scheduler import Scheduler

from vodhub.core.config import settings
from vodhub.jobs.refresh import refresh_user_media_job

logger = logging.getLogger("vodhub.jobs.schedule_registry")


def _schedule_entries() -> list[dict]:
    queue_names = settings.worker_queue_names
    default_queue = queue_names[0] if queue_names else "default"
    entries: list[dict] = []
    if settings.refresh_interval_seconds > 0:
        entries.append(
            {
                "id": "maintenance:refresh_user_media",
                "func": refresh_user_media_job,
                "interval": max(300, settings.refresh_interval_seconds),
                "repeat": None,
                "queue_name": "maintenance" if "maintenance" in queue_names else default_queue,
            }
        )
    return entries


def ensure_schedules() -> None:
    """Idempotently register periodic jobs with rq-scheduler.

    Only shared Redis storage is visible to worker processes, so other
    backends rely on the cron endpoint instead.
    """
    if settings.environment.lower() == "test":
        return
    entries = _schedule_entries()
    if not entries:
        return
    if settings.storage_type != "redis":
        logger.info("Skipping scheduler bootstrap; storage type %s is not shared", settings.storage_type)
        return
    try:
        connection = Redis.from_url(settings.redis_url)
        connection.ping()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Skipping scheduler bootstrap; Redis unavailable: %s", exc)
        return
    scheduler = Scheduler(connection=connection, queue_name=settings.worker_queue_names[0])
    for entry in entries:
        if entry["id"] in scheduler:
            continue
        scheduler.schedule(
            scheduled_time=datetime.now(timezone.utc).replace(tzinfo=None),
            func=entry["func"],
            interval=entry["interval"],
            repeat=entry["repeat"],
            id=entry["id"],
            queue_name=entry["queue_name"],
            result_ttl=int(timedelta(hours=1).total_seconds()),
        )
        logger.info("Scheduled job %s every %ss on queue %s", entry["id"], entry["interval"], entry["queue_name"])
