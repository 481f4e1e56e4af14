import logging
from typing import Optional, Dict, Any

from redis import Redis
from rq import Queue
from rq.job import Job

from fintrack.config import settings

logger = logging.getLogger(__name__)

_redis_connection: Optional[Redis] = None
_import_queue: Optional[Queue] = None


def _get_redis_connection() -> Redis:
    global _redis_connection
    if _redis_connection is None:
        _redis_connection = Redis.from_url(settings.REDIS_URL)
    return _redis_connection


def get_import_queue() -> Queue:
    global _import_queue
    if _import_queue is None:
        _import_queue = Queue(
            settings.IMPORT_QUEUE_NAME,
            connection=_get_redis_connection(),
            default_timeout=settings.IMPORT_JOB_TIMEOUT,
        )
    return _import_queue


def enqueue_import_job(
    account_id: str,
    file_path: str,
    file_name: str,
    column_map: Optional[Dict[str, str]] = None,
    reconcile_categories: bool = True,
) -> Job:
    from fintrack.tasks.imports import run_import_job

    queue = get_import_queue()
    job = queue.enqueue(
        run_import_job,
        account_id,
        file_path,
        file_name,
        column_map,
        reconcile_categories,
        job_timeout=settings.IMPORT_JOB_TIMEOUT,
    )
    job.meta = job.meta or {}
    job.meta.update(
        {
            "account_id": account_id,
            "file_name": file_name,
            "stage": "queued",
        }
    )
    job.save_meta()
    logger.info("Enqueued import job %s for account %s (file=%s)", job.id, account_id, file_name)
    return job


def get_job_info(job_id: str) -> Dict[str, Any]:
    job = Job.fetch(job_id, connection=_get_redis_connection())
    info = {
        "job_id": job.id,
        "status": job.get_status(),
        "enqueued_at": job.enqueued_at.isoformat() if job.enqueued_at else None,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "ended_at": job.ended_at.isoformat() if job.ended_at else None,
        "meta": job.meta or {},
    }

    if job.is_finished:
        info["result"] = job.result
    elif job.is_failed:
        info["error"] = job.exc_info

    return info
