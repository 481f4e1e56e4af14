"""
RQ worker for background CSV imports.

Listens on the queues named in QUEUE_LIST (comma separated), or on the import
queue when it is unset.
"""
import logging
import os
import signal
import sys

from redis import Redis
from rq import Worker, Queue

from fintrack.config import settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def signal_handler(signum, frame):
    logger.info(f"Received signal {signum}, stopping import worker")
    sys.exit(0)


def main():
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    redis_conn = Redis.from_url(settings.REDIS_URL)
    queue_list = os.getenv("QUEUE_LIST")
    if queue_list:
        listen = [q.strip() for q in queue_list.split(",") if q.strip()]
    else:
        listen = [settings.IMPORT_QUEUE_NAME]

    listen = list(dict.fromkeys(listen))

    logger.info(f"Worker starting, listening to queues: {', '.join(listen)}")

    worker = Worker(
        [Queue(name, connection=redis_conn) for name in listen],
        connection=redis_conn,
        log_job_description=True,
        job_monitoring_interval=5,
    )

    worker.work(logging_level="INFO", with_scheduler=True)


if __name__ == "__main__":
    main()
