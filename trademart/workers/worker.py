"""
Background worker using RQ (Redis Queue).
"""
import os
import socket

from rq import Worker, Queue

from trademart.core.config import settings
from trademart.core.logging import setup_logging, get_logger
from trademart.workers.jobs import get_redis

setup_logging()
logger = get_logger(__name__)


def run_worker():
    """Start the RQ worker."""
    redis_conn = get_redis(blocking=True)

    worker = Worker(
        queues=[
            Queue(settings.NOTIFICATION_QUEUE, connection=redis_conn),
            Queue("default", connection=redis_conn),
        ],
        connection=redis_conn,
        name=f"trademart-{socket.gethostname()}-{os.getpid()}",
    )
    logger.info("Starting TradeMart worker...")
    worker.work()


if __name__ == "__main__":
    run_worker()
