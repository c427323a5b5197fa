# pythink/workers/worker_main.py

from rq import Queue, SimpleWorker

from pythink.core.config import settings
from pythink.core.logging_config import setup_logging
from pythink.db.init_db import init_db
from pythink.workers.queue import SUMMARY_QUEUE_NAME, get_redis_connection


QUEUE_NAMES = [SUMMARY_QUEUE_NAME]


def main():
    setup_logging(settings.LOG_LEVEL)
    init_db()

    redis_conn = get_redis_connection()

    queues = [Queue(name, connection=redis_conn) for name in QUEUE_NAMES]

    worker = SimpleWorker(queues, connection=redis_conn)

    worker.work()


if __name__ == "__main__":
    main()
