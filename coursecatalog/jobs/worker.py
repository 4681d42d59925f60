import logging

from dotenv import load_dotenv
from rq import Worker

load_dotenv()

from coursecatalog.core.config import settings  # noqa: E402
from coursecatalog.jobs.queue import redis  # noqa: E402

if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    w = Worker([settings.RQ_QUEUE], connection=redis)
    w.work(with_scheduler=True)
