"""
CV processing worker.
Run with: python -m cv_screening.worker
"""
import asyncio
import logging
import signal

from dotenv import load_dotenv
load_dotenv()  # Load .env file before settings are read

from .config import get_settings
from .database import async_session_maker, engine, init_db
from .services.gemini import build_gemini_client
from .services.pipeline import CvPipeline
from .services.queue import QueueWorker
from .services.storage import build_storage

logger = logging.getLogger(__name__)


def build_worker(settings=None, session_maker=None) -> QueueWorker:
    settings = settings or get_settings()
    session_maker = session_maker or async_session_maker
    pipeline = CvPipeline(
        session_maker,
        storage=build_storage(settings),
        gemini=build_gemini_client(settings),
        settings=settings,
    )
    return QueueWorker(
        session_maker,
        handler=pipeline.handle,
        concurrency=settings.worker_concurrency,
        poll_interval=settings.worker_poll_interval,
        stuck_timeout=settings.stuck_job_timeout,
    )


async def main():
    await init_db()
    worker = build_worker()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: Ctrl+C still raises KeyboardInterrupt
            pass

    try:
        await worker.run_forever(stop)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG if get_settings().debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())
