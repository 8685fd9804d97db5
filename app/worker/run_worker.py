"""Run ARQ worker. Usage: python -m app.worker.run_worker"""

import asyncio

from arq import run_worker
from arq.cron import cron

from app.worker.tasks import get_redis_settings, retry_pending_reconciliations, shutdown, startup


class WorkerSettings:
    redis_settings = get_redis_settings()
    functions = [retry_pending_reconciliations]
    cron_jobs = [
        cron(retry_pending_reconciliations, minute=set(range(0, 60, 5)), second=0),  # every 5 minutes
    ]
    on_startup = startup
    on_shutdown = shutdown


if __name__ == "__main__":
    asyncio.set_event_loop(asyncio.new_event_loop())
    run_worker(WorkerSettings)
