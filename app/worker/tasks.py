"""ARQ job definitions."""

import uuid
from typing import Any

from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.logging import get_logger

log = get_logger(__name__)


async def _run_with_dlq(
    job_name: str,
    job_id: str | None,
    args: list[Any],
    kwargs: dict[str, Any],
    coro,
) -> Any:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        return await coro
    except Exception as e:
        from app.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            args=args,
            kwargs=kwargs,
            reason=str(e)[:2000],
            retries=0,
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def retry_pending_reconciliations(ctx: dict[str, Any]) -> dict:
    """Cron job: refund payers of settlements left pending after a failed credit."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None
    from app.services.reconciliation import retry_pending
    s = get_settings()

    async def _run() -> dict:
        out = await retry_pending(batch_size=s.reconciliation_batch_size, max_attempts=s.reconciliation_max_attempts)
        log.info("job_done", job="retry_pending_reconciliations", **out)
        return out

    return await _run_with_dlq("retry_pending_reconciliations", job_id, [], {}, _run())


async def startup(ctx: dict) -> None:
    from app.core.logging import configure_logging
    from app.db.init import init_db
    configure_logging(debug=get_settings().debug)
    ctx["mongo"] = await init_db()


async def shutdown(ctx: dict) -> None:
    client = ctx.get("mongo")
    if client is not None:
        client.close()


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
    )
