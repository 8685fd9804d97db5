"""Follow-up for settlements whose payee credit failed after the payer was debited."""

from datetime import datetime

from beanie import PydanticObjectId
from beanie.odm.operators.update.general import Inc, Set
from beanie.odm.queries.update import UpdateResponse

from app.core.audit import log_event
from app.core.exceptions import ConflictError, NotFoundError
from app.core.logging import get_logger
from app.models.enums import TransactionStatus
from app.models.failed_job import FailedJob
from app.models.reconciliation import ReconciliationItem
from app.services import wallets as wallets_service

log = get_logger(__name__)


async def list_items(state: str | None = None, limit: int = 50, offset: int = 0) -> list[ReconciliationItem]:
    query = ReconciliationItem.find(ReconciliationItem.state == state) if state else ReconciliationItem.find()
    return await query.sort(-ReconciliationItem.created_at).skip(offset).limit(limit).to_list()


async def compensate(item: ReconciliationItem) -> ReconciliationItem | None:
    """
    Refund the payer for a pending item; the debit ledger entry becomes cancelled.
    The claim moves the item to `refunding` and bumps `attempts` in one update; returns
    None if another run holds it. An item left in `refunding` is never refunded again
    automatically; an admin resolves it.
    """
    claimed = await ReconciliationItem.find_one(
        ReconciliationItem.id == item.id,
        ReconciliationItem.state == "pending",
        ReconciliationItem.attempts == item.attempts,
    ).update(
        Inc({ReconciliationItem.attempts: 1}),
        Set({ReconciliationItem.state: "refunding", ReconciliationItem.updated_at: datetime.utcnow()}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if claimed is None:
        return None
    try:
        await wallets_service.apply_delta(claimed.payer_id, claimed.gross_amount, spent=-claimed.gross_amount)
    except Exception as e:
        await ReconciliationItem.find_one(
            ReconciliationItem.id == claimed.id,
            ReconciliationItem.state == "refunding",
        ).update(
            Set({
                ReconciliationItem.state: "pending",
                ReconciliationItem.reason: f"{claimed.reason} | retry {claimed.attempts}: {e}"[-2000:],
                ReconciliationItem.updated_at: datetime.utcnow(),
            }),
        )
        log.warning("reconciliation_retry_failed", item_id=str(claimed.id), attempts=claimed.attempts, error=str(e))
        raise
    claimed.state = "compensated"
    claimed.updated_at = datetime.utcnow()
    await claimed.save()
    if claimed.debit_transaction_id:
        await wallets_service.set_transaction_status(
            PydanticObjectId(claimed.debit_transaction_id), TransactionStatus.cancelled
        )
    await log_event(None, "settlement_compensated", "reconciliation", str(claimed.id), {"settlement_id": claimed.settlement_id})
    log.info("reconciliation_compensated", item_id=str(claimed.id), settlement_id=claimed.settlement_id)
    return claimed


async def retry_pending(batch_size: int = 50, max_attempts: int = 10) -> dict:
    """Retry compensation for pending items; failures go to the FailedJob dead-letter."""
    items = (
        await ReconciliationItem.find(
            ReconciliationItem.state == "pending",
            ReconciliationItem.attempts < max_attempts,
        )
        .sort(+ReconciliationItem.created_at)
        .limit(batch_size)
        .to_list()
    )
    done = failed = 0
    for item in items:
        try:
            if await compensate(item):
                done += 1
        except Exception as e:
            failed += 1
            await FailedJob(
                job_name="compensate_settlement",
                job_id=str(item.id),
                reference_id=item.settlement_id,
                kwargs={"payer_id": str(item.payer_id), "gross_amount": item.gross_amount},
                reason=str(e)[:2000],
                retries=item.attempts + 1,
            ).insert()
    return {"checked": len(items), "compensated": done, "failed": failed}


async def resolve(item_id: PydanticObjectId, admin_id: PydanticObjectId, note: str | None = None) -> ReconciliationItem:
    """Admin closes an item after handling it by hand."""
    item = await ReconciliationItem.get(item_id)
    if not item:
        raise NotFoundError("Reconciliation item not found")
    if item.state == "resolved":
        raise ConflictError("Already resolved")
    item.state = "resolved"
    item.updated_at = datetime.utcnow()
    if note:
        item.reason = f"{item.reason} | resolved: {note}"[-2000:]
    await item.save()
    await log_event(str(admin_id), "reconciliation_resolved", "reconciliation", str(item.id), {"note": note})
    return item
