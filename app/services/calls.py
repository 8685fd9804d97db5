"""Call sessions: feasibility at start, per-minute billing at end."""

import uuid
from datetime import datetime

from beanie import PydanticObjectId
from beanie.odm.operators.find.comparison import In
from beanie.odm.operators.update.general import Set
from beanie.odm.queries.update import UpdateResponse

from app.core.audit import log_event
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotFoundError,
    PartialSettlementError,
)
from app.core.logging import get_logger
from app.models.call_config import RateConfig
from app.models.call_session import CallSession
from app.models.enums import CallType, EventKind, TransactionStatus, TransactionType
from app.models.user import User
from app.models.wallet_transaction import WalletTransaction
from app.services import wallets as wallets_service
from app.services.settlement import SettlementEngine

log = get_logger(__name__)


async def start_call(
    caller: User,
    receiver_id: PydanticObjectId,
    call_type: CallType,
    rates: RateConfig,
) -> CallSession:
    if receiver_id == caller.id:
        raise BadRequestError("Cannot call yourself")
    receiver = await User.get(receiver_id)
    if not receiver:
        raise NotFoundError("Receiver not found")
    if receiver.is_blocked:
        raise BadRequestError("Receiver is not available")
    if not receiver.is_online:
        raise BadRequestError("Receiver is offline")
    per_minute = rates.coins_per_minute(call_type, receiver.profile_tier)
    balance = await wallets_service.get_balance(caller.id)
    if balance < per_minute:
        raise InsufficientBalanceError(
            "Insufficient coins for a one minute call",
            {"balance": balance, "required": per_minute},
        )
    session = CallSession(
        call_id=uuid.uuid4().hex,
        caller_id=caller.id,
        receiver_id=receiver.id,
        call_type=call_type,
        coins_per_minute=per_minute,
        max_allowed_minutes=balance // per_minute,
    )
    await session.insert()
    log.info("call_started", call_id=session.call_id, caller_id=str(caller.id), receiver_id=str(receiver.id))
    return session


async def _release_or_fail(session: CallSession, previous: CallSession, error: Exception) -> None:
    """
    Settlement raised something unexpected. With no caller debit in the ledger the
    claim is released so the end can be retried; otherwise the call is marked failed.
    """
    debit = await WalletTransaction.find_one(
        WalletTransaction.user_id == session.caller_id,
        WalletTransaction.type == TransactionType.call_payment,
        WalletTransaction.status != TransactionStatus.failed,
        {"metadata.call_id": session.call_id},
    )
    if debit is None:
        await CallSession.find_one(
            CallSession.id == session.id,
            CallSession.status == "ending",
        ).update(
            Set({CallSession.status: previous.status, CallSession.duration_minutes: previous.duration_minutes}),
        )
        log.warning("call_end_released", call_id=session.call_id, error=str(error))
        return
    session.status = "failed"
    session.end_reason = "settlement_error"
    session.metadata = {**session.metadata, "error": str(error)[:500], "debit_transaction_id": str(debit.id)}
    await session.save()
    log.error("call_end_failed", call_id=session.call_id, debit_transaction_id=str(debit.id), error=str(error))


async def end_call(
    engine: SettlementEngine,
    caller: User,
    call_id: str,
    duration_minutes: int,
    rates: RateConfig,
) -> CallSession:
    """
    Bill the caller and settle with the receiver. The session is claimed with a
    conditional update first, so a retried request never settles the same call twice.
    """
    if duration_minutes < 0:
        raise InvalidAmountError("Duration cannot be negative", {"duration_minutes": duration_minutes})
    existing = await CallSession.find_one(CallSession.call_id == call_id)
    if not existing or existing.caller_id != caller.id:
        raise NotFoundError("Call not found")
    if existing.status == "ended":
        return existing

    session = await CallSession.find_one(
        CallSession.call_id == call_id,
        In(CallSession.status, ["initiated", "connected"]),
    ).update(
        Set({CallSession.status: "ending", CallSession.duration_minutes: duration_minutes}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if session is None:
        raise ConflictError("Call is already being ended", {"status": existing.status})

    session.end_time = datetime.utcnow()
    if duration_minutes == 0:
        session.status = "ended"
        session.end_reason = "completed"
        session.payment_processed = True
        await session.save()
        return session

    gross = duration_minutes * session.coins_per_minute
    try:
        result = await engine.settle(
            EventKind.call,
            session.caller_id,
            session.receiver_id,
            gross,
            rates,
            description=f"{session.call_type.value} call, {duration_minutes} min",
            metadata={"call_id": call_id, "duration_minutes": duration_minutes},
        )
    except InsufficientBalanceError:
        session.status = "failed"
        session.end_reason = "insufficient_coins"
        await session.save()
        raise
    except PartialSettlementError as e:
        session.status = "failed"
        session.end_reason = "settlement_failed"
        session.metadata = {**session.metadata, "settlement": e.details}
        await session.save()
        raise
    except Exception as e:
        await _release_or_fail(session, existing, e)
        raise

    session.status = "ended"
    session.end_reason = "completed"
    session.total_coins_deducted = result.debit_amount
    session.coins_to_receiver = result.credit_amount
    session.admin_commission = result.commission_amount
    session.commission_type = result.commission_type
    session.settlement_id = result.settlement_id
    session.payment_processed = True
    await session.save()
    await log_event(
        str(caller.id),
        "settlement_completed",
        "call",
        call_id,
        {
            "settlement_id": result.settlement_id,
            "gross": result.gross_amount,
            "credit": result.credit_amount,
            "commission": result.commission_amount,
            "commission_type": result.commission_type.value,
            "eligible": result.eligible,
        },
    )
    return session
