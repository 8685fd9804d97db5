"""Coin withdrawals: conversion to rupees, up-front debit, admin approve/reject."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from beanie import PydanticObjectId
from beanie.odm.operators.update.general import Set
from beanie.odm.queries.update import UpdateResponse

from app.core.audit import log_event
from app.core.exceptions import ConflictError, InvalidAmountError, NotFoundError
from app.core.logging import get_logger
from app.models.call_config import RateConfig
from app.models.enums import TransactionStatus, TransactionType
from app.models.withdrawal_request import WithdrawalRequest
from app.services import wallets as wallets_service

log = get_logger(__name__)


def coins_to_rupees(coin_amount: int, ratio: int) -> Decimal:
    """
    Convert a withdrawal's coins to rupees (coins / ratio, 2 places).
    Minimum is `ratio` coins (one rupee); amounts must be exact multiples of ratio.
    """
    if ratio < 1:
        raise InvalidAmountError("Conversion ratio must be positive", {"ratio": ratio})
    if isinstance(coin_amount, bool) or not isinstance(coin_amount, int) or coin_amount <= 0:
        raise InvalidAmountError("Coin amount must be a positive whole number", {"coin_amount": coin_amount})
    if coin_amount < ratio:
        raise InvalidAmountError(
            f"Minimum withdrawal is {ratio} coins",
            {"coin_amount": coin_amount, "minimum": ratio},
        )
    if coin_amount % ratio:
        raise InvalidAmountError(
            f"Coin amount must be a multiple of {ratio}",
            {"coin_amount": coin_amount, "ratio": ratio},
        )
    return (Decimal(coin_amount) / Decimal(ratio)).quantize(Decimal("0.01"))


async def create_withdrawal(
    user_id: PydanticObjectId,
    coin_amount: int,
    account_type: str,
    account_details: dict[str, Any],
    rates: RateConfig,
) -> tuple[WithdrawalRequest, int]:
    """Debit the coins now (ledger entry pending until processed); return (request, remaining balance)."""
    rupees = coins_to_rupees(coin_amount, rates.coin_to_rupee_ratio)
    tx = await wallets_service.record_transaction(
        user_id,
        -coin_amount,
        TransactionType.withdrawal,
        description=f"Withdrawal of {coin_amount} coins (Rs {rupees})",
        metadata={"rupee_amount": str(rupees), "account_type": account_type},
    )
    try:
        remaining = await wallets_service.apply_delta(user_id, -coin_amount)
    except Exception:
        await wallets_service.set_transaction_status(tx.id, TransactionStatus.failed)
        raise
    req = WithdrawalRequest(
        user_id=user_id,
        coin_amount=coin_amount,
        rupee_amount=str(rupees),
        conversion_ratio=rates.coin_to_rupee_ratio,
        account_type=account_type,
        account_details=account_details,
        transaction_id=tx.id,
    )
    await req.insert()
    await log_event(str(user_id), "withdrawal_created", "withdrawal", str(req.id), {"coins": coin_amount, "rupees": str(rupees)})
    log.info("withdrawal_created", user_id=str(user_id), withdrawal_id=str(req.id), coins=coin_amount, rupees=str(rupees))
    return req, remaining


async def process_withdrawal(
    withdrawal_id: PydanticObjectId,
    admin_id: PydanticObjectId,
    approve: bool,
    remarks: str | None = None,
) -> WithdrawalRequest:
    """Approve (ledger completed) or reject (coins refunded, ledger cancelled). Pending requests only."""
    existing = await WithdrawalRequest.get(withdrawal_id)
    if not existing:
        raise NotFoundError("Withdrawal request not found")
    status = "approved" if approve else "rejected"
    req = await WithdrawalRequest.find_one(
        WithdrawalRequest.id == withdrawal_id,
        WithdrawalRequest.status == "pending",
    ).update(
        Set({
            WithdrawalRequest.status: status,
            WithdrawalRequest.remarks: remarks,
            WithdrawalRequest.processed_by: admin_id,
            WithdrawalRequest.processed_at: datetime.utcnow(),
        }),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if req is None:
        raise ConflictError("Withdrawal already processed", {"status": existing.status})
    if approve:
        if req.transaction_id:
            await wallets_service.set_transaction_status(req.transaction_id, TransactionStatus.completed)
    else:
        await wallets_service.apply_delta(req.user_id, req.coin_amount)
        if req.transaction_id:
            await wallets_service.set_transaction_status(req.transaction_id, TransactionStatus.cancelled)
    await log_event(str(admin_id), f"withdrawal_{status}", "withdrawal", str(req.id), {"coins": req.coin_amount})
    log.info("withdrawal_processed", withdrawal_id=str(req.id), status=status, admin_id=str(admin_id))
    return req


async def list_withdrawals(
    user_id: PydanticObjectId | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[WithdrawalRequest]:
    query = WithdrawalRequest.find()
    if user_id is not None:
        query = query.find(WithdrawalRequest.user_id == user_id)
    if status:
        query = query.find(WithdrawalRequest.status == status)
    return await query.sort(-WithdrawalRequest.created_at).skip(offset).limit(limit).to_list()
