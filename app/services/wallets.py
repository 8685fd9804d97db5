"""Wallet balances and the transaction ledger."""

from datetime import datetime
from typing import Any

from beanie import PydanticObjectId
from beanie.odm.operators.update.general import Inc, Set
from beanie.odm.queries.update import UpdateResponse
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictError, InsufficientBalanceError, InvalidAmountError, NotFoundError
from app.core.logging import get_logger
from app.models.enums import TransactionStatus, TransactionType
from app.models.reconciliation import ReconciliationItem
from app.models.user import User
from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.services.settlement import Party

log = get_logger(__name__)

_STATUS_TRANSITIONS = {
    TransactionStatus.pending: {TransactionStatus.completed, TransactionStatus.failed, TransactionStatus.cancelled},
}


async def get_wallet(user_id: PydanticObjectId) -> Wallet | None:
    return await Wallet.find_one(Wallet.user_id == user_id)


async def get_balance(user_id: PydanticObjectId) -> int:
    """Return current balance for user (0 if no wallet)."""
    wallet = await get_wallet(user_id)
    return wallet.coin_balance if wallet else 0


async def ensure_wallet(user_id: PydanticObjectId) -> Wallet:
    wallet = await get_wallet(user_id)
    if wallet:
        return wallet
    try:
        wallet = Wallet(user_id=user_id)
        await wallet.insert()
        return wallet
    except DuplicateKeyError:
        # created concurrently
        return await get_wallet(user_id)


async def apply_delta(
    user_id: PydanticObjectId,
    delta: int,
    *,
    earned: int = 0,
    spent: int = 0,
) -> int:
    """
    Add a signed delta to the balance; return the new balance.
    Single conditional find_one_and_update: the balance guard and the $inc happen in
    one document operation, so concurrent mutations of one wallet serialize in MongoDB.
    Raises InsufficientBalanceError (nothing applied) if the result would be negative.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidAmountError("Balance delta must be a whole number of coins", {"delta": delta})
    if delta >= 0:
        await ensure_wallet(user_id)
    inc: dict[Any, int] = {Wallet.coin_balance: delta}
    if earned:
        inc[Wallet.total_earned] = earned
    if spent:
        inc[Wallet.total_spent] = spent
    updated = await Wallet.find_one(
        Wallet.user_id == user_id,
        Wallet.coin_balance >= -delta,
    ).update(
        Inc(inc),
        Set({Wallet.updated_at: datetime.utcnow()}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if updated is None:
        balance = await get_balance(user_id)
        log.info("wallet_debit_rejected", user_id=str(user_id), delta=delta, balance=balance)
        raise InsufficientBalanceError(details={"balance": balance, "required": -delta})
    log.info("wallet_balance_updated", user_id=str(user_id), delta=delta, balance=updated.coin_balance)
    return updated.coin_balance


async def record_transaction(
    user_id: PydanticObjectId,
    amount: int,
    tx_type: TransactionType,
    *,
    status: TransactionStatus = TransactionStatus.pending,
    description: str = "",
    settlement_id: str | None = None,
    transaction_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> WalletTransaction:
    tx = WalletTransaction(
        user_id=user_id,
        amount=amount,
        type=tx_type,
        status=status,
        description=description,
        settlement_id=settlement_id,
        transaction_id=transaction_id,
        metadata=metadata or {},
    )
    await tx.insert()
    return tx


async def set_transaction_status(tx_id: PydanticObjectId, status: TransactionStatus) -> WalletTransaction:
    """Ledger entries are immutable apart from pending -> completed/failed/cancelled."""
    tx = await WalletTransaction.get(tx_id)
    if not tx:
        raise NotFoundError("Transaction not found")
    if tx.status == status:
        return tx
    if status not in _STATUS_TRANSITIONS.get(tx.status, set()):
        raise ConflictError(
            f"Cannot move transaction from {tx.status.value} to {status.value}",
            {"transaction_id": str(tx_id)},
        )
    updated = await WalletTransaction.find_one(
        WalletTransaction.id == tx_id,
        WalletTransaction.status == tx.status,
    ).update(
        Set({WalletTransaction.status: status, WalletTransaction.updated_at: datetime.utcnow()}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    return updated or await WalletTransaction.get(tx_id)


async def list_transactions(user_id: PydanticObjectId, limit: int = 50, offset: int = 0) -> list[WalletTransaction]:
    return (
        await WalletTransaction.find(WalletTransaction.user_id == user_id)
        .sort(-WalletTransaction.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


class MongoWalletStore:
    """WalletStore for the settlement engine, backed by the functions above."""

    async def get_user(self, user_id: PydanticObjectId) -> Party | None:
        user = await User.get(user_id)
        if not user:
            return None
        return Party(id=user.id, gender=user.gender, profile_tier=user.profile_tier)

    async def get_balance(self, user_id: PydanticObjectId) -> int:
        return await get_balance(user_id)

    async def apply_delta(self, user_id: PydanticObjectId, delta: int, *, earned: int = 0, spent: int = 0) -> int:
        return await apply_delta(user_id, delta, earned=earned, spent=spent)

    async def record_transaction(self, user_id: PydanticObjectId, amount: int, tx_type: TransactionType, **kwargs: Any) -> str:
        tx = await record_transaction(user_id, amount, tx_type, **kwargs)
        return str(tx.id)

    async def set_transaction_status(self, tx_id: str, status: TransactionStatus) -> None:
        await set_transaction_status(PydanticObjectId(tx_id), status)

    async def record_reconciliation(self, **fields: Any) -> str:
        item = ReconciliationItem(**fields)
        await item.insert()
        return str(item.id)
