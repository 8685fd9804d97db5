"""Gift catalog and gift send."""

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from app.core.audit import log_event
from app.core.exceptions import BadRequestError, ConflictError, InvalidAmountError, NotFoundError
from app.core.logging import get_logger
from app.models.call_config import RateConfig
from app.models.enums import EventKind
from app.models.gift import Gift
from app.models.gift_transaction import GiftTransaction
from app.services.settlement import SettlementEngine

log = get_logger(__name__)


async def list_gifts(active_only: bool = True) -> list[Gift]:
    query = Gift.find(Gift.is_active == True) if active_only else Gift.find()  # noqa: E712
    return await query.sort(+Gift.coin_value).to_list()


async def create_gift(name: str, coin_value: int, image: str = "", is_active: bool = True) -> Gift:
    gift = Gift(name=name, coin_value=coin_value, image=image, is_active=is_active)
    await gift.insert()
    return gift


async def _claim_key(
    sender_id: PydanticObjectId,
    receiver_id: PydanticObjectId,
    gift: Gift,
    quantity: int,
    message: str | None,
    idempotency_key: str,
) -> tuple[GiftTransaction, bool]:
    """
    Insert a pending row for (sender, key) before any coins move. The unique index makes
    this the single winner among concurrent requests; returns (row, claimed).
    """
    claim = GiftTransaction(
        sender_id=sender_id,
        receiver_id=receiver_id,
        gift_id=gift.id,
        quantity=quantity,
        coin_value=gift.coin_value,
        total_coins=gift.coin_value * quantity,
        message=message,
        status="pending",
        idempotency_key=idempotency_key,
    )
    try:
        await claim.insert()
        return claim, True
    except DuplicateKeyError:
        existing = await GiftTransaction.find_one(
            GiftTransaction.sender_id == sender_id,
            GiftTransaction.idempotency_key == idempotency_key,
        )
        if existing is None:
            raise ConflictError("The earlier gift request with this Idempotency-Key failed; send it again")
        return existing, False


async def send_gift(
    engine: SettlementEngine,
    sender_id: PydanticObjectId,
    receiver_id: PydanticObjectId,
    gift_id: PydanticObjectId,
    quantity: int,
    rates: RateConfig,
    message: str | None = None,
    idempotency_key: str | None = None,
) -> GiftTransaction:
    """
    Charge price x quantity to the sender and settle with the receiver.
    Idempotency: the key is claimed before settling; a repeat returns the first
    GiftTransaction without charging again, or 409 while the first is still in flight.
    """
    if quantity < 1:
        raise InvalidAmountError("Quantity must be at least 1", {"quantity": quantity})
    if receiver_id == sender_id:
        raise BadRequestError("Cannot send a gift to yourself")
    if idempotency_key:
        existing = await GiftTransaction.find_one(
            GiftTransaction.sender_id == sender_id,
            GiftTransaction.idempotency_key == idempotency_key,
        )
        if existing:
            return _replayed(existing)
    gift = await Gift.get(gift_id)
    if not gift or not gift.is_active:
        raise NotFoundError("Gift not found")

    tx = None
    if idempotency_key:
        tx, claimed = await _claim_key(sender_id, receiver_id, gift, quantity, message, idempotency_key)
        if not claimed:
            return _replayed(tx)

    gross = gift.coin_value * quantity
    try:
        result = await engine.settle(
            EventKind.gift,
            sender_id,
            receiver_id,
            gross,
            rates,
            description=f"{quantity} x {gift.name}",
            metadata={"gift_id": str(gift.id), "quantity": quantity},
        )
    except Exception:
        if tx is not None:
            # free the key so the sender can retry
            await tx.delete()
        raise

    if tx is None:
        tx = GiftTransaction(
            sender_id=sender_id,
            receiver_id=receiver_id,
            gift_id=gift.id,
            quantity=quantity,
            coin_value=gift.coin_value,
            total_coins=gross,
            message=message,
        )
    tx.status = "completed"
    tx.settlement_id = result.settlement_id
    tx.commission_amount = result.commission_amount
    tx.receiver_credit = result.credit_amount
    tx.commission_type = result.commission_type
    await tx.save()
    await log_event(
        str(sender_id),
        "settlement_completed",
        "gift",
        str(tx.id),
        {
            "settlement_id": result.settlement_id,
            "gross": gross,
            "credit": result.credit_amount,
            "commission": result.commission_amount,
            "commission_type": result.commission_type.value,
        },
    )
    log.info("gift_sent", sender_id=str(sender_id), receiver_id=str(receiver_id), gift_id=str(gift.id), quantity=quantity)
    return tx


def _replayed(tx: GiftTransaction) -> GiftTransaction:
    if tx.status == "pending":
        raise ConflictError("A gift with this Idempotency-Key is still being processed")
    return tx
