from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from app.core.security import normalize_idempotency_key
from app.deps import get_current_user, get_rate_config, get_settlement_engine
from app.models.call_config import RateConfig
from app.models.user import User
from app.services import gifts as gifts_service
from app.services import wallets as wallets_service
from app.services.settlement import SettlementEngine

router = APIRouter()


class GiftSendRequest(BaseModel):
    receiver_id: PydanticObjectId
    gift_id: PydanticObjectId
    quantity: int = Field(default=1, ge=1, le=1000)
    message: str | None = Field(default=None, max_length=500)


@router.get("")
async def gifts_list(user: User = Depends(get_current_user)):
    gifts = await gifts_service.list_gifts()
    return {
        "gifts": [
            {"id": str(g.id), "name": g.name, "image": g.image, "coin_value": g.coin_value}
            for g in gifts
        ]
    }


@router.post("/send")
async def gift_send(
    body: GiftSendRequest,
    user: User = Depends(get_current_user),
    rates: RateConfig = Depends(get_rate_config),
    engine: SettlementEngine = Depends(get_settlement_engine),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """Send gift(s): sender pays price x quantity; receiver earns net of commission."""
    tx = await gifts_service.send_gift(
        engine,
        user.id,
        body.receiver_id,
        body.gift_id,
        body.quantity,
        rates,
        message=body.message,
        idempotency_key=normalize_idempotency_key(idempotency_key),
    )
    return {
        "transaction": {
            "id": str(tx.id),
            "gift_id": str(tx.gift_id),
            "receiver_id": str(tx.receiver_id),
            "quantity": tx.quantity,
            "coin_value": tx.coin_value,
            "total_coins": tx.total_coins,
            "receiver_credit": tx.receiver_credit,
            "commission_amount": tx.commission_amount,
            "commission_type": tx.commission_type.value,
            "message": tx.message,
        },
        "balance": await wallets_service.get_balance(user.id),
    }
