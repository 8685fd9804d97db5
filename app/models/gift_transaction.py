from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel

from app.models.enums import CommissionType


class GiftTransaction(Document):
    sender_id: PydanticObjectId
    receiver_id: PydanticObjectId
    gift_id: PydanticObjectId
    quantity: int = 1
    coin_value: int  # per gift, at send time
    total_coins: int
    message: str | None = None
    status: Literal["pending", "completed"] = "completed"
    settlement_id: str | None = None
    commission_amount: int = 0
    receiver_credit: int = 0
    commission_type: CommissionType = CommissionType.none
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "gift_transactions"
        indexes = [
            [("sender_id", 1), ("created_at", -1)],
            [("receiver_id", 1), ("created_at", -1)],
            IndexModel(
                [("sender_id", ASCENDING), ("idempotency_key", ASCENDING)],
                name="sender_idempotency_key_unique",
                unique=True,
                partialFilterExpression={"idempotency_key": {"$type": "string"}},
            ),
        ]
