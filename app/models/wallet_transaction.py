from datetime import datetime
from typing import Any

from beanie import Document, PydanticObjectId
from pydantic import Field

from app.models.enums import TransactionStatus, TransactionType


class WalletTransaction(Document):
    user_id: PydanticObjectId
    amount: int  # positive = credit, negative = debit
    type: TransactionType
    status: TransactionStatus = TransactionStatus.pending
    description: str = ""
    transaction_id: str | None = None  # external payment reference
    settlement_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "wallet_transactions"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("settlement_id", 1)],
            [("transaction_id", 1)],
        ]
