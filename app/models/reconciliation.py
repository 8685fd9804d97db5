from datetime import datetime
from typing import Literal

from beanie import Document, PydanticObjectId
from pydantic import Field


class ReconciliationItem(Document):
    """A settlement whose payee credit failed after the payer was debited."""
    settlement_id: str
    event_kind: str
    payer_id: PydanticObjectId
    payee_id: PydanticObjectId | None = None
    gross_amount: int
    credit_amount: int
    state: Literal["pending", "refunding", "compensated", "resolved"] = "pending"
    reason: str = ""
    attempts: int = 0
    debit_transaction_id: str | None = None
    credit_transaction_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "reconciliations"
        indexes = [
            [("state", 1), ("created_at", 1)],
            [("settlement_id", 1)],
        ]
