from datetime import datetime
from typing import Any, Literal

from beanie import Document, PydanticObjectId
from pydantic import Field


class WithdrawalRequest(Document):
    user_id: PydanticObjectId
    coin_amount: int = Field(ge=1)
    rupee_amount: str  # 2 decimal places, e.g. "10.00"
    conversion_ratio: int
    status: Literal["pending", "approved", "rejected"] = "pending"
    account_type: Literal["bank", "upi", "paytm"]
    account_details: dict[str, Any] = Field(default_factory=dict)
    remarks: str | None = None
    transaction_id: PydanticObjectId | None = None  # ledger debit taken at request time
    processed_by: PydanticObjectId | None = None
    processed_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "withdrawal_requests"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("status", 1), ("created_at", -1)],
        ]
