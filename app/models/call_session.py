from datetime import datetime
from typing import Any, Literal

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field

from app.models.enums import CallType, CommissionType


class CallSession(Document):
    call_id: Indexed(str, unique=True)
    caller_id: PydanticObjectId
    receiver_id: PydanticObjectId
    call_type: CallType
    status: Literal["initiated", "connected", "ending", "ended", "failed"] = "initiated"
    coins_per_minute: int
    max_allowed_minutes: int = 0
    start_time: datetime = Field(default_factory=datetime.utcnow)
    end_time: datetime | None = None
    duration_minutes: int = 0
    total_coins_deducted: int = 0
    coins_to_receiver: int = 0
    admin_commission: int = 0
    commission_type: CommissionType = CommissionType.none
    settlement_id: str | None = None
    payment_processed: bool = False
    end_reason: Literal["completed", "insufficient_coins", "settlement_failed", "settlement_error"] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    class Settings:
        name = "call_sessions"
        indexes = [
            [("caller_id", 1), ("start_time", -1)],
            [("receiver_id", 1), ("start_time", -1)],
        ]
