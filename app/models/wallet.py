from datetime import datetime

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field


class Wallet(Document):
    """One per user. coin_balance is only changed by $inc deltas and never goes below 0."""
    user_id: Indexed(PydanticObjectId, unique=True)
    coin_balance: int = 0
    total_earned: int = 0
    total_spent: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "wallets"
