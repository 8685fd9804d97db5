from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field


class PaymentOrder(Document):
    """Razorpay order_id -> user and package for webhook attribution."""
    order_id: str
    user_id: PydanticObjectId
    package_id: PydanticObjectId
    coins: int
    amount_paise: int
    currency: str = "INR"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "payment_orders"
        indexes = [[("order_id", 1)]]
