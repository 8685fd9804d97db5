from datetime import datetime

from beanie import Document
from pydantic import Field


class Gift(Document):
    name: str
    image: str = ""
    coin_value: int = Field(ge=1)
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "gifts"
