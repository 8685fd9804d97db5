from datetime import datetime

from beanie import Document
from pydantic import Field


class CoinPackage(Document):
    name: str
    coins: int = Field(ge=1)
    bonus_coins: int = Field(default=0, ge=0)
    price_paise: int = Field(ge=100)
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "coin_packages"
