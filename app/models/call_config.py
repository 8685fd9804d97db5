from datetime import datetime

from beanie import Document
from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import CallType, ProfileTier

SINGLETON_KEY = "default"


class RateConfig(BaseModel):
    """Immutable snapshot of the admin rate table; passed into settlement explicitly."""

    model_config = ConfigDict(frozen=True)

    video_call_coins_per_min: int = Field(default=10, ge=1)
    audio_call_coins_per_min: int = Field(default=5, ge=1)
    gstar_video_coins_per_min: int = Field(default=15, ge=1)
    gstar_audio_coins_per_min: int = Field(default=8, ge=1)
    admin_commission_percent: int = Field(default=20, ge=0, le=100)
    gstar_admin_commission: int = Field(default=25, ge=0, le=100)
    gicon_admin_commission: int = Field(default=18, ge=0, le=100)
    coin_to_rupee_ratio: int = Field(default=10, ge=1, le=1000)

    def commission_percent(self, tier: ProfileTier | str | None) -> int:
        tier = ProfileTier.parse(tier)
        if tier == ProfileTier.gstar:
            return self.gstar_admin_commission
        if tier == ProfileTier.gicon:
            return self.gicon_admin_commission
        return self.admin_commission_percent

    def coins_per_minute(self, call_type: CallType | str, payee_tier: ProfileTier | str | None) -> int:
        """Per-minute cost of a call; gstar receivers have their own rate card."""
        call_type = CallType(call_type)
        gstar = ProfileTier.parse(payee_tier) == ProfileTier.gstar
        if call_type == CallType.video:
            return self.gstar_video_coins_per_min if gstar else self.video_call_coins_per_min
        return self.gstar_audio_coins_per_min if gstar else self.audio_call_coins_per_min


class CallConfig(Document):
    """Admin-managed rate table. Exactly one document, keyed by SINGLETON_KEY."""
    key: str = SINGLETON_KEY
    rates: RateConfig = Field(default_factory=RateConfig)
    updated_by: str | None = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "call_config"
        indexes = [[("key", 1)]]
