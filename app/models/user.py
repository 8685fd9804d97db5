from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field

from app.models.enums import Gender, ProfileTier


class User(Document):
    username: Indexed(str, unique=True)
    name: str = ""
    gender: Gender
    profile_tier: ProfileTier = ProfileTier.basic
    role: str = "user"  # "user" | "admin"
    is_blocked: bool = False
    is_online: bool = False
    last_active: datetime | None = None
    session_version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
