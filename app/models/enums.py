"""Closed vocabularies shared by models and services."""

from enum import Enum


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class ProfileTier(str, Enum):
    basic = "basic"
    gicon = "gicon"
    gstar = "gstar"

    @classmethod
    def parse(cls, value: "str | ProfileTier | None") -> "ProfileTier":
        """Unknown or missing tiers settle at the basic rate."""
        try:
            return cls(value)
        except ValueError:
            return cls.basic


class TransactionType(str, Enum):
    call_payment = "call_payment"
    call_earning = "call_earning"
    gift_sent = "gift_sent"
    gift_received = "gift_received"
    recharge = "recharge"
    withdrawal = "withdrawal"


class TransactionStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class EventKind(str, Enum):
    call = "call"
    gift = "gift"


class CommissionType(str, Enum):
    admin = "admin"
    gstar = "gstar"
    gicon = "gicon"
    none = "none"


class CallType(str, Enum):
    video = "video"
    audio = "audio"
