from app.models.user import User
from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.models.call_config import CallConfig, RateConfig
from app.models.call_session import CallSession
from app.models.gift import Gift
from app.models.gift_transaction import GiftTransaction
from app.models.withdrawal_request import WithdrawalRequest
from app.models.coin_package import CoinPackage
from app.models.payment_order import PaymentOrder
from app.models.reconciliation import ReconciliationItem
from app.models.audit_log import AuditLog
from app.models.failed_job import FailedJob

__all__ = [
    "User",
    "Wallet",
    "WalletTransaction",
    "CallConfig",
    "RateConfig",
    "CallSession",
    "Gift",
    "GiftTransaction",
    "WithdrawalRequest",
    "CoinPackage",
    "PaymentOrder",
    "ReconciliationItem",
    "AuditLog",
    "FailedJob",
]
