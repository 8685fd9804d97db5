import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import get_settings
from app.models.audit_log import AuditLog
from app.models.call_config import CallConfig
from app.models.call_session import CallSession
from app.models.coin_package import CoinPackage
from app.models.failed_job import FailedJob
from app.models.gift import Gift
from app.models.gift_transaction import GiftTransaction
from app.models.payment_order import PaymentOrder
from app.models.reconciliation import ReconciliationItem
from app.models.user import User
from app.models.wallet import Wallet
from app.models.wallet_transaction import WalletTransaction
from app.models.withdrawal_request import WithdrawalRequest

DOCUMENT_MODELS = [
    User,
    Wallet,
    WalletTransaction,
    CallConfig,
    CallSession,
    Gift,
    GiftTransaction,
    WithdrawalRequest,
    CoinPackage,
    PaymentOrder,
    ReconciliationItem,
    AuditLog,
    FailedJob,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(db_name: str | None = None) -> AsyncIOMotorClient:
    settings = get_settings()
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {"serverSelectionTimeoutMS": settings.mongodb_timeout_ms}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[db_name or settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    return client
