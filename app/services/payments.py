"""Coin recharge: Razorpay orders for coin packages and an idempotent captured-payment webhook."""

import json

from beanie import PydanticObjectId

from app.core.audit import log_event
from app.core.config import get_settings
from app.core.exceptions import BadRequestError, NotFoundError
from app.core.logging import get_logger
from app.core.security import verify_razorpay_webhook
from app.models.coin_package import CoinPackage
from app.models.enums import TransactionStatus, TransactionType
from app.models.payment_order import PaymentOrder
from app.models.user import User
from app.models.wallet_transaction import WalletTransaction
from app.services import wallets as wallets_service

log = get_logger(__name__)


async def list_packages() -> list[CoinPackage]:
    return await CoinPackage.find(CoinPackage.is_active == True).sort(+CoinPackage.price_paise).to_list()  # noqa: E712


async def create_package(name: str, coins: int, price_paise: int, bonus_coins: int = 0) -> CoinPackage:
    pkg = CoinPackage(name=name, coins=coins, price_paise=price_paise, bonus_coins=bonus_coins)
    await pkg.insert()
    return pkg


async def create_order(user_id: PydanticObjectId, package_id: PydanticObjectId, currency: str = "INR") -> dict:
    """Create Razorpay order for a package; return order_id and amount for frontend checkout."""
    import razorpay
    settings = get_settings()
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        raise BadRequestError("Payments not configured")
    user = await User.get(user_id)
    if not user:
        raise NotFoundError("User not found")
    pkg = await CoinPackage.get(package_id)
    if not pkg or not pkg.is_active:
        raise NotFoundError("Coin package not found")
    client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
    order = client.order.create({"amount": pkg.price_paise, "currency": currency, "notes": {"user_id": str(user.id)}})
    await PaymentOrder(
        order_id=order["id"],
        user_id=user.id,
        package_id=pkg.id,
        coins=pkg.coins + pkg.bonus_coins,
        amount_paise=pkg.price_paise,
        currency=currency,
    ).insert()
    return {
        "order_id": order["id"],
        "amount": order["amount"],
        "currency": order["currency"],
        "coins": pkg.coins + pkg.bonus_coins,
        "key_id": settings.razorpay_key_id,
    }


async def handle_webhook(payload: bytes, signature: str) -> None:
    """Verify HMAC and credit the order's coins once per Razorpay payment (payment.captured)."""
    settings = get_settings()
    if not settings.razorpay_webhook_secret:
        raise BadRequestError("Webhook secret not configured")
    if not verify_razorpay_webhook(payload, signature, settings.razorpay_webhook_secret):
        raise BadRequestError("Invalid webhook signature")
    data = json.loads(payload.decode())
    if data.get("event") != "payment.captured":
        return
    payment = data.get("payload", {}).get("payment", {}).get("entity", {})
    order_id = payment.get("order_id")
    payment_id = payment.get("id")
    po = await PaymentOrder.find_one(PaymentOrder.order_id == order_id)
    if not po or not payment_id:
        log.warning("webhook_unknown_order", order_id=order_id, payment_id=payment_id)
        return
    existing = await WalletTransaction.find_one(
        WalletTransaction.type == TransactionType.recharge,
        WalletTransaction.transaction_id == payment_id,
    )
    if existing:
        return  # already applied
    if payment.get("amount") != po.amount_paise:
        log.warning("webhook_amount_mismatch", order_id=order_id, paid=payment.get("amount"), expected=po.amount_paise)
        raise BadRequestError("Captured amount does not match order")
    tx = await wallets_service.record_transaction(
        po.user_id,
        po.coins,
        TransactionType.recharge,
        description=f"Recharge of {po.coins} coins",
        transaction_id=payment_id,
        metadata={"order_id": order_id, "amount_paise": po.amount_paise},
    )
    balance = await wallets_service.apply_delta(po.user_id, po.coins)
    await wallets_service.set_transaction_status(tx.id, TransactionStatus.completed)
    await log_event(str(po.user_id), "payment_captured", "payment", payment_id, {"amount_paise": po.amount_paise, "coins": po.coins})
    log.info("recharge_applied", user_id=str(po.user_id), coins=po.coins, balance=balance)
