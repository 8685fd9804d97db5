from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from app.deps import get_current_user
from app.models.user import User
from app.services import payments as payments_service

router = APIRouter()


class CreateOrderRequest(BaseModel):
    package_id: PydanticObjectId
    currency: str = "INR"


@router.get("/packages")
async def packages_list(user: User = Depends(get_current_user)):
    packages = await payments_service.list_packages()
    return {
        "packages": [
            {
                "id": str(p.id),
                "name": p.name,
                "coins": p.coins,
                "bonus_coins": p.bonus_coins,
                "price_paise": p.price_paise,
            }
            for p in packages
        ]
    }


@router.post("/orders")
async def create_order(
    body: CreateOrderRequest,
    user: User = Depends(get_current_user),
):
    """Create Razorpay order for a coin package; frontend uses order_id for checkout."""
    return await payments_service.create_order(user.id, body.package_id, body.currency)


@router.post("/webhook")
async def razorpay_webhook(request: Request, x_razorpay_signature: str = Header(..., alias="X-Razorpay-Signature")):
    """Razorpay webhook: payment.captured -> credit coins (idempotent)."""
    body = await request.body()
    await payments_service.handle_webhook(body, x_razorpay_signature)
    return {"status": "ok"}
