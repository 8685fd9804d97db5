from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from app.core.audit import log_event
from app.core.exceptions import NotFoundError
from app.core.pagination import PageParams, page_params
from app.deps import require_admin
from app.models.enums import ProfileTier
from app.models.user import User
from app.routers.wallet import withdrawal_out
from app.services import gifts as gifts_service
from app.services import payments as payments_service
from app.services import reconciliation as reconciliation_service
from app.services import withdrawals as withdrawals_service

router = APIRouter()


class CallConfigUpdate(BaseModel):
    video_call_coins_per_min: int | None = None
    audio_call_coins_per_min: int | None = None
    gstar_video_coins_per_min: int | None = None
    gstar_audio_coins_per_min: int | None = None
    admin_commission_percent: int | None = None
    gstar_admin_commission: int | None = None
    gicon_admin_commission: int | None = None
    coin_to_rupee_ratio: int | None = None


class GiftCreate(BaseModel):
    name: str = Field(min_length=1)
    coin_value: int = Field(ge=1)
    image: str = ""


class PackageCreate(BaseModel):
    name: str = Field(min_length=1)
    coins: int = Field(ge=1)
    price_paise: int = Field(ge=100)
    bonus_coins: int = Field(default=0, ge=0)


class TierUpdate(BaseModel):
    profile_tier: ProfileTier


class ProcessWithdrawal(BaseModel):
    remarks: str | None = None


class ResolveItem(BaseModel):
    note: str | None = None


@router.get("/call-config")
async def admin_call_config(request: Request, user: User = Depends(require_admin)):
    rates = await request.app.state.rates.get()
    return rates.model_dump()


@router.put("/call-config")
async def admin_call_config_update(body: CallConfigUpdate, request: Request, user: User = Depends(require_admin)):
    """Admin: update per-minute rates, commission percentages, coin/rupee ratio."""
    updates = body.model_dump(exclude_none=True)
    rates = await request.app.state.rates.update(updates, updated_by=str(user.id))
    return rates.model_dump()


@router.post("/gifts")
async def admin_gift_create(body: GiftCreate, user: User = Depends(require_admin)):
    gift = await gifts_service.create_gift(body.name, body.coin_value, image=body.image)
    return {"id": str(gift.id), "name": gift.name, "coin_value": gift.coin_value}


@router.post("/packages")
async def admin_package_create(body: PackageCreate, user: User = Depends(require_admin)):
    pkg = await payments_service.create_package(body.name, body.coins, body.price_paise, body.bonus_coins)
    return {"id": str(pkg.id), "name": pkg.name, "coins": pkg.coins, "price_paise": pkg.price_paise}


@router.patch("/users/{user_id}/tier")
async def admin_user_tier(user_id: PydanticObjectId, body: TierUpdate, user: User = Depends(require_admin)):
    """Admin: change a user's profile tier (drives their commission rate as a payee)."""
    target = await User.get(user_id)
    if not target:
        raise NotFoundError("User not found")
    previous = target.profile_tier
    target.profile_tier = body.profile_tier
    await target.save()
    await log_event(
        str(user.id),
        "profile_tier_updated",
        "user",
        str(target.id),
        {"from": previous.value, "to": body.profile_tier.value},
    )
    return {"id": str(target.id), "profile_tier": target.profile_tier.value}


@router.get("/withdrawals")
async def admin_withdrawals(
    user: User = Depends(require_admin),
    status: str | None = Query(None, pattern="^(pending|approved|rejected)$"),
    page: PageParams = Depends(page_params),
):
    items = await withdrawals_service.list_withdrawals(status=status, limit=page.limit, offset=page.offset)
    return {"withdrawals": [withdrawal_out(w) for w in items], "limit": page.limit, "offset": page.offset}


@router.post("/withdrawals/{withdrawal_id}/approve")
async def admin_withdrawal_approve(
    withdrawal_id: PydanticObjectId,
    body: ProcessWithdrawal,
    user: User = Depends(require_admin),
):
    req = await withdrawals_service.process_withdrawal(withdrawal_id, user.id, approve=True, remarks=body.remarks)
    return withdrawal_out(req)


@router.post("/withdrawals/{withdrawal_id}/reject")
async def admin_withdrawal_reject(
    withdrawal_id: PydanticObjectId,
    body: ProcessWithdrawal,
    user: User = Depends(require_admin),
):
    """Admin: reject and refund the coins."""
    req = await withdrawals_service.process_withdrawal(withdrawal_id, user.id, approve=False, remarks=body.remarks)
    return withdrawal_out(req)


@router.get("/reconciliations")
async def admin_reconciliations(
    user: User = Depends(require_admin),
    state: str | None = Query(None, pattern="^(pending|refunding|compensated|resolved)$"),
    page: PageParams = Depends(page_params),
):
    items = await reconciliation_service.list_items(state, page.limit, page.offset)
    return {
        "items": [
            {
                "id": str(i.id),
                "settlement_id": i.settlement_id,
                "event_kind": i.event_kind,
                "payer_id": str(i.payer_id),
                "payee_id": str(i.payee_id) if i.payee_id else None,
                "gross_amount": i.gross_amount,
                "credit_amount": i.credit_amount,
                "state": i.state,
                "attempts": i.attempts,
                "reason": i.reason,
                "created_at": i.created_at.isoformat(),
            }
            for i in items
        ],
        "limit": page.limit,
        "offset": page.offset,
    }


@router.post("/reconciliations/{item_id}/resolve")
async def admin_reconciliation_resolve(item_id: PydanticObjectId, body: ResolveItem, user: User = Depends(require_admin)):
    item = await reconciliation_service.resolve(item_id, user.id, body.note)
    return {"id": str(item.id), "state": item.state}
