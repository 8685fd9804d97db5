from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.pagination import PageParams, page_params
from app.deps import get_current_user, get_rate_config
from app.models.call_config import RateConfig
from app.models.user import User
from app.models.withdrawal_request import WithdrawalRequest
from app.services import wallets as wallets_service
from app.services import withdrawals as withdrawals_service

router = APIRouter()


class WithdrawRequest(BaseModel):
    coin_amount: int = Field(gt=0)
    account_type: Literal["bank", "upi", "paytm"]
    account_details: dict[str, Any] = Field(default_factory=dict)


def withdrawal_out(w: WithdrawalRequest) -> dict:
    return {
        "id": str(w.id),
        "user_id": str(w.user_id),
        "coin_amount": w.coin_amount,
        "rupee_amount": w.rupee_amount,
        "conversion_rate": f"{w.conversion_ratio} coins = Rs 1",
        "account_type": w.account_type,
        "status": w.status,
        "remarks": w.remarks,
        "processed_at": w.processed_at.isoformat() if w.processed_at else None,
        "created_at": w.created_at.isoformat(),
    }


@router.get("")
async def wallet_get(user: User = Depends(get_current_user)):
    """Return coin balance and lifetime totals."""
    wallet = await wallets_service.get_wallet(user.id)
    return {
        "coin_balance": wallet.coin_balance if wallet else 0,
        "total_earned": wallet.total_earned if wallet else 0,
        "total_spent": wallet.total_spent if wallet else 0,
    }


@router.get("/transactions")
async def wallet_transactions(
    user: User = Depends(get_current_user),
    page: PageParams = Depends(page_params),
):
    """Return ledger entries for current user (newest first)."""
    entries = await wallets_service.list_transactions(user.id, page.limit, page.offset)
    out = [
        {
            "id": str(e.id),
            "amount": e.amount,
            "type": e.type.value,
            "status": e.status.value,
            "description": e.description,
            "settlement_id": e.settlement_id,
            "created_at": e.created_at.isoformat(),
        }
        for e in entries
    ]
    return {"transactions": out, "limit": page.limit, "offset": page.offset}


@router.post("/withdraw")
async def wallet_withdraw(
    body: WithdrawRequest,
    user: User = Depends(get_current_user),
    rates: RateConfig = Depends(get_rate_config),
):
    req, remaining = await withdrawals_service.create_withdrawal(
        user.id, body.coin_amount, body.account_type, body.account_details, rates
    )
    return {"withdrawal": withdrawal_out(req), "remaining_balance": remaining}


@router.get("/withdrawals")
async def wallet_withdrawals(
    user: User = Depends(get_current_user),
    page: PageParams = Depends(page_params),
):
    items = await withdrawals_service.list_withdrawals(user.id, limit=page.limit, offset=page.offset)
    return {"withdrawals": [withdrawal_out(w) for w in items], "limit": page.limit, "offset": page.offset}
