from beanie import PydanticObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.deps import get_current_user, get_rate_config, get_settlement_engine
from app.models.call_config import RateConfig
from app.models.call_session import CallSession
from app.models.enums import CallType
from app.models.user import User
from app.services import calls as calls_service
from app.services.settlement import SettlementEngine

router = APIRouter()


class CallStartRequest(BaseModel):
    receiver_id: PydanticObjectId
    call_type: CallType


class CallEndRequest(BaseModel):
    call_id: str = Field(min_length=1)
    duration_minutes: int = Field(ge=0)


def _session_out(s: CallSession) -> dict:
    return {
        "call_id": s.call_id,
        "caller_id": str(s.caller_id),
        "receiver_id": str(s.receiver_id),
        "call_type": s.call_type.value,
        "status": s.status,
        "coins_per_minute": s.coins_per_minute,
        "max_allowed_minutes": s.max_allowed_minutes,
        "duration_minutes": s.duration_minutes,
        "coins_deducted": s.total_coins_deducted,
        "coins_to_receiver": s.coins_to_receiver,
        "admin_commission": s.admin_commission,
        "commission_type": s.commission_type.value,
        "payment_processed": s.payment_processed,
        "end_reason": s.end_reason,
    }


@router.get("/config")
async def call_rates(rates: RateConfig = Depends(get_rate_config)):
    """Per-minute rates and commission percentages shown in the app."""
    return rates.model_dump()


@router.post("/start")
async def call_start(
    body: CallStartRequest,
    user: User = Depends(get_current_user),
    rates: RateConfig = Depends(get_rate_config),
):
    session = await calls_service.start_call(user, body.receiver_id, body.call_type, rates)
    return _session_out(session)


@router.post("/end")
async def call_end(
    body: CallEndRequest,
    user: User = Depends(get_current_user),
    rates: RateConfig = Depends(get_rate_config),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    """End call and settle: caller pays minutes x rate; receiver earns net of commission when eligible."""
    session = await calls_service.end_call(engine, user, body.call_id, body.duration_minutes, rates)
    return {**_session_out(session), "call_ended": session.status == "ended"}
