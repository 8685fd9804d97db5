"""
Call/gift settlement: who pays, who earns, what the platform keeps.

compute_settlement() is pure. SettlementEngine applies a decision to wallets as a
debit-then-credit saga: if the payee credit fails after the payer was debited, the
debit is reversed (or, failing that, left pending) and a reconciliation item is
persisted before PartialSettlementError is raised.
"""

import uuid
from typing import Any, Protocol

from beanie import PydanticObjectId
from pydantic import BaseModel, ConfigDict

from app.core.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    NotFoundError,
    PartialSettlementError,
)
from app.core.logging import get_logger
from app.models.call_config import RateConfig
from app.models.enums import (
    CommissionType,
    EventKind,
    Gender,
    ProfileTier,
    TransactionStatus,
    TransactionType,
)

log = get_logger(__name__)

DEBIT_TYPES = {EventKind.call: TransactionType.call_payment, EventKind.gift: TransactionType.gift_sent}
CREDIT_TYPES = {EventKind.call: TransactionType.call_earning, EventKind.gift: TransactionType.gift_received}

_COMMISSION_TYPES = {
    ProfileTier.basic: CommissionType.admin,
    ProfileTier.gstar: CommissionType.gstar,
    ProfileTier.gicon: CommissionType.gicon,
}


class Party(BaseModel):
    """The parts of a user that settlement looks at."""

    model_config = ConfigDict(frozen=True)

    id: PydanticObjectId
    gender: Gender
    profile_tier: ProfileTier = ProfileTier.basic


class SettlementDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_kind: EventKind
    gross_amount: int
    eligible: bool
    commission_type: CommissionType
    commission_rate: int
    commission_amount: int
    debit_amount: int
    credit_amount: int


class SettlementResult(SettlementDecision):
    settlement_id: str
    payer_id: PydanticObjectId
    payee_id: PydanticObjectId | None = None
    debit_transaction_id: str
    credit_transaction_id: str | None = None


class WalletStore(Protocol):
    """Storage the engine needs. See app.services.wallets.MongoWalletStore."""

    async def get_user(self, user_id: PydanticObjectId) -> Party | None: ...

    async def get_balance(self, user_id: PydanticObjectId) -> int: ...

    async def apply_delta(
        self,
        user_id: PydanticObjectId,
        delta: int,
        *,
        earned: int = 0,
        spent: int = 0,
    ) -> int: ...

    async def record_transaction(
        self,
        user_id: PydanticObjectId,
        amount: int,
        tx_type: TransactionType,
        *,
        status: TransactionStatus = TransactionStatus.pending,
        description: str = "",
        settlement_id: str | None = None,
        transaction_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str: ...

    async def set_transaction_status(self, tx_id: str, status: TransactionStatus) -> None: ...

    async def record_reconciliation(self, **fields: Any) -> str: ...


def is_credit_eligible(kind: EventKind, payer: Party, payee: Party | None) -> bool:
    """Calls pay the receiver only for male caller -> female receiver; gifts always pay a known receiver."""
    if payee is None:
        return False
    if kind == EventKind.gift:
        return True
    return payer.gender == Gender.male and payee.gender == Gender.female


def commission_for_tier(tier: ProfileTier | str | None, rates: RateConfig) -> tuple[CommissionType, int]:
    tier = ProfileTier.parse(tier)
    return _COMMISSION_TYPES[tier], rates.commission_percent(tier)


def compute_settlement(
    kind: EventKind,
    payer: Party,
    payee: Party | None,
    gross_amount: int,
    rates: RateConfig,
) -> SettlementDecision:
    if isinstance(gross_amount, bool) or not isinstance(gross_amount, int) or gross_amount <= 0:
        raise InvalidAmountError("Amount must be a positive whole number of coins", {"gross_amount": gross_amount})
    kind = EventKind(kind)
    if not is_credit_eligible(kind, payer, payee):
        return SettlementDecision(
            event_kind=kind,
            gross_amount=gross_amount,
            eligible=False,
            commission_type=CommissionType.none,
            commission_rate=0,
            commission_amount=0,
            debit_amount=gross_amount,
            credit_amount=0,
        )
    commission_type, rate = commission_for_tier(payee.profile_tier, rates)
    commission = gross_amount * rate // 100
    return SettlementDecision(
        event_kind=kind,
        gross_amount=gross_amount,
        eligible=True,
        commission_type=commission_type,
        commission_rate=rate,
        commission_amount=commission,
        debit_amount=gross_amount,
        credit_amount=gross_amount - commission,
    )


class SettlementEngine:
    def __init__(self, store: WalletStore):
        self.store = store

    async def settle(
        self,
        kind: EventKind,
        payer_id: PydanticObjectId,
        payee_id: PydanticObjectId | None,
        gross_amount: int,
        rates: RateConfig,
        *,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> SettlementResult:
        """Debit payer, credit payee when eligible, record the ledger entries."""
        kind = EventKind(kind)
        payer = await self.store.get_user(payer_id)
        if payer is None:
            raise NotFoundError("Payer not found")
        payee = await self.store.get_user(payee_id) if payee_id is not None else None
        if payee is None:
            log.warning("settlement_unknown_payee", payer_id=str(payer_id), payee_id=str(payee_id), kind=kind.value)
        decision = compute_settlement(kind, payer, payee, gross_amount, rates)

        balance = await self.store.get_balance(payer.id)
        if balance < decision.debit_amount:
            log.info(
                "settlement_rejected",
                reason="insufficient_balance",
                payer_id=str(payer.id),
                balance=balance,
                required=decision.debit_amount,
            )
            raise InsufficientBalanceError(
                details={"balance": balance, "required": decision.debit_amount},
            )

        settlement_id = uuid.uuid4().hex
        meta = {**(metadata or {}), "payee_id": str(payee_id) if payee_id else None}
        debit_tx = await self.store.record_transaction(
            payer.id,
            -decision.debit_amount,
            DEBIT_TYPES[kind],
            description=description,
            settlement_id=settlement_id,
            metadata={**meta, "commission_type": decision.commission_type.value},
        )
        try:
            await self.store.apply_delta(payer.id, -decision.debit_amount, spent=decision.debit_amount)
        except InsufficientBalanceError:
            # lost a race with another debit; nothing was applied
            await self.store.set_transaction_status(debit_tx, TransactionStatus.failed)
            log.info("settlement_rejected", reason="insufficient_balance", payer_id=str(payer.id))
            raise

        credit_tx = None
        if decision.eligible and decision.credit_amount > 0:
            try:
                credit_tx = await self.store.record_transaction(
                    payee.id,
                    decision.credit_amount,
                    CREDIT_TYPES[kind],
                    description=description,
                    settlement_id=settlement_id,
                    metadata={
                        **meta,
                        "payer_id": str(payer.id),
                        "commission_amount": decision.commission_amount,
                        "commission_type": decision.commission_type.value,
                    },
                )
                await self.store.apply_delta(payee.id, decision.credit_amount, earned=decision.credit_amount)
            except Exception as exc:
                await self._compensate(settlement_id, decision, payer, payee, debit_tx, credit_tx, exc)

        await self.store.set_transaction_status(debit_tx, TransactionStatus.completed)
        if credit_tx is not None:
            await self.store.set_transaction_status(credit_tx, TransactionStatus.completed)

        log.info(
            "settlement_completed",
            settlement_id=settlement_id,
            kind=kind.value,
            payer_id=str(payer.id),
            payee_id=str(payee_id) if payee_id else None,
            gross=decision.gross_amount,
            credit=decision.credit_amount,
            commission=decision.commission_amount,
            commission_type=decision.commission_type.value,
        )
        return SettlementResult(
            **decision.model_dump(),
            settlement_id=settlement_id,
            payer_id=payer.id,
            payee_id=payee_id,
            debit_transaction_id=debit_tx,
            credit_transaction_id=credit_tx,
        )

    async def _compensate(
        self,
        settlement_id: str,
        decision: SettlementDecision,
        payer: Party,
        payee: Party,
        debit_tx: str,
        credit_tx: str | None,
        cause: Exception,
    ) -> None:
        """Reverse the payer debit after a failed credit, persist the outcome, raise."""
        log.error(
            "settlement_partial_failure",
            settlement_id=settlement_id,
            payer_id=str(payer.id),
            payee_id=str(payee.id),
            error=str(cause),
        )
        compensated = True
        try:
            await self.store.apply_delta(payer.id, decision.debit_amount, spent=-decision.debit_amount)
        except Exception:
            compensated = False
            log.exception("settlement_compensation_failed", settlement_id=settlement_id, payer_id=str(payer.id))

        reconciliation_id = None
        try:
            if credit_tx is not None:
                await self.store.set_transaction_status(credit_tx, TransactionStatus.failed)
            if compensated:
                await self.store.set_transaction_status(debit_tx, TransactionStatus.cancelled)
            reconciliation_id = await self.store.record_reconciliation(
                settlement_id=settlement_id,
                event_kind=decision.event_kind.value,
                payer_id=payer.id,
                payee_id=payee.id,
                gross_amount=decision.gross_amount,
                credit_amount=decision.credit_amount,
                state="compensated" if compensated else "pending",
                reason=str(cause)[:2000],
                debit_transaction_id=debit_tx,
                credit_transaction_id=credit_tx,
            )
        except Exception:
            log.exception("reconciliation_record_failed", settlement_id=settlement_id, compensated=compensated)

        if compensated:
            log.warning("settlement_compensated", settlement_id=settlement_id, reconciliation_id=reconciliation_id)
        raise PartialSettlementError(
            details={
                "settlement_id": settlement_id,
                "compensated": compensated,
                "reconciliation_id": reconciliation_id,
            },
        ) from cause
