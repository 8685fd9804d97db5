"""Settlement engine: the debit/credit saga against an in-memory store."""

import asyncio

import pytest
from beanie import PydanticObjectId

from app.core.exceptions import InsufficientBalanceError, NotFoundError, PartialSettlementError
from app.models.call_config import RateConfig
from app.models.enums import EventKind, Gender, ProfileTier, TransactionStatus, TransactionType
from app.services.settlement import SettlementEngine

pytestmark = pytest.mark.asyncio

RATES = RateConfig()


async def test_settle_moves_coins_and_records_ledger(store):
    payer = store.add_user(Gender.male, balance=2000)
    payee = store.add_user(Gender.female, ProfileTier.gstar)
    result = await SettlementEngine(store).settle(EventKind.call, payer.id, payee.id, 200, RATES)

    assert result.debit_amount == 200
    assert result.credit_amount == 150
    assert result.commission_amount == 50
    assert store.balances[payer.id] == 1800
    assert store.balances[payee.id] == 150
    assert store.spent[payer.id] == 200
    assert store.earned[payee.id] == 150

    debit = store.transactions[result.debit_transaction_id]
    credit = store.transactions[result.credit_transaction_id]
    assert debit["amount"] == -200 and debit["type"] == TransactionType.call_payment
    assert credit["amount"] == 150 and credit["type"] == TransactionType.call_earning
    assert debit["status"] == credit["status"] == TransactionStatus.completed
    assert debit["settlement_id"] == credit["settlement_id"] == result.settlement_id


async def test_ineligible_settlement_only_debits(store):
    payer = store.add_user(Gender.female, balance=100)
    payee = store.add_user(Gender.male)
    result = await SettlementEngine(store).settle(EventKind.call, payer.id, payee.id, 30, RATES)

    assert not result.eligible
    assert result.credit_transaction_id is None
    assert store.balances[payer.id] == 70
    assert store.balances[payee.id] == 0
    assert len(store.transactions) == 1


async def test_unknown_payee_degrades_to_debit_only(store):
    payer = store.add_user(Gender.male, balance=100)
    result = await SettlementEngine(store).settle(EventKind.gift, payer.id, PydanticObjectId(), 40, RATES)
    assert not result.eligible
    assert store.balances[payer.id] == 60
    tx = store.transactions[result.debit_transaction_id]
    assert tx["type"] == TransactionType.gift_sent


async def test_unknown_payer_is_rejected(store):
    payee = store.add_user(Gender.female)
    with pytest.raises(NotFoundError):
        await SettlementEngine(store).settle(EventKind.gift, PydanticObjectId(), payee.id, 10, RATES)


async def test_insufficient_balance_mutates_nothing(store):
    payer = store.add_user(Gender.male, balance=10)
    payee = store.add_user(Gender.female)
    with pytest.raises(InsufficientBalanceError) as exc:
        await SettlementEngine(store).settle(EventKind.call, payer.id, payee.id, 11, RATES)
    assert exc.value.details == {"balance": 10, "required": 11}
    assert store.balances[payer.id] == 10
    assert store.balances[payee.id] == 0
    assert store.transactions == {}


async def test_credit_failure_is_compensated(store):
    payer = store.add_user(Gender.male, balance=500)
    payee = store.add_user(Gender.female)
    store.fail_credit_for.add(payee.id)

    with pytest.raises(PartialSettlementError) as exc:
        await SettlementEngine(store).settle(EventKind.gift, payer.id, payee.id, 100, RATES)

    details = exc.value.details
    assert exc.value.code == "SETTLEMENT_PARTIAL_FAILURE"
    assert details["compensated"] is True
    assert store.balances[payer.id] == 500
    assert store.spent[payer.id] == 0
    statuses = {t["type"]: t["status"] for t in store.transactions.values()}
    assert statuses[TransactionType.gift_sent] == TransactionStatus.cancelled
    assert statuses[TransactionType.gift_received] == TransactionStatus.failed
    rec = store.reconciliations[details["reconciliation_id"]]
    assert rec["state"] == "compensated"
    assert rec["settlement_id"] == details["settlement_id"]


async def test_failed_compensation_leaves_reconciliation_pending(store):
    payer = store.add_user(Gender.male, balance=500)
    payee = store.add_user(Gender.female)
    store.fail_credit_for.add(payee.id)
    store.fail_refund_for.add(payer.id)

    with pytest.raises(PartialSettlementError) as exc:
        await SettlementEngine(store).settle(EventKind.call, payer.id, payee.id, 100, RATES)

    assert exc.value.details["compensated"] is False
    rec = store.reconciliations[exc.value.details["reconciliation_id"]]
    assert rec["state"] == "pending"
    assert rec["gross_amount"] == 100
    assert store.balances[payer.id] == 400
    # never a completed pair that does not balance
    completed = [t for t in store.transactions.values() if t["status"] == TransactionStatus.completed]
    assert completed == []


async def test_concurrent_debits_never_overdraw(store):
    payer = store.add_user(Gender.male, balance=60)
    payee = store.add_user(Gender.male)
    engine = SettlementEngine(store)

    results = await asyncio.gather(
        engine.settle(EventKind.call, payer.id, payee.id, 50, RATES),
        engine.settle(EventKind.call, payer.id, payee.id, 50, RATES),
        return_exceptions=True,
    )

    ok = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, InsufficientBalanceError)]
    assert len(ok) == 1
    assert len(rejected) == 1
    assert store.balances[payer.id] == 10
