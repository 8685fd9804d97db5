"""Wallet primitive and ledger against MongoDB (skipped without a server)."""

import asyncio

import pytest

from app.core.exceptions import ConflictError, InsufficientBalanceError, InvalidAmountError
from app.models.enums import Gender, TransactionStatus, TransactionType
from app.models.user import User
from app.models.wallet import Wallet
from app.services import wallets as wallets_service

pytestmark = pytest.mark.asyncio


async def _user(name: str, balance: int = 0) -> User:
    user = User(username=name, gender=Gender.male)
    await user.insert()
    if balance:
        await wallets_service.apply_delta(user.id, balance)
    return user


async def test_balance_without_wallet_is_zero(mongo):
    user = await _user("nowallet")
    assert await wallets_service.get_balance(user.id) == 0


async def test_delta_is_added_not_assigned(mongo):
    user = await _user("delta", balance=2000)
    assert await wallets_service.apply_delta(user.id, -28) == 1972
    assert await wallets_service.get_balance(user.id) == 1972


async def test_underflow_rejected_and_balance_unchanged(mongo):
    user = await _user("underflow", balance=20)
    with pytest.raises(InsufficientBalanceError):
        await wallets_service.apply_delta(user.id, -21)
    assert await wallets_service.get_balance(user.id) == 20


async def test_debit_without_wallet_rejected(mongo):
    user = await _user("emptydebit")
    with pytest.raises(InsufficientBalanceError):
        await wallets_service.apply_delta(user.id, -1)
    assert await Wallet.find_one(Wallet.user_id == user.id) is None


async def test_totals_tracked(mongo):
    user = await _user("totals", balance=100)
    await wallets_service.apply_delta(user.id, -40, spent=40)
    await wallets_service.apply_delta(user.id, 15, earned=15)
    wallet = await wallets_service.get_wallet(user.id)
    assert (wallet.coin_balance, wallet.total_spent, wallet.total_earned) == (75, 40, 15)


async def test_fractional_delta_rejected(mongo):
    user = await _user("fraction", balance=10)
    with pytest.raises(InvalidAmountError):
        await wallets_service.apply_delta(user.id, -1.5)


async def test_concurrent_debits_serialize(mongo):
    user = await _user("race", balance=60)
    results = await asyncio.gather(
        wallets_service.apply_delta(user.id, -50),
        wallets_service.apply_delta(user.id, -50),
        return_exceptions=True,
    )
    assert sorted(type(r).__name__ for r in results) == ["InsufficientBalanceError", "int"]
    assert await wallets_service.get_balance(user.id) == 10


async def test_transaction_status_only_leaves_pending(mongo):
    user = await _user("ledger")
    tx = await wallets_service.record_transaction(user.id, 10, TransactionType.recharge)
    assert tx.status == TransactionStatus.pending
    done = await wallets_service.set_transaction_status(tx.id, TransactionStatus.completed)
    assert done.status == TransactionStatus.completed
    with pytest.raises(ConflictError):
        await wallets_service.set_transaction_status(tx.id, TransactionStatus.cancelled)


async def test_mongo_store_party(mongo):
    user = User(username="party", gender=Gender.female)
    await user.insert()
    party = await wallets_service.MongoWalletStore().get_user(user.id)
    assert party.gender == Gender.female
    assert party.profile_tier.value == "basic"
