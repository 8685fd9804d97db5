import asyncio
import os
import uuid
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from beanie import PydanticObjectId
from httpx import ASGITransport, AsyncClient

# Use test DB
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "coinlive_test")
os.environ.setdefault("MONGODB_TIMEOUT_MS", "1500")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")

from app.core.exceptions import InsufficientBalanceError  # noqa: E402
from app.models.enums import Gender, ProfileTier, TransactionStatus, TransactionType  # noqa: E402
from app.services.settlement import Party  # noqa: E402


class InMemoryWalletStore:
    """WalletStore double: same contract as MongoWalletStore, one lock per process."""

    def __init__(self):
        self.users: dict[PydanticObjectId, Party] = {}
        self.balances: dict[PydanticObjectId, int] = {}
        self.earned: dict[PydanticObjectId, int] = {}
        self.spent: dict[PydanticObjectId, int] = {}
        self.transactions: dict[str, dict[str, Any]] = {}
        self.reconciliations: dict[str, dict[str, Any]] = {}
        self.fail_credit_for: set[PydanticObjectId] = set()
        self.fail_refund_for: set[PydanticObjectId] = set()
        self._lock = asyncio.Lock()

    def add_user(self, gender: Gender, tier: ProfileTier = ProfileTier.basic, balance: int = 0) -> Party:
        party = Party(id=PydanticObjectId(), gender=gender, profile_tier=tier)
        self.users[party.id] = party
        self.balances[party.id] = balance
        return party

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_balance(self, user_id):
        return self.balances.get(user_id, 0)

    async def apply_delta(self, user_id, delta, *, earned=0, spent=0):
        async with self._lock:
            await asyncio.sleep(0)
            if delta > 0 and user_id in self.fail_credit_for and earned:
                raise RuntimeError("storage unavailable")
            if delta > 0 and user_id in self.fail_refund_for and spent < 0:
                raise RuntimeError("storage unavailable")
            current = self.balances.get(user_id, 0)
            if current + delta < 0:
                raise InsufficientBalanceError(details={"balance": current, "required": -delta})
            self.balances[user_id] = current + delta
            self.earned[user_id] = self.earned.get(user_id, 0) + earned
            self.spent[user_id] = self.spent.get(user_id, 0) + spent
            return self.balances[user_id]

    async def record_transaction(self, user_id, amount, tx_type: TransactionType, *, status=TransactionStatus.pending, **kwargs):
        tx_id = uuid.uuid4().hex
        self.transactions[tx_id] = {"user_id": user_id, "amount": amount, "type": tx_type, "status": status, **kwargs}
        return tx_id

    async def set_transaction_status(self, tx_id, status):
        self.transactions[tx_id]["status"] = status

    async def record_reconciliation(self, **fields):
        rec_id = uuid.uuid4().hex
        self.reconciliations[rec_id] = fields
        return rec_id


@pytest.fixture
def store() -> InMemoryWalletStore:
    return InMemoryWalletStore()


@pytest_asyncio.fixture
async def mongo():
    """Beanie on a throwaway database; skips when no MongoDB is reachable."""
    from pymongo.errors import PyMongoError

    from app.db.init import init_db
    db_name = f"coinlive_test_{uuid.uuid4().hex[:8]}"
    try:
        client = await init_db(db_name)
    except PyMongoError as e:
        pytest.skip(f"MongoDB not available: {e}")
    yield client
    await client.drop_database(db_name)
    client.close()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from app.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
