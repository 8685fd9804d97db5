"""Rate table read path: singleton CallConfig document behind a short-lived cache."""

import asyncio
import time
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from app.core.audit import log_event
from app.core.exceptions import BadRequestError
from app.core.logging import get_logger
from app.models.call_config import SINGLETON_KEY, CallConfig, RateConfig

log = get_logger(__name__)


async def load_rate_config() -> RateConfig:
    """Read the stored rates; documented defaults when no document exists."""
    doc = await CallConfig.find_one(CallConfig.key == SINGLETON_KEY)
    if doc is None:
        log.warning("rate_config_missing", msg="using default rates")
        return RateConfig()
    return doc.rates


async def save_rate_config(updates: dict[str, Any], updated_by: str | None = None) -> RateConfig:
    doc = await CallConfig.find_one(CallConfig.key == SINGLETON_KEY)
    current = doc.rates if doc else RateConfig()
    unknown = set(updates) - set(RateConfig.model_fields)
    if unknown:
        raise BadRequestError("Unknown rate fields", {"fields": sorted(unknown)})
    try:
        rates = RateConfig(**{**current.model_dump(), **updates})
    except ValidationError as e:
        raise BadRequestError("Invalid rate configuration", {"errors": e.errors(include_context=False)}) from e
    if doc is None:
        doc = CallConfig(rates=rates, updated_by=updated_by)
        await doc.insert()
    else:
        doc.rates = rates
        doc.updated_by = updated_by
        doc.updated_at = datetime.utcnow()
        await doc.save()
    await log_event(updated_by, "call_config_updated", "call_config", str(doc.id), updates)
    log.info("rate_config_updated", updated_by=updated_by, fields=sorted(updates))
    return rates


class RateConfigProvider:
    """
    Caches the rate table for ttl_seconds. One instance per app (app.state.rates);
    callers get an immutable RateConfig and pass it down explicitly.
    """

    def __init__(self, ttl_seconds: float = 30.0, loader=load_rate_config):
        self.ttl_seconds = ttl_seconds
        self._loader = loader
        self._value: RateConfig | None = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    async def get(self) -> RateConfig:
        if self._fresh():
            return self._value
        async with self._lock:
            if not self._fresh():
                self._value = await self._loader()
                self._loaded_at = time.monotonic()
        return self._value

    def invalidate(self) -> None:
        self._value = None

    async def update(self, updates: dict[str, Any], updated_by: str | None = None) -> RateConfig:
        rates = await save_rate_config(updates, updated_by)
        self._value = rates
        self._loaded_at = time.monotonic()
        return rates

    def _fresh(self) -> bool:
        return self._value is not None and (time.monotonic() - self._loaded_at) < self.ttl_seconds
