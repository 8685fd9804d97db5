import pytest
from pydantic import ValidationError

from app.models.call_config import RateConfig
from app.models.enums import CallType, ProfileTier
from app.services.call_config import RateConfigProvider


def test_defaults():
    rates = RateConfig()
    assert rates.commission_percent(ProfileTier.basic) == 20
    assert rates.commission_percent(ProfileTier.gstar) == 25
    assert rates.commission_percent(ProfileTier.gicon) == 18
    assert rates.coin_to_rupee_ratio == 10


def test_unknown_tier_uses_basic_rate():
    rates = RateConfig(admin_commission_percent=30)
    assert rates.commission_percent("both") == 30
    assert rates.commission_percent(None) == 30


def test_gstar_receivers_have_their_own_call_rates():
    rates = RateConfig()
    assert rates.coins_per_minute(CallType.video, ProfileTier.basic) == 10
    assert rates.coins_per_minute(CallType.audio, ProfileTier.gicon) == 5
    assert rates.coins_per_minute(CallType.video, ProfileTier.gstar) == 15
    assert rates.coins_per_minute("audio", "gstar") == 8


def test_rates_are_immutable():
    rates = RateConfig()
    with pytest.raises(ValidationError):
        rates.admin_commission_percent = 50


@pytest.mark.parametrize("field,value", [("admin_commission_percent", 101), ("gicon_admin_commission", -1), ("coin_to_rupee_ratio", 0)])
def test_out_of_range_values_rejected(field, value):
    with pytest.raises(ValueError):
        RateConfig(**{field: value})


@pytest.mark.asyncio
async def test_provider_caches_until_ttl():
    calls = []

    async def loader():
        calls.append(1)
        return RateConfig(admin_commission_percent=10 + len(calls))

    provider = RateConfigProvider(ttl_seconds=60, loader=loader)
    first = await provider.get()
    second = await provider.get()
    assert first is second
    assert len(calls) == 1

    provider.invalidate()
    third = await provider.get()
    assert third.admin_commission_percent == 12


@pytest.mark.asyncio
async def test_provider_reloads_when_stale():
    calls = []

    async def loader():
        calls.append(1)
        return RateConfig()

    provider = RateConfigProvider(ttl_seconds=0, loader=loader)
    await provider.get()
    await provider.get()
    assert len(calls) == 2
