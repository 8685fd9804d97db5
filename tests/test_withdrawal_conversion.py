from decimal import Decimal

import pytest

from app.core.exceptions import InvalidAmountError
from app.services.withdrawals import coins_to_rupees


def test_converts_by_ratio():
    assert coins_to_rupees(100, 10) == Decimal("10.00")
    assert coins_to_rupees(10, 10) == Decimal("1.00")
    assert coins_to_rupees(250, 25) == Decimal("10.00")


def test_rupees_have_two_places():
    assert str(coins_to_rupees(30, 10)) == "3.00"


@pytest.mark.parametrize("coins", [7, 15, 101])
def test_non_multiples_rejected(coins):
    with pytest.raises(InvalidAmountError) as exc:
        coins_to_rupees(coins, 10)
    assert exc.value.code == "INVALID_AMOUNT"


def test_minimum_is_one_rupee():
    with pytest.raises(InvalidAmountError) as exc:
        coins_to_rupees(5, 10)
    assert exc.value.details["minimum"] == 10


@pytest.mark.parametrize("coins", [0, -10])
def test_non_positive_rejected(coins):
    with pytest.raises(InvalidAmountError):
        coins_to_rupees(coins, 10)


def test_ratio_of_one():
    assert coins_to_rupees(3, 1) == Decimal("3.00")
