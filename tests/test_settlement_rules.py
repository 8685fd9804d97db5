"""Settlement rules: eligibility, payee-tier commission, integer split."""

import pytest
from beanie import PydanticObjectId

from app.core.exceptions import InvalidAmountError
from app.models.call_config import RateConfig
from app.models.enums import CommissionType, EventKind, Gender, ProfileTier
from app.services.settlement import Party, compute_settlement, is_credit_eligible

RATES = RateConfig()


def party(gender: Gender, tier: ProfileTier = ProfileTier.basic) -> Party:
    return Party(id=PydanticObjectId(), gender=gender, profile_tier=tier)


class TestComputeSettlement:
    @pytest.mark.parametrize(
        "tier,gross,commission,net,ctype",
        [
            (ProfileTier.basic, 100, 20, 80, CommissionType.admin),
            (ProfileTier.gstar, 200, 50, 150, CommissionType.gstar),
            (ProfileTier.gicon, 1000, 180, 820, CommissionType.gicon),
        ],
    )
    def test_commission_follows_payee_tier(self, tier, gross, commission, net, ctype):
        d = compute_settlement(EventKind.call, party(Gender.male), party(Gender.female, tier), gross, RATES)
        assert d.eligible
        assert d.commission_amount == commission
        assert d.credit_amount == net
        assert d.debit_amount == gross
        assert d.commission_type == ctype

    def test_payer_tier_is_ignored(self):
        payer = party(Gender.male, ProfileTier.gstar)
        d = compute_settlement(EventKind.call, payer, party(Gender.female, ProfileTier.basic), 100, RATES)
        assert d.commission_rate == 20

    def test_commission_truncates(self):
        d = compute_settlement(EventKind.gift, party(Gender.male), party(Gender.female, ProfileTier.gicon), 7, RATES)
        # 7 * 18 / 100 = 1.26
        assert d.commission_amount == 1
        assert d.credit_amount == 6

    def test_commission_plus_credit_is_gross(self):
        payee = party(Gender.female, ProfileTier.gstar)
        for gross in (1, 3, 99, 101, 12345):
            d = compute_settlement(EventKind.gift, party(Gender.male), payee, gross, RATES)
            assert d.commission_amount + d.credit_amount == gross

    @pytest.mark.parametrize(
        "payer_gender,payee_gender",
        [
            (Gender.female, Gender.male),
            (Gender.female, Gender.female),
            (Gender.male, Gender.male),
            (Gender.other, Gender.female),
        ],
    )
    def test_call_only_pays_male_to_female(self, payer_gender, payee_gender):
        d = compute_settlement(EventKind.call, party(payer_gender), party(payee_gender), 100, RATES)
        assert not d.eligible
        assert d.credit_amount == 0
        assert d.commission_amount == 0
        assert d.debit_amount == 100
        assert d.commission_type == CommissionType.none

    def test_gifts_are_gender_agnostic(self):
        d = compute_settlement(EventKind.gift, party(Gender.female), party(Gender.male), 100, RATES)
        assert d.eligible
        assert d.credit_amount == 80

    def test_missing_payee_is_ineligible(self):
        assert not is_credit_eligible(EventKind.gift, party(Gender.male), None)
        d = compute_settlement(EventKind.gift, party(Gender.male), None, 50, RATES)
        assert d.debit_amount == 50
        assert d.credit_amount == 0

    def test_configured_rates_are_used(self):
        rates = RateConfig(gstar_admin_commission=40)
        d = compute_settlement(EventKind.call, party(Gender.male), party(Gender.female, ProfileTier.gstar), 100, rates)
        assert d.commission_amount == 40

    @pytest.mark.parametrize("gross", [0, -5, 1.5, True])
    def test_rejects_non_positive_or_fractional(self, gross):
        with pytest.raises(InvalidAmountError):
            compute_settlement(EventKind.call, party(Gender.male), party(Gender.female), gross, RATES)
