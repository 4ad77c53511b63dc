from datetime import date, timedelta
from decimal import Decimal

import pytest

from models import LateFeeType
from services.late_fee import LateFeeConfig, calculate_late_fee, should_apply_late_fee, tier_multiplier

DUE = date(2024, 1, 1)
BALANCE = Decimal("1000.00")


def fee_after(days, config):
     return calculate_late_fee(BALANCE, DUE, config, DUE + timedelta(days=days))


class TestGracePeriod:
     def test_not_yet_due(self):
          result = fee_after(-3, LateFeeConfig(type=LateFeeType.FIXED, amount=Decimal("50"), grace_period_days=5))

          assert result.fee_amount == Decimal("0")
          assert result.is_within_grace_period is True
          assert result.days_overdue == -3

     @pytest.mark.parametrize("fee_type", [LateFeeType.PERCENTAGE, LateFeeType.FIXED, LateFeeType.TIERED])
     def test_grace_boundary(self, fee_type):
          config = LateFeeConfig(
               type=fee_type,
               amount=Decimal("50"),
               percentage=Decimal("1.5"),
               grace_period_days=15,
          )

          on_boundary = fee_after(15, config)
          assert on_boundary.fee_amount == Decimal("0")
          assert on_boundary.is_within_grace_period is True

          past_boundary = fee_after(16, config)
          assert past_boundary.fee_amount > 0
          assert past_boundary.is_within_grace_period is False

     def test_should_apply_late_fee(self):
          assert should_apply_late_fee(DUE, 15, date(2024, 1, 16)) is False
          assert should_apply_late_fee(DUE, 15, date(2024, 1, 17)) is True


class TestFeeTypes:
     def test_fixed(self):
          result = fee_after(20, LateFeeConfig(type=LateFeeType.FIXED, amount=Decimal("50")))

          assert result.fee_amount == Decimal("50.00")
          assert result.days_overdue == 20

     def test_percentage(self):
          result = fee_after(20, LateFeeConfig(type=LateFeeType.PERCENTAGE, percentage=Decimal("1.5")))

          assert result.fee_amount == Decimal("15.00")

     @pytest.mark.parametrize(
          "days, multiplier",
          [(30, "1"), (31, "1.5"), (60, "1.5"), (61, "2"), (91, "2.5")],
     )
     def test_tier_multiplier(self, days, multiplier):
          assert tier_multiplier(days) == Decimal(multiplier)

     @pytest.mark.parametrize(
          "days, expected",
          [(30, "20.00"), (31, "30.00"), (60, "30.00"), (61, "40.00"), (91, "50.00")],
     )
     def test_tiered_fee(self, days, expected):
          result = fee_after(days, LateFeeConfig(type=LateFeeType.TIERED, percentage=Decimal("2")))

          assert result.fee_amount == Decimal(expected)

     def test_tiers_count_days_past_grace(self):
          config = LateFeeConfig(type=LateFeeType.TIERED, percentage=Decimal("2"), grace_period_days=10)

          # 40 days overdue, 30 past grace: still the first tier
          assert fee_after(40, config).fee_amount == Decimal("20.00")
          assert fee_after(41, config).fee_amount == Decimal("30.00")

     def test_fee_is_capped(self):
          config = LateFeeConfig(type=LateFeeType.TIERED, percentage=Decimal("2"), max_fee=Decimal("25"))
          result = fee_after(91, config)

          assert result.fee_amount == Decimal("25.00")
          assert "capped" in result.description

     def test_zero_cap_means_no_cap(self):
          config = LateFeeConfig(type=LateFeeType.FIXED, amount=Decimal("50"), max_fee=Decimal("0"))

          assert fee_after(5, config).fee_amount == Decimal("50.00")
