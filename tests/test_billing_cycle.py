from datetime import date

import pytest

from models import BillingFrequency, BillingTiming, CycleAlignment
from services.billing_cycle import (
     BillingCycleConfig,
     calculate_next_billing_period,
     cycles_per_year,
     format_period_description,
     months_per_cycle,
)
from services.errors import ConfigurationError


def calendar_config(frequency=BillingFrequency.MONTHLY, timing=BillingTiming.ADVANCE, billing_day=1):
     return BillingCycleConfig(
          frequency=frequency,
          timing=timing,
          alignment=CycleAlignment.CALENDAR,
          billing_day=billing_day,
     )


def anniversary_config(join_date, frequency=BillingFrequency.MONTHLY):
     return BillingCycleConfig(
          frequency=frequency,
          timing=BillingTiming.ADVANCE,
          alignment=CycleAlignment.ANNIVERSARY,
          join_date=join_date,
     )


class TestCycleLengths:
     def test_months_per_cycle(self):
          assert months_per_cycle(BillingFrequency.MONTHLY) == 1
          assert months_per_cycle(BillingFrequency.QUARTERLY) == 3
          assert months_per_cycle(BillingFrequency.SEMI_ANNUAL) == 6
          assert months_per_cycle(BillingFrequency.ANNUAL) == 12

     def test_cycles_per_year(self):
          assert cycles_per_year(BillingFrequency.MONTHLY) == 12
          assert cycles_per_year(BillingFrequency.QUARTERLY) == 4
          assert cycles_per_year("SEMI_ANNUAL") == 2
          assert cycles_per_year(BillingFrequency.ANNUAL) == 1


class TestCalendarAlignment:
     def test_monthly_advance(self):
          period = calculate_next_billing_period(calendar_config(), date(2024, 1, 15), invoice_due_days=15)

          assert period.period_start == date(2024, 1, 1)
          assert period.period_end == date(2024, 1, 31)
          assert period.billing_date == date(2024, 1, 1)
          assert period.due_date == date(2024, 1, 16)
          assert period.description == "Jan 2024"

     def test_monthly_arrears_bills_at_period_end(self):
          config = calendar_config(timing=BillingTiming.ARREARS)
          period = calculate_next_billing_period(config, date(2024, 1, 15), invoice_due_days=15)

          assert period.billing_date == date(2024, 1, 31)
          assert period.due_date == date(2024, 2, 15)

     def test_billing_day_clamped_in_february(self):
          period = calculate_next_billing_period(calendar_config(billing_day=31), date(2023, 2, 28))

          assert period.period_start == date(2023, 2, 28)
          assert period.period_end == date(2023, 3, 27)
          assert period.description == "Feb 2023"

     def test_period_end_is_one_cycle_after_the_start(self):
          config = calendar_config(frequency=BillingFrequency.QUARTERLY, billing_day=31)
          period = calculate_next_billing_period(config, date(2024, 4, 30))

          assert period.period_start == date(2024, 4, 30)
          assert period.period_end == date(2024, 7, 29)

     def test_reference_before_billing_day_belongs_to_previous_cycle(self):
          period = calculate_next_billing_period(calendar_config(billing_day=15), date(2024, 3, 10))

          assert period.period_start == date(2024, 2, 15)
          assert period.period_end == date(2024, 3, 14)

     def test_quarterly_uses_january_buckets(self):
          config = calendar_config(frequency=BillingFrequency.QUARTERLY)
          period = calculate_next_billing_period(config, date(2024, 5, 20))

          assert period.period_start == date(2024, 4, 1)
          assert period.period_end == date(2024, 6, 30)
          assert period.description == "Apr - Jun 2024"

     def test_annual_cycle(self):
          config = calendar_config(frequency=BillingFrequency.ANNUAL)
          period = calculate_next_billing_period(config, date(2024, 7, 10))

          assert period.period_start == date(2024, 1, 1)
          assert period.period_end == date(2024, 12, 31)
          assert period.description == "Jan - Dec 2024"

     def test_quarterly_reference_before_billing_day_in_second_month(self):
          config = calendar_config(frequency=BillingFrequency.QUARTERLY, billing_day=15)
          period = calculate_next_billing_period(config, date(2024, 5, 10))

          assert period.period_start == date(2024, 4, 15)
          assert period.period_end == date(2024, 7, 14)

     def test_quarterly_reference_before_billing_day_in_bucket_month(self):
          config = calendar_config(frequency=BillingFrequency.QUARTERLY, billing_day=15)
          period = calculate_next_billing_period(config, date(2024, 4, 10))

          assert period.period_start == date(2024, 1, 15)
          assert period.period_end == date(2024, 4, 14)

     @pytest.mark.parametrize("frequency", list(BillingFrequency))
     @pytest.mark.parametrize("billing_day", [1, 15, 28])
     def test_reference_is_always_inside_the_period(self, frequency, billing_day):
          config = calendar_config(frequency=frequency, billing_day=billing_day)
          references = [date(2024, month, day) for month in range(1, 13) for day in (1, 10, 15, 20, 28)]
          for reference in references:
               period = calculate_next_billing_period(config, reference)
               assert period.period_start <= reference <= period.period_end


class TestAnniversaryAlignment:
     def test_monthly_from_join_day(self):
          period = calculate_next_billing_period(anniversary_config(date(2023, 3, 15)), date(2024, 1, 20))

          assert period.period_start == date(2024, 1, 15)
          assert period.period_end == date(2024, 2, 14)

     def test_before_anniversary_day_uses_previous_cycle(self):
          period = calculate_next_billing_period(anniversary_config(date(2023, 3, 15)), date(2024, 1, 10))

          assert period.period_start == date(2023, 12, 15)
          assert period.period_end == date(2024, 1, 14)
          assert period.description == "Dec 2023"

     def test_quarterly_spanning_years(self):
          config = anniversary_config(date(2023, 3, 15), frequency=BillingFrequency.QUARTERLY)
          period = calculate_next_billing_period(config, date(2024, 1, 20))

          assert period.period_start == date(2023, 12, 15)
          assert period.period_end == date(2024, 3, 14)
          assert period.description == "Dec 2023 - Mar 2024"

     def test_month_end_join_day_is_clamped(self):
          period = calculate_next_billing_period(anniversary_config(date(2024, 1, 31)), date(2024, 2, 29))

          assert period.period_start == date(2024, 2, 29)
          assert period.period_end == date(2024, 3, 28)

     def test_missing_join_date_is_a_configuration_error(self):
          with pytest.raises(ConfigurationError):
               calculate_next_billing_period(anniversary_config(None), date(2024, 1, 20))


def test_period_description_formats():
     assert format_period_description(date(2024, 1, 1), date(2024, 1, 31), BillingFrequency.MONTHLY) == "Jan 2024"
     assert (
          format_period_description(date(2024, 7, 1), date(2025, 6, 30), BillingFrequency.ANNUAL)
          == "Jul 2024 - Jun 2025"
     )
