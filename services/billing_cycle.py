"""
Billing cycle calculator.

Computes the billing period that contains a reference date, plus the
billing date and due date of the invoice for that period, for both cycle
alignments:

- CALENDAR: periods start on a fixed day of month (clamped to the month
  length). Multi-month cycles are anchored on January-based buckets, so a
  quarterly club bills Jan/Apr/Jul/Oct.
- ANNIVERSARY: periods start on the member's join day, every N months
  after the join date.

Pure functions only; safe to call from any scheduler or request.
"""
from calendar import month_abbr
from dataclasses import dataclass
from datetime import date
from typing import Optional

from models.billing_settings import BillingFrequency, BillingTiming, CycleAlignment
from services.errors import ConfigurationError
from utils.calendar_math import DateLike, add_days, add_months, months_between, set_day_of_month, to_date

MONTHS_PER_CYCLE = {
     BillingFrequency.MONTHLY: 1,
     BillingFrequency.QUARTERLY: 3,
     BillingFrequency.SEMI_ANNUAL: 6,
     BillingFrequency.ANNUAL: 12,
}


@dataclass
class BillingCycleConfig:
     """Effective billing configuration for one account."""

     frequency: BillingFrequency
     timing: BillingTiming
     alignment: CycleAlignment
     billing_day: int = 1
     join_date: Optional[date] = None


@dataclass
class BillingPeriod:
     period_start: date
     period_end: date
     billing_date: date
     due_date: date
     description: str


def months_per_cycle(frequency: BillingFrequency) -> int:
     """Number of months in one billing cycle (1, 3, 6 or 12)."""
     return MONTHS_PER_CYCLE[BillingFrequency(frequency)]


def cycles_per_year(frequency: BillingFrequency) -> int:
     """Number of billing cycles per year (12, 4, 2 or 1)."""
     return 12 // months_per_cycle(frequency)


def calculate_next_billing_period(
     config: BillingCycleConfig,
     reference_date: Optional[DateLike] = None,
     invoice_due_days: int = 30,
) -> BillingPeriod:
     """
     Calculate the billing period containing `reference_date`.

     Args:
          config: Billing cycle configuration
          reference_date: Date the period must contain (defaults to today)
          invoice_due_days: Days after the billing date when payment is due

     Returns:
          BillingPeriod with start, end, billing date, due date and a label

     Raises:
          ConfigurationError: If anniversary alignment is requested without a join date
     """
     reference = to_date(reference_date) if reference_date is not None else date.today()
     months = months_per_cycle(config.frequency)

     if CycleAlignment(config.alignment) == CycleAlignment.CALENDAR:
          period_start = _calendar_period_start(reference, config.billing_day, months)
     else:
          if config.join_date is None:
               raise ConfigurationError(
                    "Join date is required for anniversary-based billing alignment"
               )
          period_start = _anniversary_period_start(reference, to_date(config.join_date), months)

     period_end = add_days(add_months(period_start, months), -1)

     if BillingTiming(config.timing) == BillingTiming.ADVANCE:
          billing_date = period_start
     else:
          billing_date = period_end

     return BillingPeriod(
          period_start=period_start,
          period_end=period_end,
          billing_date=billing_date,
          due_date=add_days(billing_date, invoice_due_days),
          description=format_period_description(period_start, period_end, config.frequency),
     )


def format_period_description(period_start: date, period_end: date, frequency: BillingFrequency) -> str:
     """
     Human-readable label for a period.
     Examples: "Jan 2024", "Jan - Mar 2024", "Jul 2024 - Jun 2025"
     """
     start_month = month_abbr[period_start.month]
     end_month = month_abbr[period_end.month]

     if BillingFrequency(frequency) == BillingFrequency.MONTHLY:
          return f"{start_month} {period_start.year}"

     if period_start.year == period_end.year:
          return f"{start_month} - {end_month} {period_start.year}"

     return f"{start_month} {period_start.year} - {end_month} {period_end.year}"


def _shift_cycle(period_start: date, anchor_day: int, months: int) -> date:
     """Start of the cycle `months` away, re-clamped to the anchor day."""
     return set_day_of_month(add_months(period_start.replace(day=1), months), anchor_day)


def _calendar_period_start(reference: date, billing_day: int, months: int) -> date:
     if months > 1:
          cycle_start_month = ((reference.month - 1) // months) * months + 1
          period_start = set_day_of_month(date(reference.year, cycle_start_month, 1), billing_day)
     else:
          period_start = set_day_of_month(reference.replace(day=1), billing_day)

     # Billing day not reached yet in this cycle: the period began a cycle earlier
     if period_start > reference:
          period_start = _shift_cycle(period_start, billing_day, -months)

     return period_start


def _anniversary_period_start(reference: date, join_date: date, months: int) -> date:
     join_day = join_date.day
     total_months_since_join = months_between(join_date, reference)
     # A reference date before the join date resolves to the first period
     completed_cycles = max(0, total_months_since_join // months)

     period_start = _shift_cycle(join_date, join_day, completed_cycles * months)

     if reference < period_start:
          completed_cycles = max(0, completed_cycles - 1)
          period_start = _shift_cycle(join_date, join_day, completed_cycles * months)

     return period_start
