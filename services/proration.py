"""
Proration calculator - partial-period charges.

Dates are normalized to plain dates before comparison. Amounts are
Decimal and rounded half-up to cents; the factor is reported to 4 places.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from models.billing_settings import ProrationMethod
from utils.calendar_math import DateLike, days_between, months_between_rounded_up, to_date
from utils.money import ZERO, MoneyLike, quantize_money, to_money

FACTOR_PLACES = Decimal("0.0001")
ONE = Decimal("1")


@dataclass
class ProrationConfig:
     method: ProrationMethod
     period_start: DateLike
     period_end: DateLike
     effective_date: DateLike
     full_period_amount: MoneyLike


@dataclass
class ProrationResult:
     prorated_amount: Decimal
     days_in_period: int
     days_prorated: int
     proration_factor: Decimal
     description: str


def calculate_proration(config: ProrationConfig) -> ProrationResult:
     """
     Calculate the charge for the part of a period that is in effect.

     - effective_date on or before period_start: full amount
     - effective_date on or after period_end: nothing
     - NONE: full amount (proration disabled)
     - DAILY: days remaining / days in period
     - MONTHLY: months remaining / months in period, partial months rounded up
     """
     method = ProrationMethod(config.method)
     period_start = to_date(config.period_start)
     period_end = to_date(config.period_end)
     effective_date = to_date(config.effective_date)
     full_amount = to_money(config.full_period_amount)

     days_in_period = days_between(period_start, period_end)

     if effective_date <= period_start:
          return ProrationResult(
               prorated_amount=quantize_money(full_amount),
               days_in_period=days_in_period,
               days_prorated=days_in_period,
               proration_factor=ONE.quantize(FACTOR_PLACES),
               description="Full period charge (effective on or before period start)",
          )

     if effective_date >= period_end:
          return ProrationResult(
               prorated_amount=ZERO,
               days_in_period=days_in_period,
               days_prorated=0,
               proration_factor=Decimal("0").quantize(FACTOR_PLACES),
               description="No charge (effective on or after period end)",
          )

     days_remaining = days_between(effective_date, period_end)

     if method == ProrationMethod.NONE:
          return ProrationResult(
               prorated_amount=quantize_money(full_amount),
               days_in_period=days_in_period,
               days_prorated=days_in_period,
               proration_factor=ONE.quantize(FACTOR_PLACES),
               description="Proration disabled, full period charge",
          )

     if method == ProrationMethod.DAILY:
          factor = Decimal(days_remaining) / Decimal(days_in_period)
          description = f"Prorated {days_remaining} of {days_in_period} days"
     else:
          total_months = max(1, months_between_rounded_up(period_start, period_end))
          months_remaining = months_between_rounded_up(effective_date, period_end)
          factor = min(ONE, Decimal(months_remaining) / Decimal(total_months))
          description = f"Prorated {months_remaining} of {total_months} months"

     return ProrationResult(
          prorated_amount=quantize_money(full_amount * factor),
          days_in_period=days_in_period,
          days_prorated=days_remaining,
          proration_factor=factor.quantize(FACTOR_PLACES, rounding=ROUND_HALF_UP),
          description=description,
     )
