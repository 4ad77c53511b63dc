"""
Late fee calculator.

Days overdue are whole days between the due date and the calculation
date. No fee accrues while the invoice is inside its grace period, which
includes invoices that are not yet due.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from models.billing_settings import LateFeeType
from utils.calendar_math import DateLike, days_between, to_date
from utils.money import ZERO, MoneyLike, quantize_money, to_money

HUNDRED = Decimal("100")

# (upper bound of effective days overdue, multiplier); None = no upper bound
TIER_MULTIPLIERS = (
     (30, Decimal("1")),
     (60, Decimal("1.5")),
     (90, Decimal("2")),
     (None, Decimal("2.5")),
)


@dataclass
class LateFeeConfig:
     type: LateFeeType
     amount: MoneyLike = ZERO
     percentage: MoneyLike = ZERO
     max_fee: Optional[MoneyLike] = None
     grace_period_days: int = 0


@dataclass
class LateFeeResult:
     fee_amount: Decimal
     days_overdue: int
     applied_date: date
     description: str
     is_within_grace_period: bool


def tier_multiplier(effective_days_overdue: int) -> Decimal:
     """Step multiplier for TIERED fees: 1x / 1.5x / 2x / 2.5x."""
     for upper_bound, multiplier in TIER_MULTIPLIERS:
          if upper_bound is None or effective_days_overdue <= upper_bound:
               return multiplier
     return TIER_MULTIPLIERS[-1][1]


def should_apply_late_fee(
     due_date: DateLike,
     grace_period_days: int,
     calculation_date: Optional[DateLike] = None,
) -> bool:
     """True once the invoice is past due by more than the grace period."""
     calculation_date = to_date(calculation_date) if calculation_date is not None else date.today()
     return days_between(due_date, calculation_date) > grace_period_days


def calculate_late_fee(
     invoice_balance: MoneyLike,
     due_date: DateLike,
     config: LateFeeConfig,
     calculation_date: Optional[DateLike] = None,
) -> LateFeeResult:
     """
     Calculate the late fee owed on an overdue balance.

     Args:
          invoice_balance: Outstanding balance of the invoice
          due_date: Invoice due date
          config: Fee policy and grace period
          calculation_date: Date the fee is assessed (defaults to today)

     Returns:
          LateFeeResult; fee_amount is 0 within the grace period
     """
     applied_date = to_date(calculation_date) if calculation_date is not None else date.today()
     balance = to_money(invoice_balance)
     grace = config.grace_period_days or 0
     days_overdue = days_between(due_date, applied_date)

     if days_overdue <= grace:
          if days_overdue <= 0:
               description = "Invoice is not yet overdue"
          else:
               description = f"Within grace period ({days_overdue} of {grace} days)"
          return LateFeeResult(
               fee_amount=ZERO,
               days_overdue=days_overdue,
               applied_date=applied_date,
               description=description,
               is_within_grace_period=True,
          )

     effective_days = days_overdue - grace
     fee_type = LateFeeType(config.type)
     percentage = to_money(config.percentage or 0)

     if fee_type == LateFeeType.FIXED:
          fee = to_money(config.amount or 0)
          description = f"Fixed late fee ({days_overdue} days overdue)"
     elif fee_type == LateFeeType.PERCENTAGE:
          fee = balance * percentage / HUNDRED
          description = f"{percentage}% late fee on {quantize_money(balance)} ({days_overdue} days overdue)"
     else:
          multiplier = tier_multiplier(effective_days)
          fee = balance * percentage / HUNDRED * multiplier
          description = (
               f"Tiered late fee: {percentage}% x {multiplier} "
               f"({effective_days} days past grace period)"
          )

     if config.max_fee is not None:
          max_fee = to_money(config.max_fee)
          if max_fee > 0 and fee > max_fee:
               fee = max_fee
               description += f", capped at {quantize_money(max_fee)}"

     return LateFeeResult(
          fee_amount=quantize_money(fee),
          days_overdue=days_overdue,
          applied_date=applied_date,
          description=description,
          is_within_grace_period=False,
     )
