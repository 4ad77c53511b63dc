# services/allocation_service.py
"""
Allocation Service - applying a payment to an account's invoices.

A settlement is planned with calculate_fifo_allocation (pure, oldest invoice
first) and applied with apply_allocations, which re-validates every
allocation against the live balances inside a single transaction:

1. Load the paying account
2. Reserve a receipt number (RCP-YYYY-NNNNN)
3. Insert the Payment and one PaymentAllocation per invoice
4. Move money on each invoice with a guarded delta UPDATE
5. Reduce the account's outstanding balance; park any surplus as credit

An ACCOUNT_CREDIT payment is funded from the account's credit balance, which
is drawn down by the full payment amount before the surplus is parked again.

Any failure rolls the whole settlement back. The audit event is written
only after the transaction has committed.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload, sessionmaker

from models import AccountType, Invoice, InvoiceStatus, Payment, PaymentAllocation, PaymentMethod
from models.account import ACCOUNT_FOREIGN_KEYS, account_column
from models.invoice import OUTSTANDING_STATUSES
from services.audit_service import AuditService
from services.errors import InvalidAllocation, InvalidState, NotFound
from services.ledger_store import LedgerStore
from services.sequence_service import RECEIPT_PREFIX, next_document_number
from utils.calendar_math import utcnow
from utils.money import ZERO, quantize_money

logger = logging.getLogger(__name__)


@dataclass
class AllocationItem:
     invoice_id: int
     allocated_amount: Decimal


@dataclass
class FifoAllocationResult:
     allocations: list = field(default_factory=list)
     total_allocated: Decimal = ZERO
     remaining_payment: Decimal = ZERO
     credit_to_add: Decimal = ZERO


@dataclass
class AppliedAllocation:
     """Outcome of one allocation, with the invoice balance before and after."""
     invoice_id: int
     invoice_number: str
     amount: Decimal
     previous_balance: Decimal
     new_balance: Decimal
     status: InvoiceStatus


@dataclass
class ApplyAllocationResult:
     payment_id: int
     receipt_number: str
     allocations: list
     total_allocated: Decimal
     credit_added: Decimal
     outstanding_balance: Decimal
     credit_balance: Decimal


def _to_payment_datetime(value) -> datetime:
     if value is None:
          return utcnow()
     if isinstance(value, datetime):
          return value
     if isinstance(value, date):
          return datetime(value.year, value.month, value.day)
     raise ValueError(f"Invalid payment date: {value!r}")


class AllocationService:
     """Service class for payment allocation and settlement."""

     def __init__(self, session_factory: sessionmaker, audit: Optional[AuditService] = None):
          self.session_factory = session_factory
          self.audit = audit or AuditService(session_factory)

     @staticmethod
     def calculate_fifo_allocation(invoices: Iterable, payment_amount) -> FifoAllocationResult:
          """
          Plan a FIFO allocation of a payment.

          Invoices are walked in the order given (the caller sorts them oldest
          due date first). Each invoice with a positive balance takes
          min(remaining, balance_due); invoices with nothing owing are skipped.

          Args:
               invoices: Objects exposing `id` and `balance_due`
               payment_amount: Amount received

          Returns:
               FifoAllocationResult where total_allocated + credit_to_add == payment_amount

          Raises:
               InvalidAllocation: If the payment amount is negative
          """
          payment_amount = quantize_money(payment_amount)
          if payment_amount < 0:
               raise InvalidAllocation("Payment amount cannot be negative")

          result = FifoAllocationResult()
          remaining = payment_amount

          for invoice in invoices:
               if remaining <= 0:
                    break
               balance = quantize_money(invoice.balance_due)
               if balance <= 0:
                    continue
               allocated = min(remaining, balance)
               result.allocations.append(AllocationItem(invoice_id=invoice.id, allocated_amount=allocated))
               remaining -= allocated

          result.total_allocated = payment_amount - remaining
          result.remaining_payment = remaining
          result.credit_to_add = max(ZERO, remaining)
          return result

     def get_outstanding_invoices(
          self,
          club_id: int,
          account_id: int,
          account_type: AccountType = AccountType.MEMBER,
     ) -> list[Invoice]:
          """
          Open invoices of an account, oldest due date first.

          Ties are broken by invoice number, then id, so the FIFO order is stable.
          """
          with self.session_factory() as db:
               return list(db.execute(
                    select(Invoice)
                    .where(
                         Invoice.club_id == club_id,
                         account_column(Invoice, account_type) == account_id,
                         Invoice.status.in_(OUTSTANDING_STATUSES),
                         Invoice.balance_due > 0,
                         Invoice.deleted_at.is_(None),
                    )
                    .order_by(Invoice.due_date, Invoice.invoice_number, Invoice.id)
               ).scalars())

     def get_payment(self, club_id: int, payment_id: int) -> Payment:
          """
          Get a payment with its allocations.

          Raises:
               NotFound: If the payment does not exist in the club
          """
          with self.session_factory() as db:
               payment = db.execute(
                    select(Payment)
                    .where(Payment.id == payment_id, Payment.club_id == club_id)
                    .options(selectinload(Payment.allocations))
               ).scalar_one_or_none()
          if payment is None:
               raise NotFound(f"Payment {payment_id} not found")
          return payment

     def list_payments(
          self,
          club_id: int,
          account_id: Optional[int] = None,
          account_type: AccountType = AccountType.MEMBER,
          page: int = 1,
          limit: int = 20,
     ) -> tuple[list[Payment], int]:
          """
          Page through a club's payments, latest payment date first.

          Returns:
               (payments on the requested page, total matching count)
          """
          page = max(1, page)
          limit = max(1, limit)
          conditions = [Payment.club_id == club_id]
          if account_id is not None:
               conditions.append(account_column(Payment, AccountType(account_type)) == account_id)

          with self.session_factory() as db:
               total_count = db.execute(
                    select(func.count()).select_from(Payment).where(*conditions)
               ).scalar_one()
               payments = list(db.execute(
                    select(Payment)
                    .where(*conditions)
                    .options(selectinload(Payment.allocations))
                    .order_by(Payment.payment_date.desc(), Payment.id.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
               ).scalars())
          return payments, total_count

     def apply_allocations(
          self,
          club_id: int,
          account_id: int,
          account_type: AccountType,
          payment_amount,
          method: PaymentMethod,
          allocations: Sequence[AllocationItem],
          *,
          reference_number: Optional[str] = None,
          payment_date=None,
          notes: Optional[str] = None,
          user_id: Optional[str] = None,
          user_email: Optional[str] = None,
     ) -> ApplyAllocationResult:
          """
          Record a payment and apply its allocations atomically.

          Args:
               club_id: Club the payment belongs to
               account_id: Paying member or city-ledger account
               account_type: AccountType of the paying account
               payment_amount: Amount received
               method: PaymentMethod
               allocations: AllocationItems, typically from calculate_fifo_allocation
               reference_number: Optional check / transfer reference
               payment_date: Date of payment (defaults to now); also picks the receipt year
               notes: Optional free text
               user_id, user_email: Acting user, recorded on the audit event

          Returns:
               ApplyAllocationResult with the post-commit account balances

          Raises:
               InvalidAllocation: If an amount is not positive, allocations exceed
                    the payment, an invoice belongs to another account, an
                    allocation exceeds the invoice's live balance or an
                    ACCOUNT_CREDIT payment exceeds the account's credit
               InvalidState: If an invoice is not open (DRAFT, PAID or VOID)
               NotFound: If the account or an invoice is missing
          """
          account_type = AccountType(account_type)
          method = PaymentMethod(method)
          payment_amount = quantize_money(payment_amount)
          if payment_amount <= 0:
               raise InvalidAllocation("Payment amount must be positive")

          items = [
               AllocationItem(invoice_id=item.invoice_id, allocated_amount=quantize_money(item.allocated_amount))
               for item in allocations
          ]
          for item in items:
               if item.allocated_amount <= 0:
                    raise InvalidAllocation(f"Allocation to invoice {item.invoice_id} must be positive")
          total_allocated = sum((item.allocated_amount for item in items), ZERO)
          if total_allocated > payment_amount:
               raise InvalidAllocation(
                    f"Total allocations {total_allocated} exceed the payment amount {payment_amount}"
               )
          credit_to_add = payment_amount - total_allocated
          paid_on = _to_payment_datetime(payment_date)

          applied = []
          with self.session_factory.begin() as db:
               LedgerStore.get_account(db, club_id, account_type, account_id)
               if method == PaymentMethod.ACCOUNT_CREDIT:
                    LedgerStore.draw_account_credit(db, club_id, account_type, account_id, payment_amount)

               receipt_number = next_document_number(db, club_id, RECEIPT_PREFIX, paid_on.year)

               payment = Payment(
                    club_id=club_id,
                    receipt_number=receipt_number,
                    amount=payment_amount,
                    method=method,
                    payment_date=paid_on,
                    reference_number=reference_number,
                    notes=notes,
               )
               setattr(payment, ACCOUNT_FOREIGN_KEYS[account_type], account_id)
               db.add(payment)
               db.flush()

               for item in items:
                    invoice = LedgerStore.get_invoice(db, club_id, item.invoice_id)
                    if not invoice.belongs_to(account_type, account_id):
                         raise InvalidAllocation(
                              f"Invoice {invoice.invoice_number} does not belong to this account"
                         )
                    if invoice.status not in OUTSTANDING_STATUSES:
                         raise InvalidState(
                              f"Invoice {invoice.invoice_number} is {invoice.status.value} and cannot take payments"
                         )
                    previous_balance = invoice.balance_due
                    if item.allocated_amount > previous_balance:
                         raise InvalidAllocation(
                              f"Allocation amount {item.allocated_amount} exceeds invoice "
                              f"{invoice.invoice_number} balance {previous_balance}"
                         )

                    db.add(PaymentAllocation(
                         payment_id=payment.id,
                         invoice_id=invoice.id,
                         amount=item.allocated_amount,
                    ))
                    db.flush()

                    invoice = LedgerStore.apply_invoice_payment(db, invoice.id, item.allocated_amount)
                    applied.append(AppliedAllocation(
                         invoice_id=invoice.id,
                         invoice_number=invoice.invoice_number,
                         amount=item.allocated_amount,
                         previous_balance=previous_balance,
                         new_balance=invoice.balance_due,
                         status=invoice.status,
                    ))

               account = LedgerStore.apply_account_delta(
                    db,
                    club_id,
                    account_type,
                    account_id,
                    outstanding_delta=-total_allocated,
                    credit_delta=credit_to_add,
               )

               result = ApplyAllocationResult(
                    payment_id=payment.id,
                    receipt_number=receipt_number,
                    allocations=applied,
                    total_allocated=total_allocated,
                    credit_added=credit_to_add,
                    outstanding_balance=account.outstanding_balance,
                    credit_balance=account.credit_balance,
               )

          logger.info(
               "Payment %s recorded for %s %s: %s allocated across %d invoice(s), %s credit",
               receipt_number, account_type.value, account_id, total_allocated, len(applied), credit_to_add,
          )

          self.audit.append(
               club_id=club_id,
               aggregate_type="Payment",
               aggregate_id=result.payment_id,
               event_type="BATCH_SETTLEMENT",
               data={
                    "receipt_number": receipt_number,
                    "account_type": account_type.value,
                    "account_id": account_id,
                    "amount": payment_amount,
                    "method": method.value,
                    "total_allocated": total_allocated,
                    "credit_added": credit_to_add,
                    "allocations": [
                         {"invoice_id": a.invoice_id, "amount": a.amount, "status": a.status.value}
                         for a in applied
                    ],
               },
               user_id=user_id,
               user_email=user_email,
          )
          return result

     def settle_account(
          self,
          club_id: int,
          account_id: int,
          account_type: AccountType,
          payment_amount,
          method: PaymentMethod,
          **options,
     ) -> ApplyAllocationResult:
          """
          Pay down an account oldest invoice first.

          The plan is made from a snapshot of the open invoices; apply_allocations
          re-checks it against live balances, so a stale plan aborts instead of
          overdrawing an invoice.
          """
          invoices = self.get_outstanding_invoices(club_id, account_id, account_type)
          plan = self.calculate_fifo_allocation(invoices, payment_amount)
          return self.apply_allocations(
               club_id,
               account_id,
               account_type,
               payment_amount,
               method,
               plan.allocations,
               **options,
          )
