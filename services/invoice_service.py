# services/invoice_service.py
"""
Invoice Service - Business logic layer for the invoice lifecycle.

     DRAFT --send--> SENT --payments--> PARTIALLY_PAID / PAID
     SENT / PARTIALLY_PAID --overdue sweep--> OVERDUE
     DRAFT / SENT / OVERDUE (nothing paid) --void--> VOID

Methods take the caller's Session and never commit; the caller owns the
transaction. An account's outstanding balance follows its open invoices:
it grows when an invoice is sent and shrinks when an open invoice is voided
or paid.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models import AccountType, Invoice
from models.account import ACCOUNT_FOREIGN_KEYS, account_column
from models.invoice import OUTSTANDING_STATUSES, InvoiceStatus
from services.errors import InvalidState
from services.ledger_store import LedgerStore
from services.sequence_service import next_document_number
from utils.calendar_math import DateLike, to_date, utcnow
from utils.money import ZERO, quantize_money

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"


class InvoiceService:
     """Service class for invoice-related business logic."""

     @staticmethod
     def create_invoice(
          db: Session,
          club_id: int,
          account_id: int,
          total_amount,
          due_date: DateLike,
          account_type: AccountType = AccountType.MEMBER,
          invoice_date: Optional[DateLike] = None,
          internal_notes: Optional[str] = None,
     ) -> Invoice:
          """
          Create a DRAFT invoice for a member or city-ledger account.

          Args:
               db: SQLAlchemy database session
               club_id: Club issuing the invoice
               account_id: Billed account
               total_amount: Invoice total
               due_date: Payment due date
               account_type: AccountType of the billed account
               invoice_date: Issue date (default: today)
               internal_notes: Optional staff notes

          Returns:
               Created Invoice object, numbered INV-YYYY-NNNNN

          Raises:
               ValueError: If the total is negative
               NotFound: If the account does not exist in the club
          """
          total_amount = quantize_money(total_amount)
          if total_amount < 0:
               raise ValueError("Invoice total cannot be negative")
          account_type = AccountType(account_type)
          LedgerStore.get_account(db, club_id, account_type, account_id)

          issued = to_date(invoice_date) if invoice_date is not None else utcnow().date()
          invoice = Invoice(
               club_id=club_id,
               invoice_number=next_document_number(db, club_id, INVOICE_PREFIX, issued.year),
               total_amount=total_amount,
               paid_amount=ZERO,
               balance_due=total_amount,
               invoice_date=issued,
               due_date=to_date(due_date),
               status=InvoiceStatus.DRAFT,
               internal_notes=internal_notes,
          )
          setattr(invoice, ACCOUNT_FOREIGN_KEYS[account_type], account_id)

          db.add(invoice)
          db.flush()
          db.refresh(invoice)

          return invoice

     @staticmethod
     def get_invoice(db: Session, club_id: int, invoice_id: int) -> Invoice:
          return LedgerStore.get_invoice(db, club_id, invoice_id)

     @staticmethod
     def list_invoices(
          db: Session,
          club_id: int,
          account_id: Optional[int] = None,
          account_type: AccountType = AccountType.MEMBER,
          status: Optional[InvoiceStatus] = None,
     ) -> list[Invoice]:
          """Live invoices of a club, oldest due date first."""
          query = select(Invoice).where(Invoice.club_id == club_id, Invoice.deleted_at.is_(None))
          if account_id is not None:
               query = query.where(account_column(Invoice, account_type) == account_id)
          if status is not None:
               query = query.where(Invoice.status == InvoiceStatus(status))
          return list(db.execute(query.order_by(Invoice.due_date, Invoice.invoice_number, Invoice.id)).scalars())

     @staticmethod
     def send_invoice(db: Session, club_id: int, invoice_id: int) -> Invoice:
          """
          Issue a DRAFT invoice; its balance is added to the account's outstanding balance.

          Raises:
               NotFound: If the invoice does not exist
               InvalidState: If the invoice is not a draft
          """
          invoice = LedgerStore.get_invoice(db, club_id, invoice_id)
          if invoice.status != InvoiceStatus.DRAFT:
               raise InvalidState("Only draft invoices can be sent")

          result = db.execute(
               update(Invoice)
               .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.DRAFT)
               .values(status=InvoiceStatus.SENT, sent_at=utcnow())
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               raise InvalidState("Only draft invoices can be sent")

          LedgerStore.apply_account_delta(
               db, club_id, invoice.account_type, invoice.account_id, outstanding_delta=invoice.balance_due,
          )
          logger.info("Invoice %s sent", invoice.invoice_number)
          return LedgerStore.reload_invoice(db, invoice_id)

     @staticmethod
     def void_invoice(db: Session, club_id: int, invoice_id: int, reason: str = "") -> Invoice:
          """
          Void an invoice that has received no payments. VOID is terminal.

          Raises:
               NotFound: If the invoice does not exist
               InvalidState: If the invoice has payments or is already void
          """
          invoice = LedgerStore.get_invoice(db, club_id, invoice_id)
          if invoice.status == InvoiceStatus.VOID:
               raise InvalidState("Invoice is already void")
          if invoice.paid_amount > 0:
               raise InvalidState("Cannot void an invoice with payments")

          was_open = invoice.status in OUTSTANDING_STATUSES
          notes = f"{invoice.internal_notes or ''}\n[VOIDED] {reason}".strip()
          result = db.execute(
               update(Invoice)
               .where(
                    Invoice.id == invoice_id,
                    Invoice.paid_amount == 0,
                    Invoice.status == invoice.status,
               )
               .values(status=InvoiceStatus.VOID, internal_notes=notes)
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               raise InvalidState("Invoice changed while it was being voided")

          if was_open:
               LedgerStore.apply_account_delta(
                    db, club_id, invoice.account_type, invoice.account_id, outstanding_delta=-invoice.balance_due,
               )
          logger.info("Invoice %s voided: %s", invoice.invoice_number, reason)
          return LedgerStore.reload_invoice(db, invoice_id)

     @staticmethod
     def soft_delete_invoice(db: Session, club_id: int, invoice_id: int) -> Invoice:
          """
          Hide a DRAFT or VOID invoice. Invoices are never physically deleted.

          Raises:
               NotFound: If the invoice does not exist or is already deleted
               InvalidState: If the invoice has been issued and not voided
          """
          invoice = LedgerStore.get_invoice(db, club_id, invoice_id)
          if invoice.status not in (InvoiceStatus.DRAFT, InvoiceStatus.VOID):
               raise InvalidState("Only draft or void invoices can be deleted")

          db.execute(
               update(Invoice)
               .where(Invoice.id == invoice_id)
               .values(deleted_at=utcnow())
               .execution_options(synchronize_session=False)
          )
          return LedgerStore.reload_invoice(db, invoice_id)

     @staticmethod
     def mark_overdue_invoices(
          db: Session,
          club_id: Optional[int] = None,
          as_of: Optional[DateLike] = None,
     ) -> int:
          """
          Mark SENT and PARTIALLY_PAID invoices past their due date as OVERDUE.

          This should be called by a scheduled job daily.

          Args:
               db: SQLAlchemy database session
               club_id: Restrict the sweep to one club (default: all clubs)
               as_of: Reference date (default: today)

          Returns:
               Number of invoices marked as overdue
          """
          today = to_date(as_of) if as_of is not None else utcnow().date()
          query = (
               update(Invoice)
               .where(
                    Invoice.status.in_((InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID)),
                    Invoice.due_date < today,
                    Invoice.balance_due > 0,
                    Invoice.deleted_at.is_(None),
               )
               .values(status=InvoiceStatus.OVERDUE)
               .execution_options(synchronize_session=False)
          )
          if club_id is not None:
               query = query.where(Invoice.club_id == club_id)

          count = db.execute(query).rowcount
          logger.info("Marked %d invoice(s) overdue as of %s", count, today)
          return count

     @staticmethod
     def recalculate_account_balance(
          db: Session,
          club_id: int,
          account_id: int,
          account_type: AccountType = AccountType.MEMBER,
     ) -> Decimal:
          """
          Reset an account's outstanding balance to the sum of its open invoice balances.

          Returns:
               The recalculated outstanding balance
          """
          account_type = AccountType(account_type)
          account = LedgerStore.recalculate_outstanding_balance(db, club_id, account_type, account_id)
          return quantize_money(account.outstanding_balance)

