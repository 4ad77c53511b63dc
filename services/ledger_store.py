"""
Ledger store - the only place invoice and account balances are written.

Every balance write is a single SQL UPDATE with an expression delta
(`balance_due = balance_due - :amount`), issued inside the caller's
transaction. Nothing here reads a balance into Python, changes it and
writes it back, so two settlements touching the same invoice cannot lose
each other's update.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models import Invoice, InvoiceStatus
from models.account import AccountType, account_column, account_model
from models.invoice import OUTSTANDING_STATUSES
from services.errors import InvalidAllocation, NotFound
from utils.calendar_math import utcnow


class LedgerStore:
     """Delta-only repository over invoices and billable accounts."""

     # ------------------------------------------------------------------
     # Fresh reads
     # ------------------------------------------------------------------

     @staticmethod
     def get_invoice(db: Session, club_id: int, invoice_id: int) -> Invoice:
          """
          Transaction-fresh read of a live invoice in the club.

          Raises:
               NotFound: If the invoice is missing, soft-deleted or in another club
          """
          invoice = db.execute(
               select(Invoice)
               .where(
                    Invoice.id == invoice_id,
                    Invoice.club_id == club_id,
                    Invoice.deleted_at.is_(None),
               )
               .execution_options(populate_existing=True)
          ).scalar_one_or_none()
          if invoice is None:
               raise NotFound(f"Invoice {invoice_id} not found")
          return invoice

     @staticmethod
     def reload_invoice(db: Session, invoice_id: int) -> Invoice:
          return db.execute(
               select(Invoice)
               .where(Invoice.id == invoice_id)
               .execution_options(populate_existing=True)
          ).scalar_one()

     @staticmethod
     def get_account(db: Session, club_id: int, account_type: AccountType, account_id: int):
          """
          Transaction-fresh read of a member or city-ledger account.

          Raises:
               NotFound: If the account is missing or in another club
          """
          model = account_model(account_type)
          account = db.execute(
               select(model)
               .where(model.id == account_id, model.club_id == club_id)
               .execution_options(populate_existing=True)
          ).scalar_one_or_none()
          if account is None:
               raise NotFound(f"{AccountType(account_type).value} account {account_id} not found")
          return account

     # ------------------------------------------------------------------
     # Deltas
     # ------------------------------------------------------------------

     @staticmethod
     def apply_invoice_payment(db: Session, invoice_id: int, amount: Decimal) -> Invoice:
          """
          Move `amount` from balance_due to paid_amount and re-derive the status.

          The UPDATE only matches while the live balance still covers the
          amount; if a concurrent settlement got there first nothing is
          written and InvalidAllocation is raised, aborting the transaction.
          """
          result = db.execute(
               update(Invoice)
               .where(Invoice.id == invoice_id, Invoice.balance_due >= amount)
               .values(
                    paid_amount=Invoice.paid_amount + amount,
                    balance_due=Invoice.balance_due - amount,
               )
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               raise InvalidAllocation(
                    f"Allocation amount {amount} exceeds the current balance of invoice {invoice_id}"
               )

          invoice = LedgerStore.reload_invoice(db, invoice_id)

          new_status = derive_invoice_status(invoice)
          values = {"status": new_status}
          if new_status == InvoiceStatus.PAID:
               values["paid_date"] = utcnow()
          db.execute(
               update(Invoice)
               .where(Invoice.id == invoice_id)
               .values(**values)
               .execution_options(synchronize_session=False)
          )
          return LedgerStore.reload_invoice(db, invoice_id)

     @staticmethod
     def apply_account_delta(
          db: Session,
          club_id: int,
          account_type: AccountType,
          account_id: int,
          outstanding_delta: Decimal = Decimal("0"),
          credit_delta: Decimal = Decimal("0"),
     ):
          """
          Add the given deltas to the account's outstanding and credit balances.
          Returns the account re-read after the update.
          """
          model = account_model(account_type)
          values = {}
          if outstanding_delta:
               values["outstanding_balance"] = model.outstanding_balance + outstanding_delta
          if credit_delta:
               values["credit_balance"] = model.credit_balance + credit_delta

          if values:
               result = db.execute(
                    update(model)
                    .where(model.id == account_id, model.club_id == club_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
               )
               if result.rowcount != 1:
                    raise NotFound(f"{AccountType(account_type).value} account {account_id} not found")

          return LedgerStore.get_account(db, club_id, account_type, account_id)

     @staticmethod
     def draw_account_credit(
          db: Session,
          club_id: int,
          account_type: AccountType,
          account_id: int,
          amount: Decimal,
     ):
          """
          Take `amount` out of the account's credit balance.

          Guarded like apply_invoice_payment: the UPDATE only matches while the
          live credit covers the amount, otherwise InvalidAllocation is raised.
          """
          model = account_model(account_type)
          result = db.execute(
               update(model)
               .where(
                    model.id == account_id,
                    model.club_id == club_id,
                    model.credit_balance >= amount,
               )
               .values(credit_balance=model.credit_balance - amount)
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               raise InvalidAllocation(
                    f"Account credit does not cover {amount} for "
                    f"{AccountType(account_type).value} account {account_id}"
               )
          return LedgerStore.get_account(db, club_id, account_type, account_id)

     @staticmethod
     def recalculate_outstanding_balance(
          db: Session,
          club_id: int,
          account_type: AccountType,
          account_id: int,
     ):
          """
          Reset the outstanding balance to the sum of the account's open invoice
          balances in one UPDATE with a scalar subquery.
          Returns the account re-read after the update.
          """
          model = account_model(account_type)
          open_balances = (
               select(func.coalesce(func.sum(Invoice.balance_due), 0))
               .where(
                    Invoice.club_id == club_id,
                    account_column(Invoice, account_type) == account_id,
                    Invoice.status.in_(OUTSTANDING_STATUSES),
                    Invoice.deleted_at.is_(None),
               )
               .scalar_subquery()
          )
          result = db.execute(
               update(model)
               .where(model.id == account_id, model.club_id == club_id)
               .values(outstanding_balance=open_balances)
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               raise NotFound(f"{AccountType(account_type).value} account {account_id} not found")
          return LedgerStore.get_account(db, club_id, account_type, account_id)


def derive_invoice_status(invoice: Invoice) -> Optional[InvoiceStatus]:
     """
     Status implied by the invoice's amounts:
     nothing left to pay -> PAID, something paid -> PARTIALLY_PAID, else unchanged.
     """
     if invoice.balance_due <= 0:
          return InvoiceStatus.PAID
     if invoice.paid_amount > 0:
          return InvoiceStatus.PARTIALLY_PAID
     return invoice.status
