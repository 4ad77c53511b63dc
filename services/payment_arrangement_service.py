# services/payment_arrangement_service.py
"""
Payment Arrangement Service - installment plans over open invoices.

Lifecycle:
     DRAFT --activate--> ACTIVE --last installment settled--> COMPLETED
     DRAFT | ACTIVE --cancel--> CANCELLED

Every state change is a guarded UPDATE (`WHERE status = ...`), so two
concurrent requests cannot both pay the same installment or both move the
arrangement out of the same state.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload, sessionmaker

from models import (
     AccountType,
     ArrangementFrequency,
     ArrangementInstallment,
     ArrangementInvoice,
     ArrangementStatus,
     InstallmentStatus,
     Invoice,
     Payment,
     PaymentArrangement,
)
from models.account import ACCOUNT_FOREIGN_KEYS, account_column
from models.payment_arrangement import SETTLED_INSTALLMENT_STATUSES, TERMINAL_ARRANGEMENT_STATUSES
from services.audit_service import AuditService
from services.errors import InvalidState, NotFound
from services.ledger_store import LedgerStore
from services.sequence_service import ARRANGEMENT_PREFIX, next_document_number
from utils.calendar_math import DateLike, add_days, add_months, to_date, utcnow
from utils.money import ZERO, floor_money, quantize_money

logger = logging.getLogger(__name__)

FREQUENCY_STEP_DAYS = {
     ArrangementFrequency.WEEKLY: 7,
     ArrangementFrequency.BIWEEKLY: 14,
}


def installment_due_date(start_date: DateLike, frequency: ArrangementFrequency, index: int) -> date:
     """Due date of the installment at zero-based `index`; monthly steps are counted from the start date."""
     frequency = ArrangementFrequency(frequency)
     if frequency in FREQUENCY_STEP_DAYS:
          return add_days(start_date, FREQUENCY_STEP_DAYS[frequency] * index)
     return add_months(start_date, index)


def split_installments(total_amount: Decimal, installment_count: int) -> list[Decimal]:
     """
     Split a total into equal installments floored to the cent.
     The last installment absorbs the remainder: 100.00 / 3 -> [33.33, 33.33, 33.34]
     """
     if installment_count < 1:
          raise ValueError("Installment count must be at least 1")
     base = floor_money(total_amount / installment_count)
     last = total_amount - base * (installment_count - 1)
     return [base] * (installment_count - 1) + [last]


class PaymentArrangementService:
     """Service class for payment arrangement business logic."""

     def __init__(self, session_factory: sessionmaker, audit: Optional[AuditService] = None):
          self.session_factory = session_factory
          self.audit = audit or AuditService(session_factory)

     # ------------------------------------------------------------------
     # Reads
     # ------------------------------------------------------------------

     @staticmethod
     def _load(db: Session, club_id: int, arrangement_id: int) -> PaymentArrangement:
          arrangement = db.execute(
               select(PaymentArrangement)
               .where(PaymentArrangement.id == arrangement_id, PaymentArrangement.club_id == club_id)
               .options(
                    selectinload(PaymentArrangement.installments),
                    selectinload(PaymentArrangement.invoice_links),
               )
               .execution_options(populate_existing=True)
          ).scalar_one_or_none()
          if arrangement is None:
               raise NotFound(f"Payment arrangement {arrangement_id} not found")
          return arrangement

     def get_arrangement(self, club_id: int, arrangement_id: int) -> PaymentArrangement:
          """
          Get an arrangement with its installments and invoice links.

          Raises:
               NotFound: If the arrangement does not exist in the club
          """
          with self.session_factory() as db:
               return self._load(db, club_id, arrangement_id)

     def list_arrangements(
          self,
          club_id: int,
          account_id: Optional[int] = None,
          status: Optional[ArrangementStatus] = None,
          page: int = 1,
          limit: int = 20,
          account_type: AccountType = AccountType.MEMBER,
     ) -> tuple[list[PaymentArrangement], int]:
          """
          Page through a club's arrangements, newest first.

          Returns:
               (arrangements on the requested page, total matching count)
          """
          page = max(1, page)
          limit = max(1, limit)
          conditions = [PaymentArrangement.club_id == club_id]
          if account_id is not None:
               conditions.append(account_column(PaymentArrangement, account_type) == account_id)
          if status is not None:
               conditions.append(PaymentArrangement.status == ArrangementStatus(status))

          with self.session_factory() as db:
               total_count = db.execute(
                    select(func.count()).select_from(PaymentArrangement).where(*conditions)
               ).scalar_one()
               arrangements = list(db.execute(
                    select(PaymentArrangement)
                    .where(*conditions)
                    .options(
                         selectinload(PaymentArrangement.installments),
                         selectinload(PaymentArrangement.invoice_links),
                    )
                    .order_by(PaymentArrangement.created_at.desc(), PaymentArrangement.id.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
               ).scalars())
          return arrangements, total_count

     # ------------------------------------------------------------------
     # Creation
     # ------------------------------------------------------------------

     def create_arrangement(
          self,
          club_id: int,
          account_id: int,
          invoice_ids: list[int],
          installment_count: int,
          frequency: ArrangementFrequency,
          start_date: DateLike,
          *,
          account_type: AccountType = AccountType.MEMBER,
          notes: Optional[str] = None,
          user_id: Optional[str] = None,
     ) -> PaymentArrangement:
          """
          Create a DRAFT arrangement covering the given invoices.

          The arrangement total is the sum of the invoices' current balances,
          split into `installment_count` installments due every week, two
          weeks or month from `start_date`.

          Args:
               club_id: Club the arrangement belongs to
               account_id: Member or city-ledger account owing the invoices
               invoice_ids: Invoices covered by the arrangement
               installment_count: Number of installments (>= 1)
               frequency: ArrangementFrequency
               start_date: Due date of the first installment
               account_type: AccountType of the account
               notes: Optional free text
               user_id: Creating user

          Returns:
               The created PaymentArrangement with installments

          Raises:
               ValueError: If installment_count < 1 or no invoices are given
               NotFound: If the account or any invoice is missing, deleted or not the account's
               InvalidState: If the invoices have nothing left to pay
          """
          if installment_count is None or installment_count < 1:
               raise ValueError("Installment count must be at least 1")
          if not invoice_ids:
               raise ValueError("At least one invoice is required")
          account_type = AccountType(account_type)
          frequency = ArrangementFrequency(frequency)
          start = to_date(start_date)
          unique_ids = list(dict.fromkeys(invoice_ids))

          with self.session_factory.begin() as db:
               LedgerStore.get_account(db, club_id, account_type, account_id)

               invoices = list(db.execute(
                    select(Invoice).where(
                         Invoice.id.in_(unique_ids),
                         Invoice.club_id == club_id,
                         account_column(Invoice, account_type) == account_id,
                         Invoice.deleted_at.is_(None),
                    )
               ).scalars())
               if len(invoices) != len(unique_ids):
                    raise NotFound("One or more invoices not found")

               total_amount = quantize_money(sum((invoice.balance_due for invoice in invoices), ZERO))
               if total_amount <= 0:
                    raise InvalidState("Selected invoices have no outstanding balance")

               amounts = split_installments(total_amount, installment_count)
               installments = [
                    ArrangementInstallment(
                         installment_no=index + 1,
                         due_date=installment_due_date(start, frequency, index),
                         amount=amount,
                         paid_amount=ZERO,
                         status=InstallmentStatus.PENDING,
                    )
                    for index, amount in enumerate(amounts)
               ]

               arrangement = PaymentArrangement(
                    club_id=club_id,
                    arrangement_number=next_document_number(db, club_id, ARRANGEMENT_PREFIX, utcnow().year),
                    installment_count=installment_count,
                    frequency=frequency,
                    total_amount=total_amount,
                    paid_amount=ZERO,
                    remaining_amount=total_amount,
                    start_date=start,
                    end_date=installments[-1].due_date,
                    status=ArrangementStatus.DRAFT,
                    notes=notes,
                    created_by=str(user_id) if user_id is not None else None,
                    installments=installments,
                    invoice_links=[ArrangementInvoice(invoice_id=invoice_id) for invoice_id in unique_ids],
               )
               setattr(arrangement, ACCOUNT_FOREIGN_KEYS[account_type], account_id)
               db.add(arrangement)
               db.flush()
               arrangement = self._load(db, club_id, arrangement.id)

          logger.info(
               "Payment arrangement %s created for %s %s: %s over %d installment(s)",
               arrangement.arrangement_number, account_type.value, account_id, total_amount, installment_count,
          )
          self.audit.append(
               club_id=club_id,
               aggregate_type="PaymentArrangement",
               aggregate_id=arrangement.id,
               event_type="CREATED",
               data={
                    "arrangement_number": arrangement.arrangement_number,
                    "total_amount": total_amount,
                    "installment_count": installment_count,
                    "frequency": frequency.value,
                    "invoice_ids": unique_ids,
               },
               user_id=user_id,
          )
          return arrangement

     # ------------------------------------------------------------------
     # Installments
     # ------------------------------------------------------------------

     @staticmethod
     def _get_installment(db: Session, arrangement_id: int, installment_id: int) -> ArrangementInstallment:
          installment = db.execute(
               select(ArrangementInstallment)
               .where(
                    ArrangementInstallment.id == installment_id,
                    ArrangementInstallment.arrangement_id == arrangement_id,
               )
               .execution_options(populate_existing=True)
          ).scalar_one_or_none()
          if installment is None:
               raise NotFound(f"Installment {installment_id} not found")
          return installment

     @staticmethod
     def _settle_status(db: Session, arrangement_id: int, otherwise: ArrangementStatus) -> ArrangementStatus:
          """COMPLETED once every installment is PAID or WAIVED, else `otherwise`."""
          open_count = db.execute(
               select(func.count())
               .select_from(ArrangementInstallment)
               .where(
                    ArrangementInstallment.arrangement_id == arrangement_id,
                    ArrangementInstallment.status.not_in(SETTLED_INSTALLMENT_STATUSES),
               )
          ).scalar_one()
          status = ArrangementStatus.COMPLETED if open_count == 0 else otherwise
          db.execute(
               update(PaymentArrangement)
               .where(PaymentArrangement.id == arrangement_id)
               .values(status=status)
               .execution_options(synchronize_session=False)
          )
          return status

     def record_installment_payment(
          self,
          club_id: int,
          arrangement_id: int,
          installment_id: int,
          amount,
          *,
          payment_id: Optional[int] = None,
          user_id: Optional[str] = None,
     ) -> PaymentArrangement:
          """
          Mark an installment PAID and move the amount onto the arrangement.

          The arrangement becomes COMPLETED when this settles its last open
          installment, otherwise ACTIVE.

          Raises:
               ValueError: If the amount is not positive
               NotFound: If the arrangement, installment or payment is missing
               InvalidState: If the arrangement is closed or the installment is not pending
          """
          amount = quantize_money(amount)
          if amount <= 0:
               raise ValueError("Installment payment amount must be positive")

          with self.session_factory.begin() as db:
               arrangement = self._load(db, club_id, arrangement_id)
               if arrangement.status in TERMINAL_ARRANGEMENT_STATUSES:
                    raise InvalidState(f"Arrangement {arrangement.arrangement_number} is {arrangement.status.value}")

               installment = self._get_installment(db, arrangement_id, installment_id)
               if installment.status != InstallmentStatus.PENDING:
                    raise InvalidState(f"Installment {installment.installment_no} is already {installment.status.value}")

               if payment_id is not None:
                    payment = db.execute(
                         select(Payment.id).where(Payment.id == payment_id, Payment.club_id == club_id)
                    ).scalar_one_or_none()
                    if payment is None:
                         raise NotFound(f"Payment {payment_id} not found")

               result = db.execute(
                    update(ArrangementInstallment)
                    .where(
                         ArrangementInstallment.id == installment_id,
                         ArrangementInstallment.status == InstallmentStatus.PENDING,
                    )
                    .values(
                         paid_amount=ArrangementInstallment.paid_amount + amount,
                         status=InstallmentStatus.PAID,
                         payment_id=payment_id,
                         paid_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
               )
               if result.rowcount != 1:
                    raise InvalidState(f"Installment {installment.installment_no} is already paid")

               db.execute(
                    update(PaymentArrangement)
                    .where(PaymentArrangement.id == arrangement_id)
                    .values(
                         paid_amount=PaymentArrangement.paid_amount + amount,
                         remaining_amount=PaymentArrangement.remaining_amount - amount,
                    )
                    .execution_options(synchronize_session=False)
               )
               status = self._settle_status(db, arrangement_id, ArrangementStatus.ACTIVE)
               arrangement = self._load(db, club_id, arrangement_id)

          logger.info(
               "Installment %s of arrangement %s paid (%s), arrangement now %s",
               installment.installment_no, arrangement.arrangement_number, amount, status.value,
          )
          self.audit.append(
               club_id=club_id,
               aggregate_type="PaymentArrangement",
               aggregate_id=arrangement_id,
               event_type="INSTALLMENT_PAID",
               data={
                    "installment_id": installment_id,
                    "installment_no": installment.installment_no,
                    "amount": amount,
                    "payment_id": payment_id,
                    "status": status.value,
               },
               user_id=user_id,
          )
          return arrangement

     def waive_installment(
          self,
          club_id: int,
          arrangement_id: int,
          installment_id: int,
          *,
          user_id: Optional[str] = None,
     ) -> PaymentArrangement:
          """
          Waive a pending installment; its unpaid part leaves remaining_amount.

          Raises:
               NotFound: If the arrangement or installment is missing
               InvalidState: If the arrangement is closed or the installment is not pending
          """
          with self.session_factory.begin() as db:
               arrangement = self._load(db, club_id, arrangement_id)
               if arrangement.status in TERMINAL_ARRANGEMENT_STATUSES:
                    raise InvalidState(f"Arrangement {arrangement.arrangement_number} is {arrangement.status.value}")

               installment = self._get_installment(db, arrangement_id, installment_id)
               if installment.status != InstallmentStatus.PENDING:
                    raise InvalidState(f"Installment {installment.installment_no} is already {installment.status.value}")

               waived_amount = installment.amount - installment.paid_amount
               result = db.execute(
                    update(ArrangementInstallment)
                    .where(
                         ArrangementInstallment.id == installment_id,
                         ArrangementInstallment.status == InstallmentStatus.PENDING,
                    )
                    .values(status=InstallmentStatus.WAIVED)
                    .execution_options(synchronize_session=False)
               )
               if result.rowcount != 1:
                    raise InvalidState(f"Installment {installment.installment_no} is no longer pending")

               db.execute(
                    update(PaymentArrangement)
                    .where(PaymentArrangement.id == arrangement_id)
                    .values(remaining_amount=PaymentArrangement.remaining_amount - waived_amount)
                    .execution_options(synchronize_session=False)
               )
               status = self._settle_status(db, arrangement_id, arrangement.status)
               arrangement = self._load(db, club_id, arrangement_id)

          logger.info(
               "Installment %s of arrangement %s waived (%s), arrangement now %s",
               installment.installment_no, arrangement.arrangement_number, waived_amount, status.value,
          )
          self.audit.append(
               club_id=club_id,
               aggregate_type="PaymentArrangement",
               aggregate_id=arrangement_id,
               event_type="INSTALLMENT_WAIVED",
               data={"installment_id": installment_id, "amount": waived_amount, "status": status.value},
               user_id=user_id,
          )
          return arrangement

     # ------------------------------------------------------------------
     # Transitions
     # ------------------------------------------------------------------

     def _transition(
          self,
          club_id: int,
          arrangement_id: int,
          allowed_from: tuple,
          values: dict,
          error_message: str,
     ) -> PaymentArrangement:
          with self.session_factory.begin() as db:
               arrangement = self._load(db, club_id, arrangement_id)
               if arrangement.status not in allowed_from:
                    raise InvalidState(error_message)
               result = db.execute(
                    update(PaymentArrangement)
                    .where(
                         PaymentArrangement.id == arrangement_id,
                         PaymentArrangement.status == arrangement.status,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
               )
               if result.rowcount != 1:
                    raise InvalidState(error_message)
               return self._load(db, club_id, arrangement_id)

     def activate_arrangement(self, club_id: int, arrangement_id: int, user_id: Optional[str] = None) -> PaymentArrangement:
          """
          Approve a DRAFT arrangement.

          Raises:
               NotFound: If the arrangement does not exist in the club
               InvalidState: If the arrangement is not a draft
          """
          arrangement = self._transition(
               club_id,
               arrangement_id,
               (ArrangementStatus.DRAFT,),
               {
                    "status": ArrangementStatus.ACTIVE,
                    "approved_by": str(user_id) if user_id is not None else None,
                    "approved_at": utcnow(),
               },
               "Only draft arrangements can be activated",
          )
          logger.info("Payment arrangement %s activated", arrangement.arrangement_number)
          self.audit.append(
               club_id=club_id,
               aggregate_type="PaymentArrangement",
               aggregate_id=arrangement_id,
               event_type="ACTIVATED",
               user_id=user_id,
          )
          return arrangement

     def cancel_arrangement(self, club_id: int, arrangement_id: int, user_id: Optional[str] = None) -> PaymentArrangement:
          """
          Cancel a DRAFT or ACTIVE arrangement.

          Raises:
               NotFound: If the arrangement does not exist in the club
               InvalidState: If the arrangement is already completed or cancelled
          """
          arrangement = self._transition(
               club_id,
               arrangement_id,
               (ArrangementStatus.DRAFT, ArrangementStatus.ACTIVE),
               {"status": ArrangementStatus.CANCELLED, "cancelled_at": utcnow()},
               "Cannot cancel a completed or already cancelled arrangement",
          )
          logger.info("Payment arrangement %s cancelled", arrangement.arrangement_number)
          self.audit.append(
               club_id=club_id,
               aggregate_type="PaymentArrangement",
               aggregate_id=arrangement_id,
               event_type="CANCELLED",
               user_id=user_id,
          )
          return arrangement
