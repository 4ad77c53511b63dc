import enum
from sqlalchemy import (
     Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey, Enum, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from .base import Base
from .account import AccountType


class InvoiceStatus(str, enum.Enum):
     """Enumeration for invoice payment status."""
     DRAFT = "DRAFT"
     SENT = "SENT"
     PARTIALLY_PAID = "PARTIALLY_PAID"
     PAID = "PAID"
     OVERDUE = "OVERDUE"
     VOID = "VOID"


# Statuses an invoice can be in while it still expects money
OUTSTANDING_STATUSES = (
     InvoiceStatus.SENT,
     InvoiceStatus.PARTIALLY_PAID,
     InvoiceStatus.OVERDUE,
)


class Invoice(Base):
     """
     Invoice model - a bill issued to a member or a city-ledger account.

     `paid_amount` and `balance_due` are only ever changed through atomic
     deltas (see services.ledger_store); `balance_due == total_amount - paid_amount`.
     Invoices are never physically deleted, `deleted_at` marks a soft delete.
     """
     __tablename__ = "invoices"
     __table_args__ = (
          CheckConstraint("balance_due >= 0", name="balance_due_non_negative"),
          CheckConstraint(
               "(member_id IS NOT NULL AND city_ledger_id IS NULL) "
               "OR (member_id IS NULL AND city_ledger_id IS NOT NULL)",
               name="single_account",
          ),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Foreign keys
     club_id = Column(
          Integer,
          ForeignKey("clubs.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )
     member_id = Column(Integer, ForeignKey("members.id"), nullable=True, index=True)
     city_ledger_id = Column(Integer, ForeignKey("city_ledgers.id"), nullable=True, index=True)

     # Invoice details
     invoice_number = Column(String(50), nullable=False)
     total_amount = Column(Numeric(12, 2), nullable=False)
     paid_amount = Column(Numeric(12, 2), default=0, nullable=False)
     balance_due = Column(Numeric(12, 2), nullable=False)
     invoice_date = Column(Date, nullable=True)
     due_date = Column(Date, nullable=False, index=True)
     paid_date = Column(DateTime, nullable=True)
     sent_at = Column(DateTime, nullable=True)
     status = Column(
          Enum(InvoiceStatus, name="invoice_status", create_constraint=True),
          default=InvoiceStatus.DRAFT,
          nullable=False,
          index=True
     )
     internal_notes = Column(Text, nullable=True)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     deleted_at = Column(DateTime, nullable=True)

     # Relationships
     member = relationship("Member")
     city_ledger = relationship("CityLedger")
     allocations = relationship("PaymentAllocation", back_populates="invoice")

     def __repr__(self):
          return f"<Invoice(id={self.id}, number='{self.invoice_number}', balance_due={self.balance_due}, status='{self.status.value}')>"

     @property
     def account_type(self) -> AccountType:
          return AccountType.MEMBER if self.member_id is not None else AccountType.CITY_LEDGER

     @property
     def account_id(self) -> int:
          return self.member_id if self.member_id is not None else self.city_ledger_id

     def belongs_to(self, account_type: AccountType, account_id: int) -> bool:
          return self.account_type == AccountType(account_type) and self.account_id == account_id

     @property
     def is_deleted(self) -> bool:
          return self.deleted_at is not None
