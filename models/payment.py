"""
Payment and PaymentAllocation models.

A Payment is created once per settlement and never edited afterwards.
Each PaymentAllocation links part of a payment to one invoice and is
immutable once written.
"""
import enum
from sqlalchemy import (
     Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Enum, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from .base import Base
from .account import AccountType


class PaymentMethod(str, enum.Enum):
     CASH = "CASH"
     CHECK = "CHECK"
     CREDIT_CARD = "CREDIT_CARD"
     BANK_TRANSFER = "BANK_TRANSFER"
     ACCOUNT_CREDIT = "ACCOUNT_CREDIT"
     OTHER = "OTHER"


class Payment(Base):
     __tablename__ = "payments"
     __table_args__ = (
          UniqueConstraint("club_id", "receipt_number", name="uq_payments_club_receipt"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     club_id = Column(Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True)
     member_id = Column(Integer, ForeignKey("members.id"), nullable=True, index=True)
     city_ledger_id = Column(Integer, ForeignKey("city_ledgers.id"), nullable=True, index=True)

     receipt_number = Column(String(50), nullable=False)
     amount = Column(Numeric(12, 2), nullable=False)
     method = Column(
          Enum(PaymentMethod, name="payment_method", create_constraint=True),
          nullable=False,
     )
     payment_date = Column(DateTime, nullable=False)
     reference_number = Column(String(255), nullable=True)
     notes = Column(Text, nullable=True)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     allocations = relationship("PaymentAllocation", back_populates="payment")

     @property
     def account_type(self) -> AccountType:
          return AccountType.MEMBER if self.member_id is not None else AccountType.CITY_LEDGER

     @property
     def account_id(self) -> int:
          return self.member_id if self.member_id is not None else self.city_ledger_id

     def __repr__(self):
          return f"<Payment(id={self.id}, receipt='{self.receipt_number}', amount={self.amount})>"


class PaymentAllocation(Base):
     __tablename__ = "payment_allocations"

     id = Column(Integer, primary_key=True, autoincrement=True)
     payment_id = Column(
          Integer,
          ForeignKey("payments.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     invoice_id = Column(
          Integer,
          ForeignKey("invoices.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     amount = Column(Numeric(12, 2), nullable=False)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     payment = relationship("Payment", back_populates="allocations")
     invoice = relationship("Invoice", back_populates="allocations")

     def __repr__(self):
          return f"<PaymentAllocation(payment_id={self.payment_id}, invoice_id={self.invoice_id}, amount={self.amount})>"
