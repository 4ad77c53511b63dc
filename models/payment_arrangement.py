"""
Payment arrangements - negotiated multi-installment repayment plans.

All installments are materialized when the arrangement is created. The
arrangement status moves DRAFT -> ACTIVE -> COMPLETED, or to CANCELLED from
DRAFT/ACTIVE; COMPLETED and CANCELLED are terminal.
"""
import enum
from sqlalchemy import (
     Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey, Enum, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from .base import Base


class ArrangementStatus(str, enum.Enum):
     DRAFT = "DRAFT"
     ACTIVE = "ACTIVE"
     COMPLETED = "COMPLETED"
     CANCELLED = "CANCELLED"


TERMINAL_ARRANGEMENT_STATUSES = (ArrangementStatus.COMPLETED, ArrangementStatus.CANCELLED)


class ArrangementFrequency(str, enum.Enum):
     WEEKLY = "WEEKLY"
     BIWEEKLY = "BIWEEKLY"
     MONTHLY = "MONTHLY"


class InstallmentStatus(str, enum.Enum):
     PENDING = "PENDING"
     PAID = "PAID"
     WAIVED = "WAIVED"


# Installment statuses that count as settled for arrangement completion
SETTLED_INSTALLMENT_STATUSES = (InstallmentStatus.PAID, InstallmentStatus.WAIVED)


class PaymentArrangement(Base):
     __tablename__ = "payment_arrangements"
     __table_args__ = (
          UniqueConstraint("club_id", "arrangement_number", name="uq_payment_arrangements_club_number"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     club_id = Column(Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True)
     member_id = Column(Integer, ForeignKey("members.id"), nullable=True, index=True)
     city_ledger_id = Column(Integer, ForeignKey("city_ledgers.id"), nullable=True, index=True)

     arrangement_number = Column(String(50), nullable=False)
     installment_count = Column(Integer, nullable=False)
     frequency = Column(
          Enum(ArrangementFrequency, name="arrangement_frequency", create_constraint=True),
          default=ArrangementFrequency.MONTHLY,
          nullable=False,
     )
     total_amount = Column(Numeric(12, 2), nullable=False)
     paid_amount = Column(Numeric(12, 2), default=0, nullable=False)
     remaining_amount = Column(Numeric(12, 2), nullable=False)
     start_date = Column(Date, nullable=False)
     end_date = Column(Date, nullable=False)
     status = Column(
          Enum(ArrangementStatus, name="arrangement_status", create_constraint=True),
          default=ArrangementStatus.DRAFT,
          nullable=False,
          index=True
     )
     notes = Column(Text, nullable=True)

     created_by = Column(String(100), nullable=True)
     approved_by = Column(String(100), nullable=True)
     approved_at = Column(DateTime, nullable=True)
     cancelled_at = Column(DateTime, nullable=True)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     installments = relationship(
          "ArrangementInstallment",
          back_populates="arrangement",
          order_by="ArrangementInstallment.installment_no",
          cascade="all, delete-orphan",
     )
     invoice_links = relationship(
          "ArrangementInvoice",
          back_populates="arrangement",
          cascade="all, delete-orphan",
     )

     def __repr__(self):
          return f"<PaymentArrangement(id={self.id}, number='{self.arrangement_number}', status='{self.status.value}')>"

     @property
     def invoice_ids(self) -> list[int]:
          return [link.invoice_id for link in self.invoice_links]


class ArrangementInstallment(Base):
     __tablename__ = "arrangement_installments"
     __table_args__ = (
          UniqueConstraint("arrangement_id", "installment_no", name="uq_arrangement_installments_number"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     arrangement_id = Column(
          Integer,
          ForeignKey("payment_arrangements.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )
     installment_no = Column(Integer, nullable=False)
     due_date = Column(Date, nullable=False)
     amount = Column(Numeric(12, 2), nullable=False)
     paid_amount = Column(Numeric(12, 2), default=0, nullable=False)
     status = Column(
          Enum(InstallmentStatus, name="installment_status", create_constraint=True),
          default=InstallmentStatus.PENDING,
          nullable=False,
     )
     payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
     paid_at = Column(DateTime, nullable=True)

     # Relationships
     arrangement = relationship("PaymentArrangement", back_populates="installments")

     def __repr__(self):
          return f"<ArrangementInstallment(no={self.installment_no}, amount={self.amount}, status='{self.status.value}')>"


class ArrangementInvoice(Base):
     __tablename__ = "arrangement_invoices"
     __table_args__ = (
          UniqueConstraint("arrangement_id", "invoice_id", name="uq_arrangement_invoices_pair"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     arrangement_id = Column(
          Integer,
          ForeignKey("payment_arrangements.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )
     invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)

     # Relationships
     arrangement = relationship("PaymentArrangement", back_populates="invoice_links")
     invoice = relationship("Invoice")
