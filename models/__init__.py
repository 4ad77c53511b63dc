from .base import Base
from .club import Club
from .account import AccountType, CityLedgerType, Member, CityLedger
from .invoice import Invoice, InvoiceStatus
from .payment import Payment, PaymentAllocation, PaymentMethod
from .billing_settings import (
     BillingFrequency,
     BillingTiming,
     CycleAlignment,
     ProrationMethod,
     LateFeeType,
     ClubBillingSettings,
     MemberBillingProfile,
)
from .payment_arrangement import (
     ArrangementStatus,
     ArrangementFrequency,
     InstallmentStatus,
     PaymentArrangement,
     ArrangementInstallment,
     ArrangementInvoice,
)
from .document_sequence import DocumentSequence
from .audit_event import AuditEvent

__all__ = [
     "Base",
     "Club",
     "AccountType",
     "CityLedgerType",
     "Member",
     "CityLedger",
     "Invoice",
     "InvoiceStatus",
     "Payment",
     "PaymentAllocation",
     "PaymentMethod",
     "BillingFrequency",
     "BillingTiming",
     "CycleAlignment",
     "ProrationMethod",
     "LateFeeType",
     "ClubBillingSettings",
     "MemberBillingProfile",
     "ArrangementStatus",
     "ArrangementFrequency",
     "InstallmentStatus",
     "PaymentArrangement",
     "ArrangementInstallment",
     "ArrangementInvoice",
     "DocumentSequence",
     "AuditEvent",
]
