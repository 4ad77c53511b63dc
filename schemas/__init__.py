# schemas/__init__.py
from .invoice import (
     InvoiceCreate,
     InvoiceVoidRequest,
     InvoiceResponse,
     InvoiceListResponse,
     OverdueSweepResponse,
     AccountBalanceResponse,
)
from .payment import (
     AllocationRequest,
     PaymentCreate,
     FifoPreviewRequest,
     FifoPreviewResponse,
     PaymentResultResponse,
     PaymentAllocationResponse,
     PaymentResponse,
     PaymentListResponse,
)
from .billing_settings import (
     ClubBillingSettingsUpdate,
     ClubBillingSettingsResponse,
     MemberBillingProfileCreate,
     MemberBillingProfileUpdate,
     MemberBillingProfileResponse,
     BillingPeriodResponse,
     ProrationPreviewRequest,
     ProrationPreviewResponse,
     LateFeePreviewResponse,
)
from .payment_arrangement import (
     ArrangementCreate,
     InstallmentPaymentRequest,
     ArrangementResponse,
     ArrangementListResponse,
)

__all__ = [
     "InvoiceCreate",
     "InvoiceVoidRequest",
     "InvoiceResponse",
     "InvoiceListResponse",
     "OverdueSweepResponse",
     "AccountBalanceResponse",
     "AllocationRequest",
     "PaymentCreate",
     "FifoPreviewRequest",
     "FifoPreviewResponse",
     "PaymentResultResponse",
     "PaymentAllocationResponse",
     "PaymentResponse",
     "PaymentListResponse",
     "ClubBillingSettingsUpdate",
     "ClubBillingSettingsResponse",
     "MemberBillingProfileCreate",
     "MemberBillingProfileUpdate",
     "MemberBillingProfileResponse",
     "BillingPeriodResponse",
     "ProrationPreviewRequest",
     "ProrationPreviewResponse",
     "LateFeePreviewResponse",
     "ArrangementCreate",
     "InstallmentPaymentRequest",
     "ArrangementResponse",
     "ArrangementListResponse",
]
