# services/__init__.py
from .errors import BillingError, NotFound, InvalidAllocation, InvalidState, ConfigurationError
from .audit_service import AuditService
from .ledger_store import LedgerStore, derive_invoice_status
from .sequence_service import next_document_number
from .billing_cycle import (
     BillingCycleConfig,
     BillingPeriod,
     calculate_next_billing_period,
     months_per_cycle,
     cycles_per_year,
)
from .proration import ProrationConfig, ProrationResult, calculate_proration
from .late_fee import LateFeeConfig, LateFeeResult, calculate_late_fee, should_apply_late_fee, tier_multiplier
from .allocation_service import (
     AllocationService,
     AllocationItem,
     FifoAllocationResult,
     AppliedAllocation,
     ApplyAllocationResult,
)
from .payment_arrangement_service import PaymentArrangementService
from .billing_settings_service import BillingSettingsService
from .invoice_service import InvoiceService

__all__ = [
     "BillingError",
     "NotFound",
     "InvalidAllocation",
     "InvalidState",
     "ConfigurationError",
     "AuditService",
     "LedgerStore",
     "derive_invoice_status",
     "next_document_number",
     "BillingCycleConfig",
     "BillingPeriod",
     "calculate_next_billing_period",
     "months_per_cycle",
     "cycles_per_year",
     "ProrationConfig",
     "ProrationResult",
     "calculate_proration",
     "LateFeeConfig",
     "LateFeeResult",
     "calculate_late_fee",
     "should_apply_late_fee",
     "tier_multiplier",
     "AllocationService",
     "AllocationItem",
     "FifoAllocationResult",
     "AppliedAllocation",
     "ApplyAllocationResult",
     "PaymentArrangementService",
     "BillingSettingsService",
     "InvoiceService",
]
