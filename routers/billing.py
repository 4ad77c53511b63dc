# routers/billing.py
"""
Billing API routes.

Invoices, payments (settlement), billing settings and calculation previews
for the club given in the X-Club-Id header. Service errors are translated
to HTTP responses by the exception handlers registered in main.py.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import sessionmaker

from database import get_session_factory
from models import AccountType, InvoiceStatus
from routers.dependencies import (
     RequestContext,
     get_allocation_service,
     get_billing_settings_service,
     get_request_context,
)
from schemas.billing_settings import (
     BillingPeriodResponse,
     ClubBillingSettingsResponse,
     ClubBillingSettingsUpdate,
     LateFeePreviewResponse,
     MemberBillingProfileCreate,
     MemberBillingProfileResponse,
     MemberBillingProfileUpdate,
     ProrationPreviewRequest,
     ProrationPreviewResponse,
)
from schemas.invoice import (
     AccountBalanceResponse,
     InvoiceCreate,
     InvoiceListResponse,
     InvoiceResponse,
     InvoiceVoidRequest,
     OverdueSweepResponse,
)
from schemas.payment import (
     FifoPreviewRequest,
     FifoPreviewResponse,
     PaymentCreate,
     PaymentListResponse,
     PaymentResponse,
     PaymentResultResponse,
)
from services import AllocationItem, AllocationService, BillingSettingsService, InvoiceService
from utils.calendar_math import utcnow

router = APIRouter(prefix="/api/billing", tags=["billing"])


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

@router.post(
     "/invoices",
     response_model=InvoiceResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a draft invoice"
)
def create_invoice(
     invoice_data: InvoiceCreate,
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     """
     Create a DRAFT invoice for a member or city-ledger account.

     - **account_id** / **account_type**: billed account
     - **total_amount**: invoice total
     - **due_date**: payment due date
     """
     with session_factory.begin() as db:
          invoice = InvoiceService.create_invoice(
               db,
               ctx.club_id,
               invoice_data.account_id,
               invoice_data.total_amount,
               invoice_data.due_date,
               account_type=invoice_data.account_type,
               invoice_date=invoice_data.invoice_date,
               internal_notes=invoice_data.internal_notes,
          )
          return InvoiceResponse.model_validate(invoice)


@router.get("/invoices", response_model=InvoiceListResponse, summary="List invoices")
def list_invoices(
     account_id: Optional[int] = Query(None, gt=0),
     account_type: AccountType = Query(AccountType.MEMBER),
     status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     with session_factory() as db:
          invoices = InvoiceService.list_invoices(
               db, ctx.club_id, account_id=account_id, account_type=account_type, status=status_filter,
          )
          items = [InvoiceResponse.model_validate(invoice) for invoice in invoices]
     return InvoiceListResponse(invoices=items, total=len(items))


@router.post(
     "/invoices/mark-overdue",
     response_model=OverdueSweepResponse,
     summary="Mark past-due invoices as overdue"
)
def mark_overdue_invoices(
     as_of: Optional[date] = Query(None, description="Reference date (defaults to today)"),
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     as_of = as_of or utcnow().date()
     with session_factory.begin() as db:
          count = InvoiceService.mark_overdue_invoices(db, club_id=ctx.club_id, as_of=as_of)
     return OverdueSweepResponse(marked_overdue=count, as_of=as_of)


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse, summary="Get invoice by ID")
def get_invoice(
     invoice_id: int,
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     with session_factory() as db:
          return InvoiceResponse.model_validate(InvoiceService.get_invoice(db, ctx.club_id, invoice_id))


@router.post("/invoices/{invoice_id}/send", response_model=InvoiceResponse, summary="Send a draft invoice")
def send_invoice(
     invoice_id: int,
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     with session_factory.begin() as db:
          return InvoiceResponse.model_validate(InvoiceService.send_invoice(db, ctx.club_id, invoice_id))


@router.post("/invoices/{invoice_id}/void", response_model=InvoiceResponse, summary="Void an unpaid invoice")
def void_invoice(
     invoice_id: int,
     body: InvoiceVoidRequest,
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     with session_factory.begin() as db:
          invoice = InvoiceService.void_invoice(db, ctx.club_id, invoice_id, body.reason)
          return InvoiceResponse.model_validate(invoice)


@router.delete("/invoices/{invoice_id}", response_model=InvoiceResponse, summary="Soft-delete an invoice")
def delete_invoice(
     invoice_id: int,
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     with session_factory.begin() as db:
          return InvoiceResponse.model_validate(InvoiceService.soft_delete_invoice(db, ctx.club_id, invoice_id))


@router.get(
     "/invoices/{invoice_id}/late-fee-preview",
     response_model=LateFeePreviewResponse,
     summary="Preview the late fee of an invoice"
)
def preview_late_fee(
     invoice_id: int,
     calculation_date: Optional[date] = Query(None),
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.preview_late_fee(ctx.club_id, invoice_id, calculation_date)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@router.get(
     "/accounts/{account_type}/{account_id}/outstanding-invoices",
     response_model=List[InvoiceResponse],
     summary="Open invoices of an account, oldest first"
)
def get_outstanding_invoices(
     account_type: AccountType,
     account_id: int,
     ctx: RequestContext = Depends(get_request_context),
     allocation_service: AllocationService = Depends(get_allocation_service),
):
     return allocation_service.get_outstanding_invoices(ctx.club_id, account_id, account_type)


@router.post(
     "/accounts/{account_type}/{account_id}/recalculate",
     response_model=AccountBalanceResponse,
     summary="Recalculate an account's outstanding balance"
)
def recalculate_account_balance(
     account_type: AccountType,
     account_id: int,
     ctx: RequestContext = Depends(get_request_context),
     session_factory: sessionmaker = Depends(get_session_factory),
):
     with session_factory.begin() as db:
          outstanding = InvoiceService.recalculate_account_balance(db, ctx.club_id, account_id, account_type)
     return AccountBalanceResponse(account_type=account_type, account_id=account_id, outstanding_balance=outstanding)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

@router.post(
     "/payments",
     response_model=PaymentResultResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Record a payment"
)
def create_payment(
     body: PaymentCreate,
     ctx: RequestContext = Depends(get_request_context),
     allocation_service: AllocationService = Depends(get_allocation_service),
):
     """
     Record a payment against an account.

     With **allocations** the payment is applied as given; otherwise the
     account's open invoices are paid oldest first. Any unallocated amount
     becomes account credit.
     """
     options = {
          "reference_number": body.reference_number,
          "payment_date": body.payment_date,
          "notes": body.notes,
          "user_id": ctx.user_id,
          "user_email": ctx.user_email,
     }
     if body.allocations is None:
          result = allocation_service.settle_account(
               ctx.club_id, body.account_id, body.account_type, body.amount, body.method, **options,
          )
     else:
          result = allocation_service.apply_allocations(
               ctx.club_id,
               body.account_id,
               body.account_type,
               body.amount,
               body.method,
               [AllocationItem(invoice_id=a.invoice_id, allocated_amount=a.allocated_amount) for a in body.allocations],
               **options,
          )
     return PaymentResultResponse.model_validate(result)


@router.post(
     "/payments/fifo-preview",
     response_model=FifoPreviewResponse,
     summary="Preview an oldest-first allocation"
)
def preview_fifo_allocation(
     body: FifoPreviewRequest,
     ctx: RequestContext = Depends(get_request_context),
     allocation_service: AllocationService = Depends(get_allocation_service),
):
     invoices = allocation_service.get_outstanding_invoices(ctx.club_id, body.account_id, body.account_type)
     return FifoPreviewResponse.model_validate(allocation_service.calculate_fifo_allocation(invoices, body.amount))


@router.get("/payments", response_model=PaymentListResponse, summary="List payments")
def list_payments(
     account_id: Optional[int] = Query(None, gt=0),
     account_type: AccountType = Query(AccountType.MEMBER),
     page: int = Query(1, ge=1),
     limit: int = Query(20, ge=1, le=100),
     ctx: RequestContext = Depends(get_request_context),
     allocation_service: AllocationService = Depends(get_allocation_service),
):
     """
     List the club's payments, latest first.

     - **account_id**: Only payments of this account
     - **account_type**: MEMBER or CITY_LEDGER (used with account_id)
     """
     payments, total = allocation_service.list_payments(
          ctx.club_id, account_id=account_id, account_type=account_type, page=page, limit=limit,
     )
     return PaymentListResponse(
          payments=[PaymentResponse.model_validate(p) for p in payments],
          total=total,
          page=page,
          limit=limit,
     )


@router.get("/payments/{payment_id}", response_model=PaymentResponse, summary="Get a payment")
def get_payment(
     payment_id: int,
     ctx: RequestContext = Depends(get_request_context),
     allocation_service: AllocationService = Depends(get_allocation_service),
):
     return allocation_service.get_payment(ctx.club_id, payment_id)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@router.post(
     "/settings/initialize",
     response_model=ClubBillingSettingsResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Provision club billing settings"
)
def initialize_settings(
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.initialize_club_billing_settings(
          ctx.club_id, user_id=ctx.user_id, user_email=ctx.user_email,
     )


@router.get("/settings", response_model=ClubBillingSettingsResponse, summary="Get club billing settings")
def get_settings(
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.get_club_billing_settings(ctx.club_id)


@router.patch("/settings", response_model=ClubBillingSettingsResponse, summary="Update club billing settings")
def update_settings(
     body: ClubBillingSettingsUpdate,
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.update_club_billing_settings(
          ctx.club_id, body.model_dump(exclude_unset=True), user_id=ctx.user_id, user_email=ctx.user_email,
     )


@router.post(
     "/member-profiles",
     response_model=MemberBillingProfileResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a member billing profile"
)
def create_member_profile(
     body: MemberBillingProfileCreate,
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     fields = body.model_dump(exclude_unset=True, exclude={"member_id"})
     return settings_service.create_member_billing_profile(
          ctx.club_id, body.member_id, user_id=ctx.user_id, user_email=ctx.user_email, **fields,
     )


@router.get(
     "/member-profiles/{member_id}",
     response_model=Optional[MemberBillingProfileResponse],
     summary="Get a member billing profile"
)
def get_member_profile(
     member_id: int,
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.get_member_billing_profile(ctx.club_id, member_id)


@router.patch(
     "/member-profiles/{member_id}",
     response_model=MemberBillingProfileResponse,
     summary="Update a member billing profile"
)
def update_member_profile(
     member_id: int,
     body: MemberBillingProfileUpdate,
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.update_member_billing_profile(
          ctx.club_id, member_id, body.model_dump(exclude_unset=True), user_id=ctx.user_id, user_email=ctx.user_email,
     )


# ---------------------------------------------------------------------------
# Previews
# ---------------------------------------------------------------------------

@router.get(
     "/members/{member_id}/billing-period-preview",
     response_model=BillingPeriodResponse,
     summary="Preview a member's billing period"
)
def preview_billing_period(
     member_id: int,
     reference_date: Optional[date] = Query(None),
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.preview_billing_period(ctx.club_id, member_id, reference_date)


@router.post(
     "/proration-preview",
     response_model=ProrationPreviewResponse,
     summary="Preview a prorated charge for a member starting mid-cycle"
)
def preview_proration(
     body: ProrationPreviewRequest,
     ctx: RequestContext = Depends(get_request_context),
     settings_service: BillingSettingsService = Depends(get_billing_settings_service),
):
     return settings_service.preview_proration(
          ctx.club_id, body.member_id, body.effective_date, body.full_period_amount,
     )
