# routers/payment_arrangements.py
"""
Payment arrangement API routes.

Installment plans over a member's (or city-ledger account's) open invoices.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from models import AccountType, ArrangementStatus
from routers.dependencies import RequestContext, get_payment_arrangement_service, get_request_context
from schemas.payment_arrangement import (
     ArrangementCreate,
     ArrangementListResponse,
     ArrangementResponse,
     InstallmentPaymentRequest,
)
from services import PaymentArrangementService

router = APIRouter(prefix="/api/payment-arrangements", tags=["payment-arrangements"])


@router.post(
     "",
     response_model=ArrangementResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a payment arrangement"
)
def create_arrangement(
     body: ArrangementCreate,
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     """
     Create a DRAFT arrangement splitting the invoices' balances into installments.

     - **invoice_ids**: invoices covered, all owed by the account
     - **installment_count** / **frequency**: how the total is split and scheduled
     - **start_date**: due date of the first installment
     """
     return service.create_arrangement(
          ctx.club_id,
          body.account_id,
          body.invoice_ids,
          body.installment_count,
          body.frequency,
          body.start_date,
          account_type=body.account_type,
          notes=body.notes,
          user_id=ctx.user_id,
     )


@router.get("", response_model=ArrangementListResponse, summary="List payment arrangements")
def list_arrangements(
     account_id: Optional[int] = Query(None, gt=0),
     account_type: AccountType = Query(AccountType.MEMBER),
     status_filter: Optional[ArrangementStatus] = Query(None, alias="status"),
     page: int = Query(1, ge=1),
     limit: int = Query(20, ge=1, le=100),
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     arrangements, total = service.list_arrangements(
          ctx.club_id,
          account_id=account_id,
          status=status_filter,
          page=page,
          limit=limit,
          account_type=account_type,
     )
     return ArrangementListResponse(
          arrangements=[ArrangementResponse.model_validate(a) for a in arrangements],
          total=total,
          page=page,
          limit=limit,
     )


@router.get("/{arrangement_id}", response_model=ArrangementResponse, summary="Get a payment arrangement")
def get_arrangement(
     arrangement_id: int,
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     return service.get_arrangement(ctx.club_id, arrangement_id)


@router.post("/{arrangement_id}/activate", response_model=ArrangementResponse, summary="Activate a draft arrangement")
def activate_arrangement(
     arrangement_id: int,
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     return service.activate_arrangement(ctx.club_id, arrangement_id, ctx.user_id)


@router.post("/{arrangement_id}/cancel", response_model=ArrangementResponse, summary="Cancel an arrangement")
def cancel_arrangement(
     arrangement_id: int,
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     return service.cancel_arrangement(ctx.club_id, arrangement_id, ctx.user_id)


@router.post(
     "/{arrangement_id}/installments/{installment_id}/pay",
     response_model=ArrangementResponse,
     summary="Record an installment payment"
)
def pay_installment(
     arrangement_id: int,
     installment_id: int,
     body: InstallmentPaymentRequest,
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     return service.record_installment_payment(
          ctx.club_id,
          arrangement_id,
          installment_id,
          body.amount,
          payment_id=body.payment_id,
          user_id=ctx.user_id,
     )


@router.post(
     "/{arrangement_id}/installments/{installment_id}/waive",
     response_model=ArrangementResponse,
     summary="Waive a pending installment"
)
def waive_installment(
     arrangement_id: int,
     installment_id: int,
     ctx: RequestContext = Depends(get_request_context),
     service: PaymentArrangementService = Depends(get_payment_arrangement_service),
):
     return service.waive_installment(ctx.club_id, arrangement_id, installment_id, user_id=ctx.user_id)
