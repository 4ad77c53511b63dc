# schemas/payment.py
"""
Pydantic schemas for payment settlement API.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models import AccountType, InvoiceStatus, PaymentMethod


class AllocationRequest(BaseModel):
     """One invoice allocation of a payment."""
     invoice_id: int = Field(..., gt=0)
     allocated_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class PaymentCreate(BaseModel):
     """
     Request body for recording a payment.

     With `allocations` the payment is applied exactly as given; without,
     it settles the account's open invoices oldest first.
     """
     account_id: int = Field(..., gt=0, description="Paying member or city-ledger account")
     account_type: AccountType = Field(default=AccountType.MEMBER)
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount received")
     method: PaymentMethod = Field(..., description="Payment method")
     allocations: Optional[List[AllocationRequest]] = Field(
          None, description="Explicit allocations; omit to allocate oldest invoice first",
     )
     reference_number: Optional[str] = Field(None, max_length=255, description="Check or transfer reference")
     payment_date: Optional[date] = Field(None, description="Date of payment (defaults to today)")
     notes: Optional[str] = Field(None, max_length=2000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "account_id": 7,
                    "account_type": "MEMBER",
                    "amount": "8000.00",
                    "method": "BANK_TRANSFER",
                    "reference_number": "TRX-20240203-001",
                    "payment_date": "2024-02-03"
               }
          }
     )


class FifoPreviewRequest(BaseModel):
     """Request body for previewing an oldest-first allocation."""
     account_id: int = Field(..., gt=0)
     account_type: AccountType = Field(default=AccountType.MEMBER)
     amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class AllocationItemResponse(BaseModel):
     invoice_id: int
     allocated_amount: Decimal

     model_config = ConfigDict(from_attributes=True)


class FifoPreviewResponse(BaseModel):
     """Planned allocation; nothing is written."""
     allocations: List[AllocationItemResponse]
     total_allocated: Decimal
     remaining_payment: Decimal
     credit_to_add: Decimal

     model_config = ConfigDict(from_attributes=True)


class AppliedAllocationResponse(BaseModel):
     invoice_id: int
     invoice_number: str
     amount: Decimal
     previous_balance: Decimal
     new_balance: Decimal
     status: InvoiceStatus

     model_config = ConfigDict(from_attributes=True)


class PaymentResultResponse(BaseModel):
     """Response for a recorded payment."""
     payment_id: int = Field(..., description="Created payment")
     receipt_number: str = Field(..., description="Receipt number, RCP-YYYY-NNNNN")
     allocations: List[AppliedAllocationResponse]
     total_allocated: Decimal
     credit_added: Decimal
     outstanding_balance: Decimal = Field(..., description="Account outstanding balance after the payment")
     credit_balance: Decimal = Field(..., description="Account credit balance after the payment")

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "payment_id": 12,
                    "receipt_number": "RCP-2024-00001",
                    "allocations": [
                         {
                              "invoice_id": 1,
                              "invoice_number": "INV-2024-00001",
                              "amount": "6000.00",
                              "previous_balance": "6000.00",
                              "new_balance": "0.00",
                              "status": "PAID"
                         },
                         {
                              "invoice_id": 2,
                              "invoice_number": "INV-2024-00002",
                              "amount": "2000.00",
                              "previous_balance": "4000.00",
                              "new_balance": "2000.00",
                              "status": "PARTIALLY_PAID"
                         }
                    ],
                    "total_allocated": "8000.00",
                    "credit_added": "0.00",
                    "outstanding_balance": "2000.00",
                    "credit_balance": "0.00"
               }
          }
     )


class PaymentAllocationResponse(BaseModel):
     """One stored allocation of a payment."""
     id: int
     invoice_id: int
     amount: Decimal

     model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
     """A recorded payment with its receipt and allocations."""
     id: int
     club_id: int
     account_type: AccountType
     account_id: int
     receipt_number: str
     amount: Decimal
     method: PaymentMethod
     payment_date: datetime
     reference_number: Optional[str] = None
     notes: Optional[str] = None
     allocations: List[PaymentAllocationResponse]
     created_at: datetime

     model_config = ConfigDict(from_attributes=True)


class PaymentListResponse(BaseModel):
     payments: List[PaymentResponse]
     total: int
     page: int = 1
     limit: int = 20
