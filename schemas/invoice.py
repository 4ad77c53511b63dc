# schemas/invoice.py
"""
Pydantic schemas for Invoice API request/response validation.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models import AccountType, InvoiceStatus


class InvoiceCreate(BaseModel):
     """Schema for creating a new DRAFT invoice."""
     account_id: int = Field(..., gt=0, description="Member or city-ledger account ID (must exist)")
     account_type: AccountType = Field(default=AccountType.MEMBER, description="Kind of billed account")
     total_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Invoice total")
     due_date: date = Field(..., description="Payment due date")
     invoice_date: Optional[date] = Field(None, description="Issue date (defaults to today)")
     internal_notes: Optional[str] = Field(None, max_length=2000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "account_id": 1,
                    "account_type": "MEMBER",
                    "total_amount": "6000.00",
                    "due_date": "2024-01-31",
                    "invoice_date": "2024-01-01"
               }
          }
     )


class InvoiceVoidRequest(BaseModel):
     """Schema for voiding an invoice."""
     reason: str = Field(..., min_length=1, max_length=500)


class InvoiceResponse(BaseModel):
     """Schema for invoice response."""
     id: int
     club_id: int
     member_id: Optional[int] = None
     city_ledger_id: Optional[int] = None
     invoice_number: str
     total_amount: Decimal
     paid_amount: Decimal
     balance_due: Decimal
     invoice_date: Optional[date] = None
     due_date: date
     paid_date: Optional[datetime] = None
     sent_at: Optional[datetime] = None
     status: InvoiceStatus
     internal_notes: Optional[str] = None
     created_at: datetime

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": 1,
                    "club_id": 1,
                    "member_id": 7,
                    "city_ledger_id": None,
                    "invoice_number": "INV-2024-00001",
                    "total_amount": "6000.00",
                    "paid_amount": "6000.00",
                    "balance_due": "0.00",
                    "invoice_date": "2024-01-01",
                    "due_date": "2024-01-31",
                    "paid_date": "2024-02-03T10:30:00",
                    "sent_at": "2024-01-01T09:00:00",
                    "status": "PAID",
                    "internal_notes": None,
                    "created_at": "2024-01-01T08:55:00"
               }
          }
     )


class InvoiceListResponse(BaseModel):
     """Schema for invoice list response."""
     invoices: List[InvoiceResponse]
     total: int


class OverdueSweepResponse(BaseModel):
     """Result of the overdue sweep."""
     marked_overdue: int
     as_of: date


class AccountBalanceResponse(BaseModel):
     """Outstanding balance of an account after recalculation."""
     account_type: AccountType
     account_id: int
     outstanding_balance: Decimal
