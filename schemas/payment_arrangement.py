# schemas/payment_arrangement.py
"""
Pydantic schemas for payment arrangements.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models import AccountType, ArrangementFrequency, ArrangementStatus, InstallmentStatus


class ArrangementCreate(BaseModel):
     """Schema for creating a DRAFT payment arrangement."""
     account_id: int = Field(..., gt=0, description="Account owing the invoices")
     account_type: AccountType = Field(default=AccountType.MEMBER)
     invoice_ids: List[int] = Field(..., min_length=1, description="Invoices covered by the arrangement")
     installment_count: int = Field(..., ge=1, le=120)
     frequency: ArrangementFrequency = Field(default=ArrangementFrequency.MONTHLY)
     start_date: date = Field(..., description="Due date of the first installment")
     notes: Optional[str] = Field(None, max_length=2000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "account_id": 7,
                    "invoice_ids": [1, 2],
                    "installment_count": 3,
                    "frequency": "MONTHLY",
                    "start_date": "2024-03-01"
               }
          }
     )


class InstallmentPaymentRequest(BaseModel):
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
     payment_id: Optional[int] = Field(None, gt=0, description="Payment that settled the installment")


class InstallmentResponse(BaseModel):
     id: int
     installment_no: int
     due_date: date
     amount: Decimal
     paid_amount: Decimal
     status: InstallmentStatus
     payment_id: Optional[int] = None
     paid_at: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)


class ArrangementResponse(BaseModel):
     id: int
     club_id: int
     member_id: Optional[int] = None
     city_ledger_id: Optional[int] = None
     arrangement_number: str
     installment_count: int
     frequency: ArrangementFrequency
     total_amount: Decimal
     paid_amount: Decimal
     remaining_amount: Decimal
     start_date: date
     end_date: date
     status: ArrangementStatus
     notes: Optional[str] = None
     created_by: Optional[str] = None
     approved_by: Optional[str] = None
     approved_at: Optional[datetime] = None
     cancelled_at: Optional[datetime] = None
     invoice_ids: List[int] = []
     installments: List[InstallmentResponse] = []

     model_config = ConfigDict(from_attributes=True)


class ArrangementListResponse(BaseModel):
     arrangements: List[ArrangementResponse]
     total: int
     page: int = 1
     limit: int = 20
