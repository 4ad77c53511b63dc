# schemas/billing_settings.py
"""
Pydantic schemas for billing settings, member billing profiles and previews.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from models import BillingFrequency, BillingTiming, CycleAlignment, LateFeeType, ProrationMethod


class ClubBillingSettingsUpdate(BaseModel):
     """Partial update of club billing settings; omitted fields are left unchanged."""
     default_frequency: Optional[BillingFrequency] = None
     default_timing: Optional[BillingTiming] = None
     default_alignment: Optional[CycleAlignment] = None
     default_billing_day: Optional[int] = Field(None, ge=1, le=28)
     invoice_generation_lead: Optional[int] = Field(None, ge=0)
     invoice_due_days: Optional[int] = Field(None, ge=0)
     grace_period_days: Optional[int] = Field(None, ge=0)
     late_fee_type: Optional[LateFeeType] = None
     late_fee_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     late_fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)
     max_late_fee: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     auto_apply_late_fee: Optional[bool] = None
     prorate_new_members: Optional[bool] = None
     prorate_changes: Optional[bool] = None
     proration_method: Optional[ProrationMethod] = None

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "default_billing_day": 15,
                    "late_fee_type": "TIERED",
                    "late_fee_percentage": "2.00",
                    "max_late_fee": "500.00"
               }
          }
     )


class ClubBillingSettingsResponse(BaseModel):
     id: int
     club_id: int
     default_frequency: BillingFrequency
     default_timing: BillingTiming
     default_alignment: CycleAlignment
     default_billing_day: int
     invoice_generation_lead: int
     invoice_due_days: int
     grace_period_days: int
     late_fee_type: LateFeeType
     late_fee_amount: Decimal
     late_fee_percentage: Decimal
     max_late_fee: Optional[Decimal] = None
     auto_apply_late_fee: bool
     prorate_new_members: bool
     prorate_changes: bool
     proration_method: ProrationMethod
     updated_at: datetime

     model_config = ConfigDict(from_attributes=True)


class MemberBillingProfileUpdate(BaseModel):
     """Member overrides; a null override falls back to the club setting."""
     billing_frequency: Optional[BillingFrequency] = None
     billing_timing: Optional[BillingTiming] = None
     billing_alignment: Optional[CycleAlignment] = None
     custom_billing_day: Optional[int] = Field(None, ge=1, le=28)
     next_billing_date: Optional[date] = None
     proration_override: Optional[ProrationMethod] = None
     custom_grace_period: Optional[int] = Field(None, ge=0)
     custom_late_fee_exempt: Optional[bool] = None
     billing_hold: Optional[bool] = None
     billing_hold_reason: Optional[str] = Field(None, max_length=500)
     billing_hold_until: Optional[date] = None
     notes: Optional[str] = None


class MemberBillingProfileCreate(MemberBillingProfileUpdate):
     member_id: int = Field(..., gt=0)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "member_id": 7,
                    "billing_frequency": "QUARTERLY",
                    "billing_alignment": "ANNIVERSARY",
                    "custom_late_fee_exempt": False
               }
          }
     )


class MemberBillingProfileResponse(BaseModel):
     id: int
     member_id: int
     billing_frequency: Optional[BillingFrequency] = None
     billing_timing: Optional[BillingTiming] = None
     billing_alignment: Optional[CycleAlignment] = None
     custom_billing_day: Optional[int] = None
     next_billing_date: Optional[date] = None
     proration_override: Optional[ProrationMethod] = None
     custom_grace_period: Optional[int] = None
     custom_late_fee_exempt: bool
     billing_hold: bool
     billing_hold_reason: Optional[str] = None
     billing_hold_until: Optional[date] = None
     notes: Optional[str] = None

     model_config = ConfigDict(from_attributes=True)


class BillingPeriodResponse(BaseModel):
     period_start: date
     period_end: date
     billing_date: date
     due_date: date
     description: str = Field(..., description="e.g. 'Jan 2024' or 'Jan - Mar 2024'")

     model_config = ConfigDict(from_attributes=True)


class ProrationPreviewRequest(BaseModel):
     member_id: int = Field(..., gt=0)
     effective_date: date = Field(..., description="Date the charge starts")
     full_period_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class ProrationPreviewResponse(BaseModel):
     prorated_amount: Decimal
     days_in_period: int
     days_prorated: int
     proration_factor: Decimal
     description: str

     model_config = ConfigDict(from_attributes=True)


class LateFeePreviewResponse(BaseModel):
     fee_amount: Decimal
     days_overdue: int
     applied_date: date
     description: str
     is_within_grace_period: bool

     model_config = ConfigDict(from_attributes=True)
