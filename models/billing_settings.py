"""
Billing configuration: club-wide defaults and per-member overrides.
"""
import enum
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, Text, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from .base import Base


class BillingFrequency(str, enum.Enum):
     MONTHLY = "MONTHLY"
     QUARTERLY = "QUARTERLY"
     SEMI_ANNUAL = "SEMI_ANNUAL"
     ANNUAL = "ANNUAL"


class BillingTiming(str, enum.Enum):
     """Bill at the start of the period (ADVANCE) or at its end (ARREARS)."""
     ADVANCE = "ADVANCE"
     ARREARS = "ARREARS"


class CycleAlignment(str, enum.Enum):
     """Calendar-month boundaries or the member's join-date anniversary."""
     CALENDAR = "CALENDAR"
     ANNIVERSARY = "ANNIVERSARY"


class ProrationMethod(str, enum.Enum):
     DAILY = "DAILY"
     MONTHLY = "MONTHLY"
     NONE = "NONE"


class LateFeeType(str, enum.Enum):
     PERCENTAGE = "PERCENTAGE"
     FIXED = "FIXED"
     TIERED = "TIERED"


class ClubBillingSettings(Base):
     """
     ClubBillingSettings model - one row per club holding billing defaults.
     Rows are created when the club is provisioned, never on read.
     """
     __tablename__ = "club_billing_settings"

     id = Column(Integer, primary_key=True, autoincrement=True)
     club_id = Column(
          Integer,
          ForeignKey("clubs.id", ondelete="CASCADE"),
          nullable=False,
          unique=True,
          index=True
     )

     # Cycle
     default_frequency = Column(
          Enum(BillingFrequency, name="billing_frequency", create_constraint=True),
          default=BillingFrequency.MONTHLY,
          nullable=False,
     )
     default_timing = Column(
          Enum(BillingTiming, name="billing_timing", create_constraint=True),
          default=BillingTiming.ADVANCE,
          nullable=False,
     )
     default_alignment = Column(
          Enum(CycleAlignment, name="cycle_alignment", create_constraint=True),
          default=CycleAlignment.CALENDAR,
          nullable=False,
     )
     default_billing_day = Column(Integer, default=1, nullable=False)
     invoice_generation_lead = Column(Integer, default=5, nullable=False)
     invoice_due_days = Column(Integer, default=15, nullable=False)
     grace_period_days = Column(Integer, default=15, nullable=False)

     # Late fees
     late_fee_type = Column(
          Enum(LateFeeType, name="late_fee_type", create_constraint=True),
          default=LateFeeType.PERCENTAGE,
          nullable=False,
     )
     late_fee_amount = Column(Numeric(12, 2), default=0, nullable=False)
     late_fee_percentage = Column(Numeric(5, 2), default=1.5, nullable=False)
     max_late_fee = Column(Numeric(12, 2), nullable=True)
     auto_apply_late_fee = Column(Boolean, default=False, nullable=False)

     # Proration
     prorate_new_members = Column(Boolean, default=True, nullable=False)
     prorate_changes = Column(Boolean, default=True, nullable=False)
     proration_method = Column(
          Enum(ProrationMethod, name="proration_method", create_constraint=True),
          default=ProrationMethod.DAILY,
          nullable=False,
     )

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     club = relationship("Club", back_populates="billing_settings")

     def __repr__(self):
          return f"<ClubBillingSettings(club_id={self.club_id}, frequency='{self.default_frequency.value}')>"


class MemberBillingProfile(Base):
     """
     MemberBillingProfile model - optional per-member overrides of the club defaults.
     A NULL override means "use the club setting".
     """
     __tablename__ = "member_billing_profiles"

     id = Column(Integer, primary_key=True, autoincrement=True)
     member_id = Column(
          Integer,
          ForeignKey("members.id", ondelete="CASCADE"),
          nullable=False,
          unique=True,
          index=True
     )

     billing_frequency = Column(Enum(BillingFrequency, name="billing_frequency", create_constraint=True), nullable=True)
     billing_timing = Column(Enum(BillingTiming, name="billing_timing", create_constraint=True), nullable=True)
     billing_alignment = Column(Enum(CycleAlignment, name="cycle_alignment", create_constraint=True), nullable=True)
     custom_billing_day = Column(Integer, nullable=True)
     next_billing_date = Column(Date, nullable=True)
     proration_override = Column(Enum(ProrationMethod, name="proration_method", create_constraint=True), nullable=True)
     custom_grace_period = Column(Integer, nullable=True)
     custom_late_fee_exempt = Column(Boolean, default=False, nullable=False)

     # Billing hold
     billing_hold = Column(Boolean, default=False, nullable=False)
     billing_hold_reason = Column(String(500), nullable=True)
     billing_hold_until = Column(Date, nullable=True)

     notes = Column(Text, nullable=True)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     member = relationship("Member", back_populates="billing_profile")

     def __repr__(self):
          return f"<MemberBillingProfile(member_id={self.member_id}, hold={self.billing_hold})>"
