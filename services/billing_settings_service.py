# services/billing_settings_service.py
"""
Billing Settings Service - club billing defaults, member overrides and previews.

Club settings are provisioned explicitly with initialize_club_billing_settings;
reading them never creates a row. A member billing profile overrides the club
defaults field by field, a NULL override falling back to the club value.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from models import (
     Club,
     ClubBillingSettings,
     Invoice,
     Member,
     MemberBillingProfile,
     ProrationMethod,
)
from services.audit_service import AuditService
from services.billing_cycle import BillingCycleConfig, BillingPeriod, calculate_next_billing_period
from services.errors import InvalidState, NotFound
from services.late_fee import LateFeeConfig, LateFeeResult, calculate_late_fee
from services.proration import ProrationConfig, ProrationResult, calculate_proration
from utils.calendar_math import DateLike, to_date, utcnow
from utils.money import ZERO, MoneyLike

logger = logging.getLogger(__name__)

CLUB_SETTINGS_FIELDS = (
     "default_frequency",
     "default_timing",
     "default_alignment",
     "default_billing_day",
     "invoice_generation_lead",
     "invoice_due_days",
     "grace_period_days",
     "late_fee_type",
     "late_fee_amount",
     "late_fee_percentage",
     "max_late_fee",
     "auto_apply_late_fee",
     "prorate_new_members",
     "prorate_changes",
     "proration_method",
)

MEMBER_PROFILE_FIELDS = (
     "billing_frequency",
     "billing_timing",
     "billing_alignment",
     "custom_billing_day",
     "next_billing_date",
     "proration_override",
     "custom_grace_period",
     "custom_late_fee_exempt",
     "billing_hold",
     "billing_hold_reason",
     "billing_hold_until",
     "notes",
)


def _check_fields(values: dict, allowed: tuple) -> dict:
     unknown = set(values) - set(allowed)
     if unknown:
          raise ValueError(f"Unknown billing fields: {', '.join(sorted(unknown))}")
     for key in ("default_billing_day", "custom_billing_day"):
          day = values.get(key)
          if day is not None and not 1 <= day <= 28:
               raise ValueError("Billing day must be between 1 and 28")
     return values


# ----------------------------------------------------------------------
# Effective configuration
# ----------------------------------------------------------------------

def resolve_billing_cycle_config(
     settings: ClubBillingSettings,
     profile: Optional[MemberBillingProfile] = None,
     join_date: Optional[date] = None,
) -> BillingCycleConfig:
     """Billing cycle of a member: profile overrides over club defaults."""
     def pick(override, default):
          return override if override is not None else default

     return BillingCycleConfig(
          frequency=pick(profile.billing_frequency if profile else None, settings.default_frequency),
          timing=pick(profile.billing_timing if profile else None, settings.default_timing),
          alignment=pick(profile.billing_alignment if profile else None, settings.default_alignment),
          billing_day=pick(profile.custom_billing_day if profile else None, settings.default_billing_day),
          join_date=join_date,
     )


def resolve_grace_period(settings: ClubBillingSettings, profile: Optional[MemberBillingProfile] = None) -> int:
     if profile is not None and profile.custom_grace_period is not None:
          return profile.custom_grace_period
     return settings.grace_period_days


def resolve_proration_method(
     settings: ClubBillingSettings,
     profile: Optional[MemberBillingProfile] = None,
) -> ProrationMethod:
     if profile is not None and profile.proration_override is not None:
          return profile.proration_override
     return settings.proration_method


def resolve_late_fee_config(
     settings: ClubBillingSettings,
     profile: Optional[MemberBillingProfile] = None,
) -> LateFeeConfig:
     return LateFeeConfig(
          type=settings.late_fee_type,
          amount=settings.late_fee_amount,
          percentage=settings.late_fee_percentage,
          max_fee=settings.max_late_fee,
          grace_period_days=resolve_grace_period(settings, profile),
     )


def is_on_billing_hold(profile: Optional[MemberBillingProfile], as_of: Optional[DateLike] = None) -> bool:
     """
     True while the member's billing is held.
     A hold with no end date lasts until it is lifted; a dated hold ends after billing_hold_until.
     """
     if profile is None or not profile.billing_hold:
          return False
     if profile.billing_hold_until is None:
          return True
     as_of = to_date(as_of) if as_of is not None else utcnow().date()
     return as_of <= profile.billing_hold_until


class BillingSettingsService:
     """Service class for billing configuration."""

     def __init__(self, session_factory: sessionmaker, audit: Optional[AuditService] = None):
          self.session_factory = session_factory
          self.audit = audit or AuditService(session_factory)

     # ------------------------------------------------------------------
     # Lookups
     # ------------------------------------------------------------------

     @staticmethod
     def _settings(db: Session, club_id: int) -> ClubBillingSettings:
          settings = db.execute(
               select(ClubBillingSettings).where(ClubBillingSettings.club_id == club_id)
          ).scalar_one_or_none()
          if settings is None:
               raise NotFound(f"Billing settings for club {club_id} have not been initialized")
          return settings

     @staticmethod
     def _member(db: Session, club_id: int, member_id: int) -> Member:
          member = db.execute(
               select(Member).where(Member.id == member_id, Member.club_id == club_id)
          ).scalar_one_or_none()
          if member is None:
               raise NotFound(f"Member with ID {member_id} not found")
          return member

     @staticmethod
     def _profile(db: Session, member_id: int) -> Optional[MemberBillingProfile]:
          return db.execute(
               select(MemberBillingProfile).where(MemberBillingProfile.member_id == member_id)
          ).scalar_one_or_none()

     # ------------------------------------------------------------------
     # Club settings
     # ------------------------------------------------------------------

     def initialize_club_billing_settings(
          self,
          club_id: int,
          user_id: Optional[str] = None,
          user_email: Optional[str] = None,
          **overrides,
     ) -> ClubBillingSettings:
          """
          Provision the billing settings of a club.

          Creates the row with the standard defaults (plus any overrides).
          Calling it again for a provisioned club returns the existing row
          unchanged.

          Raises:
               NotFound: If the club does not exist
               ValueError: If an override is not a settings field
          """
          _check_fields(overrides, CLUB_SETTINGS_FIELDS)
          with self.session_factory.begin() as db:
               if db.get(Club, club_id) is None:
                    raise NotFound(f"Club with ID {club_id} not found")
               existing = db.execute(
                    select(ClubBillingSettings).where(ClubBillingSettings.club_id == club_id)
               ).scalar_one_or_none()
               if existing is not None:
                    return existing

               settings = ClubBillingSettings(club_id=club_id, **overrides)
               db.add(settings)
               db.flush()
               db.refresh(settings)

          logger.info("Created default billing settings for club %s", club_id)
          self.audit.append(
               club_id=club_id,
               aggregate_type="ClubBillingSettings",
               aggregate_id=settings.id,
               event_type="CREATED",
               data=overrides,
               user_id=user_id,
               user_email=user_email,
          )
          return settings

     def get_club_billing_settings(self, club_id: int) -> ClubBillingSettings:
          """
          Get the billing settings of a club.

          Raises:
               NotFound: If the club's settings were never initialized
          """
          with self.session_factory() as db:
               return self._settings(db, club_id)

     def update_club_billing_settings(
          self,
          club_id: int,
          updates: dict,
          user_id: Optional[str] = None,
          user_email: Optional[str] = None,
     ) -> ClubBillingSettings:
          """
          Update club billing settings, creating them with defaults first if needed.

          Only the keys present in `updates` are changed.

          Raises:
               NotFound: If the club does not exist
               ValueError: If a key is not a settings field or a value is out of range
          """
          _check_fields(updates, CLUB_SETTINGS_FIELDS)
          with self.session_factory.begin() as db:
               if db.get(Club, club_id) is None:
                    raise NotFound(f"Club with ID {club_id} not found")
               settings = db.execute(
                    select(ClubBillingSettings).where(ClubBillingSettings.club_id == club_id)
               ).scalar_one_or_none()
               if settings is None:
                    settings = ClubBillingSettings(club_id=club_id, **updates)
                    db.add(settings)
               else:
                    for key, value in updates.items():
                         setattr(settings, key, value)
               db.flush()
               db.refresh(settings)

          self.audit.append(
               club_id=club_id,
               aggregate_type="ClubBillingSettings",
               aggregate_id=settings.id,
               event_type="UPDATED",
               data=updates,
               user_id=user_id,
               user_email=user_email,
          )
          logger.info("Updated billing settings for club %s", club_id)
          return settings

     # ------------------------------------------------------------------
     # Member profiles
     # ------------------------------------------------------------------

     def get_member_billing_profile(self, club_id: int, member_id: int) -> Optional[MemberBillingProfile]:
          """Return the member's profile, or None when the member has no overrides."""
          with self.session_factory() as db:
               self._member(db, club_id, member_id)
               return self._profile(db, member_id)

     def create_member_billing_profile(
          self,
          club_id: int,
          member_id: int,
          user_id: Optional[str] = None,
          user_email: Optional[str] = None,
          **fields,
     ) -> MemberBillingProfile:
          """
          Create a billing profile for a member.

          Raises:
               NotFound: If the member does not exist in the club
               InvalidState: If the member already has a profile
               ValueError: If a field is unknown or out of range
          """
          _check_fields(fields, MEMBER_PROFILE_FIELDS)
          with self.session_factory.begin() as db:
               member = self._member(db, club_id, member_id)
               if self._profile(db, member_id) is not None:
                    raise InvalidState(f"Billing profile already exists for member {member_id}")

               profile = MemberBillingProfile(member_id=member_id, **fields)
               db.add(profile)
               db.flush()
               db.refresh(profile)

          logger.info(
               "Created billing profile for member %s (%s %s)",
               member_id, member.first_name, member.last_name,
          )
          self.audit.append(
               club_id=club_id,
               aggregate_type="MemberBillingProfile",
               aggregate_id=profile.id,
               event_type="CREATED",
               data={"member_id": member_id, **fields},
               user_id=user_id,
               user_email=user_email,
          )
          return profile

     def update_member_billing_profile(
          self,
          club_id: int,
          member_id: int,
          updates: dict,
          user_id: Optional[str] = None,
          user_email: Optional[str] = None,
     ) -> MemberBillingProfile:
          """
          Update an existing member billing profile; only keys in `updates` change.

          Raises:
               NotFound: If the member or its profile does not exist
               ValueError: If a field is unknown or out of range
          """
          _check_fields(updates, MEMBER_PROFILE_FIELDS)
          with self.session_factory.begin() as db:
               member = self._member(db, club_id, member_id)
               profile = self._profile(db, member_id)
               if profile is None:
                    raise NotFound(f"Billing profile not found for member {member_id}")
               for key, value in updates.items():
                    setattr(profile, key, value)
               db.flush()
               db.refresh(profile)

          logger.info(
               "Updated billing profile for member %s (%s %s)",
               member_id, member.first_name, member.last_name,
          )
          self.audit.append(
               club_id=club_id,
               aggregate_type="MemberBillingProfile",
               aggregate_id=profile.id,
               event_type="UPDATED",
               data=updates,
               user_id=user_id,
               user_email=user_email,
          )
          return profile

     # ------------------------------------------------------------------
     # Previews
     # ------------------------------------------------------------------

     def preview_billing_period(
          self,
          club_id: int,
          member_id: int,
          reference_date: Optional[DateLike] = None,
     ) -> BillingPeriod:
          """
          Billing period containing `reference_date` (default today) for a member.

          Raises:
               NotFound: If the member or the club settings are missing
               ConfigurationError: If anniversary billing is configured without a join date
          """
          with self.session_factory() as db:
               member = self._member(db, club_id, member_id)
               settings = self._settings(db, club_id)
               config = resolve_billing_cycle_config(settings, self._profile(db, member_id), member.join_date)
               return calculate_next_billing_period(config, reference_date, settings.invoice_due_days)

     def preview_proration(
          self,
          club_id: int,
          member_id: int,
          effective_date: DateLike,
          full_period_amount: MoneyLike,
     ) -> ProrationResult:
          """Prorated charge for a member starting mid-cycle on `effective_date`."""
          with self.session_factory() as db:
               member = self._member(db, club_id, member_id)
               settings = self._settings(db, club_id)
               profile = self._profile(db, member_id)
               period = calculate_next_billing_period(
                    resolve_billing_cycle_config(settings, profile, member.join_date),
                    effective_date,
                    settings.invoice_due_days,
               )
               return calculate_proration(ProrationConfig(
                    method=resolve_proration_method(settings, profile),
                    period_start=period.period_start,
                    period_end=period.period_end,
                    effective_date=effective_date,
                    full_period_amount=full_period_amount,
               ))

     def preview_late_fee(
          self,
          club_id: int,
          invoice_id: int,
          calculation_date: Optional[DateLike] = None,
     ) -> LateFeeResult:
          """
          Late fee an invoice would incur on `calculation_date` (default today).
          Members flagged as late-fee exempt always get a zero fee.
          """
          with self.session_factory() as db:
               invoice = db.execute(
                    select(Invoice).where(
                         Invoice.id == invoice_id,
                         Invoice.club_id == club_id,
                         Invoice.deleted_at.is_(None),
                    )
               ).scalar_one_or_none()
               if invoice is None:
                    raise NotFound(f"Invoice with ID {invoice_id} not found")
               settings = self._settings(db, club_id)
               profile = self._profile(db, invoice.member_id) if invoice.member_id is not None else None

          applied_date = to_date(calculation_date) if calculation_date is not None else utcnow().date()
          if profile is not None and profile.custom_late_fee_exempt:
               return LateFeeResult(
                    fee_amount=ZERO,
                    days_overdue=0,
                    applied_date=applied_date,
                    description="Member is exempt from late fees",
                    is_within_grace_period=True,
               )

          return calculate_late_fee(
               invoice.balance_due,
               invoice.due_date,
               resolve_late_fee_config(settings, profile),
               applied_date,
          )
