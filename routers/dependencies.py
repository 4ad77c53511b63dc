# routers/dependencies.py
"""
Shared FastAPI dependencies.

Authentication happens upstream (API gateway / auth service); it forwards
the resolved club and user as headers:
- X-Club-Id: club (tenant) the request acts on
- X-User-Id / X-User-Email: acting user, recorded on audit events
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import sessionmaker

from database import get_session_factory
from services import AllocationService, BillingSettingsService, PaymentArrangementService


@dataclass
class RequestContext:
     club_id: int
     user_id: Optional[str] = None
     user_email: Optional[str] = None


def get_request_context(
     x_club_id: int = Header(..., gt=0),
     x_user_id: Optional[str] = Header(None),
     x_user_email: Optional[str] = Header(None),
) -> RequestContext:
     return RequestContext(club_id=x_club_id, user_id=x_user_id, user_email=x_user_email)


def get_allocation_service(session_factory: sessionmaker = Depends(get_session_factory)) -> AllocationService:
     return AllocationService(session_factory)


def get_billing_settings_service(
     session_factory: sessionmaker = Depends(get_session_factory),
) -> BillingSettingsService:
     return BillingSettingsService(session_factory)


def get_payment_arrangement_service(
     session_factory: sessionmaker = Depends(get_session_factory),
) -> PaymentArrangementService:
     return PaymentArrangementService(session_factory)
