import os
from datetime import date
from decimal import Decimal

# The application engine is created at import time; point it at SQLite before importing.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from database import create_session_factory, get_session_factory, init_db
from models import AccountType, CityLedger, CityLedgerType, Club, Member
from services.invoice_service import InvoiceService


@pytest.fixture
def engine():
     engine = create_engine(
          "sqlite://",
          connect_args={"check_same_thread": False},
          poolclass=StaticPool,
     )
     init_db(engine)
     yield engine
     engine.dispose()


@pytest.fixture
def session_factory(engine):
     return create_session_factory(engine)


@pytest.fixture
def club(session_factory):
     with session_factory.begin() as db:
          club = Club(name="Riverside Golf Club")
          db.add(club)
          db.flush()
     return club


@pytest.fixture
def other_club(session_factory):
     with session_factory.begin() as db:
          club = Club(name="Harbour Tennis Club")
          db.add(club)
          db.flush()
     return club


def _add_member(session_factory, club_id, first_name, last_name, join_date=None):
     with session_factory.begin() as db:
          member = Member(
               club_id=club_id,
               member_number=f"M-{first_name[:3].upper()}",
               first_name=first_name,
               last_name=last_name,
               email=f"{first_name.lower()}@example.com",
               join_date=join_date,
               outstanding_balance=Decimal("0"),
               credit_balance=Decimal("0"),
          )
          db.add(member)
          db.flush()
     return member


@pytest.fixture
def member(session_factory, club):
     return _add_member(session_factory, club.id, "Alice", "Hart", join_date=date(2023, 3, 15))


@pytest.fixture
def other_member(session_factory, club):
     return _add_member(session_factory, club.id, "Bob", "Stone")


@pytest.fixture
def city_ledger(session_factory, club):
     with session_factory.begin() as db:
          account = CityLedger(
               club_id=club.id,
               account_number="CL-001",
               account_name="Acme Corporate",
               account_type=CityLedgerType.CORPORATE,
               outstanding_balance=Decimal("0"),
               credit_balance=Decimal("0"),
          )
          db.add(account)
          db.flush()
     return account


@pytest.fixture
def make_invoice(session_factory, club):
     """Create an invoice; sent (open) unless send=False."""
     def _make(account_id, total, due_date, account_type=AccountType.MEMBER, send=True, club_id=None):
          with session_factory.begin() as db:
               invoice = InvoiceService.create_invoice(
                    db,
                    club_id or club.id,
                    account_id,
                    Decimal(total),
                    due_date,
                    account_type=account_type,
                    invoice_date=date(2024, 1, 1),
               )
               if send:
                    invoice = InvoiceService.send_invoice(db, club_id or club.id, invoice.id)
          return invoice
     return _make


@pytest.fixture
def client(session_factory):
     import main

     main.app.dependency_overrides[get_session_factory] = lambda: session_factory
     yield TestClient(main.app)
     main.app.dependency_overrides.clear()
