"""
Billable accounts.

Members and city-ledger accounts (corporate, house and vendor accounts) are
both billed. The ledger engine only needs their balance capability, which
lives in BalanceMixin; AccountType maps onto the concrete model and onto the
foreign-key column used by invoices, payments and arrangements.
"""
import enum
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import declared_attr, relationship
from .base import Base


class AccountType(str, enum.Enum):
     """Kind of billable account."""
     MEMBER = "MEMBER"
     CITY_LEDGER = "CITY_LEDGER"


class CityLedgerType(str, enum.Enum):
     CORPORATE = "CORPORATE"
     HOUSE = "HOUSE"
     VENDOR = "VENDOR"
     OTHER = "OTHER"


class BalanceMixin:
     """Balance capability shared by every billable account."""

     outstanding_balance = Column(Numeric(12, 2), default=0, nullable=False)
     credit_balance = Column(Numeric(12, 2), default=0, nullable=False)

     @declared_attr
     def club_id(cls):
          return Column(Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True)


class Member(BalanceMixin, Base):
     """
     Member model - a club member billed for dues and charges.
     """
     __tablename__ = "members"

     id = Column(Integer, primary_key=True, autoincrement=True)
     member_number = Column(String(50), nullable=True)
     first_name = Column(String(100), nullable=False)
     last_name = Column(String(100), nullable=False)
     email = Column(String(255), nullable=True)
     join_date = Column(Date, nullable=True)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     billing_profile = relationship("MemberBillingProfile", back_populates="member", uselist=False)

     def __repr__(self):
          return f"<Member(id={self.id}, name='{self.first_name} {self.last_name}')>"


class CityLedger(BalanceMixin, Base):
     """
     CityLedger model - a non-member billable account.
     """
     __tablename__ = "city_ledgers"

     id = Column(Integer, primary_key=True, autoincrement=True)
     account_number = Column(String(50), nullable=False)
     account_name = Column(String(255), nullable=False)
     account_type = Column(
          Enum(CityLedgerType, name="city_ledger_type", create_constraint=True),
          default=CityLedgerType.CORPORATE,
          nullable=False,
     )
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     def __repr__(self):
          return f"<CityLedger(id={self.id}, account_number='{self.account_number}')>"


ACCOUNT_MODELS = {
     AccountType.MEMBER: Member,
     AccountType.CITY_LEDGER: CityLedger,
}

# Name of the column that points at the account on invoices, payments and arrangements
ACCOUNT_FOREIGN_KEYS = {
     AccountType.MEMBER: "member_id",
     AccountType.CITY_LEDGER: "city_ledger_id",
}


def account_model(account_type: AccountType):
     return ACCOUNT_MODELS[AccountType(account_type)]


def account_column(model, account_type: AccountType):
     """Return the account foreign-key column of `model` for the given account type."""
     return getattr(model, ACCOUNT_FOREIGN_KEYS[AccountType(account_type)])
