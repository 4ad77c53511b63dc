from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from models import AccountType, AuditEvent, Invoice, InvoiceStatus, Member, Payment, PaymentAllocation, PaymentMethod
from services.allocation_service import AllocationItem, AllocationService
from services.audit_service import AuditService
from services.errors import InvalidAllocation, InvalidState, NotFound
from services.invoice_service import InvoiceService


class _UnavailableStore:
     """Session factory whose transactions always fail."""

     def begin(self):
          raise RuntimeError("audit store unavailable")


def _invoice(session_factory, invoice_id):
     with session_factory() as db:
          return db.get(Invoice, invoice_id)


def _member(session_factory, member_id):
     with session_factory() as db:
          return db.get(Member, member_id)


def _count(session_factory, model):
     with session_factory() as db:
          return db.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.fixture
def service(session_factory):
     return AllocationService(session_factory)


@pytest.fixture
def two_invoices(make_invoice, member):
     first = make_invoice(member.id, "6000.00", date(2024, 1, 1))
     second = make_invoice(member.id, "4000.00", date(2024, 2, 1))
     return first, second


class TestFifoAllocation:
     def test_oldest_invoice_first(self):
          invoices = [SimpleNamespace(id=i, balance_due=Decimal("100.00")) for i in (1, 2, 3)]

          plan = AllocationService.calculate_fifo_allocation(invoices, Decimal("150.00"))

          assert [(a.invoice_id, a.allocated_amount) for a in plan.allocations] == [
               (1, Decimal("100.00")),
               (2, Decimal("50.00")),
          ]
          assert plan.total_allocated == Decimal("150.00")
          assert plan.credit_to_add == Decimal("0")

     def test_surplus_becomes_credit(self):
          invoices = [SimpleNamespace(id=1, balance_due=Decimal("80.00"))]

          plan = AllocationService.calculate_fifo_allocation(invoices, Decimal("100.00"))

          assert plan.total_allocated + plan.credit_to_add == Decimal("100.00")
          assert plan.credit_to_add == Decimal("20.00")
          assert plan.remaining_payment == Decimal("20.00")

     def test_zero_balances_are_skipped(self):
          invoices = [
               SimpleNamespace(id=1, balance_due=Decimal("0")),
               SimpleNamespace(id=2, balance_due=Decimal("-5.00")),
               SimpleNamespace(id=3, balance_due=Decimal("40.00")),
          ]

          plan = AllocationService.calculate_fifo_allocation(invoices, Decimal("25.00"))

          assert [a.invoice_id for a in plan.allocations] == [3]

     def test_zero_payment_allocates_nothing(self):
          plan = AllocationService.calculate_fifo_allocation(
               [SimpleNamespace(id=1, balance_due=Decimal("10.00"))], Decimal("0"),
          )

          assert plan.allocations == []
          assert plan.total_allocated == Decimal("0")

     def test_negative_payment_is_rejected(self):
          with pytest.raises(InvalidAllocation):
               AllocationService.calculate_fifo_allocation([], Decimal("-1.00"))


class TestOutstandingInvoices:
     def test_only_open_invoices_oldest_first(self, service, make_invoice, member, club):
          later = make_invoice(member.id, "200.00", date(2024, 3, 1))
          earlier = make_invoice(member.id, "100.00", date(2024, 1, 1))
          make_invoice(member.id, "300.00", date(2023, 12, 1), send=False)

          invoices = service.get_outstanding_invoices(club.id, member.id)

          assert [i.id for i in invoices] == [earlier.id, later.id]


class TestApplyAllocations:
     def test_settlement_scenario(self, service, two_invoices, member, club, session_factory):
          first, second = two_invoices

          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("8000.00"), PaymentMethod.BANK_TRANSFER,
               payment_date=date(2024, 2, 15),
          )

          assert result.receipt_number == "RCP-2024-00001"
          assert [(a.invoice_id, a.amount, a.status) for a in result.allocations] == [
               (first.id, Decimal("6000.00"), InvoiceStatus.PAID),
               (second.id, Decimal("2000.00"), InvoiceStatus.PARTIALLY_PAID),
          ]
          assert result.total_allocated == Decimal("8000.00")
          assert result.credit_added == Decimal("0")
          assert result.outstanding_balance == Decimal("2000.00")

          assert _invoice(session_factory, first.id).paid_date is not None
          assert _invoice(session_factory, second.id).balance_due == Decimal("2000.00")

     def test_invoice_amounts_stay_consistent(self, service, two_invoices, member, club, session_factory):
          first, second = two_invoices
          service.apply_allocations(
               club.id, member.id, AccountType.MEMBER, Decimal("1000.00"), PaymentMethod.CASH,
               [AllocationItem(invoice_id=second.id, allocated_amount=Decimal("1000.00"))],
          )

          invoice = _invoice(session_factory, second.id)
          assert invoice.paid_amount == Decimal("1000.00")
          assert invoice.balance_due == Decimal("3000.00")
          assert invoice.paid_amount + invoice.balance_due == invoice.total_amount

     def test_overpayment_is_credited(self, service, two_invoices, member, club, session_factory):
          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("12000.00"), PaymentMethod.CHECK,
          )

          assert result.credit_added == Decimal("2000.00")
          account = _member(session_factory, member.id)
          assert account.outstanding_balance == Decimal("0")
          assert account.credit_balance == Decimal("2000.00")

     def test_overdrawn_invoice_aborts_everything(self, service, two_invoices, member, club, session_factory):
          first, second = two_invoices

          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("11000.00"), PaymentMethod.CASH,
                    [
                         AllocationItem(invoice_id=first.id, allocated_amount=Decimal("6000.00")),
                         AllocationItem(invoice_id=second.id, allocated_amount=Decimal("5000.00")),
                    ],
                    payment_date=date(2024, 2, 15),
               )

          assert _invoice(session_factory, first.id).balance_due == Decimal("6000.00")
          assert _invoice(session_factory, first.id).status == InvoiceStatus.SENT
          assert _count(session_factory, Payment) == 0
          assert _count(session_factory, PaymentAllocation) == 0
          assert _member(session_factory, member.id).outstanding_balance == Decimal("10000.00")

          # The receipt number was rolled back with the settlement
          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("100.00"), PaymentMethod.CASH,
               payment_date=date(2024, 2, 16),
          )
          assert result.receipt_number == "RCP-2024-00001"

     def test_allocations_exceeding_payment_are_rejected(self, service, two_invoices, member, club):
          first, second = two_invoices

          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("9000.00"), PaymentMethod.CASH,
                    [
                         AllocationItem(invoice_id=first.id, allocated_amount=Decimal("6000.00")),
                         AllocationItem(invoice_id=second.id, allocated_amount=Decimal("4000.00")),
                    ],
               )

     def test_non_positive_amounts_are_rejected(self, service, two_invoices, member, club):
          first, _ = two_invoices

          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("0"), PaymentMethod.CASH, [],
               )
          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("10.00"), PaymentMethod.CASH,
                    [AllocationItem(invoice_id=first.id, allocated_amount=Decimal("0"))],
               )

     def test_stale_plan_is_rejected(self, service, two_invoices, member, club):
          invoices = service.get_outstanding_invoices(club.id, member.id)
          plan = service.calculate_fifo_allocation(invoices, Decimal("6000.00"))
          service.apply_allocations(
               club.id, member.id, AccountType.MEMBER, Decimal("6000.00"), PaymentMethod.CASH, plan.allocations,
          )

          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("6000.00"), PaymentMethod.CASH, plan.allocations,
               )

     def test_receipt_numbers_are_sequential_per_year(self, service, two_invoices, member, club):
          def pay(amount, paid_on):
               return service.settle_account(
                    club.id, member.id, AccountType.MEMBER, Decimal(amount), PaymentMethod.CASH, payment_date=paid_on,
               ).receipt_number

          assert pay("100.00", date(2024, 2, 1)) == "RCP-2024-00001"
          assert pay("100.00", date(2024, 2, 2)) == "RCP-2024-00002"
          assert pay("100.00", date(2025, 1, 2)) == "RCP-2025-00001"

     def test_void_invoice_cannot_be_paid(self, service, make_invoice, member, club, session_factory):
          invoice = make_invoice(member.id, "500.00", date(2024, 1, 1))
          with session_factory.begin() as db:
               InvoiceService.void_invoice(db, club.id, invoice.id, "Issued twice")

          with pytest.raises(InvalidState):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("500.00"), PaymentMethod.CASH,
                    [AllocationItem(invoice_id=invoice.id, allocated_amount=Decimal("500.00"))],
               )

     def test_draft_invoice_cannot_be_paid(self, service, make_invoice, member, club, session_factory):
          draft = make_invoice(member.id, "100.00", date(2024, 1, 1), send=False)

          with pytest.raises(InvalidState):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("100.00"), PaymentMethod.CASH,
                    [AllocationItem(invoice_id=draft.id, allocated_amount=Decimal("100.00"))],
               )

          assert _invoice(session_factory, draft.id).status == InvoiceStatus.DRAFT
          assert _invoice(session_factory, draft.id).balance_due == Decimal("100.00")
          assert _member(session_factory, member.id).outstanding_balance == Decimal("0")
          assert _count(session_factory, Payment) == 0

     def test_invoice_of_another_account_is_rejected(self, service, make_invoice, member, other_member, club):
          invoice = make_invoice(other_member.id, "500.00", date(2024, 1, 1))

          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("500.00"), PaymentMethod.CASH,
                    [AllocationItem(invoice_id=invoice.id, allocated_amount=Decimal("500.00"))],
               )

     def test_unknown_invoice_and_account(self, service, member, club):
          with pytest.raises(NotFound):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("10.00"), PaymentMethod.CASH,
                    [AllocationItem(invoice_id=9999, allocated_amount=Decimal("10.00"))],
               )
          with pytest.raises(NotFound):
               service.settle_account(club.id, 9999, AccountType.MEMBER, Decimal("10.00"), PaymentMethod.CASH)

     def test_city_ledger_settlement(self, service, make_invoice, city_ledger, club):
          invoice = make_invoice(city_ledger.id, "750.00", date(2024, 1, 1), account_type=AccountType.CITY_LEDGER)

          result = service.settle_account(
               club.id, city_ledger.id, AccountType.CITY_LEDGER, Decimal("750.00"), PaymentMethod.BANK_TRANSFER,
          )

          assert result.allocations[0].invoice_id == invoice.id
          assert result.allocations[0].status == InvoiceStatus.PAID
          assert result.outstanding_balance == Decimal("0")


class TestAccountCreditPayments:
     def test_credit_is_drawn_down(self, service, make_invoice, member, club, session_factory):
          service.settle_account(club.id, member.id, AccountType.MEMBER, Decimal("50.00"), PaymentMethod.CASH)
          invoice = make_invoice(member.id, "30.00", date(2024, 2, 1))

          result = service.apply_allocations(
               club.id, member.id, AccountType.MEMBER, Decimal("30.00"), PaymentMethod.ACCOUNT_CREDIT,
               [AllocationItem(invoice_id=invoice.id, allocated_amount=Decimal("30.00"))],
          )

          assert result.allocations[0].status == InvoiceStatus.PAID
          assert result.credit_balance == Decimal("20.00")
          assert result.outstanding_balance == Decimal("0")

     def test_unallocated_credit_is_returned(self, service, make_invoice, member, club, session_factory):
          service.settle_account(club.id, member.id, AccountType.MEMBER, Decimal("50.00"), PaymentMethod.CASH)
          make_invoice(member.id, "30.00", date(2024, 2, 1))

          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("50.00"), PaymentMethod.ACCOUNT_CREDIT,
          )

          assert result.total_allocated == Decimal("30.00")
          assert result.credit_added == Decimal("20.00")
          assert _member(session_factory, member.id).credit_balance == Decimal("20.00")

     def test_payment_beyond_available_credit_is_rejected(self, service, make_invoice, member, club, session_factory):
          invoice = make_invoice(member.id, "30.00", date(2024, 2, 1))

          with pytest.raises(InvalidAllocation):
               service.apply_allocations(
                    club.id, member.id, AccountType.MEMBER, Decimal("30.00"), PaymentMethod.ACCOUNT_CREDIT,
                    [AllocationItem(invoice_id=invoice.id, allocated_amount=Decimal("30.00"))],
               )

          assert _invoice(session_factory, invoice.id).balance_due == Decimal("30.00")
          assert _member(session_factory, member.id).credit_balance == Decimal("0")
          assert _count(session_factory, Payment) == 0


class TestPaymentReads:
     def test_get_payment_with_allocations(self, service, two_invoices, member, club):
          first, second = two_invoices
          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("8000.00"), PaymentMethod.BANK_TRANSFER,
               reference_number="TRX-1", payment_date=date(2024, 2, 15),
          )

          payment = service.get_payment(club.id, result.payment_id)

          assert payment.receipt_number == result.receipt_number
          assert payment.amount == Decimal("8000.00")
          assert payment.account_type == AccountType.MEMBER
          assert payment.account_id == member.id
          assert payment.reference_number == "TRX-1"
          assert sorted((a.invoice_id, a.amount) for a in payment.allocations) == [
               (first.id, Decimal("6000.00")),
               (second.id, Decimal("2000.00")),
          ]

     def test_payment_of_another_club_is_not_found(self, service, two_invoices, member, club, other_club):
          result = service.settle_account(club.id, member.id, AccountType.MEMBER, Decimal("10.00"), PaymentMethod.CASH)

          with pytest.raises(NotFound):
               service.get_payment(other_club.id, result.payment_id)
          with pytest.raises(NotFound):
               service.get_payment(club.id, 9999)

     def test_list_payments_latest_first(self, service, two_invoices, member, other_member, club):
          older = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("10.00"), PaymentMethod.CASH,
               payment_date=date(2024, 2, 1),
          )
          newer = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("20.00"), PaymentMethod.CASH,
               payment_date=date(2024, 3, 1),
          )
          service.settle_account(
               club.id, other_member.id, AccountType.MEMBER, Decimal("5.00"), PaymentMethod.CASH,
               payment_date=date(2024, 3, 5),
          )

          payments, total = service.list_payments(club.id, account_id=member.id)
          assert total == 2
          assert [p.id for p in payments] == [newer.payment_id, older.payment_id]

          page, total = service.list_payments(club.id, page=2, limit=2)
          assert total == 3
          assert [p.id for p in page] == [older.payment_id]


class TestSettlementAudit:
     def test_settlement_is_audited(self, service, two_invoices, member, club, session_factory):
          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("8000.00"), PaymentMethod.CASH, user_id="42",
          )

          with session_factory() as db:
               event = db.execute(select(AuditEvent)).scalar_one()
          assert event.event_type == "BATCH_SETTLEMENT"
          assert event.aggregate_id == str(result.payment_id)
          assert event.user_id == "42"

     def test_audit_failure_keeps_the_settlement(self, session_factory, two_invoices, member, club):
          service = AllocationService(session_factory, audit=AuditService(_UnavailableStore()))

          result = service.settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("6000.00"), PaymentMethod.CASH,
          )

          assert result.allocations[0].status == InvoiceStatus.PAID
          assert _invoice(session_factory, two_invoices[0].id).status == InvoiceStatus.PAID
          assert _count(session_factory, Payment) == 1
          assert _count(session_factory, AuditEvent) == 0
