from datetime import date
from decimal import Decimal

import pytest

from models import AccountType, ArrangementFrequency, ArrangementStatus, InstallmentStatus, PaymentMethod
from services.allocation_service import AllocationService
from services.errors import InvalidState, NotFound
from services.payment_arrangement_service import (
     PaymentArrangementService,
     installment_due_date,
     split_installments,
)
from utils.calendar_math import utcnow


@pytest.fixture
def service(session_factory):
     return PaymentArrangementService(session_factory)


@pytest.fixture
def invoice(make_invoice, member):
     return make_invoice(member.id, "100.00", date(2024, 1, 1))


@pytest.fixture
def arrangement(service, club, member, invoice):
     return service.create_arrangement(
          club.id, member.id, [invoice.id], 3, ArrangementFrequency.MONTHLY, date(2024, 2, 1), user_id="7",
     )


def _pay_all(service, club, arrangement):
     for installment in arrangement.installments:
          arrangement = service.record_installment_payment(
               club.id, arrangement.id, installment.id, installment.amount,
          )
     return arrangement


class TestSchedule:
     def test_last_installment_takes_the_remainder(self):
          assert split_installments(Decimal("100.00"), 3) == [
               Decimal("33.33"), Decimal("33.33"), Decimal("33.34"),
          ]
          assert sum(split_installments(Decimal("1000.01"), 7)) == Decimal("1000.01")

     def test_single_installment(self):
          assert split_installments(Decimal("59.99"), 1) == [Decimal("59.99")]

     def test_due_dates(self):
          start = date(2024, 1, 31)
          assert [installment_due_date(start, ArrangementFrequency.MONTHLY, i) for i in range(3)] == [
               date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31),
          ]
          assert [installment_due_date(date(2024, 3, 1), ArrangementFrequency.WEEKLY, i) for i in range(3)] == [
               date(2024, 3, 1), date(2024, 3, 8), date(2024, 3, 15),
          ]
          assert [installment_due_date(date(2024, 3, 1), ArrangementFrequency.BIWEEKLY, i) for i in range(3)] == [
               date(2024, 3, 1), date(2024, 3, 15), date(2024, 3, 29),
          ]


class TestCreateArrangement:
     def test_creates_draft_with_installments(self, arrangement, invoice):
          assert arrangement.status == ArrangementStatus.DRAFT
          assert arrangement.arrangement_number == f"PA-{utcnow().year}-00001"
          assert arrangement.total_amount == Decimal("100.00")
          assert arrangement.remaining_amount == Decimal("100.00")
          assert arrangement.paid_amount == Decimal("0")
          assert arrangement.invoice_ids == [invoice.id]
          assert arrangement.created_by == "7"
          assert [i.amount for i in arrangement.installments] == [
               Decimal("33.33"), Decimal("33.33"), Decimal("33.34"),
          ]
          assert [i.due_date for i in arrangement.installments] == [
               date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1),
          ]
          assert arrangement.end_date == date(2024, 4, 1)
          assert all(i.status == InstallmentStatus.PENDING for i in arrangement.installments)

     def test_total_uses_current_balances(self, service, session_factory, club, member, make_invoice):
          first = make_invoice(member.id, "6000.00", date(2024, 1, 1))
          second = make_invoice(member.id, "4000.00", date(2024, 2, 1))
          AllocationService(session_factory).settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("8000.00"), PaymentMethod.CASH,
          )

          arrangement = service.create_arrangement(
               club.id, member.id, [first.id, second.id, second.id], 2, ArrangementFrequency.WEEKLY, date(2024, 3, 1),
          )

          assert arrangement.total_amount == Decimal("2000.00")
          assert sorted(arrangement.invoice_ids) == [first.id, second.id]

     def test_invalid_requests(self, service, club, member, invoice):
          with pytest.raises(ValueError):
               service.create_arrangement(club.id, member.id, [invoice.id], 0, ArrangementFrequency.MONTHLY, date(2024, 2, 1))
          with pytest.raises(ValueError):
               service.create_arrangement(club.id, member.id, [], 3, ArrangementFrequency.MONTHLY, date(2024, 2, 1))

     def test_invoice_of_another_member_is_not_found(self, service, club, member, other_member, make_invoice):
          foreign = make_invoice(other_member.id, "50.00", date(2024, 1, 1))

          with pytest.raises(NotFound):
               service.create_arrangement(club.id, member.id, [foreign.id], 2, ArrangementFrequency.MONTHLY, date(2024, 2, 1))

     def test_nothing_owed_is_rejected(self, service, club, member, make_invoice):
          empty = make_invoice(member.id, "0.00", date(2024, 1, 1))

          with pytest.raises(InvalidState):
               service.create_arrangement(club.id, member.id, [empty.id], 2, ArrangementFrequency.MONTHLY, date(2024, 2, 1))


class TestInstallments:
     def test_paying_moves_money_and_activates(self, service, club, arrangement):
          first = arrangement.installments[0]

          updated = service.record_installment_payment(club.id, arrangement.id, first.id, Decimal("33.33"))

          assert updated.status == ArrangementStatus.ACTIVE
          assert updated.paid_amount == Decimal("33.33")
          assert updated.remaining_amount == Decimal("66.67")
          assert updated.installments[0].status == InstallmentStatus.PAID
          assert updated.installments[0].paid_at is not None

     def test_double_payment_is_rejected_without_double_counting(self, service, club, arrangement):
          first = arrangement.installments[0]
          service.record_installment_payment(club.id, arrangement.id, first.id, Decimal("33.33"))

          with pytest.raises(InvalidState):
               service.record_installment_payment(club.id, arrangement.id, first.id, Decimal("33.33"))

          current = service.get_arrangement(club.id, arrangement.id)
          assert current.paid_amount == Decimal("33.33")
          assert current.remaining_amount == Decimal("66.67")

     def test_last_installment_completes(self, service, club, arrangement):
          completed = _pay_all(service, club, arrangement)

          assert completed.status == ArrangementStatus.COMPLETED
          assert completed.paid_amount == Decimal("100.00")
          assert completed.remaining_amount == Decimal("0")

     def test_waived_installment_counts_as_settled(self, service, club, arrangement):
          last = arrangement.installments[-1]

          waived = service.waive_installment(club.id, arrangement.id, last.id)
          assert waived.status == ArrangementStatus.DRAFT
          assert waived.remaining_amount == Decimal("66.66")
          assert waived.installments[-1].status == InstallmentStatus.WAIVED

          for installment in arrangement.installments[:-1]:
               waived = service.record_installment_payment(club.id, arrangement.id, installment.id, installment.amount)
          assert waived.status == ArrangementStatus.COMPLETED

          with pytest.raises(InvalidState):
               service.waive_installment(club.id, arrangement.id, last.id)

     def test_non_positive_payment_is_rejected(self, service, club, arrangement):
          with pytest.raises(ValueError):
               service.record_installment_payment(club.id, arrangement.id, arrangement.installments[0].id, Decimal("0"))

     def test_unknown_installment_or_payment(self, service, club, arrangement):
          with pytest.raises(NotFound):
               service.record_installment_payment(club.id, arrangement.id, 9999, Decimal("10.00"))
          with pytest.raises(NotFound):
               service.record_installment_payment(
                    club.id, arrangement.id, arrangement.installments[0].id, Decimal("33.33"), payment_id=9999,
               )

     def test_payment_link_is_recorded(self, service, session_factory, club, member, arrangement, invoice):
          payment = AllocationService(session_factory).settle_account(
               club.id, member.id, AccountType.MEMBER, Decimal("33.33"), PaymentMethod.CASH,
          )

          updated = service.record_installment_payment(
               club.id, arrangement.id, arrangement.installments[0].id, Decimal("33.33"), payment_id=payment.payment_id,
          )

          assert updated.installments[0].payment_id == payment.payment_id


class TestTransitions:
     def test_activate_stamps_approval(self, service, club, arrangement):
          active = service.activate_arrangement(club.id, arrangement.id, user_id="9")

          assert active.status == ArrangementStatus.ACTIVE
          assert active.approved_by == "9"
          assert active.approved_at is not None

          with pytest.raises(InvalidState):
               service.activate_arrangement(club.id, arrangement.id)

     def test_cancel_from_draft_and_active(self, service, club, member, arrangement, make_invoice):
          cancelled = service.cancel_arrangement(club.id, arrangement.id)
          assert cancelled.status == ArrangementStatus.CANCELLED
          assert cancelled.cancelled_at is not None

          other = make_invoice(member.id, "20.00", date(2024, 1, 1))
          second = service.create_arrangement(club.id, member.id, [other.id], 2, ArrangementFrequency.MONTHLY, date(2024, 2, 1))
          service.activate_arrangement(club.id, second.id)
          assert service.cancel_arrangement(club.id, second.id).status == ArrangementStatus.CANCELLED

     def test_terminal_states_are_final(self, service, club, arrangement):
          _pay_all(service, club, arrangement)

          with pytest.raises(InvalidState):
               service.cancel_arrangement(club.id, arrangement.id)
          with pytest.raises(InvalidState):
               service.activate_arrangement(club.id, arrangement.id)

     def test_cancelled_arrangement_takes_no_payments(self, service, club, arrangement):
          service.cancel_arrangement(club.id, arrangement.id)

          with pytest.raises(InvalidState):
               service.record_installment_payment(club.id, arrangement.id, arrangement.installments[0].id, Decimal("33.33"))
          with pytest.raises(InvalidState):
               service.cancel_arrangement(club.id, arrangement.id)

     def test_other_club_cannot_see_arrangement(self, service, other_club, arrangement):
          with pytest.raises(NotFound):
               service.get_arrangement(other_club.id, arrangement.id)
          with pytest.raises(NotFound):
               service.activate_arrangement(other_club.id, arrangement.id)


class TestListArrangements:
     def test_filters_and_pages(self, service, club, member, other_member, arrangement, make_invoice):
          other = make_invoice(other_member.id, "80.00", date(2024, 1, 1))
          second = service.create_arrangement(
               club.id, other_member.id, [other.id], 4, ArrangementFrequency.BIWEEKLY, date(2024, 2, 1),
          )
          service.activate_arrangement(club.id, second.id)

          everything, total = service.list_arrangements(club.id)
          assert total == 2
          assert [a.id for a in everything] == [second.id, arrangement.id]

          mine, total = service.list_arrangements(club.id, account_id=member.id)
          assert total == 1
          assert mine[0].id == arrangement.id

          active, total = service.list_arrangements(club.id, status=ArrangementStatus.ACTIVE)
          assert [a.id for a in active] == [second.id]

          page_two, total = service.list_arrangements(club.id, page=2, limit=1)
          assert total == 2
          assert [a.id for a in page_two] == [arrangement.id]
