"""Borrow, return and renew through the LibrarySystem facade."""

from datetime import timedelta
from decimal import Decimal

import pytest

from shelfkeeper import InputError, LoanStatus, NotFoundError, StateConflict, UserType
from shelfkeeper.errors import (
    BookUnavailableError,
    DuplicateLoanError,
    FineLimitExceededError,
    InactiveUserError,
    LoanLimitReachedError,
    LoanNotActiveError,
    NoCopiesAvailableError,
    OverdueRenewalError,
    RenewalBlockedError,
    RenewalLimitReachedError,
)


# ---- borrow

def test_borrow_creates_active_loan_due_in_fourteen_days(library, make_user, make_book, clock):
    user = make_user()
    book = make_book(copies=2)

    loan = library.borrow(user.user_id, book.book_id)

    assert loan.status is LoanStatus.ACTIVE
    assert loan.renewals == 0
    assert loan.loaned_at == clock.now()
    assert loan.due_at == clock.now() + timedelta(days=14)
    assert library.get_book(book.book_id).available_copies == 1
    assert library.get_user(user.user_id).books_borrowed == 1


def test_borrow_unknown_ids(library, make_user, make_book):
    user = make_user()
    book = make_book()
    with pytest.raises(NotFoundError):
        library.borrow("usr_missing", book.book_id)
    with pytest.raises(NotFoundError):
        library.borrow(user.user_id, "bk_missing")


def test_inactive_user_cannot_borrow(library, make_user, make_book):
    user = make_user()
    book = make_book()
    library.deactivate_user(user.user_id)
    with pytest.raises(InactiveUserError):
        library.borrow(user.user_id, book.book_id)


def test_inactive_book_cannot_be_borrowed(library, make_user, make_book):
    user = make_user()
    book = make_book()
    library.deactivate_book(book.book_id)
    with pytest.raises(BookUnavailableError):
        library.borrow(user.user_id, book.book_id)


def test_no_copies_left(library, make_user, make_book):
    first, second = make_user(), make_user()
    book = make_book(copies=1)
    library.borrow(first.user_id, book.book_id)
    with pytest.raises(NoCopiesAvailableError):
        library.borrow(second.user_id, book.book_id)


def test_outstanding_fines_block_borrowing(library, make_user, make_book):
    user = make_user()
    book = make_book(copies=2)
    library.membership.adjust_fine_balance(user.user_id, Decimal("50.00"))
    with pytest.raises(FineLimitExceededError):
        library.borrow(user.user_id, book.book_id)


def test_inactive_user_checked_before_fines(library, make_user, make_book):
    user = make_user()
    book = make_book()
    library.membership.adjust_fine_balance(user.user_id, Decimal("60.00"))
    library.deactivate_user(user.user_id)
    with pytest.raises(InactiveUserError):
        library.borrow(user.user_id, book.book_id)


@pytest.mark.parametrize(
    "user_type, limit",
    [(UserType.STUDENT, 3), (UserType.REGULAR, 5), (UserType.VIP, 8), (UserType.PROFESSOR, 10)],
)
def test_loan_limit_by_role(library, make_user, make_book, user_type, limit):
    user = make_user(user_type)
    for _ in range(limit):
        library.borrow(user.user_id, make_book().book_id)

    with pytest.raises(LoanLimitReachedError):
        library.borrow(user.user_id, make_book().book_id)


def test_same_book_twice_is_rejected(library, make_user, make_book):
    user = make_user()
    book = make_book(copies=3)
    library.borrow(user.user_id, book.book_id)
    with pytest.raises(DuplicateLoanError):
        library.borrow(user.user_id, book.book_id)
    assert library.get_book(book.book_id).available_copies == 2


def test_borrow_leaves_ready_reservation_alone(library, make_user, make_book):
    holder, waiter = make_user(), make_user()
    book = make_book(copies=1)
    loan = library.borrow(holder.user_id, book.book_id)
    reservation = library.reserve_book(waiter.user_id, book.book_id)
    library.return_loan(loan.loan_id)

    library.borrow(waiter.user_id, book.book_id)

    # promoted to ready on return; a direct borrow only cancels ACTIVE reservations
    assert library.get_reservation(reservation.reservation_id).status.name == "READY"


def test_borrow_cancels_active_reservation_when_copy_added(library, make_user, make_book):
    holder, waiter = make_user(), make_user()
    book = make_book(copies=1)
    library.borrow(holder.user_id, book.book_id)
    reservation = library.reserve_book(waiter.user_id, book.book_id)
    library.add_copies(book.book_id, 1)

    library.borrow(waiter.user_id, book.book_id)

    assert library.get_reservation(reservation.reservation_id).status.name == "CANCELLED"


# ---- return

def test_return_on_time(library, make_user, make_book, clock):
    user = make_user()
    book = make_book()
    loan = library.borrow(user.user_id, book.book_id)
    clock.advance(days=14)

    fine = library.return_loan(loan.loan_id)

    assert fine == Decimal("0.00")
    returned = library.get_loan(loan.loan_id)
    assert returned.status is LoanStatus.RETURNED
    assert returned.returned_at == clock.now()
    assert library.get_book(book.book_id).available_copies == 1
    updated = library.get_user(user.user_id)
    assert updated.total_fines == Decimal("0.00")
    assert updated.loyalty_points == 10


def test_late_return_charges_fine(library, make_user, make_book, clock):
    user = make_user()
    loan = library.borrow(user.user_id, make_book().book_id)
    clock.advance(days=17)

    fine = library.return_loan(loan.loan_id)

    assert fine == Decimal("7.50")
    assert library.get_loan(loan.loan_id).fine_amount == Decimal("7.50")
    assert library.get_user(user.user_id).total_fines == Decimal("7.50")


def test_late_return_student(library, make_user, make_book, clock):
    student = make_user(UserType.STUDENT)
    loan = library.borrow(student.user_id, make_book().book_id)
    clock.advance(days=17)
    assert library.return_loan(loan.loan_id) == Decimal("3.75")


def test_very_late_return_is_capped(library, make_user, make_book, clock):
    user = make_user()
    loan = library.borrow(user.user_id, make_book().book_id)
    clock.advance(days=400)
    assert library.return_loan(loan.loan_id) == Decimal("50.00")


def test_return_twice_fails(library, make_user, make_book):
    loan = library.borrow(make_user().user_id, make_book().book_id)
    library.return_loan(loan.loan_id)
    with pytest.raises(LoanNotActiveError):
        library.return_loan(loan.loan_id)


def test_return_unknown_loan(library):
    with pytest.raises(NotFoundError):
        library.return_loan("loan_missing")


def test_available_copies_track_active_loans(library, make_user, make_book):
    book = make_book(copies=3)
    users = [make_user() for _ in range(3)]
    loans = [library.borrow(u.user_id, book.book_id) for u in users]

    def on_loan():
        b = library.get_book(book.book_id)
        return b.total_copies - b.available_copies

    active = sum(1 for l in library.ledger.active_loans() if l.book_id == book.book_id)
    assert on_loan() == active == 3

    library.return_loan(loans[1].loan_id)
    active = sum(1 for l in library.ledger.active_loans() if l.book_id == book.book_id)
    assert on_loan() == active == 2


# ---- renew

def test_renew_extends_from_previous_due_date(library, make_user, make_book, clock):
    loan = library.borrow(make_user().user_id, make_book().book_id)
    clock.advance(days=3)

    new_due = library.renew_loan(loan.loan_id)

    assert new_due == loan.due_at + timedelta(days=14)
    renewed = library.get_loan(loan.loan_id)
    assert renewed.due_at == new_due
    assert renewed.renewals == 1


def test_third_renewal_fails(library, make_user, make_book):
    loan = library.borrow(make_user().user_id, make_book().book_id)
    first = library.renew_loan(loan.loan_id)
    second = library.renew_loan(loan.loan_id)
    assert second == first + timedelta(days=14)

    with pytest.raises(RenewalLimitReachedError):
        library.renew_loan(loan.loan_id)
    assert library.get_loan(loan.loan_id).due_at == second


def test_reservation_blocks_renewal(library, make_user, make_book):
    holder, waiter = make_user(), make_user()
    book = make_book(copies=1)
    loan = library.borrow(holder.user_id, book.book_id)
    library.reserve_book(waiter.user_id, book.book_id)

    with pytest.raises(RenewalBlockedError):
        library.renew_loan(loan.loan_id)


def test_overdue_loan_cannot_be_renewed(library, make_user, make_book, clock):
    loan = library.borrow(make_user().user_id, make_book().book_id)
    clock.advance(days=14, seconds=1)
    with pytest.raises(OverdueRenewalError):
        library.renew_loan(loan.loan_id)


def test_renew_on_due_instant_is_allowed(library, make_user, make_book, clock):
    loan = library.borrow(make_user().user_id, make_book().book_id)
    clock.advance(days=14)
    assert library.renew_loan(loan.loan_id) == loan.due_at + timedelta(days=14)


def test_returned_loan_cannot_be_renewed(library, make_user, make_book):
    loan = library.borrow(make_user().user_id, make_book().book_id)
    library.return_loan(loan.loan_id)
    with pytest.raises(LoanNotActiveError):
        library.renew_loan(loan.loan_id)


def test_error_taxonomy(library):
    assert issubclass(NotFoundError, InputError)
    assert issubclass(RenewalLimitReachedError, StateConflict)
    assert not issubclass(StateConflict, InputError)
