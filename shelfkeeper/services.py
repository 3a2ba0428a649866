from __future__ import annotations
import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from .clock import Clock
from .config import LibrarySettings
from .domain import (
    Book,
    Category,
    Loan,
    Reservation,
    ReservationStatus,
    User,
    UserType,
)
from .errors import (
    BookAvailableError,
    BookUnavailableError,
    DuplicateEmailError,
    DuplicateIsbnError,
    DuplicateLoanError,
    DuplicateReservationError,
    FineLimitExceededError,
    InactiveUserError,
    InputError,
    LoanLimitReachedError,
    LoanNotActiveError,
    NoCopiesAvailableError,
    NotFoundError,
    OverdueRenewalError,
    RenewalBlockedError,
    RenewalLimitReachedError,
    StateConflict,
)
from .policy import FinePolicy, ZERO, to_money
from .repositories import BookRepo, LoanRepo, ReservationRepo, UserRepo
from .schemas import BookRegistration, UserRegistration

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def _input_error(exc: ValidationError) -> InputError:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in exc.errors()
    )
    return InputError(details)


def _to_amount(value: Amount) -> Decimal:
    try:
        # str() first so floats like 0.1 don't drag binary noise into the balance
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InputError(f"invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise InputError(f"invalid amount: {value!r}")
    return amount


class CatalogService:
    """Books and their availability counters."""

    def __init__(self, books: BookRepo, clock: Clock) -> None:
        self.books = books
        self.clock = clock

    def register_book(
        self,
        title: str,
        author: str,
        isbn: str,
        copies: int = 1,
        category: Union[Category, str] = Category.GENERAL,
    ) -> Book:
        try:
            data = BookRegistration(
                title=title, author=author, isbn=isbn, copies=copies, category=category
            )
        except ValidationError as exc:
            raise _input_error(exc) from exc

        if self.books.find_by_isbn(data.isbn):
            raise DuplicateIsbnError(f"a book with ISBN {data.isbn} is already registered")

        b = Book(
            book_id=_new_id("bk"),
            title=data.title,
            author=data.author,
            isbn=data.isbn,
            total_copies=data.copies,
            available_copies=data.copies,
            category=data.category,
            created_at=self.clock.now(),
        )
        self.books.add(b)
        logger.info("registered book %s (%s) with %d copies", b.book_id, b.isbn, b.total_copies)
        return b

    def find_book_by_id(self, book_id: str) -> Book:
        book = self.books.get(book_id)
        if book is None:
            raise NotFoundError("book", book_id)
        return book

    def find_book_by_isbn(self, isbn: str) -> Optional[Book]:
        return self.books.find_by_isbn(isbn.strip())

    def adjust_availability(self, book_id: str, delta: int) -> Book:
        book = self.find_book_by_id(book_id)
        try:
            book.adjust_available(delta)
        except ValueError as exc:
            raise StateConflict(str(exc)) from exc
        return book

    def add_copies(self, book_id: str, quantity: int) -> Book:
        if quantity <= 0:
            raise InputError("quantity must be greater than zero")
        book = self.find_book_by_id(book_id)
        book.add_copies(quantity)
        logger.info("added %d copies to %s (total %d)", quantity, book_id, book.total_copies)
        return book

    def activate(self, book_id: str) -> Book:
        book = self.find_book_by_id(book_id)
        book.active = True
        return book

    def deactivate(self, book_id: str) -> Book:
        book = self.find_book_by_id(book_id)
        if not book.active:
            return book
        if book.copies_on_loan > 0:
            raise StateConflict(
                f"book {book_id} has {book.copies_on_loan} copies on loan and cannot be deactivated"
            )
        book.active = False
        logger.info("deactivated book %s", book_id)
        return book

    def search(self, text: str) -> List[Book]:
        return self.books.search(text)

    def list_books(self) -> List[Book]:
        return self.books.list_all()


class MembershipService:
    """Users, their fine balances and loyalty points."""

    def __init__(self, users: UserRepo, clock: Clock) -> None:
        self.users = users
        self.clock = clock

    def register_user(
        self, name: str, email: str, user_type: Union[UserType, str] = UserType.REGULAR
    ) -> User:
        try:
            data = UserRegistration(name=name, email=email, user_type=user_type)
        except ValidationError as exc:
            raise _input_error(exc) from exc

        if self.users.find_by_email(data.email):
            raise DuplicateEmailError(f"a user with email {data.email} already exists")

        u = User(
            user_id=_new_id("usr"),
            name=data.name,
            email=data.email,
            user_type=data.user_type,
            registered_at=self.clock.now(),
        )
        self.users.add(u)
        logger.info("registered %s user %s", u.user_type.value, u.user_id)
        return u

    def find_user_by_id(self, user_id: str) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.users.find_by_email(email)

    def adjust_fine_balance(self, user_id: str, delta: Decimal) -> Decimal:
        user = self.find_user_by_id(user_id)
        new_balance = to_money(user.total_fines + delta)
        if new_balance < ZERO:
            raise InputError(
                f"fine balance for {user_id} cannot go below zero (currently {user.total_fines})"
            )
        user.total_fines = new_balance
        return new_balance

    def add_loyalty_points(self, user_id: str, points: int) -> int:
        if points < 0:
            raise InputError("loyalty points must not be negative")
        user = self.find_user_by_id(user_id)
        user.loyalty_points += points
        return user.loyalty_points

    def increment_borrow_count(self, user_id: str) -> int:
        user = self.find_user_by_id(user_id)
        user.books_borrowed += 1
        return user.books_borrowed

    def pay_fine(self, user_id: str, amount: Amount) -> Decimal:
        """Pay down a fine balance; each whole unit paid earns one loyalty point."""
        user = self.find_user_by_id(user_id)
        paid = _to_amount(amount)
        if paid <= ZERO:
            raise InputError("payment amount must be greater than zero")
        if paid > user.total_fines:
            raise InputError(
                f"payment of {paid} exceeds outstanding fines of {user.total_fines}"
            )
        # bounded by the balance here, so quantizing cannot overflow
        if paid != to_money(paid):
            raise InputError(f"payment of {paid} has more than two decimal places")

        remaining = self.adjust_fine_balance(user_id, -paid)
        self.add_loyalty_points(user_id, int(paid.to_integral_value(rounding=ROUND_FLOOR)))
        logger.info("user %s paid %s, remaining balance %s", user_id, paid, remaining)
        return remaining

    def activate(self, user_id: str) -> User:
        user = self.find_user_by_id(user_id)
        user.active = True
        return user

    def deactivate(self, user_id: str) -> User:
        user = self.find_user_by_id(user_id)
        user.active = False
        return user

    def list_users(self) -> List[User]:
        return self.users.list_all()


class ReservationQueue:
    """FIFO reservation queues, one per book."""

    def __init__(
        self,
        reservations: ReservationRepo,
        loans: LoanRepo,
        catalog: CatalogService,
        membership: MembershipService,
        settings: LibrarySettings,
        clock: Clock,
    ) -> None:
        self.reservations = reservations
        self.loans = loans
        self.catalog = catalog
        self.membership = membership
        self.settings = settings
        self.clock = clock

    def reserve(self, user_id: str, book_id: str) -> Reservation:
        user = self.membership.find_user_by_id(user_id)
        book = self.catalog.find_book_by_id(book_id)

        if book.available_copies > 0:
            logger.warning("reserve rejected: %s has copies available", book_id)
            raise BookAvailableError(
                f"'{book.title}' has copies available; borrow it directly instead"
            )
        if self.reservations.find_active(user.user_id, book.book_id):
            raise DuplicateReservationError(
                f"user {user_id} already has an active reservation for {book_id}"
            )
        if self.loans.find_active(user.user_id, book.book_id):
            raise DuplicateLoanError(f"user {user_id} already has {book_id} on loan")

        r = Reservation(
            reservation_id=_new_id("res"),
            user_id=user.user_id,
            book_id=book.book_id,
            reserved_at=self.clock.now(),
        )
        self.reservations.add(r)
        logger.info("user %s reserved %s (%s)", user_id, book_id, r.reservation_id)
        return r

    def get(self, reservation_id: str) -> Reservation:
        r = self.reservations.get(reservation_id)
        if r is None:
            raise NotFoundError("reservation", reservation_id)
        return r

    def cancel(self, reservation_id: str) -> Reservation:
        r = self.get(reservation_id)
        if r.status is not ReservationStatus.ACTIVE:
            logger.debug("cancelling %s reservation %s", r.status.name.lower(), reservation_id)
        r.cancel()
        return r

    def find_active(self, user_id: str, book_id: str) -> Optional[Reservation]:
        return self.reservations.find_active(user_id, book_id)

    def has_active_for_book(self, book_id: str) -> bool:
        return bool(self.reservations.list_active_for_book(book_id))

    def promote_next(self, book_id: str) -> Optional[Reservation]:
        queue = self.reservations.list_active_for_book(book_id)
        if not queue:
            return None
        nxt = queue[0]
        nxt.promote(self.clock.now() + timedelta(days=self.settings.reservation_hold_days))
        logger.info(
            "reservation %s for %s is ready for user %s until %s",
            nxt.reservation_id,
            book_id,
            nxt.user_id,
            nxt.expires_at.isoformat(),
        )
        return nxt

    def reservations_for_user(self, user_id: str) -> List[Reservation]:
        return self.reservations.list_by_user(user_id)


class LoanLedger:
    """Loan lifecycle: borrow, renew, return."""

    def __init__(
        self,
        loans: LoanRepo,
        catalog: CatalogService,
        membership: MembershipService,
        reservations: ReservationQueue,
        policy: FinePolicy,
        settings: LibrarySettings,
        clock: Clock,
    ) -> None:
        self.loans = loans
        self.catalog = catalog
        self.membership = membership
        self.reservations = reservations
        self.policy = policy
        self.settings = settings
        self.clock = clock

    @property
    def loan_period(self) -> timedelta:
        return timedelta(days=self.settings.loan_period_days)

    def _check_can_borrow(self, user: User, book: Book) -> None:
        if not user.active:
            raise InactiveUserError(f"user {user.user_id} is inactive and cannot borrow")
        if not book.active:
            raise BookUnavailableError(f"'{book.title}' is not available for loan")
        if book.available_copies <= 0:
            raise NoCopiesAvailableError(f"no copies of '{book.title}' are available")
        if self.policy.fines_block_borrowing(user.total_fines):
            raise FineLimitExceededError(
                f"user {user.user_id} has {user.total_fines} in outstanding fines"
            )
        limit = self.policy.loan_limit(user.user_type)
        if len(self.loans.list_active_by_user(user.user_id)) >= limit:
            raise LoanLimitReachedError(
                f"user {user.user_id} already has the maximum of {limit} books on loan"
            )
        if self.loans.find_active(user.user_id, book.book_id):
            raise DuplicateLoanError(f"user {user.user_id} already has '{book.title}' on loan")

    def borrow(self, user_id: str, book_id: str) -> Loan:
        user = self.membership.find_user_by_id(user_id)
        book = self.catalog.find_book_by_id(book_id)

        try:
            self._check_can_borrow(user, book)
        except StateConflict as exc:
            logger.warning("borrow rejected for user %s, book %s: %s", user_id, book_id, exc)
            raise

        # borrowing directly takes the place of a pending reservation
        pending = self.reservations.find_active(user_id, book_id)
        if pending:
            self.reservations.cancel(pending.reservation_id)

        now = self.clock.now()
        loan = Loan(
            loan_id=_new_id("loan"),
            user_id=user_id,
            book_id=book_id,
            loaned_at=now,
            due_at=now + self.loan_period,
        )
        self.loans.add(loan)
        self.catalog.adjust_availability(book_id, -1)
        self.membership.increment_borrow_count(user_id)

        logger.info(
            "loan %s: user %s borrowed %s, due %s",
            loan.loan_id,
            user_id,
            book_id,
            loan.due_at.isoformat(),
        )
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        loan = self.loans.get(loan_id)
        if loan is None:
            raise NotFoundError("loan", loan_id)
        return loan

    def _get_active(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan.is_active:
            raise LoanNotActiveError(f"loan {loan_id} is not active")
        return loan

    def return_loan(self, loan_id: str) -> Decimal:
        loan = self._get_active(loan_id)
        user = self.membership.find_user_by_id(loan.user_id)

        now = self.clock.now()
        fine = self.policy.fine(loan, user.user_type, now)
        loan.mark_returned(now, fine)

        self.catalog.adjust_availability(loan.book_id, +1)
        if fine > ZERO:
            self.membership.adjust_fine_balance(user.user_id, fine)
            logger.info("loan %s returned late, fine %s", loan_id, fine)
        self.membership.add_loyalty_points(user.user_id, self.settings.return_loyalty_points)

        logger.info("loan %s returned by user %s", loan_id, user.user_id)
        self.reservations.promote_next(loan.book_id)
        return fine

    def renew_loan(self, loan_id: str) -> datetime:
        loan = self._get_active(loan_id)

        if loan.renewals >= self.settings.renewal_limit:
            raise RenewalLimitReachedError(
                f"loan {loan_id} has reached the renewal limit of {self.settings.renewal_limit}"
            )
        if self.reservations.has_active_for_book(loan.book_id):
            raise RenewalBlockedError(f"loan {loan_id} cannot be renewed: the book is reserved")
        if self.clock.now() > loan.due_at:
            raise OverdueRenewalError(f"loan {loan_id} is overdue and cannot be renewed")

        new_due = loan.extend(self.loan_period)
        logger.info("loan %s renewed (%d), now due %s", loan_id, loan.renewals, new_due.isoformat())
        return new_due

    def fine_preview(self, loan: Loan) -> Decimal:
        user = self.membership.find_user_by_id(loan.user_id)
        return self.policy.fine(loan, user.user_type, self.clock.now())

    def loans_for_user(self, user_id: str) -> List[Loan]:
        return self.loans.list_by_user(user_id)

    def active_loans_for_user(self, user_id: str) -> List[Loan]:
        return self.loans.list_active_by_user(user_id)

    def active_loans(self) -> List[Loan]:
        return self.loans.list_active()

    def overdue_loans(self) -> List[Loan]:
        return self.loans.list_overdue(self.clock.now())

    def borrow_counts(self) -> Dict[str, int]:
        """Historical loan count per book, keyed in first-loan order."""
        counts: Dict[str, int] = {}
        for loan in self.loans.list_all():
            counts[loan.book_id] = counts.get(loan.book_id, 0) + 1
        return counts
