from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from .clock import Clock, SystemClock
from .config import LibrarySettings
from .domain import (
    Book,
    BorrowedBookCount,
    Category,
    LibraryStatistics,
    Loan,
    OverdueLoan,
    Reservation,
    User,
    UserType,
)
from .policy import FinePolicy, ZERO, to_money
from .repositories import BookRepo, LoanRepo, ReservationRepo, UserRepo
from .services import (
    Amount,
    CatalogService,
    LoanLedger,
    MembershipService,
    ReservationQueue,
)

TOP_BORROWED_LIMIT = 5


class LibrarySystem:
    """
    A facade that wires repos + services and offers the public API.

    Every operation takes identifiers and returns snapshot copies of entities,
    so callers can read results freely without reaching into library state.
    Not thread-safe: operations are expected to run one at a time.
    """

    def __init__(
        self,
        settings: Optional[LibrarySettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or LibrarySettings()
        self.clock = clock or SystemClock()

        # repos
        self.users = UserRepo()
        self.books = BookRepo()
        self.loans = LoanRepo()
        self.reservations = ReservationRepo()

        # services
        self.policy = FinePolicy(self.settings)
        self.catalog = CatalogService(self.books, self.clock)
        self.membership = MembershipService(self.users, self.clock)
        self.reservation_queue = ReservationQueue(
            self.reservations,
            self.loans,
            self.catalog,
            self.membership,
            self.settings,
            self.clock,
        )
        self.ledger = LoanLedger(
            self.loans,
            self.catalog,
            self.membership,
            self.reservation_queue,
            self.policy,
            self.settings,
            self.clock,
        )

    # ---- membership
    def register_user(
        self, name: str, email: str, user_type: Union[UserType, str] = UserType.REGULAR
    ) -> User:
        return replace(self.membership.register_user(name, email, user_type))

    def get_user(self, user_id: str) -> User:
        return replace(self.membership.find_user_by_id(user_id))

    def find_user_by_email(self, email: str) -> Optional[User]:
        user = self.membership.find_user_by_email(email)
        return replace(user) if user else None

    def activate_user(self, user_id: str) -> User:
        return replace(self.membership.activate(user_id))

    def deactivate_user(self, user_id: str) -> User:
        return replace(self.membership.deactivate(user_id))

    # ---- catalog
    def register_book(
        self,
        title: str,
        author: str,
        isbn: str,
        copies: int = 1,
        category: Union[Category, str] = Category.GENERAL,
    ) -> Book:
        return replace(self.catalog.register_book(title, author, isbn, copies, category))

    def get_book(self, book_id: str) -> Book:
        return replace(self.catalog.find_book_by_id(book_id))

    def find_book_by_isbn(self, isbn: str) -> Optional[Book]:
        book = self.catalog.find_book_by_isbn(isbn)
        return replace(book) if book else None

    def add_copies(self, book_id: str, quantity: int) -> Book:
        return replace(self.catalog.add_copies(book_id, quantity))

    def activate_book(self, book_id: str) -> Book:
        return replace(self.catalog.activate(book_id))

    def deactivate_book(self, book_id: str) -> Book:
        return replace(self.catalog.deactivate(book_id))

    def search_books(self, query: str) -> List[Book]:
        return [replace(b) for b in self.catalog.search(query)]

    # ---- circulation
    def borrow(self, user_id: str, book_id: str) -> Loan:
        return replace(self.ledger.borrow(user_id, book_id))

    def return_loan(self, loan_id: str) -> Decimal:
        return self.ledger.return_loan(loan_id)

    def renew_loan(self, loan_id: str) -> datetime:
        return self.ledger.renew_loan(loan_id)

    def get_loan(self, loan_id: str) -> Loan:
        return replace(self.ledger.get_loan(loan_id))

    def list_user_loans(self, user_id: str) -> List[Loan]:
        self.membership.find_user_by_id(user_id)
        return [replace(l) for l in self.ledger.loans_for_user(user_id)]

    # ---- reservations
    def reserve_book(self, user_id: str, book_id: str) -> Reservation:
        return replace(self.reservation_queue.reserve(user_id, book_id))

    def cancel_reservation(self, reservation_id: str) -> Reservation:
        return replace(self.reservation_queue.cancel(reservation_id))

    def get_reservation(self, reservation_id: str) -> Reservation:
        return replace(self.reservation_queue.get(reservation_id))

    def list_user_reservations(self, user_id: str) -> List[Reservation]:
        self.membership.find_user_by_id(user_id)
        return [replace(r) for r in self.reservation_queue.reservations_for_user(user_id)]

    # ---- fines
    def pay_fine(self, user_id: str, amount: Amount) -> Decimal:
        return self.membership.pay_fine(user_id, amount)

    # ---- reporting
    def get_overdue_loans(self) -> List[OverdueLoan]:
        now = self.clock.now()
        report: List[OverdueLoan] = []
        for loan in self.ledger.overdue_loans():
            report.append(
                OverdueLoan(
                    loan=replace(loan),
                    days_overdue=self.policy.days_overdue(loan, now),
                    fine=self.ledger.fine_preview(loan),
                )
            )
        return report

    def _books_per_category(self) -> Dict[Category, int]:
        categories: Dict[Category, int] = {}
        for book in self.catalog.list_books():
            if book.active:
                categories[book.category] = categories.get(book.category, 0) + 1
        return categories

    def _most_borrowed_books(self) -> List[BorrowedBookCount]:
        counts = self.ledger.borrow_counts()
        # sorted() is stable, so equal counts keep first-loan order
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return [
            BorrowedBookCount(book=self.get_book(book_id), borrow_count=count)
            for book_id, count in ranked[:TOP_BORROWED_LIMIT]
        ]

    def get_statistics(self) -> LibraryStatistics:
        users = self.membership.list_users()
        return LibraryStatistics(
            total_books=sum(1 for b in self.catalog.list_books() if b.active),
            total_users=sum(1 for u in users if u.active),
            active_loans=len(self.ledger.active_loans()),
            overdue_loans=len(self.ledger.overdue_loans()),
            total_fines=to_money(sum((u.total_fines for u in users), ZERO)),
            books_per_category=self._books_per_category(),
            most_borrowed_books=self._most_borrowed_books(),
        )
