from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional

from .domain import (
    User,
    Book,
    Loan,
    Reservation,
    ReservationStatus,
)


class UserRepo:
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}

    def add(self, user: User) -> None:
        self._users[user.user_id] = user

    def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        e = email.strip().lower()
        return next((u for u in self._users.values() if u.email.lower() == e), None)

    def list_all(self) -> List[User]:
        return list(self._users.values())


class BookRepo:
    def __init__(self) -> None:
        self._books: Dict[str, Book] = {}

    def add(self, book: Book) -> None:
        self._books[book.book_id] = book

    def get(self, book_id: str) -> Optional[Book]:
        return self._books.get(book_id)

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        return next((b for b in self._books.values() if b.isbn == isbn), None)

    def list_all(self) -> List[Book]:
        return list(self._books.values())

    def search(self, text: str) -> List[Book]:
        t = text.lower().strip()

        def matches(b: Book) -> bool:
            return t in b.title.lower() or t in b.author.lower() or t in b.isbn.lower()

        return [b for b in self._books.values() if b.active and matches(b)]


class LoanRepo:
    """Loans in creation order."""

    def __init__(self) -> None:
        self._loans: Dict[str, Loan] = {}

    def add(self, loan: Loan) -> None:
        self._loans[loan.loan_id] = loan

    def get(self, loan_id: str) -> Optional[Loan]:
        return self._loans.get(loan_id)

    def list_all(self) -> List[Loan]:
        return list(self._loans.values())

    def list_by_user(self, user_id: str) -> List[Loan]:
        return [l for l in self._loans.values() if l.user_id == user_id]

    def list_active(self) -> List[Loan]:
        return [l for l in self._loans.values() if l.is_active]

    def list_active_by_user(self, user_id: str) -> List[Loan]:
        return [l for l in self._loans.values() if l.user_id == user_id and l.is_active]

    def list_active_by_book(self, book_id: str) -> List[Loan]:
        return [l for l in self._loans.values() if l.book_id == book_id and l.is_active]

    def find_active(self, user_id: str, book_id: str) -> Optional[Loan]:
        return next(
            (
                l
                for l in self._loans.values()
                if l.user_id == user_id and l.book_id == book_id and l.is_active
            ),
            None,
        )

    def list_overdue(self, now: datetime) -> List[Loan]:
        return [l for l in self._loans.values() if l.is_overdue(now)]


class ReservationRepo:
    """Reservations in creation order; the queue for a book is FIFO."""

    def __init__(self) -> None:
        self._reservations: Dict[str, Reservation] = {}

    def add(self, r: Reservation) -> None:
        self._reservations[r.reservation_id] = r

    def get(self, reservation_id: str) -> Optional[Reservation]:
        return self._reservations.get(reservation_id)

    def list_active_for_book(self, book_id: str) -> List[Reservation]:
        return [
            r
            for r in self._reservations.values()
            if r.book_id == book_id and r.status == ReservationStatus.ACTIVE
        ]

    def find_active(self, user_id: str, book_id: str) -> Optional[Reservation]:
        return next(
            (r for r in self.list_active_for_book(book_id) if r.user_id == user_id),
            None,
        )

    def list_by_user(self, user_id: str) -> List[Reservation]:
        return [r for r in self._reservations.values() if r.user_id == user_id]
