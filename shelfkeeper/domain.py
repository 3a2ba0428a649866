from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum, auto
from typing import Dict, List, Optional


class UserType(Enum):
    REGULAR = "regular"
    STUDENT = "student"
    PROFESSOR = "professor"
    VIP = "vip"


class Category(Enum):
    GENERAL = "general"
    FICTION = "fiction"
    NON_FICTION = "non-fiction"
    SCIENCE = "science"
    HISTORY = "history"
    BIOGRAPHY = "biography"
    ROMANCE = "romance"
    MYSTERY = "mystery"
    FANTASY = "fantasy"
    HORROR = "horror"
    SELF_HELP = "self-help"
    TECHNICAL = "technical"
    CHILDREN = "children"


class LoanStatus(Enum):
    ACTIVE = auto()
    RETURNED = auto()


class ReservationStatus(Enum):
    ACTIVE = auto()
    READY = auto()
    CANCELLED = auto()


@dataclass
class User:
    user_id: str
    name: str
    email: str
    user_type: UserType = UserType.REGULAR
    active: bool = True
    total_fines: Decimal = Decimal("0.00")
    loyalty_points: int = 0
    books_borrowed: int = 0
    registered_at: Optional[datetime] = None

    @property
    def is_student(self) -> bool:
        return self.user_type is UserType.STUDENT


@dataclass
class Book:
    book_id: str
    title: str
    author: str
    isbn: str
    total_copies: int
    available_copies: int
    category: Category = Category.GENERAL
    active: bool = True
    created_at: Optional[datetime] = None

    @property
    def copies_on_loan(self) -> int:
        return self.total_copies - self.available_copies

    def adjust_available(self, delta: int) -> None:
        """Shift the available count, keeping it within [0, total_copies]."""
        new_value = self.available_copies + delta
        if new_value < 0 or new_value > self.total_copies:
            raise ValueError(
                f"available copies for {self.book_id} would become {new_value} "
                f"(total {self.total_copies})"
            )
        self.available_copies = new_value

    def add_copies(self, quantity: int) -> None:
        self.total_copies += quantity
        self.available_copies += quantity


@dataclass
class Loan:
    loan_id: str
    user_id: str
    book_id: str
    loaned_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    renewals: int = 0
    status: LoanStatus = LoanStatus.ACTIVE
    fine_amount: Decimal = Decimal("0.00")

    @property
    def is_active(self) -> bool:
        return self.status is LoanStatus.ACTIVE

    def is_overdue(self, now: datetime) -> bool:
        return self.is_active and now > self.due_at

    def mark_returned(self, when: datetime, fine: Decimal) -> None:
        self.returned_at = when
        self.status = LoanStatus.RETURNED
        self.fine_amount = fine

    def extend(self, period: timedelta) -> datetime:
        # due date only ever moves forward, from the previous due date
        self.due_at = self.due_at + period
        self.renewals += 1
        return self.due_at


@dataclass
class Reservation:
    reservation_id: str
    user_id: str
    book_id: str
    reserved_at: datetime
    status: ReservationStatus = ReservationStatus.ACTIVE
    expires_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status is ReservationStatus.ACTIVE

    def promote(self, expires_at: datetime) -> None:
        self.status = ReservationStatus.READY
        self.expires_at = expires_at

    def cancel(self) -> None:
        self.status = ReservationStatus.CANCELLED


@dataclass
class OverdueLoan:
    loan: Loan
    days_overdue: int
    fine: Decimal


@dataclass
class BorrowedBookCount:
    book: Book
    borrow_count: int


@dataclass
class LibraryStatistics:
    total_books: int
    total_users: int
    active_loans: int
    overdue_loans: int
    total_fines: Decimal
    books_per_category: Dict[Category, int] = field(default_factory=dict)
    most_borrowed_books: List[BorrowedBookCount] = field(default_factory=list)
