from __future__ import annotations
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from .config import LibrarySettings
from .domain import Loan, UserType

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class FinePolicy:
    """Overdue fines and per-role borrowing limits."""

    def __init__(self, settings: LibrarySettings) -> None:
        self.settings = settings

    def days_overdue(self, loan: Loan, now: datetime) -> int:
        reference = loan.returned_at or now
        if reference <= loan.due_at:
            return 0
        return (reference - loan.due_at).days

    def fine(self, loan: Loan, user_type: UserType, now: datetime) -> Decimal:
        """
        Fine for a loan, measured at its return time or, while still out, at `now`.

        Only whole days count: a loan returned a few hours late owes nothing.
        Students pay the discounted rate, and no fine exceeds the configured cap.
        """
        days_late = self.days_overdue(loan, now)
        if days_late <= 0:
            return ZERO

        amount = self.settings.daily_fine * days_late
        if user_type is UserType.STUDENT:
            amount = amount * self.settings.student_discount
        return to_money(min(amount, self.settings.max_fine_amount))

    def loan_limit(self, user_type: UserType) -> int:
        return self.settings.loan_limits[user_type]

    def fines_block_borrowing(self, balance: Decimal) -> bool:
        return balance >= self.settings.max_fine_amount
