"""
shelfkeeper: in-memory library circulation engine.

Exports key modules for convenient imports.
"""

from .domain import (
    UserType,
    Category,
    LoanStatus,
    ReservationStatus,
    User,
    Book,
    Loan,
    Reservation,
    OverdueLoan,
    BorrowedBookCount,
    LibraryStatistics,
)

from .errors import (
    LibraryError,
    InputError,
    NotFoundError,
    StateConflict,
)

from .config import LibrarySettings, load_settings, configure_logging
from .clock import Clock, SystemClock, FixedClock

from .repositories import (
    UserRepo,
    BookRepo,
    LoanRepo,
    ReservationRepo,
)

from .policy import FinePolicy

from .services import (
    CatalogService,
    MembershipService,
    ReservationQueue,
    LoanLedger,
)

from .api import LibrarySystem
from .seed import seed_demo_data

__all__ = [
    # domain
    "UserType",
    "Category",
    "LoanStatus",
    "ReservationStatus",
    "User",
    "Book",
    "Loan",
    "Reservation",
    "OverdueLoan",
    "BorrowedBookCount",
    "LibraryStatistics",
    # errors
    "LibraryError",
    "InputError",
    "NotFoundError",
    "StateConflict",
    # config / clock
    "LibrarySettings",
    "load_settings",
    "configure_logging",
    "Clock",
    "SystemClock",
    "FixedClock",
    # repos
    "UserRepo",
    "BookRepo",
    "LoanRepo",
    "ReservationRepo",
    # services
    "FinePolicy",
    "CatalogService",
    "MembershipService",
    "ReservationQueue",
    "LoanLedger",
    # api
    "LibrarySystem",
    # seed
    "seed_demo_data",
]
