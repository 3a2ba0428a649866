"""
Shared fixtures for the shelfkeeper test suite.

Every library instance runs on a FixedClock so due dates, renewals and
fines can be checked against exact instants.
"""

from datetime import datetime, timezone
from itertools import count

import pytest

from shelfkeeper import FixedClock, LibrarySettings, LibrarySystem, UserType

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def settings() -> LibrarySettings:
    return LibrarySettings()


@pytest.fixture
def library(settings, clock) -> LibrarySystem:
    return LibrarySystem(settings=settings, clock=clock)


@pytest.fixture
def make_user(library):
    """Factory registering users with unique emails."""
    seq = count(1)

    def _make(user_type=UserType.REGULAR, name=None):
        n = next(seq)
        return library.register_user(name or f"Reader {n}", f"reader{n}@example.com", user_type)

    return _make


@pytest.fixture
def make_book(library):
    """Factory registering books with unique ISBNs."""
    seq = count(1)

    def _make(copies=1, title=None, **kwargs):
        n = next(seq)
        return library.register_book(
            title or f"Book {n}", f"Author {n}", f"isbn-{n:04d}", copies, **kwargs
        )

    return _make
