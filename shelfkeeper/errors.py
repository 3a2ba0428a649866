"""
Error taxonomy for shelfkeeper.

InputError covers malformed or unknown caller input (including lookups of
identifiers that do not exist). StateConflict covers requests that are well
formed but rejected because of the current state of the library.
"""


class LibraryError(Exception):
    """Root of every error raised by shelfkeeper."""


class InputError(LibraryError, ValueError):
    pass


class NotFoundError(InputError):
    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class StateConflict(LibraryError):
    pass


# borrowing
class InactiveUserError(StateConflict):
    pass


class BookUnavailableError(StateConflict):
    pass


class NoCopiesAvailableError(StateConflict):
    pass


class FineLimitExceededError(StateConflict):
    pass


class LoanLimitReachedError(StateConflict):
    pass


class DuplicateLoanError(StateConflict):
    pass


# loan lifecycle
class LoanNotActiveError(StateConflict):
    pass


class RenewalLimitReachedError(StateConflict):
    pass


class RenewalBlockedError(StateConflict):
    pass


class OverdueRenewalError(StateConflict):
    pass


# reservations
class BookAvailableError(StateConflict):
    pass


class DuplicateReservationError(StateConflict):
    pass


# registration
class DuplicateIsbnError(StateConflict):
    pass


class DuplicateEmailError(StateConflict):
    pass
