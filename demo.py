from __future__ import annotations
import logging

from shelfkeeper import (
    FixedClock,
    LibrarySystem,
    StateConflict,
    configure_logging,
    load_settings,
    seed_demo_data,
)

logger = logging.getLogger("shelfkeeper.demo")


def demo_flow() -> None:
    settings = load_settings()
    configure_logging(settings)
    clock = FixedClock()
    sys = LibrarySystem(settings=settings, clock=clock)
    seed_demo_data(sys)

    joao = sys.find_user_by_email("joao@email.com")
    maria = sys.find_user_by_email("maria@email.com")
    orwell = sys.find_book_by_isbn("978-0451524935")
    if not (joao and maria and orwell):
        logger.error("seed data missing; nothing to demo")
        return

    # Search
    logger.info("search 'orwell': %s", [b.title for b in sys.search_books("orwell")])

    # Borrow every copy of 1984, then queue Maria for the next one
    carlos = sys.find_user_by_email("carlos@email.com")
    ana = sys.register_user("Ana Lima", "ana@email.com", "vip")
    loans = [sys.borrow(u.user_id, orwell.book_id) for u in (joao, carlos, ana)]

    try:
        sys.borrow(maria.user_id, orwell.book_id)
    except StateConflict as exc:
        logger.info("Maria cannot borrow: %s", exc)
    reservation = sys.reserve_book(maria.user_id, orwell.book_id)

    # Joao keeps the book three days past the due date
    clock.advance(days=settings.loan_period_days + 3)
    for item in sys.get_overdue_loans():
        logger.info(
            "overdue: loan %s, %d day(s), fine so far %s",
            item.loan.loan_id,
            item.days_overdue,
            item.fine,
        )

    fine = sys.return_loan(loans[0].loan_id)
    logger.info("Joao returned 1984 with fine %s", fine)
    logger.info("Maria's reservation: %s", sys.get_reservation(reservation.reservation_id).status.name)

    remaining = sys.pay_fine(joao.user_id, fine)
    logger.info("Joao paid, remaining balance %s", remaining)

    stats = sys.get_statistics()
    logger.info(
        "stats: %d books, %d users, %d active loans, %d overdue, fines %s",
        stats.total_books,
        stats.total_users,
        stats.active_loans,
        stats.overdue_loans,
        stats.total_fines,
    )


if __name__ == "__main__":
    demo_flow()
