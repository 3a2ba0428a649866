from __future__ import annotations
import logging

from .api import LibrarySystem
from .domain import Category, UserType

logger = logging.getLogger(__name__)


def seed_demo_data(sys: LibrarySystem) -> None:
    # books
    sys.register_book("1984", "George Orwell", "978-0451524935", copies=3, category=Category.FICTION)
    sys.register_book(
        "Dom Casmurro", "Machado de Assis", "978-8525406958", copies=2, category=Category.FICTION
    )
    sys.register_book("O Alquimista", "Paulo Coelho", "978-8532511010", copies=4)

    # users
    sys.register_user("João Silva", "joao@email.com", UserType.REGULAR)
    sys.register_user("Maria Santos", "maria@email.com", UserType.STUDENT)
    sys.register_user("Prof. Carlos", "carlos@email.com", UserType.PROFESSOR)

    logger.info(
        "seeded %d books and %d users",
        len(sys.catalog.list_books()),
        len(sys.membership.list_users()),
    )
