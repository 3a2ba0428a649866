"""
Settings and logging setup for shelfkeeper.

Circulation rules (loan period, renewal limit, fine amounts, per-role loan
limits) live in a pydantic model so they can be overridden from environment
variables or a .env file, and validated in one place.
"""

from __future__ import annotations
import logging
import os
from decimal import Decimal
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .domain import UserType

ENV_PREFIX = "SHELFKEEPER_"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

DEFAULT_LOAN_LIMITS: Dict[UserType, int] = {
    UserType.REGULAR: 5,
    UserType.STUDENT: 3,
    UserType.PROFESSOR: 10,
    UserType.VIP: 8,
}


class LibrarySettings(BaseModel):
    """Circulation rules and runtime options."""

    loan_period_days: int = Field(default=14, description="Days a loan runs before it is due")
    renewal_limit: int = Field(default=2, description="Maximum renewals per loan")
    daily_fine: Decimal = Field(default=Decimal("2.50"), description="Fine per whole day late")
    max_fine_amount: Decimal = Field(
        default=Decimal("50.00"),
        description="Cap on a single fine and the balance at which borrowing is blocked",
    )
    student_discount: Decimal = Field(
        default=Decimal("0.5"), description="Multiplier applied to student fines"
    )
    reservation_hold_days: int = Field(
        default=3, description="Days a ready reservation is held for pickup"
    )
    return_loyalty_points: int = Field(default=10, description="Points awarded per return")
    loan_limits: Dict[UserType, int] = Field(default_factory=lambda: dict(DEFAULT_LOAN_LIMITS))
    log_level: str = Field(default="INFO", description="Level for the shelfkeeper logger")

    @field_validator("loan_period_days", "reservation_hold_days")
    @classmethod
    def period_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("period must be a positive number of days")
        return v

    @field_validator("renewal_limit", "return_loyalty_points")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator("daily_fine", "max_fine_amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("amount must be greater than zero")
        return v

    @field_validator("student_discount")
    @classmethod
    def discount_in_range(cls, v: Decimal) -> Decimal:
        if not (0 < v <= 1):
            raise ValueError("student discount must be in (0, 1]")
        return v

    @field_validator("loan_limits")
    @classmethod
    def limits_cover_every_type(cls, v: Dict[UserType, int]) -> Dict[UserType, int]:
        missing = [t.value for t in UserType if t not in v]
        if missing:
            raise ValueError(f"loan limits missing for: {', '.join(missing)}")
        if any(limit <= 0 for limit in v.values()):
            raise ValueError("loan limits must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


def _env(name: str) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + name)
    return value if value not in (None, "") else None


def load_settings(dotenv_path: Optional[str] = None) -> LibrarySettings:
    """Build settings from defaults, a .env file and SHELFKEEPER_* variables."""
    load_dotenv(dotenv_path)

    overrides: Dict[str, object] = {}
    for name in (
        "loan_period_days",
        "renewal_limit",
        "daily_fine",
        "max_fine_amount",
        "student_discount",
        "reservation_hold_days",
        "return_loyalty_points",
        "log_level",
    ):
        value = _env(name.upper())
        if value is not None:
            overrides[name] = value

    # raw strings; pydantic coerces and validates them with the other fields
    limits: Dict[UserType, object] = dict(DEFAULT_LOAN_LIMITS)
    for user_type in UserType:
        value = _env(f"LOAN_LIMIT_{user_type.name}")
        if value is not None:
            limits[user_type] = value
    overrides["loan_limits"] = limits

    return LibrarySettings(**overrides)


def configure_logging(settings: Optional[LibrarySettings] = None) -> logging.Logger:
    """Attach a console handler to the package logger (once)."""
    settings = settings or LibrarySettings()
    logger = logging.getLogger("shelfkeeper")
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
