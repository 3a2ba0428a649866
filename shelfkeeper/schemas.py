"""
Input models for registering books and users.

Validation errors from these models are translated to InputError by the
services, so callers never see pydantic exceptions directly.
"""

from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field, field_validator

from .domain import Category, UserType


def _required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


class BookRegistration(BaseModel):
    title: str
    author: str
    isbn: str
    copies: int = Field(default=1, gt=0)
    category: Category = Category.GENERAL

    @field_validator("title", "author", "isbn")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required(v)


class UserRegistration(BaseModel):
    name: str
    email: EmailStr
    user_type: UserType = UserType.REGULAR

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _required(v)

    @field_validator("email", mode="before")
    @classmethod
    def email_not_blank(cls, v: object) -> object:
        if isinstance(v, str):
            return _required(v)
        return v
