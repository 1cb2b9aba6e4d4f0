# backend/trailbook/models/base_enum.py
"""
Safe enum helpers for SQLAlchemy.

Enum columns persist the enum VALUES ('pending'), not the member NAMES
('PENDING'), so rows written by raw SQL and rows written by the ORM agree.

Usage:
    status = mapped_column(
        create_safe_enum(ConnectionRequestStatus, "connection_request_status"),
        nullable=False,
    )

All Python enums stored this way inherit from (str, Enum).
"""

from enum import Enum
from typing import Sequence, Type

from sqlalchemy import Enum as SAEnum


def create_safe_enum(
    enum_class: Type[Enum],
    name: str,
    *,
    native_enum: bool = False,
    validate_strings: bool = True,
) -> SAEnum:
    """
    Create a SQLAlchemy Enum that stores enum values.

    ``native_enum`` defaults to False so the column is a VARCHAR with a CHECK
    constraint, which behaves the same on PostgreSQL and SQLite.
    """
    return SAEnum(
        enum_class,
        name=name,
        native_enum=native_enum,
        create_constraint=True,
        validate_strings=validate_strings,
        values_callable=_get_enum_values,
        length=max(len(member.value) for member in enum_class),
    )


def _get_enum_values(enum_class: Type[Enum]) -> Sequence[str]:
    return [member.value for member in enum_class]
