"""
Declarative base and column conventions shared by every invoice table.

    id            uuid4, stored as a 36-character string on every backend
    Decimal       Numeric(38, 9) unless a column says otherwise
    percentages   Numeric(9, 4) via ``percent_column()``
    datetime      timezone-aware
    parent keys   ``parent_key("invoices.id")``: UUID string, ON DELETE CASCADE

Monetary values are never stored as float.  SQLite hands Numeric values
back with all nine places, so readers re-round to cents.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID objects in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict[Any, Any]] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds created_at / updated_at.

    Services stamp both from their injected clock.  The server defaults
    only matter for rows written by hand.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def percent_column(**kwargs: Any) -> Mapped[Decimal]:
    """A tax or discount percentage, four decimal places."""
    kwargs.setdefault("nullable", False)
    return mapped_column(Numeric(9, 4), **kwargs)


def parent_key(target: str) -> Mapped[UUID]:
    """Non-null foreign key to an owning row, deleted along with it."""
    return mapped_column(
        UUIDString(),
        ForeignKey(target, ondelete="CASCADE"),
        nullable=False,
    )
