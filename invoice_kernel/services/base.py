"""
BaseService -- shared plumbing for session-holding services.

Services never commit: they add, flush and return.  Whoever opened the
session (``session_scope()``, the CLI, a test fixture) decides whether the
work is kept.  That lets an invoice and the settings it consumed be
written in one transaction.
"""

from abc import ABC
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from invoice_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Flush-only service over one primary model.

    Subclasses set ``model`` to the ORM class they manage.
    """

    model: ClassVar[type[Base]]

    def __init__(self, session: Session):
        self.session = session

    def _find_by(self, **filters: Any) -> ModelType | None:
        """Single row matching all ``filters``, or None."""
        stmt = select(self.model).filter_by(**filters)
        return self.session.execute(stmt).scalar_one_or_none()

    def _save(self, row: ModelType) -> ModelType:
        """Add ``row`` to the session and flush it (no commit)."""
        self.session.add(row)
        self.session.flush()
        return row
