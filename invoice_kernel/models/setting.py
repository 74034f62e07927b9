"""
Module: invoice_kernel.models.setting
Responsibility: ORM persistence for the application settings key/value store
    (company details, invoice defaults, numbering configuration).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - key is unique (uq_setting_key); values are stored as text and parsed
      by the consumers (see invoice_config.schema.InvoiceDefaults).
"""

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from invoice_kernel.db.base import Base


class Setting(Base):
    """One setting.  Values are plain strings; booleans are "true"/"false"."""

    __tablename__ = "settings"

    __table_args__ = (
        UniqueConstraint("key", name="uq_setting_key"),
    )

    key: Mapped[str] = mapped_column(String(100), nullable=False)

    value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"
