"""
Module: invoice_kernel.models.invoice
Responsibility: ORM persistence for invoices, their line items, the taxes
    assessed on each line and the invoice-level tax summary.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, domain/, or outer layers.

Invariants enforced:
    - invoice_number is unique across all invoices (uq_invoice_number).
    - share_token is unique; it is the only handle a public viewer gets.
    - Items, item taxes and invoice taxes are owned by their parent and are
      deleted with it (ORM cascade plus ON DELETE CASCADE).
    - Stored amounts are the engine's rounded figures; the model never
      recomputes them.

Failure modes:
    - IntegrityError on duplicate invoice_number or share_token.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoice_kernel.db.base import Base, TrackedBase, parent_key, percent_column
from invoice_kernel.domain.status import InvoiceStatus


class Invoice(TrackedBase):
    """
    Invoice header with the totals produced by the totals engine.

    Contract:
        subtotal, discount_amount, tax_amount and total are written together
        from one engine result.  tax_rate is 0 for per-line taxed invoices.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        UniqueConstraint("share_token", name="uq_invoice_share_token"),
        Index("idx_invoice_customer", "customer_id"),
        Index("idx_invoice_status", "status"),
        Index("idx_invoice_created", "created_at"),
    )

    invoice_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Customer records live outside this kernel
    customer_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
    )

    issue_date: Mapped[date] = mapped_column(nullable=False)

    due_date: Mapped[date | None] = mapped_column(nullable=True)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.DRAFT.value,
    )

    # Totals
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_percentage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    payment_terms: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    share_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Pricing policy the totals were computed under
    prices_include_tax: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    rounding_mode: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="line",
    )

    items: Mapped[list["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.sort_order",
        lazy="selectin",
    )

    taxes: Mapped[list["InvoiceTax"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceTax.percent",
        lazy="selectin",
    )

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT.value

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number}: {self.total} {self.currency} ({self.status})>"


class InvoiceItem(Base):
    """One billed line.  line_total is quantity x unit_price, before discount and tax."""

    __tablename__ = "invoice_items"

    __table_args__ = (
        Index("idx_invoice_item_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = parent_key("invoices.id")

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    invoice: Mapped[Invoice] = relationship(back_populates="items")

    taxes: Mapped[list["InvoiceItemTax"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="InvoiceItemTax.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InvoiceItem {self.description!r}: {self.quantity} x {self.unit_price}>"


class InvoiceItemTax(Base):
    """
    Tax assessed on one line item (per-line tax mode).

    taxable_amount is the line's net base after discount; included records
    whether the amount was carved out of a tax-inclusive price.
    """

    __tablename__ = "invoice_item_taxes"

    __table_args__ = (
        Index("idx_item_tax_item", "invoice_item_id"),
    )

    invoice_item_id: Mapped[UUID] = parent_key("invoice_items.id")

    tax_definition_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    percent: Mapped[Decimal] = percent_column()

    taxable_amount: Mapped[Decimal] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    item: Mapped[InvoiceItem] = relationship(back_populates="taxes")


class InvoiceTax(Base):
    """Invoice-level tax row: one per distinct rate, or the single uniform rate."""

    __tablename__ = "invoice_taxes"

    __table_args__ = (
        Index("idx_invoice_tax_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = parent_key("invoices.id")

    tax_definition_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    percent: Mapped[Decimal] = percent_column()

    taxable_amount: Mapped[Decimal] = mapped_column(nullable=False)

    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[Invoice] = relationship(back_populates="taxes")
