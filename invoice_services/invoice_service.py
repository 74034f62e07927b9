"""
InvoiceService -- create, recompute, number and publish invoices.

Responsibility:
    Turns a decoded InvoiceRequest into persisted rows: applies settings
    defaults to omitted policy fields, dispatches the totals engine, assigns
    invoice numbers and writes the invoice, its items, per-item tax rows and
    the invoice-level tax summary.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Holds the
    session and the injected clock; all arithmetic is delegated to
    ``invoice_engines``.

Invariants enforced:
    - Flush-only: the caller owns commit/rollback (see session_scope()).
    - Stored totals always come from a single engine result; the service
      never adds or rounds amounts itself.
    - Invoice numbers are unique; an explicit duplicate is rejected before
      anything is written.

Failure modes:
    - InvoiceNotFoundError for unknown ids or share tokens.
    - DuplicateInvoiceNumberError for a number already in use.

Returns frozen DTOs (InvoiceInfo and friends), never ORM entities.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from invoice_config.schema import InvoiceDefaults
from invoice_engines import (
    InvoicePolicy,
    LineItem,
    NumberingPolicy,
    PerLineTotalsResult,
    TaxAssessment,
    TaxSummaryRow,
    compute_invoice_totals,
    draft_invoice_number,
    is_draft_number,
    next_invoice_number,
    random_token,
    uniform_tax_summary,
)
from invoice_engines.numbering import RandomToken
from invoice_kernel.domain.clock import Clock, SystemClock
from invoice_kernel.domain.invoice_input import InvoiceRequest, ItemRequest, TaxRequest
from invoice_kernel.domain.values import ZERO, round_money
from invoice_kernel.exceptions import DuplicateInvoiceNumberError, InvoiceNotFoundError
from invoice_kernel.logging_config import LogContext, get_logger
from invoice_kernel.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceItemTax,
    InvoiceStatus,
    InvoiceTax,
)
from invoice_kernel.services.settings_service import SettingsService

logger = get_logger("services.invoice")


def default_share_token() -> str:
    return secrets.token_urlsafe(24)


def resolve_policy(request: InvoiceRequest, fallback: InvoiceDefaults) -> InvoicePolicy:
    """
    Totals policy for a request.

    Discounts come from the request alone; tax rate, inclusive pricing and
    rounding mode fall back to ``fallback`` when the request omits them.
    """
    return InvoicePolicy(
        discount_percentage=request.discount_percentage or ZERO,
        discount_amount=request.discount_amount or ZERO,
        tax_rate=request.tax_rate if request.tax_rate is not None else fallback.tax_rate,
        prices_include_tax=(
            request.prices_include_tax
            if request.prices_include_tax is not None
            else fallback.prices_include_tax
        ),
        rounding_mode=request.rounding_mode or fallback.rounding_mode,
    )


def to_line_items(items: Sequence[ItemRequest]) -> list[LineItem]:
    return [
        LineItem(
            quantity=item.quantity,
            unit_price=item.unit_price,
            note=item.notes,
            taxes=tuple(
                TaxAssessment(
                    percent=tax.percent,
                    tax_definition_id=tax.tax_definition_id,
                    note=tax.note,
                )
                for tax in item.taxes
            ),
        )
        for item in items
    ]


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ItemTaxInfo:
    """Tax assessed on one item."""

    percent: Decimal
    taxable_amount: Decimal
    amount: Decimal
    included: bool
    tax_definition_id: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class InvoiceItemInfo:
    """Immutable DTO for a persisted line item."""

    id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    notes: str | None
    sort_order: int
    taxes: tuple[ItemTaxInfo, ...] = ()


@dataclass(frozen=True)
class InvoiceTaxInfo:
    """Invoice-level tax row."""

    id: UUID
    percent: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    tax_definition_id: str | None = None


@dataclass(frozen=True)
class InvoiceInfo:
    """
    Immutable DTO for invoice data.

    Monetary fields are rounded to cents on the way out of the database.
    """

    id: UUID
    invoice_number: str
    customer_id: str | None
    issue_date: date
    due_date: date | None
    currency: str
    status: str
    subtotal: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    payment_terms: str | None
    notes: str | None
    share_token: str
    prices_include_tax: bool
    rounding_mode: str
    created_at: datetime | None
    updated_at: datetime | None
    items: tuple[InvoiceItemInfo, ...] = ()
    taxes: tuple[InvoiceTaxInfo, ...] = ()

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT.value

    @property
    def has_per_line_taxes(self) -> bool:
        return any(item.taxes for item in self.items)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class InvoiceService:
    """
    Invoice lifecycle over the totals and numbering engines.

    Args:
        session: SQLAlchemy session; the caller commits.
        clock: Source of "today" for issue dates and numbering.
        token: Random token source for draft numbers and {RAND4}.
        share_token: Factory for public share tokens.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        token: RandomToken = random_token,
        share_token: Callable[[], str] = default_share_token,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self._token = token
        self._share_token = share_token
        self._settings = SettingsService(session)

    # -- conversion ---------------------------------------------------------

    def _to_dto(self, invoice: Invoice) -> InvoiceInfo:
        items = tuple(
            InvoiceItemInfo(
                id=item.id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
                notes=item.notes,
                sort_order=item.sort_order,
                taxes=tuple(
                    ItemTaxInfo(
                        percent=tax.percent,
                        taxable_amount=round_money(tax.taxable_amount),
                        amount=round_money(tax.amount),
                        included=tax.included,
                        tax_definition_id=tax.tax_definition_id,
                        note=tax.note,
                    )
                    for tax in item.taxes
                ),
            )
            for item in invoice.items
        )
        taxes = tuple(
            InvoiceTaxInfo(
                id=tax.id,
                percent=tax.percent,
                taxable_amount=round_money(tax.taxable_amount),
                tax_amount=round_money(tax.tax_amount),
                tax_definition_id=tax.tax_definition_id,
            )
            for tax in invoice.taxes
        )
        return InvoiceInfo(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            currency=invoice.currency,
            status=invoice.status,
            subtotal=round_money(invoice.subtotal),
            discount_amount=round_money(invoice.discount_amount),
            discount_percentage=invoice.discount_percentage,
            tax_rate=invoice.tax_rate,
            tax_amount=round_money(invoice.tax_amount),
            total=round_money(invoice.total),
            payment_terms=invoice.payment_terms,
            notes=invoice.notes,
            share_token=invoice.share_token,
            prices_include_tax=invoice.prices_include_tax,
            rounding_mode=invoice.rounding_mode,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            items=items,
            taxes=taxes,
        )

    # -- lookups ------------------------------------------------------------

    def _get_by_id(self, invoice_id: UUID | str) -> Invoice:
        """Get invoice by ID, raising if not found."""
        try:
            key = invoice_id if isinstance(invoice_id, UUID) else UUID(str(invoice_id))
        except ValueError:
            raise InvoiceNotFoundError(str(invoice_id)) from None
        invoice = self.session.get(Invoice, key)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _number_taken(self, invoice_number: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        if exclude_id is not None:
            stmt = stmt.where(Invoice.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def _existing_numbers(self) -> list[str]:
        return list(self.session.execute(select(Invoice.invoice_number)).scalars())

    def _next_number(self, policy: NumberingPolicy) -> str:
        return next_invoice_number(
            policy,
            self._existing_numbers(),
            self.clock.today(),
            self._token,
        )

    # -- calculation --------------------------------------------------------

    @staticmethod
    def _build_items(
        items: Sequence[ItemRequest],
        totals,
    ) -> list[InvoiceItem]:
        per_line = isinstance(totals, PerLineTotalsResult)
        rows: list[InvoiceItem] = []
        for idx, item in enumerate(items):
            row = InvoiceItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.quantity * item.unit_price,
                notes=item.notes,
                sort_order=idx,
            )
            if per_line:
                breakdown = totals.items[idx]
                row.taxes = [
                    InvoiceItemTax(
                        tax_definition_id=assessed.tax_definition_id,
                        percent=assessed.percent,
                        taxable_amount=breakdown.taxable,
                        amount=assessed.amount,
                        included=assessed.included,
                        sequence=seq,
                        note=assessed.note,
                    )
                    for seq, assessed in enumerate(breakdown.taxes)
                ]
            rows.append(row)
        return rows

    @staticmethod
    def _build_taxes(
        totals,
        tax_rate: Decimal,
        tax_definition_id: str | None,
    ) -> list[InvoiceTax]:
        rows: tuple[TaxSummaryRow, ...]
        if isinstance(totals, PerLineTotalsResult):
            rows = totals.summary
        elif tax_definition_id:
            rows = (uniform_tax_summary(totals, tax_rate, tax_definition_id),)
        else:
            rows = ()
        return [
            InvoiceTax(
                tax_definition_id=row.tax_definition_id,
                percent=row.percent,
                taxable_amount=row.taxable,
                tax_amount=row.amount,
            )
            for row in rows
        ]

    def _apply(
        self,
        invoice: Invoice,
        request: InvoiceRequest,
        policy: InvoicePolicy,
    ):
        """Run the engine and write totals, items and tax rows onto ``invoice``."""
        totals = compute_invoice_totals(to_line_items(request.items), policy)
        per_line = isinstance(totals, PerLineTotalsResult)
        tax_rate = ZERO if per_line else max(policy.tax_rate, ZERO)

        invoice.subtotal = totals.subtotal
        invoice.discount_amount = totals.discount_amount
        invoice.discount_percentage = policy.discount_percentage
        invoice.tax_rate = tax_rate
        invoice.tax_amount = totals.tax_amount
        invoice.total = totals.total
        invoice.prices_include_tax = policy.prices_include_tax
        invoice.rounding_mode = policy.rounding_mode.value
        invoice.items = self._build_items(request.items, totals)
        invoice.taxes = self._build_taxes(totals, tax_rate, request.tax_definition_id)
        return totals

    # -- operations ---------------------------------------------------------

    def create_invoice(self, request: InvoiceRequest) -> InvoiceInfo:
        """
        Create an invoice from a decoded request.

        Numbering: an explicit number must be unused; otherwise a pattern
        with {SEQ} yields the next sequence number and anything else gets a
        DRAFT- placeholder that publish_invoice replaces.

        Omitted tax rate, rounding mode, inclusive pricing, currency and
        payment terms come from the settings store.

        Raises:
            DuplicateInvoiceNumberError: If the explicit number is taken.
        """
        settings = self._settings.get_all()
        defaults = InvoiceDefaults.from_settings(settings)

        if request.invoice_number:
            if self._number_taken(request.invoice_number):
                logger.warning("invoice_number_conflict", extra={
                    "invoice_number": request.invoice_number,
                })
                raise DuplicateInvoiceNumberError(request.invoice_number)
            invoice_number = request.invoice_number
        else:
            numbering = NumberingPolicy.from_settings(settings)
            if numbering.uses_sequence:
                invoice_number = self._next_number(numbering)
            else:
                invoice_number = draft_invoice_number(self._token)

        policy = resolve_policy(request, defaults)

        now = self.clock.now()
        invoice = Invoice(
            id=uuid4(),
            invoice_number=invoice_number,
            customer_id=request.customer_id,
            issue_date=request.issue_date or self.clock.today(),
            due_date=request.due_date,
            currency=request.currency or defaults.currency,
            status=request.status or InvoiceStatus.DRAFT.value,
            payment_terms=request.payment_terms or defaults.payment_terms,
            notes=request.notes,
            share_token=self._share_token(),
            created_at=now,
            updated_at=now,
        )

        with LogContext.bind(invoice_id=str(invoice.id)):
            totals = self._apply(invoice, request, policy)
            self.session.add(invoice)
            self.session.flush()

            logger.info("invoice_created", extra={
                "invoice_number": invoice.invoice_number,
                "item_count": len(invoice.items),
                "per_line_taxes": isinstance(totals, PerLineTotalsResult),
                "total": str(invoice.total),
                "status": invoice.status,
            })
        return self._to_dto(invoice)

    def get_invoice(self, invoice_id: UUID | str) -> InvoiceInfo:
        """
        Get invoice with items and taxes.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        return self._to_dto(self._get_by_id(invoice_id))

    def get_by_share_token(self, share_token: str) -> InvoiceInfo:
        """
        Get invoice by its public share token.

        Raises:
            InvoiceNotFoundError: If no invoice carries the token.
        """
        stmt = select(Invoice).where(Invoice.share_token == share_token)
        invoice = self.session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(share_token)
        return self._to_dto(invoice)

    def list_invoices(self) -> list[InvoiceInfo]:
        """All invoices, newest first."""
        stmt = select(Invoice).order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
        return [self._to_dto(invoice) for invoice in self.session.execute(stmt).scalars()]

    def delete_invoice(self, invoice_id: UUID | str) -> None:
        """
        Delete an invoice with its items and tax rows.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        invoice = self._get_by_id(invoice_id)
        number = invoice.invoice_number
        self.session.delete(invoice)
        self.session.flush()
        logger.info("invoice_deleted", extra={
            "invoice_id": str(invoice_id),
            "invoice_number": number,
        })

    def update_invoice(self, invoice_id: UUID | str, request: InvoiceRequest) -> InvoiceInfo:
        """
        Update an invoice.

        Without items only the status changes.  With items the invoice is
        recomputed: items and tax rows are replaced, discounts come from the
        request, and tax rate, rounding mode and inclusive pricing fall back
        to the invoice's stored values when the request omits them.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
            DuplicateInvoiceNumberError: If a changed number is taken.
        """
        invoice = self._get_by_id(invoice_id)

        with LogContext.bind(invoice_id=str(invoice.id)):
            if not request.has_items:
                if request.status:
                    invoice.status = request.status
                    invoice.updated_at = self.clock.now()
                    self.session.flush()
                    logger.info("invoice_status_updated", extra={
                        "invoice_number": invoice.invoice_number,
                        "status": invoice.status,
                    })
                return self._to_dto(invoice)

            if request.invoice_number and request.invoice_number != invoice.invoice_number:
                if self._number_taken(request.invoice_number, exclude_id=invoice.id):
                    logger.warning("invoice_number_conflict", extra={
                        "invoice_number": request.invoice_number,
                    })
                    raise DuplicateInvoiceNumberError(request.invoice_number)
                invoice.invoice_number = request.invoice_number

            stored = InvoiceDefaults(
                tax_rate=invoice.tax_rate,
                rounding_mode=invoice.rounding_mode,
                prices_include_tax=invoice.prices_include_tax,
            )
            policy = resolve_policy(request, stored)

            if request.issue_date:
                invoice.issue_date = request.issue_date
            if request.due_date:
                invoice.due_date = request.due_date
            if request.currency:
                invoice.currency = request.currency
            if request.status:
                invoice.status = request.status
            if request.payment_terms is not None:
                invoice.payment_terms = request.payment_terms
            if request.notes is not None:
                invoice.notes = request.notes
            if request.customer_id:
                invoice.customer_id = request.customer_id

            totals = self._apply(invoice, request, policy)
            invoice.updated_at = self.clock.now()
            self.session.flush()

            logger.info("invoice_recomputed", extra={
                "invoice_number": invoice.invoice_number,
                "item_count": len(invoice.items),
                "per_line_taxes": isinstance(totals, PerLineTotalsResult),
                "total": str(invoice.total),
            })
        return self._to_dto(invoice)

    def publish_invoice(self, invoice_id: UUID | str) -> InvoiceInfo:
        """
        Publish a draft.

        A DRAFT- placeholder number is replaced by the next real number.
        Invoices that are not drafts are returned unchanged.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        invoice = self._get_by_id(invoice_id)
        if not invoice.is_draft:
            logger.info("invoice_publish_skipped", extra={
                "invoice_id": str(invoice.id),
                "status": invoice.status,
            })
            return self._to_dto(invoice)

        previous = invoice.invoice_number
        if is_draft_number(invoice.invoice_number):
            numbering = NumberingPolicy.from_settings(self._settings.get_all())
            invoice.invoice_number = self._next_number(numbering)
        invoice.status = InvoiceStatus.PUBLISHED.value
        invoice.updated_at = self.clock.now()
        self.session.flush()

        logger.info("invoice_published", extra={
            "invoice_id": str(invoice.id),
            "previous_number": previous,
            "invoice_number": invoice.invoice_number,
        })
        return self._to_dto(invoice)

    def unpublish_invoice(self, invoice_id: UUID | str) -> InvoiceInfo:
        """
        Return an invoice to draft.  Its number is kept.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        invoice = self._get_by_id(invoice_id)
        invoice.status = InvoiceStatus.DRAFT.value
        invoice.updated_at = self.clock.now()
        self.session.flush()
        logger.info("invoice_unpublished", extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
        })
        return self._to_dto(invoice)

    def duplicate_invoice(self, invoice_id: UUID | str) -> InvoiceInfo:
        """
        Copy an invoice into a new draft with a freshly assigned number.

        Items, per-line taxes and the pricing policy are carried over; dates,
        status and the share token are not.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        source = self._to_dto(self._get_by_id(invoice_id))
        uniform_definition = None
        if not source.has_per_line_taxes and source.taxes:
            uniform_definition = source.taxes[0].tax_definition_id

        request = InvoiceRequest(
            items=tuple(
                ItemRequest(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    notes=item.notes,
                    taxes=tuple(
                        TaxRequest(
                            percent=tax.percent,
                            tax_definition_id=tax.tax_definition_id,
                            note=tax.note,
                        )
                        for tax in item.taxes
                    ),
                )
                for item in source.items
            ),
            customer_id=source.customer_id,
            currency=source.currency,
            discount_percentage=source.discount_percentage,
            discount_amount=source.discount_amount,
            tax_rate=source.tax_rate,
            tax_definition_id=uniform_definition,
            prices_include_tax=source.prices_include_tax,
            rounding_mode=source.rounding_mode,
            payment_terms=source.payment_terms,
            notes=source.notes,
        )
        copy = self.create_invoice(request)
        logger.info("invoice_duplicated", extra={
            "source_invoice_id": str(source.id),
            "invoice_id": str(copy.id),
            "invoice_number": copy.invoice_number,
        })
        return copy
