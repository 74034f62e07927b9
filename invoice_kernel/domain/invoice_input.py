"""
Invoice request decoding.

Turns the create/update payload sent by the web client (camelCase JSON)
into frozen request objects the invoice service can act on.

Two modes:
    strict (default): unusable numbers raise typed InvoiceInputError
        subclasses before anything is persisted.  So do figures too large
        for their columns (amounts and quantities of 1e29 or more, rates of
        1e5 or more, a line total of 1e29 or more), an unknown status and a
        currency that is not a three-letter code.
    permissive: unusable or oversized numbers become zero, negative
        quantities become zero -- the same substitution the totals engine
        applies.  An unknown status or malformed currency is dropped.

Policy fields the client omitted (tax rate, rounding mode, inclusive
pricing) stay ``None`` so that settings defaults can fill them in.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from invoice_kernel.domain.status import InvoiceStatus
from invoice_kernel.domain.values import (
    HUNDRED,
    ZERO,
    money_context,
    parse_decimal,
    to_bool,
    to_decimal,
    to_quantity,
    within_range,
)
from invoice_kernel.exceptions import (
    InvalidCurrencyError,
    InvalidDateError,
    InvalidDiscountError,
    InvalidPriceError,
    InvalidQuantityError,
    InvalidRateError,
    InvalidRoundingModeError,
    InvalidStatusError,
    InvoiceInputError,
)
from invoice_kernel.logging_config import get_logger

logger = get_logger("domain.invoice_input")

ROUNDING_MODES = ("line", "total")

# Numeric(9, 4) percent columns
MAX_PERCENT = Decimal("100000")

TOO_LARGE = "too large to store"


@dataclass(frozen=True)
class TaxRequest:
    """One tax assessment attached to a requested line."""

    percent: Decimal
    tax_definition_id: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class ItemRequest:
    """One requested invoice line."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    notes: str | None = None
    taxes: tuple[TaxRequest, ...] = ()


@dataclass(frozen=True)
class InvoiceRequest:
    """Decoded create/update invoice request."""

    items: tuple[ItemRequest, ...] = ()
    customer_id: str | None = None
    invoice_number: str | None = None
    currency: str | None = None
    status: str | None = None
    issue_date: date | None = None
    due_date: date | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    tax_rate: Decimal | None = None
    tax_definition_id: str | None = None
    prices_include_tax: bool | None = None
    rounding_mode: str | None = None
    payment_terms: str | None = None
    notes: str | None = None

    @property
    def has_items(self) -> bool:
        return bool(self.items)

    @property
    def has_per_line_taxes(self) -> bool:
        return any(item.taxes for item in self.items)


def _reject(error_cls: type[InvoiceInputError], field: str, value: Any, reason: str) -> None:
    logger.warning("invoice_request_rejected", extra={
        "field": field,
        "value": repr(value),
        "reason": reason,
        "error_code": error_cls.code,
    })
    raise error_cls(field, value, reason)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _quantity(value: Any, field: str, strict: bool) -> Decimal:
    if not strict:
        return to_quantity(value)
    parsed = parse_decimal(value)
    if parsed is None:
        _reject(InvalidQuantityError, field, value, "not a finite number")
    if parsed < ZERO:
        _reject(InvalidQuantityError, field, value, "negative quantity")
    if not within_range(parsed):
        _reject(InvalidQuantityError, field, value, TOO_LARGE)
    return parsed


def _price(value: Any, field: str, strict: bool) -> Decimal:
    if not strict:
        return to_decimal(value)
    parsed = parse_decimal(value)
    if parsed is None:
        _reject(InvalidPriceError, field, value, "not a finite number")
    if not within_range(parsed):
        _reject(InvalidPriceError, field, value, TOO_LARGE)
    return parsed


def _rate(value: Any, field: str, strict: bool) -> Decimal:
    if not strict:
        rate = to_decimal(value)
        return rate if rate.copy_abs() < MAX_PERCENT else ZERO
    parsed = parse_decimal(value)
    if parsed is None:
        _reject(InvalidRateError, field, value, "not a finite number")
    if parsed < ZERO:
        _reject(InvalidRateError, field, value, "negative rate")
    if parsed >= MAX_PERCENT:
        _reject(InvalidRateError, field, value, TOO_LARGE)
    return parsed


def _discount(value: Any, field: str, strict: bool, is_percentage: bool) -> Decimal | None:
    if value is None:
        return None
    if not strict:
        return to_decimal(value)
    parsed = parse_decimal(value)
    if parsed is None:
        _reject(InvalidDiscountError, field, value, "not a finite number")
    if parsed < ZERO:
        _reject(InvalidDiscountError, field, value, "negative discount")
    if not within_range(parsed):
        _reject(InvalidDiscountError, field, value, TOO_LARGE)
    if is_percentage and parsed > HUNDRED:
        _reject(InvalidDiscountError, field, value, "percentage above 100")
    return parsed


def _check_line_total(quantity: Decimal, unit_price: Decimal, prefix: str, raw_price: Any) -> None:
    with money_context():
        line_total = quantity * unit_price
    if not within_range(line_total):
        _reject(InvalidPriceError, f"{prefix}.unitPrice", raw_price, f"line total {TOO_LARGE}")


def _status(value: Any, strict: bool) -> str | None:
    text = _text(value)
    if text is None:
        return None
    status = text.lower()
    if status in InvoiceStatus.values():
        return status
    if strict:
        _reject(InvalidStatusError, "status", value, "expected one of " + ", ".join(InvoiceStatus.values()))
    return None


def _currency(value: Any, strict: bool) -> str | None:
    text = _text(value)
    if text is None:
        return None
    if len(text) == 3 and text.isascii() and text.isalpha():
        return text.upper()
    if strict:
        _reject(InvalidCurrencyError, "currency", value, "expected a three-letter code")
    return None


def _rounding_mode(value: Any, strict: bool) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    mode = str(value).strip().lower()
    if mode in ROUNDING_MODES:
        return mode
    if strict:
        _reject(InvalidRoundingModeError, "roundingMode", value, "expected 'line' or 'total'")
    return ROUNDING_MODES[0]


def _date(value: Any, field: str, strict: bool) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        if strict:
            _reject(InvalidDateError, field, value, "not an ISO-8601 date")
        return None


def _parse_taxes(raw: Any, prefix: str, strict: bool) -> tuple[TaxRequest, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return ()
    taxes: list[TaxRequest] = []
    for idx, entry in enumerate(raw):
        entry = entry if isinstance(entry, Mapping) else {}
        taxes.append(
            TaxRequest(
                percent=_rate(entry.get("percent"), f"{prefix}.taxes[{idx}].percent", strict),
                tax_definition_id=_text(entry.get("taxDefinitionId")),
                note=_text(entry.get("note")),
            )
        )
    return tuple(taxes)


def _parse_items(raw: Any, strict: bool) -> tuple[ItemRequest, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return ()
    items: list[ItemRequest] = []
    for idx, entry in enumerate(raw):
        entry = entry if isinstance(entry, Mapping) else {}
        prefix = f"items[{idx}]"
        quantity = _quantity(entry.get("quantity"), f"{prefix}.quantity", strict)
        unit_price = _price(entry.get("unitPrice"), f"{prefix}.unitPrice", strict)
        if strict:
            _check_line_total(quantity, unit_price, prefix, entry.get("unitPrice"))
        items.append(
            ItemRequest(
                description=str(entry.get("description") or ""),
                quantity=quantity,
                unit_price=unit_price,
                notes=_text(entry.get("notes")),
                taxes=_parse_taxes(entry.get("taxes"), prefix, strict),
            )
        )
    return tuple(items)


def parse_invoice_request(
    payload: Mapping[str, Any],
    *,
    strict: bool = True,
) -> InvoiceRequest:
    """
    Decode a create/update invoice payload.

    Args:
        payload: Mapping with the client's camelCase keys.
        strict: Raise typed errors on unusable input instead of coercing.

    Returns:
        InvoiceRequest; omitted policy fields are None.

    Raises:
        InvalidQuantityError, InvalidPriceError, InvalidRateError,
        InvalidDiscountError, InvalidRoundingModeError, InvalidDateError,
        InvalidStatusError, InvalidCurrencyError:
            strict mode only.
    """
    tax_rate_raw = payload.get("taxRate")
    tax_rate = None
    if tax_rate_raw is not None:
        tax_rate = _rate(tax_rate_raw, "taxRate", strict)

    include_raw = payload.get("pricesIncludeTax")

    request = InvoiceRequest(
        items=_parse_items(payload.get("items"), strict),
        customer_id=_text(payload.get("customerId")),
        invoice_number=_text(payload.get("invoiceNumber")),
        currency=_currency(payload.get("currency"), strict),
        status=_status(payload.get("status"), strict),
        issue_date=_date(payload.get("issueDate"), "issueDate", strict),
        due_date=_date(payload.get("dueDate"), "dueDate", strict),
        discount_percentage=_discount(
            payload.get("discountPercentage"), "discountPercentage", strict, is_percentage=True
        ),
        discount_amount=_discount(
            payload.get("discountAmount"), "discountAmount", strict, is_percentage=False
        ),
        tax_rate=tax_rate,
        tax_definition_id=_text(payload.get("taxDefinitionId")),
        prices_include_tax=None if include_raw is None else to_bool(include_raw),
        rounding_mode=_rounding_mode(payload.get("roundingMode"), strict),
        payment_terms=_text(payload.get("paymentTerms")),
        notes=_text(payload.get("notes")),
    )

    logger.debug("invoice_request_parsed", extra={
        "item_count": len(request.items),
        "per_line_taxes": request.has_per_line_taxes,
        "strict": strict,
    })
    return request
