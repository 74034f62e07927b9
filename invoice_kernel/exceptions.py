"""
Typed Exception Hierarchy for the Invoice Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InvoiceKernelError:

    InvoiceKernelError (base)
    |
    +-- InvoiceInputError
    |   +-- InvalidQuantityError
    |   +-- InvalidRateError
    |   +-- InvalidDiscountError
    |   +-- InvalidRoundingModeError
    |   +-- InvalidPriceError
    |   +-- InvalidDateError
    |   +-- InvalidStatusError
    |   +-- InvalidCurrencyError
    |
    +-- InvoiceError
        +-- InvoiceNotFoundError
        +-- DuplicateInvoiceNumberError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_QUANTITY            | Quantity not finite, negative or >= 1e29
                | INVALID_RATE                | Rate/percent not finite, negative or >= 1e5
                | INVALID_DISCOUNT            | Discount not finite, negative, too large, pct > 100
                | INVALID_ROUNDING_MODE       | Rounding mode not "line" or "total"
                | INVALID_PRICE               | Unit price (or line total) not finite or >= 1e29
                | INVALID_DATE                | Issue/due date not an ISO-8601 date
                | INVALID_STATUS              | Status not draft/sent/paid/overdue/published
                | INVALID_CURRENCY            | Currency not a three-letter code
----------------|-----------------------------|-----------------------------------------
Invoice         | INVOICE_NOT_FOUND           | Invoice id / share token doesn't exist
                | DUPLICATE_INVOICE_NUMBER    | Invoice number already taken

===============================================================================
HANDLING PATTERNS
===============================================================================

Input errors are raised while decoding a request, before any row is
written, so a rejected request never leaves a partial invoice behind:

    try:
        request = parse_invoice_request(payload)
    except InvoiceInputError as e:
        return {"error": e.code, "field": e.field, "value": e.value}

The totals engine itself never raises on numeric input; it coerces
unusable numbers to zero. Strictness lives in the request parser.
"""


class InvoiceKernelError(Exception):
    """
    Base exception for all invoice kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVOICE_KERNEL_ERROR"


# Input-related exceptions


class InvoiceInputError(InvoiceKernelError):
    """Base exception for rejected create/update request data."""

    code: str = "INVOICE_INPUT_ERROR"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class InvalidQuantityError(InvoiceInputError):
    """Line item quantity is not a finite, non-negative number."""

    code: str = "INVALID_QUANTITY"


class InvalidRateError(InvoiceInputError):
    """Tax rate or tax assessment percent is unusable."""

    code: str = "INVALID_RATE"


class InvalidDiscountError(InvoiceInputError):
    """Discount percentage or amount is unusable."""

    code: str = "INVALID_DISCOUNT"


class InvalidRoundingModeError(InvoiceInputError):
    """Rounding mode is not one of the supported modes."""

    code: str = "INVALID_ROUNDING_MODE"


class InvalidPriceError(InvoiceInputError):
    """Line item unit price is not a finite number, or the line total is too large to store."""

    code: str = "INVALID_PRICE"


class InvalidDateError(InvoiceInputError):
    """Issue or due date cannot be parsed."""

    code: str = "INVALID_DATE"


class InvalidStatusError(InvoiceInputError):
    """Status is not one of the invoice lifecycle states."""

    code: str = "INVALID_STATUS"


class InvalidCurrencyError(InvoiceInputError):
    """Currency is not a three-letter code."""

    code: str = "INVALID_CURRENCY"


# Invoice-related exceptions


class InvoiceError(InvoiceKernelError):
    """Base exception for invoice persistence errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice with given ID (or share token) was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_ref: str):
        self.invoice_ref = invoice_ref
        super().__init__(f"Invoice not found: {invoice_ref}")


class DuplicateInvoiceNumberError(InvoiceError):
    """Invoice number is already used by another invoice."""

    code: str = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number already exists: {invoice_number}")
