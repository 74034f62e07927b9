"""
Module: invoice_engines.numbering
Responsibility:
    Produce invoice numbers from the numbering settings: a token pattern
    such as ``INV-{YYYY}-{SEQ}``, or the classic ``PREFIX-YEAR-NNN`` scheme,
    plus throw-away ``DRAFT-XXXXXX`` numbers for unpublished invoices.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller supplies the
    date, the existing invoice numbers and the random-token source.

Invariants enforced:
    - Sequences only ever move forward: the next number is one past the
      highest numeric suffix already in use for the same prefix.
    - Purity: no clock access; randomness is injected.

Supported pattern tokens:
    {YYYY} {YY} {MM} {DD} {DATE} (YYYYMMDD) {RAND4} {SEQ}
"""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date

from invoice_kernel.logging_config import get_logger

logger = get_logger("engines.numbering")

DRAFT_PREFIX = "DRAFT-"
SEQ_TOKEN = "{SEQ}"
SEQ_PADDING = 3

_TOKEN_ALPHABET = string.ascii_uppercase + string.digits

RandomToken = Callable[[int], str]


def _enabled(value: object) -> bool:
    """Settings flags default to on; only an explicit "false" turns them off."""
    return str(value if value is not None else "true").strip().lower() != "false"


def random_token(length: int) -> str:
    """Uppercase alphanumeric token from the system CSPRNG."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class NumberingPolicy:
    """Invoice numbering settings."""

    prefix: str = "INV"
    include_year: bool = True
    padding: int = 3
    pattern: str | None = None
    enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> NumberingPolicy:
        """
        Build a policy from the settings key/value store.

        Blank prefixes fall back to "INV"; paddings outside 2..8 fall back
        to 3; a blank pattern means "no pattern".
        """
        prefix = (settings.get("invoicePrefix") or "").strip() or cls.prefix
        padding = cls.padding
        raw_padding = settings.get("invoiceNumberPadding")
        if raw_padding is not None:
            try:
                parsed = int(str(raw_padding).strip())
            except ValueError:
                parsed = None
            if parsed is not None and 2 <= parsed <= 8:
                padding = parsed
        pattern = (settings.get("invoiceNumberPattern") or "").strip() or None
        return cls(
            prefix=prefix,
            include_year=_enabled(settings.get("invoiceIncludeYear")),
            padding=padding,
            pattern=pattern,
            enabled=_enabled(settings.get("invoiceNumberingEnabled")),
        )

    @property
    def uses_sequence(self) -> bool:
        """
        True when the pattern carries a {SEQ} token.

        Such invoices are numbered at creation even with numbering
        disabled; ``next_invoice_number`` then falls back to the classic
        scheme.
        """
        return bool(self.pattern and SEQ_TOKEN in self.pattern)


def render_pattern(
    pattern: str,
    on_date: date,
    token: RandomToken = random_token,
) -> str:
    """Substitute every token except {SEQ}."""
    yyyy = f"{on_date.year:04d}"
    mm = f"{on_date.month:02d}"
    dd = f"{on_date.day:02d}"
    rendered = (
        pattern.replace("{YYYY}", yyyy)
        .replace("{YY}", yyyy[-2:])
        .replace("{MM}", mm)
        .replace("{DD}", dd)
        .replace("{DATE}", f"{yyyy}{mm}{dd}")
    )
    # Each {RAND4} gets its own token
    while "{RAND4}" in rendered:
        rendered = rendered.replace("{RAND4}", token(4), 1)
    return rendered


def _highest_sequence(
    existing_numbers: Iterable[str],
    prefix: str,
    anchored: bool,
) -> int:
    suffix = "$" if anchored else ""
    matcher = re.compile(f"^{re.escape(prefix)}(\\d+){suffix}")
    highest = 0
    for number in existing_numbers:
        match = matcher.match(str(number))
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def next_invoice_number(
    policy: NumberingPolicy,
    existing_numbers: Iterable[str],
    on_date: date,
    token: RandomToken = random_token,
) -> str:
    """
    Next invoice number under ``policy``.

    Pattern mode (pattern set and numbering enabled): a pattern without
    {SEQ} is returned rendered as-is; with {SEQ} the sequence continues from
    the highest number sharing the text before {SEQ}, padded to 3 digits.

    Classic mode: ``PREFIX-YYYY-`` (or ``PREFIX-``) followed by the next
    sequence, padded to ``policy.padding``.
    """
    existing = list(existing_numbers)

    if policy.pattern and policy.enabled:
        base = render_pattern(policy.pattern, on_date, token)
        if SEQ_TOKEN not in base:
            return base
        seq_prefix = base.split(SEQ_TOKEN)[0]
        seq = _highest_sequence(existing, seq_prefix, anchored=False) + 1
        number = base.replace(SEQ_TOKEN, str(seq).zfill(SEQ_PADDING))
    else:
        base = f"{policy.prefix}-{on_date.year}-" if policy.include_year else f"{policy.prefix}-"
        seq = _highest_sequence(existing, base, anchored=True) + 1
        number = f"{base}{str(seq).zfill(policy.padding)}"

    logger.debug("invoice_number_generated", extra={
        "invoice_number": number,
        "sequence": seq,
        "pattern": policy.pattern,
    })
    return number


def draft_invoice_number(token: RandomToken = random_token) -> str:
    """Placeholder number for a draft: ``DRAFT-`` plus six characters."""
    return f"{DRAFT_PREFIX}{token(6)}"


def is_draft_number(invoice_number: str) -> bool:
    return invoice_number.startswith(DRAFT_PREFIX)
