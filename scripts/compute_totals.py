#!/usr/bin/env python3
"""
Compute invoice totals for a create-invoice request, without a database.

Reads the same JSON body the web client posts (camelCase keys), applies
settings defaults for omitted policy fields, runs the totals engine and
prints the result as JSON.

Usage:
    python3 scripts/compute_totals.py request.json
    cat request.json | python3 scripts/compute_totals.py
    python3 scripts/compute_totals.py request.json --settings my_settings.yaml
    python3 scripts/compute_totals.py request.json --lenient

Exit status:
    0  totals printed
    1  unreadable request or settings file
    2  request rejected (invalid quantity, rate, discount, ...)
"""

import argparse
import json
import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from invoice_config import InvoiceDefaults, load_default_settings, load_settings_file  # noqa: E402
from invoice_engines import (  # noqa: E402
    InvoiceTotals,
    PerLineTotalsResult,
    compute_invoice_totals,
    uniform_tax_summary,
)
from invoice_kernel.domain.invoice_input import parse_invoice_request  # noqa: E402
from invoice_kernel.exceptions import InvoiceInputError  # noqa: E402
from invoice_kernel.logging_config import configure_logging  # noqa: E402
from invoice_services.invoice_service import resolve_policy, to_line_items  # noqa: E402


def _money(value: Decimal) -> str:
    return str(value)


def totals_to_dict(totals: InvoiceTotals) -> dict[str, Any]:
    """JSON-ready view of an engine result.  Amounts are strings."""
    out: dict[str, Any] = {
        "subtotal": _money(totals.subtotal),
        "discountAmount": _money(totals.discount_amount),
        "taxAmount": _money(totals.tax_amount),
        "total": _money(totals.total),
        "roundingMode": totals.rounding_mode.value,
        "pricesIncludeTax": totals.prices_include_tax,
    }
    if isinstance(totals, PerLineTotalsResult):
        out["mode"] = "per_line"
        out["items"] = [
            {
                "taxable": _money(item.taxable),
                "discount": _money(item.discount),
                "taxes": [
                    {
                        "percent": _money(tax.percent),
                        "amount": _money(tax.amount),
                        "included": tax.included,
                        "taxDefinitionId": tax.tax_definition_id,
                        "note": tax.note,
                    }
                    for tax in item.taxes
                ],
            }
            for item in totals.items
        ]
        out["taxes"] = [
            {
                "percent": _money(row.percent),
                "taxable": _money(row.taxable),
                "amount": _money(row.amount),
            }
            for row in totals.summary
        ]
    else:
        out["mode"] = "uniform"
        out["lines"] = [
            {
                "gross": _money(line.gross),
                "discount": _money(line.discount),
                "taxable": _money(line.taxable),
                "tax": _money(line.tax),
                "total": _money(line.total),
            }
            for line in totals.lines
        ]
    return out


def _read_payload(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    with open(source) as f:
        return json.load(f)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute invoice totals from a JSON request")
    parser.add_argument("request", nargs="?", default="-", help="Request JSON file (default: stdin)")
    parser.add_argument("--settings", help="YAML file of settings overriding the packaged defaults")
    parser.add_argument("--lenient", action="store_true", help="Coerce unusable numbers to zero instead of rejecting")
    parser.add_argument("--verbose", action="store_true", help="Log engine activity to stderr")
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        payload = _read_payload(args.request)
        settings = load_default_settings()
        if args.settings:
            settings.update(load_settings_file(args.settings))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not isinstance(payload, dict):
        print("ERROR: request must be a JSON object", file=sys.stderr)
        return 1

    try:
        request = parse_invoice_request(payload, strict=not args.lenient)
    except InvoiceInputError as exc:
        print(json.dumps({
            "error": exc.code,
            "field": exc.field,
            "reason": exc.reason,
        }), file=sys.stderr)
        return 2

    policy = resolve_policy(request, InvoiceDefaults.from_settings(settings))
    totals = compute_invoice_totals(to_line_items(request.items), policy)

    out = totals_to_dict(totals)
    if request.tax_definition_id and not isinstance(totals, PerLineTotalsResult):
        row = uniform_tax_summary(totals, policy.tax_rate, request.tax_definition_id)
        out["taxes"] = [
            {
                "percent": _money(row.percent),
                "taxable": _money(row.taxable),
                "amount": _money(row.amount),
                "taxDefinitionId": row.tax_definition_id,
            }
        ]

    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
