"""
invoice_config -- settings defaults and database location.

Responsibility:
    Owns everything the invoicing system reads from outside the database:
    the ``DATABASE_URL`` environment variable and the YAML file of default
    settings that seeds the settings store on first run.

Architecture position:
    Configuration -- sits above ``invoice_kernel`` and below
    ``invoice_services``.  The kernel MUST NEVER import from
    ``invoice_config``.
"""

from __future__ import annotations

import os

from invoice_config.loader import load_default_settings, load_settings_file
from invoice_config.schema import InvoiceDefaults

DEFAULT_DATABASE_URL = "sqlite:///./invoices.db"


def get_database_url() -> str:
    """Database URL from ``DATABASE_URL``, or a local SQLite file."""
    return os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL


__all__ = [
    "DEFAULT_DATABASE_URL",
    "InvoiceDefaults",
    "get_database_url",
    "load_default_settings",
    "load_settings_file",
]
