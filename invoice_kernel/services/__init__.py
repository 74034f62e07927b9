"""Kernel services - flush-only, the caller owns the transaction."""

from invoice_kernel.services.base import BaseService
from invoice_kernel.services.settings_service import SettingsService

__all__ = [
    "BaseService",
    "SettingsService",
]
