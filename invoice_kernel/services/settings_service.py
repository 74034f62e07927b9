"""
Service layer for the settings key/value store.

Settings hold company details, invoice defaults (tax rate, rounding mode,
inclusive pricing, currency, payment terms) and numbering configuration.
Values are plain strings; typed views are built by the callers.
"""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy import delete, select

from invoice_kernel.logging_config import get_logger
from invoice_kernel.models.setting import Setting
from invoice_kernel.services.base import BaseService

logger = get_logger("services.settings")

# Company fields a blank value clears instead of storing ""
CLEARABLE_KEYS = frozenset({
    "companyTaxId",
    "taxId",
    "companyPhone",
    "phone",
    "companyEmail",
    "email",
    "companyCountryCode",
    "countryCode",
    "companyCity",
    "companyPostalCode",
    "locale",
})

KEY_ALIASES = {"taxId": "companyTaxId"}


class SettingsService(BaseService[Setting]):
    """Read and write application settings."""

    model = Setting

    def get_all(self) -> dict[str, str]:
        rows = self.session.execute(select(Setting).order_by(Setting.key)).scalars()
        return {row.key: row.value for row in rows}

    def get(self, key: str) -> str | None:
        setting = self._find_by(key=key)
        return setting.value if setting is not None else None

    def set(self, key: str, value: str) -> tuple[str, str]:
        """Insert or overwrite one setting."""
        value = str(value)
        setting = self._find_by(key=key)
        if setting is None:
            self._save(Setting(key=key, value=value))
        else:
            setting.value = value
            self.session.flush()
        logger.debug("setting_saved", extra={"key": key})
        return key, value

    def delete(self, key: str) -> bool:
        """Delete a setting.  Returns True if a row was removed."""
        result = self.session.execute(delete(Setting).where(Setting.key == key))
        self.session.flush()
        return bool(result.rowcount)

    def update(self, values: Mapping[str, object]) -> dict[str, str]:
        """
        Apply a batch of settings.

        Blank values for clearable company fields delete the row (``taxId``
        is stored as ``companyTaxId``).  Everything else is upserted.

        Returns:
            Mapping of the keys written to their stored value ("" for
            cleared keys).
        """
        written: dict[str, str] = {}
        cleared: list[str] = []
        for key, raw in values.items():
            if key in CLEARABLE_KEYS and str(raw).strip() == "":
                target = KEY_ALIASES.get(key, key)
                self.delete(target)
                written[target] = ""
                cleared.append(target)
                continue
            _, stored = self.set(key, str(raw))
            written[key] = stored

        logger.info("settings_updated", extra={
            "keys": sorted(written),
            "cleared": cleared,
        })
        return written

    def seed(self, values: Mapping[str, object]) -> list[str]:
        """
        Insert defaults for keys that are not set yet.

        Existing values are never overwritten.

        Returns:
            Keys that were inserted.
        """
        existing = set(self.get_all())
        inserted = []
        for key, value in values.items():
            if key in existing:
                continue
            self.session.add(Setting(key=key, value=str(value)))
            inserted.append(key)
        self.session.flush()
        if inserted:
            logger.info("settings_seeded", extra={"keys": inserted})
        return inserted
