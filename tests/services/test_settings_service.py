"""
Tests for SettingsService -- the settings key/value store.

Covers:
- get/set/delete round trips and upserts
- update(): clearable company fields, taxId alias
- seed(): only missing keys are inserted
"""

from sqlalchemy import select

from invoice_config import load_default_settings
from invoice_kernel.models.setting import Setting


class TestBasicAccess:

    def test_missing_key(self, settings_service):
        assert settings_service.get("companyName") is None
        assert settings_service.get_all() == {}

    def test_set_then_get(self, settings_service):
        assert settings_service.set("companyName", "Acme") == ("companyName", "Acme")
        assert settings_service.get("companyName") == "Acme"

    def test_set_overwrites_single_row(self, settings_service, session):
        settings_service.set("currency", "USD")
        settings_service.set("currency", "EUR")

        rows = session.execute(select(Setting).where(Setting.key == "currency")).scalars().all()
        assert len(rows) == 1
        assert rows[0].value == "EUR"

    def test_values_stored_as_text(self, settings_service):
        settings_service.set("invoiceNumberPadding", 4)

        assert settings_service.get("invoiceNumberPadding") == "4"

    def test_get_all_ordered_by_key(self, settings_service):
        settings_service.set("zeta", "1")
        settings_service.set("alpha", "2")

        assert list(settings_service.get_all()) == ["alpha", "zeta"]

    def test_delete(self, settings_service):
        settings_service.set("locale", "en-GB")

        assert settings_service.delete("locale") is True
        assert settings_service.delete("locale") is False
        assert settings_service.get("locale") is None


class TestUpdate:
    """Batch updates from the settings form."""

    def test_upserts_values(self, settings_service):
        written = settings_service.update({"companyName": "Acme", "defaultTaxRate": "7.5"})

        assert written == {"companyName": "Acme", "defaultTaxRate": "7.5"}
        assert settings_service.get_all() == written

    def test_blank_clearable_field_deletes(self, settings_service):
        settings_service.set("companyPhone", "555-0100")

        written = settings_service.update({"companyPhone": "  "})

        assert written == {"companyPhone": ""}
        assert settings_service.get("companyPhone") is None

    def test_tax_id_alias_clears_company_tax_id(self, settings_service):
        settings_service.set("companyTaxId", "GB123")

        written = settings_service.update({"taxId": ""})

        assert written == {"companyTaxId": ""}
        assert settings_service.get("companyTaxId") is None

    def test_blank_non_clearable_field_is_stored(self, settings_service):
        settings_service.update({"companyAddress": ""})

        assert settings_service.get("companyAddress") == ""

    def test_update_logged(self, settings_service, captured_logs):
        settings_service.update({"companyEmail": "", "currency": "GBP"})

        updated = [r for r in captured_logs() if r["message"] == "settings_updated"]
        assert updated[0]["keys"] == ["companyEmail", "currency"]
        assert updated[0]["cleared"] == ["companyEmail"]


class TestSeed:
    """First-run defaults."""

    def test_seed_empty_store(self, settings_service):
        defaults = load_default_settings()

        inserted = settings_service.seed(defaults)

        assert sorted(inserted) == sorted(defaults)
        assert settings_service.get("invoicePrefix") == "INV"
        assert settings_service.get("defaultPricesIncludeTax") == "false"

    def test_seed_keeps_existing_values(self, settings_service):
        settings_service.set("currency", "JPY")

        inserted = settings_service.seed({"currency": "USD", "locale": "en-US"})

        assert inserted == ["locale"]
        assert settings_service.get("currency") == "JPY"

    def test_seed_twice_inserts_nothing(self, settings_service):
        settings_service.seed({"currency": "USD"})

        assert settings_service.seed({"currency": "USD"}) == []
