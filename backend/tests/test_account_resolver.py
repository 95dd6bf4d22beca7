"""
Account resolver tests: default mappings, tier order, failure, idempotence.
"""

import pytest

from propledger.errors import AccountResolutionError, ValidationError
from propledger.services import account_resolver
from propledger.services.account_resolver import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    PAYMENT_METHODS,
    get_well_known_accounts,
    is_cash_account,
)

from conftest import deactivate


class TestDefaultChartMappings:
    @pytest.mark.parametrize("method,code", [
        ("Cash", "1000"),
        ("Bank Transfer", "1001"),
        ("Petty Cash", "1002"),
        ("Ecocash", "1003"),
        ("Innbucks", "1004"),
        ("Visa", "1001"),
    ])
    def test_payment_methods(self, db_session, chart, method, code):
        assert account_resolver.resolve_payment_account(method).code == code

    @pytest.mark.parametrize("category,code", [
        ("Maintenance", "5007"),
        ("Utilities", "5003"),
        ("Electricity", "5002"),
        ("Water", "5004"),
        ("WiFi", "5006"),
        ("Salaries", "5001"),
        ("Other", "5099"),
    ])
    def test_expense_categories(self, db_session, chart, category, code):
        assert account_resolver.resolve_expense_account(category).code == code

    @pytest.mark.parametrize("category,code", [
        ("Rental", "4001"),
        ("Interest", "4200"),
        ("Other", "4900"),
    ])
    def test_income_categories(self, db_session, chart, category, code):
        assert account_resolver.resolve_income_account(category).code == code

    def test_keys_are_case_insensitive(self, db_session, chart):
        assert account_resolver.resolve_payment_account("bank transfer").code == "1001"

    def test_every_supported_key_resolves(self, db_session, chart):
        for method in PAYMENT_METHODS:
            assert account_resolver.resolve_payment_account(method) is not None
        for category in EXPENSE_CATEGORIES:
            assert account_resolver.resolve_expense_account(category) is not None
        for category in INCOME_CATEGORIES:
            assert account_resolver.resolve_income_account(category) is not None


class TestResolutionTiers:
    def test_inactive_match_falls_back_to_generic_keyword(self, db_session, chart):
        deactivate(chart["5007"])
        assert account_resolver.resolve_expense_account("Maintenance").code == "5099"

    def test_legacy_code_used_when_no_name_matches(self, db_session, chart):
        chart["5007"].name = "Upkeep"
        deactivate(chart["5099"])
        assert account_resolver.resolve_expense_account("Maintenance").code == "5007"

    def test_legacy_petty_cash_code(self, db_session, chart):
        assert account_resolver.LEGACY_PAYMENT_METHOD_CODES["Petty Cash"] == "1002"

        chart["1002"].name = "Float"
        deactivate(chart["1000"], chart["1001"], chart["1003"], chart["1004"])
        assert account_resolver.resolve_payment_account("Petty Cash").code == "1002"

    def test_well_known_default_after_legacy_miss(self, db_session, chart):
        chart["5099"].name = "Sundry"
        assert account_resolver.resolve_expense_account("Landscaping").code == "5099"

    def test_well_known_default_when_legacy_account_inactive(self, db_session, chart):
        chart["5007"].name = "Upkeep"
        chart["5099"].name = "Sundry"
        deactivate(chart["5007"])
        assert account_resolver.resolve_expense_account("Maintenance").code == "5099"

    def test_unknown_category_uses_fallback(self, db_session, chart):
        assert account_resolver.resolve_expense_account("Landscaping").code == "5099"

    def test_payment_never_resolves_to_receivable(self, db_session, chart):
        deactivate(chart["1000"], chart["1001"], chart["1002"], chart["1003"], chart["1004"])
        assert account_resolver.resolve_payment_account("Cash") is None

    def test_require_raises_with_key_in_message(self, db_session, chart):
        deactivate(chart["1000"], chart["1001"], chart["1002"], chart["1003"], chart["1004"])
        with pytest.raises(AccountResolutionError, match="Cash") as exc_info:
            account_resolver.require_payment_account("Cash")
        assert exc_info.value.status_code == 500

    def test_resolution_is_idempotent_and_read_only(self, db_session, chart):
        first = account_resolver.resolve_expense_account("Utilities")
        second = account_resolver.resolve_expense_account("Utilities")
        assert first.id == second.id
        assert not db_session.dirty and not db_session.new


class TestHelpers:
    def test_validate_payment_method_canonicalizes(self):
        assert account_resolver.validate_payment_method("ecocash") == "Ecocash"

    def test_validate_payment_method_rejects_unknown(self):
        with pytest.raises(ValidationError):
            account_resolver.validate_payment_method("Cheque")

    def test_is_cash_account(self, db_session, chart):
        assert is_cash_account(chart["1003"])
        assert not is_cash_account(chart["1100"])
        assert not is_cash_account(chart["1200"])
        assert not is_cash_account(chart["2000"])

    def test_payment_sources_are_cash_accounts(self, db_session, chart):
        codes = [a.code for a in account_resolver.get_payment_source_accounts()]
        assert codes == ["1000", "1001", "1002", "1003", "1004"]

    def test_well_known_accounts_from_config(self, db_session, chart):
        well_known = get_well_known_accounts()
        assert well_known.accounts_payable.code == "2000"
        assert well_known.retained_earnings.code == "3100"

    def test_well_known_missing_account_raises(self, db_session, chart):
        deactivate(chart["2000"])
        with pytest.raises(AccountResolutionError, match="AP_DEFAULT"):
            get_well_known_accounts().accounts_payable
