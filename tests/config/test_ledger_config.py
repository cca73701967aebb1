"""
Tests for tenancy_config: loading, validation and payment-method routing.
"""

from decimal import Decimal

import pytest

from tenancy_config import DEFAULT_CONFIG_PATH, get_active_config
from tenancy_config.loader import load_yaml_file, parse_settings
from tenancy_config.schema import AccountCodes, LedgerSettings
from tenancy_kernel.exceptions import ConfigError
from tenancy_kernel.models.account import AccountType

_MINIMAL = """
currency: ZWL
account_codes:
  cash: "1010"
"""


class TestDefaults:
    def test_packaged_defaults(self):
        settings = get_active_config()

        assert settings.currency == "USD"
        assert settings.balance_tolerance == Decimal("0.01")
        assert settings.account_codes.receivable_control == "1100"
        assert settings.allocation_category_order == ("deposit", "admin", "rent")
        assert len(settings.chart_of_accounts) == 13

    def test_chart_types(self):
        chart = {a.code: a.account_type for a in get_active_config().chart_of_accounts}

        assert chart["2200"] == AccountType.LIABILITY
        assert chart["4200"] == AccountType.INCOME
        assert chart["5200"] == AccountType.EXPENSE

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text(_MINIMAL)

        settings = get_active_config(path)

        assert settings.currency == "ZWL"
        assert settings.account_codes.cash == "1010"
        assert settings.account_codes.bank == "1001"
        assert settings.chart_of_accounts == ()

    def test_environment_override(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text(_MINIMAL)
        monkeypatch.setenv("TENANCY_LEDGER_CONFIG", str(path))

        assert get_active_config().currency == "ZWL"

    def test_explicit_path_wins_over_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text(_MINIMAL)
        monkeypatch.setenv("TENANCY_LEDGER_CONFIG", str(path))

        assert get_active_config(DEFAULT_CONFIG_PATH).currency == "USD"


class TestLoadErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_yaml_file(tmp_path / "absent.yaml")

        assert exc_info.value.code == "CONFIG_ERROR"
        assert exc_info.value.path.endswith("absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("account_codes: [unclosed\n")

        with pytest.raises(ConfigError, match="invalid YAML"):
            load_yaml_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            load_yaml_file(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(path) == {}


class TestValidation:
    @pytest.mark.parametrize(
        "data",
        [
            {"account_codes": {"petty_cash": "1002"}},
            {"account_codes": {"cash": ""}},
            {"balance_tolerance": "lots"},
            {"balance_tolerance": "-0.01"},
            {"currency": "DOLLARS"},
            {"allocation_category_order": ["rent", "admin"]},
            {"allocation_category_order": ["rent", "admin", "parking"]},
            {"chart_of_accounts": [{"code": "1000", "name": "Cash", "type": "Cash"}]},
            {"chart_of_accounts": [{"code": "1000", "type": "Asset"}]},
        ],
    )
    def test_rejected(self, data):
        with pytest.raises(ConfigError):
            parse_settings(data)

    def test_duplicate_chart_codes(self):
        chart = [
            {"code": "1000", "name": "Cash", "type": "Asset"},
            {"code": "1000", "name": "Cash again", "type": "Asset"},
        ]

        with pytest.raises(ConfigError, match="duplicate"):
            parse_settings({"chart_of_accounts": chart})

    def test_chart_must_hold_configured_codes(self):
        with pytest.raises(ConfigError, match="missing configured codes"):
            parse_settings(
                {"chart_of_accounts": [{"code": "1000", "name": "Cash", "type": "Asset"}]}
            )

    def test_category_order_is_configurable(self):
        settings = parse_settings({"allocation_category_order": ["rent", "admin", "deposit"]})

        assert settings.allocation_category_order == ("rent", "admin", "deposit")


class TestAccountCodes:
    def test_receivable_per_student(self):
        assert AccountCodes().receivable_for("stu-9") == "1100-stu-9"

    def test_accrued_category_accounts(self):
        codes = AccountCodes()

        assert codes.income_for("rent") == "4000"
        assert codes.income_for("admin") == "4100"
        assert codes.income_for("deposit") == "2020"
        with pytest.raises(ValueError):
            codes.income_for("parking")


class TestCashAccountRouting:
    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            (None, "1000"),
            ("Cash", "1000"),
            ("", "1000"),
            ("Bank Transfer", "1001"),
            ("ECOCASH", "1001"),
            ("wire transfer", "1001"),
        ],
    )
    def test_cash_account_for(self, method, expected):
        assert LedgerSettings().cash_account_for(method) == expected

    def test_keywords_from_config(self):
        settings = parse_settings({"bank_payment_keywords": ["Swipe"]})

        assert settings.cash_account_for("card swipe") == "1001"
        assert settings.cash_account_for("bank") == "1000"
