"""
Configuration loading: packaged defaults, YAML overrides, environment
resolution and rejection of unknown keys.
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config import DEFAULT_CONFIG_PATH, LedgerSettings, get_active_config
from ledger_config.loader import load_yaml_file, parse_numbering, parse_settings
from ledger_kernel.domain.numbering import DEFAULT_PREFIXES
from ledger_kernel.models.transaction import TransactionType


@pytest.fixture
def write_config(tmp_path):
    def _write(data, name="ledger.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("LEDGER_CONFIG", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


class TestPackagedDefaults:
    def test_defaults_match_built_in_policies(self):
        settings = get_active_config()

        assert settings.numbering.prefixes == DEFAULT_PREFIXES
        assert settings.numbering.sequence_width == 4
        assert settings.chart.max_level == 10
        assert settings.budget.progress_cap == Decimal("100")
        assert settings.reporting.cash_account_prefixes == ("101", "102", "103")
        assert settings.reporting.entity_name is None
        assert settings.database_url == "sqlite:///ledger.db"

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.is_file()

    def test_load_is_logged(self, captured_logs):
        get_active_config()
        events = [r for r in captured_logs() if r["message"] == "ledger_config_loaded"]
        assert events[0]["config_path"] == str(DEFAULT_CONFIG_PATH)
        assert events[0]["database_override"] is False


class TestResolution:
    def test_explicit_path(self, write_config):
        path = write_config({"reporting": {"entity_name": "Acme"}})
        assert get_active_config(path).reporting.entity_name == "Acme"

    def test_env_var_path(self, write_config, monkeypatch):
        path = write_config({"chart": {"max_level": 4}})
        monkeypatch.setenv("LEDGER_CONFIG", str(path))
        assert get_active_config().chart.max_level == 4

    def test_database_url_override(self, write_config, monkeypatch):
        path = write_config({"database": {"url": "sqlite:///from-file.db"}})
        assert get_active_config(path).database_url == "sqlite:///from-file.db"

        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@localhost/ledger")
        assert get_active_config(path).database_url == "postgresql://ledger@localhost/ledger"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestParsing:
    def test_empty_document_gives_defaults(self, write_config):
        path = write_config({})
        assert load_yaml_file(path) == {}
        assert parse_settings({}) == LedgerSettings()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="ledgers"):
            parse_settings({"ledgers": {}})

    def test_unknown_section_key(self):
        with pytest.raises(ValueError, match="min_depth"):
            parse_settings({"chart": {"min_depth": 1}})
        with pytest.raises(ValueError, match="host"):
            parse_settings({"database": {"host": "db"}})

    def test_prefixes_merge_over_defaults(self):
        policy = parse_numbering({"prefixes": {"sales": "SA"}})
        assert policy.prefix_for(TransactionType.SALES) == "SA"
        assert policy.prefix_for(TransactionType.JOURNAL) == "JE"

    def test_unknown_transaction_type_prefix(self):
        with pytest.raises(ValueError, match="refund"):
            parse_numbering({"prefixes": {"refund": "RF"}})

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            parse_settings({"numbering": {"sequence_width": 0}})
        with pytest.raises(ValueError):
            parse_settings({"chart": {"min_level": 3, "max_level": 2}})
        with pytest.raises(ValueError):
            parse_settings({"budget": {"progress_cap": "0"}})
        with pytest.raises(ValueError):
            parse_settings({"reporting": {"cash_account_prefixes": ["1x"]}})

    def test_budget_values_coerced(self):
        settings = parse_settings({"budget": {"progress_cap": "150", "allow_negative_amounts": True}})
        assert settings.budget.progress_cap == Decimal("150")
        assert settings.budget.allow_negative_amounts is True
