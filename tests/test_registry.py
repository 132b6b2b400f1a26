"""Tests for registry.py — building and routing through the handler registry."""

from datetime import date

import pytest

from sheet_tracker.config import ConfigError, Reimbursement, Spend, parse_spreadsheets
from sheet_tracker.handlers import Monthly
from sheet_tracker.ledger import InMemoryLedger, SheetLedger
from sheet_tracker.registry import HandlerRegistry

SHEET_ID = "monthly-sheet-id"


@pytest.fixture
def registry(spreadsheets, store, ledger):
    return HandlerRegistry(spreadsheets, store, ledger)


class TestBuild:
    def test_binds_monthly_spreadsheets_by_id(self, registry):
        assert list(registry.handlers) == [SHEET_ID]
        assert isinstance(registry.get(SHEET_ID), Monthly)

    def test_main_is_passthrough(self, registry):
        assert registry.main.name == "Main"
        assert "main-sheet-id" not in registry.handlers

    def test_duplicate_id_raises(self, raw_config, store, ledger):
        raw_config["monthly_copy"] = dict(raw_config["monthly"], name="Copy")
        with pytest.raises(ConfigError, match="Duplicated entry"):
            HandlerRegistry(parse_spreadsheets(raw_config), store, ledger)

    def test_invalid_spreadsheet_class_raises(self, raw_config, store, ledger):
        raw_config["yearly"] = {"id": "y", "name": "Yearly", "class": "Yearly"}
        with pytest.raises(ConfigError, match="Invalid spreadsheet type 'Yearly'"):
            HandlerRegistry(parse_spreadsheets(raw_config), store, ledger)

    def test_second_main_raises(self, raw_config, store, ledger):
        raw_config["main2"] = {"id": "m2", "name": "Main 2", "class": "Main"}
        with pytest.raises(ConfigError, match="More than one Main"):
            HandlerRegistry(parse_spreadsheets(raw_config), store, ledger)

    def test_ledger_defaults_to_main_spreadsheet(self, spreadsheets, store):
        registry = HandlerRegistry(spreadsheets, store)
        assert isinstance(registry.ledger, SheetLedger)
        assert registry.ledger.spreadsheet.id == "main-sheet-id"

    def test_no_ledger_and_no_main_raises(self, raw_config, store):
        del raw_config["main"]
        with pytest.raises(ConfigError, match="No Main spreadsheet"):
            HandlerRegistry(parse_spreadsheets(raw_config), store)

    def test_independent_registries(self, spreadsheets, store):
        first = HandlerRegistry(spreadsheets, store, InMemoryLedger())
        second = HandlerRegistry(spreadsheets, store, InMemoryLedger())
        assert first.get(SHEET_ID) is not second.get(SHEET_ID)


class TestRouting:
    def test_unknown_spreadsheet_raises_key_error(self, registry, sample_spend):
        with pytest.raises(KeyError):
            registry.process_spend(sample_spend, "nope")

    def test_record_spend_logs_and_applies(self, registry, store, ledger, sample_spend):
        registry.record_spend(sample_spend)

        assert ledger.get_all_spends() == [sample_spend]
        assert store.rows(SHEET_ID, "All")[1] == [date(2024, 1, 5), 20, 0, 20]

    def test_unplaceable_spend_is_not_logged(self, registry, store, ledger):
        with pytest.raises(ConfigError, match="Travel"):
            registry.record_spend(
                Spend(date=date(2024, 1, 5), amount=20, category="Travel", account="Card")
            )

        assert ledger.get_all_spends() == []
        assert store.writes() == []

    def test_unplaceable_reimbursement_is_not_logged(self, registry, store, ledger):
        with pytest.raises(ConfigError, match="Bakery"):
            registry.record_reimbursement(
                Reimbursement(
                    date=date(2024, 1, 5), amount=2, category="Food", account="Card", sub_category="Bakery"
                )
            )

        assert ledger.get_all_reimbursements() == []
        assert store.writes() == []

    def test_record_reimbursement_logs_and_applies(self, registry, store, ledger, sample_spend):
        registry.record_spend(sample_spend)
        refund = Reimbursement(
            date=date(2024, 1, 7), amount=2, category="Food", account="Card", sub_category="Groceries"
        )
        registry.record_reimbursement(refund)

        assert ledger.get_all_reimbursements() == [refund]
        assert store.rows(SHEET_ID, "Food")[1][1:] == [18, 0, 18]

    def test_validate_reports_every_sheet(self, registry, sample_spend):
        registry.record_spend(sample_spend)
        registry.record_spend(
            Spend(date=date(2024, 1, 9), amount=3, category="Rent", account="Cash")
        )

        reports = registry.validate()

        assert [r.sheet for r in reports] == ["All", "Food", "Card"]
        assert all(r.ok for r in reports)

    def test_validate_unknown_spreadsheet_raises_key_error(self, registry):
        with pytest.raises(KeyError):
            registry.validate("nope")
