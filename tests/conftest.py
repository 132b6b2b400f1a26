"""Shared test fixtures."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from memory_store import MemoryStore

from sheet_tracker.config import Spend, parse_spreadsheets
from sheet_tracker.ledger import InMemoryLedger

SHEET_ID = "monthly-sheet-id"


@pytest.fixture(autouse=True)
def env_vars(monkeypatch):
    """Set required environment variables for all tests."""
    monkeypatch.setenv("GOOGLE_SERVICE_ACCOUNT_FILE", "test_sa.json")
    monkeypatch.setenv("SPREADSHEETS_CONFIG", "test_spreadsheets.json")


@pytest.fixture
def raw_config():
    """A Main spreadsheet plus one Monthly spreadsheet with all three sheet classes."""
    return {
        "main": {
            "id": "main-sheet-id",
            "name": "Main",
            "class": "Main",
        },
        "monthly": {
            "id": SHEET_ID,
            "name": "Monthly 2024",
            "class": "Monthly",
            "sheets": {
                "all": {
                    "name": "All",
                    "class": "AllCategories",
                    "columns": {"Food": 2, "Rent": 3, "Total": 4},
                },
                "food": {
                    "name": "Food",
                    "class": "Category",
                    "columns": {"Groceries": 2, "Restaurants": 3, "Total": 4},
                },
                "card": {
                    "name": "Card",
                    "class": "Account",
                    "columns": {"Food": 2, "Rent": 3, "Total": 4},
                },
            },
        },
    }


@pytest.fixture
def spreadsheets(raw_config):
    return parse_spreadsheets(raw_config)


@pytest.fixture
def store():
    """A MemoryStore holding the empty sheets of the Monthly spreadsheet."""
    store = MemoryStore()
    store.create(SHEET_ID, "All", ["Date", "Food", "Rent", "Total"])
    store.create(SHEET_ID, "Food", ["Date", "Groceries", "Restaurants", "Total"])
    store.create(SHEET_ID, "Card", ["Date", "Food", "Rent", "Total"])
    return store


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def sample_spend():
    return Spend(
        date=date(2024, 1, 5),
        amount=20,
        category="Food",
        account="Card",
        sub_category="Groceries",
    )


@pytest.fixture
def mock_worksheet():
    """A mocked gspread Worksheet."""
    ws = MagicMock()
    ws.append_row = MagicMock()
    ws.update_cell = MagicMock()
    ws.get_all_values = MagicMock(return_value=[["Date", "Food", "Total"], ["2024-01-05", 20, 20]])
    ws.row_values = MagicMock(return_value=["Date", "Food", "Total"])
    return ws
