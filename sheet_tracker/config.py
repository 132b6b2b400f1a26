"""Configuration: spreadsheet layouts, policies, transaction types."""

import json
import os
from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

VERSION_MAJOR = 1
VERSION_MINOR = 2
VERSION_PATCH = 0
VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

DEFAULT_CONFIG_FILE = "spreadsheets.json"

# Spreadsheet classes
MONTHLY = "Monthly"
MAIN = "Main"

# Column order of the spend/reimbursement log in the Main spreadsheet
LEDGER_COLUMNS = ["Date", "Amount", "Category", "Subcategory", "Account"]


class ConfigError(ValueError):
    """Raised when the spreadsheet configuration cannot be used."""


class UnknownColumnError(ConfigError):
    """Raised when a label has no column in a sheet's layout."""


@dataclass(frozen=True)
class Spend:
    date: date
    amount: float
    category: str
    account: str
    sub_category: Optional[str] = None


@dataclass(frozen=True)
class Reimbursement:
    date: date
    amount: float
    category: str
    account: str
    sub_category: Optional[str] = None


class MonthlyPolicy(BaseModel):
    """How a Monthly spreadsheet keys its rows and treats reimbursements."""

    month_granularity: Literal["year_month", "month"] = "year_month"
    offset_reimbursements: bool = True
    stamp_last_updated: bool = True


class SheetConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    sheet_class: str = Field(alias="class")
    columns: dict[str, int] = Field(default_factory=dict)
    total_label: str = "Total"
    # Category or account the sheet tracks; the sheet name when unset
    bound_to: Optional[str] = None

    @field_validator("columns")
    @classmethod
    def _check_columns(cls, columns: dict[str, int]) -> dict[str, int]:
        for label, index in columns.items():
            if index < 1:
                raise ValueError(f"Column '{label}' must have a 1-based index, got {index}")
        return columns

    @property
    def bound_name(self) -> str:
        return self.bound_to or self.name

    def column_for(self, label: Optional[str]) -> int:
        """Return the 1-based column index for a category/subcategory/account label."""
        if label is None or label not in self.columns:
            raise UnknownColumnError(
                f"Undefined index for column '{label}' in sheet '{self.name}'"
            )
        return self.columns[label]

    @property
    def total_column(self) -> int:
        if self.total_label not in self.columns:
            raise ConfigError(
                f"Sheet '{self.name}' has no total column '{self.total_label}'"
            )
        return self.columns[self.total_label]


class SpreadSheetConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    spreadsheet_class: str = Field(alias="class")
    sheets: dict[str, SheetConfig] = Field(default_factory=dict)
    policy: MonthlyPolicy = Field(default_factory=MonthlyPolicy)
    # Only read for the Main spreadsheet
    spends_sheet: str = "Spends"
    reimbursements_sheet: str = "Reimbursements"


_SPREADSHEETS = TypeAdapter(dict[str, SpreadSheetConfig])


def parse_spreadsheets(data: dict) -> dict[str, SpreadSheetConfig]:
    """Validate a raw mapping of key -> spreadsheet config."""
    try:
        return _SPREADSHEETS.validate_python(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid spreadsheet configuration: {e}") from e


def load_spreadsheets(path: Optional[str] = None) -> dict[str, SpreadSheetConfig]:
    """Load spreadsheet configuration from a JSON file.

    Defaults to the SPREADSHEETS_CONFIG env var, then spreadsheets.json.
    """
    if path is None:
        path = os.environ.get("SPREADSHEETS_CONFIG", DEFAULT_CONFIG_FILE)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read spreadsheet configuration '{path}': {e}") from e
    return parse_spreadsheets(data)
