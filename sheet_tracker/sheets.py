"""Google Sheets integration: row and cell access for tracking sheets."""

import os
from datetime import date, datetime, timedelta

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import DateTimeOption, ValueInputOption, ValueRenderOption

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Day zero of Google Sheets date serial numbers
SHEETS_EPOCH = date(1899, 12, 30)

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%d.%m.%Y", "%d/%m/%Y"]

_client: gspread.Client | None = None


def _get_client() -> gspread.Client:
    global _client
    if _client is None:
        sa_file = os.environ.get(
            "GOOGLE_SERVICE_ACCOUNT_FILE", "service_account.json"
        )
        creds = Credentials.from_service_account_file(sa_file, scopes=SCOPES)
        _client = gspread.authorize(creds)
    return _client


def to_amount(value) -> float:
    """Convert a cell value to a number. Blank cells count as 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(" ", "")
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")
    return float(text)


def to_date(value) -> date:
    """Convert a date cell (date, serial number or formatted string) to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return SHEETS_EPOCH + timedelta(days=int(value))
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: {value!r}")


def _to_cell(value):
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return value


class SheetsStore:
    """Reads and writes tracking sheets, addressed by spreadsheet id and sheet name.

    Rows and columns are 1-based, as in the Sheets API.
    """

    def __init__(self, client: gspread.Client | None = None):
        self._client = client

    def _get_worksheet(self, sheet_id: str, sheet_name: str) -> gspread.Worksheet:
        client = self._client or _get_client()
        spreadsheet = client.open_by_key(sheet_id)
        return spreadsheet.worksheet(sheet_name)

    def read_all_rows(self, sheet_id: str, sheet_name: str) -> list[list]:
        """All rows with data, header first. Numbers and dates come back as numbers."""
        ws = self._get_worksheet(sheet_id, sheet_name)
        return ws.get_all_values(
            value_render_option=ValueRenderOption.unformatted,
            date_time_render_option=DateTimeOption.serial_number,
        )

    def add_row(self, sheet_id: str, sheet_name: str, row: list) -> None:
        ws = self._get_worksheet(sheet_id, sheet_name)
        ws.append_row(
            [_to_cell(value) for value in row],
            value_input_option=ValueInputOption.user_entered,
        )

    def get_value(self, sheet_id: str, sheet_name: str, row: int, col: int):
        ws = self._get_worksheet(sheet_id, sheet_name)
        return ws.cell(row, col, value_render_option=ValueRenderOption.unformatted).value

    def set_value(self, sheet_id: str, sheet_name: str, row: int, col: int, value) -> None:
        ws = self._get_worksheet(sheet_id, sheet_name)
        ws.update_cell(row, col, _to_cell(value))

    def get_number_of_columns(self, sheet_id: str, sheet_name: str) -> int:
        """Width of the sheet's header row."""
        ws = self._get_worksheet(sheet_id, sheet_name)
        return len(ws.row_values(1))
