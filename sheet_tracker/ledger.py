"""Transaction sourcing: the spend and reimbursement log of the Main spreadsheet."""

import logging
from typing import Optional

from sheet_tracker.config import (
    LEDGER_COLUMNS,
    ConfigError,
    Reimbursement,
    Spend,
    SpreadSheetConfig,
)
from sheet_tracker.sheets import SheetsStore, to_amount, to_date

logger = logging.getLogger(__name__)


class InMemoryLedger:
    """A fixed list of transactions, e.g. for a backfill run."""

    def __init__(
        self,
        spends: Optional[list[Spend]] = None,
        reimbursements: Optional[list[Reimbursement]] = None,
    ):
        self.spends = list(spends or [])
        self.reimbursements = list(reimbursements or [])

    def get_all_spends(self) -> list[Spend]:
        return list(self.spends)

    def get_all_reimbursements(self) -> list[Reimbursement]:
        return list(self.reimbursements)

    def record_spend(self, spend: Spend) -> None:
        self.spends.append(spend)

    def record_reimbursement(self, reimbursement: Reimbursement) -> None:
        self.reimbursements.append(reimbursement)


def _to_ledger_row(transaction) -> list:
    return [
        transaction.date,
        transaction.amount,
        transaction.category,
        transaction.sub_category or "",
        transaction.account,
    ]


class SheetLedger:
    """Transactions logged in the Main spreadsheet, one row per transaction.

    Both log sheets start with a header row naming the LEDGER_COLUMNS; the
    columns may appear in any order.
    """

    def __init__(self, store: SheetsStore, spreadsheet: SpreadSheetConfig):
        self.store = store
        self.spreadsheet = spreadsheet

    def _read(self, sheet_name: str, kind: type) -> list:
        rows = self.store.read_all_rows(self.spreadsheet.id, sheet_name)
        if len(rows) < 2:  # Only header or empty
            return []

        header = [str(cell).strip() for cell in rows[0]]
        try:
            idx = {column: header.index(column) for column in LEDGER_COLUMNS}
        except ValueError as e:
            raise ConfigError(
                f"Sheet '{sheet_name}' in '{self.spreadsheet.name}' is missing a column: {e}"
            ) from e

        transactions = []
        for row in rows[1:]:
            cells = list(row) + [""] * (len(header) - len(row))
            if not any(str(cell).strip() for cell in cells):
                continue
            transactions.append(
                kind(
                    date=to_date(cells[idx["Date"]]),
                    amount=to_amount(cells[idx["Amount"]]),
                    category=str(cells[idx["Category"]]),
                    account=str(cells[idx["Account"]]),
                    sub_category=str(cells[idx["Subcategory"]]) or None,
                )
            )
        logger.debug("Read %d rows from '%s'", len(transactions), sheet_name)
        return transactions

    def get_all_spends(self) -> list[Spend]:
        return self._read(self.spreadsheet.spends_sheet, Spend)

    def get_all_reimbursements(self) -> list[Reimbursement]:
        return self._read(self.spreadsheet.reimbursements_sheet, Reimbursement)

    def record_spend(self, spend: Spend) -> None:
        self.store.add_row(
            self.spreadsheet.id, self.spreadsheet.spends_sheet, _to_ledger_row(spend)
        )

    def record_reimbursement(self, reimbursement: Reimbursement) -> None:
        self.store.add_row(
            self.spreadsheet.id,
            self.spreadsheet.reimbursements_sheet,
            _to_ledger_row(reimbursement),
        )
