"""Monthly tracking sheets: per-month accumulation of transactions and validation.

Each sheet holds one row per month: ``[date, amount per column..., total]``.
A sheet handler adds incoming transactions into the row of their month and
can re-derive every row from the transaction log to spot drift.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from sheet_tracker.config import (
    ConfigError,
    Reimbursement,
    SheetConfig,
    Spend,
    SpreadSheetConfig,
)
from sheet_tracker.grouping import (
    GroupedAmounts,
    format_row,
    group_by_dates_and_categories,
    group_by_dates_and_sub_categories,
    month_key,
)
from sheet_tracker.sheets import to_amount, to_date

logger = logging.getLogger(__name__)

# Amounts are currency; anything below half a cent is rounding noise
AMOUNT_TOLERANCE = 0.005


@dataclass
class RowMismatch:
    row: int  # 1-based sheet row
    expected: list
    actual: list


@dataclass
class ValidationReport:
    spreadsheet: str
    sheet: str
    mismatches: list[RowMismatch] = field(default_factory=list)
    missing_months: list[str] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not (self.mismatches or self.missing_months or self.error)


def remediation_tips(spreadsheet: SpreadSheetConfig, sheet: SheetConfig) -> list[str]:
    return [
        "Check amounts for each category",
        "Check category/subcategory names are correct for all spends.",
        f"Check if the first row in sheet '{sheet.name}' within spreadsheet "
        f"'{spreadsheet.name}' contains valid category/subcategory names",
    ]


def _same_amount(expected: float, actual: float) -> bool:
    return math.isclose(expected, actual, abs_tol=AMOUNT_TOLERANCE)


def validate_sheet(
    spreadsheet: SpreadSheetConfig,
    sheet: SheetConfig,
    grouped_spends: GroupedAmounts,
    grouped_reimbursements: GroupedAmounts,
    header: list,
    data: list[tuple[int, list]],
    grouping_elements: list[str],
) -> ValidationReport:
    """Compare stored month rows with the amounts derived from the log.

    ``data`` holds (row number, row) pairs. Mismatches are logged and
    returned; the sheet itself is never touched.
    """
    granularity = spreadsheet.policy.month_granularity
    total_index = sheet.total_column - 1
    width = max(len(header), total_index + 1)
    report = ValidationReport(spreadsheet=spreadsheet.name, sheet=sheet.name)

    for row_number, row in data:
        key = month_key(to_date(row[0]), granularity)
        actual = list(row) + [""] * (width - len(row))
        expected = [row[0]] + [0.0] * (width - 1)
        print_rows = False
        expected_total = 0.0

        for element in grouping_elements:
            index = sheet.column_for(element) - 1
            expected_amount = grouped_spends.get(key, {}).get(element, 0.0)
            expected_amount -= grouped_reimbursements.get(key, {}).get(element, 0.0)

            print_rows = print_rows or not _same_amount(expected_amount, to_amount(actual[index]))
            expected_total += expected_amount
            expected[index] = expected_amount

        expected[total_index] = expected_total
        print_rows = print_rows or not _same_amount(expected_total, to_amount(actual[total_index]))

        if print_rows:
            report.mismatches.append(RowMismatch(row=row_number, expected=expected, actual=actual))
            logger.warning(
                "Expected row : %s\nActual row : %s\n", format_row(expected), format_row(actual)
            )

    if report.mismatches:
        report.tips = remediation_tips(spreadsheet, sheet)
        logger.warning("\n".join(report.tips))
    return report


class SheetHandler:
    """Keeps one monthly sheet in step with spends and reimbursements.

    Subclasses decide which transactions the sheet tracks, which column a
    transaction lands in, and how the log is grouped for validation.
    """

    def __init__(
        self,
        spreadsheet: SpreadSheetConfig,
        sheet: SheetConfig,
        store,
        ledger,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.spreadsheet = spreadsheet
        self.sheet = sheet
        self.store = store
        self.ledger = ledger
        self.policy = spreadsheet.policy
        self.clock = clock
        self.total_column = sheet.total_column

    def applies_to(self, transaction) -> bool:
        raise NotImplementedError

    def column_label(self, transaction) -> Optional[str]:
        raise NotImplementedError

    def group(self, transactions: list, dates: list[date], elements: list[str]) -> GroupedAmounts:
        raise NotImplementedError

    def _month(self, d: date) -> str:
        return month_key(d, self.policy.month_granularity)

    def get_row_for_month(self, d: date) -> Optional[int]:
        """1-based number of the row holding the month of ``d``, if any."""
        rows = self.store.read_all_rows(self.spreadsheet.id, self.sheet.name)
        key = self._month(d)
        for row_number, row in enumerate(rows[1:], start=2):
            if row and str(row[0]).strip() and self._month(to_date(row[0])) == key:
                return row_number
        return None

    def _last_updated(self, transaction) -> date:
        now = self.clock()
        if self._month(now) == self._month(transaction.date):
            return now
        # Keep the row inside its month
        return transaction.date

    def target_column(self, transaction) -> Optional[int]:
        """Column a transaction lands in, or None when the sheet does not track it.

        Raises UnknownColumnError for a tracked transaction whose label has no column.
        """
        if not self.applies_to(transaction):
            return None
        return self.sheet.column_for(self.column_label(transaction))

    def _accumulate(self, transaction, amount: float, column: int) -> None:
        total_column = self.total_column
        sheet_id, sheet_name = self.spreadsheet.id, self.sheet.name

        row_for_month = self.get_row_for_month(transaction.date)
        if row_for_month is None:
            number_of_columns = self.store.get_number_of_columns(sheet_id, sheet_name)
            new_row = [0] * max(number_of_columns, column, total_column)
            new_row[0] = transaction.date
            new_row[column - 1] = amount
            new_row[total_column - 1] = amount
            self.store.add_row(sheet_id, sheet_name, new_row)
            logger.info(
                "Added row for %s to sheet '%s'", self._month(transaction.date), sheet_name
            )
            return

        if self.policy.stamp_last_updated:
            self.store.set_value(
                sheet_id, sheet_name, row_for_month, 1, self._last_updated(transaction)
            )

        current = to_amount(self.store.get_value(sheet_id, sheet_name, row_for_month, column))
        self.store.set_value(sheet_id, sheet_name, row_for_month, column, current + amount)

        current_total = to_amount(self.store.get_value(sheet_id, sheet_name, row_for_month, total_column))
        self.store.set_value(
            sheet_id, sheet_name, row_for_month, total_column, current_total + amount
        )

    def process_spend(self, spend: Spend) -> None:
        column = self.target_column(spend)
        if column is None:
            logger.debug("Sheet '%s' skips spend %s", self.sheet.name, spend)
            return
        self._accumulate(spend, spend.amount, column)

    def process_reimbursement(self, reimbursement: Reimbursement) -> None:
        """Take a reimbursement off the month row it belongs to."""
        if not self.policy.offset_reimbursements:
            return
        column = self.target_column(reimbursement)
        if column is not None:
            self._accumulate(reimbursement, -reimbursement.amount, column)

    def validate(self) -> ValidationReport:
        rows = self.store.read_all_rows(self.spreadsheet.id, self.sheet.name)
        if not rows:
            logger.warning("Sheet '%s' has no header row", self.sheet.name)
            return ValidationReport(spreadsheet=self.spreadsheet.name, sheet=self.sheet.name)

        header = rows[0]
        data = [
            (row_number, row)
            for row_number, row in enumerate(rows[1:], start=2)
            if row and str(row[0]).strip()
        ]
        # Header: date, one label per column, total
        elements = [str(label) for label in header[1:-1]]
        dates = [to_date(row[0]) for _, row in data]

        spends = self.ledger.get_all_spends()
        grouped_spends = self.group(spends, dates, elements)
        reimbursements = []
        if self.policy.offset_reimbursements:
            reimbursements = self.ledger.get_all_reimbursements()
        grouped_reimbursements = self.group(reimbursements, dates, elements)

        report = validate_sheet(
            self.spreadsheet, self.sheet, grouped_spends, grouped_reimbursements, header, data, elements
        )

        stored_months = {self._month(d) for d in dates}
        logged_months = {
            self._month(transaction.date)
            for transaction in spends + reimbursements
            if self.applies_to(transaction) and self.column_label(transaction) in elements
        }
        report.missing_months = sorted(logged_months - stored_months)
        if report.missing_months:
            logger.warning(
                "Sheet '%s' has no row for months with transactions: %s",
                self.sheet.name, ", ".join(report.missing_months),
            )
        return report


class AllCategories(SheetHandler):
    """Every transaction, one column per category."""

    def applies_to(self, transaction) -> bool:
        return True

    def column_label(self, transaction) -> Optional[str]:
        return transaction.category

    def group(self, transactions, dates, elements):
        return group_by_dates_and_categories(
            transactions, dates, None, elements, self.policy.month_granularity
        )


class Category(SheetHandler):
    """Transactions of one category, one column per subcategory."""

    def __init__(self, spreadsheet, sheet, store, ledger, clock=datetime.now):
        super().__init__(spreadsheet, sheet, store, ledger, clock)
        self.category = sheet.bound_name

    def applies_to(self, transaction) -> bool:
        return transaction.category == self.category

    def column_label(self, transaction) -> Optional[str]:
        return transaction.sub_category

    def group(self, transactions, dates, elements):
        return group_by_dates_and_sub_categories(
            transactions, dates, self.category, elements, self.policy.month_granularity
        )


class Account(SheetHandler):
    """Transactions of one account, one column per category."""

    def __init__(self, spreadsheet, sheet, store, ledger, clock=datetime.now):
        super().__init__(spreadsheet, sheet, store, ledger, clock)
        self.account = sheet.bound_name

    def applies_to(self, transaction) -> bool:
        return transaction.account == self.account

    def column_label(self, transaction) -> Optional[str]:
        return transaction.category

    def group(self, transactions, dates, elements):
        return group_by_dates_and_categories(
            transactions, dates, self.account, elements, self.policy.month_granularity
        )


SHEET_HANDLERS = {
    "AllCategories": AllCategories,
    "Category": Category,
    "Account": Account,
}


class Monthly:
    """All tracking sheets of one Monthly spreadsheet."""

    def __init__(
        self,
        spreadsheet: SpreadSheetConfig,
        store,
        ledger,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.spreadsheet = spreadsheet
        self.sheet_handlers: list[SheetHandler] = []
        for sheet in spreadsheet.sheets.values():
            handler_class = SHEET_HANDLERS.get(sheet.sheet_class)
            if handler_class is None:
                raise ConfigError(f'Unknown sheet class "{sheet.sheet_class}"')
            self.sheet_handlers.append(handler_class(spreadsheet, sheet, store, ledger, clock))

    def check_spend(self, spend: Spend) -> None:
        """Resolve the spend's column on every sheet that tracks it, before any write."""
        for handler in self.sheet_handlers:
            handler.target_column(spend)

    def check_reimbursement(self, reimbursement: Reimbursement) -> None:
        if self.spreadsheet.policy.offset_reimbursements:
            for handler in self.sheet_handlers:
                handler.target_column(reimbursement)

    def process_spend(self, spend: Spend) -> None:
        self.check_spend(spend)
        for handler in self.sheet_handlers:
            handler.process_spend(spend)

    def process_reimbursement(self, reimbursement: Reimbursement) -> None:
        self.check_reimbursement(reimbursement)
        for handler in self.sheet_handlers:
            handler.process_reimbursement(reimbursement)

    def validate_all(self) -> list[ValidationReport]:
        """Validate every sheet; a failing sheet does not stop the others."""
        reports = []
        for handler in self.sheet_handlers:
            try:
                reports.append(handler.validate())
            except Exception as e:
                logger.error(
                    "Failed to validate sheet '%s': %s", handler.sheet.name, e, exc_info=True
                )
                reports.append(
                    ValidationReport(
                        spreadsheet=self.spreadsheet.name,
                        sheet=handler.sheet.name,
                        error=str(e),
                    )
                )
        return reports
