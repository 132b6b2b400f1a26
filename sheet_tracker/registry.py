"""Registry of spreadsheet handlers, built once from the spreadsheet configuration."""

import logging
from datetime import datetime
from typing import Callable, Optional

from sheet_tracker.config import (
    MAIN,
    MONTHLY,
    ConfigError,
    Reimbursement,
    Spend,
    SpreadSheetConfig,
)
from sheet_tracker.handlers import Monthly, ValidationReport
from sheet_tracker.ledger import SheetLedger

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Maps spreadsheet ids to their Monthly handlers.

    The transaction log is the given ``ledger`` or, when none is given, the
    spend/reimbursement sheets of the Main spreadsheet.
    """

    def __init__(
        self,
        spreadsheets: dict[str, SpreadSheetConfig],
        store,
        ledger=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.main: Optional[SpreadSheetConfig] = None
        self.handlers: dict[str, Monthly] = {}

        for config in spreadsheets.values():
            if config.spreadsheet_class == MAIN:
                if self.main is not None:
                    raise ConfigError(
                        f"More than one Main spreadsheet: '{self.main.name}' and '{config.name}'"
                    )
                self.main = config
            elif config.spreadsheet_class != MONTHLY:
                raise ConfigError(f"Invalid spreadsheet type '{config.spreadsheet_class}'")

        if ledger is None:
            if self.main is None:
                raise ConfigError("No Main spreadsheet configured to read transactions from")
            ledger = SheetLedger(store, self.main)
        self.ledger = ledger

        for config in spreadsheets.values():
            if config.spreadsheet_class != MONTHLY:
                continue
            if config.id in self.handlers:
                raise ConfigError(f"Duplicated entry for spreadsheet '{config.id}'")
            self.handlers[config.id] = Monthly(config, store, ledger, clock)
            logger.info("Handler for spreadsheet '%s' loaded correctly", config.name)

    def get(self, spreadsheet_id: str) -> Monthly:
        """Handler for a spreadsheet id. Raises KeyError if none is registered."""
        return self.handlers[spreadsheet_id]

    def _targets(self, spreadsheet_id: Optional[str]) -> list[Monthly]:
        if spreadsheet_id is None:
            return list(self.handlers.values())
        return [self.get(spreadsheet_id)]

    def process_spend(self, spend: Spend, spreadsheet_id: Optional[str] = None) -> None:
        targets = self._targets(spreadsheet_id)
        for handler in targets:
            handler.check_spend(spend)
        for handler in targets:
            handler.process_spend(spend)

    def process_reimbursement(
        self, reimbursement: Reimbursement, spreadsheet_id: Optional[str] = None
    ) -> None:
        targets = self._targets(spreadsheet_id)
        for handler in targets:
            handler.check_reimbursement(reimbursement)
        for handler in targets:
            handler.process_reimbursement(reimbursement)

    def record_spend(self, spend: Spend) -> None:
        """Log a new spend and add it to every Monthly spreadsheet.

        Nothing is logged or written when a sheet cannot place the spend.
        """
        for handler in self.handlers.values():
            handler.check_spend(spend)
        self.ledger.record_spend(spend)
        self.process_spend(spend)

    def record_reimbursement(self, reimbursement: Reimbursement) -> None:
        for handler in self.handlers.values():
            handler.check_reimbursement(reimbursement)
        self.ledger.record_reimbursement(reimbursement)
        self.process_reimbursement(reimbursement)

    def validate(self, spreadsheet_id: Optional[str] = None) -> list[ValidationReport]:
        reports = []
        for handler in self._targets(spreadsheet_id):
            reports.extend(handler.validate_all())
        return reports
