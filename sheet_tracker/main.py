"""FastAPI application: record transactions, update and validate monthly sheets."""

import hmac
import logging
import os
from dataclasses import asdict
from datetime import date

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sheet_tracker.config import VERSION, ConfigError, Reimbursement, Spend, load_spreadsheets
from sheet_tracker.registry import HandlerRegistry
from sheet_tracker.sheets import SheetsStore

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Monthly Sheet Tracker")

AUTH_TOKEN = os.environ.get("AUTH_TOKEN", "")

_registry: HandlerRegistry | None = None


def get_registry() -> HandlerRegistry:
    """Build the handler registry on first use."""
    global _registry
    if _registry is None:
        _registry = HandlerRegistry(load_spreadsheets(), SheetsStore())
    return _registry


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    """Require Bearer token for /api/* routes."""
    if AUTH_TOKEN and request.url.path.startswith("/api/"):
        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Bearer "):
            return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        token = auth_header.removeprefix("Bearer ")
        if not hmac.compare_digest(token, AUTH_TOKEN):
            return JSONResponse(status_code=401, content={"detail": "Invalid token"})
    return await call_next(request)


class TransactionRequest(BaseModel):
    date: date
    amount: float
    category: str
    account: str
    sub_category: str | None = None


@app.get("/api/config")
def get_config(registry: HandlerRegistry = Depends(get_registry)):
    """Return the loaded Monthly spreadsheets and their sheets."""
    return {
        "version": VERSION,
        "main": registry.main.name if registry.main else None,
        "spreadsheets": [
            {
                "id": spreadsheet_id,
                "name": handler.spreadsheet.name,
                "sheets": [h.sheet.name for h in handler.sheet_handlers],
            }
            for spreadsheet_id, handler in registry.handlers.items()
        ],
    }


@app.post("/api/spend")
def post_spend(req: TransactionRequest, registry: HandlerRegistry = Depends(get_registry)):
    """Log a spend and add it to every monthly sheet it belongs to."""
    spend = Spend(**req.model_dump())
    try:
        registry.record_spend(spend)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Failed to record spend: %s", e, exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to write to Google Sheets: {e}"
        )
    return {"ok": True, "data": req.model_dump()}


@app.post("/api/reimbursement")
def post_reimbursement(req: TransactionRequest, registry: HandlerRegistry = Depends(get_registry)):
    """Log a reimbursement and take it off the monthly sheets."""
    reimbursement = Reimbursement(**req.model_dump())
    try:
        registry.record_reimbursement(reimbursement)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Failed to record reimbursement: %s", e, exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to write to Google Sheets: {e}"
        )
    return {"ok": True, "data": req.model_dump()}


def _validate(registry: HandlerRegistry, spreadsheet_id: str | None) -> dict:
    try:
        reports = registry.validate(spreadsheet_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown spreadsheet: {spreadsheet_id}")
    return {
        "ok": all(report.ok for report in reports),
        "reports": [asdict(report) for report in reports],
    }


@app.post("/api/validate")
def validate_all(registry: HandlerRegistry = Depends(get_registry)):
    """Cross-check every monthly sheet against the transaction log."""
    return _validate(registry, None)


@app.post("/api/validate/{spreadsheet_id}")
def validate_spreadsheet(spreadsheet_id: str, registry: HandlerRegistry = Depends(get_registry)):
    return _validate(registry, spreadsheet_id)
