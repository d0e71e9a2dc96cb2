"""
FastAPI server for the BudgetHelper web app.
Provides endpoints for the row layout, push payload, sheet parsing and Google Sheets sync.
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Optional, Union

from budgethelper.calculator import (
    compute_annual_total,
    compute_budget_summary,
    compute_running_balance,
    find_savings_link_conflicts,
)
from budgethelper.changes import summarize_changes
from budgethelper.config import CREDENTIALS_PATH, SPREADSHEET_ID
from budgethelper.exceptions import ConfigError, SheetSyncError
from budgethelper.formulas import generate_sheets_payload
from budgethelper.layout import build_row_layout
from budgethelper.models import Budget
from budgethelper.sheet_parser import parse_sheet_data

app = FastAPI(title="BudgetHelper API", version="1.0.0")

# Enable CORS for the web frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Cell = Union[str, float, int, bool, None]


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PayloadRequest(_Request):
    budget: Budget
    sheet_id: int = 0


class ParseRequest(_Request):
    budget: Budget
    rows: list[list[Cell]] = Field(default_factory=list)
    row_colors: Optional[dict[int, str]] = None


class SyncRequest(_Request):
    budget: Budget
    spreadsheet_id: Optional[str] = None


def _spreadsheet_id(request: SyncRequest) -> str:
    spreadsheet_id = request.spreadsheet_id or request.budget.linked_sheet_id or SPREADSHEET_ID
    if not spreadsheet_id:
        raise HTTPException(status_code=400, detail="No spreadsheet id given and the budget is not linked to a sheet")
    return spreadsheet_id


def _dump(model) -> Any:
    return model.model_dump(by_alias=True, mode="json")


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


@app.post("/api/layout")
def get_layout(budget: Budget):
    """Row descriptors for the budget, in sheet order."""
    row_layout = build_row_layout(budget)
    rows = []
    for entry in row_layout.row_layout:
        rows.append({
            "kind": entry.kind,
            "rowIndex": entry.row_index,
            "sectionId": entry.section.id if entry.section else None,
            "sectionName": entry.section.name if entry.section else None,
            "itemId": entry.item.id if entry.item else None,
            "itemName": entry.item.name if entry.item else None,
        })
    return {
        "rows": rows,
        "incomeTotalRows": row_layout.income_total_rows,
        "expenseTotalRows": row_layout.expense_total_rows,
        "savingsTotalRows": row_layout.savings_total_rows,
        "itemRowMap": row_layout.item_row_map,
    }


@app.post("/api/payload")
def get_payload(request: PayloadRequest):
    return generate_sheets_payload(request.budget, request.sheet_id).to_dict()


@app.post("/api/parse")
def parse_rows(request: ParseRequest):
    """Diff already-fetched sheet rows against the budget."""
    result = parse_sheet_data(request.budget, request.rows, request.row_colors)
    summary = summarize_changes(result.changes)
    return {
        "updatedBudget": _dump(result.updated_budget),
        "changes": [_dump(c) for c in result.changes],
        "summary": summary.summary,
        "totalChanges": summary.total_changes,
        "strategy": result.strategy,
    }


@app.post("/api/summary")
def get_summary(budget: Budget):
    """Live totals, matching what the sheet formulas compute."""
    summary = compute_budget_summary(budget.sections)
    return {
        "monthly": summary,
        "annual": {key: compute_annual_total(values) for key, values in summary.items()},
        "runningBalance": compute_running_balance(budget.sections),
        "savingsLinkConflicts": find_savings_link_conflicts(budget),
    }


@app.post("/api/push")
def push_to_sheet(request: SyncRequest):
    from budgethelper.sheets_client import push_budget

    spreadsheet_id = _spreadsheet_id(request)
    try:
        result = push_budget(request.budget, spreadsheet_id, CREDENTIALS_PATH)
    except SheetSyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "success": True,
        "url": result.info.url,
        "rowsWritten": result.rows_written,
        "budget": _dump(result.budget),
    }


@app.post("/api/pull")
def pull_from_sheet(request: SyncRequest):
    """Parse the sheet against the budget. The client decides whether to apply updatedBudget."""
    from budgethelper.sheets_client import pull_budget

    spreadsheet_id = _spreadsheet_id(request)
    try:
        result = pull_budget(request.budget, spreadsheet_id, CREDENTIALS_PATH)
    except SheetSyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "sheetTitle": result.info.title,
        "updatedBudget": _dump(result.parse_result.updated_budget),
        "changes": [_dump(c) for c in result.parse_result.changes],
        "summary": result.summary.summary,
        "totalChanges": result.summary.total_changes,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
