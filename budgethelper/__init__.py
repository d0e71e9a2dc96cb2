"""BudgetHelper: budget document <-> Google Sheets sync core."""

from budgethelper.changes import summarize_changes
from budgethelper.formulas import generate_sheets_payload
from budgethelper.layout import build_row_layout
from budgethelper.models import Budget, Change, Item, ParseResult, Section
from budgethelper.sheet_parser import parse_sheet_data

__all__ = [
    "Budget",
    "Change",
    "Item",
    "ParseResult",
    "Section",
    "build_row_layout",
    "generate_sheets_payload",
    "parse_sheet_data",
    "summarize_changes",
]
