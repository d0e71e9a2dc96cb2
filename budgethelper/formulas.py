"""
Generates the Google Sheets write payload from a budget.

Two passes, kept separate because the Sheets API takes them on different
endpoints:
  1. value ranges for values.batchUpdate (USER_ENTERED, so formulas are interpreted)
  2. formatting requests for spreadsheets.batchUpdate

Columns: A(0)=Label, B-M(1-12)=Jan-Dec, N(13)=Annual, O(14)=Avg, P(15)=Notes, Q(16)=hidden markers
"""

from __future__ import annotations

from dataclasses import dataclass, field

from gspread.utils import rowcol_to_a1

from budgethelper.config import (
    AUTO_ROW_PREFIX,
    COL_ANNUAL,
    COL_AVG,
    COL_DEC,
    COL_JAN,
    COL_LABEL,
    COL_META,
    COL_NOTES,
    COLUMN_WIDTHS,
    EXPENSE_GRAND_TOTAL_LABEL,
    HEADER_AVG_LABEL,
    HEADER_NOTES_LABEL,
    HEADER_TOTAL_LABEL,
    MONTHS,
    NUMBER_FORMAT_PATTERN,
    REMAINING_LABEL,
    RUNNING_BALANCE_LABEL,
    SAVINGS_GRAND_TOTAL_LABEL,
)
from budgethelper.layout import RowLayout, RowLayoutEntry, build_row_layout
from budgethelper.markers import SectionMarker, TotalMarker
from budgethelper.models import Budget, to_number

MONTH_COLUMNS = range(COL_JAN, COL_DEC + 1)

BOLD_KINDS = {
    "header",
    "section-header",
    "total",
    "expense-grand-total",
    "savings-grand-total",
    "remaining",
    "running-balance",
}


@dataclass
class SheetsPayload:
    value_ranges: list[dict] = field(default_factory=list)
    format_requests: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valueRanges": self.value_ranges, "formatRequests": self.format_requests}


def col_letter(col: int) -> str:
    """Column letter for a 0-based column index (0 -> A, 26 -> AA)."""
    return rowcol_to_a1(1, col + 1)[:-1]


def cell_ref(row: int, col: int) -> str:
    return rowcol_to_a1(row, col + 1)


def row_range(row: int) -> str:
    return f"{cell_ref(row, COL_LABEL)}:{cell_ref(row, COL_META)}"


def hex_to_rgb(hex_color: str) -> tuple[int, int, int] | None:
    """'#2d8050' or '#abc' -> (r, g, b); None for anything unparseable."""
    if not isinstance(hex_color, str):
        return None
    clean = hex_color.strip().lstrip("#")
    if len(clean) == 3:
        clean = "".join(c * 2 for c in clean)
    if len(clean) != 6:
        return None
    try:
        value = int(clean, 16)
    except ValueError:
        return None
    return (value >> 16) & 255, (value >> 8) & 255, value & 255


def _format_percentage(percentage: float) -> str:
    # 10 -> '0.1', 12.5 -> '0.125', 100 -> '1'
    factor = percentage / 100
    if float(factor).is_integer():
        return str(int(factor))
    return repr(factor)


def _signed_ref(col: int, row: int, negative: bool) -> str:
    ref = f"{col_letter(col)}{row}"
    return f"-{ref}" if negative else ref


def _row_tail(row: int, notes: str = "", meta: str = "") -> list:
    """Annual, average, notes and metadata cells shared by every value row."""
    return [
        f"=SUM({cell_ref(row, COL_JAN)}:{cell_ref(row, COL_DEC)})",
        f"={cell_ref(row, COL_ANNUAL)}/12",
        notes,
        meta,
    ]


def _header_values() -> list:
    return ["", *MONTHS, HEADER_TOTAL_LABEL, HEADER_AVG_LABEL, HEADER_NOTES_LABEL, ""]


def _section_header_values(entry: RowLayoutEntry) -> list:
    row_data = [entry.section.name] + [""] * (COL_META - COL_LABEL)
    row_data[COL_META] = SectionMarker(entry.section.id, entry.section.type).encode()
    return row_data


def _item_values(entry: RowLayoutEntry, layout: RowLayout) -> list:
    item = entry.item
    r = entry.row_index
    row_data = [item.name]

    # Savings items with a percentage are formulas against the section's auto-row
    auto_entry = None
    if entry.section.type == "savings" and item.savings_percentage is not None:
        auto_entry = layout.auto_row_for(entry.section.id)

    for m, col in enumerate(MONTH_COLUMNS):
        if auto_entry is not None:
            row_data.append(f"={cell_ref(auto_entry.row_index, col)}*{_format_percentage(item.savings_percentage)}")
        else:
            row_data.append(to_number(item.monthly_values[m]))
    return row_data + _row_tail(r, notes=item.note or "")


def _savings_auto_values(entry: RowLayoutEntry) -> list:
    r = entry.row_index
    row_data = [f"{AUTO_ROW_PREFIX}{entry.linked_item_name}"]
    for col in MONTH_COLUMNS:
        row_data.append(f"={cell_ref(entry.linked_item_row, col)}")
    return row_data + _row_tail(r)


def _total_month_formula(entry: RowLayoutEntry, col: int):
    letter = col_letter(col)
    has_items = entry.item_start_row <= entry.item_end_row
    has_auto = entry.auto_row_index is not None
    has_special = any(ir.item.excluded or ir.item.negative for ir in entry.item_rows)
    included = [ir for ir in entry.item_rows if not ir.item.excluded]
    item_sum = f"SUM({letter}{entry.item_start_row}:{letter}{entry.item_end_row})"

    if has_auto and not has_items:
        return f"={letter}{entry.auto_row_index}"
    if has_auto and not has_special:
        return f"={letter}{entry.auto_row_index}+{item_sum}"
    if has_auto:
        parts = [f"{letter}{entry.auto_row_index}"]
        parts += [_signed_ref(col, ir.row_index, ir.item.negative) for ir in included]
        return "=" + "+".join(parts)
    if has_items and not has_special:
        return f"={item_sum}"
    if has_items:
        if not included:
            return 0
        return "=" + "+".join(_signed_ref(col, ir.row_index, ir.item.negative) for ir in included)
    # Empty section: placeholder total
    return 0


def _total_values(entry: RowLayoutEntry) -> list:
    row_data = [entry.section.display_total_label]
    for col in MONTH_COLUMNS:
        row_data.append(_total_month_formula(entry, col))
    return row_data + _row_tail(entry.row_index, meta=TotalMarker(entry.section.id).encode())


def _remaining_values(entry: RowLayoutEntry, layout: RowLayout) -> list:
    row_data = [REMAINING_LABEL]
    income_rows = layout.income_total_rows
    expense_rows = layout.expense_total_rows
    for col in MONTH_COLUMNS:
        letter = col_letter(col)
        if income_rows or expense_rows:
            # One-sided budgets still get a formula, with the missing side spliced in as 0
            inc_parts = "+".join(f"{letter}{r}" for r in income_rows) if income_rows else "0"
            exp_parts = "+".join(f"{letter}{r}" for r in expense_rows) if expense_rows else "0"
            row_data.append(f"=({inc_parts})-({exp_parts})")
        else:
            row_data.append(0)
    return row_data + _row_tail(entry.row_index)


def _grand_total_values(entry: RowLayoutEntry, layout: RowLayout) -> list:
    if entry.kind == "expense-grand-total":
        label, source_rows = EXPENSE_GRAND_TOTAL_LABEL, layout.expense_total_rows
    else:
        label, source_rows = SAVINGS_GRAND_TOTAL_LABEL, layout.savings_total_rows
    row_data = [label]
    for col in MONTH_COLUMNS:
        letter = col_letter(col)
        row_data.append("=" + "+".join(f"{letter}{r}" for r in source_rows) if source_rows else 0)
    return row_data + _row_tail(entry.row_index)


def _running_balance_values(entry: RowLayoutEntry) -> list:
    r = entry.row_index
    remaining_row = entry.remaining_row
    row_data = [RUNNING_BALANCE_LABEL, f"={cell_ref(remaining_row, COL_JAN)}"]
    for col in range(COL_JAN + 1, COL_DEC + 1):
        row_data.append(f"={cell_ref(r, col - 1)}+{cell_ref(remaining_row, col)}")
    # Cumulative values have no meaningful annual total or monthly average
    return row_data + ["", "", "", ""]


def build_value_ranges(layout: RowLayout) -> list[dict]:
    value_ranges = []
    for entry in layout.row_layout:
        if entry.kind == "header":
            values = _header_values()
        elif entry.kind == "section-header":
            values = _section_header_values(entry)
        elif entry.kind == "item":
            values = _item_values(entry, layout)
        elif entry.kind == "savings-auto":
            values = _savings_auto_values(entry)
        elif entry.kind == "total":
            values = _total_values(entry)
        elif entry.kind == "remaining":
            values = _remaining_values(entry, layout)
        elif entry.kind in ("expense-grand-total", "savings-grand-total"):
            values = _grand_total_values(entry, layout)
        elif entry.kind == "running-balance":
            values = _running_balance_values(entry)
        else:
            continue
        value_ranges.append({"range": row_range(entry.row_index), "values": [values]})
    return value_ranges


def _grid_range(sheet_id: int, start_row: int, end_row: int, start_col: int = COL_LABEL, end_col: int = COL_META + 1) -> dict:
    return {
        "sheetId": sheet_id,
        "startRowIndex": start_row,
        "endRowIndex": end_row,
        "startColumnIndex": start_col,
        "endColumnIndex": end_col,
    }


def _column_range(sheet_id: int, col: int) -> dict:
    return {"sheetId": sheet_id, "dimension": "COLUMNS", "startIndex": col, "endIndex": col + 1}


def build_format_requests(layout: RowLayout, sheet_id: int = 0) -> list[dict]:
    """
    Formatting requests, in the order they must be applied.

    The reset comes first: without it background colours from a previous sync
    survive on rows that moved.
    """
    last_row = layout.last_row
    requests = [
        {
            "repeatCell": {
                "range": _grid_range(sheet_id, 0, last_row),
                "cell": {
                    "userEnteredFormat": {
                        "backgroundColor": {"red": 1, "green": 1, "blue": 1},
                        "textFormat": {"bold": False},
                    }
                },
                "fields": "userEnteredFormat.backgroundColor,userEnteredFormat.textFormat.bold",
            }
        }
    ]

    for entry in layout.row_layout:
        if entry.kind not in BOLD_KINDS:
            continue
        requests.append({
            "repeatCell": {
                "range": _grid_range(sheet_id, entry.row_index - 1, entry.row_index),
                "cell": {"userEnteredFormat": {"textFormat": {"bold": True}}},
                "fields": "userEnteredFormat.textFormat.bold",
            }
        })

    for entry in layout.row_layout:
        if entry.kind in ("separator", "header") or not entry.color:
            continue
        rgb = hex_to_rgb(entry.color)
        if rgb is None:
            continue
        red, green, blue = rgb
        requests.append({
            "repeatCell": {
                "range": _grid_range(sheet_id, entry.row_index - 1, entry.row_index),
                "cell": {
                    "userEnteredFormat": {
                        "backgroundColor": {"red": red / 255, "green": green / 255, "blue": blue / 255},
                    }
                },
                "fields": "userEnteredFormat.backgroundColor",
            }
        })

    requests.append({
        "repeatCell": {
            "range": _grid_range(sheet_id, 1, last_row, COL_JAN, COL_AVG + 1),
            "cell": {"userEnteredFormat": {"numberFormat": {"type": "NUMBER", "pattern": NUMBER_FORMAT_PATTERN}}},
            "fields": "userEnteredFormat.numberFormat",
        }
    })

    for col, width in enumerate(COLUMN_WIDTHS):
        requests.append({
            "updateDimensionProperties": {
                "range": _column_range(sheet_id, col),
                "properties": {"pixelSize": width},
                "fields": "pixelSize",
            }
        })

    requests.append({
        "updateDimensionProperties": {
            "range": _column_range(sheet_id, COL_META),
            "properties": {"hiddenByUser": True},
            "fields": "hiddenByUser",
        }
    })

    requests.append({
        "updateSheetProperties": {
            "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1, "frozenColumnCount": 1}},
            "fields": "gridProperties.frozenRowCount,gridProperties.frozenColumnCount",
        }
    })
    return requests


def generate_sheets_payload(budget: Budget, sheet_id: int = 0) -> SheetsPayload:
    """Full write payload for a budget: value ranges plus formatting requests."""
    layout = build_row_layout(budget)
    return SheetsPayload(
        value_ranges=build_value_ranges(layout),
        format_requests=build_format_requests(layout, sheet_id),
    )
