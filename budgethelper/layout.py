"""
Row layout: maps a budget onto sheet rows.

Sheet layout:
  Row 1: header (blank, Januar..December, Total, Gns./måned, Noter)
  Per section: section-header, [savings-auto], items, [total], separator
  Summary section: expense grand total, savings grand total, remaining,
  running balance, separator

The layout is recomputed on every call and is the only thing that ties
document ids to sheet rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from budgethelper.calculator import find_savings_linked_item
from budgethelper.models import Budget, Item, Section

EntryKind = Literal[
    "header",
    "section-header",
    "item",
    "savings-auto",
    "total",
    "remaining",
    "running-balance",
    "expense-grand-total",
    "savings-grand-total",
    "separator",
]


@dataclass(frozen=True)
class ItemRow:
    row_index: int
    item: Item


@dataclass(frozen=True)
class RowLayoutEntry:
    kind: EntryKind
    row_index: int
    section: Optional[Section] = None
    item: Optional[Item] = None
    color: Optional[str] = None
    # savings-auto
    linked_item_row: Optional[int] = None
    linked_item_name: Optional[str] = None
    # total
    item_start_row: Optional[int] = None
    item_end_row: Optional[int] = None
    item_rows: tuple[ItemRow, ...] = ()
    auto_row_index: Optional[int] = None
    # running-balance
    remaining_row: Optional[int] = None


@dataclass
class RowLayout:
    row_layout: list[RowLayoutEntry] = field(default_factory=list)
    income_total_rows: list[int] = field(default_factory=list)
    expense_total_rows: list[int] = field(default_factory=list)
    savings_total_rows: list[int] = field(default_factory=list)
    item_row_map: dict[str, int] = field(default_factory=dict)

    @property
    def last_row(self) -> int:
        return self.row_layout[-1].row_index if self.row_layout else 1

    def entries(self, kind: str) -> list[RowLayoutEntry]:
        return [e for e in self.row_layout if e.kind == kind]

    def auto_row_for(self, section_id: str) -> RowLayoutEntry | None:
        return next(
            (e for e in self.row_layout if e.kind == "savings-auto" and e.section.id == section_id),
            None,
        )


def build_row_layout(
    budget: Budget,
    include_section_headers: bool = True,
    include_grand_totals: bool = True,
) -> RowLayout:
    """
    Build the full row layout from the budget.

    The two flags only exist to replay layouts written by older versions
    (no section-header rows, no grand-total rows) when reading a sheet back.
    """
    layout = RowLayout()
    row = 1

    layout.row_layout.append(RowLayoutEntry("header", row))
    row += 1

    summary_done = False
    for section in budget.sections:
        if section.type == "summary":
            if summary_done:
                continue
            summary_done = True
            row = _add_summary_rows(layout, section, row, include_grand_totals)
            continue
        row = _add_section_rows(layout, budget, section, row, include_section_headers)

    return layout


def _add_summary_rows(layout: RowLayout, section: Section, row: int, include_grand_totals: bool) -> int:
    if include_grand_totals:
        layout.row_layout.append(RowLayoutEntry("expense-grand-total", row, section=section, color=section.color))
        row += 1
        layout.row_layout.append(RowLayoutEntry("savings-grand-total", row, section=section, color=section.color))
        row += 1
    remaining_row = row
    layout.row_layout.append(RowLayoutEntry("remaining", row, section=section, color=section.color))
    row += 1
    layout.row_layout.append(
        RowLayoutEntry("running-balance", row, section=section, color=section.color, remaining_row=remaining_row)
    )
    row += 1
    layout.row_layout.append(RowLayoutEntry("separator", row))
    return row + 1


def _add_section_rows(layout: RowLayout, budget: Budget, section: Section, row: int, include_section_headers: bool) -> int:
    if include_section_headers:
        layout.row_layout.append(RowLayoutEntry("section-header", row, section=section, color=section.color))
        row += 1

    # Savings sections mirror their linked item, but only when that item already has a row
    auto_row_index = None
    if section.type == "savings":
        linked = find_savings_linked_item(budget.sections, section.id)
        if linked is not None and linked.id in layout.item_row_map:
            auto_row_index = row
            layout.row_layout.append(
                RowLayoutEntry(
                    "savings-auto",
                    row,
                    section=section,
                    linked_item_row=layout.item_row_map[linked.id],
                    linked_item_name=linked.name,
                )
            )
            row += 1

    item_start_row = row
    item_rows = []
    for item in section.items:
        layout.item_row_map[item.id] = row
        item_rows.append(ItemRow(row, item))
        layout.row_layout.append(RowLayoutEntry("item", row, section=section, item=item))
        row += 1
    item_end_row = row - 1

    # An empty section still reserves its total row (valued 0)
    if section.show_total:
        layout.row_layout.append(
            RowLayoutEntry(
                "total",
                row,
                section=section,
                item_start_row=item_start_row,
                item_end_row=item_end_row,
                item_rows=tuple(item_rows),
                auto_row_index=auto_row_index,
            )
        )
        if section.type == "income":
            layout.income_total_rows.append(row)
        elif section.type == "expense":
            layout.expense_total_rows.append(row)
        elif section.type == "savings":
            layout.savings_total_rows.append(row)
        row += 1

    layout.row_layout.append(RowLayoutEntry("separator", row))
    return row + 1
