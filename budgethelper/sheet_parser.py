"""
Parses Google Sheets data back into the budget model.

Sheets come in several shapes: written by the current version (hidden
section/total markers in column Q), by older versions (no markers, no
section-header or grand-total rows), or edited by hand. Each shape is handled
by a strategy; strategies are tried from most to least reliable and the first
one that returns a result wins:

  1. MarkerRebuildStrategy     markers present and the sheet structure changed
  2. LayoutReplayStrategy      no markers, a replayed layout matches the sheet
  3. MarkerItemMappingStrategy markers present, structure unchanged
  4. NameMatchStrategy         match items to rows by label

Parsing never raises for malformed sheet data and never mutates its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence, Union

from budgethelper.config import (
    AUTO_ROW_PREFIX,
    BOUNDARY_LABELS,
    COL_JAN,
    COL_LABEL,
    COL_META,
    COL_NOTES,
    EXPENSE_GRAND_TOTAL_LABEL,
    REMAINING_LABEL,
    TOTAL_LABEL_PREFIXES,
    VALUE_TOLERANCE,
)
from budgethelper.formulas import hex_to_rgb
from budgethelper.layout import build_row_layout
from budgethelper.markers import SectionMarker, TotalMarker, decode_marker
from budgethelper.models import MONTH_COUNT, Budget, Change, Item, ParseResult, Section, to_number

Cell = Union[str, int, float, bool, None]
SheetRows = Sequence[Sequence[Cell]]
RowColors = dict[int, str]

AUTO_ROW_GLYPH = AUTO_ROW_PREFIX.strip()
EDITABLE_SECTION_TYPES = ("income", "expense", "savings")


# ── Cell access ──────────────────────────────────────────────────────────────

def get_cell(rows: SheetRows, row: int, col: int) -> Cell:
    """Bounds-checked cell read; row is 1-based (sheet row), col is 0-based."""
    if row < 1 or row > len(rows):
        return None
    values = rows[row - 1]
    if col < 0 or col >= len(values):
        return None
    return values[col]


def cell_text(rows: SheetRows, row: int, col: int) -> str:
    value = get_cell(rows, row, col)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def label_at(rows: SheetRows, row: int) -> str:
    return cell_text(rows, row, COL_LABEL)


def label_matches(rows: SheetRows, row: int, name: str) -> bool:
    """
    True when the row label is the given name.

    Sheets stores a numeric-looking name such as '1.50' as the number 1.5, so
    a numeric cell also matches a name with the same numeric value.
    """
    name = (name or "").strip()
    if label_at(rows, row) == name:
        return True
    value = get_cell(rows, row, COL_LABEL)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return float(name) == value
    except ValueError:
        return False


def marker_at(rows: SheetRows, row: int) -> SectionMarker | TotalMarker | None:
    return decode_marker(get_cell(rows, row, COL_META))


def month_values_at(rows: SheetRows, row: int) -> list[float]:
    return [to_number(get_cell(rows, row, COL_JAN + m)) for m in range(MONTH_COUNT)]


def is_blank_row(rows: SheetRows, row: int) -> bool:
    if row < 1 or row > len(rows):
        return True
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in rows[row - 1])


def is_auto_row_label(label: str) -> bool:
    return label.startswith(AUTO_ROW_GLYPH)


def is_boundary_label(label: str) -> bool:
    return label in BOUNDARY_LABELS


def is_plausible_item_row(rows: SheetRows, row: int) -> bool:
    label = label_at(rows, row)
    return bool(label) and not is_boundary_label(label) and not is_auto_row_label(label) and marker_at(rows, row) is None


def has_markers(rows: SheetRows) -> bool:
    return any(marker_at(rows, r) is not None for r in range(1, len(rows) + 1))


def normalize_rows(sheet_rows) -> list[list[Cell]]:
    """The Sheets API omits trailing empty rows/cells; anything non-row becomes an empty row."""
    return [list(r) if isinstance(r, (list, tuple)) else [] for r in (sheet_rows or [])]


def normalize_colors(row_colors) -> RowColors:
    colors = {}
    for key, value in (row_colors or {}).items():
        try:
            row = int(key)
        except (TypeError, ValueError):
            continue
        if isinstance(value, str) and value.strip():
            colors[row] = value.strip().lower()
    return colors


# ── Section spans (marker-written sheets) ────────────────────────────────────

@dataclass
class SectionSpan:
    """Rows owned by one section marker, up to its total row or the next boundary."""
    marker: SectionMarker
    header_row: int
    label: str
    item_rows: list[int] = field(default_factory=list)
    auto_labels: list[str] = field(default_factory=list)
    total_row: Optional[int] = None
    total_label: Optional[str] = None


def _looks_like_total_row(rows: SheetRows, row: int, end: int) -> bool:
    """'Total …'/'I alt …' directly followed by a blank row, a boundary, or the next section."""
    if not label_at(rows, row).startswith(TOTAL_LABEL_PREFIXES):
        return False
    following = row + 1
    if following >= end or is_blank_row(rows, following):
        return True
    return is_boundary_label(label_at(rows, following)) or isinstance(marker_at(rows, following), SectionMarker)


def find_section_spans(rows: SheetRows, budget: Budget | None = None) -> list[SectionSpan]:
    """
    Split a marker-written sheet into section spans.

    With a budget, a known section without a total row never gets one guessed
    from its labels, and rows labelled like one of its items stay items.
    """
    marker_rows = [r for r in range(1, len(rows) + 1) if isinstance(marker_at(rows, r), SectionMarker)]
    spans = []
    for idx, header_row in enumerate(marker_rows):
        end = marker_rows[idx + 1] if idx + 1 < len(marker_rows) else len(rows) + 1
        span = SectionSpan(marker=marker_at(rows, header_row), header_row=header_row, label=label_at(rows, header_row))
        existing = budget.find_section(span.marker.section_id) if budget is not None else None
        guess_total = existing is None or existing.show_total
        item_names = [i.name for i in existing.items] if existing is not None else []

        for r in range(header_row + 1, end):
            meta = marker_at(rows, r)
            label = label_at(rows, r)
            if isinstance(meta, TotalMarker):
                if meta.section_id == span.marker.section_id:
                    span.total_row, span.total_label = r, label
                break
            if is_blank_row(rows, r) or is_boundary_label(label):
                break
            if is_auto_row_label(label):
                span.auto_labels.append(label[len(AUTO_ROW_GLYPH):].strip())
                continue
            if (
                guess_total
                and not any(label_matches(rows, r, name) for name in item_names)
                and _looks_like_total_row(rows, r, end)
            ):
                span.total_row, span.total_label = r, label
                break
            span.item_rows.append(r)

        spans.append(span)
    return spans


# ── Field-level diff for an item → row mapping ───────────────────────────────

def apply_item_row_map(budget: Budget, rows: SheetRows, item_row_map: dict[str, int]) -> ParseResult:
    """
    Read name, months and note for every mapped item and record differences.

    Unmapped items and items whose row is missing are left untouched. Savings
    items driven by a percentage are formula-derived and never imported.
    """
    updated = budget.model_copy(deep=True)
    changes: list[Change] = []

    for section in updated.sections:
        if section.type == "summary":
            continue
        for item in section.items:
            row = item_row_map.get(item.id)
            if row is None or row > len(rows):
                continue
            if section.type == "savings" and item.savings_percentage is not None:
                continue

            sheet_name = label_at(rows, row)
            if sheet_name and not label_matches(rows, row, item.name):
                changes.append(Change(
                    type="name",
                    section_name=section.name,
                    item_id=item.id,
                    item_name=item.name,
                    field="name",
                    old_value=item.name,
                    new_value=sheet_name,
                ))
                item.name = sheet_name

            sheet_values = month_values_at(rows, row)
            for m in range(MONTH_COUNT):
                local_value = to_number(item.monthly_values[m])
                if abs(sheet_values[m] - local_value) > VALUE_TOLERANCE:
                    changes.append(Change(
                        type="value",
                        section_name=section.name,
                        item_id=item.id,
                        item_name=item.name,
                        field=f"month_{m}",
                        month_index=m,
                        old_value=local_value,
                        new_value=sheet_values[m],
                    ))
                    item.monthly_values[m] = sheet_values[m]

            sheet_note = cell_text(rows, row, COL_NOTES)
            local_note = (item.note or "").strip()
            if sheet_note != local_note:
                changes.append(Change(
                    type="note",
                    section_name=section.name,
                    item_id=item.id,
                    item_name=item.name,
                    field="note",
                    old_value=local_note,
                    new_value=sheet_note,
                ))
                item.note = sheet_note

    return ParseResult(updated_budget=updated, changes=changes)


# ── Strategies ───────────────────────────────────────────────────────────────

class ParseStrategy(Protocol):
    name: str

    def attempt(self, budget: Budget, rows: SheetRows, row_colors: RowColors) -> ParseResult | None:
        ...


def _color_key(color: str | None):
    """'#abc', '#AABBCC' and '#aabbcc' are the same colour."""
    return hex_to_rgb(color) or (color or "").lower()


def _structure_signature(budget: Budget) -> tuple:
    """Everything except values and notes; a difference here means the sheet was restructured."""
    return tuple(
        (
            s.id, s.name, s.type, _color_key(s.color), s.show_total, s.total_label,
            tuple(
                (i.id, i.name, i.color, i.excluded, i.negative, i.savings_link, i.savings_percentage)
                for i in s.items
            ),
        )
        for s in budget.sections
    )


class MarkerRebuildStrategy:
    """Rebuild sections and items from marker spans; all-or-nothing at section level."""

    name = "marker rebuild"

    def attempt(self, budget: Budget, rows: SheetRows, row_colors: RowColors) -> ParseResult | None:
        spans = find_section_spans(rows, budget)
        if not spans:
            return None

        rebuilt = self._rebuild(budget, rows, spans, row_colors)
        if _structure_signature(rebuilt) == _structure_signature(budget):
            # Same structure: let the item mapping strategies report field-level changes
            return None

        change = Change(
            type="structure",
            field="structure",
            old_value=[s.name for s in budget.sections],
            new_value=[s.name for s in rebuilt.sections],
        )
        return ParseResult(updated_budget=rebuilt, changes=[change])

    def _rebuild(self, budget: Budget, rows: SheetRows, spans: list[SectionSpan], row_colors: RowColors) -> Budget:
        claimed: set[str] = set()
        sections = []

        for span in spans:
            existing = budget.find_section(span.marker.section_id)
            if existing is not None and existing.type == "summary":
                continue
            section_type = span.marker.section_type
            if section_type not in EDITABLE_SECTION_TYPES:
                section_type = existing.type if existing is not None else "expense"

            items = [
                self._item_from_row(rows, r, self._claim_item(budget, existing, rows, r, claimed), section_type)
                for r in span.item_rows
            ]
            color = self._section_color(row_colors, span.header_row, existing)

            if existing is not None:
                name = existing.name if span.label == existing.name.strip() else (span.label or existing.name)
                section = existing.model_copy(
                    deep=True,
                    update={"name": name, "type": section_type, "color": color, "items": items},
                )
            else:
                section = Section(
                    id=span.marker.section_id,
                    name=span.label,
                    type=section_type,
                    color=color,
                    show_total=span.total_row is not None,
                    total_label=span.total_label or "",
                    items=items,
                )
            sections.append(section)

        self._relink_savings(sections, spans)
        sections = self._place_summary(budget, rows, spans, sections)
        return budget.model_copy(deep=True, update={"sections": sections})

    @staticmethod
    def _claim_item(budget: Budget, existing: Section | None, rows: SheetRows, row: int, claimed: set[str]) -> Item | None:
        """Existing item with this name, own section first; each item is claimed once."""
        candidates = list(existing.items) if existing is not None else []
        candidates += [i for s in budget.sections if s.type != "summary" and s is not existing for i in s.items]
        for item in candidates:
            if item.id not in claimed and label_matches(rows, row, item.name):
                claimed.add(item.id)
                return item
        return None

    @staticmethod
    def _item_from_row(rows: SheetRows, row: int, match: Item | None, section_type: str) -> Item:
        values = month_values_at(rows, row)
        note = cell_text(rows, row, COL_NOTES)
        if match is None:
            return Item(name=label_at(rows, row), note=note, monthly_values=values)
        if section_type == "savings" and match.savings_percentage is not None:
            values = list(match.monthly_values)
        else:
            # Keep local values that are within tolerance of the sheet
            values = [
                local if abs(local - sheet) <= VALUE_TOLERANCE else sheet
                for local, sheet in zip(match.monthly_values, values)
            ]
        if note == (match.note or "").strip():
            note = match.note
        return match.model_copy(deep=True, update={"monthly_values": values, "note": note})

    @staticmethod
    def _section_color(row_colors: RowColors, header_row: int, existing: Section | None) -> str | None:
        sheet_color = row_colors.get(header_row)
        existing_color = existing.color if existing is not None else None
        if sheet_color is None:
            return existing_color
        if existing_color and _color_key(existing_color) == _color_key(sheet_color):
            return existing_color
        return sheet_color

    @staticmethod
    def _relink_savings(sections: list[Section], spans: list[SectionSpan]) -> None:
        """'← Rent' in a savings section links the first income/expense item named Rent to it."""
        for span in spans:
            if span.marker.section_type != "savings" or not span.auto_labels:
                continue
            mirrored = span.auto_labels[0]
            linked = next(
                (
                    item
                    for s in sections if s.type in ("income", "expense")
                    for item in s.items if item.name.strip() == mirrored
                ),
                None,
            )
            if linked is not None:
                linked.savings_link = span.marker.section_id

    @staticmethod
    def _place_summary(budget: Budget, rows: SheetRows, spans: list[SectionSpan], sections: list[Section]) -> list[Section]:
        """The summary section has no marker; put it where its rows appear in the sheet."""
        summary = budget.summary_section()
        if summary is None:
            return sections
        summary = summary.model_copy(deep=True)

        # A section total may carry the same label, but only summary rows are marker-less
        summary_row = next(
            (
                r for r in range(1, len(rows) + 1)
                if label_at(rows, r) in (EXPENSE_GRAND_TOTAL_LABEL, REMAINING_LABEL) and marker_at(rows, r) is None
            ),
            None,
        )
        if summary_row is None:
            return sections + [summary]

        kept_spans = [sp for sp in spans if any(s.id == sp.marker.section_id for s in sections)]
        for index, span in enumerate(kept_spans):
            if span.header_row > summary_row:
                return sections[:index] + [summary] + sections[index:]
        return sections + [summary]


def _result_from_map(budget: Budget, rows: SheetRows, item_row_map: dict[str, int] | None) -> ParseResult | None:
    if item_row_map is None:
        return None
    return apply_item_row_map(budget, rows, item_row_map)


class LayoutReplayStrategy:
    """Replay the layout, tolerating sheets written before section headers / grand totals existed."""

    name = "layout replay"
    # (section headers, grand totals), current layout first
    variants = ((True, True), (True, False), (False, True), (False, False))

    def attempt(self, budget: Budget, rows: SheetRows, row_colors: RowColors) -> ParseResult | None:
        return _result_from_map(budget, rows, self.map_items(budget, rows))

    def map_items(self, budget: Budget, rows: SheetRows) -> dict[str, int] | None:
        if has_markers(rows):
            return None
        for section_headers, grand_totals in self.variants:
            item_row_map = build_row_layout(budget, section_headers, grand_totals).item_row_map
            if item_row_map and all(is_plausible_item_row(rows, r) for r in item_row_map.values()):
                return item_row_map
        return None


class MarkerItemMappingStrategy:
    """Assign each marker span's rows to that section's existing items, in order."""

    name = "marker item mapping"

    def attempt(self, budget: Budget, rows: SheetRows, row_colors: RowColors) -> ParseResult | None:
        return _result_from_map(budget, rows, self.map_items(budget, rows))

    def map_items(self, budget: Budget, rows: SheetRows) -> dict[str, int] | None:
        item_row_map = {}
        for span in find_section_spans(rows, budget):
            section = budget.find_section(span.marker.section_id)
            if section is None or section.type == "summary":
                continue
            for item, row in zip(section.items, span.item_rows):
                item_row_map[item.id] = row
        return item_row_map or None


class NameMatchStrategy:
    """Last resort: each item claims the first free row whose label equals its name."""

    name = "name matching"

    def attempt(self, budget: Budget, rows: SheetRows, row_colors: RowColors) -> ParseResult | None:
        return _result_from_map(budget, rows, self.map_items(budget, rows))

    def map_items(self, budget: Budget, rows: SheetRows) -> dict[str, int]:
        claimed: set[int] = set()
        item_row_map = {}
        for section in budget.sections:
            if section.type == "summary":
                continue
            for item in section.items:
                name = item.name.strip()
                if not name:
                    continue
                for r in range(1, len(rows) + 1):
                    if r not in claimed and label_matches(rows, r, name) and is_plausible_item_row(rows, r):
                        item_row_map[item.id] = r
                        claimed.add(r)
                        break
        return item_row_map


DEFAULT_STRATEGIES: tuple[ParseStrategy, ...] = (
    MarkerRebuildStrategy(),
    LayoutReplayStrategy(),
    MarkerItemMappingStrategy(),
    NameMatchStrategy(),
)


def parse_sheet_data(
    budget: Budget,
    sheet_rows: SheetRows,
    row_colors: dict | None = None,
    strategies: Sequence[ParseStrategy] = DEFAULT_STRATEGIES,
) -> ParseResult:
    """
    Parse sheet data back into the budget, using the current budget as a template.

    sheet_rows is the 2-D array returned by the Sheets API (index 0 = sheet row 1).
    row_colors optionally maps sheet row (1-based) -> '#rrggbb' background colour.
    """
    rows = normalize_rows(sheet_rows)
    colors = normalize_colors(row_colors)

    for strategy in strategies:
        result = strategy.attempt(budget, rows, colors)
        if result is not None:
            return result.model_copy(update={"strategy": strategy.name})

    return ParseResult(updated_budget=budget.model_copy(deep=True))
