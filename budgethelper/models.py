"""Budget document model.

The document is exchanged as camelCase JSON (``monthlyValues``,
``linkedSheetId`` ...), so every model accepts camelCase or snake_case input
and dumps camelCase with ``by_alias=True``.
"""

from __future__ import annotations

import math
import uuid
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SectionType = Literal["income", "expense", "savings", "summary"]
ChangeType = Literal["value", "name", "note", "structure"]

MONTH_COUNT = 12


def new_id() -> str:
    return str(uuid.uuid4())


def to_number(value) -> float:
    """Coerce a raw cell/document value to a finite number; anything else is 0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    return 0.0


def zero_months() -> list[float]:
    return [0.0] * MONTH_COUNT


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Item(_Document):
    id: str = Field(default_factory=new_id)
    name: str = ""
    color: Optional[str] = None
    note: str = ""
    excluded: bool = False
    negative: bool = False
    savings_link: Optional[str] = None
    savings_percentage: Optional[float] = None
    monthly_values: list[float] = Field(default_factory=zero_months)

    @field_validator("monthly_values", mode="before")
    @classmethod
    def _twelve_months(cls, value):
        values = list(value or [])[:MONTH_COUNT]
        values += [0] * (MONTH_COUNT - len(values))
        return [to_number(v) for v in values]

    @field_validator("note", mode="before")
    @classmethod
    def _note_text(cls, value):
        return "" if value is None else str(value)


class Section(_Document):
    id: str = Field(default_factory=new_id)
    name: str = ""
    type: SectionType = "expense"
    color: Optional[str] = None
    show_total: bool = True
    total_label: str = ""
    items: list[Item] = Field(default_factory=list)

    @field_validator("total_label", mode="before")
    @classmethod
    def _label_text(cls, value):
        return "" if value is None else str(value)

    @property
    def display_total_label(self) -> str:
        return self.total_label or f"Total {self.name}"


class Budget(_Document):
    id: str = Field(default_factory=new_id)
    title: str = ""
    year: int = 0
    linked_sheet_id: Optional[str] = None
    sections: list[Section] = Field(default_factory=list)

    def summary_section(self) -> Section | None:
        return next((s for s in self.sections if s.type == "summary"), None)

    def find_section(self, section_id: str) -> Section | None:
        return next((s for s in self.sections if s.id == section_id), None)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Change(_Document):
    """One detected difference between the sheet and the local budget."""
    type: ChangeType
    section_name: str = ""
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    field: str
    month_index: Optional[int] = None
    old_value: Any = None
    new_value: Any = None


class ParseResult(_Document):
    updated_budget: Budget
    changes: list[Change] = Field(default_factory=list)
    # Name of the parse strategy that produced the result, None when none matched
    strategy: Optional[str] = None


class ChangeSummary(_Document):
    total_changes: int
    summary: str
    by_section: dict[str, list[Change]] = Field(default_factory=dict)
