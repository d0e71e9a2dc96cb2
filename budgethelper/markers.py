"""Hidden metadata markers written to column Q.

A section-header row carries ``__BH_SECTION__:<sectionId>:<sectionType>`` and a
section total row carries ``__BH_TOTAL__:<sectionId>``. These are the only
strings the reconstruction engine trusts to re-identify rows.
"""

from __future__ import annotations

from dataclasses import dataclass

from budgethelper.config import SECTION_MARKER_PREFIX, TOTAL_MARKER_PREFIX


@dataclass(frozen=True)
class SectionMarker:
    section_id: str
    section_type: str

    def encode(self) -> str:
        return f"{SECTION_MARKER_PREFIX}{self.section_id}:{self.section_type}"


@dataclass(frozen=True)
class TotalMarker:
    section_id: str

    def encode(self) -> str:
        return f"{TOTAL_MARKER_PREFIX}{self.section_id}"


def decode_marker(value) -> SectionMarker | TotalMarker | None:
    """Parse a metadata cell; anything that is not a well-formed marker is None."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.startswith(SECTION_MARKER_PREFIX):
        # Section ids may contain ':' so the type is taken from the right
        body = text[len(SECTION_MARKER_PREFIX):]
        section_id, sep, section_type = body.rpartition(":")
        if not sep or not section_id or not section_type:
            return None
        return SectionMarker(section_id, section_type)
    if text.startswith(TOTAL_MARKER_PREFIX):
        section_id = text[len(TOTAL_MARKER_PREFIX):]
        return TotalMarker(section_id) if section_id else None
    return None
