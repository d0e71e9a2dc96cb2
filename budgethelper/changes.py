"""Change summariser: groups parse changes by section and counts them by type."""

from budgethelper.models import Change, ChangeSummary


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count > 1 else ''}"


def summarize_changes(changes: list[Change]) -> ChangeSummary:
    """
    Summarize changes for display.

    Returns the total count, a phrase such as "2 values, 1 name, 1 note changed"
    ("No changes detected" when empty) and the changes grouped by section name.
    """
    by_section: dict[str, list[Change]] = {}
    for change in changes:
        by_section.setdefault(change.section_name, []).append(change)

    counts = {kind: sum(1 for c in changes if c.type == kind) for kind in ("value", "name", "note", "structure")}

    parts = [_plural(counts[kind], kind) for kind in ("value", "name", "note") if counts[kind] > 0]
    phrases = []
    if counts["structure"] > 0:
        phrases.append("Structure rebuilt")
    if parts:
        phrases.append(f"{', '.join(parts)} changed")

    return ChangeSummary(
        total_changes=len(changes),
        summary="; ".join(phrases) if phrases else "No changes detected",
        by_section=by_section,
    )
