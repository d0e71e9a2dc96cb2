"""
Live totals for a budget, computed in Python.

Mirrors the formulas written by formulas.py so the CLI/API can show the same
numbers the sheet will show without evaluating any spreadsheet formula.
"""

import pandas as pd
from rich.console import Console

from budgethelper.config import MONTHS
from budgethelper.models import MONTH_COUNT, Budget, Item, Section, to_number

console = Console(stderr=True)


def find_savings_linked_item(sections: list[Section], savings_section_id: str) -> Item | None:
    """First income/expense item whose savings_link points to the given savings section."""
    for section in sections:
        if section.type not in ("expense", "income"):
            continue
        for item in section.items:
            if item.savings_link == savings_section_id:
                return item
    return None


def find_savings_link_conflicts(budget: Budget) -> dict[str, list[str]]:
    """
    Savings sections linked from more than one item.

    Only the first linking item is ever used; the rest are reported so the
    caller can warn about them. Returns {savings_section_id: [item names]}.
    """
    links: dict[str, list[str]] = {}
    for section in budget.sections:
        if section.type not in ("expense", "income"):
            continue
        for item in section.items:
            if item.savings_link:
                links.setdefault(item.savings_link, []).append(item.name)
    conflicts = {sid: names for sid, names in links.items() if len(names) > 1}
    for sid, names in conflicts.items():
        console.print(f"[yellow]Warning: savings section {sid} is linked from {len(names)} items ({', '.join(names)}); using '{names[0]}'.[/yellow]")
    return conflicts


def effective_monthly_values(item: Item, section: Section, all_sections: list[Section] | None = None) -> list[float]:
    """Monthly values as the sheet shows them (savings percentage items are derived)."""
    if section.type == "savings" and item.savings_percentage is not None and all_sections:
        linked = find_savings_linked_item(all_sections, section.id)
        if linked:
            return [to_number(v) * item.savings_percentage / 100 for v in linked.monthly_values]
    return [to_number(v) for v in item.monthly_values]


def compute_section_totals(section: Section, all_sections: list[Section] | None = None) -> list[float]:
    monthly_totals = [0.0] * MONTH_COUNT
    for item in section.items:
        if item.excluded:
            continue
        sign = -1 if item.negative else 1
        values = effective_monthly_values(item, section, all_sections)
        for m in range(MONTH_COUNT):
            monthly_totals[m] += sign * values[m]
    return monthly_totals


def compute_annual_total(monthly_values) -> float:
    return sum(to_number(v) for v in monthly_values)


def compute_monthly_average(annual_total: float) -> float:
    return annual_total / 12


def compute_budget_summary(sections: list[Section]) -> dict[str, list[float]]:
    """Returns income, expense, savings and remaining totals, each a list of 12 monthly values."""
    income_totals = [0.0] * MONTH_COUNT
    expense_totals = [0.0] * MONTH_COUNT
    savings_totals = [0.0] * MONTH_COUNT

    for section in sections:
        if section.type == "income":
            target = income_totals
        elif section.type == "expense":
            target = expense_totals
        elif section.type == "savings":
            target = savings_totals
        else:
            continue
        totals = compute_section_totals(section, sections)
        for m in range(MONTH_COUNT):
            target[m] += totals[m]

    remaining_totals = [inc - exp for inc, exp in zip(income_totals, expense_totals)]
    return {
        "income": income_totals,
        "expenses": expense_totals,
        "savings": savings_totals,
        "remaining": remaining_totals,
    }


def compute_running_balance(sections: list[Section]) -> list[float]:
    """running[0] = remaining[0]; running[m] = running[m-1] + remaining[m]"""
    remaining = compute_budget_summary(sections)["remaining"]
    running = [0.0] * MONTH_COUNT
    running[0] = remaining[0]
    for m in range(1, MONTH_COUNT):
        running[m] = running[m - 1] + remaining[m]
    return running


def budget_to_frame(budget: Budget) -> pd.DataFrame:
    """One row per item with effective monthly values plus Total and Avg columns."""
    records = []
    for section in budget.sections:
        if section.type == "summary":
            continue
        for item in section.items:
            values = effective_monthly_values(item, section, budget.sections)
            record = {"Section": section.name, "Item": item.name}
            record.update(dict(zip(MONTHS, values)))
            record["Excluded"] = item.excluded
            record["Negative"] = item.negative
            record["Note"] = item.note
            records.append(record)

    columns = ["Section", "Item"] + MONTHS + ["Excluded", "Negative", "Note"]
    df = pd.DataFrame(records, columns=columns)
    df["Total"] = df[MONTHS].sum(axis=1).astype(float)
    df["Avg"] = df["Total"] / 12
    return df


def summary_frame(budget: Budget) -> pd.DataFrame:
    """Income / Expenses / Savings / Remaining / Running balance by month."""
    summary = compute_budget_summary(budget.sections)
    rows = {
        "Income": summary["income"],
        "Expenses": summary["expenses"],
        "Savings": summary["savings"],
        "Remaining": summary["remaining"],
        "Running balance": compute_running_balance(budget.sections),
    }
    df = pd.DataFrame.from_dict(rows, orient="index", columns=MONTHS)
    df["Total"] = df[MONTHS].sum(axis=1)
    # Cumulative row has no meaningful annual total
    df.loc["Running balance", "Total"] = float("nan")
    return df
