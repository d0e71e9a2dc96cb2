"""Budget templates: the starter budget and wizard-style generation from section templates."""

import datetime

from budgethelper.models import Budget, Item, Section

SECTION_TEMPLATES = {
    "income": {
        "name": "Income",
        "color": "#2d8050",
        "total_label": "Total income",
        "type": "income",
        "items": ["Salary"],
    },
    "fixed": {
        "name": "Fixed expenses",
        "color": "#b37520",
        "total_label": "Total fixed expenses",
        "type": "expense",
        "items": ["Rent / Mortgage"],
    },
    "variable": {
        "name": "Variable expenses",
        "color": "#b03020",
        "total_label": "Total variable expenses",
        "type": "expense",
        "items": ["Groceries"],
    },
    "savings": {
        "name": "Savings",
        "color": "#2560a0",
        "total_label": "Total savings",
        "type": "savings",
        "items": ["Emergency fund"],
    },
}

SUMMARY_COLOR = "#2560a0"


def _item(name: str, values) -> Item:
    monthly = list(values) if isinstance(values, (list, tuple)) else [values] * 12
    return Item(name=name, monthly_values=monthly)


def _summary_section(color: str = SUMMARY_COLOR) -> Section:
    return Section(name="Summary", type="summary", color=color, show_total=False, total_label="")


def generate_budget(
    name: str,
    year: int,
    selected_sections: list[str],
    selected_items: dict[str, list[str]] | None = None,
    income_items: list[dict] | None = None,
) -> Budget:
    """
    Build a new budget from section templates.

    selected_items overrides the template item names per section key;
    income_items ({"name", "monthly"}) replaces the income section's items.
    A summary section is always appended.
    """
    sections = []
    for key in selected_sections:
        template = SECTION_TEMPLATES.get(key)
        if template is None:
            raise ValueError(f"Unknown section template: {key}. Choose from {', '.join(SECTION_TEMPLATES)}")
        names = (selected_items or {}).get(key) or template["items"]
        sections.append(Section(
            name=template["name"],
            type=template["type"],
            color=template["color"],
            show_total=True,
            total_label=template["total_label"],
            items=[_item(item_name, 0) for item_name in names],
        ))

    if income_items:
        income_section = next((s for s in sections if s.type == "income"), None)
        if income_section is not None:
            income_section.items = [
                _item(entry.get("name", ""), entry.get("monthly", 0)) for entry in income_items
            ]

    sections.append(_summary_section())

    return Budget(
        title=name.strip() or f"Budget {year}",
        year=year,
        linked_sheet_id=None,
        sections=sections,
    )


def create_default_budget(year: int | None = None) -> Budget:
    """Starter budget with typical income, fixed and variable expense lines."""
    year = year or datetime.date.today().year
    return Budget(
        title=f"Budget {year}",
        year=year,
        sections=[
            Section(
                name="Income", type="income", color="#0f2e1a", total_label="Total income",
                items=[
                    _item("Gross salary", 73500),
                    _item("Bonus", [0] * 11 + [20000]),
                    _item("Net income", 43031),
                    _item("Stock dividends", 0),
                    _item("Other", 0),
                ],
            ),
            Section(
                name="Fixed expenses", type="expense", color="#2e1a06", total_label="Total fixed expenses",
                items=[
                    _item("Mortgage", 28331.42),
                    _item("Property tax", 3012.08),
                    _item("Home insurance", 867),
                    _item("Electricity", 1200),
                    _item("Heating", 1500),
                    _item("Water", 300),
                    _item("Internet", 299),
                    _item("Phone", 149),
                    _item("Streaming (Netflix, Spotify…)", 200),
                    _item("Car insurance", 850),
                    _item("Fuel", 1200),
                    _item("Memberships / clubs", 300),
                ],
            ),
            Section(
                name="Variable expenses", type="expense", color="#2e0a15", total_label="Total variable expenses",
                items=[
                    _item("Groceries & household", 5000),
                    _item("Restaurants / takeaway", 1000),
                    _item("Clothing & shoes", 500),
                    _item("Leisure & hobbies", 500),
                    _item("Gifts", 500),
                    _item("Health & pharmacy", 300),
                    _item("Travel & holidays", [0] * 5 + [10000] + [0] * 6),
                    _item("Unexpected expenses", 500),
                ],
            ),
            _summary_section("#0a1828"),
        ],
    )
