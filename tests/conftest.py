import pytest
from gspread.utils import a1_to_rowcol

from budgethelper.config import COL_META
from budgethelper.formulas import generate_sheets_payload
from budgethelper.models import Budget, Item, Section


def rows_from_payload(value_ranges) -> list[list]:
    """What a values.get of A:Q would return for freshly written values (formulas left as text)."""
    rows: list[list] = []
    for value_range in value_ranges:
        row_number, _ = a1_to_rowcol(value_range["range"].rpartition("!")[2].split(":")[0])
        while len(rows) < row_number:
            rows.append([])
        rows[row_number - 1] = list(value_range["values"][0][:COL_META + 1])
    return rows


@pytest.fixture
def sheet_rows_for():
    def _sheet_rows_for(budget: Budget) -> list[list]:
        return rows_from_payload(generate_sheets_payload(budget).value_ranges)
    return _sheet_rows_for


@pytest.fixture
def salary_budget():
    """Salary 50000, Rent 15000, Food 5000 per month, plus a summary section."""
    return Budget(
        id="b1",
        title="Household",
        year=2025,
        sections=[
            Section(id="inc", name="Income", type="income", color="#2d8050", total_label="Total income",
                    items=[Item(id="salary", name="Salary", monthly_values=[50000] * 12)]),
            Section(id="exp", name="Expenses", type="expense", color="#b03020", total_label="Total expenses (household)",
                    items=[
                        Item(id="rent", name="Rent", monthly_values=[15000] * 12),
                        Item(id="food", name="Food", monthly_values=[5000] * 12, note="Groceries only"),
                    ]),
            Section(id="sum", name="Summary", type="summary", color="#2560a0", show_total=False),
        ],
    )


@pytest.fixture
def savings_budget():
    """Rent 1000/month linked to a savings section holding a 10% item and a plain item."""
    return Budget(
        id="b2",
        title="Savings",
        year=2025,
        sections=[
            Section(id="inc", name="Income", type="income", total_label="Total income",
                    items=[Item(id="salary", name="Salary", monthly_values=[3000] * 12)]),
            Section(id="exp", name="Housing", type="expense", total_label="Total housing",
                    items=[Item(id="rent", name="Rent", monthly_values=[1000] * 12, savings_link="sav")]),
            Section(id="sav", name="Buffer", type="savings", color="#2560a0", total_label="Total buffer",
                    items=[
                        Item(id="pct", name="Ten percent", savings_percentage=10, monthly_values=[0] * 12),
                        Item(id="extra", name="Extra", monthly_values=[50] * 12),
                    ]),
            Section(id="sum", name="Summary", type="summary", show_total=False),
        ],
    )
