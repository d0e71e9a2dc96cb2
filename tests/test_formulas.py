import pytest

from budgethelper.config import COL_META, COLUMN_WIDTHS, MONTHS
from budgethelper.formulas import (
    build_format_requests,
    col_letter,
    generate_sheets_payload,
    hex_to_rgb,
)
from budgethelper.layout import build_row_layout
from budgethelper.markers import SectionMarker, TotalMarker, decode_marker
from budgethelper.models import Budget, Item, Section


def values_by_row(payload):
    return {int(vr["range"].split(":")[0][1:]): vr["values"][0] for vr in payload.value_ranges}


@pytest.fixture
def special_budget():
    return Budget(sections=[
        Section(id="exp", name="Car", type="expense", items=[
            Item(id="fuel", name="Fuel", monthly_values=[100] * 12),
            Item(id="refund", name="Refund", negative=True, monthly_values=[20] * 12),
            Item(id="old", name="Old loan", excluded=True, monthly_values=[500] * 12),
        ]),
    ])


def test_every_row_has_seventeen_cells(savings_budget):
    payload = generate_sheets_payload(savings_budget)
    assert all(len(vr["values"][0]) == COL_META + 1 for vr in payload.value_ranges)


def test_header_row():
    header = values_by_row(generate_sheets_payload(Budget()))[1]
    assert header[1:13] == MONTHS
    assert header[13:16] == ["Total", "Gns./måned", "Noter"]


def test_salary_scenario_formulas(salary_budget):
    rows = values_by_row(generate_sheets_payload(salary_budget))

    assert rows[3][:2] == ["Salary", 50000.0]
    assert rows[3][13] == "=SUM(B3:M3)"
    assert rows[3][14] == "=N3/12"
    assert rows[8][15] == "Groceries only"

    assert rows[4][0] == "Total income"
    assert rows[4][1] == "=SUM(B3:B3)"
    assert decode_marker(rows[4][16]) == TotalMarker("inc")
    assert rows[9][1] == "=SUM(B7:B8)"

    assert rows[13][0] == "Tilbage"
    assert rows[13][1] == "=(B4)-(B9)"
    assert rows[13][12] == "=(M4)-(M9)"

    assert rows[14][0] == "Løbende saldo"
    assert rows[14][1] == "=B13"
    assert rows[14][2] == "=B14+C13"
    assert rows[14][13] == ""
    assert rows[14][14] == ""

    assert rows[11][1] == "=B9"
    assert rows[12][1] == 0


def test_section_header_carries_marker(salary_budget):
    rows = values_by_row(generate_sheets_payload(salary_budget))
    assert rows[2][0] == "Income"
    assert decode_marker(rows[2][16]) == SectionMarker("inc", "income")
    assert rows[2][1:16] == [""] * 15


def test_savings_percentage_is_a_formula(savings_budget):
    rows = values_by_row(generate_sheets_payload(savings_budget))

    # Auto-row mirrors Rent (row 7)
    assert rows[11][0] == "← Rent"
    assert rows[11][1] == "=B7"

    pct_row = rows[12]
    for m in range(12):
        letter = col_letter(m + 1)
        assert pct_row[m + 1] == f"={letter}11*0.1"
        assert pct_row[m + 1] != 100

    assert rows[14][1] == "=B11+SUM(B12:B13)"


def test_excluded_and_negative_items(special_budget):
    rows = values_by_row(generate_sheets_payload(special_budget))

    # Fuel row 3, Refund row 4, Old loan row 5, total row 6
    assert rows[6][1] == "=B3+-B4"
    for cell in rows[6][1:13]:
        assert "5" not in cell


def test_all_items_excluded_total_is_zero():
    budget = Budget(sections=[Section(id="exp", name="X", type="expense", items=[
        Item(id="a", name="A", excluded=True, monthly_values=[1] * 12),
    ])])
    rows = values_by_row(generate_sheets_payload(budget))
    assert rows[4][1:13] == [0] * 12


def test_empty_section_total_is_zero():
    budget = Budget(sections=[Section(id="exp", name="X", type="expense")])
    rows = values_by_row(generate_sheets_payload(budget))
    assert rows[3][1:13] == [0] * 12


def test_auto_row_only_total():
    budget = Budget(sections=[
        Section(id="exp", name="Housing", type="expense", items=[Item(id="rent", name="Rent", savings_link="sav")]),
        Section(id="sav", name="Buffer", type="savings"),
    ])
    rows = values_by_row(generate_sheets_payload(budget))
    # header 6, auto 7, total 8
    assert rows[8][1] == "=B7"


def test_auto_row_with_special_items():
    budget = Budget(sections=[
        Section(id="exp", name="Housing", type="expense", items=[Item(id="rent", name="Rent", savings_link="sav")]),
        Section(id="sav", name="Buffer", type="savings", items=[
            Item(id="a", name="Withdrawal", negative=True),
            Item(id="b", name="Paused", excluded=True),
        ]),
    ])
    rows = values_by_row(generate_sheets_payload(budget))
    # header 6, auto 7, items 8-9, total 10
    assert rows[10][1] == "=B7+-B8"


def test_remaining_one_sided_budget_splices_zero():
    budget = Budget(sections=[Section(id="exp", name="Bills", type="expense", items=[Item(id="a", name="A")]),
                              Section(id="sum", name="Summary", type="summary")])
    rows = values_by_row(generate_sheets_payload(budget))
    remaining = next(r for r in rows.values() if r[0] == "Tilbage")
    assert remaining[1] == "=(0)-(B4)"


def test_remaining_without_totals_is_zero():
    budget = Budget(sections=[Section(id="sum", name="Summary", type="summary")])
    rows = values_by_row(generate_sheets_payload(budget))
    assert rows[4][0] == "Tilbage"
    assert rows[4][1:13] == [0] * 12


def test_non_numeric_item_values_become_zero():
    item = Item(id="a", name="A")
    item.monthly_values[0] = "oops"
    budget = Budget(sections=[Section(id="exp", name="X", type="expense", items=[item])])
    rows = values_by_row(generate_sheets_payload(budget))
    assert rows[3][1] == 0.0


def test_format_requests_start_with_reset(salary_budget):
    layout = build_row_layout(salary_budget)
    requests = build_format_requests(layout, sheet_id=42)

    reset = requests[0]["repeatCell"]
    assert reset["cell"]["userEnteredFormat"]["backgroundColor"] == {"red": 1, "green": 1, "blue": 1}
    assert reset["range"]["sheetId"] == 42
    assert reset["range"]["endRowIndex"] == layout.last_row


def test_format_requests_bold_and_colors(salary_budget):
    requests = build_format_requests(build_row_layout(salary_budget))
    repeat = [r["repeatCell"] for r in requests[1:] if "repeatCell" in r]

    bold_rows = {r["range"]["startRowIndex"] + 1 for r in repeat if r["fields"] == "userEnteredFormat.textFormat.bold"}
    assert bold_rows == {1, 2, 4, 6, 9, 11, 12, 13, 14}

    colored = {
        r["range"]["startRowIndex"] + 1: r["cell"]["userEnteredFormat"]["backgroundColor"]
        for r in repeat if r["fields"] == "userEnteredFormat.backgroundColor"
    }
    assert colored[2] == {"red": 0x2d / 255, "green": 0x80 / 255, "blue": 0x50 / 255}
    assert 3 not in colored
    assert {11, 12, 13, 14} <= set(colored)


def test_format_requests_layout_properties(salary_budget):
    requests = build_format_requests(build_row_layout(salary_budget))
    dimension = [r["updateDimensionProperties"] for r in requests if "updateDimensionProperties" in r]

    widths = [d["properties"]["pixelSize"] for d in dimension if "pixelSize" in d["properties"]]
    assert widths == COLUMN_WIDTHS
    assert any(d["properties"].get("hiddenByUser") and d["range"]["startIndex"] == COL_META for d in dimension)

    frozen = requests[-1]["updateSheetProperties"]["properties"]["gridProperties"]
    assert frozen == {"frozenRowCount": 1, "frozenColumnCount": 1}


def test_invalid_section_color_is_skipped():
    budget = Budget(sections=[Section(id="exp", name="X", type="expense", color="not-a-color")])
    requests = build_format_requests(build_row_layout(budget))
    assert not any(
        r.get("repeatCell", {}).get("fields") == "userEnteredFormat.backgroundColor" for r in requests
    )


def test_hex_to_rgb():
    assert hex_to_rgb("#2d8050") == (45, 128, 80)
    assert hex_to_rgb("#fff") == (255, 255, 255)
    assert hex_to_rgb("#12345") is None
    assert hex_to_rgb(None) is None


def test_payload_to_dict(salary_budget):
    data = generate_sheets_payload(salary_budget).to_dict()
    assert set(data) == {"valueRanges", "formatRequests"}
    assert data["valueRanges"][0]["range"] == "A1:Q1"
