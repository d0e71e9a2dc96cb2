import json
import pytest
from typer.testing import CliRunner

from main import app
from budgethelper import mock_sheets_client
from budgethelper.templates import create_default_budget

runner = CliRunner()


@pytest.fixture
def budget_file(tmp_path):
    """Writes the default budget as a camelCase JSON document."""
    path = tmp_path / "budget.json"
    path.write_text(json.dumps(create_default_budget(2025).to_document()), encoding="utf-8")
    return path


@pytest.fixture
def mock_sheets(monkeypatch):
    monkeypatch.setenv("BUDGETHELPER_USE_MOCK", "true")
    mock_sheets_client.reset_mock_spreadsheets()
    yield mock_sheets_client
    mock_sheets_client.reset_mock_spreadsheets()


def test_show(budget_file):
    result = runner.invoke(app, ["show", str(budget_file)])

    assert result.exit_code == 0
    assert "Budget 2025" in result.stdout
    assert "Summary" in result.stdout


def test_show_missing_file(tmp_path):
    result = runner.invoke(app, ["show", str(tmp_path / "nope.json")])

    assert result.exit_code == 1
    assert "File not found" in result.stdout


def test_show_invalid_document(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["show", str(path)])

    assert result.exit_code == 1
    assert "Invalid budget document" in result.stdout


def test_layout(budget_file):
    result = runner.invoke(app, ["layout", str(budget_file)])

    assert result.exit_code == 0
    assert "section-header" in result.stdout
    assert "running-balance" in result.stdout


def test_payload_is_json(budget_file):
    result = runner.invoke(app, ["payload", str(budget_file), "--sheet-id", "5"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["valueRanges"][0]["range"] == "A1:Q1"
    assert data["formatRequests"][0]["repeatCell"]["range"]["sheetId"] == 5


def test_new_budget(tmp_path):
    output = tmp_path / "new.json"

    result = runner.invoke(app, ["new", str(output), "--title", "Fresh", "--year", "2026",
                                 "--section", "income", "--section", "savings"])

    assert result.exit_code == 0
    doc = json.loads(output.read_text(encoding="utf-8"))
    assert doc["title"] == "Fresh"
    assert [s["type"] for s in doc["sections"]] == ["income", "savings", "summary"]
    assert "linkedSheetId" in doc


def test_new_refuses_to_overwrite(budget_file):
    result = runner.invoke(app, ["new", str(budget_file), "--year", "2026"])

    assert result.exit_code == 1
    assert "Refusing to overwrite" in result.stdout


def test_new_unknown_section(tmp_path):
    result = runner.invoke(app, ["new", str(tmp_path / "x.json"), "--year", "2026", "--section", "crypto"])

    assert result.exit_code == 1
    assert "Unknown section template" in result.stdout


def test_push_dry_run_does_not_touch_file(budget_file):
    before = budget_file.read_text(encoding="utf-8")

    result = runner.invoke(app, ["push", str(budget_file), "--dry-run"])

    assert result.exit_code == 0
    assert "DRY RUN" in result.stdout
    assert budget_file.read_text(encoding="utf-8") == before


def test_push_without_sheet_id(budget_file, monkeypatch):
    monkeypatch.setattr("main.SPREADSHEET_ID", "")

    result = runner.invoke(app, ["push", str(budget_file)])

    assert result.exit_code == 1
    assert "No spreadsheet id" in result.stdout


def test_push_and_pull_round_trip(budget_file, mock_sheets):
    result = runner.invoke(app, ["push", str(budget_file), "--sheet", "cli-sheet"])
    assert result.exit_code == 0
    assert "Push Complete!" in result.stdout
    assert json.loads(budget_file.read_text(encoding="utf-8"))["linkedSheetId"] == "cli-sheet"

    # Pull falls back to the linked sheet id
    result = runner.invoke(app, ["pull", str(budget_file)])
    assert result.exit_code == 0
    assert "No changes detected" in result.stdout


def test_pull_apply(budget_file, mock_sheets):
    runner.invoke(app, ["push", str(budget_file), "--sheet", "cli-sheet"])
    spreadsheet = mock_sheets.get_client("unused").open_by_key("cli-sheet")
    # Row 3 is the first income item ("Gross salary")
    spreadsheet.rows[2][1] = 80000

    result = runner.invoke(app, ["pull", str(budget_file)])
    assert result.exit_code == 0
    assert "--apply" in result.stdout
    doc = json.loads(budget_file.read_text(encoding="utf-8"))
    assert doc["sections"][0]["items"][0]["monthlyValues"][0] == 73500

    result = runner.invoke(app, ["pull", str(budget_file), "--apply"])
    assert result.exit_code == 0
    assert "Applied 1 changes" in result.stdout
    doc = json.loads(budget_file.read_text(encoding="utf-8"))
    assert doc["sections"][0]["items"][0]["monthlyValues"][0] == 80000
