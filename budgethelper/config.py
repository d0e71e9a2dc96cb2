# Configuration for BudgetHelper

import json
import os
from pathlib import Path
from rich.console import Console

from budgethelper.exceptions import ConfigError

console = Console(stderr=True)

ROOT_DIR = Path(__file__).parent.parent


def _read_json(path: Path) -> dict:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path.name} is not valid JSON: {e}") from e


def load_sheet_config(config_dir: Path | None = None) -> dict:
    """Loads spreadsheet ID and credentials path from config/sheet_config.json or falls back to example."""
    config_dir = config_dir or ROOT_DIR / "config"
    config_path = config_dir / "sheet_config.json"
    example_path = config_dir / "sheet_config.example.json"

    config = {}
    if config_path.exists():
        config = _read_json(config_path)
    elif example_path.exists():
        console.print("[yellow]Warning: config/sheet_config.json not found. Using example config.[/yellow]")
        config = _read_json(example_path)
    else:
        # Fallback default (push/pull will need --sheet, but imports keep working)
        config = {"spreadsheet_id": "", "credentials_path": "resources/credentials.json"}

    # Environment wins over the file
    if os.environ.get("BUDGETHELPER_SPREADSHEET_ID"):
        config["spreadsheet_id"] = os.environ["BUDGETHELPER_SPREADSHEET_ID"]
    if os.environ.get("BUDGETHELPER_CREDENTIALS"):
        config["credentials_path"] = os.environ["BUDGETHELPER_CREDENTIALS"]

    return config


def use_mock() -> bool:
    """True when BUDGETHELPER_USE_MOCK asks for the in-memory sheets client."""
    return os.environ.get("BUDGETHELPER_USE_MOCK", "").lower() in ("1", "true", "yes")


_sheet_config = load_sheet_config()

SPREADSHEET_ID = _sheet_config.get("spreadsheet_id", "")
CREDENTIALS_PATH = _sheet_config.get("credentials_path", "resources/credentials.json")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Grid columns (0-based). A=Label, B-M=Jan-Dec, N=Annual, O=Avg, P=Notes, Q=hidden metadata
COL_LABEL = 0
COL_JAN = 1
COL_DEC = 12
COL_ANNUAL = 13
COL_AVG = 14
COL_NOTES = 15
COL_META = 16
ROW_WIDTH = COL_META + 1

# Range cleared/read on every sync
SHEET_RANGE = "A:Q"

SECTION_MARKER_PREFIX = "__BH_SECTION__:"
TOTAL_MARKER_PREFIX = "__BH_TOTAL__:"
AUTO_ROW_PREFIX = "← "

MONTHS = [
    "Januar", "Februar", "Marts", "April", "Maj", "Juni",
    "Juli", "August", "September", "Oktober", "November", "December",
]
HEADER_TOTAL_LABEL = "Total"
HEADER_AVG_LABEL = "Gns./måned"
HEADER_NOTES_LABEL = "Noter"

REMAINING_LABEL = "Tilbage"
RUNNING_BALANCE_LABEL = "Løbende saldo"
EXPENSE_GRAND_TOTAL_LABEL = "Total expenses"
SAVINGS_GRAND_TOTAL_LABEL = "Total savings"

# Labels that can never be an item row
BOUNDARY_LABELS = {
    REMAINING_LABEL,
    RUNNING_BALANCE_LABEL,
    EXPENSE_GRAND_TOTAL_LABEL,
    SAVINGS_GRAND_TOTAL_LABEL,
    HEADER_TOTAL_LABEL,
    HEADER_AVG_LABEL,
    HEADER_NOTES_LABEL,
}

# Prefixes of a section's own total label ("I alt" is the Danish variant)
TOTAL_LABEL_PREFIXES = ("Total", "I alt")

VALUE_TOLERANCE = 0.001

NUMBER_FORMAT_PATTERN = "#,##0.00"
COLUMN_WIDTHS = [220] + [90] * 12 + [110, 110, 200, 40]
