import gspread
from dataclasses import dataclass
from google.oauth2.service_account import Credentials
from rich.console import Console

from budgethelper.changes import summarize_changes
from budgethelper.config import COL_LABEL, CREDENTIALS_PATH, SCOPES, SHEET_RANGE, use_mock
from budgethelper.exceptions import ConfigError, SheetSyncError
from budgethelper.formulas import generate_sheets_payload
from budgethelper.models import Budget, ChangeSummary, ParseResult
from budgethelper.sheet_parser import parse_sheet_data

console = Console()

WHITE = "#ffffff"


@dataclass
class SheetInfo:
    spreadsheet_id: str
    title: str
    sheet_id: int
    sheet_title: str

    @property
    def url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}/edit"


@dataclass
class PushResult:
    info: SheetInfo
    rows_written: int
    budget: Budget


@dataclass
class PullResult:
    info: SheetInfo
    parse_result: ParseResult
    summary: ChangeSummary


def get_client(credentials_path: str):
    """Authenticates with Google Sheets (or returns the in-memory client when BUDGETHELPER_USE_MOCK is set)."""
    if use_mock():
        from budgethelper.mock_sheets_client import get_client as get_mock_client
        return get_mock_client(credentials_path)
    try:
        creds = Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
    except FileNotFoundError as e:
        raise ConfigError(f"Credentials file not found: {credentials_path}") from e
    client = gspread.authorize(creds)
    return client


def sheet_range(sheet_title: str, a1_range: str) -> str:
    """Prefix an A1 range with a quoted sheet title: 'My budget'!A1:Q1"""
    escaped = sheet_title.replace("'", "''")
    return f"'{escaped}'!{a1_range}"


def get_spreadsheet_info(spreadsheet) -> SheetInfo:
    """Spreadsheet title plus id/title of its first sheet (the one we write to)."""
    metadata = spreadsheet.fetch_sheet_metadata(
        params={"fields": "spreadsheetId,properties.title,sheets.properties"}
    )
    sheets = metadata.get("sheets") or [{}]
    first = sheets[0].get("properties", {})
    return SheetInfo(
        spreadsheet_id=metadata.get("spreadsheetId", spreadsheet.id),
        title=metadata.get("properties", {}).get("title", ""),
        sheet_id=first.get("sheetId", 0),
        sheet_title=first.get("title", "Sheet1"),
    )


def read_sheet_rows(spreadsheet, info: SheetInfo) -> list[list]:
    """All values in A:Q, unformatted (numbers as numbers). Trailing empty rows/cells are omitted by the API."""
    response = spreadsheet.values_get(
        sheet_range(info.sheet_title, SHEET_RANGE),
        params={"valueRenderOption": "UNFORMATTED_VALUE"},
    )
    return response.get("values", [])


def _rgb_to_hex(color: dict) -> str:
    # The API omits zero components
    channels = [round(float(color.get(key, 0)) * 255) for key in ("red", "green", "blue")]
    return "#" + "".join(f"{max(0, min(255, c)):02x}" for c in channels)


def get_row_background_colors(spreadsheet, info: SheetInfo) -> dict[int, str]:
    """Background colour of column A per sheet row (1-based), skipping white/unset cells."""
    metadata = spreadsheet.fetch_sheet_metadata(params={
        "includeGridData": "true",
        "ranges": sheet_range(info.sheet_title, "A:A"),
        "fields": "sheets(data(startRow,rowData(values(effectiveFormat(backgroundColor)))))",
    })
    colors = {}
    for sheet in metadata.get("sheets", [])[:1]:
        for grid in sheet.get("data", []):
            start_row = grid.get("startRow", 0)
            for offset, row_data in enumerate(grid.get("rowData", [])):
                values = row_data.get("values") or []
                if len(values) <= COL_LABEL:
                    continue
                background = values[COL_LABEL].get("effectiveFormat", {}).get("backgroundColor")
                if not background:
                    continue
                hex_color = _rgb_to_hex(background)
                if hex_color != WHITE:
                    colors[start_row + offset + 1] = hex_color
    return colors


def push_budget(budget: Budget, spreadsheet_id: str, credentials_path: str = CREDENTIALS_PATH, client=None) -> PushResult:
    """
    Writes the budget to the first sheet of the spreadsheet.

    Order matters: info -> clear A:Q -> values (USER_ENTERED so formulas are
    interpreted) -> formatting.
    """
    client = client or get_client(credentials_path)
    try:
        spreadsheet = client.open_by_key(spreadsheet_id)

        console.print("[cyan]Fetching spreadsheet info…[/cyan]")
        info = get_spreadsheet_info(spreadsheet)

        console.print("[cyan]Clearing existing data…[/cyan]")
        spreadsheet.values_clear(sheet_range(info.sheet_title, SHEET_RANGE))

        payload = generate_sheets_payload(budget, info.sheet_id)

        console.print(f"[cyan]Writing {len(payload.value_ranges)} rows of values and formulas…[/cyan]")
        spreadsheet.values_batch_update({
            "valueInputOption": "USER_ENTERED",
            "data": [
                {"range": sheet_range(info.sheet_title, vr["range"]), "values": vr["values"]}
                for vr in payload.value_ranges
            ],
        })

        console.print("[cyan]Applying formatting…[/cyan]")
        spreadsheet.batch_update({"requests": payload.format_requests})
    except gspread.exceptions.GSpreadException as e:
        raise SheetSyncError(f"Failed to push budget to sheet {spreadsheet_id}: {e}", spreadsheet_id) from e

    console.print(f"[bold green]Pushed '{budget.title}' to {info.url}[/bold green]")
    linked = budget.model_copy(update={"linked_sheet_id": spreadsheet_id})
    return PushResult(info=info, rows_written=len(payload.value_ranges), budget=linked)


def pull_budget(budget: Budget, spreadsheet_id: str, credentials_path: str = CREDENTIALS_PATH, client=None) -> PullResult:
    """
    Reads the sheet back and diffs it against the local budget.

    Nothing is applied: the caller decides whether to replace its budget with
    result.parse_result.updated_budget.
    """
    client = client or get_client(credentials_path)
    try:
        spreadsheet = client.open_by_key(spreadsheet_id)

        console.print("[cyan]Fetching spreadsheet info…[/cyan]")
        info = get_spreadsheet_info(spreadsheet)

        console.print("[cyan]Reading sheet data…[/cyan]")
        sheet_rows = read_sheet_rows(spreadsheet, info)
        row_colors = get_row_background_colors(spreadsheet, info)
    except gspread.exceptions.GSpreadException as e:
        raise SheetSyncError(f"Failed to read sheet {spreadsheet_id}: {e}", spreadsheet_id) from e

    console.print("[cyan]Comparing with local budget…[/cyan]")
    parse_result = parse_sheet_data(budget, sheet_rows, row_colors)
    if parse_result.strategy is None:
        console.print("[yellow]Sheet layout not recognised; budget left unchanged[/yellow]")
    else:
        console.print(f"[dim]Sheet parsed via {parse_result.strategy}[/dim]")
    summary = summarize_changes(parse_result.changes)
    return PullResult(info=info, parse_result=parse_result, summary=summary)
