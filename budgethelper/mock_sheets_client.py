import gspread
from rich.console import Console

from budgethelper.config import COL_META

console = Console()

MOCK_SHEET_TITLE = "Budget"

# Spreadsheets live for the lifetime of the process so a push can be pulled back
_SPREADSHEETS: dict[str, "MockSpreadsheet"] = {}


def _hex_from_rgb(color: dict) -> str:
    channels = [round(float(color.get(key, 0)) * 255) for key in ("red", "green", "blue")]
    return "#" + "".join(f"{c:02x}" for c in channels)


def _rgb_from_hex(hex_color: str) -> dict:
    value = hex_color.lstrip("#")
    return {
        "red": int(value[0:2], 16) / 255,
        "green": int(value[2:4], 16) / 255,
        "blue": int(value[4:6], 16) / 255,
    }


def _start_cell(a1_range: str) -> tuple[int, int]:
    """'Budget'!B3:Q3 -> (3, 2)"""
    cells = a1_range.rpartition("!")[2]
    first = cells.split(":")[0]
    if first.isalpha():
        # Whole-column range such as A:Q
        return 1, gspread.utils.a1_to_rowcol(f"{first}1")[1]
    return gspread.utils.a1_to_rowcol(first)


class MockSpreadsheet:
    def __init__(self, key, title="Mock budget"):
        self.id = key
        self.title = title
        self.rows: list[list] = []
        self.colors: dict[int, str] = {}
        self.requests: list[dict] = []

    def fetch_sheet_metadata(self, params=None):
        params = params or {}
        if params.get("includeGridData"):
            row_count = max([len(self.rows)] + list(self.colors))
            row_data = []
            for row_number in range(1, row_count + 1):
                color = self.colors.get(row_number, "#ffffff")
                row_data.append({"values": [{"effectiveFormat": {"backgroundColor": _rgb_from_hex(color)}}]})
            return {"sheets": [{"data": [{"startRow": 0, "rowData": row_data}]}]}
        return {
            "spreadsheetId": self.id,
            "properties": {"title": self.title},
            "sheets": [{"properties": {"sheetId": 0, "title": MOCK_SHEET_TITLE}}],
        }

    def values_clear(self, range):
        console.print(f"[bold cyan][Mock][/bold cyan] Cleared {range}")
        self.rows = [[] for _ in self.rows]
        return {"spreadsheetId": self.id, "clearedRange": range}

    def values_batch_update(self, body):
        data = body.get("data", [])
        for value_range in data:
            row, col = _start_cell(value_range["range"])
            for offset, values in enumerate(value_range["values"]):
                self._write_row(row + offset, col, values)
        console.print(f"[bold cyan][Mock][/bold cyan] Batch Update executed with {len(data)} updates.")
        return {"spreadsheetId": self.id, "totalUpdatedRows": len(data)}

    def _write_row(self, row_number, col, values):
        while len(self.rows) < row_number:
            self.rows.append([])
        row = self.rows[row_number - 1]
        needed = col - 1 + len(values)
        row.extend([""] * (needed - len(row)))
        row[col - 1:needed] = values

    def batch_update(self, body):
        requests = body.get("requests", [])
        self.requests.extend(requests)
        for request in requests:
            repeat = request.get("repeatCell")
            if not repeat:
                continue
            background = repeat.get("cell", {}).get("userEnteredFormat", {}).get("backgroundColor")
            if background is None:
                continue
            grid = repeat.get("range", {})
            hex_color = _hex_from_rgb(background)
            for row_index in range(grid.get("startRowIndex", 0), grid.get("endRowIndex", 0)):
                if hex_color == "#ffffff":
                    self.colors.pop(row_index + 1, None)
                else:
                    self.colors[row_index + 1] = hex_color
        console.print(f"[bold cyan][Mock][/bold cyan] Applied {len(requests)} formatting requests.")
        return {"spreadsheetId": self.id, "replies": [{} for _ in requests]}

    def values_get(self, range, params=None):
        # Like the API: trailing empty cells and rows are dropped
        values = []
        for row in self.rows:
            trimmed = list(row[:COL_META + 1])
            while trimmed and trimmed[-1] in ("", None):
                trimmed.pop()
            values.append(trimmed)
        while values and not values[-1]:
            values.pop()
        return {"range": range, "majorDimension": "ROWS", "values": values}


class MockClient:
    def __init__(self, spreadsheets):
        self.spreadsheets = spreadsheets

    def open_by_key(self, key):
        if key not in self.spreadsheets:
            self.spreadsheets[key] = MockSpreadsheet(key)
        return self.spreadsheets[key]


def reset_mock_spreadsheets():
    _SPREADSHEETS.clear()


def get_client(credentials_path: str):
    return MockClient(_SPREADSHEETS)
