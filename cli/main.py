import json
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
import pandas as pd
from typing import List, Optional
from pathlib import Path
from pydantic import ValidationError

from budgethelper.calculator import budget_to_frame, find_savings_link_conflicts, summary_frame
from budgethelper.config import CREDENTIALS_PATH, SPREADSHEET_ID
from budgethelper.exceptions import BudgetHelperError, ConfigError
from budgethelper.formulas import generate_sheets_payload
from budgethelper.layout import build_row_layout
from budgethelper.models import Budget
from budgethelper.templates import SECTION_TEMPLATES, generate_budget

app = typer.Typer(help="Keep a BudgetHelper budget in sync with Google Sheets.")
console = Console()


def load_budget(path: Path) -> Budget:
    if not path.exists():
        raise ConfigError(f"File not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return Budget.model_validate(json.load(f))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid budget document {path}: {e}") from e


def save_budget(budget: Budget, path: Path):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(budget.to_document(), f, indent=2, ensure_ascii=False)


def resolve_spreadsheet_id(sheet: Optional[str], budget: Budget) -> str:
    """--sheet, then the budget's linkedSheetId, then config."""
    spreadsheet_id = sheet or budget.linked_sheet_id or SPREADSHEET_ID
    if not spreadsheet_id:
        raise ConfigError("No spreadsheet id: pass --sheet, link the budget or set spreadsheet_id in config/sheet_config.json")
    return spreadsheet_id


def fail(error: Exception):
    console.print(f"[bold red]Error: {escape(str(error))}[/bold red]")
    raise typer.Exit(code=1)


def print_budget_table(budget: Budget):
    """Prints a rich table of every item's effective yearly figures."""
    df = budget_to_frame(budget)
    if df.empty:
        console.print("[yellow]No items to display.[/yellow]")
        return

    table = Table(title=f"{budget.title} ({budget.year})")
    table.add_column("Section", style="cyan", no_wrap=True)
    table.add_column("Item", style="white")
    table.add_column("Total", justify="right", style="bold magenta")
    table.add_column("Avg", justify="right")
    table.add_column("Flags", style="dim")
    table.add_column("Note", style="dim")

    for _, row in df.iterrows():
        flags = ", ".join(flag for flag in ("Excluded", "Negative") if row[flag])
        table.add_row(row["Section"], row["Item"], f"{row['Total']:.2f}", f"{row['Avg']:.2f}", flags, row["Note"])

    console.print(table)


def print_summary_table(budget: Budget):
    df = summary_frame(budget)
    table = Table(title="Summary")
    table.add_column("", style="cyan", no_wrap=True)
    for col in df.columns:
        table.add_column(col[:3] if col != "Total" else col, justify="right",
                         style="bold magenta" if col == "Total" else "white")
    for label, row in df.iterrows():
        values = ["" if pd.isna(v) else f"{v:.0f}" for v in row]
        table.add_row(label, *values)
    console.print(table)


def print_changes_table(summary):
    if summary.total_changes == 0:
        console.print("[green]No changes detected[/green]")
        return

    table = Table(title=summary.summary)
    table.add_column("Section", style="cyan")
    table.add_column("Item")
    table.add_column("Field")
    table.add_column("Old", justify="right", style="red")
    table.add_column("New", justify="right", style="green")
    for section_name, changes in summary.by_section.items():
        for change in changes:
            table.add_row(
                section_name,
                change.item_name or "",
                change.field,
                "" if change.old_value is None else str(change.old_value),
                "" if change.new_value is None else str(change.new_value),
            )
    console.print(table)


@app.command()
def show(budget_path: Path = typer.Argument(..., help="Budget JSON document")):
    """
    Show items and the live summary (what the sheet formulas will compute).
    """
    try:
        budget = load_budget(budget_path)
    except BudgetHelperError as e:
        fail(e)

    find_savings_link_conflicts(budget)
    print_budget_table(budget)
    print_summary_table(budget)


@app.command()
def layout(budget_path: Path = typer.Argument(..., help="Budget JSON document")):
    """Show which sheet row every section, item and total lands on."""
    try:
        budget = load_budget(budget_path)
    except BudgetHelperError as e:
        fail(e)

    row_layout = build_row_layout(budget)
    table = Table(title=f"Row layout ({row_layout.last_row} rows)")
    table.add_column("Row", justify="right", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Section")
    table.add_column("Item / detail")
    for entry in row_layout.row_layout:
        detail = ""
        if entry.item is not None:
            detail = entry.item.name
        elif entry.kind == "savings-auto":
            detail = f"← {entry.linked_item_name} (row {entry.linked_item_row})"
        elif entry.kind == "total" and entry.item_start_row is not None:
            detail = f"rows {entry.item_start_row}-{entry.item_end_row}"
        table.add_row(str(entry.row_index), entry.kind, entry.section.name if entry.section else "", detail)
    console.print(table)


@app.command()
def payload(
    budget_path: Path = typer.Argument(..., help="Budget JSON document"),
    sheet_id: int = typer.Option(0, "--sheet-id", help="Numeric id of the target sheet (tab)"),
):
    """Print the values and formatting requests that a push would send, as JSON."""
    try:
        budget = load_budget(budget_path)
    except BudgetHelperError as e:
        fail(e)

    # Plain print: output is meant to be piped
    typer.echo(json.dumps(generate_sheets_payload(budget, sheet_id).to_dict(), indent=2, ensure_ascii=False))


@app.command()
def new(
    output: Path = typer.Argument(..., help="Where to write the new budget"),
    title: str = typer.Option("", "--title", "-t", help="Budget title"),
    year: int = typer.Option(..., "--year", "-y", help="Budget year"),
    sections: List[str] = typer.Option(
        ["income", "fixed", "variable"], "--section", "-s",
        help=f"Section templates to include ({', '.join(SECTION_TEMPLATES)})",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Create a budget from section templates."""
    if output.exists() and not force:
        fail(ConfigError(f"Refusing to overwrite {output} (use --force)"))
    try:
        budget = generate_budget(title, year, sections)
    except ValueError as e:
        fail(e)

    save_budget(budget, output)
    console.print(f"[bold green]Created '{budget.title}' with {len(budget.sections)} sections: {output}[/bold green]")


@app.command()
def push(
    budget_path: Path = typer.Argument(..., help="Budget JSON document"),
    sheet: Optional[str] = typer.Option(None, "--sheet", help="Spreadsheet id. Defaults to the budget's linked sheet, then config"),
    credentials_path: str = typer.Option(CREDENTIALS_PATH, "--creds", help="Path to Google Cloud credentials"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be written without calling Google Sheets"),
):
    """
    Push the budget to Google Sheets (overwrites columns A:Q of the first sheet).
    """
    try:
        budget = load_budget(budget_path)
        find_savings_link_conflicts(budget)

        if dry_run:
            result = generate_sheets_payload(budget)
            console.print("[bold yellow]DRY RUN: Not updating Google Sheets[/bold yellow]")
            console.print(f"Would write {len(result.value_ranges)} rows and {len(result.format_requests)} formatting requests.")
            return

        from budgethelper.sheets_client import push_budget
        spreadsheet_id = resolve_spreadsheet_id(sheet, budget)
        result = push_budget(budget, spreadsheet_id, credentials_path)
    except BudgetHelperError as e:
        fail(e)

    save_budget(result.budget, budget_path)
    console.print(f"[bold green]Push Complete![/bold green] {result.rows_written} rows written.")


@app.command()
def pull(
    budget_path: Path = typer.Argument(..., help="Budget JSON document"),
    sheet: Optional[str] = typer.Option(None, "--sheet", help="Spreadsheet id. Defaults to the budget's linked sheet, then config"),
    credentials_path: str = typer.Option(CREDENTIALS_PATH, "--creds", help="Path to Google Cloud credentials"),
    apply: bool = typer.Option(False, "--apply", help="Write the sheet's version back into the budget file"),
):
    """
    Read the sheet back and show what changed. Nothing is written without --apply.
    """
    try:
        budget = load_budget(budget_path)
        from budgethelper.sheets_client import pull_budget
        spreadsheet_id = resolve_spreadsheet_id(sheet, budget)
        result = pull_budget(budget, spreadsheet_id, credentials_path)
    except BudgetHelperError as e:
        fail(e)

    print_changes_table(result.summary)

    if not apply:
        if result.summary.total_changes:
            console.print("[yellow]Run again with --apply to keep these changes.[/yellow]")
        return

    updated = result.parse_result.updated_budget.model_copy(update={"linked_sheet_id": spreadsheet_id})
    save_budget(updated, budget_path)
    console.print(f"[bold green]Applied {result.summary.total_changes} changes to {budget_path}[/bold green]")


if __name__ == "__main__":
    app()
