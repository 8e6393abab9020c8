# ABOUTME: Rich table helpers for CLI output of pipeline results and manifest history
# ABOUTME: Provides pre-configured key/value and multi-column tables with consistent styling

from typing import Any

from rich.box import ROUNDED, SIMPLE
from rich.console import Console
from rich.table import Table

from civic_scraper.core.models import PipelineResult, StructuralManifest


def create_key_value_table(
    title: str,
    data: dict[str, str],
    title_style: str = "bold cyan",
    key_style: str = "bold blue",
    value_style: str = "green",
    box_style=ROUNDED,
) -> Table:
    """Create a two-column key/value table.

    Args:
        title: Table title
        data: Dictionary of key-value pairs to display
        title_style: Style for the table title
        key_style: Style for the key column
        value_style: Style for the value column
        box_style: Border style for the table

    Returns:
        Formatted Rich table ready for printing
    """
    table = Table(
        title=f"[{title_style}]{title}[/{title_style}]",
        box=box_style,
        show_header=True,
        header_style="bold magenta",
        border_style="cyan",
        title_justify="left",
        expand=False,
    )

    table.add_column("Field", style=key_style, no_wrap=False)
    table.add_column("Value", style=value_style, no_wrap=False)

    for key, value in data.items():
        table.add_row(key, str(value))

    return table


def create_multi_column_table(
    title: str,
    columns: list[tuple[str, str]],
    rows: list[list[str]],
    title_style: str = "bold cyan",
    header_style: str = "bold magenta",
    box_style=ROUNDED,
) -> Table:
    """Create a multi-column table with zebra striping.

    Args:
        title: Table title
        columns: List of (column_name, column_style) tuples
        rows: List of row data
        title_style: Style for the table title
        header_style: Style for column headers
        box_style: Border style for the table

    Returns:
        Formatted Rich table ready for printing
    """
    table = Table(
        title=f"[{title_style}]{title}[/{title_style}]",
        box=box_style,
        show_header=True,
        header_style=header_style,
        border_style="cyan",
        title_justify="left",
        row_styles=["", "dim"],
        expand=True,
    )

    for name, style in columns:
        table.add_column(name, style=style)

    for row in rows:
        table.add_row(*row)

    return table


def create_pipeline_result_table(result: PipelineResult) -> Table:
    """Summarize one pipeline run."""
    status = "✅ Success" if result.success else "❌ Failed"
    data = {
        "🏛️ Region": result.region_id,
        "🌐 Source": result.source_url,
        "📂 Data Type": result.data_type.value,
        "📊 Status": status,
        "📦 Items": str(result.item_count),
        "🧾 Manifest": f"v{result.manifest_version}" if result.manifest_version else "None",
        "💾 Cached Manifest": "Yes" if result.from_cache else "No",
        "🩹 Healed": "Yes" if result.healed else "No",
        "🔀 States": " → ".join(state.value for state in result.states),
    }
    if result.errors:
        data["🚨 Errors"] = "\n".join(result.errors)
    if result.warnings:
        data["⚠️ Warnings"] = "\n".join(result.warnings)

    return create_key_value_table(
        title="🔄 Pipeline Result",
        data=data,
        title_style="bold green" if result.success else "bold red",
        key_style="cyan",
        value_style="white",
        box_style=SIMPLE,
    )


def create_items_table(items: list[dict[str, str]], limit: int = 20) -> Table:
    """Show extracted items, one column per field seen across the first `limit` items."""
    shown = items[:limit]
    fields: list[str] = []
    for item in shown:
        for name in item:
            if name not in fields:
                fields.append(name)

    rows = [[item.get(name, "") for name in fields] for item in shown]
    title = f"📋 Extracted Items ({len(shown)} of {len(items)})"
    return create_multi_column_table(title=title, columns=[(name, "white") for name in fields], rows=rows)


def create_manifest_history_table(manifests: list[StructuralManifest]) -> Table:
    rows = [
        [
            f"v{manifest.version}",
            "✅" if manifest.is_active else "",
            f"{manifest.confidence:.0%}",
            str(manifest.success_count),
            str(manifest.failure_count),
            manifest.extraction_rules.container_selector,
            manifest.extraction_rules.item_selector,
            manifest.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        ]
        for manifest in manifests
    ]
    return create_multi_column_table(
        title="🧾 Manifest History",
        columns=[
            ("Version", "bold cyan"),
            ("Active", "green"),
            ("Confidence", "yellow"),
            ("Successes", "green"),
            ("Failures", "red"),
            ("Container", "white"),
            ("Item", "white"),
            ("Created", "dim"),
        ],
        rows=rows,
    )


def create_logging_status_table(status: dict[str, Any]) -> Table:
    """Create a logging configuration status table.

    Args:
        status: Logging status dictionary

    Returns:
        Styled logging configuration table
    """
    logging_data = {
        "🔧 Mode": status["mode"].title(),
        "📁 Log Directory": status["log_directory"] or "N/A (production mode)",
        "🔇 Suppressed Libraries": ", ".join(status["third_party_suppressed"]),
    }

    if status["log_files"]["main"]:
        logging_data["📝 Main Log"] = status["log_files"]["main"]
    if status["log_files"]["json"]:
        logging_data["📊 JSON Log"] = status["log_files"]["json"]
    if status["log_files"]["errors"]:
        logging_data["🚨 Error Log"] = status["log_files"]["errors"]

    return create_key_value_table(
        title="🔍 Logging Configuration",
        data=logging_data,
        title_style="bold green",
        key_style="blue",
        value_style="white",
    )


def print_rich_table(console: Console, table: Table) -> None:
    """Print a rich table with consistent spacing."""
    console.print()
    console.print(table)
    console.print()
