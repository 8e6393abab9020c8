# ABOUTME: Main CLI application entry point using asyncclick for native async support
# ABOUTME: Provides commands to run the scraping pipeline, run whole regions, and inspect manifests

import json as jsonlib
from pathlib import Path

import asyncclick as click
from rich.console import Console
from rich.panel import Panel

from civic_scraper.config import get_config
from civic_scraper.core.models import DataType, PipelineResult
from civic_scraper.core.sources import validate_region_config
from civic_scraper.utils.logging import (
    LoggingMode,
    configure_logging,
    get_logging_status,
    with_pipeline_context,
)
from civic_scraper.utils.rich_tables import (
    create_items_table,
    create_logging_status_table,
    create_manifest_history_table,
    create_pipeline_result_table,
    print_rich_table,
)

console = Console()

DATA_TYPE_CHOICE = click.Choice([data_type.value for data_type in DataType])


def _create_service(fetch_timeout: float | None = None):
    from civic_scraper.core.pipeline import ScrapingPipelineService
    from civic_scraper.extraction.fetcher import HttpHtmlFetcher

    if fetch_timeout is None:
        return ScrapingPipelineService()
    return ScrapingPipelineService(fetcher=HttpHtmlFetcher(timeout=fetch_timeout))


def _display_result(result: PipelineResult, show_items: bool) -> None:
    print_rich_table(console, create_pipeline_result_table(result))
    if show_items and result.items:
        print_rich_table(console, create_items_table(result.items))


def _load_region_config(path: Path):
    """Load and validate a region config file, printing issues when invalid."""
    try:
        data = jsonlib.loads(path.read_text(encoding="utf-8"))
    except jsonlib.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e

    validation = validate_region_config(data)
    if not validation.valid:
        for issue in validation.errors:
            console.print(f"[red]❌ {issue.path or '(root)'}: {issue.message}[/red]")
        raise click.ClickException(f"Region config {path} is invalid")
    return validation.config


@click.command()
@click.argument("region_id")
@click.argument("source_url")
@click.argument("data_type", type=DATA_TYPE_CHOICE)
@click.option("--goal", help="What to extract from the page (defaults to the data type's goal)")
@click.option("--hint", "hints", multiple=True, help="Hint for structural analysis (repeatable)")
@click.option("--category", help="Optional source sub-category")
@click.option("--show-items", is_flag=True, help="Print extracted items")
@click.pass_context
async def run(
    ctx,
    region_id: str,
    source_url: str,
    data_type: str,
    goal: str | None,
    hints: tuple[str, ...],
    category: str | None,
    show_items: bool,
):
    """
    🔄 Run the extraction pipeline for one source page.

    Reuses the stored manifest when the page structure is unchanged, derives a
    new one otherwise, and self-heals once if the extraction looks broken.
    """
    json_output = ctx.obj["json_output"]

    with with_pipeline_context("scraping", region_id=region_id, source_url=source_url) as logger:
        logger.info("Starting pipeline run", data_type=data_type)

        service = _create_service()
        try:
            await service.initialize()
            result = await service.run_pipeline(
                region_id, source_url, data_type, content_goal=goal, hints=list(hints), category=category
            )
        finally:
            await service.close()

        logger.info("Pipeline run complete", success=result.success, item_count=result.item_count)

    if json_output:
        click.echo(result.model_dump_json())
    else:
        _display_result(result, show_items)

    if not result.success:
        ctx.exit(1)


@click.command(name="run-region")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--concurrency", type=int, help="Sources processed at once")
@click.pass_context
async def run_region(ctx, config_path: Path, concurrency: int | None):
    """
    🏛️ Run every data source of a region config file (JSON).
    """
    json_output = ctx.obj["json_output"]
    region = _load_region_config(config_path)

    if not json_output:
        console.print(
            Panel.fit(
                f"🏛️ [bold cyan]{region.region_name}[/bold cyan]\n{len(region.data_sources)} data sources",
                border_style="magenta",
            )
        )

    with with_pipeline_context("scraping_region", region_id=region.region_id) as logger:
        service = _create_service(region.request_timeout_seconds)
        try:
            await service.initialize()
            results = await service.run_sources(region.region_id, region.data_sources, concurrency=concurrency)
        finally:
            await service.close()

        failed = [result for result in results if not result.success]
        logger.info("Region run complete", sources=len(results), failed=len(failed))

    if json_output:
        click.echo(jsonlib.dumps([result.model_dump(mode="json") for result in results]))
    else:
        for result in results:
            _display_result(result, show_items=False)

    if failed:
        ctx.exit(1)


@click.command(name="validate-config")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate_config(config_path: Path):
    """
    ✅ Validate a region config file without running it.
    """
    region = _load_region_config(config_path)
    console.print(f"[green]✅ {region.region_id}: {len(region.data_sources)} data sources are valid[/green]")


@click.command()
@click.argument("region_id")
@click.argument("source_url")
@click.argument("data_type", type=DATA_TYPE_CHOICE)
@click.option("--limit", default=10, show_default=True, help="Number of versions to show")
@click.pass_context
async def history(ctx, region_id: str, source_url: str, data_type: str, limit: int):
    """
    🧾 Show stored manifest versions for a source, newest first.
    """
    service = _create_service()
    try:
        await service.initialize()
        manifests = await service.get_manifest_history(region_id, source_url, data_type, limit=limit)
    finally:
        await service.close()

    if ctx.obj["json_output"]:
        click.echo(jsonlib.dumps([manifest.model_dump(mode="json") for manifest in manifests]))
        return

    if not manifests:
        console.print(f"[yellow]No manifests stored for {source_url} ({data_type}).[/yellow]")
        return
    print_rich_table(console, create_manifest_history_table(manifests))


def _initialize_logging(json_output: bool, log_level: str | None = None, log_file: str | None = None) -> None:
    """Initialize logging configuration."""
    config = get_config()
    mode = LoggingMode.PRODUCTION if json_output else LoggingMode.INTERACTIVE

    final_log_level = log_level or config.log_level
    final_log_file = log_file or (str(config.log_file) if config.log_file else None)

    configure_logging(mode=mode, log_level=final_log_level, log_file=final_log_file)


@click.command(name="logging-status")
def logging_status():
    """
    📊 Show current logging configuration and status.
    """
    status = get_logging_status()
    print_rich_table(console, create_logging_status_table(status))


@click.group(invoke_without_command=True)
@click.option("--json", is_flag=True, help="Output structured JSON instead of rich tables")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-file", help="Custom log file path")
@click.pass_context
def app(ctx, json: bool, log_level: str | None, log_file: str | None):
    """
    🏛️ Civic Scraper - Self-healing extraction of civic data

    Turns legislature, meeting and campaign-finance pages into structured
    records using LLM-derived, versioned extraction manifests.
    """
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json

    _initialize_logging(json, log_level, log_file)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


app.add_command(run)
app.add_command(run_region)
app.add_command(validate_config)
app.add_command(history)
app.add_command(logging_status)


if __name__ == "__main__":
    app()
