"""Command line interface for TiffLocator."""

from __future__ import annotations

import difflib
import re
import time
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, Iterator

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from tifflocator.config import (
    ConfigError,
    ConfigManager,
    TiffLocatorConfig,
    assign_nested,
    resolve_with_precedence,
)
from tifflocator.errors import TiffLocatorError
from tifflocator.logs import configure_logging
from tifflocator.search import result_rows, write_results_csv
from tifflocator.search.export import format_similarity
from tifflocator.session import Loaded, SearchSession
from tifflocator.tasks import (
    TaskCompleted,
    TaskFailed,
    TaskOrchestrator,
    TaskProgress,
    TaskTicket,
)

console = Console()

POLL_INTERVAL = 0.05


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _error_code(error_type: str) -> str:
    """Convert an exception class name such as ``ScanError`` into ``scan_error``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", error_type).lower()


def _emit_message(message: Any, *, quiet: bool) -> None:
    if quiet:
        return
    console.print(message)


def _format_summary_line(command: str, subject: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        subject: Path or query the command acted on.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {subject}: {parts}.[/green]"


def _load_config(ctx: click.Context) -> TiffLocatorConfig:
    """Resolve configuration, applying ``--db`` as a CLI override."""

    manager = ConfigManager()
    manager.ensure_exists()
    overrides: dict[str, Any] = {}
    database_path = ctx.obj.get("database_path") if ctx.obj else None
    if database_path:
        overrides["cache.database_path"] = database_path
    config = manager.load(cli_overrides=overrides or None)

    verbose = ctx.obj.get("verbose", 0) if ctx.obj else 0
    level_override = None
    if verbose >= 2:
        level_override = "DEBUG"
    elif verbose == 1:
        level_override = "INFO"
    configure_logging(config.logging, level_override=level_override)
    return config


@contextmanager
def _orchestrator(config: TiffLocatorConfig) -> Iterator[TaskOrchestrator]:
    orchestrator = TaskOrchestrator.from_config(config)
    try:
        yield orchestrator
    finally:
        orchestrator.shutdown(wait=True)
        orchestrator.store.close()


def _await_task(
    orchestrator: TaskOrchestrator,
    session: SearchSession,
    ticket: TaskTicket,
    label: str,
    *,
    show_status: bool,
) -> TaskCompleted | TaskFailed:
    """Poll the orchestrator until ``ticket`` delivers its terminal message.

    Args:
        orchestrator: Orchestrator running the task.
        session: Session that every drained message is applied to.
        ticket: Ticket returned on submission.
        label: Spinner text.
        show_status: Whether to render a rich status spinner.

    Returns:
        TaskCompleted | TaskFailed: Terminal message for the ticket.
    """

    spinner = console.status(label) if show_status else nullcontext()
    with spinner as status:
        while True:
            for message in session.pump(orchestrator):
                if message.task_id != ticket.task_id:
                    continue
                if isinstance(message, TaskProgress):
                    if status is not None and message.total:
                        status.update(f"{label} ({message.completed}/{message.total})")
                    continue
                return message
            time.sleep(POLL_INTERVAL)


def _run_task(
    orchestrator: TaskOrchestrator,
    session: SearchSession,
    ticket: TaskTicket,
    label: str,
    *,
    json_output: bool,
    quiet: bool = False,
) -> Any:
    """Wait for ``ticket`` and return its payload, surfacing failures as CLI errors."""

    message = _await_task(
        orchestrator,
        session,
        ticket,
        label,
        show_status=not (json_output or quiet),
    )
    if isinstance(message, TaskFailed):
        _handle_cli_error(
            session.error_line or message.message,
            code=_error_code(message.error_type),
            json_output=json_output,
        )
    return message.payload


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tifflocator")
@click.option(
    "--db",
    "database_path",
    type=click.Path(dir_okay=False, path_type=str),
    help="SQLite cache location (overrides cache.database_path).",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (repeatable).")
@click.pass_context
def cli(ctx: click.Context, database_path: str | None, verbose: int) -> None:
    """TiffLocator indexes TIFF files and finds them by fuzzy identifier match."""

    ctx.ensure_object(dict)
    ctx.obj["database_path"] = database_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("root", type=click.Path(path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Emit the scan report as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def scan(ctx: click.Context, root: str, json_output: bool, quiet: bool) -> None:
    """Index image files beneath ROOT.

    Args:
        ctx: Click context carrying global options.
        root: Directory to scan recursively.
        json_output: When True, emit JSON instead of textual output.
        quiet: When True, suppress non-error output.

    Raises:
        click.ClickException: If the root is invalid or the cache is unavailable.
    """

    try:
        config = _load_config(ctx)
        quiet_enabled = (quiet or config.cli.quiet_default) and not json_output
        session = SearchSession(page_size=config.search.page_size)
        with _orchestrator(config) as orchestrator:
            ticket = orchestrator.scan(root)
            report = _run_task(
                orchestrator,
                session,
                ticket,
                f"Scanning {root}",
                json_output=json_output,
                quiet=quiet_enabled,
            )

        if json_output:
            console.print_json(data=report.model_dump(mode="json"))
            return
        _emit_message(
            _format_summary_line(
                "Scan",
                report.root,
                {
                    "visited": report.visited,
                    "discovered": report.discovered,
                    "indexed": report.indexed,
                    "total": report.total_files,
                },
            ),
            quiet=quiet_enabled,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except TiffLocatorError as exc:
        _handle_cli_error(
            str(exc), code=_error_code(type(exc).__name__), json_output=json_output, original=exc
        )


@cli.command("import")
@click.argument(
    "csv_path", metavar="CSV", type=click.Path(exists=True, dir_okay=False, path_type=str)
)
@click.option(
    "--column",
    type=str,
    default=None,
    help="Identifier column name (defaults to references.id_field).",
)
@click.option("--json", "json_output", is_flag=True, help="Emit the import report as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def import_command(
    ctx: click.Context,
    csv_path: str,
    column: str | None,
    json_output: bool,
    quiet: bool,
) -> None:
    """Load reference identifiers from the CSV file at CSV.

    Args:
        ctx: Click context carrying global options.
        csv_path: Headed CSV file containing an identifier column.
        column: Identifier column override.
        json_output: When True, emit JSON instead of textual output.
        quiet: When True, suppress non-error output.

    Raises:
        click.ClickException: If the file is malformed or the cache is unavailable.
    """

    try:
        config = _load_config(ctx)
        quiet_enabled = (quiet or config.cli.quiet_default) and not json_output
        field = column or config.references.id_field
        session = SearchSession(page_size=config.search.page_size)
        with _orchestrator(config) as orchestrator:
            ticket = orchestrator.import_csv(csv_path, field)
            report = _run_task(
                orchestrator,
                session,
                ticket,
                f"Importing {csv_path}",
                json_output=json_output,
                quiet=quiet_enabled,
            )

        if json_output:
            console.print_json(data=report.model_dump(mode="json"))
            return
        for error in report.errors:
            _emit_message(f"[yellow]- {error}[/yellow]", quiet=quiet_enabled)
        _emit_message(
            _format_summary_line(
                "Import",
                csv_path,
                {
                    "processed": report.processed,
                    "imported": report.imported,
                    "skipped": report.skipped,
                    "rejected": report.rejected,
                    "total": report.total,
                },
            ),
            quiet=quiet_enabled,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except TiffLocatorError as exc:
        _handle_cli_error(
            str(exc), code=_error_code(type(exc).__name__), json_output=json_output, original=exc
        )


@cli.command()
@click.argument("query")
@click.option(
    "--threshold",
    type=float,
    default=None,
    help="Minimum similarity between 0.5 and 1.0 (defaults to search.default_threshold).",
)
@click.option("--page", "page_number", type=int, default=1, show_default=True, help="Page to show.")
@click.option("--page-size", type=int, default=None, help="Results per page.")
@click.option("--json", "json_output", is_flag=True, help="Emit results as JSON.")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=str),
    help="Write every match to a CSV file.",
)
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    threshold: float | None,
    page_number: int,
    page_size: int | None,
    json_output: bool,
    export_path: str | None,
) -> None:
    """Find indexed files whose names resemble QUERY.

    Args:
        ctx: Click context carrying global options.
        query: Identifier to look for.
        threshold: Optional similarity threshold override.
        page_number: One-based page to display.
        page_size: Optional page size override.
        json_output: When True, emit JSON instead of a table.
        export_path: Optional CSV destination for all matches.

    Raises:
        click.ClickException: If the query is invalid or the cache is unavailable.
    """

    try:
        config = _load_config(ctx)
        effective_size = page_size if page_size is not None else config.search.page_size
        if effective_size < 1:
            raise click.ClickException("--page-size must be at least 1.")
        session = SearchSession(page_size=effective_size)
        with _orchestrator(config) as orchestrator:
            ticket = orchestrator.search(query, threshold)
            outcome = _run_task(
                orchestrator,
                session,
                ticket,
                f"Searching for {query}",
                json_output=json_output,
            )

        if not isinstance(session.state, Loaded):
            raise click.ClickException("Search finished without loading any results.")
        paginator = session.state.paginator
        try:
            view = paginator.goto(page_number - 1)
        except IndexError as exc:
            raise click.ClickException(
                f"Page {page_number} is out of range ({paginator.page_count()} pages)."
            ) from exc

        exported = None
        if export_path:
            exported = write_results_csv(outcome.results, export_path)

        if json_output:
            payload: dict[str, Any] = {
                "query": outcome.query,
                "threshold": outcome.threshold,
                "total": len(outcome.results),
                "candidates": outcome.candidates,
                "page": page_number,
                "page_count": paginator.page_count(),
                "page_size": paginator.page_size,
                "elapsed_seconds": round(outcome.elapsed_seconds, 4),
                "results": result_rows(view),
            }
            if export_path:
                payload["export"] = {"path": export_path, "rows": exported}
            console.print_json(data=payload)
            return

        if not outcome.results:
            console.print(
                f"[yellow]No matches for '{outcome.query}' at {outcome.threshold:.2f}.[/yellow]"
            )
        else:
            table = Table(title=f"Matches for '{outcome.query}'")
            table.add_column("#", justify="right", no_wrap=True)
            table.add_column("Similarity", justify="right", no_wrap=True)
            table.add_column("Name", no_wrap=True)
            table.add_column("Path", overflow="fold")
            for offset, result in enumerate(view, start=view.start + 1):
                table.add_row(
                    str(offset), format_similarity(result.score), result.name, result.path
                )
            console.print(table)
            console.print(f"Page {page_number} of {paginator.page_count()}")
        if exported is not None:
            console.print(f"[green]Exported {exported} results to {export_path}.[/green]")
        console.print(f"[green]{session.status_line}.[/green]")
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except TiffLocatorError as exc:
        _handle_cli_error(
            str(exc), code=_error_code(type(exc).__name__), json_output=json_output, original=exc
        )
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except OSError as exc:
        _handle_cli_error(
            f"Unable to write export: {exc}",
            code="export_error",
            json_output=json_output,
            original=exc,
        )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit counts as JSON.")
@click.pass_context
def status(ctx: click.Context, json_output: bool) -> None:
    """Show how many files and reference identifiers are indexed."""

    try:
        config = _load_config(ctx)
        # Read-only counts run on the calling thread; there is no task kind for them.
        with _orchestrator(config) as orchestrator:
            store = orchestrator.store
            payload = {
                "database": str(store.path),
                "files": store.count_files(),
                "reference_ids": store.count_reference_ids(),
            }
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except TiffLocatorError as exc:
        _handle_cli_error(
            str(exc), code=_error_code(type(exc).__name__), json_output=json_output, original=exc
        )
        return

    if json_output:
        console.print_json(data=payload)
        return
    console.print(
        _format_summary_line(
            "Status",
            payload["database"],
            {"files": payload["files"], "reference_ids": payload["reference_ids"]},
        )
    )


@cli.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Delete every indexed file and reference identifier."""

    if not yes:
        click.confirm("Remove all indexed files and reference identifiers?", abort=True)
    try:
        config = _load_config(ctx)
        session = SearchSession(page_size=config.search.page_size)
        with _orchestrator(config) as orchestrator:
            ticket = orchestrator.clear_cache()
            report = _run_task(orchestrator, session, ticket, "Clearing cache", json_output=False)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except TiffLocatorError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(
        f"[green]{session.status_line}: removed {report.files_removed} files and "
        f"{report.references_removed} identifiers.[/green]"
    )


@cli.group()
def config() -> None:
    """Manage TiffLocator configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        resolved = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(resolved.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        before = manager.read_text().splitlines()
        file_data = manager.load_file_overrides()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'search.default_threshold'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=TiffLocatorConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    # The timestamp line always changes; only report when a value did.
    if not any(
        line[:1] in {"+", "-"}
        and not line.startswith(("+++", "---", "+# Last updated", "-# Last updated"))
        for line in diff
    ):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
