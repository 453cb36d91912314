"""Main entry point for the databasin CLI.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Annotated, Any, Callable, Coroutine, Dict, Optional

import typer

from basincli import __version__

# --- Core Layer ---
from basincli.core.command_handler import CommandHandler

# --- Domain Layer ---
from basincli.domain.errors import CliError, format_error, get_exit_code

# --- Infrastructure Layer ---
# Config
from basincli.infrastructure.config.settings import CliConfig, build_cli_config, load_configuration
# UI
from basincli.infrastructure.cli.display import ConsoleDisplay
# Auth
from basincli.infrastructure.auth.credential_source import CredentialSource
# HTTP
from basincli.infrastructure.http.request_executor import RequestExecutor
# Resilience
from basincli.infrastructure.resilience.api_retry import ApiRetryService
# Clients
from basincli.infrastructure.clients import (
    ApiClient, AutomationsClient, ConnectorsClient, PipelinesClient, ProjectsClient, SqlClient,
)
# Monitoring
from basincli.infrastructure.monitoring.logger_setup import parse_log_level, setup_logging

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130

# --- Dependency Injection Container (Manual) ---

def create_dependencies(
    config: CliConfig,
    ui: ConsoleDisplay,
    credentials: Optional[CredentialSource] = None,
    transport: Any = None,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command invocation.

    This acts as the Composition Root. Must be called inside the running
    event loop because it opens the HTTP client.

    Args:
        config: Resolved configuration snapshot.
        ui: Display used by the command handler.
        credentials: Credential source (a fresh layered source by default).
        transport: Optional httpx transport, used by tests to fake the API.
    """
    logger.debug(f"Initializing dependencies for {config.api_url}")
    dependencies: Dict[str, Any] = {"config": config, "ui": ui}
    dependencies["credentials"] = credentials or CredentialSource()
    dependencies["api_retry_service"] = ApiRetryService(
        max_retries=config.retries,
        retry_delay_s=config.retry_delay,
    )
    dependencies["executor"] = RequestExecutor(
        base_url=config.api_url,
        credentials=dependencies["credentials"],
        retry_service=dependencies["api_retry_service"],
        default_timeout=config.timeout,
        debug=config.debug,
        transport=transport,
    )
    api = ApiClient(dependencies["executor"])
    dependencies["api"] = api
    dependencies["command_handler"] = CommandHandler(
        api=api,
        projects=ProjectsClient(api),
        connectors=ConnectorsClient(api),
        pipelines=PipelinesClient(api),
        automations=AutomationsClient(api),
        sql=SqlClient(api),
        credentials=dependencies["credentials"],
        ui=ui,
        config=config,
    )
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="databasin",
    help="Databasin CLI: manage projects, connectors, pipelines and automations.",
    add_completion=False,
    no_args_is_help=True,
)
projects_app = typer.Typer(help="Manage projects.", no_args_is_help=True)
connectors_app = typer.Typer(help="Manage connectors.", no_args_is_help=True)
pipelines_app = typer.Typer(help="Manage pipelines.", no_args_is_help=True)
automations_app = typer.Typer(help="Manage automations.", no_args_is_help=True)
sql_app = typer.Typer(help="Run SQL through a connector.", no_args_is_help=True)
auth_app = typer.Typer(help="Inspect authentication.", no_args_is_help=True)

app.add_typer(projects_app, name="projects")
app.add_typer(connectors_app, name="connectors")
app.add_typer(pipelines_app, name="pipelines")
app.add_typer(automations_app, name="automations")
app.add_typer(sql_app, name="sql")
app.add_typer(auth_app, name="auth")


def _fail(ui: ConsoleDisplay, error: BaseException) -> None:
    ui.display_error(format_error(error))
    raise typer.Exit(code=get_exit_code(error))


# --- Helper for Running Async Commands ---
def run_async(ctx: typer.Context, action: Callable[[CommandHandler], Coroutine[Any, Any, None]]) -> None:
    """Builds the session, runs one handler coroutine, and maps errors to exit codes."""
    state = ctx.ensure_object(dict)
    ui: ConsoleDisplay = state["ui"]

    async def runner() -> None:
        dependencies = create_dependencies(
            state["config"], ui, credentials=state.get("credentials"), transport=state.get("transport"),
        )
        async with dependencies["executor"]:
            await action(dependencies["command_handler"])

    try:
        asyncio.run(runner())
    except CliError as e:
        logger.debug(f"Command failed: {e!r}")
        _fail(ui, e)
    except KeyboardInterrupt:
        ui.display_warning("Interrupted.")
        raise typer.Exit(code=EXIT_INTERRUPTED)
    except Exception as e:
        logger.error(f"Error executing command: {e}", exc_info=True)
        _fail(ui, e)


# --- Shared options ---

IdsArgument = Annotated[str, typer.Argument(help="One or more IDs, separated by commas or spaces.")]
ConcurrencyOption = Annotated[
    Optional[int],
    typer.Option("--concurrency", "-c", min=1, help="Maximum requests in flight for multiple IDs."),
]
FailFastOption = Annotated[bool, typer.Option("--fail-fast", help="Stop starting new items after the first failure.")]
CountOption = Annotated[bool, typer.Option("--count", help="Return only the number of items.")]
FieldsOption = Annotated[Optional[str], typer.Option("--fields", help="Comma-separated fields to keep.")]
LimitOption = Annotated[Optional[int], typer.Option("--limit", min=1, help="Maximum number of items.")]
ProjectOption = Annotated[Optional[str], typer.Option("--project", "-p", help="Project ID or internal ID.")]


# --- Projects ---

@projects_app.command("list")
def projects_list(ctx: typer.Context, count: CountOption = False, fields: FieldsOption = None, limit: LimitOption = None):
    """List projects you can access."""
    run_async(ctx, lambda handler: handler.handle_projects_list(count, fields, limit))


@projects_app.command("get")
def projects_get(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Show one or more projects."""
    run_async(ctx, lambda handler: handler.handle_projects_get(ids, concurrency, fail_fast))


# --- Connectors ---

@connectors_app.command("list")
def connectors_list(
    ctx: typer.Context,
    project: ProjectOption = None,
    full: Annotated[bool, typer.Option("--full", help="List connector details instead of the count.")] = False,
    count: CountOption = False,
    fields: FieldsOption = None,
    limit: LimitOption = None,
):
    """List connectors (count only unless --full or a shaping flag is given)."""
    run_async(ctx, lambda handler: handler.handle_connectors_list(project, full, count, fields, limit))


@connectors_app.command("get")
def connectors_get(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Show one or more connectors."""
    run_async(ctx, lambda handler: handler.handle_connectors_get(ids, concurrency, fail_fast))


@connectors_app.command("delete")
def connectors_delete(
    ctx: typer.Context,
    ids: IdsArgument,
    concurrency: ConcurrencyOption = None,
    fail_fast: FailFastOption = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Delete one or more connectors."""
    if not yes:
        typer.confirm(f"Delete connector(s) {ids}?", abort=True)
    run_async(ctx, lambda handler: handler.handle_connectors_delete(ids, concurrency, fail_fast))


@connectors_app.command("test")
def connectors_test(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Test the connection of one or more connectors."""
    run_async(ctx, lambda handler: handler.handle_connectors_test(ids, concurrency, fail_fast))


# --- Pipelines ---

@pipelines_app.command("list")
def pipelines_list(
    ctx: typer.Context,
    project: ProjectOption = None,
    count: CountOption = False,
    fields: FieldsOption = None,
    limit: LimitOption = None,
):
    """List the pipelines of a project."""
    run_async(ctx, lambda handler: handler.handle_pipelines_list(project, count, fields, limit))


@pipelines_app.command("get")
def pipelines_get(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Show one or more pipelines."""
    run_async(ctx, lambda handler: handler.handle_pipelines_get(ids, concurrency, fail_fast))


@pipelines_app.command("delete")
def pipelines_delete(
    ctx: typer.Context,
    ids: IdsArgument,
    concurrency: ConcurrencyOption = None,
    fail_fast: FailFastOption = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Delete one or more pipelines."""
    if not yes:
        typer.confirm(f"Delete pipeline(s) {ids}?", abort=True)
    run_async(ctx, lambda handler: handler.handle_pipelines_delete(ids, concurrency, fail_fast))


@pipelines_app.command("run")
def pipelines_run(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Start a manual run of one or more pipelines."""
    run_async(ctx, lambda handler: handler.handle_pipelines_run(ids, concurrency, fail_fast))


# --- Automations ---

@automations_app.command("list")
def automations_list(
    ctx: typer.Context,
    project: ProjectOption = None,
    active: Annotated[Optional[bool], typer.Option("--active/--inactive", help="Filter by active state.")] = None,
    running: Annotated[Optional[bool], typer.Option("--running/--idle", help="Filter by running state.")] = None,
    sort_by: Annotated[Optional[str], typer.Option("--sort-by", help="Field to sort by.")] = None,
    sort_order: Annotated[Optional[str], typer.Option("--sort-order", help="'asc' or 'desc'.")] = None,
    count: CountOption = False,
    fields: FieldsOption = None,
    limit: LimitOption = None,
):
    """List the automations of a project."""
    run_async(ctx, lambda handler: handler.handle_automations_list(
        project, active, running, sort_by, sort_order, count, fields, limit,
    ))


@automations_app.command("get")
def automations_get(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Show one or more automations."""
    run_async(ctx, lambda handler: handler.handle_automations_get(ids, concurrency, fail_fast))


@automations_app.command("delete")
def automations_delete(
    ctx: typer.Context,
    ids: IdsArgument,
    concurrency: ConcurrencyOption = None,
    fail_fast: FailFastOption = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Delete one or more automations."""
    if not yes:
        typer.confirm(f"Delete automation(s) {ids}?", abort=True)
    run_async(ctx, lambda handler: handler.handle_automations_delete(ids, concurrency, fail_fast))


@automations_app.command("run")
def automations_run(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Run one or more automations."""
    run_async(ctx, lambda handler: handler.handle_automations_run(ids, concurrency, fail_fast))


@automations_app.command("stop")
def automations_stop(ctx: typer.Context, ids: IdsArgument, concurrency: ConcurrencyOption = None, fail_fast: FailFastOption = False):
    """Stop one or more running automations."""
    run_async(ctx, lambda handler: handler.handle_automations_stop(ids, concurrency, fail_fast))


# --- SQL ---

@sql_app.command("query")
def sql_query(
    ctx: typer.Context,
    connector: Annotated[str, typer.Argument(help="Connector ID.")],
    query: Annotated[str, typer.Argument(help="SQL statement.")],
    limit: LimitOption = None,
):
    """Execute a SQL query through a connector."""
    run_async(ctx, lambda handler: handler.handle_sql_query(connector, query, limit))


# --- Auth / connectivity ---

@auth_app.command("status")
def auth_status(
    ctx: typer.Context,
    verify: Annotated[bool, typer.Option("--verify", help="Also check the token against the API.")] = False,
):
    """Show the token source and expiry."""
    run_async(ctx, lambda handler: handler.handle_auth_status(verify))


@app.command()
def ping(ctx: typer.Context):
    """Check that the API is reachable."""
    run_async(ctx, lambda handler: handler.handle_ping())


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"databasin {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Annotated[bool, typer.Option("--debug", help="Log requests and responses.")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Print results as JSON.")] = False,
    api_url: Annotated[Optional[str], typer.Option("--api-url", help="Override the API base URL.")] = None,
    version: Annotated[
        bool, typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit.")
    ] = False,
):
    """Loads configuration and logging before any command runs."""
    state = ctx.ensure_object(dict)
    ui = state.get("ui") or ConsoleDisplay()
    state["ui"] = ui
    try:
        load_configuration()
        config = build_cli_config(
            debug=True if debug else None,
            api_url=api_url.rstrip("/") if api_url else None,
            output_format="json" if json_output else None,
        )
    except CliError as e:
        _fail(ui, e)

    setup_logging(log_level=parse_log_level(config.log_level, config.debug), log_file=config.log_file)
    ui.output_format = config.output_format
    state["config"] = config
    logger.debug(f"Configuration resolved: api_url={config.api_url}, format={config.output_format}")


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
