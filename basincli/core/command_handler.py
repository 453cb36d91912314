"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the resource clients. Commands that accept several identifiers
fan out through the bulk runner and report per-item outcomes.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from basincli.domain.errors import NetworkError
from basincli.domain.interfaces.user_interface import UserInterface
from basincli.domain.models.api import BulkResult, ShapingOptions
from basincli.infrastructure.auth.credential_source import CredentialSource
from basincli.infrastructure.auth.token_info import (
    format_token_expiration, is_token_expired, token_subject,
)
from basincli.infrastructure.clients import (
    ApiClient, AutomationsClient, ConnectorsClient, PipelinesClient, ProjectsClient, SqlClient,
)
from basincli.infrastructure.config.settings import CliConfig
from basincli.infrastructure.reporting.result_aggregator import format_results, raise_if_any_failed
from basincli.infrastructure.resilience.bulk_runner import parse_bulk_ids, run_bulk
from basincli.infrastructure.shaping.response_shaper import oversize_warning, shape_response

logger = logging.getLogger(__name__)

ItemOperation = Callable[[str], Awaitable[Any]]


class CommandHandler:
    """Handles incoming commands and delegates to the resource clients."""

    def __init__(
        self,
        api: ApiClient,
        projects: ProjectsClient,
        connectors: ConnectorsClient,
        pipelines: PipelinesClient,
        automations: AutomationsClient,
        sql: SqlClient,
        credentials: CredentialSource,
        ui: UserInterface,
        config: CliConfig,
    ):
        """Initializes the CommandHandler with the clients of one session."""
        self.api = api
        self.projects = projects
        self.connectors = connectors
        self.pipelines = pipelines
        self.automations = automations
        self.sql = sql
        self.credentials = credentials
        self.ui = ui
        self.config = config

    # --- Shared helpers ---

    def list_shaping(self, count: bool = False, fields: Optional[str] = None, limit: Optional[int] = None) -> ShapingOptions:
        """Shaping for list commands; an unset limit falls back to the configured default."""
        if limit is None and not count:
            limit = self.config.default_limit
        return ShapingOptions.from_cli(count=count, fields=fields, limit=limit)

    def show_list(self, data: Any, title: str, shaping: Optional[ShapingOptions] = None, explicit_limit: bool = True) -> None:
        warning = oversize_warning(data, self.config.warn_threshold)
        if warning:
            self.ui.display_warning(warning)
        self.ui.display_data(data, title=title)
        if (
            not explicit_limit and shaping is not None and shaping.limit is not None
            and isinstance(data, list) and len(data) >= shaping.limit
        ):
            self.ui.display_info(f"Showing the first {shaping.limit} results. Use --limit to change this.")

    async def run_for_ids(
        self,
        ids: str,
        op: ItemOperation,
        resource_label: str,
        title: str,
        concurrency: Optional[int] = None,
        fail_fast: bool = False,
        show_data: bool = True,
    ) -> None:
        """Runs `op` for one or many identifiers.

        A single identifier is a plain call whose errors propagate. Several
        identifiers go through run_bulk; the report is shown on success and
        carried by the raised BulkOperationError otherwise.
        """
        id_list = parse_bulk_ids(ids)
        if len(id_list) == 1:
            result = await op(id_list[0])
            if show_data:
                self.ui.display_data(result, title=f"{title} {id_list[0]}")
            else:
                self.ui.display_info(f"{resource_label.capitalize()} {id_list[0]}: done")
            return

        logger.info(f"Running {title.lower()} for {len(id_list)} {resource_label}s")

        counts = {"ok": 0, "failed": 0}

        def on_progress(result: BulkResult, completed: int, total: int) -> None:
            counts["ok" if result.success else "failed"] += 1
            logger.info(f"[{completed}/{total}] {resource_label} {result.id}: {'ok' if result.success else 'failed'}")
            self.ui.update_progress(f"{title}: {counts['ok']} ok, {counts['failed']} failed / {total}")

        self.ui.start_progress(f"{title}: 0 ok, 0 failed / {len(id_list)}")
        try:
            results = await run_bulk(
                id_list,
                op,
                concurrency=concurrency or self.config.bulk_concurrency,
                fail_fast=fail_fast,
                on_progress=on_progress,
            )
        finally:
            self.ui.stop_progress()
        if show_data:
            succeeded = [result.to_dict() for result in results if result.success]
            if succeeded:
                self.ui.display_data(succeeded, title=title)
        raise_if_any_failed(results, resource_label)
        self.ui.display_report(format_results(results, resource_label))

    # --- Projects ---

    async def handle_projects_list(self, count: bool = False, fields: Optional[str] = None, limit: Optional[int] = None) -> None:
        shaping = self.list_shaping(count, fields, limit)
        data = await self.projects.list(shaping)
        self.show_list(data, "Projects", shaping, explicit_limit=limit is not None)

    async def handle_projects_get(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.projects.get_by_id, "project", "Project", concurrency, fail_fast)

    # --- Connectors ---

    async def handle_connectors_list(
        self,
        project_id: Optional[str] = None,
        full: bool = False,
        count: bool = False,
        fields: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> None:
        """Lists connectors; without --full or shaping flags only the count is fetched."""
        shaping = None
        if full or fields or limit is not None or count:
            shaping = self.list_shaping(count, fields, limit)
        data = await self.connectors.list(project_id, shaping)
        self.show_list(data, "Connectors", shaping, explicit_limit=limit is not None)
        if shaping is None:
            self.ui.display_info("Showing count only. Use --full to list connector details.")

    async def handle_connectors_get(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.connectors.get_by_id, "connector", "Connector", concurrency, fail_fast)

    async def handle_connectors_delete(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(
            ids, self.connectors.delete_by_id, "connector", "Delete connector", concurrency, fail_fast, show_data=False,
        )

    async def handle_connectors_test(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.connectors.test, "connector", "Connection test", concurrency, fail_fast)

    # --- Pipelines ---

    async def handle_pipelines_list(
        self, project_id: str, count: bool = False, fields: Optional[str] = None, limit: Optional[int] = None
    ) -> None:
        shaping = self.list_shaping(count, fields, limit)
        data = await self.pipelines.list(project_id, shaping)
        self.show_list(data, "Pipelines", shaping, explicit_limit=limit is not None)

    async def handle_pipelines_get(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.pipelines.get_by_id, "pipeline", "Pipeline", concurrency, fail_fast)

    async def handle_pipelines_delete(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(
            ids, self.pipelines.delete_by_id, "pipeline", "Delete pipeline", concurrency, fail_fast, show_data=False,
        )

    async def handle_pipelines_run(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.pipelines.run, "pipeline", "Pipeline run", concurrency, fail_fast)

    # --- Automations ---

    async def handle_automations_list(
        self,
        project_id: str,
        active: Optional[bool] = None,
        running: Optional[bool] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        count: bool = False,
        fields: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> None:
        shaping = self.list_shaping(count, fields, limit)
        data = await self.automations.list(project_id, active, running, sort_by, sort_order, shaping)
        self.show_list(data, "Automations", shaping, explicit_limit=limit is not None)

    async def handle_automations_get(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.automations.get_by_id, "automation", "Automation", concurrency, fail_fast)

    async def handle_automations_delete(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(
            ids, self.automations.delete_by_id, "automation", "Delete automation", concurrency, fail_fast, show_data=False,
        )

    async def handle_automations_run(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.automations.run, "automation", "Automation run", concurrency, fail_fast)

    async def handle_automations_stop(self, ids: str, concurrency: Optional[int] = None, fail_fast: bool = False) -> None:
        await self.run_for_ids(ids, self.automations.stop, "automation", "Automation stop", concurrency, fail_fast)

    # --- SQL ---

    async def handle_sql_query(self, connector_id: str, query: str, limit: Optional[int] = None) -> None:
        result = await self.sql.execute_query(connector_id, query)
        rows = result.get("rows") if isinstance(result, dict) else None
        if rows is None:
            self.ui.display_data(result, title="Query result")
            return
        if limit is not None:
            rows = shape_response(rows, ShapingOptions(limit=limit))
        title = f"Query result ({result.get('rowCount', len(rows))} rows"
        if result.get("executionTime") is not None:
            title += f", {result['executionTime']}ms"
        self.show_list(rows, title + ")")

    # --- Auth / connectivity ---

    async def handle_auth_status(self, verify: bool = False) -> None:
        """Shows where the token comes from and when it expires.

        Raises:
            AuthError: If no token source is available.
        """
        token = self.credentials.resolve()
        status = {
            "source": self.credentials.describe_source(),
            "subject": None,
            "expires_in": format_token_expiration(token),
        }
        if status["expires_in"] != "Invalid token":
            status["subject"] = token_subject(token)
        if verify:
            user = await self.projects.get_current_user()
            if isinstance(user, dict):
                status["user"] = user.get("email") or user.get("id")
        self.ui.display_data(status, title="Authentication")
        if is_token_expired(token):
            self.ui.display_warning("Token is expired or invalid. Obtain a new token from Databasin.")

    async def handle_ping(self) -> None:
        if not await self.api.ping():
            raise NetworkError(f"API not reachable at {self.config.api_url}", url=self.config.api_url)
        self.ui.display_info(f"API reachable at {self.config.api_url}")
