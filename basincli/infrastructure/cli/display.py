import csv
import io
import json
import logging
from typing import Any, Dict, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.status import Status
from rich.table import Table
from rich.text import Text

from basincli.domain.interfaces.user_interface import UserInterface
from basincli.infrastructure.resilience.bulk_runner import chunk_array

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _columns(rows: List[Dict[str, Any]]) -> List[str]:
    """Union of row keys in first-seen order."""
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output.

    Command results go to stdout; errors, warnings and info panels go to
    stderr so results can be piped.
    """

    def __init__(
        self,
        output_format: str = "table",
        page_size: int = DEFAULT_PAGE_SIZE,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initializes the rich consoles.

        Args:
            output_format: 'table', 'json' or 'csv'.
            page_size: Rows per rendered table; longer lists are split into pages.
            console: Console for results (defaults to stdout).
            err_console: Console for messages (defaults to stderr).
        """
        self.output_format = output_format
        self.page_size = page_size
        self._console = console or Console()
        self._err_console = err_console or Console(stderr=True)
        self._status: Optional[Status] = None

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_data(self, data: Any, title: Optional[str] = None, **kwargs: Any) -> None:
        """Displays a command result in the configured output format.

        Args:
            data: JSON-like value returned by a resource client.
            title: Optional table title (ignored for json/csv).
        """
        logger.debug(f"display_data called: format={self.output_format}, type={type(data).__name__}")
        if self.output_format == "json":
            self._print_plain(json.dumps(data, indent=2, default=str))
        elif self.output_format == "csv":
            self._print_csv(data)
        else:
            self._print_table(data, title)

    def display_report(self, report: str, **kwargs: Any) -> None:
        self._print_plain(report)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self._err_console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self._err_console.print(panel)

    def start_progress(self, message: str) -> None:
        """Starts a spinner on stderr; it renders only when stderr is a terminal."""
        self.stop_progress()
        self._status = self._err_console.status(message)
        self._status.start()

    def update_progress(self, message: str) -> None:
        if self._status is not None:
            self._status.update(message)

    def stop_progress(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message with enhanced styling.

        Args:
            warning_message: The warning message to display.
        """
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self._err_console.print(panel)

    # --- Renderers ---

    def _print_plain(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def _print_csv(self, data: Any) -> None:
        rows = data if isinstance(data, list) else [data]
        if not rows or not all(isinstance(row, dict) for row in rows):
            self._print_plain(json.dumps(data, default=str))
            return
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=_columns(rows), lineterminator="\n")
        writer.writeheader()
        for row in rows:
            writer.writerow({key: _cell(value) for key, value in row.items()})
        self._print_plain(buffer.getvalue().rstrip("\n"))

    def _print_table(self, data: Any, title: Optional[str]) -> None:
        if data is None:
            self.console.print("[dim]No data[/dim]")
            return

        if isinstance(data, dict):
            table = Table(title=title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
            table.add_column("Field", style="cyan")
            table.add_column("Value", style="white")
            for key, value in data.items():
                table.add_row(str(key), _cell(value))
            self.console.print(table)
            return

        if not isinstance(data, list):
            self._print_plain(str(data))
            return

        if not data:
            self.console.print("[dim]No results[/dim]")
            return

        rows = [row if isinstance(row, dict) else {"value": row} for row in data]
        columns = _columns(rows)
        pages = chunk_array(rows, self.page_size)
        for page_number, page in enumerate(pages, start=1):
            page_title = title
            if len(pages) > 1:
                page_title = f"{title or 'Results'} (page {page_number}/{len(pages)})"
            table = Table(title=page_title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
            for column in columns:
                table.add_column(str(column), overflow="fold")
            for row in page:
                table.add_row(*(_cell(row.get(column)) for column in columns))
            self.console.print(table)
        self.console.print(f"[dim]{len(rows)} row(s)[/dim]")
