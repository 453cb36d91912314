import io
import json

import pytest
from rich.console import Console

from basincli.infrastructure.cli.display import ConsoleDisplay


def make_console() -> Console:
    return Console(file=io.StringIO(), width=120, color_system=None, force_terminal=False)


@pytest.fixture
def consoles():
    return make_console(), make_console()


@pytest.fixture
def console_display(consoles):
    """ConsoleDisplay writing into in-memory consoles."""
    out, err = consoles
    return ConsoleDisplay(console=out, err_console=err)


def stdout_of(consoles) -> str:
    return consoles[0].file.getvalue()


def stderr_of(consoles) -> str:
    return consoles[1].file.getvalue()


def test_json_output_is_parseable(console_display, consoles):
    """JSON mode prints the value verbatim, with no rich markup applied."""
    console_display.output_format = "json"
    data = [{"id": 1, "name": "[bold]raw[/bold]"}]
    console_display.display_data(data, title="ignored")
    assert json.loads(stdout_of(consoles)) == data


def test_csv_output_uses_union_of_columns(console_display, consoles):
    console_display.output_format = "csv"
    console_display.display_data([{"id": 1, "name": "a"}, {"id": 2, "tags": ["x"]}])
    lines = stdout_of(consoles).strip().splitlines()
    assert lines[0] == "id,name,tags"
    assert lines[1] == "1,a,"
    assert lines[2] == '2,,"[""x""]"'


def test_table_for_single_record(console_display, consoles):
    console_display.display_data({"id": 7, "status": "active"}, title="Connector 7")
    output = stdout_of(consoles)
    assert "Connector 7" in output
    assert "Field" in output and "Value" in output
    assert "status" in output and "active" in output


def test_table_for_list_counts_rows(console_display, consoles):
    console_display.display_data([{"id": 1, "name": "Sales analytics"}, {"id": 2, "name": "Operations"}], title="Projects")
    output = stdout_of(consoles)
    assert "Projects" in output
    assert "2 row(s)" in output
    assert "page" not in output


def test_long_lists_are_paginated(consoles):
    out, err = consoles
    display = ConsoleDisplay(page_size=2, console=out, err_console=err)
    display.display_data([{"id": i, "name": f"nightly-ingest-pipeline-{i}"} for i in range(5)], title="Pipelines")
    output = stdout_of(consoles)
    assert "Pipelines (page 1/3)" in output
    assert "Pipelines (page 3/3)" in output
    assert "5 row(s)" in output


@pytest.mark.parametrize("data, expected", [
    (None, "No data"),
    ([], "No results"),
    ({"count": 3}, "count"),
])
def test_table_edge_values(console_display, consoles, data, expected):
    console_display.display_data(data)
    assert expected in stdout_of(consoles)


def test_report_is_printed_plain(console_display, consoles):
    report = "Successfully processed 1 connector:\n  - [1]"
    console_display.display_report(report)
    assert stdout_of(consoles).rstrip("\n") == report


def test_messages_go_to_stderr(console_display, consoles):
    console_display.display_error("Something went wrong")
    console_display.display_warning("Large response")
    console_display.display_info("Showing count only")
    assert stdout_of(consoles) == ""
    output = stderr_of(consoles)
    assert "Error" in output and "Something went wrong" in output
    assert "Warning" in output and "Large response" in output
    assert "Info" in output and "Showing count only" in output


def test_progress_never_touches_stdout(console_display, consoles):
    """The bulk spinner lives on stderr and is transient, so piped results stay clean."""
    console_display.start_progress("Connector: 0 ok, 0 failed / 3")
    console_display.update_progress("Connector: 1 ok, 0 failed / 3")
    console_display.stop_progress()
    console_display.stop_progress()
    console_display.update_progress("ignored once stopped")
    assert stdout_of(consoles) == ""
    assert "ignored" not in stderr_of(consoles)
