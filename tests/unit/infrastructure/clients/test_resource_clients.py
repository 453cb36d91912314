import json

import httpx
import pytest
import pytest_asyncio

from basincli.domain.errors import ApiError, ValidationError
from basincli.domain.models.api import ShapingOptions
from basincli.infrastructure.clients import (
    ApiClient, AutomationsClient, ConnectorsClient, PipelinesClient, ProjectsClient, SqlClient,
)
from basincli.infrastructure.clients.base import numeric_id, require

PROJECTS = [
    {"id": 1, "internalId": "N1r8Do", "institutionId": 12, "name": "Sales"},
    {"id": 2, "internalId": "Q7tt0p", "name": "No institution"},
]


@pytest_asyncio.fixture
async def api(fake_api, make_executor):
    executor = make_executor(fake_api.handler)
    async with executor:
        yield ApiClient(executor)


def body_of(request: httpx.Request):
    return json.loads(request.content)


# --- helpers ---

def test_require_strips_and_rejects_blank():
    assert require(" 42 ", "connectorId") == "42"
    with pytest.raises(ValidationError) as exc_info:
        require("  ", "projectId", "Provide a project ID via --project")
    assert exc_info.value.field == "projectId"
    assert "--project" in exc_info.value.format()


def test_numeric_id():
    assert numeric_id("17", "pipelineId") == 17
    with pytest.raises(ValidationError):
        numeric_id("abc", "pipelineId")


# --- projects and ping ---

@pytest.mark.asyncio
async def test_projects_list_applies_shaping(api, fake_api):
    fake_api.add("GET", "/api/my/projects", httpx.Response(200, json=PROJECTS))
    projects = ProjectsClient(api)
    assert await projects.list(ShapingOptions(fields=("id", "name"))) == [
        {"id": 1, "name": "Sales"}, {"id": 2, "name": "No institution"},
    ]


@pytest.mark.asyncio
async def test_ping_skips_authorization(api, fake_api):
    fake_api.add("GET", "/api/ping", httpx.Response(200, json={"status": "ok"}))
    assert await api.ping() is True
    assert "Authorization" not in fake_api.calls("GET", "/api/ping")[0].headers


@pytest.mark.asyncio
async def test_ping_reports_false_when_unreachable(make_executor):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with make_executor(handler) as executor:
        assert await ApiClient(executor).ping() is False


# --- connectors ---

@pytest.mark.asyncio
async def test_connectors_list_defaults_to_count(api, fake_api):
    fake_api.add("GET", "/api/connector", httpx.Response(200, json=[{"id": 1}, {"id": 2}]))
    connectors = ConnectorsClient(api)

    assert await connectors.list("N1r8Do") == {"count": 2}
    request = fake_api.calls("GET", "/api/connector")[0]
    assert request.url.params["internalID"] == "N1r8Do"


@pytest.mark.asyncio
async def test_connectors_list_with_shaping_returns_records(api, fake_api):
    fake_api.add("GET", "/api/connector", httpx.Response(200, json=[{"id": 1, "type": "pg"}, {"id": 2}]))
    result = await ConnectorsClient(api).list(shaping=ShapingOptions(limit=1))
    assert result == [{"id": 1, "type": "pg"}]
    assert "internalID" not in fake_api.calls("GET", "/api/connector")[0].url.params


@pytest.mark.asyncio
async def test_connector_test_posts_empty_body(api, fake_api):
    fake_api.add("POST", "/api/connector/5/test", httpx.Response(200, json={"success": True}))
    assert await ConnectorsClient(api).test("5") == {"success": True}
    assert body_of(fake_api.calls("POST", "/api/connector/5/test")[0]) == {}


@pytest.mark.asyncio
async def test_connector_not_found_surfaces_api_error(api):
    with pytest.raises(ApiError) as exc_info:
        await ConnectorsClient(api).get_by_id("404")
    assert exc_info.value.status_code == 404


# --- pipelines ---

@pytest.mark.asyncio
async def test_pipelines_list_resolves_project_and_owner(api, fake_api):
    fake_api.add("GET", "/api/my/projects", httpx.Response(200, json=PROJECTS))
    fake_api.add("GET", "/api/my/account", httpx.Response(200, json={"id": 99, "email": "a@b.c"}))
    fake_api.add("GET", "/api/pipeline", httpx.Response(200, json=[{"pipelineID": 3}]))

    assert await PipelinesClient(api).list("1") == [{"pipelineID": 3}]

    params = fake_api.calls("GET", "/api/pipeline")[0].url.params
    assert params["internalID"] == "N1r8Do"
    assert params["institutionID"] == "12"
    assert params["ownerID"] == "99"


@pytest.mark.asyncio
@pytest.mark.parametrize("project_id, message", [
    ("missing", "Project not found"),
    ("Q7tt0p", "institutionID"),
])
async def test_pipelines_list_rejects_unusable_projects(api, fake_api, project_id, message):
    fake_api.add("GET", "/api/my/projects", httpx.Response(200, json=PROJECTS))
    with pytest.raises(ValidationError) as exc_info:
        await PipelinesClient(api).list(project_id)
    assert message in exc_info.value.message
    assert not fake_api.calls("GET", "/api/pipeline")


@pytest.mark.asyncio
@pytest.mark.parametrize("projects, account, message", [
    ({"items": PROJECTS}, {"id": 99}, "projects array"),
    (PROJECTS, ["not", "an", "account"], "account object"),
])
async def test_pipelines_list_rejects_malformed_lookups(api, fake_api, projects, account, message):
    """Wrong-shaped lookup responses are API errors, not a missing project."""
    fake_api.add("GET", "/api/my/projects", httpx.Response(200, json=projects))
    fake_api.add("GET", "/api/my/account", httpx.Response(200, json=account))
    with pytest.raises(ApiError) as exc_info:
        await PipelinesClient(api).list("1")
    assert message in exc_info.value.message
    assert exc_info.value.status_code == 200
    assert not fake_api.calls("GET", "/api/pipeline")


@pytest.mark.asyncio
async def test_pipelines_list_requires_project_id(api, fake_api):
    with pytest.raises(ValidationError):
        await PipelinesClient(api).list("")
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_pipeline_run_builds_manual_run_body(api, fake_api):
    fake_api.add("GET", "/api/pipeline/v2/8", httpx.Response(200, json={
        "institutionID": 12, "internalID": "N1r8Do", "ownerID": 99, "pipelineName": "nightly",
    }))
    fake_api.add("POST", "/api/pipeline/run", httpx.Response(200, json={"status": "started"}))

    assert await PipelinesClient(api).run("8") == {"status": "started"}
    assert body_of(fake_api.calls("POST", "/api/pipeline/run")[0]) == {
        "pipelineID": 8,
        "institutionID": 12,
        "internalID": "N1r8Do",
        "ownerID": 99,
        "jobName": "nightly",
        "runType": "manual",
    }


@pytest.mark.asyncio
async def test_pipeline_run_rejects_incomplete_pipeline(api, fake_api):
    fake_api.add("GET", "/api/pipeline/v2/8", httpx.Response(200, json={"institutionID": 12}))
    with pytest.raises(ValidationError) as exc_info:
        await PipelinesClient(api).run("8")
    assert exc_info.value.field == "internalID"
    assert not fake_api.calls("POST", "/api/pipeline/run")


# --- automations ---

@pytest.mark.asyncio
async def test_automations_list_sends_only_given_filters(api, fake_api):
    fake_api.add("GET", "/api/automations", httpx.Response(200, json=[]))
    await AutomationsClient(api).list("N1r8Do", active=True, sort_by="name")
    params = fake_api.calls("GET", "/api/automations")[0].url.params
    assert params.multi_items() == [("internalID", "N1r8Do"), ("active", "true"), ("sortBy", "name")]


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["run", "stop"])
async def test_automation_control_body(api, fake_api, action):
    fake_api.add("GET", "/api/automations/21", httpx.Response(200, json={"institutionID": 12, "internalID": "N1r8Do"}))
    fake_api.add("POST", f"/api/automations/{action}", httpx.Response(200, json={"ok": True}))

    await getattr(AutomationsClient(api), action)("21")

    assert body_of(fake_api.calls("POST", f"/api/automations/{action}")[0]) == {
        "automationID": 21, "institutionID": 12, "internalID": "N1r8Do",
    }


# --- sql ---

@pytest.mark.asyncio
async def test_list_catalogs_handles_double_encoded_json(api, fake_api):
    encoded = json.dumps({"catalogs": ["hive", "main"]})
    fake_api.add("GET", "/api/v2/connector/catalogs/5", httpx.Response(200, json=encoded))
    assert await SqlClient(api).list_catalogs("5") == [{"name": "hive"}, {"name": "main"}]


@pytest.mark.asyncio
async def test_list_tables_normalizes_entries(api, fake_api):
    fake_api.add("GET", "/api/v2/connector/tables/5", httpx.Response(200, json={
        "objects": ["orders", {"name": "v_sales", "type": "VIEW"}],
    }))
    tables = await SqlClient(api).list_tables("5", catalog="main", schema="sales")
    assert tables == [
        {"name": "orders", "type": "TABLE", "catalog": "main", "schema": "sales"},
        {"name": "v_sales", "type": "VIEW", "catalog": "main", "schema": "sales"},
    ]
    params = fake_api.calls("GET", "/api/v2/connector/tables/5")[0].url.params
    assert params.multi_items() == [("catalog", "main"), ("schema", "sales")]


@pytest.mark.asyncio
async def test_listing_without_expected_key_raises(api, fake_api):
    fake_api.add("GET", "/api/v2/connector/schemas/5", httpx.Response(200, json={"unexpected": []}))
    with pytest.raises(ApiError) as exc_info:
        await SqlClient(api).list_schemas("5")
    assert "'schemas'" in exc_info.value.message


@pytest.mark.asyncio
async def test_execute_query_returns_rows(api, fake_api):
    result = {"success": True, "rows": [{"n": 1}], "rowCount": 1}
    fake_api.add("POST", "/api/connector/5/query", httpx.Response(200, json=result))
    assert await SqlClient(api).execute_query("5", "select 1 as n") == result
    assert body_of(fake_api.calls("POST", "/api/connector/5/query")[0]) == {"sql": "select 1 as n"}


@pytest.mark.asyncio
async def test_execute_query_in_band_failure_raises(api, fake_api):
    fake_api.add("POST", "/api/connector/5/query", httpx.Response(200, json={
        "success": False, "error": "relation \"nope\" does not exist",
    }))
    with pytest.raises(ValidationError) as exc_info:
        await SqlClient(api).execute_query("5", "select * from nope")
    assert exc_info.value.message.startswith("Query failed:")
