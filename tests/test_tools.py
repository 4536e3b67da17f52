import json
import logging

import httpx
import pytest
from fastmcp import Client

import main
from log_config import ROOT_LOGGER


async def call(tool: str, **arguments) -> str:
    async with Client(main.mcp) as client:
        result = await client.call_tool(tool, arguments)
    return result.content[0].text


@pytest.mark.asyncio
async def test_tools_report_missing_server(tool_registry, fake_n8n):
    text = await call("n8n_list_workflows")
    assert text == "Error: No server configured. Use n8n_add_server first."
    assert fake_n8n.requests == []


@pytest.mark.asyncio
async def test_unknown_server_name(prod_server, fake_n8n):
    text = await call("n8n_get_workflow", workflow_id="1", server_name="staging")
    assert text.startswith('Error: Server "staging" not found.')
    assert fake_n8n.requests == []


@pytest.mark.asyncio
async def test_list_workflows(prod_server, fake_n8n):
    fake_n8n.add("GET", "/workflows", json_body={"data": [
        {"id": "1", "name": "Daily report", "active": True, "nodes": [{}, {}]},
        {"id": "2", "name": "Draft", "active": False},
    ]})

    text = await call("n8n_list_workflows")

    assert fake_n8n.requests[0].url.params["limit"] == "100"
    assert text.splitlines() == [
        "Workflows on prod (http://n8n.local:5678):",
        "",
        "  [1] Daily report (2 nodes, ACTIVE)",
        "  [2] Draft (0 nodes, inactive)",
    ]


@pytest.mark.asyncio
async def test_list_workflows_remote_error(prod_server, fake_n8n):
    fake_n8n.add("GET", "/workflows", status=401, text="unauthorized")
    assert await call("n8n_list_workflows") == 'Error 401: {"error":"unauthorized"}'


@pytest.mark.asyncio
async def test_get_workflow_returns_json(prod_server, fake_n8n):
    fake_n8n.add("GET", "/workflows/7", json_body={"id": "7", "name": "w"})
    assert json.loads(await call("n8n_get_workflow", workflow_id="7")) == {"id": "7", "name": "w"}


@pytest.mark.asyncio
async def test_create_workflow_posts_canonical_document(prod_server, fake_n8n):
    fake_n8n.add("POST", "/workflows", json_body={"id": "abc", "name": "chain"})

    text = await call(
        "n8n_create_workflow",
        name="chain",
        nodes=[{"type": "A", "name": "n1"}, {"type": "B", "name": "n2"}],
        connections=[{"from_node": "n1", "to_node": "n2"}],
    )

    assert text == 'Workflow created: "chain" (ID: abc) on prod'
    body = fake_n8n.body()
    assert body["connections"] == {"n1": {"main": [[{"node": "n2", "type": "main", "index": 0}]]}}
    assert [n["position"] for n in body["nodes"]] == [[0, 300], [250, 300]]
    assert len(fake_n8n.requests) == 1


@pytest.mark.asyncio
async def test_create_and_activate(prod_server, fake_n8n):
    fake_n8n.add("POST", "/workflows", json_body={"id": "abc", "name": "chain"})
    fake_n8n.add("PATCH", "/workflows/abc", json_body={"id": "abc", "active": True})

    text = await call("n8n_create_workflow", name="chain", nodes=[{"type": "A", "name": "n1"}], activate=True)

    assert text == 'Workflow created: "chain" (ID: abc) [ACTIVE] on prod'
    assert fake_n8n.body() == {"active": True}


@pytest.mark.asyncio
async def test_create_reports_failed_activation_with_created_id(prod_server, fake_n8n):
    fake_n8n.add("POST", "/workflows", json_body={"id": "abc", "name": "chain"})
    fake_n8n.add("PATCH", "/workflows/abc", status=400, text="no trigger node")

    text = await call("n8n_create_workflow", name="chain", nodes=[{"type": "A", "name": "n1"}], activate=True)

    assert text == 'Workflow created (ID: abc) but activation failed: {"error":"no trigger node"}'


@pytest.mark.asyncio
async def test_update_rejects_invalid_json(prod_server, fake_n8n):
    text = await call("n8n_update_workflow", workflow_id="1", workflow_json="{oops")
    assert text.startswith("Invalid JSON:")
    assert fake_n8n.requests == []


@pytest.mark.asyncio
async def test_update_workflow(prod_server, fake_n8n):
    fake_n8n.add("PUT", "/workflows/1", json_body={"id": "1"})
    text = await call("n8n_update_workflow", workflow_id="1", workflow_json='{"name": "w", "nodes": []}')
    assert text == "Workflow 1 updated successfully on prod"
    assert fake_n8n.body() == {"name": "w", "nodes": []}


@pytest.mark.asyncio
async def test_delete_and_activate(prod_server, fake_n8n):
    fake_n8n.add("DELETE", "/workflows/1", json_body={"id": "1"})
    fake_n8n.add("PATCH", "/workflows/2", json_body={"id": "2"})

    assert await call("n8n_delete_workflow", workflow_id="1") == "Workflow 1 deleted from prod"
    assert await call("n8n_activate_workflow", workflow_id="2", active=False) == "Workflow 2 deactivated on prod"
    assert fake_n8n.body() == {"active": False}


@pytest.mark.asyncio
async def test_list_executions_filters_and_durations(prod_server, fake_n8n):
    fake_n8n.add("GET", "/executions", json_body={"data": [
        {
            "id": "10", "workflowId": "1", "status": "success",
            "startedAt": "2024-05-01T10:00:00.000Z", "stoppedAt": "2024-05-01T10:00:02.500Z",
            "workflowData": {"name": "Daily report"},
        },
        {"id": "11", "workflowId": "1", "status": "waiting", "startedAt": "2024-05-01T10:01:00.000Z"},
    ]})

    text = await call("n8n_list_executions", workflow_id="1", status="success")

    params = fake_n8n.requests[0].url.params
    assert (params["limit"], params["workflowId"], params["status"]) == ("20", "1", "success")
    assert "  [10] Daily report -- SUCCESS (2.5s)" in text.splitlines()
    assert "  [11] WF#1 -- WAITING (running)" in text.splitlines()


@pytest.mark.asyncio
async def test_list_executions_empty(prod_server, fake_n8n):
    fake_n8n.add("GET", "/executions", json_body={"data": []})
    assert (await call("n8n_list_executions")).endswith("  No executions found.")


@pytest.mark.asyncio
async def test_server_management(tool_registry):
    assert await call("n8n_list_servers") == "No servers configured. Use n8n_add_server to add one."

    assert await call("n8n_add_server", name="prod", url="http://prod:5678/", api_key="abcdefghijkl") == (
        'Server "prod" added (http://prod:5678). Set as default.'
    )
    await call("n8n_add_server", name="staging", url="http://staging:5678", api_key="zyxwvutsrqpo")

    listing = await call("n8n_list_servers")
    assert "  prod: http://prod:5678 (key: abcdefgh...) [DEFAULT]" in listing
    assert "  staging: http://staging:5678 (key: zyxwvuts...)" in listing
    assert "abcdefghijkl" not in listing

    assert await call("n8n_remove_server", server_name="prod") == 'Server "prod" removed.'
    assert await call("n8n_remove_server", server_name="prod") == 'Server "prod" not found.'
    assert tool_registry.resolve().name == "staging"
    assert tool_registry.resolve().is_default


@pytest.mark.asyncio
async def test_ping_server(prod_server, fake_n8n):
    fake_n8n.add("GET", "/workflows", json_body={"data": []})
    text = await call("n8n_ping_server")
    assert text.startswith('Server "prod" (http://n8n.local:5678) is reachable. Response time: ')
    assert fake_n8n.requests[0].url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_ping_server_network_failure(prod_server, fake_n8n):
    fake_n8n.fail_with = httpx.ConnectError("Connection refused")
    text = await call("n8n_ping_server")
    assert text == (
        'Server "prod" (http://n8n.local:5678) unreachable. '
        'Status: 0, Error: {"error":"Connection refused"}'
    )


@pytest.mark.asyncio
async def test_export_strips_server_fields(prod_server, fake_n8n):
    fake_n8n.add("GET", "/workflows/5", json_body={
        "id": "5", "name": "w", "nodes": [], "connections": {}, "active": True,
        "tags": [], "createdAt": "x", "updatedAt": "y", "versionId": "v",
    })
    exported = json.loads(await call("n8n_export_workflow", workflow_id="5"))
    assert exported == {"name": "w", "nodes": [], "connections": {}}


@pytest.mark.asyncio
async def test_import_without_connections_makes_no_request(prod_server, fake_n8n):
    text = await call("n8n_import_workflow", workflow_json='{"name": "w", "nodes": []}')
    assert text == "Invalid workflow: missing 'nodes' or 'connections'"
    assert fake_n8n.requests == []


@pytest.mark.asyncio
async def test_import_sanitizes_and_activates(prod_server, fake_n8n):
    fake_n8n.add("POST", "/workflows", json_body={"id": "new", "name": "w"})
    fake_n8n.add("PATCH", "/workflows/new", status=500, text="boom")
    document = {"id": "5", "name": "w", "nodes": [], "connections": {}, "active": True, "tags": []}

    text = await call("n8n_import_workflow", workflow_json=json.dumps(document), activate=True)

    assert text == 'Workflow imported (ID: new) but activation failed: {"error":"boom"}'
    assert fake_n8n.body(0) == {"name": "w", "nodes": [], "connections": {}}


@pytest.mark.asyncio
async def test_describe_nodes_by_category():
    text = await call("n8n_describe_nodes", category="logic")
    assert text.startswith("n8n Node Types (logic):")
    assert "[LOGIC] n8n-nodes-base.if" in text
    assert "[TRIGGER]" not in text

    assert "@n8n/n8n-nodes-langchain.agent" in await call("n8n_describe_nodes")


@pytest.mark.parametrize("started, stopped", [
    ("2024-05-01T10:00:00", "2024-05-01T10:00:02.500Z"),
    (1714557600, "2024-05-01T10:00:02.500Z"),
    ("yesterday", "2024-05-01T10:00:02.500Z"),
])
def test_execution_line_with_unparseable_timestamps(started, stopped):
    line = main._execution_line({
        "id": "10", "workflowId": "1", "status": "error",
        "startedAt": started, "stoppedAt": stopped,
    })
    assert line == "  [10] WF#1 -- ERROR (unknown)"


def test_startup_failure_exits_with_status_1(monkeypatch, caplog):
    def failing_run(*args, **kwargs):
        raise RuntimeError("transport broke")

    monkeypatch.setattr(main, "init_logger", lambda **kwargs: None)
    monkeypatch.setattr(logging.getLogger(ROOT_LOGGER), "propagate", True)
    monkeypatch.setattr(main.mcp, "run", failing_run)

    with caplog.at_level(logging.ERROR, logger=ROOT_LOGGER):
        with pytest.raises(SystemExit) as exc_info:
            main.main()

    assert exc_info.value.code == 1
    record = next(r for r in caplog.records if r.message == "Fatal error")
    assert "transport broke" in str(record.exc_info[1])


def test_http_transport_uses_host_and_port(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "init_logger", lambda **kwargs: None)
    monkeypatch.setattr(main, "MCP_TRANSPORT", "http")
    monkeypatch.setattr(main, "HOST", "127.0.0.1")
    monkeypatch.setattr(main, "PORT", 9123)
    monkeypatch.setattr(main.mcp, "run", lambda *args, **kwargs: calls.append(kwargs))

    main.main()

    assert calls == [{"transport": "http", "host": "127.0.0.1", "port": 9123}]


def test_stdio_transport_is_default(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "init_logger", lambda **kwargs: None)
    monkeypatch.setattr(main, "MCP_TRANSPORT", "stdio")
    monkeypatch.setattr(main.mcp, "run", lambda *args, **kwargs: calls.append(kwargs))

    main.main()

    assert calls == [{}]
