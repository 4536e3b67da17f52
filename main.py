"""
n8n Manager MCP Server - FastMCP Implementation

Provides 14 tools for managing n8n workflows, executions and server
connections. Talks to one or more n8n servers through their REST API
(/api/v1). Runs over stdio by default; set MCP_TRANSPORT=http for HTTP.
"""
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Optional

import httpx
from fastmcp import FastMCP

import node_catalog
from api_client import N8nClient
from log_config import get_logger, init_logger
from results import Confirmation, DetailView, ListView, invoke, render_error, to_json
from server_registry import JsonFileStore, NoServerConfigured, ServerProfile, ServerRegistry
from workflow_shape import (
    ConnectionSpec,
    NodeSpec,
    WorkflowValidationError,
    parse_workflow_json,
    sanitize_for_export,
    sanitize_for_import,
    to_canonical,
)

# Initialize FastMCP server (standard pattern)
mcp = FastMCP("n8n Manager")

logger = get_logger("server")

# Configuration from environment variables
CONFIG_DIR = Path(os.getenv("N8N_MANAGER_CONFIG_DIR", str(Path.home() / ".n8n-manager-mcp")))
CONFIG_FILE = CONFIG_DIR / "servers.json"
HTTP_TIMEOUT = float(os.getenv("N8N_MANAGER_HTTP_TIMEOUT", "30"))
MCP_TRANSPORT = os.getenv("MCP_TRANSPORT", "stdio")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
LOG_DIR = os.getenv("LOG_DIR")

registry = ServerRegistry(JsonFileStore(CONFIG_FILE))

# Swapped for httpx.MockTransport in tests; None uses the network
HTTP_TRANSPORT: Optional[httpx.AsyncBaseTransport] = None


def _client(server: ServerProfile) -> N8nClient:
    return N8nClient(server, transport=HTTP_TRANSPORT, timeout=HTTP_TIMEOUT)


def _workflow_line(wf: dict[str, Any]) -> str:
    node_count = len(wf.get("nodes") or [])
    status = "ACTIVE" if wf.get("active") else "inactive"
    return f"  [{wf.get('id')}] {wf.get('name')} ({node_count} nodes, {status})"


def _parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _execution_line(ex: dict[str, Any]) -> str:
    name = (ex.get("workflowData") or {}).get("name") or f"WF#{ex.get('workflowId')}"
    started, stopped = ex.get("startedAt"), ex.get("stoppedAt")
    if started and stopped:
        try:
            seconds = (_parse_timestamp(stopped) - _parse_timestamp(started)).total_seconds()
            duration = f"{seconds:.1f}s"
        except (ValueError, TypeError, AttributeError):
            duration = "unknown"
    else:
        duration = "running"
    status = (ex.get("status") or "unknown").upper()
    return f"  [{ex.get('id')}] {name} -- {status} ({duration})"


async def _create_workflow(
    client: N8nClient,
    document: dict[str, Any],
    verb: str,
    activate: bool
) -> str:
    """POST a workflow, then activate it in a second call if asked."""
    result = await client.request("POST", "/workflows", json_data=document)
    if not result.ok:
        return render_error(client, result)

    created = result.data if isinstance(result.data, dict) else {}
    created_id = created.get("id") or "unknown"
    logger.info("Workflow %s on %s (ID: %s)", verb, client.server.name, created_id)

    # POST rejects 'active', so activation is a separate PATCH
    activated = False
    if activate and created_id != "unknown":
        act_result = await client.request("PATCH", f"/workflows/{created_id}", json_data={"active": True})
        if not act_result.ok:
            return f"Workflow {verb} (ID: {created_id}) but activation failed: {to_json(act_result.data)}"
        activated = True

    name = created.get("name") or document.get("name")
    suffix = " [ACTIVE]" if activated else ""
    return f'Workflow {verb}: "{name}" (ID: {created_id}){suffix} on {client.server.name}'


# ============================================================
# WORKFLOWS TOOLS
# ============================================================

@mcp.tool(name="n8n_list_workflows")
async def list_workflows(server_name: Optional[str] = None, limit: int = 100) -> str:
    """
    List all workflows on an n8n server.

    Returns workflow names, IDs, active status, and node counts.

    Args:
        server_name: Server name from config. Uses default if omitted.
        limit: Max number of workflows to return (default: 100)
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    view = ListView(
        title=f"Workflows on {server.name} ({server.url}):",
        render_item=_workflow_line,
        empty="No workflows found."
    )
    async with _client(server) as client:
        return await invoke(client, "GET", "/workflows", view, params={"limit": limit})


@mcp.tool(name="n8n_get_workflow")
async def get_workflow(workflow_id: str, server_name: Optional[str] = None) -> str:
    """
    Get detailed information about a specific n8n workflow.

    Includes all nodes, connections, and settings.

    Args:
        workflow_id: n8n workflow ID
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    async with _client(server) as client:
        return await invoke(client, "GET", f"/workflows/{workflow_id}", DetailView())


@mcp.tool(name="n8n_create_workflow")
async def create_workflow(
    name: str,
    nodes: list[NodeSpec],
    connections: Optional[list[ConnectionSpec]] = None,
    server_name: Optional[str] = None,
    activate: bool = False
) -> str:
    """
    Create a new n8n workflow from a list of nodes and connections.

    Nodes without a position are placed left to right (x = 250 * index, y = 300).
    Connections link a source node output to a target node input by node name.

    Args:
        name: Workflow name
        nodes: Workflow nodes, each with:
            - type: n8n node type, e.g. "n8n-nodes-base.webhook"
            - name: Node display name (referenced by connections)
            - parameters: Optional node parameters
            - position: Optional [x, y] canvas position
        connections: Optional connections, each with:
            - from_node: Source node name
            - to_node: Target node name
            - from_output: Source output index (default: 0)
            - to_input: Target input index (default: 0)
        server_name: Server name. Uses default if omitted.
        activate: Activate workflow after creation (default: False)

    Example:
        create_workflow(
            name="Daily report",
            nodes=[
                {"type": "n8n-nodes-base.scheduleTrigger", "name": "Every morning"},
                {"type": "n8n-nodes-base.httpRequest", "name": "Fetch", "parameters": {"url": "https://example.com"}}
            ],
            connections=[{"from_node": "Every morning", "to_node": "Fetch"}]
        )
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    workflow = to_canonical(name, nodes, connections)
    async with _client(server) as client:
        return await _create_workflow(client, workflow, "created", activate)


@mcp.tool(name="n8n_update_workflow")
async def update_workflow(workflow_id: str, workflow_json: str, server_name: Optional[str] = None) -> str:
    """
    Update an existing n8n workflow. Send the full updated workflow JSON.

    Args:
        workflow_id: n8n workflow ID to update
        workflow_json: Full workflow JSON as string
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    try:
        data = parse_workflow_json(workflow_json)
    except WorkflowValidationError as e:
        return str(e)

    view = Confirmation(f"Workflow {workflow_id} updated successfully on {server.name}")
    async with _client(server) as client:
        return await invoke(client, "PUT", f"/workflows/{workflow_id}", view, body=data)


@mcp.tool(name="n8n_delete_workflow")
async def delete_workflow(workflow_id: str, server_name: Optional[str] = None) -> str:
    """
    Delete a workflow from an n8n server. This action cannot be undone.

    Args:
        workflow_id: n8n workflow ID to delete
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    view = Confirmation(f"Workflow {workflow_id} deleted from {server.name}")
    async with _client(server) as client:
        return await invoke(client, "DELETE", f"/workflows/{workflow_id}", view)


@mcp.tool(name="n8n_activate_workflow")
async def activate_workflow(workflow_id: str, active: bool, server_name: Optional[str] = None) -> str:
    """
    Activate or deactivate an n8n workflow.

    Args:
        workflow_id: n8n workflow ID
        active: true to activate, false to deactivate
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    state = "activated" if active else "deactivated"
    view = Confirmation(f"Workflow {workflow_id} {state} on {server.name}")
    async with _client(server) as client:
        return await invoke(client, "PATCH", f"/workflows/{workflow_id}", view, body={"active": active})


# ============================================================
# EXECUTIONS TOOLS
# ============================================================

@mcp.tool(name="n8n_list_executions")
async def list_executions(
    workflow_id: Optional[str] = None,
    status: Optional[Literal["success", "error", "waiting"]] = None,
    limit: int = 20,
    server_name: Optional[str] = None
) -> str:
    """
    List recent workflow executions on an n8n server.

    Shows status and duration for each run.

    Args:
        workflow_id: Filter by workflow ID
        status: Filter by status (success, error, or waiting)
        limit: Max results (default: 20)
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    params: dict[str, Any] = {"limit": limit}
    if workflow_id:
        params["workflowId"] = workflow_id
    if status:
        params["status"] = status

    view = ListView(
        title=f"Recent executions on {server.name}:",
        render_item=_execution_line,
        empty="No executions found."
    )
    async with _client(server) as client:
        return await invoke(client, "GET", "/executions", view, params=params)


# ============================================================
# SERVERS TOOLS
# ============================================================

@mcp.tool(name="n8n_add_server")
async def add_server(name: str, url: str, api_key: str, is_default: bool = False) -> str:
    """
    Add or update an n8n server connection.

    The API key can be created in n8n under Settings > API.
    The first server added becomes the default.

    Args:
        name: Server name (e.g. "production", "staging")
        url: n8n server URL (e.g. "http://localhost:5678")
        api_key: n8n API key (from Settings > API in n8n)
        is_default: Set as default server (default: False)
    """
    stored = registry.upsert(ServerProfile(name=name, url=url, api_key=api_key, is_default=is_default))
    suffix = " Set as default." if stored.is_default else ""
    return f'Server "{stored.name}" added ({stored.url}).{suffix}'


@mcp.tool(name="n8n_list_servers")
async def list_servers() -> str:
    """
    List all configured n8n server connections.

    API keys are shown truncated.
    """
    servers = registry.list()
    if not servers:
        return "No servers configured. Use n8n_add_server to add one."

    lines = ["Configured n8n servers:\n"]
    for server in servers:
        default = " [DEFAULT]" if server.is_default else ""
        lines.append(f"  {server.name}: {server.url} ({server.key_hint}){default}")
    return "\n".join(lines)


@mcp.tool(name="n8n_ping_server")
async def ping_server(server_name: Optional[str] = None) -> str:
    """
    Test the connection to an n8n server.

    Args:
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    async with _client(server) as client:
        result = await client.request("GET", "/workflows", params={"limit": 1})

    if result.ok:
        return f'Server "{server.name}" ({server.url}) is reachable. Response time: {result.elapsed_ms}ms'
    return (
        f'Server "{server.name}" ({server.url}) unreachable. '
        f"Status: {result.status}, Error: {to_json(result.data)}"
    )


@mcp.tool(name="n8n_remove_server")
async def remove_server(server_name: str) -> str:
    """
    Remove an n8n server from the configuration.

    If the default server is removed, the first remaining server becomes default.

    Args:
        server_name: Name of the server to remove
    """
    if not registry.remove(server_name):
        return f'Server "{server_name}" not found.'
    return f'Server "{server_name}" removed.'


# ============================================================
# IMPORT/EXPORT TOOLS
# ============================================================

@mcp.tool(name="n8n_export_workflow")
async def export_workflow(workflow_id: str, server_name: Optional[str] = None) -> str:
    """
    Export a workflow from an n8n server as JSON.

    Server-assigned fields (id, tags, active, createdAt, updatedAt, versionId)
    are removed so the result can be imported into another n8n instance.

    Args:
        workflow_id: n8n workflow ID to export
        server_name: Server name. Uses default if omitted.
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    view = DetailView(transform=lambda wf: sanitize_for_export(wf) if isinstance(wf, dict) else wf)
    async with _client(server) as client:
        return await invoke(client, "GET", f"/workflows/{workflow_id}", view)


@mcp.tool(name="n8n_import_workflow")
async def import_workflow(workflow_json: str, server_name: Optional[str] = None, activate: bool = False) -> str:
    """
    Import a workflow JSON onto an n8n server.

    Takes a full n8n workflow JSON (e.g. from n8n_export_workflow) and creates it
    on the server. The JSON must contain 'nodes' and 'connections'.

    Args:
        workflow_json: Complete n8n workflow JSON as string
        server_name: Target server name. Uses default if omitted.
        activate: Activate after import (default: False)
    """
    try:
        server = registry.resolve(server_name)
    except NoServerConfigured as e:
        return f"Error: {e}"

    try:
        workflow = sanitize_for_import(parse_workflow_json(workflow_json))
    except WorkflowValidationError as e:
        return str(e)

    async with _client(server) as client:
        return await _create_workflow(client, workflow, "imported", activate)


# ============================================================
# NODE CATALOG TOOL
# ============================================================

@mcp.tool(name="n8n_describe_nodes")
async def describe_nodes(category: node_catalog.NodeCategory = "all") -> str:
    """
    Get information about common n8n node types.

    Useful for understanding which nodes to use when building workflows.

    Args:
        category: Filter by category (trigger, action, logic, transform, ai, or all)
    """
    return node_catalog.describe(category)


# ============================================================
# SERVER STARTUP
# ============================================================

def main() -> None:
    init_logger(log_dir=LOG_DIR)
    logger.info("Starting n8n Manager MCP (%s transport, config: %s)", MCP_TRANSPORT, CONFIG_FILE)
    try:
        if MCP_TRANSPORT == "http":
            mcp.run(transport="http", host=HOST, port=PORT)
        else:
            mcp.run()
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    main()
