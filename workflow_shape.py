"""
Workflow shape translation between the simplified tool input and n8n's
workflow document format.
"""
import json
from typing import Any, Optional

from pydantic import BaseModel, Field

# Fields n8n assigns itself and rejects on POST /workflows
SERVER_ASSIGNED_FIELDS = ("id", "tags", "active", "createdAt", "updatedAt", "versionId")

GRID_SPACING = 250
GRID_ROW = 300


class WorkflowValidationError(ValueError):
    """Caller-supplied workflow data is malformed."""


class NodeSpec(BaseModel):
    type: str = Field(description="n8n node type, e.g. 'n8n-nodes-base.webhook'")
    name: str = Field(description="Node display name")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Node parameters")
    position: Optional[list[float]] = Field(default=None, description="[x, y] position")


class ConnectionSpec(BaseModel):
    from_node: str = Field(description="Source node name")
    to_node: str = Field(description="Target node name")
    from_output: int = Field(default=0, ge=0, description="Output index on the source node")
    to_input: int = Field(default=0, ge=0, description="Input index on the target node")


def to_canonical(
    name: str,
    nodes: list[NodeSpec],
    connections: Optional[list[ConnectionSpec]] = None,
) -> dict[str, Any]:
    """
    Build an n8n workflow document from node and connection specs.

    Nodes without a position are laid out left to right on one row.
    Connections are grouped by source node into ``main`` output slots;
    the slot list is padded with empty slots up to ``from_output``.
    """
    n8n_nodes = [
        {
            "parameters": dict(node.parameters),
            "type": node.type,
            "typeVersion": 1,
            "position": list(node.position) if node.position else [GRID_SPACING * i, GRID_ROW],
            "name": node.name,
        }
        for i, node in enumerate(nodes)
    ]

    n8n_connections: dict[str, dict[str, list[list[dict[str, Any]]]]] = {}
    for conn in connections or []:
        main = n8n_connections.setdefault(conn.from_node, {"main": [[]]})["main"]
        while len(main) <= conn.from_output:
            main.append([])
        main[conn.from_output].append({
            "node": conn.to_node,
            "type": "main",
            "index": conn.to_input,
        })

    return {
        "name": name,
        "nodes": n8n_nodes,
        "connections": n8n_connections,
        "settings": {"executionOrder": "v1"},
    }


def parse_workflow_json(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise WorkflowValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise WorkflowValidationError("Invalid JSON: workflow must be a JSON object")
    return data


def _strip_server_fields(document: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in document.items() if k not in SERVER_ASSIGNED_FIELDS}


def _is_missing(value: Any) -> bool:
    # Empty lists and objects still count as present
    return value is None or (not value and not isinstance(value, (list, dict)))


def sanitize_for_import(document: dict[str, Any]) -> dict[str, Any]:
    """Validate an imported workflow and drop fields n8n rejects on creation."""
    if _is_missing(document.get("nodes")) or _is_missing(document.get("connections")):
        raise WorkflowValidationError("Invalid workflow: missing 'nodes' or 'connections'")
    return _strip_server_fields(document)


def sanitize_for_export(document: dict[str, Any]) -> dict[str, Any]:
    """Portable copy of a fetched workflow."""
    return _strip_server_fields(document)
