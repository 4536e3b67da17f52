"""
Generic "call the n8n API and render the outcome as text" layer.

Tools differ only in verb, path and how a successful response is shown, so
the rendering is picked from three views: a list of items, a JSON detail
document, or a one-line confirmation.
"""
import json
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from api_client import ApiResult, N8nClient


@dataclass(frozen=True)
class ListView:
    """Render ``data["data"]`` as one line per item."""

    title: str
    render_item: Callable[[dict[str, Any]], str]
    empty: str = "No items found."


@dataclass(frozen=True)
class DetailView:
    """Render the response body as indented JSON."""

    transform: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class Confirmation:
    """Render a confirmation line, optionally built from the response body."""

    message: Union[str, Callable[[Any], str]]


ResponseView = Union[ListView, DetailView, Confirmation]


def to_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def render_error(client: N8nClient, result: ApiResult) -> str:
    if result.network_failure:
        error = result.data.get("error") if isinstance(result.data, dict) else result.data
        return f"Error: could not reach {client.server.url} ({error})"
    return f"Error {result.status}: {to_json(result.data)}"


def render(view: ResponseView, data: Any) -> str:
    if isinstance(view, ListView):
        items = data.get("data") if isinstance(data, dict) else None
        lines = [f"{view.title}\n"]
        lines.extend(view.render_item(item) for item in items or [])
        if not items:
            lines.append(f"  {view.empty}")
        return "\n".join(lines)

    if isinstance(view, DetailView):
        body = view.transform(data) if view.transform else data
        return json.dumps(body, indent=2, ensure_ascii=False)

    if isinstance(view, Confirmation):
        return view.message(data) if callable(view.message) else view.message

    raise TypeError(f"Unknown response view: {view!r}")


async def invoke(
    client: N8nClient,
    method: str,
    path: str,
    view: ResponseView,
    params: Optional[dict[str, Any]] = None,
    body: Optional[Any] = None
) -> str:
    """
    Issue one API call and render its outcome.

    Args:
        client: Client bound to the target server
        method: HTTP verb
        path: Endpoint path below /api/v1
        view: How to render a successful response
        params: Query parameters
        body: JSON request body

    Returns:
        Rendered success text, or error text for non-2xx and network failures
    """
    result = await client.request(method, path, params=params, json_data=body)
    if not result.ok:
        return render_error(client, result)
    return render(view, result.data)
