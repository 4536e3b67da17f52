"""
Server Registry for the n8n Manager MCP server.

Keeps the named n8n server profiles in a single JSON document
(``{"servers": [...]}``). Every operation reloads the document and every
mutation saves it straight away; there is no in-memory cache.

File access is synchronous and runs on the event loop of the async tool
handlers. The document holds a handful of profiles, so each read or write
is a single small file operation.
"""
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from log_config import get_logger

logger = get_logger("registry")


class NoServerConfigured(LookupError):
    """No server profile could be resolved."""


@dataclass
class ServerProfile:
    name: str
    url: str
    api_key: str
    is_default: bool = False

    @property
    def key_hint(self) -> str:
        """Redacted API key for display."""
        if not self.api_key:
            return "no key"
        return f"key: {self.api_key[:8]}..."

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "apiKey": self.api_key,
            "isDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerProfile":
        return cls(
            name=data["name"],
            url=data.get("url", ""),
            api_key=data.get("apiKey", ""),
            is_default=bool(data.get("isDefault", False)),
        )


class JsonFileStore:
    """Durable record of server profiles backed by one JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> list[ServerProfile]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return [ServerProfile.from_dict(s) for s in data.get("servers", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Could not read server config %s (%s); starting empty", self.path, e)
            return []

    def save(self, servers: list[ServerProfile]) -> None:
        """Replace the stored document atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"servers": [s.to_dict() for s in servers]}, indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".servers-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class ServerRegistry:
    """Named n8n server profiles with single-default selection."""

    def __init__(self, store: JsonFileStore):
        self.store = store

    def resolve(self, name: Optional[str] = None) -> ServerProfile:
        """
        Pick the server a tool call should talk to.

        Args:
            name: Exact profile name. When omitted, the default profile is used
                (the one flagged default, else the first stored one).

        Returns:
            The matching ServerProfile

        Raises:
            NoServerConfigured: nothing stored, or no profile with that name
        """
        servers = self.store.load()
        if name:
            for server in servers:
                if server.name == name:
                    return server
            raise NoServerConfigured(f'Server "{name}" not found. Use n8n_list_servers to see configured servers.')

        if not servers:
            raise NoServerConfigured("No server configured. Use n8n_add_server first.")
        return next((s for s in servers if s.is_default), servers[0])

    def upsert(self, profile: ServerProfile) -> ServerProfile:
        """Add or replace a profile by name; the first profile is always default."""
        servers = [s for s in self.store.load() if s.name != profile.name]

        if profile.is_default:
            for server in servers:
                server.is_default = False

        stored = ServerProfile(
            name=profile.name,
            url=profile.url.rstrip("/"),
            api_key=profile.api_key,
            is_default=profile.is_default or not servers,
        )
        servers.append(stored)
        self.store.save(servers)
        logger.info("Saved server %r (%s)%s", stored.name, stored.url, " as default" if stored.is_default else "")
        return stored

    def remove(self, name: str) -> bool:
        """Delete a profile; returns False when no profile has that name."""
        servers = self.store.load()
        remaining = [s for s in servers if s.name != name]
        if len(remaining) == len(servers):
            return False

        if remaining and not any(s.is_default for s in remaining):
            remaining[0].is_default = True
            logger.info("Server %r is now the default", remaining[0].name)

        self.store.save(remaining)
        logger.info("Removed server %r", name)
        return True

    def list(self) -> list[ServerProfile]:
        """Profiles in stored order."""
        return self.store.load()
