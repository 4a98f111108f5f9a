"""Engine communication via GraphQL over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from langdag.config import EngineConfig
from langdag.engine.querybuilder import Selection
from langdag.engine.sources import ModuleSource, Secret
from langdag.errors import EngineError

logger = logging.getLogger(__name__)


class EngineClient:
    """
    Talk to the module engine's GraphQL endpoint.

    One client is created at startup and shared by every loaded module and
    tool; ``httpx.AsyncClient`` is safe for concurrent requests. No timeout
    is applied: cancel the calling task to abort a request.
    """

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        auth = httpx.BasicAuth(token, "") if token else None
        self._http = http or httpx.AsyncClient(auth=auth, timeout=None)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "EngineClient":
        if not config.port:
            raise EngineError("engine session port not configured (set DAGGER_SESSION_PORT)")
        return cls(f"http://{config.host}:{config.port}/query", token=config.token)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "EngineClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── GraphQL ───────────────────────────────────────────────────────────

    async def do(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a GraphQL request and return its ``data``.

        Variables are never logged: they may carry secret plaintext.
        """
        logger.debug("sending query: %s", query)
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._http.post(self.endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise EngineError(f"engine returned HTTP {exc.response.status_code}: {exc.response.text}") from exc
        except httpx.HTTPError as exc:
            raise EngineError(f"engine request failed: {exc}") from exc
        except ValueError as exc:
            raise EngineError(f"engine returned invalid JSON: {exc}") from exc

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise EngineError(f"engine error: {messages}", errors=errors)
        return body.get("data") or {}

    async def execute(self, selection: Selection) -> Any:
        """Run a selection chain and return the leaf value."""
        data = await self.do(selection.build())
        return selection.unpack(data)

    # ── API objects ───────────────────────────────────────────────────────

    def module_source(self, ref: str, ref_pin: Optional[str] = None) -> ModuleSource:
        q = Selection().select("moduleSource").arg("refString", ref)
        if ref_pin:
            q = q.arg("refPin", ref_pin)
        return ModuleSource(self, q)

    async def set_secret(self, name: str, plaintext: str) -> Secret:
        """Register a secret and return its opaque handle."""
        data = await self.do(
            "query SetSecret($name: String!, $plaintext: String!) "
            "{ setSecret(name: $name, plaintext: $plaintext) { id } }",
            {"name": name, "plaintext": plaintext},
        )
        secret_id = (data.get("setSecret") or {}).get("id")
        if not secret_id:
            raise EngineError(f"engine did not return an id for secret {name!r}")
        return Secret(name, secret_id)
