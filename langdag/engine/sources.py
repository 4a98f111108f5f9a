"""Handles for engine objects that are passed around by ID."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from langdag.engine.querybuilder import Selection
from langdag.errors import QueryBuildError

if TYPE_CHECKING:
    from langdag.engine.client import EngineClient


class ModuleSourceKind(str, Enum):
    LOCAL = "LOCAL_SOURCE"
    GIT = "GIT_SOURCE"
    DIR = "DIR_SOURCE"


class Secret:
    """Opaque handle to a secret registered with the engine.

    Only the engine-issued ID is kept; the plaintext never lives here.
    """

    def __init__(self, name: str, secret_id: str):
        self.name = name
        self._id = secret_id

    def graphql_id(self) -> str:
        return self._id

    def __repr__(self) -> str:
        return f"Secret({self.name!r})"


class ModuleSource:
    """Lazy reference to a ``ModuleSource`` in the engine.

    Methods that return scalars query the engine; methods that return
    objects only extend the selection chain.
    """

    def __init__(self, client: "EngineClient", query: Selection):
        self._client = client
        self._query = query
        self._id: Optional[str] = None

    async def kind(self) -> ModuleSourceKind:
        raw = await self._client.execute(self._query.select("kind"))
        try:
            return ModuleSourceKind(raw)
        except ValueError:
            # unknown kinds are returned raw and rejected by the resolver
            return raw

    async def config_exists(self) -> bool:
        return bool(await self._client.execute(self._query.select("configExists")))

    async def as_string(self) -> str:
        return await self._client.execute(self._query.select("asString"))

    async def id(self) -> str:
        if self._id is None:
            self._id = await self._client.execute(self._query.select("id"))
        return self._id

    def graphql_id(self) -> str:
        if self._id is None:
            raise QueryBuildError("module source ID not loaded yet, await id() first")
        return self._id

    async def resolve_context_path_from_caller(self) -> str:
        return await self._client.execute(self._query.select("resolveContextPathFromCaller"))

    def resolve_from_caller(self) -> "ModuleSource":
        return ModuleSource(self._client, self._query.select("resolveFromCaller"))

    async def serve(self) -> None:
        """Initialize the module and install it into the session's schema."""
        await self._client.execute(self._query.select("asModule").select("initialize").select("serve"))

    def __repr__(self) -> str:
        return f"ModuleSource({self._query.build()!r})"
