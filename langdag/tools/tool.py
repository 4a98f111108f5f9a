"""
Tools - Module functions exposed to an LLM tool-calling loop.

A ``Tool`` pairs a loaded module with one of its functions plus the
constructor arguments bound at startup. Calls rebuild the full query every
time: select the module constructor with the bound arguments, then the
function with the model's arguments.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional

from openai.types.chat import ChatCompletionToolParam

from langdag.engine.client import EngineClient
from langdag.engine.querybuilder import Selection
from langdag.errors import (
    DuplicateToolError,
    EngineError,
    ExecutionError,
    HydrationError,
    InvalidArgumentsError,
    QueryBuildError,
    UnknownToolError,
)
from langdag.modules.loader import ModuleDef, initialize_module
from langdag.modules.naming import env_name, gql_field_name
from langdag.modules.typedefs import FunctionDef, TypeDefKind
from langdag.tools.projection import get_supported_functions, mcp_tool, openai_tool

logger = logging.getLogger(__name__)

SECRET_TYPE_NAME = "Secret"
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


class Tool:
    """One module function as a tool. Holds no per-call state."""

    def __init__(
        self,
        client: EngineClient,
        mod: ModuleDef,
        fn: FunctionDef,
        args: Optional[Dict[str, Any]] = None,
        on_root: bool = False,
    ):
        self.client = client
        self.mod = mod
        self.fn = fn
        self.args: Dict[str, Any] = args if args is not None else {}
        # root functions are selected directly, without the module constructor
        self.on_root = on_root

    def __repr__(self) -> str:
        return f"Tool({self.name!r})"

    @property
    def name(self) -> str:
        return f"{self.mod.name}_{self.fn.cmd_name()}"

    @property
    def description(self) -> str:
        return f"{self.mod.description}\n{self.fn.short()}"

    def openai_tool(self) -> ChatCompletionToolParam:
        return openai_tool(self)

    def mcp_tool(self) -> Dict[str, Any]:
        return mcp_tool(self)

    # ── Hydration ─────────────────────────────────────────────────────────

    async def init_from_env(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Bind the module constructor's arguments from environment variables."""
        if self.on_root:
            return
        self.args.update(await hydrate_constructor_args(self.client, self.mod, environ))

    # ── Dispatch ──────────────────────────────────────────────────────────

    def build_query(self, arguments: Dict[str, Any]) -> Selection:
        """Rebuild the nested selection for one call."""
        q = Selection()
        if not self.on_root:
            # Select module and bind top-level args
            q = q.select(gql_field_name(self.mod.name)).args(self.args)
        q = q.select(field_selection_name(self.fn.name))
        for name, value in arguments.items():
            q = q.arg(self._arg_name(name), value)
        return q

    def _arg_name(self, name: str) -> str:
        for arg in self.fn.args:
            if arg.name == name:
                return name
        for arg in self.fn.args:
            if arg.flag_name() == name:
                return arg.name
        return name

    async def call(self, arguments: str) -> str:
        """Run the tool with the model's JSON arguments; return the JSON response."""
        args = parse_arguments(self.name, arguments)

        try:
            q = self.build_query(args)
            query = q.build()
        except QueryBuildError as exc:
            raise QueryBuildError(f"failed to build query for {self.name}: {exc}", tool=self.name) from exc

        try:
            data = await self.client.do(query)
        except EngineError as exc:
            raise ExecutionError(f"{self.name}: {exc}", tool=self.name) from exc

        return json.dumps(data)

    async def mcp_handler(self, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Handle an MCP ``tools/call`` request; returns the MCP result."""
        text = await self.call(json.dumps(arguments or {}))
        return {"content": [{"type": "text", "text": text}]}


def field_selection_name(name: str) -> str:
    """Field to select for an introspected function; field-form names pass through unchanged."""
    if name[:1].islower():
        return name
    return gql_field_name(name)


def parse_arguments(tool_name: str, arguments: str) -> Dict[str, Any]:
    """Decode the model's argument string; must be a JSON object."""
    if not arguments or not arguments.strip():
        return {}
    try:
        args = json.loads(arguments)
    except ValueError as exc:
        raise InvalidArgumentsError(f"invalid arguments for {tool_name}: {exc}", tool=tool_name) from exc
    if not isinstance(args, dict):
        raise InvalidArgumentsError(
            f"invalid arguments for {tool_name}: expected a JSON object, got {type(args).__name__}",
            tool=tool_name,
        )
    return args


async def hydrate_constructor_args(
    client: EngineClient,
    mod: ModuleDef,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Read one environment variable per constructor argument, named
    ``<MODULE>_<ARG>`` (e.g. ``GITHUB_TOKEN``).

    Secrets are registered with the engine and only their handles are kept.
    """
    environ = os.environ if environ is None else environ
    ctor = mod.main.constructor
    bound: Dict[str, Any] = {}

    for arg in ctor.args:
        key = env_name(mod.name, arg.name)
        logger.info("Loading option %s::%s from %s", mod.name, arg.name, key)
        value = environ.get(key, "")
        if value == "":
            if arg.is_required():
                raise HydrationError(f"{key!r} not set (required by {mod.name} constructor)", variable=key)
            continue

        kind = arg.type_def.kind
        if kind == TypeDefKind.STRING:
            bound[arg.name] = value
        elif kind == TypeDefKind.INTEGER:
            try:
                bound[arg.name] = int(value)
            except ValueError as exc:
                raise HydrationError(f"{key!r} must be an integer", variable=key) from exc
        elif kind == TypeDefKind.BOOLEAN:
            if value.lower() not in _TRUE + _FALSE:
                raise HydrationError(f"{key!r} must be a boolean", variable=key)
            bound[arg.name] = value.lower() in _TRUE
        elif kind == TypeDefKind.OBJECT and arg.type_def.as_object is not None:
            if arg.type_def.as_object.name != SECRET_TYPE_NAME:
                raise HydrationError(
                    f"unsupported type {arg.type_def.as_object.name} for {key!r}", variable=key
                )
            try:
                bound[arg.name] = await client.set_secret(key, value)
            except EngineError as exc:
                raise HydrationError(f"failed to register secret {key!r}: {exc}", variable=key) from exc
        else:
            raise HydrationError(f"unsupported type {arg.type_def} for {key!r}", variable=key)

    return bound


class Tools(list):
    """The tools of one or more loaded modules."""

    def openai_tools(self) -> List[ChatCompletionToolParam]:
        return [tool.openai_tool() for tool in self]

    def mcp_tools(self) -> List[Dict[str, Any]]:
        return [tool.mcp_tool() for tool in self]

    def get(self, name: str) -> Optional[Tool]:
        for tool in self:
            if tool.name == name:
                return tool
        return None

    async def dispatch(self, name: str, arguments: str) -> str:
        tool = self.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return await tool.call(arguments)

    async def init_from_env(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Hydrate each module once and share its bound arguments with its tools."""
        hydrated: Dict[int, Dict[str, Any]] = {}
        for tool in self:
            if tool.on_root:
                continue
            key = id(tool.mod)
            if key not in hydrated:
                hydrated[key] = await hydrate_constructor_args(tool.client, tool.mod, environ)
            tool.args.update(hydrated[key])


def tools_for(
    client: EngineClient,
    mod: ModuleDef,
    args: Optional[Dict[str, Any]] = None,
    root: bool = False,
) -> Tools:
    """Build tools for the main object's functions, or the root's with ``root``."""
    provider = mod.root if root else mod.main
    fns, skipped = get_supported_functions(provider)
    if skipped:
        logger.debug("%s: skipped functions %s", mod.name, ", ".join(skipped))
    tools = Tools()
    for fn in fns:
        mod.load_function_type_defs(fn)
        tools.append(Tool(client, mod, fn, dict(args or {}), on_root=root))
    return tools


async def load(client: EngineClient, ref: str, args: Optional[Dict[str, Any]] = None) -> Tools:
    """Load a module and expose its main object's functions as tools."""
    mod = await initialize_module(client, ref)
    return tools_for(client, mod, args)


async def load_all(client: EngineClient, refs: Iterable[str]) -> Tools:
    """Load several modules; tool names must not clash between them."""
    tools = Tools()
    owners: Dict[str, str] = {}
    for ref in refs:
        for tool in await load(client, ref):
            if tool.name in owners:
                raise DuplicateToolError(tool.name, (owners[tool.name], ref))
            owners[tool.name] = ref
            tools.append(tool)
    return tools
