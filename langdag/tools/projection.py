"""
Tool projection - Render module functions as LLM tool schemas.

Two shapes are produced from the same argument list: OpenAI chat-completions
function tools and MCP tools. Only flat argument types (string, integer,
boolean and lists of those) can be expressed; a function whose *required*
arguments need anything else is skipped rather than mis-described.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from openai.types.chat import ChatCompletionToolParam

from langdag.errors import ProjectionError
from langdag.modules.typedefs import ArgumentDef, FunctionDef, FunctionProvider, TypeDef, TypeDefKind

if TYPE_CHECKING:
    from langdag.tools.tool import Tool

logger = logging.getLogger(__name__)

# Core functions that are never exposed, keyed by provider name.
SKIPPED_FUNCTIONS: Dict[str, Tuple[str, ...]] = {
    "Query": (
        # for SDKs only
        "builtinContainer",
        "generatedCode",
        "currentFunctionCall",
        "currentModule",
        "typeDef",
        # not useful until ID inputs are accepted
        "cacheVolume",
        "setSecret",
        # for tests only
        "secret",
        # deprecated
        "pipeline",
    ),
}

_JSON_TYPES = {
    TypeDefKind.STRING: "string",
    TypeDefKind.INTEGER: "integer",
    TypeDefKind.BOOLEAN: "boolean",
}

_MCP_TYPES = {
    TypeDefKind.STRING: "string",
    TypeDefKind.INTEGER: "number",
    TypeDefKind.BOOLEAN: "boolean",
}


def skip_function(provider_name: str, function_name: str) -> bool:
    return function_name in SKIPPED_FUNCTIONS.get(provider_name, ())


def get_supported_functions(fp: FunctionProvider) -> Tuple[List[FunctionDef], List[str]]:
    """
    Split a provider's functions into those that can become tools and the
    kebab names of those that can't.

    When two functions share a kebab name the first one in schema order wins.
    """
    fns: List[FunctionDef] = []
    skipped: List[str] = []
    seen = set()
    for fn in fp.get_functions():
        cmd = fn.cmd_name()
        if skip_function(fp.provider_name(), fn.name) or fn.has_unsupported_args():
            skipped.append(cmd)
        elif cmd in seen:
            logger.warning("skipping %s.%s: name collides with another function as %r", fp.provider_name(), fn.name, cmd)
            skipped.append(cmd)
        else:
            seen.add(cmd)
            fns.append(fn)
    return fns, skipped


def json_schema_type(type_def: TypeDef, types: Dict[TypeDefKind, str] = _JSON_TYPES) -> Dict[str, Any]:
    """JSON-Schema fragment for a flat type; ProjectionError for anything else."""
    if type_def.kind in types:
        return {"type": types[type_def.kind]}
    if type_def.kind == TypeDefKind.LIST and type_def.as_list is not None:
        elem = type_def.as_list.element_type_def
        if elem.kind in types:
            return {"type": "array", "items": {"type": types[elem.kind]}}
        raise ProjectionError(f"unsupported list element type {elem}")
    raise ProjectionError(f"unsupported type {type_def} ({type_def.kind_display().lower()})")


def parameters_schema(fn: FunctionDef, types: Dict[TypeDefKind, str] = _JSON_TYPES) -> Dict[str, Any]:
    """The ``{"type": "object", ...}`` parameter schema for a function."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for arg in fn.args:
        try:
            prop = json_schema_type(arg.type_def, types)
        except ProjectionError as exc:
            if arg.is_required():
                raise ProjectionError(
                    f"argument {arg.name!r} of {fn.name!r}: {exc}", function=fn.name, argument=arg.name
                ) from exc
            # optional arguments the schema can't carry are left to their defaults
            continue
        prop["description"] = _arg_description(arg)
        properties[arg.name] = prop
        if arg.is_required():
            required.append(arg.name)
    return {"type": "object", "properties": properties, "required": required}


def _arg_description(arg: ArgumentDef) -> str:
    return arg.long() if arg.has_default() else arg.description


def openai_tool(tool: "Tool") -> ChatCompletionToolParam:
    """Project a tool into an OpenAI chat-completions function tool."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": parameters_schema(tool.fn),
        },
    }


def mcp_tool(tool: "Tool") -> Dict[str, Any]:
    """Project a tool into an MCP ``tools/list`` entry."""
    return {
        "name": tool.name,
        "description": tool.description,
        "inputSchema": parameters_schema(tool.fn, _MCP_TYPES),
    }
