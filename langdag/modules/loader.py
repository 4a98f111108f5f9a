"""
Module definition loader - Builds the type model of a served module.

Loading a module means: resolve its source, serve it in the engine session,
read its metadata, then read every type definition in the session and
partition them by kind. Nested type references come back shallow and are
upgraded lazily against the loaded registries.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from langdag.engine.client import EngineClient
from langdag.engine.sources import ModuleSource, ModuleSourceKind
from langdag.errors import EngineError, ResolutionError, SchemaError
from langdag.modules.naming import gql_field_name, gql_object_name
from langdag.modules.queries import LOAD_MOD_CONF_QUERY, LOAD_TYPE_DEFS_QUERY
from langdag.modules.resolver import MODULE_CONFIG_FILENAME, get_module_configuration_for_source_ref
from langdag.modules.typedefs import (
    EnumDef,
    FunctionDef,
    FunctionProvider,
    InputDef,
    InterfaceDef,
    ObjectDef,
    TypeDef,
    TypeDefKind,
)

logger = logging.getLogger(__name__)

ROOT_OBJECT_NAME = "Query"


class ModuleDependency(BaseModel):
    name: str
    description: str = ""
    # source reference as the engine prints it
    mod_ref: str = ""
    # pinned revision, empty when unpinned
    ref_pin: str = ""

    def short(self) -> str:
        return (self.description or "-").split("\n", 1)[0]


class ModuleDef:
    """The loaded schema of one module."""

    def __init__(
        self,
        name: str = "",
        description: str = "",
        source: Optional[ModuleSource] = None,
        mod_ref: str = "",
        dependencies: Optional[List[ModuleDependency]] = None,
    ):
        self.name = name
        self.description = description
        self.source = source
        self.mod_ref = mod_ref
        self.dependencies = dependencies or []

        self.main_object: Optional[TypeDef] = None
        self.objects: List[TypeDef] = []
        self.interfaces: List[TypeDef] = []
        self.enums: List[TypeDef] = []
        self.inputs: List[TypeDef] = []

        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"ModuleDef({self.name!r}, mod_ref={self.mod_ref!r})"

    async def load_type_defs(self, client: EngineClient) -> None:
        """Query every type definition and pick out the main object."""
        try:
            data = await client.do(LOAD_TYPE_DEFS_QUERY)
        except EngineError as exc:
            raise SchemaError(f"query module objects for {self.mod_ref or self.name}: {exc}") from exc

        self.register_type_defs(data.get("typeDefs") or [])

    def register_type_defs(self, raw_type_defs: List[Any]) -> None:
        """Partition raw introspection results and finish the main object."""
        try:
            type_defs = [TypeDef.model_validate(raw) for raw in raw_type_defs]
        except ValidationError as exc:
            raise SchemaError(f"invalid type definitions for {self.mod_ref or self.name}: {exc}") from exc

        name = gql_object_name(self.name) or ROOT_OBJECT_NAME

        for type_def in type_defs:
            if type_def.kind == TypeDefKind.OBJECT and type_def.as_object is not None:
                obj = type_def.as_object
                # every non-root object gets a constructor
                if obj.constructor is None and obj.name != ROOT_OBJECT_NAME:
                    obj.constructor = FunctionDef(return_type=type_def)
                if name == gql_object_name(obj.name):
                    self.main_object = type_def
                    if obj.constructor is None:
                        obj.constructor = FunctionDef(return_type=type_def)
                    if name != ROOT_OBJECT_NAME:
                        # constructors have an empty function name in the object's type def
                        obj.constructor.name = gql_field_name(obj.name)
                self.objects.append(type_def)
            elif type_def.kind == TypeDefKind.INTERFACE:
                self.interfaces.append(type_def)
            elif type_def.kind == TypeDefKind.ENUM:
                self.enums.append(type_def)
            elif type_def.kind == TypeDefKind.INPUT:
                self.inputs.append(type_def)

        if self.main_object is None:
            raise SchemaError(
                f"main object {name!r} not found in {self.mod_ref or self.name}, "
                "check that your module's name and main object match"
            )

        constructor = self.main_object.as_object.constructor
        self.load_function_type_defs(constructor)

        # the engine leaves the module constructor out of Query
        root = self.get_object(ROOT_OBJECT_NAME)
        if root is None:
            root_def = TypeDef(kind=TypeDefKind.OBJECT, as_object=ObjectDef(name=ROOT_OBJECT_NAME, functions=[]))
            self.objects.append(root_def)
            root = root_def.as_object
        if root is not self.main and not root.has_function(constructor):
            root.functions = list(root.functions or []) + [constructor]

    def has_module(self) -> bool:
        """Whether a named module is loaded, as opposed to only the core API."""
        return bool(self.name)

    @property
    def main(self) -> ObjectDef:
        return self.main_object.as_object

    @property
    def root(self) -> Optional[ObjectDef]:
        return self.get_object(ROOT_OBJECT_NAME)

    # ── Function lookup ───────────────────────────────────────────────────

    def has_function(self, fp: Optional[FunctionProvider], name: str) -> bool:
        if fp is None:
            return False
        try:
            self.get_function(fp, name)
        except SchemaError:
            return False
        return True

    def get_function(self, fp: FunctionProvider, function_name: str) -> FunctionDef:
        """Find a function by original or kebab name and resolve its types."""
        constructor = self.main.constructor if self.main_object is not None else None
        # module constructors must not be shadowed by core functions of the same name
        if (
            self.has_module()
            and constructor is not None
            and fp.provider_name() == ROOT_OBJECT_NAME
            and constructor.cmd_name() == function_name
        ):
            return constructor
        for fn in fp.get_functions():
            if fn.name == function_name or fn.cmd_name() == function_name:
                self.load_function_type_defs(fn)
                return fn
        raise SchemaError(f"no function {function_name!r} in type {fp.provider_name()!r}")

    # ── Type resolution ───────────────────────────────────────────────────

    def load_function_type_defs(self, fn: FunctionDef) -> None:
        """Resolve a function's return and argument types.

        Introspection names referenced types without describing them.
        """
        self.load_type_def(fn.return_type)
        for arg in fn.args:
            self.load_type_def(arg.type_def)

    def load_type_def(self, type_def: TypeDef) -> None:
        """
        Replace a shallow object/interface/enum/input reference with the
        module's full definition, so functions can be chained from it.

        References with no match (core types) are left alone. Calling this
        again on a resolved reference changes nothing.
        """
        with self._lock:
            if type_def.as_object is not None and type_def.as_object.functions is None and type_def.as_object.fields is None:
                obj = self.get_object(type_def.as_object.name)
                if obj is not None:
                    type_def.as_object = obj
            if type_def.as_interface is not None and type_def.as_interface.functions is None:
                iface = self.get_interface(type_def.as_interface.name)
                if iface is not None:
                    type_def.as_interface = iface
            if type_def.as_enum is not None and type_def.as_enum.values is None:
                enum = self.get_enum(type_def.as_enum.name)
                if enum is not None:
                    type_def.as_enum = enum
            if type_def.as_input is not None and type_def.as_input.fields is None:
                inp = self.get_input(type_def.as_input.name)
                if inp is not None:
                    type_def.as_input = inp
            if type_def.as_list is not None:
                self.load_type_def(type_def.as_list.element_type_def)

    # ── Registries ────────────────────────────────────────────────────────
    #
    # Names are normalized in case an SDK uses a different convention.

    def as_objects(self) -> List[ObjectDef]:
        return [t.as_object for t in self.objects if t.as_object is not None]

    def as_interfaces(self) -> List[InterfaceDef]:
        return [t.as_interface for t in self.interfaces if t.as_interface is not None]

    def as_enums(self) -> List[EnumDef]:
        return [t.as_enum for t in self.enums if t.as_enum is not None]

    def as_inputs(self) -> List[InputDef]:
        return [t.as_input for t in self.inputs if t.as_input is not None]

    def get_object(self, name: str) -> Optional[ObjectDef]:
        return _find_named(self.as_objects(), name)

    def get_interface(self, name: str) -> Optional[InterfaceDef]:
        return _find_named(self.as_interfaces(), name)

    def get_enum(self, name: str) -> Optional[EnumDef]:
        return _find_named(self.as_enums(), name)

    def get_input(self, name: str) -> Optional[InputDef]:
        return _find_named(self.as_inputs(), name)


def _find_named(defs, name: str):
    wanted = gql_object_name(name)
    for d in defs:
        if gql_object_name(d.name) == wanted:
            return d
    return None


class _DepSourceRes(BaseModel):
    as_string: str = Field("", alias="asString")
    pin: Optional[str] = None


class _DependencyRes(BaseModel):
    name: str
    description: Optional[str] = None
    source: _DepSourceRes


class _InitializeRes(BaseModel):
    description: Optional[str] = None


class _ModuleRes(BaseModel):
    name: str = ""
    initialize: Optional[_InitializeRes] = None
    dependencies: Optional[List[_DependencyRes]] = None


class _SourceRes(BaseModel):
    as_string: str = Field("", alias="asString")
    module: Optional[_ModuleRes] = None


class _ModConfResponse(BaseModel):
    source: _SourceRes


async def inspect_module(client: EngineClient, source: ModuleSource) -> ModuleDef:
    """
    Read a module's name, description and dependencies.

    All we need most of the time is the name of the dependencies, but
    reading their refs and descriptions here costs little and saves a
    second round trip when listing or loading them.
    """
    try:
        source_id = await source.id()
        data = await client.do(LOAD_MOD_CONF_QUERY, {"source": source_id})
        res = _ModConfResponse.model_validate(data)
    except EngineError as exc:
        raise SchemaError(f"query module metadata: {exc}") from exc
    except ValidationError as exc:
        raise SchemaError(f"unexpected module metadata: {exc}") from exc

    module = res.source.module
    if module is None:
        return ModuleDef(source=source, mod_ref=res.source.as_string)

    deps = [
        ModuleDependency(
            name=dep.name,
            description=dep.description or "",
            mod_ref=dep.source.as_string,
            ref_pin=dep.source.pin or "",
        )
        for dep in module.dependencies or []
    ]
    return ModuleDef(
        name=module.name,
        description=(module.initialize.description or "") if module.initialize else "",
        source=source,
        mod_ref=res.source.as_string,
        dependencies=deps,
    )


async def _serve_and_load(client: EngineClient, source: ModuleSource, ref: str) -> ModuleDef:
    try:
        await source.serve()
    except EngineError as exc:
        raise SchemaError(f"failed to serve module {ref}: {exc}") from exc

    mod = await inspect_module(client, source)
    await mod.load_type_defs(client)
    logger.info("loaded module %s (%d objects)", mod.name or ref, len(mod.objects))
    return mod


async def load_module(client: EngineClient, ref: str) -> ModuleDef:
    """Load a module from a git reference."""
    source = client.module_source(ref)
    try:
        kind = await source.kind()
    except EngineError as exc:
        raise ResolutionError(f"failed to get module ref kind for {ref}: {exc}", path=ref) from exc
    if kind != ModuleSourceKind.GIT:
        raise ResolutionError(f"unsupported source kind {kind} for {ref}", path=ref)
    return await _serve_and_load(client, source, ref)


async def initialize_module(
    client: EngineClient,
    ref: str,
    do_find_up: bool = False,
    resolve_from_caller: bool = False,
) -> ModuleDef:
    """Load a module from a git reference or a local path."""
    conf = await get_module_configuration_for_source_ref(client, ref, do_find_up, resolve_from_caller)
    if not conf.fully_initialized():
        raise ResolutionError(
            f"module must be fully initialized: no {MODULE_CONFIG_FILENAME} for {ref}",
            path=conf.local_root_source_path or ref,
        )
    return await _serve_and_load(client, conf.source, ref)
