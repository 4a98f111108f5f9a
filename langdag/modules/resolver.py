"""
Module resolver - Turns a module reference into a configured module source.

Git references are handed to the engine as-is. Local references are
resolved against the filesystem: the nearest ``dagger.json`` at or above the
path (stopping at a git checkout root) names the module root, and a name in
the default ``dagger.json`` can stand in for a dependency's source.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from langdag.engine.client import EngineClient
from langdag.engine.sources import ModuleSource, ModuleSourceKind
from langdag.errors import EngineError, ResolutionError

logger = logging.getLogger(__name__)

MODULE_CONFIG_FILENAME = "dagger.json"
MODULE_URL_DEFAULT = "."


class ModuleConfigDependency(BaseModel):
    name: str
    source: str
    pin: str = ""


class ModuleConfig(BaseModel):
    """The parts of ``dagger.json`` the resolver reads; everything else is ignored."""

    name: str = ""
    dependencies: List[ModuleConfigDependency] = Field(default_factory=list)

    def dependency_by_name(self, name: str) -> Optional[ModuleConfigDependency]:
        for dep in self.dependencies:
            if dep.name == name:
                return dep
        return None


def read_module_config(path: Path) -> ModuleConfig:
    """Parse a ``dagger.json`` file."""
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as exc:
        raise ResolutionError(f"failed to read {path}: {exc}", path=str(path)) from exc
    except ValueError as exc:
        raise ResolutionError(f"failed to unmarshal {path}: {exc}", path=str(path)) from exc

    try:
        return ModuleConfig.model_validate(data)
    except ValidationError as exc:
        raise ResolutionError(f"failed to unmarshal {path}: {exc}", path=str(path)) from exc


@dataclass
class ConfiguredModule:
    """Resolution state for one module reference."""

    source: ModuleSource
    source_kind: ModuleSourceKind
    local_context_path: str = ""
    local_root_source_path: str = ""
    # false until dagger.json exists in the source dir
    module_source_config_exists: bool = False

    def fully_initialized(self) -> bool:
        return self.module_source_config_exists


def has_git_marker(path: Path) -> bool:
    """A git checkout root bounds the upward search."""
    return os.path.lexists(path / ".git")


async def find_up(
    cur_dir_path: str,
    is_boundary: Callable[[Path], bool] = has_git_marker,
) -> Tuple[str, bool]:
    """
    Walk up from ``cur_dir_path`` looking for a module config file.

    Returns ``(directory, True)`` for the first directory holding a regular
    ``dagger.json``, or ``("", False)`` once the filesystem root or a
    boundary directory is reached without one.
    """
    current = Path(cur_dir_path)
    if not os.path.lexists(current):
        raise ResolutionError(f"failed to lstat {current}: no such file or directory", path=str(current))

    while True:
        config_path = current / MODULE_CONFIG_FILENAME
        try:
            st = config_path.lstat()
        except FileNotFoundError:
            st = None
        except OSError as exc:
            raise ResolutionError(f"failed to lstat {config_path}: {exc}", path=str(config_path)) from exc

        if st is not None:
            if not config_path.is_file() or config_path.is_symlink():
                raise ResolutionError(f"expected {config_path} to be a file", path=str(config_path))
            return os.path.normpath(current), True

        # stop at the filesystem root or a repository boundary
        absolute = Path(os.path.abspath(current))
        if absolute.parent == absolute:
            return "", False
        if is_boundary(current):
            return "", False

        current = current / ".."
        # yield between levels so a cancelled caller stops the walk
        await asyncio.sleep(0)


async def get_module_configuration_for_source_ref(
    client: EngineClient,
    src_ref: str,
    do_find_up: bool,
    resolve_from_caller: bool,
    ref_pin: Optional[str] = None,
) -> ConfiguredModule:
    """Resolve ``src_ref`` into a ConfiguredModule; see the module docstring."""
    source = client.module_source(src_ref, ref_pin=ref_pin)
    try:
        kind = await source.kind()
    except EngineError as exc:
        raise ResolutionError(f"failed to get module ref kind for {src_ref}: {exc}", path=src_ref) from exc

    if kind == ModuleSourceKind.GIT:
        try:
            exists = await source.config_exists()
        except EngineError as exc:
            raise ResolutionError(
                f"failed to check if module config exists for {src_ref}: {exc}", path=src_ref
            ) from exc
        return ConfiguredModule(source=source, source_kind=kind, module_source_config_exists=exists)

    if kind != ModuleSourceKind.LOCAL:
        raise ResolutionError(f"unsupported source kind {kind} for {src_ref}", path=src_ref)

    if do_find_up:
        # a bare name may refer to a dependency of the default module
        default_dir, default_exists = await find_up(MODULE_URL_DEFAULT)
        if default_exists:
            mod_cfg = read_module_config(Path(default_dir) / MODULE_CONFIG_FILENAME)
            named_dep = mod_cfg.dependency_by_name(src_ref)
            if named_dep is not None:
                logger.debug("resolving %s through dependency %s", src_ref, named_dep.source)
                dep_ref = named_dep.source
                dep_source = client.module_source(dep_ref, ref_pin=named_dep.pin or None)
                try:
                    dep_kind = await dep_source.kind()
                except EngineError as exc:
                    raise ResolutionError(
                        f"failed to get module ref kind for {dep_ref}: {exc}", path=dep_ref
                    ) from exc
                if dep_kind == ModuleSourceKind.LOCAL:
                    dep_ref = os.path.join(default_dir, named_dep.source)
                return await get_module_configuration_for_source_ref(
                    client, dep_ref, False, resolve_from_caller, ref_pin=named_dep.pin or None
                )

        found_dir, found = await find_up(src_ref)
        if not found:
            raise ResolutionError(
                f"no {MODULE_CONFIG_FILENAME} found in directory {src_ref} or any parents up to git root",
                path=src_ref,
            )
        src_ref = found_dir

    root_path = os.path.abspath(src_ref)
    if os.path.isabs(src_ref):
        src_ref = os.path.relpath(src_ref, os.getcwd())

    try:
        os.makedirs(src_ref, mode=0o755, exist_ok=True)
    except OSError as exc:
        raise ResolutionError(f"failed to create directory for {src_ref}: {exc}", path=src_ref) from exc

    source = client.module_source(src_ref)
    try:
        context_path = await source.resolve_context_path_from_caller()
    except EngineError as exc:
        raise ResolutionError(f"failed to get local root path for {src_ref}: {exc}", path=src_ref) from exc

    conf = ConfiguredModule(
        source=source,
        source_kind=kind,
        local_context_path=context_path,
        local_root_source_path=root_path,
        module_source_config_exists=os.path.lexists(os.path.join(root_path, MODULE_CONFIG_FILENAME)),
    )

    if resolve_from_caller:
        conf.source = source.resolve_from_caller()

    return conf
