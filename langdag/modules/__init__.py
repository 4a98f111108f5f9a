"""
Module type model, resolution and loading.
"""

from langdag.modules.loader import ModuleDef, ModuleDependency, initialize_module, load_module
from langdag.modules.resolver import ConfiguredModule, find_up, get_module_configuration_for_source_ref
from langdag.modules.typedefs import ArgumentDef, FunctionDef, ObjectDef, TypeDef, TypeDefKind

__all__ = [
    "ArgumentDef",
    "ConfiguredModule",
    "FunctionDef",
    "ModuleDef",
    "ModuleDependency",
    "ObjectDef",
    "TypeDef",
    "TypeDefKind",
    "find_up",
    "get_module_configuration_for_source_ref",
    "initialize_module",
    "load_module",
]
