"""
Engine access: the GraphQL client, the query builder and handles for
objects the engine passes around by ID.
"""

from langdag.engine.client import EngineClient
from langdag.engine.querybuilder import EnumValue, Selection
from langdag.engine.sources import ModuleSource, ModuleSourceKind, Secret

__all__ = [
    "EngineClient",
    "EnumValue",
    "ModuleSource",
    "ModuleSourceKind",
    "Secret",
    "Selection",
]
