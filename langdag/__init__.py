"""
langdag - Expose GraphQL engine modules as LLM tools.

Loads a module's schema by introspection, projects each function of its
main object into an OpenAI or MCP tool, and turns the model's tool calls
back into nested queries against the engine.

Architecture:
- modules/  type model, module resolution and loading
- engine/   GraphQL client, query builder, object handles
- tools/    tool projection, dispatch, agent loop, MCP server
- cli/      command-line entry point
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from langdag.engine.client import EngineClient
from langdag.modules.loader import ModuleDef, initialize_module, load_module
from langdag.tools.tool import Tool, Tools, load, load_all

__all__ = [
    "EngineClient",
    "ModuleDef",
    "Tool",
    "Tools",
    "initialize_module",
    "load",
    "load_all",
    "load_module",
    "__version__",
]
