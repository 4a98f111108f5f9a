"""
Tools - Module functions projected for LLM tool calling.

    tools = await load_all(client, ["github.com/acme/daggerverse/github"])
    await tools.init_from_env()
    result = await tools.dispatch("github_issue-list", '{"repo": "acme/widgets"}')
"""

from langdag.tools.projection import get_supported_functions, mcp_tool, openai_tool
from langdag.tools.tool import Tool, Tools, load, load_all, tools_for

__all__ = [
    "Tool",
    "Tools",
    "get_supported_functions",
    "load",
    "load_all",
    "mcp_tool",
    "openai_tool",
    "tools_for",
]
