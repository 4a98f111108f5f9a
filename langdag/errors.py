"""
langdag errors.

Every failure the bridge can raise derives from LangdagError and keeps the
module reference, path, tool, argument or variable involved so that a
message alone is enough to diagnose it.
"""

from typing import Optional


class LangdagError(Exception):
    """Base class for all langdag errors."""


class ConfigError(LangdagError):
    """Raised when a langdag configuration file is invalid or unreadable."""

    pass


class EngineError(LangdagError):
    """Raised when the engine transport fails or answers with GraphQL errors."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class ResolutionError(LangdagError):
    """Raised when a module reference cannot be resolved to a source."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class SchemaError(LangdagError):
    """Raised when introspection fails or doesn't match the module."""

    pass


class ProjectionError(LangdagError):
    """Raised when a function or argument can't be expressed as a tool schema."""

    def __init__(self, message: str, function: Optional[str] = None, argument: Optional[str] = None):
        super().__init__(message)
        self.function = function
        self.argument = argument


class HydrationError(LangdagError):
    """Raised when constructor arguments can't be loaded from the environment."""

    def __init__(self, message: str, variable: Optional[str] = None):
        super().__init__(message)
        self.variable = variable


class DuplicateToolError(LangdagError):
    """Raised when two loaded modules expose a tool with the same name."""

    def __init__(self, name: str, refs: tuple):
        super().__init__(f"tool {name!r} is exposed by more than one module: {', '.join(refs)}")
        self.name = name
        self.refs = refs


class DispatchError(LangdagError):
    """Base class for failures of a single tool invocation."""

    def __init__(self, message: str, tool: Optional[str] = None):
        super().__init__(message)
        self.tool = tool


class UnknownToolError(DispatchError):
    """No loaded tool has the requested name."""

    def __init__(self, tool: str):
        super().__init__(f"tool not found: {tool}", tool=tool)


class InvalidArgumentsError(DispatchError):
    """The model's arguments are not a JSON object."""


class QueryBuildError(DispatchError):
    """The arguments could not be encoded into a query."""


class ExecutionError(DispatchError):
    """The engine rejected or failed to run the query."""
