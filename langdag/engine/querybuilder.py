"""
Query builder - Chains field selections into a GraphQL document.

A ``Selection`` is immutable: ``select`` and ``arg`` return new selections so
that a partially-built chain (e.g. a module source) can be shared and
extended concurrently.

    >>> q = Selection().select("github").arg("owner", "acme").select("issueList").arg("repo", "acme/widgets")
    >>> q.build()
    'query{github(owner:"acme"){issueList(repo:"acme/widgets")}}'
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from langdag.errors import QueryBuildError


@dataclass(frozen=True)
class _Field:
    name: str
    args: Tuple[Tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class Selection:
    """An ordered chain of field selections, each with its own arguments."""

    fields: Tuple[_Field, ...] = field(default_factory=tuple)

    def select(self, name: str) -> "Selection":
        if not name:
            raise QueryBuildError("cannot select an empty field name")
        return Selection(self.fields + (_Field(name),))

    def arg(self, name: str, value: Any) -> "Selection":
        if not self.fields:
            raise QueryBuildError(f"argument {name!r} given before any field was selected")
        last = self.fields[-1]
        args = tuple((k, v) for k, v in last.args if k != name) + ((name, value),)
        return Selection(self.fields[:-1] + (_Field(last.name, args),))

    def args(self, values: Dict[str, Any]) -> "Selection":
        q = self
        for name, value in values.items():
            q = q.arg(name, value)
        return q

    @property
    def path(self) -> List[str]:
        """Field names from the root to the leaf, used to unpack the response."""
        return [f.name for f in self.fields]

    def build(self) -> str:
        """Render the chain as a GraphQL query document."""
        if not self.fields:
            raise QueryBuildError("empty selection")
        body = ""
        for f in reversed(self.fields):
            rendered = f.name
            if f.args:
                rendered += "(" + ",".join(f"{k}:{encode_value(v)}" for k, v in f.args) + ")"
            if body:
                rendered += "{" + body + "}"
            body = rendered
        return "query{" + body + "}"

    def unpack(self, data: Optional[Dict[str, Any]]) -> Any:
        """Walk ``data`` down the selection path to the leaf value."""
        value: Any = data
        for name in self.path:
            if value is None:
                return None
            if isinstance(value, list):
                value = [item.get(name) if isinstance(item, dict) else None for item in value]
                continue
            value = value.get(name)
        return value


class EnumValue(str):
    """A string rendered as a bare GraphQL enum literal instead of a quoted string."""


def encode_value(value: Any) -> str:
    """Encode a Python value as a GraphQL input literal."""
    if value is None:
        return "null"
    if hasattr(value, "graphql_id"):
        return json.dumps(value.graphql_id())
    if isinstance(value, EnumValue):
        return str(value)
    if isinstance(value, Enum):
        return encode_value(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise QueryBuildError(f"cannot encode non-finite number {value!r}")
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(encode_value(v) for v in value) + "]"
    if isinstance(value, dict):
        items = []
        for k, v in value.items():
            if not isinstance(k, str) or not k:
                raise QueryBuildError(f"invalid input object key {k!r}")
            items.append(f"{k}:{encode_value(v)}")
        return "{" + ",".join(items) + "}"
    raise QueryBuildError(f"cannot encode value of type {type(value).__name__}")
