"""Casing conversions shared by the type model, tool names and env lookups."""

import re
from typing import List

# Acronym followed by a capitalized word, a capitalized or lower word,
# a trailing acronym, or a bare number.
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+[0-9]*|[A-Z]+[0-9]*|[0-9]+")


def split_words(name: str) -> List[str]:
    """Split any of camelCase, PascalCase, kebab-case or snake_case into words."""
    return _WORD_RE.findall(name)


def cli_name(name: str) -> str:
    """Convert casing to the CLI convention (kebab)."""
    return "-".join(w.lower() for w in split_words(name))


def gql_object_name(name: str) -> str:
    """Convert casing to a GraphQL object name (PascalCase)."""
    return "".join(w[:1].upper() + w[1:] for w in split_words(name))


def gql_field_name(name: str) -> str:
    """Convert casing to a GraphQL field name (camelCase)."""
    words = split_words(name)
    if not words:
        return ""
    head, rest = words[0], words[1:]
    return head.lower() + "".join(w[:1].upper() + w[1:] for w in rest)


def env_name(*parts: str) -> str:
    """Join parts into an environment variable name, e.g. ``GITHUB_TOKEN``."""
    return "_".join(re.sub(r"[^A-Za-z0-9]+", "_", p).strip("_").upper() for p in parts)
