"""Shared fixtures: an in-memory engine speaking the GraphQL wire format."""

import copy
import json
import re

import httpx
import pytest
import pytest_asyncio

from langdag.engine.client import EngineClient
from langdag.modules.loader import ModuleDef


def _string(optional=False):
    return {"kind": "STRING_KIND", "optional": optional}


def _object(name):
    return {"kind": "OBJECT_KIND", "asObject": {"name": name}}


GITHUB_TYPE_DEFS = [
    {
        "kind": "OBJECT_KIND",
        "asObject": {
            "name": "Github",
            "description": "GitHub helpers",
            "sourceModuleName": "github",
            "constructor": {
                "name": "",
                "returnType": _object("Github"),
                "args": [
                    {"name": "token", "description": "API token", "typeDef": _object("Secret")},
                ],
            },
            "fields": [
                {"name": "owner", "description": "Default owner", "typeDef": _string()},
            ],
            "functions": [
                {
                    "name": "IssueList",
                    "description": "List issues of a repository\nOne issue per line.",
                    "returnType": _string(),
                    "args": [
                        {"name": "repo", "description": "Repository (owner/name)", "typeDef": _string()},
                        {
                            "name": "state",
                            "description": "Issue state",
                            "typeDef": _string(optional=True),
                            "defaultValue": '"open"',
                        },
                    ],
                },
                {
                    "name": "issueGet",
                    "description": "Fetch one issue",
                    "returnType": _object("GithubIssue"),
                    "args": [
                        {"name": "repo", "typeDef": _string()},
                        {"name": "number", "typeDef": {"kind": "INTEGER_KIND"}},
                    ],
                },
                {
                    "name": "search",
                    "description": "Search issues",
                    "returnType": {
                        "kind": "LIST_KIND",
                        "asList": {"elementTypeDef": _object("GithubIssue")},
                    },
                    "args": [
                        {
                            "name": "labels",
                            "typeDef": {
                                "kind": "LIST_KIND",
                                "optional": True,
                                "asList": {"elementTypeDef": _string()},
                            },
                        },
                        {
                            "name": "filter",
                            "typeDef": {"kind": "INPUT_KIND", "optional": True, "asInput": {"name": "GithubFilter"}},
                        },
                    ],
                },
                {
                    "name": "withContainer",
                    "description": "Use a custom base container",
                    "returnType": _object("Github"),
                    "args": [{"name": "ctr", "typeDef": _object("Container")}],
                },
            ],
        },
    },
    {
        "kind": "OBJECT_KIND",
        "asObject": {
            "name": "GithubIssue",
            "sourceModuleName": "github",
            "fields": [{"name": "title", "typeDef": _string()}],
            "functions": [],
        },
    },
    {
        "kind": "OBJECT_KIND",
        "asObject": {
            "name": "Query",
            "functions": [
                {"name": "container", "returnType": _object("Container")},
                {
                    "name": "setSecret",
                    "returnType": _object("Secret"),
                    "args": [
                        {"name": "name", "typeDef": _string()},
                        {"name": "plaintext", "typeDef": _string()},
                    ],
                },
                {"name": "pipeline", "returnType": _object("Query"), "args": [{"name": "name", "typeDef": _string()}]},
                {"name": "version", "description": "Engine version", "returnType": _string()},
            ],
        },
    },
    {
        "kind": "OBJECT_KIND",
        "asObject": {"name": "Secret", "functions": [{"name": "plaintext", "returnType": _string()}]},
    },
    {"kind": "OBJECT_KIND", "asObject": {"name": "Container", "functions": []}},
    {
        "kind": "INTERFACE_KIND",
        "asInterface": {
            "name": "GithubNode",
            "sourceModuleName": "github",
            "functions": [{"name": "id", "returnType": _string()}],
        },
    },
    {
        "kind": "ENUM_KIND",
        "asEnum": {"name": "GithubState", "values": [{"name": "OPEN"}, {"name": "CLOSED"}]},
    },
    {
        "kind": "INPUT_KIND",
        "asInput": {"name": "GithubFilter", "fields": [{"name": "author", "typeDef": _string()}]},
    },
]

GITHUB_MOD_CONF = {
    "asString": "github.com/acme/langdag/modules/github@main",
    "module": {
        "name": "github",
        "initialize": {"description": "Interact with GitHub"},
        "dependencies": [
            {
                "name": "gh",
                "description": "The GitHub CLI\nPackaged as a container.",
                "source": {"asString": "github.com/sipsma/daggerverse/gh", "pin": "abc123"},
            }
        ],
    },
}

# a field name and its optional argument list
_FIELD_RE = re.compile(r'(\w+)(?:\(((?:[^()"]|"(?:[^"\\]|\\.)*")*)\))?')
_REF_RE = re.compile(r'refString:"((?:[^"\\]|\\.)*)"')


class FakeEngine:
    """
    Answers GraphQL requests the way the engine would for a served module.

    Selection chains (``query{a(...){b{c}}}``) are answered by nesting a leaf
    value under the selected field names. Named introspection queries return
    the configured type definitions and module metadata.
    """

    def __init__(self, type_defs=None, mod_conf=None):
        self.type_defs = copy.deepcopy(GITHUB_TYPE_DEFS if type_defs is None else type_defs)
        self.mod_conf = copy.deepcopy(GITHUB_MOD_CONF if mod_conf is None else mod_conf)
        self.kinds = {}
        self.config_exists = True
        self.context_path = "/work"
        self.results = {}
        self.errors = {}
        self.requests = []

    # ── Wire ──────────────────────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        query = body["query"]

        for needle, message in self.errors.items():
            if needle in query:
                return httpx.Response(200, json={"data": None, "errors": [{"message": message}]})

        if "currentTypeDefs" in query:
            return httpx.Response(200, json={"data": {"typeDefs": self.type_defs}})
        if "loadModuleSourceFromID" in query:
            return httpx.Response(200, json={"data": {"source": self.mod_conf}})
        if "setSecret" in query:
            name = body["variables"]["name"]
            return httpx.Response(200, json={"data": {"setSecret": {"id": f"secret:{name}"}}})

        path = [m.group(1) for m in _FIELD_RE.finditer(query[len("query{"):])]
        ref_match = _REF_RE.search(query)
        value = self.leaf(path, ref_match.group(1) if ref_match else "")
        for name in reversed(path):
            value = {name: value}
        return httpx.Response(200, json={"data": value})

    def leaf(self, path, ref):
        leaf = path[-1]
        if tuple(path) in self.results:
            return self.results[tuple(path)]
        if leaf == "kind":
            return self.kinds.get(ref, "GIT_SOURCE")
        if leaf == "configExists":
            return self.config_exists
        if leaf == "asString":
            return ref
        if leaf == "id":
            return f"source:{ref}"
        if leaf == "resolveContextPathFromCaller":
            return self.context_path
        return None

    # ── Inspection helpers ────────────────────────────────────────────────

    @property
    def queries(self):
        return [r["query"] for r in self.requests]

    def client(self) -> EngineClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return EngineClient("http://engine.test/query", http=http)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest_asyncio.fixture
async def client(engine):
    c = engine.client()
    yield c
    await c.aclose()


@pytest.fixture
def github_type_defs():
    return copy.deepcopy(GITHUB_TYPE_DEFS)


@pytest.fixture
def github_module(github_type_defs):
    """A loaded ``github`` module, built without any engine round trip."""
    mod = ModuleDef(name="github", description="Interact with GitHub", mod_ref="github.com/acme/github")
    mod.register_type_defs(github_type_defs)
    return mod
