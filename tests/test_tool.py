"""Tests for tool dispatch, hydration and loading."""

import asyncio
import json

import pytest

from langdag.errors import (
    DuplicateToolError,
    ExecutionError,
    HydrationError,
    InvalidArgumentsError,
    QueryBuildError,
    UnknownToolError,
)
from langdag.modules.loader import ModuleDef
from langdag.tools.tool import Tools, hydrate_constructor_args, load, load_all, parse_arguments, tools_for


def _module(type_defs):
    mod = ModuleDef(name="github", description="Interact with GitHub")
    mod.register_type_defs(type_defs)
    return mod


@pytest.fixture
def tools(client, github_module):
    return tools_for(client, github_module)


class TestToolsFor:
    """Tests for building tools from a module."""

    @pytest.mark.asyncio
    async def test_names(self, tools):
        assert [t.name for t in tools] == ["github_owner", "github_issue-list", "github_issue-get", "github_search"]

    @pytest.mark.asyncio
    async def test_repr(self, tools):
        assert repr(tools[1]) == "Tool('github_issue-list')"

    @pytest.mark.asyncio
    async def test_get(self, tools):
        assert tools.get("github_search").fn.name == "search"
        assert tools.get("search") is None

    @pytest.mark.asyncio
    async def test_bound_args_are_copied(self, client, github_module):
        args = {"owner": "acme"}
        built = tools_for(client, github_module, args)
        built[0].args["owner"] = "other"
        assert args == {"owner": "acme"}
        assert built[1].args == {"owner": "acme"}


class TestDispatch:
    """Tests for turning a tool call into a query."""

    @pytest.mark.asyncio
    async def test_issue_list(self, engine, tools):
        engine.results[("github", "issueList")] = "#1 Bug"
        result = await tools.dispatch("github_issue-list", '{"repo":"acme/widgets"}')
        assert engine.queries[-1] == 'query{github{issueList(repo:"acme/widgets")}}'
        assert json.loads(result) == {"github": {"issueList": "#1 Bug"}}

    @pytest.mark.asyncio
    async def test_optional_arg_passed_through(self, engine, tools):
        await tools.dispatch("github_issue-list", '{"repo":"acme/widgets","state":"closed"}')
        assert engine.queries[-1] == 'query{github{issueList(repo:"acme/widgets",state:"closed")}}'

    @pytest.mark.asyncio
    async def test_list_and_int_args(self, engine, tools):
        await tools.dispatch("github_search", '{"labels":["bug","p1"]}')
        await tools.dispatch("github_issue-get", '{"repo":"acme/widgets","number":7}')
        assert engine.queries[-2] == 'query{github{search(labels:["bug","p1"])}}'
        assert engine.queries[-1] == 'query{github{issueGet(repo:"acme/widgets",number:7)}}'

    @pytest.mark.asyncio
    async def test_kebab_argument_names(self, engine, client, github_type_defs):
        github_type_defs[0]["asObject"]["functions"][0]["args"][0]["name"] = "repoName"
        mod = _module(github_type_defs)
        await tools_for(client, mod).dispatch("github_issue-list", '{"repo-name":"acme/widgets"}')
        assert engine.queries[-1] == 'query{github{issueList(repoName:"acme/widgets")}}'

    @pytest.mark.asyncio
    async def test_field_form_function_name_selected_as_is(self, engine, client, github_type_defs):
        github_type_defs[0]["asObject"]["functions"][0]["name"] = "get2faStatus"
        mod = _module(github_type_defs)
        await tools_for(client, mod).dispatch("github_get2-fa-status", '{"repo":"acme/widgets"}')
        assert engine.queries[-1] == 'query{github{get2faStatus(repo:"acme/widgets")}}'

    @pytest.mark.asyncio
    async def test_concurrent_dispatch(self, engine, tools):
        engine.results[("github", "issueList")] = "#1 Bug"
        repos = [f"acme/repo{i}" for i in range(8)]

        results = await asyncio.gather(
            *(tools.dispatch("github_issue-list", json.dumps({"repo": repo})) for repo in repos)
        )

        assert all(json.loads(r) == {"github": {"issueList": "#1 Bug"}} for r in results)
        assert sorted(engine.queries) == sorted(f'query{{github{{issueList(repo:"{repo}")}}}}' for repo in repos)

    @pytest.mark.asyncio
    async def test_field_function(self, engine, tools):
        await tools.dispatch("github_owner", "")
        assert engine.queries[-1] == "query{github{owner}}"

    @pytest.mark.asyncio
    async def test_bound_constructor_args(self, engine, client, github_module):
        bound = tools_for(client, github_module, {"owner": "acme"})
        await bound.dispatch("github_owner", "{}")
        assert engine.queries[-1] == 'query{github(owner:"acme"){owner}}'

    @pytest.mark.asyncio
    async def test_root_tools(self, engine, client, github_module):
        root_tools = tools_for(client, github_module, root=True)
        assert [t.name for t in root_tools] == ["github_container", "github_version"]
        await root_tools.dispatch("github_version", "{}")
        assert engine.queries[-1] == "query{version}"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, engine, tools):
        with pytest.raises(UnknownToolError) as exc_info:
            await tools.dispatch("github_nope", "{}")
        assert str(exc_info.value) == "tool not found: github_nope"
        assert exc_info.value.tool == "github_nope"
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_malformed_arguments(self, engine, tools):
        with pytest.raises(InvalidArgumentsError, match="github_issue-list"):
            await tools.dispatch("github_issue-list", "{repo:")
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_non_object_arguments(self, tools):
        with pytest.raises(InvalidArgumentsError, match="expected a JSON object"):
            await tools.dispatch("github_issue-list", '["acme/widgets"]')

    @pytest.mark.asyncio
    async def test_unencodable_argument(self, engine, tools):
        with pytest.raises(QueryBuildError) as exc_info:
            await tools.dispatch("github_issue-get", '{"repo":"acme/widgets","number":NaN}')
        assert exc_info.value.tool == "github_issue-get"
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_engine_failure(self, engine, tools):
        engine.errors["issueList"] = "rate limited"
        with pytest.raises(ExecutionError, match="rate limited") as exc_info:
            await tools.dispatch("github_issue-list", '{"repo":"acme/widgets"}')
        assert exc_info.value.tool == "github_issue-list"

    @pytest.mark.asyncio
    async def test_mcp_handler(self, engine, tools):
        engine.results[("github", "issueList")] = "#1 Bug"
        result = await tools.get("github_issue-list").mcp_handler({"repo": "acme/widgets"})
        assert result == {"content": [{"type": "text", "text": '{"github": {"issueList": "#1 Bug"}}'}]}


class TestParseArguments:
    """Tests for decoding the model's argument string."""

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty(self, raw):
        assert parse_arguments("t", raw) == {}

    def test_object(self):
        assert parse_arguments("t", '{"a": 1}') == {"a": 1}

    def test_scalar(self):
        with pytest.raises(InvalidArgumentsError, match="got str"):
            parse_arguments("t", '"a"')


class TestHydration:
    """Tests for binding constructor arguments from the environment."""

    @pytest.mark.asyncio
    async def test_missing_required_variable(self, engine, tools):
        with pytest.raises(HydrationError, match="GITHUB_TOKEN") as exc_info:
            await tools.init_from_env({})
        assert exc_info.value.variable == "GITHUB_TOKEN"
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_secret_is_registered(self, engine, tools):
        await tools.init_from_env({"GITHUB_TOKEN": "s3cr3t"})

        secret_requests = [r for r in engine.requests if "setSecret" in r["query"]]
        assert len(secret_requests) == 1
        assert secret_requests[0]["variables"] == {"name": "GITHUB_TOKEN", "plaintext": "s3cr3t"}
        assert "s3cr3t" not in secret_requests[0]["query"]

    @pytest.mark.asyncio
    async def test_secret_id_is_bound(self, engine, tools):
        await tools.init_from_env({"GITHUB_TOKEN": "s3cr3t"})
        await tools.dispatch("github_issue-list", '{"repo":"acme/widgets"}')
        assert engine.queries[-1] == 'query{github(token:"secret:GITHUB_TOKEN"){issueList(repo:"acme/widgets")}}'
        assert all("s3cr3t" not in q for q in engine.queries)

    @pytest.mark.asyncio
    async def test_single_tool(self, engine, tools):
        tool = tools.get("github_owner")
        await tool.init_from_env({"GITHUB_TOKEN": "s3cr3t"})
        assert tool.args["token"].graphql_id() == "secret:GITHUB_TOKEN"

    @pytest.mark.asyncio
    async def test_root_tools_are_not_hydrated(self, engine, client, github_module):
        root_tools = tools_for(client, github_module, root=True)
        await root_tools.init_from_env({})
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_single_root_tool_is_not_hydrated(self, engine, client, github_module):
        tool = tools_for(client, github_module, root=True).get("github_version")
        await tool.init_from_env({})
        assert tool.args == {}
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_scalar_kinds(self, engine, client, github_type_defs):
        github_type_defs[0]["asObject"]["constructor"]["args"] = [
            {"name": "org", "typeDef": {"kind": "STRING_KIND", "optional": True}},
            {"name": "perPage", "typeDef": {"kind": "INTEGER_KIND"}},
            {"name": "verbose", "typeDef": {"kind": "BOOLEAN_KIND", "optional": True}},
            {"name": "draft", "typeDef": {"kind": "BOOLEAN_KIND", "optional": True}},
        ]
        mod = _module(github_type_defs)
        bound = await hydrate_constructor_args(
            client,
            mod,
            {"GITHUB_PERPAGE": "50", "GITHUB_VERBOSE": "true", "GITHUB_DRAFT": "0"},
        )
        assert bound == {"perPage": 50, "verbose": True, "draft": False}

    @pytest.mark.asyncio
    async def test_bad_integer(self, client, github_type_defs):
        github_type_defs[0]["asObject"]["constructor"]["args"] = [
            {"name": "perPage", "typeDef": {"kind": "INTEGER_KIND"}},
        ]
        with pytest.raises(HydrationError, match="GITHUB_PERPAGE"):
            await hydrate_constructor_args(client, _module(github_type_defs), {"GITHUB_PERPAGE": "many"})

    @pytest.mark.asyncio
    async def test_bad_boolean(self, client, github_type_defs):
        github_type_defs[0]["asObject"]["constructor"]["args"] = [
            {"name": "verbose", "typeDef": {"kind": "BOOLEAN_KIND"}},
        ]
        with pytest.raises(HydrationError, match="boolean"):
            await hydrate_constructor_args(client, _module(github_type_defs), {"GITHUB_VERBOSE": "maybe"})

    @pytest.mark.asyncio
    async def test_unsupported_object(self, client, github_type_defs):
        github_type_defs[0]["asObject"]["constructor"]["args"] = [
            {"name": "base", "typeDef": {"kind": "OBJECT_KIND", "asObject": {"name": "Container"}}},
        ]
        with pytest.raises(HydrationError, match="unsupported type Container"):
            await hydrate_constructor_args(client, _module(github_type_defs), {"GITHUB_BASE": "alpine"})

    @pytest.mark.asyncio
    async def test_secret_registration_failure(self, engine, client, github_module):
        engine.errors["setSecret"] = "session closed"
        with pytest.raises(HydrationError, match="session closed"):
            await hydrate_constructor_args(client, github_module, {"GITHUB_TOKEN": "s3cr3t"})


class TestLoad:
    """Tests for loading modules as tools through the engine."""

    @pytest.mark.asyncio
    async def test_load(self, engine, client):
        loaded = await load(client, "github.com/acme/github")
        assert isinstance(loaded, Tools)
        assert [t.name for t in loaded] == ["github_owner", "github_issue-list", "github_issue-get", "github_search"]

    @pytest.mark.asyncio
    async def test_load_all_duplicate_names(self, engine, client):
        with pytest.raises(DuplicateToolError) as exc_info:
            await load_all(client, ["github.com/acme/github", "github.com/acme/github-fork"])
        assert exc_info.value.name == "github_owner"
        assert exc_info.value.refs == ("github.com/acme/github", "github.com/acme/github-fork")

    @pytest.mark.asyncio
    async def test_openai_tools(self, engine, client):
        loaded = await load_all(client, ["github.com/acme/github"])
        names = [t["function"]["name"] for t in loaded.openai_tools()]
        assert names == [t["name"] for t in loaded.mcp_tools()]
