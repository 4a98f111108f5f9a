"""
langdag CLI - Inspect, call and serve module tools.

Run `langdag tools <module>` to see what a module exposes.
The engine session is read from DAGGER_SESSION_PORT / DAGGER_SESSION_TOKEN
or .langdag/config.yaml.
"""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from langdag import __version__
from langdag.config import Config, LangdagConfig
from langdag.engine.client import EngineClient
from langdag.errors import LangdagError
from langdag.tools.agent import run_agent
from langdag.tools.mcp_server import serve_stdio
from langdag.tools.projection import get_supported_functions
from langdag.tools.tool import Tools, load_all

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _run(ctx: click.Context, fn: Callable[[EngineClient, LangdagConfig], Awaitable[T]]) -> T:
    """Connect to the engine, run ``fn`` and turn langdag errors into exit codes."""
    config: LangdagConfig = ctx.obj

    async def main() -> T:
        async with EngineClient.from_config(config.engine) as client:
            return await fn(client, config)

    try:
        return asyncio.run(main())
    except LangdagError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _modules(config: LangdagConfig, modules: Tuple[str, ...]) -> Tuple[str, ...]:
    refs = modules or tuple(config.modules)
    if not refs:
        raise click.UsageError("no modules given and none configured in .langdag/config.yaml")
    return refs


@click.group()
@click.version_option(__version__, "--version", "-v")
@click.option("--log-level", default=None, help="Logging level (default from config)")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Expose engine modules as LLM tools."""
    try:
        config = Config.load().merged
    except LangdagError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    _setup_logging(log_level or config.log_level)
    ctx.obj = config


@cli.command()
@click.argument("modules", nargs=-1)
@click.pass_context
def tools(ctx: click.Context, modules: Tuple[str, ...]) -> None:
    """List the tools exposed by MODULES."""
    refs = _modules(ctx.obj, modules)

    async def inspect(client: EngineClient, config: LangdagConfig) -> Tools:
        return await load_all(client, refs)

    loaded = _run(ctx, inspect)

    table = Table(title="Tools", show_lines=False)
    table.add_column("Name", style="cyan")
    table.add_column("Parameters")
    table.add_column("Description", style="dim")
    for tool in loaded:
        params = ", ".join(
            f"{arg.name}{'' if arg.is_required() else '?'}: {arg.type_def}" for arg in tool.fn.supported_args()
        )
        table.add_row(tool.name, params or "-", tool.fn.short())
    console.print(table)

    seen = set()
    for tool in loaded:
        if id(tool.mod) in seen:
            continue
        seen.add(id(tool.mod))
        _, skipped = get_supported_functions(tool.mod.main)
        if skipped:
            console.print(f"[yellow]{tool.mod.name}: skipped {', '.join(skipped)}[/yellow]")
        for dep in tool.mod.dependencies:
            console.print(f"[dim]{tool.mod.name} depends on {dep.name} ({dep.mod_ref}): {dep.short()}[/dim]")


@cli.command()
@click.argument("module")
@click.argument("tool_name")
@click.argument("arguments", required=False, default="{}")
@click.pass_context
def call(ctx: click.Context, module: str, tool_name: str, arguments: str) -> None:
    """Call TOOL_NAME of MODULE with JSON ARGUMENTS."""

    async def dispatch(client: EngineClient, config: LangdagConfig) -> str:
        loaded = await load_all(client, [module])
        await loaded.init_from_env()
        return await loaded.dispatch(tool_name, arguments)

    console.print_json(_run(ctx, dispatch))


@cli.command()
@click.argument("question")
@click.argument("modules", nargs=-1)
@click.option("--model", "-m", default=None, help="Chat model (default from config)")
@click.pass_context
def ask(ctx: click.Context, question: str, modules: Tuple[str, ...], model: Optional[str]) -> None:
    """Answer QUESTION using the tools of MODULES."""
    refs = _modules(ctx.obj, modules)

    async def answer(client: EngineClient, config: LangdagConfig) -> str:
        loaded = await load_all(client, refs)
        await loaded.init_from_env()
        for tool in loaded:
            err_console.print(f"[dim]Tool {tool.name}: {tool.fn.short()}[/dim]")
        agent_config = config.agent.model_copy(update={"model": model}) if model else config.agent
        return await run_agent(loaded, question, agent_config)

    console.print(f"[bold]> {question}[/bold]")
    console.print(_run(ctx, answer))


@cli.command()
@click.argument("modules", nargs=-1)
@click.pass_context
def mcp(ctx: click.Context, modules: Tuple[str, ...]) -> None:
    """Serve the tools of MODULES over MCP stdio."""
    refs = _modules(ctx.obj, modules)

    async def serve(client: EngineClient, config: LangdagConfig) -> None:
        loaded = await load_all(client, refs)
        await loaded.init_from_env()
        err_console.print(f"[green]Serving {len(loaded)} tools over stdio[/green]")
        await serve_stdio(loaded)

    _run(ctx, serve)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
