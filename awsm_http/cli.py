import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
import yaml

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from awsm_http.config import EngineSettings, TestResult
from awsm_http.dynamic_data import get_generator
from awsm_http.engine import RequestEngine, RunReport, SendOutcome
from awsm_http.errors import AwsmError
from awsm_http.importers import import_postman_collection, load_postman_collection
from awsm_http.utils import setup_logging
from awsm_http.variables import VariableScope, resolve as resolve_text
from awsm_http.workspace import Workspace

console = Console()
app = typer.Typer(rich_markup_mode="rich")


def _status_style(status: int) -> str:
    if status == 0 or status >= 500:
        return "red"
    if status >= 400:
        return "yellow"
    return "green"


def _load_settings(
    config: Optional[Path],
    locale: Optional[str] = None,
    seed: Optional[int] = None,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> EngineSettings:
    try:
        settings = EngineSettings.from_yaml(config) if config else EngineSettings()
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Failed to load settings: {e}[/red]")
        raise typer.Exit(2)
    overrides = {
        "faker_locale": locale,
        "seed": seed,
        "timeout": timeout,
        "retries": retries,
    }
    return settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def _load_workspace(path: Path, settings: EngineSettings, env: Optional[str]) -> Workspace:
    try:
        workspace = Workspace.load(path, history_limit=settings.history_limit)
        if env:
            workspace.set_active_environment(env)
    except AwsmError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Failed to load workspace {path}: {e}[/red]")
        raise typer.Exit(2)
    return workspace


def _print_tests(results: List[TestResult]) -> None:
    for result in results:
        if result.passed:
            line = f"  [green]PASS[/green] {escape(result.name)}"
        else:
            line = f"  [red]FAIL[/red] {escape(result.name)} [dim]({escape(result.error or '')})[/dim]"
        if result.description:
            line += f" [dim]- {escape(result.description)}[/dim]"
        console.print(line)


def _print_outcome(outcome: SendOutcome, show_body: bool = True) -> None:
    if outcome.request is not None:
        console.print(f"[bold]{outcome.request.method.value}[/bold] {escape(outcome.request.url)}")

    response = outcome.response
    if response is not None:
        style = _status_style(response.status)
        console.print(
            f"[{style}]{response.status} {response.status_text}[/{style}] "
            f"[dim]{response.time} ms, {response.size} B[/dim]"
        )

    if outcome.logs:
        console.print("[bold]Logs:[/bold]")
        for line in outcome.logs:
            console.print(f"  {line}", markup=False)

    if outcome.test_results:
        console.print("[bold]Tests:[/bold]")
        _print_tests(outcome.test_results)

    if outcome.error:
        console.print(f"[red]{escape(outcome.error)}[/red]")

    if show_body and response is not None and response.raw_body:
        if isinstance(response.body, (dict, list)):
            console.print_json(data=response.body)
        else:
            console.print(response.raw_body, markup=False)


def _outcome_dict(outcome: SendOutcome) -> dict:
    return {
        "requestId": outcome.request_id,
        "phase": outcome.phase.value,
        "error": outcome.error,
        "errorKind": outcome.error_kind.value if outcome.error_kind else None,
        "stale": outcome.stale,
        "logs": outcome.logs,
        "response": outcome.response.model_dump(mode="json", by_alias=True) if outcome.response else None,
    }


@app.command()
def send(
    workspace_file: Path = typer.Argument(..., help="Workspace snapshot (JSON or YAML)"),
    request: str = typer.Argument(..., help="Request id, name or Folder/Request path"),
    env: str = typer.Option(None, "-e", "--env", help="Environment to activate (id or name)"),
    config: Path = typer.Option(None, "-c", "--config", help="Engine settings YAML"),
    locale: str = typer.Option(None, "--locale", help="Dynamic data locale"),
    seed: int = typer.Option(None, "--seed", help="Seed for reproducible dynamic data"),
    timeout: float = typer.Option(None, "--timeout", help="Request timeout in seconds"),
    retries: int = typer.Option(None, "--retries", help="Retries on connection failures"),
    save: bool = typer.Option(False, "--save", help="Write responses, history and variables back"),
    output: Path = typer.Option(None, "-o", "--output", help="Write the outcome as JSON"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Do not print the response body"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """Send one request from a workspace."""
    setup_logging(verbose=verbose)
    settings = _load_settings(config, locale, seed, timeout, retries)
    workspace = _load_workspace(workspace_file, settings, env)

    try:
        node = workspace.find_node(request)
    except AwsmError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2)

    async def _send() -> SendOutcome:
        async with RequestEngine(workspace, settings=settings) as engine:
            return await engine.send(node.id)

    outcome = asyncio.run(_send())
    _print_outcome(outcome, show_body=not quiet)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(_outcome_dict(outcome), f, indent=2)
        console.print(f"[green]Outcome saved to: {output}[/green]")

    if save:
        workspace.save(workspace_file)
        console.print(f"[dim]Workspace saved to {workspace_file}[/dim]")

    raise typer.Exit(0 if outcome.passed else 1)


def _print_report(report: RunReport, workspace: Workspace) -> None:
    table = Table(title="Collection Run")
    table.add_column("Request", style="cyan")
    table.add_column("Status")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Tests", justify="right")
    table.add_column("Error", style="red")

    for outcome in report.outcomes:
        response = outcome.response
        if response is not None:
            style = _status_style(response.status)
            status = f"[{style}]{response.status} {response.status_text}[/{style}]"
            elapsed = f"{response.time} ms"
        else:
            status, elapsed = "-", "-"
        results = outcome.test_results
        passed = sum(1 for t in results if t.passed)
        tests = f"{passed}/{len(results)}" if results else "-"
        table.add_row(workspace.path_of(outcome.request_id), status, elapsed, tests, escape(outcome.error or ""))

    console.print(table)
    console.print(
        f"\n{len(report.outcomes)} request(s) in {report.duration:.2f}s: "
        f"[green]{report.tests_passed} passed[/green], "
        f"[red]{report.tests_failed} failed[/red], "
        f"{report.errors} error(s)"
    )


@app.command()
def run(
    workspace_file: Path = typer.Argument(..., help="Workspace snapshot (JSON or YAML)"),
    node: str = typer.Argument(None, help="Folder to run (id, name or path); default: everything"),
    env: str = typer.Option(None, "-e", "--env", help="Environment to activate (id or name)"),
    config: Path = typer.Option(None, "-c", "--config", help="Engine settings YAML"),
    locale: str = typer.Option(None, "--locale", help="Dynamic data locale"),
    seed: int = typer.Option(None, "--seed", help="Seed for reproducible dynamic data"),
    timeout: float = typer.Option(None, "--timeout", help="Request timeout in seconds"),
    retries: int = typer.Option(None, "--retries", help="Retries on connection failures"),
    save: bool = typer.Option(False, "--save", help="Write responses, history and variables back"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """Run every request in a workspace or folder, in tree order."""
    setup_logging(verbose=verbose)
    settings = _load_settings(config, locale, seed, timeout, retries)
    workspace = _load_workspace(workspace_file, settings, env)

    node_id = None
    if node:
        try:
            node_id = workspace.find_node(node).id
        except AwsmError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(2)

    async def _run() -> RunReport:
        async with RequestEngine(workspace, settings=settings) as engine:
            return await engine.run_collection(node_id)

    report = asyncio.run(_run())
    if not report.outcomes:
        console.print("[yellow]No requests to run[/yellow]")
        raise typer.Exit(0)

    _print_report(report, workspace)

    if save:
        workspace.save(workspace_file)
        console.print(f"[dim]Workspace saved to {workspace_file}[/dim]")

    raise typer.Exit(0 if report.ok else 1)


@app.command("import-postman")
def import_postman(
    collection: Path = typer.Argument(..., help="Postman collection JSON (v2.x)"),
    output: Path = typer.Argument(..., help="Workspace snapshot to write"),
    merge: bool = typer.Option(False, "--merge", help="Add to an existing workspace at OUTPUT"),
):
    """Convert a Postman collection into a workspace snapshot."""
    try:
        data = load_postman_collection(collection)
    except (OSError, ValueError) as e:
        console.print(f"[red]Failed to read collection: {e}[/red]")
        raise typer.Exit(1)

    workspace = _load_workspace(output, EngineSettings(), None) if merge and output.exists() else Workspace()
    try:
        root_id = import_postman_collection(workspace, data)
    except (AwsmError, ValueError) as e:
        console.print(f"[red]Failed to import collection: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    workspace.save(output)

    count = sum(1 for _ in workspace.iter_requests(root_id))
    console.print(f"[green]Imported '{workspace.get_node(root_id).name}' ({count} requests) into {output}[/green]")


@app.command()
def resolve(
    text: str = typer.Argument(..., help="Template text, e.g. '{{baseUrl}}/users/{{faker.string.uuid()}}'"),
    var: List[str] = typer.Option(None, "--var", help="Variable as KEY=VALUE (repeatable)"),
    workspace_file: Path = typer.Option(None, "-w", "--workspace", help="Take variables from a workspace"),
    env: str = typer.Option(None, "-e", "--env", help="Environment to activate (id or name)"),
    locale: str = typer.Option("en", "--locale", help="Dynamic data locale"),
    seed: int = typer.Option(None, "--seed", help="Seed for reproducible dynamic data"),
):
    """Preview template resolution."""
    scope = VariableScope()
    if workspace_file:
        scope = _load_workspace(workspace_file, EngineSettings(), env).variable_scope()

    overrides = {}
    for item in var or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            console.print(f"[red]Invalid --var '{item}', expected KEY=VALUE[/red]")
            raise typer.Exit(2)
        overrides[key] = value

    generator = get_generator(locale, seed)
    console.print(resolve_text(text, scope.merged(overrides), generator.locale, generator), markup=False)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    if ctx.invoked_subcommand is None:
        console.print("\n[bold cyan]awsm-http[/bold cyan] - HTTP request runner\n")
        console.print("Usage:")
        console.print("  awsm-http send <workspace> <request>     Send one request")
        console.print("  awsm-http run <workspace> [folder]       Run a collection")
        console.print("  awsm-http import-postman <in> <out>      Import a Postman collection")
        console.print("  awsm-http resolve <text> --var k=v       Preview template resolution")
        raise typer.Exit(0)


if __name__ == "__main__":
    app()
