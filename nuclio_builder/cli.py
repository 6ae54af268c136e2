"""nuclio-builder CLI.

Commands:
- build     build a processor image (or binary) from a function directory
- handlers  list the packages and event handlers found in a function
- config    print the resolved function configuration
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from nuclio_builder.config import resolve_config
from nuclio_builder.core import Builder
from nuclio_builder.detect.base import discover_handlers
from nuclio_builder.errors import BuilderError
from nuclio_builder.types import DEFAULT_NUCLIO_SOURCE_URL, BuildOptions, BuildSettings, OutputType

app = typer.Typer(add_completion=False, help="Build nuclio processor images from functions")
console = Console()


def _fail(exc: Exception) -> None:
    rprint(f"[red]Error:[/red] {exc}")
    for note in getattr(exc, "__notes__", []):
        rprint(f"  [red]{note}[/red]")
    raise typer.Exit(code=1)


@app.command()
def build(
    path: str = typer.Argument(..., help="Function directory, source file or URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    output: OutputType = typer.Option(OutputType.docker, "--output", "-o", help="Output type"),
    name: str = typer.Option("", "--name", "-n", help="Output name (image or binary)"),
    version: str = typer.Option("latest", "--version", help="Version tag"),
    nuclio_src_dir: str | None = typer.Option(
        None, "--nuclio-src-dir", help="Local directory with nuclio sources"
    ),
    nuclio_src_url: str = typer.Option(
        DEFAULT_NUCLIO_SOURCE_URL, "--nuclio-src-url", help="nuclio git URL, optionally with #ref"
    ),
    push: str | None = typer.Option(None, "--push", help="Registry URL to push the image to"),
    config: str | None = typer.Option(None, "--config", help="Function descriptor path"),
    keep_workspace: bool = typer.Option(
        False, "--keep-workspace", help="Keep the temporary build directory"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Build timeout in seconds"),
) -> None:
    options = BuildOptions(
        function_path=path,
        output_type=output.value,
        output_name=name,
        version=version,
        nuclio_source_dir=nuclio_src_dir,
        nuclio_source_url=nuclio_src_url,
        push_registry=push,
        verbose=verbose,
        config_path=config,
        keep_workspace=keep_workspace,
        timeout=timeout,
    )
    try:
        result = Builder(options).build()
    except BuilderError as exc:
        _fail(exc)
        return

    table = Table(title="Build Summary")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("type", result.output_type)
    table.add_row("name", result.output_name)
    if result.sha256:
        table.add_row("sha256", result.sha256)
    if result.pushed_image:
        table.add_row("pushed", result.pushed_image)
    table.add_row("containers removed", str(len(result.cleanup.removed_containers)))
    console.print(table)
    rprint("[green]Build completed successfully.[/green]")


@app.command()
def handlers(path: str = typer.Argument(".", help="Function directory or Go file")) -> None:
    try:
        report = discover_handlers(Path(path))
    except BuilderError as exc:
        _fail(exc)
        return

    table = Table(title="Event handlers")
    table.add_column("Package", style="cyan")
    table.add_column("Handler")
    for candidate in report.candidates:
        table.add_row(candidate.package, candidate.name)
    console.print(table)
    if not report.candidates:
        rprint("[yellow]No handlers found[/yellow] in", path)


@app.command(name="config")
def show_config(path: str = typer.Argument(".", help="Function directory")) -> None:
    settings = BuildSettings.from_env()
    root = Path(path)
    try:
        cfg = resolve_config(
            root / settings.function_descriptor, root / settings.build_descriptor, settings
        )
    except BuilderError as exc:
        _fail(exc)
        return
    rprint(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    app()
