"""
folio command line interface.

Commands:
  build               Compile a document once
  serve               Build, serve and rebuild on changes
  components list|add Inspect or add components
  data list|add       Inspect or add datasets
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from folio._version import __version__
from folio.core.errors import FolioError
from folio.instance import FolioInstance, create_instance
from folio.logging import setup_logging
from folio.pipeline import BuildOutput

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="""folio – compile interactive documents

  • build: compile a document into the output directory
  • serve: build, serve with live reload, rebuild on changes
  • components / data: manage project components and datasets
""",
    no_args_is_help=True,
)
components_app = typer.Typer(help="List and add project components")
data_app = typer.Typer(help="List and add project datasets")
app.add_typer(components_app, name="components")
app.add_typer(data_app, name="data")


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"folio {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    log_dir: Annotated[
        Path | None, typer.Option("--log-dir", help="Also write JSONL logs to this directory")
    ] = None,
) -> None:
    """Global options."""
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_dir=log_dir)


InputArg = Annotated[
    Path | None,
    typer.Argument(help="Document to compile (default: index.folio in the current directory)"),
]
OutputOpt = Annotated[str | None, typer.Option("--output", "-o", help="Output directory")]
LayoutOpt = Annotated[str | None, typer.Option("--layout", help="Page layout")]
ThemeOpt = Annotated[str | None, typer.Option("--theme", help="Visual theme")]
CssOpt = Annotated[Path | None, typer.Option("--css", help="Project stylesheet")]
ProjectOpt = Annotated[
    Path | None,
    typer.Option("--input", "-i", help="Document whose project to use (default: current directory)"),
]


def _options(**values: Any) -> dict[str, Any]:
    """Drop unset CLI values so the manifest and defaults apply."""
    options = {}
    for key, value in values.items():
        if value is None:
            continue
        options[key] = str(value) if isinstance(value, Path) else value
    return options


def _default_input(input_file: Path | None) -> Path:
    if input_file is not None:
        return input_file
    return Path.cwd() / "index.folio"


def _instance(**options: Any) -> FolioInstance:
    try:
        return create_instance(_options(**options))
    except FolioError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


@app.command()
def build(
    input_file: InputArg = None,
    output: OutputOpt = None,
    layout: LayoutOpt = None,
    theme: ThemeOpt = None,
    css: CssOpt = None,
    minify: Annotated[bool | None, typer.Option("--minify/--no-minify")] = None,
    ssr: Annotated[bool | None, typer.Option("--ssr/--no-ssr", help="Server-side render")] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Log build timing")] = False,
) -> None:
    """Compile a document into the output directory."""
    inst = _instance(
        input_file=_default_input(input_file),
        output=output,
        layout=layout,
        theme=theme,
        css=css,
        minify=minify,
        ssr=ssr,
        debug=debug or None,
    )

    result: dict[str, Any] = {}
    inst.on_update(lambda output: result.update(output=output))
    inst.on_error(lambda error: result.update(error=error))
    inst.build().wait()

    if "error" in result:
        err_console.print(f"[red]Build failed:[/red] {escape(str(result['error']))}")
        raise typer.Exit(code=1)

    built: BuildOutput = result["output"]
    console.print(f"[green]✓[/green] Built {built.html_path}")
    console.print(f"  script: {built.js_path}")
    console.print(f"  styles: {built.css_path}")


@app.command()
def serve(
    input_file: InputArg = None,
    output: OutputOpt = None,
    layout: LayoutOpt = None,
    theme: ThemeOpt = None,
    css: CssOpt = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Port to serve on")] = None,
    host: Annotated[str | None, typer.Option("--host", help="Host to bind to")] = None,
    open_browser: Annotated[
        bool | None, typer.Option("--open/--no-open", help="Open a browser")
    ] = None,
) -> None:
    """Build, serve with live reload and rebuild when sources change."""
    inst = _instance(
        input_file=_default_input(input_file),
        output=output,
        layout=layout,
        theme=theme,
        css=css,
        port=port,
        host=host,
        open=open_browser,
        watch=True,
    )
    inst.on_error(
        lambda error: err_console.print(f"[red]Build failed:[/red] {escape(str(error))}")
    )
    inst.on_complete(lambda: console.print("[green]✓[/green] Build complete"))
    inst.build()

    console.print("Press Ctrl+C to stop")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        console.print("\nShutting down...")
    finally:
        inst.stop_watching()


@components_app.command("list")
def components_list(
    project: ProjectOpt = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List default and project components."""
    inst = _instance(input_file=project)
    components = inst.get_components()

    if output_json:
        console.print_json(json.dumps([{"name": c.name, "path": str(c.path)} for c in components]))
        return

    table = Table(title="Components")
    table.add_column("Name")
    table.add_column("Path", style="dim")
    for component in components:
        table.add_row(component.name, str(component.path))
    console.print(table)


@components_app.command("add")
def components_add(
    path: Annotated[Path, typer.Argument(help="Component file to copy into the project")],
    project: ProjectOpt = None,
) -> None:
    """Copy a component into the project (replaces one with the same name)."""
    inst = _instance(input_file=project)
    try:
        inst.add_component(path)
    except FolioError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓[/green] Added {path.name} to {inst.get_components_directory()[0]}")


@data_app.command("list")
def data_list(
    project: ProjectOpt = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List datasets in the data directory."""
    inst = _instance(input_file=project)
    try:
        datasets = inst.get_datasets()
    except FolioError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    if output_json:
        console.print_json(
            json.dumps(
                [{"name": d.name, "path": str(d.path), "extension": d.extension} for d in datasets]
            )
        )
        return

    table = Table(title="Datasets")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Path", style="dim")
    for dataset in datasets:
        table.add_row(dataset.name, dataset.extension, str(dataset.path))
    console.print(table)


@data_app.command("add")
def data_add(
    path: Annotated[Path, typer.Argument(help="Dataset file to copy into the project")],
    project: ProjectOpt = None,
) -> None:
    """Copy a dataset into the data directory (replaces one with the same name)."""
    inst = _instance(input_file=project)
    try:
        inst.add_dataset(path)
    except FolioError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓[/green] Added {path.name} to {inst.get_paths().data_dir}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
