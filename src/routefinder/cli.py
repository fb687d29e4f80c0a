from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from routefinder.config import Settings
from routefinder.domain.models import Endpoint
from routefinder.errors import IndexBuildError
from routefinder.orchestrator.index_manager import BuildResult, IndexManager
from routefinder.store.file_cache import FileCache


app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log indexing progress to stderr"),
) -> None:
    _configure_logging(verbose)


def _repo_path(repo: str) -> Path:
    repo_path = Path(repo).expanduser().resolve()
    if not repo_path.exists():
        raise typer.BadParameter(f"Repo path does not exist: {repo_path}")
    if not repo_path.is_dir():
        raise typer.BadParameter(f"Repo path is not a directory: {repo_path}")
    return repo_path


def _settings(no_cache: bool) -> Settings:
    settings = Settings()
    if no_cache:
        settings = settings.model_copy(update={"enable_cache": False})
    return settings


def _build(manager: IndexManager, rebuild: bool = False) -> BuildResult:
    try:
        if rebuild:
            return manager.clear_cache_and_rebuild()
        return manager.build_index()
    except IndexBuildError as exc:
        console.print(f"[bold red]Index build failed:[/bold red] {exc}")
        raise typer.Exit(code=1)


def _rel(repo_path: Path, file_path: str) -> str:
    try:
        return Path(file_path).relative_to(repo_path).as_posix()
    except ValueError:
        return file_path


def _print_endpoints(repo_path: Path, endpoints: list[Endpoint], format: str, limit: int) -> None:
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    rows = endpoints[:limit]
    if fmt == "json":
        payload = [e.model_dump(by_alias=True) for e in rows]
        # plain print keeps the output machine readable
        print(json.dumps(payload, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("FILE:LINE", no_wrap=True)

    for e in rows:
        table.add_row(
            e.http_method,
            e.full_path,
            f"{e.class_name}.{e.method_name}",
            f"{_rel(repo_path, e.file_path)}:{e.start_line}",
        )

    console.print(table)
    if len(endpoints) > limit:
        console.print(f"  … and {len(endpoints) - limit} more")


@app.command()
def index(
    repo: str = typer.Argument(..., help="Path to the source tree to index"),
    rebuild: bool = typer.Option(False, "--rebuild", help="Discard the cache and re-parse every file"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither read nor write the endpoint cache"),
) -> None:
    repo_path = _repo_path(repo)
    manager = IndexManager(repo_path, settings=_settings(no_cache))

    result = _build(manager, rebuild=rebuild)

    console.print(f"[bold green]routefinder[/bold green] index: {repo_path}")
    console.print(f"Java files scanned: {result.files_total}")
    console.print(f"Parsed: {result.files_parsed}  Cached: {result.files_cached}  Removed: {result.files_removed}")
    console.print(f"Endpoints found: [bold]{result.total_endpoints}[/bold] in {result.indexed_files} files")
    if manager.settings.enable_cache:
        console.print(f"Cache: {manager.cache_path}")
    console.print("")
    console.print("Tip: run [bold]routefinder search <repo> <query>[/bold] to find an endpoint.")


@app.command()
def search(
    repo: str = typer.Argument(..., help="Path to the source tree"),
    query: str = typer.Argument(..., help="Free text matched against method names, paths and class names"),
    limit: int = typer.Option(50, help="Max rows to print"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    repo_path = _repo_path(repo)
    manager = IndexManager(repo_path, settings=Settings())
    _build(manager)

    results = manager.search(query)
    if not results:
        console.print(f"No endpoints match [bold]{query}[/bold]")
        return
    _print_endpoints(repo_path, results, format, limit)


@app.command("list")
def list_endpoints(
    repo: str = typer.Argument(..., help="Path to the source tree"),
    method: Optional[str] = typer.Option(None, help="Filter by HTTP method (GET/POST/.../ANY)"),
    path_contains: Optional[str] = typer.Option(None, help="Substring match on the full path"),
    class_contains: Optional[str] = typer.Option(None, help="Substring match on the class name"),
    limit: int = typer.Option(200, help="Max rows to print"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    repo_path = _repo_path(repo)
    manager = IndexManager(repo_path, settings=Settings())
    _build(manager)

    rows = manager.get_all_endpoints()
    if method:
        rows = [e for e in rows if e.http_method == method.upper()]
    if path_contains:
        rows = [e for e in rows if path_contains in e.full_path]
    if class_contains:
        needle = class_contains.lower()
        rows = [e for e in rows if needle in e.class_name.lower()]
    rows.sort(key=lambda e: (e.full_path, e.http_method, e.file_path, e.start_line))

    if format.lower().strip() == "table":
        console.print(f"[bold]Endpoints:[/bold] {len(rows)} (showing up to {limit})")
    _print_endpoints(repo_path, rows, format, limit)


@app.command("scan-file")
def scan_file(
    file: str = typer.Argument(..., help="Java source file to parse"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    file_path = Path(file).expanduser().resolve()
    if not file_path.is_file():
        raise typer.BadParameter(f"Not a file: {file_path}")

    manager = IndexManager(file_path.parent, settings=_settings(no_cache=True))
    count = manager.update_file(file_path)
    endpoints = manager.get_endpoints_for_file(file_path) or []

    if format.lower().strip() == "table":
        console.print(f"[bold]{file_path.name}:[/bold] {count or 0} endpoints")
    _print_endpoints(file_path.parent, endpoints, format, limit=len(endpoints) or 1)


@app.command("clear-cache")
def clear_cache(
    repo: str = typer.Argument(..., help="Path to the source tree"),
) -> None:
    repo_path = _repo_path(repo)
    cache_path = Settings().cache_path_for_root(repo_path)
    existed = cache_path.exists()
    FileCache(cache_path).delete_artifact()
    if existed:
        console.print(f"[bold green]Deleted[/bold green] {cache_path}")
    else:
        console.print(f"No cache at {cache_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
