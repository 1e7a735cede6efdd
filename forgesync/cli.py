"""CLI entry point for ForgeSync."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from forgesync.auth import JoseTokenVerifier
from forgesync.config import ForgeSyncConfig, load_config
from forgesync.config.loader import DEFAULT_CONFIG_TEMPLATE
from forgesync.ingest import (
    RepoData,
    RepositoryBrowser,
    RepositoryInfo,
    RepositoryService,
    ServiceResult,
)
from forgesync.logs import configure_logging
from forgesync.source import create_source
from forgesync.store import SQLiteStore

app = typer.Typer(
    name="forgesync",
    help="Import a repository's commits, branches, files and contributors into a relational store.",
)

config_app = typer.Typer(help="Manage ForgeSync configuration.")
app.add_typer(config_app, name="config")

languages_app = typer.Typer(help="Manage the language registry.")
app.add_typer(languages_app, name="languages")

# Global state
_config: ForgeSyncConfig | None = None


def _get_config() -> ForgeSyncConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to forgesync.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


def _open_store(cfg: ForgeSyncConfig) -> SQLiteStore:
    try:
        return SQLiteStore.from_config(cfg.store)
    except Exception as e:
        rprint(f"[red]Error:[/red] Could not open store at {cfg.store.db_path}: {e}")
        raise typer.Exit(1)


def _browser(cfg: ForgeSyncConfig) -> RepositoryBrowser:
    store = _open_store(cfg)
    return RepositoryBrowser(store, store, cfg.validation)


def _fail(result: ServiceResult) -> None:
    err = result.error
    if err is None:
        rprint("[red]Error:[/red] Operation failed without a reason.")
        raise typer.Exit(1)
    detail = f" ({err.field})" if err.field else f" ({err.subject})" if err.subject else ""
    rprint(f"[red]{err.kind.value}{detail}:[/red] {err.message}")
    raise typer.Exit(1)


def _format_size(size: int | None) -> str:
    if size is None:
        return "-"
    if size < 1024:
        return f"{size} B"
    return f"{size / 1024:.1f} KB"


def _display_info(info: RepositoryInfo) -> None:
    """Render an imported repository as a metadata panel, file table and commit tree."""
    panel_text = (
        f"[bold]{info.owner}/{info.name}[/bold]\n"
        f"{info.description or '(no description)'}\n\n"
        f"[dim]Languages:[/dim]    {', '.join(info.languages) or '-'}\n"
        f"[dim]Contributors:[/dim] {', '.join(info.contributors) or '-'}\n"
        f"[dim]Branches:[/dim]     "
        f"{', '.join(f'{b.name} ({b.type})' for b in info.branches) or '-'}\n"
        f"[dim]Imported:[/dim]     {info.created_at:%Y-%m-%d %H:%M}"
    )
    rprint(Panel(panel_text, title="Repository", border_style="blue"))

    table = Table(title=f"Files ({len(info.files)})")
    table.add_column("Path", style="cyan")
    table.add_column("Language", style="green")
    table.add_column("Size", justify="right")
    for f in info.files:
        path = f.path if f.size is not None else f"[dim]{f.path} (deleted)[/dim]"
        table.add_row(path, f.language or "-", _format_size(f.size))
    rprint(table)

    touched: dict[str, list[str]] = {}
    for m in info.modifications:
        touched.setdefault(m.commit, []).append(f"{m.type} {m.file}")

    tree = Tree(f"[bold]Commits[/bold] ({len(info.commits)})")
    for c in info.commits:
        branches = f" [yellow]\\[{', '.join(c.branches)}][/yellow]" if c.branches else ""
        node = tree.add(f"[green]{c.hash[:10]}[/green] {c.title} [dim]{c.author}[/dim]{branches}")
        for line in touched.get(c.hash, []):
            node.add(line)
    rprint(tree)


@app.command()
def ingest(
    name: str = typer.Argument(..., help="Repository name to import"),
    description: str = typer.Option("", "--description", "-d", help="Repository description"),
    language: list[str] | None = typer.Option(
        None, "--language", "-l", help="Declared language (repeatable)"
    ),
    token: str | None = typer.Option(
        None, "--token", envvar="FORGESYNC_TOKEN", help="Signed actor token"
    ),
) -> None:
    """Import a repository for the actor named in the token."""
    cfg = _get_config()
    store = _open_store(cfg)
    try:
        source = create_source(cfg.source)
        verifier = JoseTokenVerifier.from_config(cfg.auth)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    service = RepositoryService(source, store, store, verifier, cfg)
    data = RepoData(name=name, description=description, languages=language or [])
    result = asyncio.run(service.create_repository(data, token))
    if not result.success:
        _fail(result)

    owner = verifier.resolve(token)
    if owner is None:
        rprint(f"[green]Imported[/green] {name}")
        return
    view_result = asyncio.run(service.get_info(name, owner))
    if not view_result.success:
        _fail(view_result)
    view = view_result.data
    rprint(
        f"[green]Imported[/green] {owner}/{name}: "
        f"{len(view.commits)} commits, {len(view.branches)} branches, "
        f"{len(view.files)} files, {len(view.modifications)} modifications"
    )


@app.command()
def info(
    name: str = typer.Argument(..., help="Repository name"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owning actor id"),
) -> None:
    """Show an imported repository."""
    cfg = _get_config()
    browser = _browser(cfg)
    result = asyncio.run(browser.get_info(name, owner))
    if not result.success:
        _fail(result)
    _display_info(result.data)


@app.command()
def search(
    term: str = typer.Argument(..., help="Substring of the repository name"),
) -> None:
    """Search imported repositories by name."""
    cfg = _get_config()
    browser = _browser(cfg)
    result = asyncio.run(browser.search(term))
    if not result.success:
        _fail(result)

    table = Table(title=f"Repositories ({len(result.data)})")
    table.add_column("Owner", style="yellow")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for repo in result.data:
        table.add_row(repo.owner, repo.name, repo.description or "-")
    rprint(table)


# ---------------------------------------------------------------------------
# Language registry
# ---------------------------------------------------------------------------


@languages_app.command("seed")
def languages_seed() -> None:
    """Insert the built-in languages and extensions. Existing entries are kept."""
    store = _open_store(_get_config())
    count = store.seed_languages()
    rprint(f"[green]Seeded[/green] {count} languages into {store.db_path}")


@languages_app.command("list")
def languages_list() -> None:
    """List registered languages and their extensions."""
    store = _open_store(_get_config())
    languages = asyncio.run(store.list_languages())
    if not languages:
        rprint("[yellow]No languages registered.[/yellow] Run `forgesync languages seed`.")
        return
    table = Table(title=f"Languages ({len(languages)})")
    table.add_column("Name", style="cyan")
    table.add_column("Extensions", style="green")
    for lang in languages:
        table.add_row(lang.name, ", ".join(f".{e}" for e in lang.extensions) or "-")
    rprint(table)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default forgesync.yaml in current directory."""
    target = Path("forgesync.yaml")
    if target.exists() and not force:
        rprint("[yellow]forgesync.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
