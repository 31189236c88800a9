"""Main CLI for code-wiki."""

import asyncio
import contextlib
import signal
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..core.app import CodeWiki
from ..core.config import DEFAULT_CONFIG_PATH, load_config
from ..search.models import SearchRequest
from ..utils.rich_logging import setup_logging


console = Console()


def _load_app(ctx) -> CodeWiki:
    if "app" not in ctx.obj:
        try:
            config = load_config(ctx.obj["config_path"])
        except (ValidationError, ValueError) as e:
            console.print(f"[red]Invalid configuration: {e}[/]")
            sys.exit(1)
        setup_logging(ctx.obj.get("log_level") or config.log_level, config.log_file)
        ctx.obj["app"] = CodeWiki(config)
    return ctx.obj["app"]


def _indexed_app(ctx) -> CodeWiki:
    app = _load_app(ctx)
    asyncio.run(app.ensure_index())
    return app


def _print_error(result: dict) -> bool:
    if "error" not in result:
        return False
    console.print(f"[red]Error: {result['error']}[/]")
    if result.get("suggestion"):
        console.print(f"[dim]{result['suggestion']}[/]")
    return True


@click.group()
@click.version_option(__version__, prog_name="code-wiki")
@click.option("--config", "-c", "config_path", default=str(DEFAULT_CONFIG_PATH),
              type=click.Path(path_type=Path), help="Config file")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
              default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx, config_path, log_level):
    """Code Wiki - search across local repositories and curated documents."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


@cli.command()
@click.pass_context
def index(ctx):
    """Rebuild the index of repositories and wiki documents."""
    app = _load_app(ctx)
    console.print("[bold]Building index...[/]")
    result = asyncio.run(app.builder.build_full())
    console.print(
        f"[green]✓ Indexed {len(result.repos)} repositories and "
        f"{len(result.wiki_documents)} wiki documents[/]"
    )


@cli.command()
@click.argument("query")
@click.option("--category", help="Only wiki documents in this category")
@click.option("--language", "-l", help="Filter by language (e.g. python, typescript)")
@click.option("--repo", "-r", help="Only search this repository")
@click.option("--wiki/--no-wiki", default=True, help="Include wiki documents")
@click.option("--repos/--no-repos", "include_repos", default=True, help="Include repository files")
@click.option("--limit", "-n", type=int, default=None, help="Maximum number of results")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def search(ctx, query, category, language, repo, wiki, include_repos, limit, as_json):
    """Search wiki documents and repository files."""
    app = _indexed_app(ctx)
    response = asyncio.run(app.search(SearchRequest(
        query=query,
        category=category,
        language=language,
        repo_name=repo,
        include_wiki=wiki,
        include_repos=include_repos,
        limit=limit,
    )))

    if as_json:
        console.print_json(response.model_dump_json())
        return

    if not response.results:
        console.print(f"[yellow]No results for '{query}'[/]")
        console.print("[dim]Try broader terms, or drop the language/category filters[/]")
        return

    table = Table(title=f"{response.total_count} results in {response.search_time_ms:.0f}ms")
    table.add_column("Score", justify="right")
    table.add_column("Type")
    table.add_column("Location")
    table.add_column("Preview", overflow="fold")
    for r in response.results:
        if r.type == "wiki":
            location = f"{r.path}\n[dim]{r.title}[/]"
        else:
            location = f"{r.repo_name}/{r.path}:{r.line_number}"
        table.add_row(f"{r.score:.1f}", r.type, location, r.preview[:200])
    console.print(table)


@cli.command()
@click.option("--sort", "sort_by", type=click.Choice(["name", "last_modified", "language"]),
              default="name", help="Sort order")
@click.option("--language", "-l", help="Only repositories using this language")
@click.pass_context
def repos(ctx, sort_by, language):
    """List indexed repositories."""
    app = _indexed_app(ctx)
    result = app.list_repos(sort_by=sort_by, language=language)
    if _print_error(result):
        sys.exit(1)

    table = Table(title=f"{result['total_repos']} repositories")
    table.add_column("Name")
    table.add_column("Languages")
    table.add_column("Files", justify="right")
    table.add_column("Last Commit")
    table.add_column("Description", overflow="fold")
    for repo in result["repos"]:
        table.add_row(
            repo["name"],
            ", ".join(repo["languages"]),
            str(repo["file_count"]),
            (repo["last_commit"] or "")[:10],
            repo["description"] or "",
        )
    console.print(table)


@cli.command()
@click.argument("category", required=False)
@click.pass_context
def categories(ctx, category):
    """List wiki categories, or the documents in one category."""
    app = _indexed_app(ctx)
    result = app.list_category(category)
    if "error" in result:
        console.print(f"[red]Error: {result['error']}[/]")
        console.print(f"[dim]Valid categories: {', '.join(result['valid_categories'])}[/]")
        sys.exit(1)

    if category is None:
        table = Table(title=f"{result['total_documents']} documents")
        table.add_column("Category")
        table.add_column("Documents", justify="right")
        for cat in result["categories"]:
            table.add_row(cat["name"], str(cat["document_count"]))
        console.print(table)
        return

    if "documents" not in result:
        console.print(f"[yellow]{result['message']}[/]")
        console.print(f"[dim]{result['suggestion']}[/]")
        return

    table = Table(title=category)
    table.add_column("Path")
    table.add_column("Title")
    table.add_column("Tags")
    for doc in result["documents"]:
        table.add_row(doc["path"], doc["title"], ", ".join(doc["tags"]))
    console.print(table)


@cli.command()
@click.argument("path")
@click.pass_context
def doc(ctx, path):
    """Print a wiki document by its wiki-relative path."""
    app = _load_app(ctx)
    result = app.get_document(path)
    if _print_error(result):
        sys.exit(1)

    console.print(f"[bold]{result['title']}[/]")
    if result["tags"]:
        console.print(f"[dim]tags: {', '.join(result['tags'])}[/]")
    console.print()
    click.echo(result["content"])


@cli.command("file")
@click.argument("repo")
@click.argument("path", default=".")
@click.pass_context
def file_cmd(ctx, repo, path):
    """Print a file (or list a directory) from an indexed repository."""
    app = _indexed_app(ctx)
    result = app.get_file(repo, path)
    if _print_error(result):
        if result.get("available_repos"):
            console.print(f"[dim]Available: {', '.join(result['available_repos'])}[/]")
        sys.exit(1)

    if result["type"] == "directory":
        for entry in result["contents"]:
            suffix = "/" if entry["type"] == "directory" else ""
            click.echo(f"{entry['name']}{suffix}")
    else:
        click.echo(result["content"])


@cli.command()
@click.option("--force", is_flag=True, help="Pull every repository even if it looks up to date")
@click.pass_context
def sync(ctx, force):
    """Pull updates for local repositories and clone new remote ones."""
    app = _indexed_app(ctx)
    app.sync.initialize()
    if not app.config.github.sync_enabled:
        console.print("[yellow]Remote sync disabled (no username/token); refreshing local repos only[/]")

    result = asyncio.run(app.sync_repos(force=force))
    summary = result["summary"]
    console.print(
        f"[green]✓ Checked {summary['repos_checked']}, pulled {summary['repos_pulled']}, "
        f"cloned {summary['repos_cloned']}[/]"
    )
    for error in result.get("errors", []):
        console.print(f"[red]✗ {error['repo'] or 'sync'}: {error['error']}[/]")
    if result.get("errors"):
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show index and sync status."""
    app = _load_app(ctx)
    cached = app.store.load()
    if cached is not None:
        app.builder.set_index(cached)
    app.sync.initialize()
    info = app.status()

    table = Table(title="Code Wiki Status", show_header=False)
    table.add_column("Key")
    table.add_column("Value")
    table.add_row("Repositories", str(info["repos"]))
    table.add_row("Wiki documents", str(info["wiki_documents"]))
    table.add_row("Last full index", info["last_full_index"] or "[dim]never[/]")
    table.add_row("Index stale", "[yellow]yes[/]" if info["index_stale"] else "[green]no[/]")
    table.add_row("Remote sync", "[green]enabled[/]" if info["sync_enabled"] else "[dim]disabled[/]")
    table.add_row("Last sync", info["last_sync_time"] or "[dim]never[/]")
    table.add_row("Source directories", "\n".join(info["source_directories"]) or "[red]none[/]")
    table.add_row("Wiki directory", info["wiki_directory"])
    table.add_row("Cache directory", info["cache_directory"])
    console.print(table)


@cli.command()
@click.argument("file", required=False)
@click.pass_context
def preferences(ctx, file):
    """List preference files, or print one."""
    app = _load_app(ctx)
    result = app.get_preferences(file)
    if _print_error(result):
        sys.exit(1)

    if file is None:
        console.print(f"[bold]{result['preferences_directory']}[/]")
        for name in result["available_files"]:
            console.print(f"  {name}")
    else:
        click.echo(result["content"])


@cli.command("clear-cache")
@click.confirmation_option(prompt="Delete the cached index and sync state?")
@click.pass_context
def clear_cache(ctx):
    """Delete the cached index and sync state."""
    app = _load_app(ctx)
    app.store.clear()
    console.print("[green]✓ Cache cleared[/]")


@cli.command()
@click.option("--no-sync", is_flag=True, help="Do not start background sync")
@click.pass_context
def serve(ctx, no_sync):
    """Keep the index fresh and sync repositories in the background until interrupted."""
    app = _load_app(ctx)
    try:
        app.config.require_source_directories()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)

    console.print("[bold green]Starting Code Wiki[/]")
    console.print("[dim]Press Ctrl+C to stop[/]")
    asyncio.run(_serve(app, background_sync=not no_sync))
    console.print("[yellow]Stopped[/]")


async def _serve(app: CodeWiki, background_sync: bool = True) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    await app.start(background_sync=background_sync)
    try:
        await stop.wait()
    finally:
        await app.shutdown()


if __name__ == "__main__":
    cli()
