import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .coalescer import ManualScheduler
from .config import get_config_path, get_presets_path, load_config, update_config
from .criteria import DEFAULT_CRITERIA, Criteria
from .decorators import handle_cli_errors
from .loaders import load_collection
from .models import ReadingStatus, SortKey
from .presets import PresetService
from .views import LibraryViewService, MaterializedView

# Initialize Rich Console
console = Console()

# Configure logging to use Rich's RichHandler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, console=Console(stderr=True))]
)
logger = logging.getLogger("readshelf")

# Main app
app = typer.Typer(help="Track your reading library from the command line.")

# Command groups
preset_app = typer.Typer(help="Manage saved view presets")
config_app = typer.Typer(help="Show or change configuration")

app.add_typer(preset_app, name="preset")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose mode"),
):
    """
    readshelf - personal reading-library tracker.

    Filter, search, sort and summarize a catalog of books.
    """
    settings = load_config().cli
    console.no_color = not settings.color
    if verbose or settings.verbose:
        logger.setLevel(logging.DEBUG)
        if verbose:
            console.print("[bold green]Verbose mode enabled.[/bold green]")


@app.command()
def about():
    """Display information about readshelf."""
    console.print("[bold cyan]readshelf - Personal Reading Library Tracker[/bold cyan]")
    console.print("")
    console.print("[bold]Commands:[/bold]")
    console.print("  readshelf list <books-file>      List books through filters and ordering")
    console.print("  readshelf stats <books-file>     Show reading statistics")
    console.print("  readshelf preset <subcommand>    Manage saved view presets")
    console.print("  readshelf config <subcommand>    Show or change configuration")
    console.print("")
    console.print("Books files are YAML or JSON lists of books with id, title, authors,")
    console.print("status, wishlist, owned, favorite, date_added and rating.")


# ============================================================================
# Helpers
# ============================================================================

def _presets() -> PresetService:
    return PresetService(get_presets_path(load_config()))


def _build_criteria(
    preset: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[List[str]] = None,
    wishlist: bool = False,
    owned: bool = False,
    favorites: bool = False,
    sort: Optional[str] = None,
    reverse: bool = False,
) -> Criteria:
    """Start from a preset (or the defaults) and apply command-line overrides."""
    criteria = _presets().require(preset) if preset else DEFAULT_CRITERIA

    changes = {}
    if search is not None:
        changes['search_text'] = search
    if status:
        changes['statuses'] = frozenset(ReadingStatus.parse(s) for s in status)
    if wishlist:
        changes['wishlist_only'] = True
    if owned:
        changes['owned_only'] = True
    if favorites:
        changes['favorites_only'] = True
    if sort is not None:
        changes['sort_key'] = SortKey.parse(sort)
    if reverse:
        changes['reverse'] = not criteria.reverse
    return criteria.replace(**changes) if changes else criteria


def _materialize(books_file: Optional[Path], criteria: Criteria) -> MaterializedView:
    config = load_config()
    if books_file is None:
        if not config.library.default_path:
            raise ValueError("No books file given and library.default_path is not configured")
        books_file = Path(config.library.default_path).expanduser()
    collection = load_collection(books_file)
    service = LibraryViewService(
        collection, criteria, scheduler=ManualScheduler(), config=config.engine
    )
    try:
        return service.current_view()
    finally:
        service.close()


def _criteria_summary(criteria: Criteria) -> str:
    parts = []
    if criteria.search_text:
        parts.append(f"search='{criteria.search_text}'")
    if len(criteria.statuses) < len(ReadingStatus):
        names = sorted(criteria.statuses, key=lambda s: s.ordinal)
        parts.append("status=" + ",".join(s.value for s in names))
    if criteria.wishlist_only:
        parts.append("wishlist")
    if criteria.owned_only:
        parts.append("owned")
    if criteria.favorites_only:
        parts.append("favorites")
    order = criteria.sort_key.value + (" (reversed)" if criteria.reverse else "")
    parts.append(f"sort={order}")
    return ", ".join(parts)


# ============================================================================
# Library Commands
# ============================================================================

@app.command(name="list")
@handle_cli_errors
def list_books(
    books_file: Optional[Path] = typer.Argument(None, help="YAML or JSON file with books (default: library.default_path)"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Match title or author"),
    status: Optional[List[str]] = typer.Option(None, "--status", help="Reading status (repeatable)"),
    wishlist: bool = typer.Option(False, "--wishlist", help="Only wishlist books"),
    owned: bool = typer.Option(False, "--owned", help="Only owned books"),
    favorites: bool = typer.Option(False, "--favorites", help="Only favorites"),
    sort: Optional[str] = typer.Option(None, "--sort", help="date_added, title, author, rating or status"),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Reverse the ordering"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Start from a saved preset"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of books to show"),
):
    """
    List books through filters, search and ordering.

    Examples:
        readshelf list books.yaml
        readshelf list books.yaml --search "le guin" --sort title
        readshelf list books.yaml --preset wishlist --status reading
    """
    criteria = _build_criteria(preset, search, status, wishlist, owned, favorites, sort, reverse)
    view = _materialize(books_file, criteria)

    if limit is None:
        limit = load_config().cli.page_size

    if not view.books:
        console.print("[yellow]No books found[/yellow]")
        return

    table = Table(title="Books")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Authors", style="blue")
    table.add_column("Status", style="magenta")
    table.add_column("Rating", style="yellow", justify="right")
    table.add_column("Flags", style="red")
    table.add_column("Added", style="dim")

    for book in view.books[:limit]:
        authors = ", ".join(book.authors[:2])
        if len(book.authors) > 2:
            authors += f" +{len(book.authors) - 2}"
        flags = ", ".join(name for name, on in (
            ("fav", book.favorite), ("wish", book.on_wishlist), ("owned", book.owned)) if on)
        table.add_row(
            book.id,
            book.title[:40] or "?",
            authors[:30],
            book.status.label,
            str(book.rating) if book.rating else "",
            flags,
            book.date_added.strftime("%Y-%m-%d"),
        )

    console.print(table)
    console.print(f"\n[dim]Showing {min(limit, view.count)} of {view.count} books "
                  f"({_criteria_summary(criteria)})[/dim]")


@app.command()
@handle_cli_errors
def stats(
    books_file: Optional[Path] = typer.Argument(None, help="YAML or JSON file with books (default: library.default_path)"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Only books in this preset"),
):
    """
    Show reading statistics.

    Example:
        readshelf stats books.yaml --preset owned
    """
    from .stats import library_stats

    criteria = _build_criteria(preset)
    view = _materialize(books_file, criteria)
    summary = library_stats(view.books)

    table = Table(title="Library Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")

    table.add_row("Total Books", str(summary['total']))
    table.add_row("Favorites", str(summary['favorites']))
    table.add_row("Wishlist", str(summary['wishlist']))
    table.add_row("Owned", str(summary['owned']))
    table.add_row("Rated", str(summary['rated']))
    average = summary['average_rating']
    table.add_row("Average Rating", f"{average:.2f}" if average is not None else "-")

    console.print(table)

    console.print("\n[bold]Reading Status:[/bold]")
    for status in ReadingStatus:
        count = summary['by_status'][status.value]
        percent = summary['percent_by_status'][status.value]
        console.print(f"  {status.label}: {count} ({percent:.1f}%)")


# ============================================================================
# Preset Commands
# ============================================================================

@preset_app.command(name="list")
@handle_cli_errors
def preset_list(
    builtin: bool = typer.Option(True, "--builtin/--no-builtin", help="Include built-in presets"),
):
    """List saved and built-in presets."""
    presets = _presets().list(include_builtin=builtin)
    if not presets:
        console.print("[yellow]No presets saved[/yellow]")
        return

    table = Table(title="Presets")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="green")
    table.add_column("Criteria", style="blue")
    table.add_column("Type", style="dim")

    for preset in presets:
        table.add_row(
            preset['name'],
            preset['description'],
            _criteria_summary(preset['criteria']),
            "built-in" if preset['builtin'] else "user",
        )

    console.print(table)


@preset_app.command(name="show")
@handle_cli_errors
def preset_show(name: str = typer.Argument(..., help="Preset name")):
    """Print a preset as YAML."""
    console.print(_presets().export_yaml(name), markup=False, highlight=False)


@preset_app.command(name="save")
@handle_cli_errors
def preset_save(
    name: str = typer.Argument(..., help="Preset name"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Match title or author"),
    status: Optional[List[str]] = typer.Option(None, "--status", help="Reading status (repeatable)"),
    wishlist: bool = typer.Option(False, "--wishlist", help="Only wishlist books"),
    owned: bool = typer.Option(False, "--owned", help="Only owned books"),
    favorites: bool = typer.Option(False, "--favorites", help="Only favorites"),
    sort: Optional[str] = typer.Option(None, "--sort", help="date_added, title, author, rating or status"),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Reverse the ordering"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing preset"),
):
    """Save filters and ordering as a named preset."""
    criteria = _build_criteria(None, search, status, wishlist, owned, favorites, sort, reverse)
    _presets().save(name, criteria, description=description, overwrite=overwrite)
    console.print(f"[green]Saved preset '{name}'[/green]")


@preset_app.command(name="delete")
@handle_cli_errors
def preset_delete(name: str = typer.Argument(..., help="Preset name")):
    """Delete a saved preset."""
    if _presets().delete(name):
        console.print(f"[green]Deleted preset '{name}'[/green]")
    else:
        console.print(f"[yellow]Preset '{name}' not found[/yellow]")
        raise typer.Exit(code=1)


@preset_app.command(name="export")
@handle_cli_errors
def preset_export(
    name: str = typer.Argument(..., help="Preset name"),
    output: Path = typer.Argument(..., help="Output YAML file"),
):
    """Export a preset to a YAML file."""
    _presets().export_file(name, output)
    console.print(f"[green]Exported preset '{name}' to {output}[/green]")


@preset_app.command(name="import")
@handle_cli_errors
def preset_import(
    path: Path = typer.Argument(..., help="YAML file produced by 'preset export'"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing preset"),
):
    """Import a preset from a YAML file."""
    if not path.exists():
        raise FileNotFoundError(path)
    _presets().import_file(path, overwrite=overwrite)
    console.print(f"[green]Imported preset from {path}[/green]")


# ============================================================================
# Config Commands
# ============================================================================

@config_app.command(name="show")
@handle_cli_errors
def config_show():
    """Show the current configuration."""
    config = load_config()
    console.print(f"[dim]{get_config_path()}[/dim]")
    for section, values in config.to_dict().items():
        console.print(f"\n[bold]{section}[/bold]")
        for key, value in values.items():
            console.print(f"  {key}: {value}")


@config_app.command(name="set")
@handle_cli_errors
def config_set(
    data_debounce: Optional[float] = typer.Option(None, "--data-debounce", help="Seconds to wait after collection changes"),
    search_debounce: Optional[float] = typer.Option(None, "--search-debounce", help="Seconds to wait after typing"),
    max_animated_growth: Optional[int] = typer.Option(None, "--max-animated-growth", help="Largest addition still animated"),
    page_size: Optional[int] = typer.Option(None, "--page-size", help="Default number of books listed"),
    verbose: Optional[bool] = typer.Option(None, "--verbose/--quiet", help="Verbose logging by default"),
    color: Optional[bool] = typer.Option(None, "--color/--no-color", help="Colored output"),
    default_path: Optional[str] = typer.Option(None, "--default-path", help="Books file used when none is given"),
    presets_path: Optional[str] = typer.Option(None, "--presets-path", help="Where presets are stored"),
):
    """Change configuration values."""
    for label, value in (("--data-debounce", data_debounce), ("--search-debounce", search_debounce),
                         ("--max-animated-growth", max_animated_growth), ("--page-size", page_size)):
        if value is not None and value < 0:
            raise ValueError(f"{label} must not be negative")

    update_config(
        data_debounce_seconds=data_debounce,
        search_debounce_seconds=search_debounce,
        max_animated_growth=max_animated_growth,
        cli_page_size=page_size,
        cli_verbose=verbose,
        cli_color=color,
        library_default_path=default_path,
        library_presets_path=presets_path,
    )
    console.print(f"[green]Configuration saved to {get_config_path()}[/green]")


if __name__ == "__main__":
    app()
