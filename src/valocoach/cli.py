"""
ValoCoach CLI - Command Line Interface for VALORANT coaching

Provides commands for:
- Saving a player's matches into the stats database
- Building coaching knowledge from recent matches
- Researching topics into the knowledge base
- Chatting with the coaching agents
"""

import logging
import uuid
from importlib import metadata
from pathlib import Path
from typing import Optional

import requests
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy.engine import make_url

from valocoach import __version__
from valocoach.core.config import (
    configure_logging,
    generate_default_config,
    get_config,
    load_config,
    set_config,
)
from valocoach.core.errors import AimlabAPIError, MatchDataError, ValorantAPIError
from valocoach.integrations.valorant_models import Mode, Platform, Region
from valocoach.pipeline.ingest import SaveMatchRequest
from valocoach.pipeline.knowledge import SaveKnowledgeRequest
from valocoach.services import Services

app = typer.Typer(
    name="valocoach",
    help="AI coaching for VALORANT - match stats, knowledge base and coaching agents",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)

# Failures reported as a one-line error instead of a traceback
CLI_ERRORS = (
    ValorantAPIError,
    AimlabAPIError,
    MatchDataError,
    ValidationError,
    ValueError,
    KeyError,
    requests.RequestException,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold magenta]ValoCoach[/bold magenta] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (YAML, TOML or JSON)",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """ValoCoach - AI Coaching for VALORANT"""
    config = load_config(config_file)
    set_config(config)
    configure_logging(config.logging, verbose=verbose)


def _services() -> Services:
    return Services.from_config(get_config())


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


def _safe_url(url: str) -> str:
    return make_url(url).render_as_string(hide_password=True)


def _spinner() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    )


# save_config writes these formats; TOML is read-only
WRITABLE_CONFIG_SUFFIXES = (".yaml", ".yml", ".json")

REGION_OPTION = typer.Option(Region.AP, "--region", "-r", help="Shard region")
PLATFORM_OPTION = typer.Option(Platform.PC, "--platform", help="Platform")


@app.command("save-match")
def save_match(
    name: str = typer.Argument(..., help="Riot ID game name"),
    tag: str = typer.Argument(..., help="Riot ID tag line"),
    region: Region = REGION_OPTION,
    platform: Platform = PLATFORM_OPTION,
    mode: Optional[Mode] = typer.Option(None, "--mode", "-m", help="Game mode filter"),
    size: Optional[int] = typer.Option(
        None,
        "--size",
        "-n",
        min=1,
        max=10,
        help="Number of recent matches (default from pipeline.default_page_size)",
    ),
    start: int = typer.Option(0, "--start", min=0, help="Offset of the first match"),
) -> None:
    """
    Save a player's recent matches into the stats database.
    """
    if size is None:
        size = get_config().pipeline.default_page_size
    try:
        request = SaveMatchRequest(
            name=name, tag=tag, region=region, platform=platform, mode=mode, size=size, start=start
        )
        with _spinner() as progress:
            progress.add_task(f"Saving matches for {name}#{tag}...", total=None)
            result = _services().ingestion.save_match(request)
    except CLI_ERRORS as e:
        _fail(e)

    console.print(
        f"[green]Saved {result.process_size} match(es)[/green] "
        f"(requested {result.request_size}) for {name}#{tag}"
    )


@app.command("save-all-matches")
def save_all_matches(
    name: str = typer.Argument(..., help="Riot ID game name"),
    tag: str = typer.Argument(..., help="Riot ID tag line"),
    region: Region = REGION_OPTION,
    platform: Platform = PLATFORM_OPTION,
    mode: Optional[Mode] = typer.Option(None, "--mode", "-m", help="Game mode filter"),
    page_size: int = typer.Option(10, "--page-size", min=1, max=10, help="Matches per request"),
) -> None:
    """
    Save a player's whole available match history.

    Pages through the history with a pause between requests to stay inside
    the API rate limit, so this can take a while.
    """
    try:
        request = SaveMatchRequest(
            name=name, tag=tag, region=region, platform=platform, mode=mode, size=page_size
        )
        with _spinner() as progress:
            progress.add_task(f"Saving match history for {name}#{tag}...", total=None)
            result = _services().ingestion.save_all_matches(request)
    except CLI_ERRORS as e:
        _fail(e)

    console.print(f"[green]Saved {result.process_size} match(es)[/green] for {name}#{tag}")


@app.command("save-knowledge")
def save_knowledge(
    name: str = typer.Argument(..., help="Riot ID game name"),
    tag: str = typer.Argument(..., help="Riot ID tag line"),
    region: Region = REGION_OPTION,
    platform: Platform = PLATFORM_OPTION,
    mode: Mode = typer.Option(Mode.COMPETITIVE, "--mode", "-m", help="Game mode filter"),
    size: Optional[int] = typer.Option(
        None,
        "--size",
        "-n",
        min=1,
        max=10,
        help="Number of recent matches (default from pipeline.knowledge_page_size)",
    ),
) -> None:
    """
    Generate coaching knowledge from recent matches and store it for search.
    """
    if size is None:
        size = get_config().pipeline.knowledge_page_size
    try:
        request = SaveKnowledgeRequest(
            name=name, tag=tag, region=region, platform=platform, mode=mode, size=size
        )
        with _spinner() as progress:
            progress.add_task(f"Building knowledge for {name}#{tag}...", total=None)
            results = _services().knowledge.save_knowledge(request)
    except CLI_ERRORS as e:
        _fail(e)

    table = Table(title="Knowledge Saved")
    table.add_column("Match", style="cyan")
    table.add_column("Chunks", justify="right", style="green")
    for r in results:
        table.add_row(r.match_id or "-", str(r.chunks))
    console.print(table)


@app.command()
def research(
    topic: str = typer.Argument(..., help="Topic to research"),
    save: bool = typer.Option(True, "--save/--no-save", help="Store the summary in the knowledge base"),
    text_file: Optional[Path] = typer.Option(
        None,
        "--from-file",
        "-f",
        help="Store this file's text under the topic instead of researching it",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """
    Research a VALORANT topic on the web, or store your own notes, as knowledge.
    """
    services = _services()
    try:
        if text_file is not None:
            chunks = services.knowledge.save_text_knowledge(
                text_file.read_text(encoding="utf-8"), topic, source=str(text_file)
            )
            console.print(f"[green]Stored {chunks} chunk(s)[/green] for '{topic}'")
            return

        with _spinner() as progress:
            progress.add_task(f"Researching '{topic}'...", total=None)
            summary = services.llm.research(topic)
            chunks = services.knowledge.save_text_knowledge(summary, topic, "web_research") if save else 0
    except CLI_ERRORS as e:
        _fail(e)

    console.print(Markdown(summary))
    if save:
        console.print(f"\n[green]Stored {chunks} chunk(s)[/green] for '{topic}'")


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Question for the coach"),
    agent_name: str = typer.Option(
        "coach", "--agent", "-a", help="Agent: coach, match-coach or research"
    ),
    thread: Optional[str] = typer.Option(
        None, "--thread", "-t", help="Conversation thread to continue (a new one if omitted)"
    ),
) -> None:
    """
    Ask a coaching agent. Reuse --thread to continue a conversation.
    """
    thread_id = thread or uuid.uuid4().hex
    try:
        agent = _services().agent(agent_name)
        with _spinner() as progress:
            progress.add_task(f"{agent.name} is thinking...", total=None)
            answer = agent.generate(prompt, thread_id=thread_id)
    except CLI_ERRORS as e:
        _fail(e)

    console.print(Markdown(answer))
    console.print(f"\n[dim]thread: {thread_id}[/dim]")


@app.command()
def account(
    name: str = typer.Argument(..., help="Riot ID game name"),
    tag: str = typer.Argument(..., help="Riot ID tag line"),
    region: Region = REGION_OPTION,
    platform: Platform = PLATFORM_OPTION,
) -> None:
    """
    Show a player's account and current rank.
    """
    api = _services().api
    try:
        acct = api.get_account(name, tag)
        mmr = api.get_mmr_by_puuid(acct.puuid, region, platform)
    except CLI_ERRORS as e:
        _fail(e)

    peak = mmr.peak.tier.name if mmr.peak else "-"

    panel = Panel(
        f"[cyan]PUUID:[/cyan] {acct.puuid}\n"
        f"[cyan]Region:[/cyan] {acct.region}\n"
        f"[cyan]Level:[/cyan] {acct.account_level}\n"
        f"[cyan]Rank:[/cyan] {mmr.current.tier.name} ({mmr.current.rr} RR)\n"
        f"[cyan]Peak:[/cyan] {peak}",
        title=f"[bold magenta]{acct.name or name}#{acct.tag or tag}[/bold magenta]",
        expand=False,
    )
    console.print(panel)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("valocoach.yaml"), help="Where to write the config file"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """
    Write a default configuration file.
    """
    if path.suffix.lower() not in WRITABLE_CONFIG_SUFFIXES:
        console.print(f"[red]Error:[/red] cannot write config as '{path.name}'; use a .yaml or .json file")
        raise typer.Exit(1)
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)
    generate_default_config(path)
    console.print(f"[green]Wrote default config to:[/green] {path}")


@app.command()
def info() -> None:
    """
    Display information about ValoCoach and its configuration.
    """
    import platform as plat

    config = get_config()
    console.print(f"\n[bold magenta]ValoCoach[/bold magenta] v{__version__}\n")

    table = Table(show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Python", plat.python_version())
    table.add_row("Platform", plat.system())

    for dist in ("anthropic", "sqlalchemy", "pydantic", "requests"):
        try:
            table.add_row(dist, metadata.version(dist))
        except metadata.PackageNotFoundError:
            table.add_row(dist, "[red]not installed[/red]")

    def key_status(value: Optional[str]) -> str:
        return "[green]set[/green]" if value else "[yellow]not set[/yellow]"

    table.add_row("VALORANT API key", key_status(config.valorant_api.api_key))
    table.add_row("Anthropic API key", key_status(config.llm.api_key))
    table.add_row("Google API key", key_status(config.embedding.api_key))
    table.add_row("Database", _safe_url(config.database.url))
    table.add_row("Vector store", f"{_safe_url(config.vector_store.url)} ({config.vector_store.index_name})")
    table.add_row("LLM tier", config.llm.tier)

    console.print(table)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
