"""CLI commands for persona_router."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from persona_router import __logo__, __version__
from persona_router.config.loader import load_config
from persona_router.router.catalog import RuleCatalog
from persona_router.router.errors import CatalogError
from persona_router.router.models import ClassificationResult
from persona_router.router.service import RouterContext
from persona_router.utils.logging import configure_logging

# Initialize Rich console
console = Console()

app = typer.Typer(name="persona-router", help="Route questions to the right assistant persona")


def _build_context(config_path: Optional[Path], history_db: Optional[Path] = None) -> RouterContext:
    settings = load_config(config_path)
    history = None
    if history_db:
        from persona_router.history.sqlite import SQLiteHistoryProvider

        history = SQLiteHistoryProvider(history_db)

    try:
        return RouterContext.from_config(settings, history=history)
    except CatalogError as e:
        console.print(f"[red]Error loading rule catalog: {e}[/red]")
        raise typer.Exit(1)


def _print_result(result: ClassificationResult, title: str) -> None:
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Persona", result.category)
    table.add_row("Confidence", f"{result.confidence:.2f}")
    table.add_row("Reason", result.reason.value)
    table.add_row("Matched", ", ".join(result.matched_phrases) or "-")
    if result.context_info:
        table.add_row(
            "Context",
            f"usage {result.context_info['usage_frequency']} "
            f"over {result.context_info['sample_size']} sessions",
        )

    console.print(table)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Console log level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write DEBUG logs to this file"),
):
    """persona-router CLI."""
    configure_logging(level=log_level.upper(), log_file=log_file, verbose=verbose)


@app.command()
def version():
    """Show the installed version."""
    console.print(f"{__logo__} persona-router v{__version__}")


@app.command()
def route(
    query: str = typer.Argument(..., help="Question to route"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id for history-based context"),
    history_db: Optional[Path] = typer.Option(None, "--history-db", help="SQLite database with a sessions table"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Route a question through keywords, context and LLM levels."""
    ctx = _build_context(config, history_db)

    console.print(f"{__logo__} Routing\n")
    console.print(f"Query: [cyan]{query}[/cyan]\n")

    result = asyncio.run(ctx.route(query, user_id=user))
    _print_result(result, "Routing Result")


@app.command()
def classify(
    query: str = typer.Argument(..., help="Question to classify"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Classify a question with keyword matching only."""
    ctx = _build_context(config)
    _print_result(ctx.keyword.classify(query), "Keyword Classification")


@app.command()
def suggest(
    query: str = typer.Argument(..., help="Question the user typed"),
    current: str = typer.Option(..., "--current", help="Persona currently active"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show the persona switch suggestion for a question, if any."""
    ctx = _build_context(config)
    suggestion = ctx.analyze_suggestion(query, current)

    if suggestion is None:
        console.print(f"[dim]No suggestion: {current} is fine for this question[/dim]")
        return

    console.print(
        f"💡 Switch from [yellow]{suggestion.current_category}[/yellow] "
        f"to [green]{suggestion.suggested_category}[/green] "
        f"(confidence {suggestion.confidence:.2f})"
    )
    console.print(f"[dim]{suggestion.reason}[/dim]")
    if suggestion.matched_phrases:
        console.print(f"Matched: {', '.join(suggestion.matched_phrases)}")


@app.command()
def rules(
    category: Optional[str] = typer.Option(None, "--category", "-k", help="Show phrases for one persona"),
    rules_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Rule catalog JSON file"),
):
    """List the rule catalog."""
    try:
        catalog = RuleCatalog.load(rules_file)
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if category:
        rule = catalog.get(category)
        if rule is None:
            console.print(f"[red]Unknown persona: {category}[/red]")
            raise typer.Exit(1)
        console.print(f"[bold]{rule.category}[/bold] (base {rule.base_confidence:.2f})")
        console.print(f"[dim]{rule.label}[/dim]\n")
        console.print(", ".join(rule.trigger_phrases))
        return

    table = Table(title=f"Rule Catalog v{catalog.version}")
    table.add_column("#", style="dim")
    table.add_column("Persona", style="cyan")
    table.add_column("Base", style="yellow")
    table.add_column("Phrases", style="green")
    table.add_column("Label")

    for position, rule in enumerate(catalog, start=1):
        table.add_row(
            str(position),
            rule.category,
            f"{rule.base_confidence:.2f}",
            str(len(rule.trigger_phrases)),
            rule.label,
        )

    console.print(table)
    console.print(f"\nDefault persona: [bold]{catalog.default_category}[/bold]")


@app.command()
def status(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show routing configuration and thresholds."""
    settings = load_config(config)
    routing = settings.routing

    console.print(f"{__logo__} Persona Routing Status\n")

    table = Table(title="Thresholds")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Keyword accept (>)", f"{routing.thresholds.keyword_accept}")
    table.add_row("Context accept (>)", f"{routing.thresholds.context_accept}")
    table.add_row("Fallback keeps keyword above", f"{routing.thresholds.fallback_min_confidence}")
    table.add_row("Suggestion min confidence", f"{routing.suggestions.min_confidence}")
    console.print(table)
    console.print()

    console.print("[bold]Configuration:[/bold]")
    console.print(f"  Rules file: {routing.rules_file or 'built-in'}")
    console.print(
        f"  Context: {'enabled' if routing.context.enabled else 'disabled'} "
        f"(last {routing.context.history_limit} sessions, timeout {routing.context.timeout_ms}ms)"
    )
    has_provider = bool(settings.provider.api_key or settings.provider.api_base)
    llm_state = "enabled" if routing.llm_classifier.enabled and has_provider else "disabled"
    console.print(
        f"  LLM classifier: {routing.llm_classifier.model} ({llm_state}, "
        f"timeout: {routing.llm_classifier.timeout_ms}ms)"
    )
    console.print(
        f"  Suggestions: {'enabled' if routing.suggestions.enabled else 'disabled'} "
        f"(history {routing.suggestions.max_history})"
    )


if __name__ == "__main__":
    app()
