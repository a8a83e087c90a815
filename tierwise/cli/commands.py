"""CLI commands for tierwise."""

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from tierwise import __version__, __logo__

app = typer.Typer(
    name="tierwise",
    help=f"{__logo__} tierwise - budget-aware tiered LLM routing",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} tierwise v{__version__}")
        raise typer.Exit()


def configure_logging(level: str = "WARNING", log_file: Path | None = None) -> None:
    """Replace loguru's default sink with a stderr sink (and optional file)."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose logging"),
    log_file: Path = typer.Option(None, "--log-file", help="Also write debug logs here"),
):
    """tierwise - budget-aware tiered LLM routing."""
    configure_logging("DEBUG" if verbose else "WARNING", log_file)


def _load(config_path: Path | None):
    from tierwise.config.loader import load_config

    try:
        return load_config(config_path)
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)


# ============================================================================
# Routing
# ============================================================================


@app.command()
def route(
    message: str = typer.Argument(..., help="Message to classify"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show which tier a message would start on, without calling a model."""
    from tierwise.routing.router import create_router_from_config
    from tierwise.tiers import tier_label

    config = _load(config_path)
    router = create_router_from_config(config)
    decision = router.route(message)
    score = decision.classification

    table = Table(title="Routing Decision")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Score", f"{score.score:g} (length bonus {score.length_bonus:g})")
    table.add_row("Recommended", tier_label(score.tier))
    matched = ", ".join(
        f"{t.value}: {', '.join(words)}" for t, words in score.matched.items() if words
    )
    table.add_row("Keywords", matched or "[dim]none[/dim]")
    mood = decision.emotional_context
    table.add_row("Context", f"{mood.mood} / {mood.time_of_day} / {mood.weekday}")
    budget = decision.budget
    table.add_row(
        "Budget",
        f"{budget.status.value} ({budget.percentage * 100:.0f}% of ${budget.daily_budget:.2f})",
    )
    table.add_row("Selected", f"[bold green]{tier_label(decision.tier)}[/bold green]")
    table.add_row("Model", config.tiers[decision.tier].model)

    console.print(table)


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message to send"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Overall deadline in seconds"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Route a message and get an answer from the selected tier."""
    from tierwise.resilience.errors import NoFallbackAvailable, TierCallError
    from tierwise.routing.router import create_router_from_config

    config = _load(config_path)
    router = create_router_from_config(config)

    async def run_once():
        try:
            result = await router.handle(message, timeout=timeout)
        finally:
            if router.usage.reporter:
                await router.usage.reporter.drain()
        return result

    try:
        result = asyncio.run(run_once())
    except asyncio.TimeoutError:
        console.print(f"[red]Timed out after {timeout}s[/red]")
        raise typer.Exit(1)
    except NoFallbackAvailable as e:
        console.print(f"[red]All tiers failed:[/red] {e.cause}")
        raise typer.Exit(1)
    except TierCallError as e:
        console.print(f"[red]Request failed:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"\n{__logo__} {result.content or ''}\n")

    served = f"{result.served_tier.value} via {result.model}"
    if result.downgraded:
        served += f" [yellow](requested {result.requested_tier.value})[/yellow]"
    if result.emergency:
        served += " [red](emergency mode)[/red]"
    console.print(
        f"[dim]{served} | {result.tokens.total} tokens | ${result.cost:.4f}[/dim]"
    )


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show tier configuration."""
    from tierwise.config.loader import get_config_path
    from tierwise.tiers import Tier, tier_label

    path = config_path or get_config_path()
    config = _load(config_path)

    console.print(f"{__logo__} tierwise Status\n")
    console.print(f"Config: {path} {'[green]✓[/green]' if path.exists() else '[dim]defaults[/dim]'}")

    table = Table(title="Tiers")
    table.add_column("Tier", style="cyan")
    table.add_column("Model")
    table.add_column("API key")
    table.add_column("Falls back to")

    for tier in Tier:
        tier_config = config.tiers[tier]
        nxt = config.fallback_chain[tier]
        table.add_row(
            tier_label(tier),
            tier_config.model,
            "[green]✓[/green]" if tier_config.api_key else "[dim]env[/dim]",
            nxt.value if nxt else "[dim]-[/dim]",
        )
    console.print(table)

    console.print(
        f"\nRetries: {config.retry.max_retries} "
        f"(base delay {config.retry.base_delay_ms}ms)"
    )
    thresholds = ", ".join(f"{t:.0%}" for t in config.budget.thresholds)
    console.print(
        f"Budget: ${config.budget.daily_budget:.2f}/day, alerts at {thresholds}, "
        f"emergency at {config.budget.emergency_threshold:.0%}"
    )
    console.print(f"Emotional context: {'on' if config.emotion.enabled else 'off'}")
    reporting = config.reporting
    console.print(
        f"Dashboard alerts: {reporting.dashboard_path if reporting.enabled else 'off'}"
    )


@app.command()
def budget(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show today's usage against the daily budget."""
    from tierwise.tracking.budget import BudgetGovernor
    from tierwise.tracking.usage import UsageTracker

    config = _load(config_path)
    governor = BudgetGovernor(config.budget)
    usage = UsageTracker.from_config(governor, config.usage)
    usage.restore()
    summary = usage.summary()

    style = "red" if summary.emergency_mode else "green"
    console.print(f"{__logo__} Budget for {summary.date.isoformat()}\n")
    console.print(
        f"Spent: [{style}]${summary.cost:.4f}[/{style}] of ${summary.daily_budget:.2f} "
        f"({summary.percentage * 100:.1f}%)"
    )
    console.print(f"Requests: {summary.request_count}  Tokens: {summary.tokens:,}")
    if summary.emergency_mode:
        console.print("[red]Emergency mode: L4/L5 capped at L3 until tomorrow[/red]")

    if summary.by_tier:
        table = Table(title="By Tier")
        table.add_column("Tier", style="cyan")
        table.add_column("Requests", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Cost", justify="right")
        for tier in sorted(summary.by_tier, key=lambda t: t.rank):
            totals = summary.by_tier[tier]
            table.add_row(tier.value, str(totals.requests), f"{totals.tokens:,}", f"${totals.cost:.4f}")
        console.print(table)


if __name__ == "__main__":
    app()
