"""
Recall CLI - review scheduling from the terminal.

Commands:
    recall session <deck>                - Compose a review session
    recall review <deck> <item> <rating> - Apply a review and save the deck
    recall preview <deck> <item>         - Next due date for each rating
    recall topics <deck>                 - Mastery score and band per topic
    recall stats <deck>                  - Workload and daily allowance

A deck is a JSON file (see recall_engine.storage.memory).
"""
from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from recall_engine.config import Settings, get_settings
from recall_engine.core.errors import RecallEngineError
from recall_engine.core.mastery import MasteryAggregator
from recall_engine.core.models import Rating, ensure_utc, utc_now
from recall_engine.storage.memory import InMemoryRepository
from recall_engine.study.review_service import ReviewService
from recall_engine.study.stats import collect_study_stats

console = Console()

app = typer.Typer(
    name="recall",
    help="Adaptive review scheduling - sessions, reviews, topic mastery",
    no_args_is_help=True,
)

DeckArgument = typer.Argument(..., exists=True, dir_okay=False, help="Path to a JSON deck")
NowOption = typer.Option(None, "--now", help="Override the current time (ISO 8601)")


def configure_logging(settings: Settings) -> None:
    """Route loguru output according to settings."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")


@app.callback()
def main_callback() -> None:
    """Adaptive review scheduling."""
    configure_logging(get_settings())


def _parse_now(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError:
        rprint(f"[red]Error:[/red] invalid --now timestamp {value!r}")
        raise typer.Exit(code=1)


def _load(deck: Path) -> tuple[InMemoryRepository, ReviewService]:
    try:
        repo = InMemoryRepository.load_deck(deck)
    except RecallEngineError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    return repo, ReviewService.from_settings(repo, get_settings())


@app.command("session")
def session_command(
    deck: Path = DeckArgument,
    size: Optional[int] = typer.Option(None, "--size", "-n", help="Maximum items in the session"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the presentation shuffle"),
    now: Optional[str] = NowOption,
) -> None:
    """
    Compose a review session from the deck's due items.

    Weaker topics receive a larger share of the session.
    """
    repo, service = _load(deck)
    if seed is not None:
        service.composer.rng.seed(seed)
    target = size if size is not None else get_settings().session_target_size

    try:
        plan = service.build_session(repo.learner_id, target, _parse_now(now))
    except RecallEngineError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if not plan.items:
        rprint("[green]Nothing due - all caught up![/green]")
        return

    scores = {topic.topic_id: topic for topic in repo.topics()}
    table = Table(title=f"Review Session ({plan.total_items} items, ~{plan.estimated_minutes} min)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Item", style="cyan")
    table.add_column("Topic")
    table.add_column("Mastery", justify="right")
    table.add_column("Front")

    for position, item in enumerate(plan.items, start=1):
        topic = scores.get(item.topic_id)
        score = topic.mastery_score if topic else 0.0
        band = service.aggregator.classify_band(score)
        table.add_row(
            str(position),
            item.item_id,
            topic.name if topic else item.topic_id,
            f"[{band.color}]{score:.0f}[/{band.color}]",
            item.front,
        )
    console.print(table)

    summary = service.composer.summarize(plan)
    bands = ", ".join(f"{label} {b['filled']}/{b['quota']}" for label, b in summary["bands"].items())
    rprint(f"[dim]Bands: {bands}; top-up {summary['top_up']}[/dim]")
    if plan.excluded:
        rprint(f"[yellow]Skipped {len(plan.excluded)} item(s) with corrupted state[/yellow]")


@app.command("review")
def review_command(
    deck: Path = DeckArgument,
    item_id: str = typer.Argument(..., help="Item to review"),
    rating: int = typer.Argument(..., help="0=Again, 1=Hard, 2=Good, 3=Easy"),
    now: Optional[str] = NowOption,
) -> None:
    """Apply a review outcome and save the deck."""
    repo, service = _load(deck)
    try:
        receipt = service.submit_review(item_id, rating, _parse_now(now))
    except RecallEngineError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    repo.save_deck(deck)

    state = receipt.item.state
    rprint(
        f"[bold]{item_id}[/bold] rated {Rating(rating).name.title()}: "
        f"{state.phase.display_name}, next due {state.due:%Y-%m-%d %H:%M} "
        f"(stability {state.stability:.2f}d, lapses {state.lapse_count})"
    )
    rprint(
        f"Topic {receipt.outcome.topic_id}: {receipt.band.emoji} "
        f"[{receipt.band.color}]{receipt.topic_score:.0f}[/{receipt.band.color}] "
        f"{receipt.band.display_name}"
    )


@app.command("preview")
def preview_command(
    deck: Path = DeckArgument,
    item_id: str = typer.Argument(..., help="Item to preview"),
    now: Optional[str] = NowOption,
) -> None:
    """Show when the item would be due again for each rating."""
    repo, service = _load(deck)
    moment = _parse_now(now)
    try:
        item = repo.fetch_item(item_id)
        previews = service.scheduler.preview(item.state, moment)
    except RecallEngineError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Next review for {item_id}")
    table.add_column("Rating")
    table.add_column("Due")
    table.add_column("In (days)", justify="right")
    for grade, due in previews.items():
        days = (due - moment).total_seconds() / 86400
        table.add_row(grade.name.title(), f"{due:%Y-%m-%d %H:%M}", f"{days:.1f}")
    console.print(table)


@app.command("topics")
def topics_command(deck: Path = DeckArgument) -> None:
    """Show mastery score and band per topic, weakest first."""
    repo, service = _load(deck)

    table = Table(title="Topic Mastery")
    table.add_column("Topic", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Band")
    table.add_column("Progress")

    names = {topic.topic_id: topic.name for topic in repo.topics()}
    for topic_id, score, band in service.topic_overview(list(names), refresh=True):
        table.add_row(
            names[topic_id],
            f"{score:.0f}",
            f"{band.emoji} [{band.color}]{band.display_name}[/{band.color}]",
            MasteryAggregator.format_progress_bar(score),
        )
    console.print(table)


@app.command("stats")
def stats_command(deck: Path = DeckArgument, now: Optional[str] = NowOption) -> None:
    """Show due counts and today's remaining allowance."""
    repo, _ = _load(deck)
    settings = get_settings()
    stats = collect_study_stats(
        repo.items(),
        repo.outcomes(),
        _parse_now(now),
        max_reviews_per_day=settings.max_reviews_per_day,
        max_new_items_per_day=settings.max_new_items_per_day,
    )

    table = Table(title="Study Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total items", str(stats.total_items))
    table.add_row("Due now", str(stats.due_count))
    table.add_row("New", str(stats.new_count))
    table.add_row("Topics with due items", str(stats.topics_with_due))
    table.add_row("Reviews today", f"{stats.reviews_today}/{stats.max_reviews_per_day}")
    table.add_row("New items today", f"{stats.new_items_today}/{stats.max_new_items_per_day}")
    table.add_row("Reviews remaining", str(stats.reviews_remaining))
    table.add_row("New items remaining", str(stats.new_items_remaining))
    console.print(table)


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
