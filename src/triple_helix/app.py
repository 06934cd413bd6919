"""Interactive CLI for driving a scheduler session."""
import sys

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from triple_helix.config import get_settings
from triple_helix.db import delete_state, init_db, load_state, make_save_hook
from triple_helix.resilient import ResilientScheduler
from triple_helix.scheduler import TubeScheduler
from triple_helix.seed import seed_tubes, unseeded_tubes
from triple_helix.stats import (
    get_completion_stats, get_mastery_color, get_mastery_label, get_tube_summary,
)

console = Console()


def configure_logging(level: str = "WARNING") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def load_scheduler(db_path: str, user_id: str) -> ResilientScheduler:
    """Build a scheduler from the stored snapshot for user_id, seeding any tube without content."""
    init_db(db_path)
    state = load_state(db_path, user_id)
    scheduler = ResilientScheduler(state or {"userId": user_id}, save=make_save_hook(db_path))
    missing = unseeded_tubes(scheduler)
    if missing:
        seed_tubes(scheduler, tube_numbers=missing)
    return scheduler


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("show", "Current stitch and tube contents"),
        ("next", "Cycle to the next tube"),
        ("complete", "Record a result for the current stitch"),
        ("stats", "Session statistics"),
        ("seed", "Reload starting threads into all tubes"),
        ("reset", "Clear all progress"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def render_tube(scheduler: TubeScheduler, tube_number: int, limit: int = 10) -> Table:
    tube = scheduler.get_tube(tube_number)
    table = Table(title=f"Tube {tube_number} — {tube.thread_id or 'no thread'}")
    table.add_column("Pos", justify="right")
    table.add_column("Stitch", style="cyan")
    table.add_column("Skip", justify="right")
    table.add_column("Level")
    table.add_column("Status")
    for position, entry in tube.entries()[:limit]:
        color = get_mastery_color(entry.skip_number)
        table.add_row(
            str(position),
            entry.content_id,
            str(entry.skip_number),
            entry.distractor_level,
            f"[{color}]{get_mastery_label(entry.skip_number)}[/{color}]",
        )
    if len(tube) > limit:
        table.caption = f"{len(tube) - limit} more queued"
    return table


def cmd_show(scheduler: TubeScheduler):
    stitch = scheduler.get_current_stitch()
    tube_number = scheduler.get_current_tube_number()
    console.print(Panel(
        f"[bold]{stitch.content_id}[/bold]\n"
        f"[dim]Tube {tube_number} · skip {stitch.skip_number} · {stitch.distractor_level}[/dim]",
        title="Current Stitch", border_style="blue",
    ))
    console.print(render_tube(scheduler, tube_number))


def cmd_next(scheduler: TubeScheduler):
    stitch = scheduler.cycle_tubes()
    console.print(
        f"[green]Tube {scheduler.get_current_tube_number()}[/green] → [bold]{stitch.content_id}[/bold]"
        f"  [dim](cycle {scheduler.get_cycle_count()})[/dim]"
    )


def cmd_complete(scheduler: TubeScheduler):
    tube_number = scheduler.get_current_tube_number()
    stitch = scheduler.get_current_stitch()
    thread_id = scheduler.get_thread_for_tube(tube_number)
    total = IntPrompt.ask("Questions in session", default=20)
    score = IntPrompt.ask("Correct answers", default=total)
    if score < 0 or score > total:
        console.print(f"[red]Score must be between 0 and {total}.[/red]")
        return
    next_stitch = scheduler.handle_stitch_completion(thread_id, stitch.content_id, score, total)
    if score == total:
        console.print(f"[green]Perfect! {stitch.content_id} moves back in tube {tube_number}.[/green]")
    else:
        console.print(f"[yellow]{score}/{total}. {stitch.content_id} stays at the front.[/yellow]")
    console.print(f"Up next: [bold]{next_stitch.content_id}[/bold]")


def cmd_stats(scheduler: TubeScheduler):
    stats = get_completion_stats(scheduler.state)
    console.print(f"\n  Completions: [bold]{stats['completions']}[/bold]  |  "
                  f"Perfect: [bold]{stats['perfect']}[/bold] ({stats['perfect_rate']}%)  |  "
                  f"Points: [bold]{stats['total_points']}[/bold]  |  "
                  f"Cycles: [bold]{stats['cycle_count']}[/bold]\n")
    table = Table(title="Tubes")
    table.add_column("Tube", justify="right")
    table.add_column("Thread", style="cyan")
    table.add_column("Stitches", justify="right")
    table.add_column("Current")
    table.add_column("Mastered", justify="right")
    for row in get_tube_summary(scheduler.state):
        marker = " ←" if row["active"] else ""
        table.add_row(
            f"{row['tube_number']}{marker}",
            row["thread_id"] or "",
            str(row["entries"]),
            row["current"] or "",
            str(row["mastered"]),
        )
    console.print(table)


def cmd_seed(scheduler: TubeScheduler):
    count = seed_tubes(scheduler)
    console.print(f"[green]Seeded {count} tubes.[/green]")


def cmd_reset(scheduler: TubeScheduler, db_path: str):
    confirm = Prompt.ask("Type 'reset' to clear all progress")
    if confirm.strip().lower() != "reset":
        console.print("[dim]Cancelled.[/dim]")
        return
    delete_state(db_path, scheduler.state.user_id)
    scheduler.reset_state()
    seed_tubes(scheduler)
    console.print("[green]Progress cleared.[/green]")


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    db_path = settings.db_path
    scheduler = load_scheduler(db_path, settings.user_id)

    console.print(Panel(
        "[bold]Triple-Helix[/bold]\n[dim]Three-tube spaced repetition[/dim]",
        title="Welcome", border_style="blue",
    ))

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="show").strip().lower()
        try:
            if choice == "show":
                cmd_show(scheduler)
            elif choice == "next":
                cmd_next(scheduler)
            elif choice == "complete":
                cmd_complete(scheduler)
            elif choice == "stats":
                cmd_stats(scheduler)
            elif choice == "seed":
                cmd_seed(scheduler)
            elif choice == "reset":
                cmd_reset(scheduler, db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you next session![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
