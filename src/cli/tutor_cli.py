"""
Typer CLI for cortex-tutor.

Commands:
    cortex-tutor start      - Run a tutoring dialogue in the terminal
    cortex-tutor profile    - Show a learner profile
    cortex-tutor reset      - Delete a stored learner profile

Usage:
    cortex-tutor start --skill "Newton's second law" --concept acceleration
    cortex-tutor start --skill "Recursion" --kind inverse --persona skeptical_learner
    cortex-tutor profile --learner alice
"""

from __future__ import annotations

import random
import time

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from src.tutoring.collaborators import HttpTextGenerator, InMemoryMasteryLedger, TemplateTextGenerator
from src.tutoring.errors import EmptyResponse, GenerationUnavailable, ProfileStoreError
from src.tutoring.logging_setup import configure_logging
from src.tutoring.models import DialogueKind, EngineConfig
from src.tutoring.orchestrator import CompletionResult, DialogueOrchestrator
from src.tutoring.personas import LearnerPersona
from src.tutoring.profile import AXES, LearnerProfile
from src.tutoring.profile_store import build_profile_store

app = typer.Typer(
    name="cortex-tutor",
    help="Adaptive Socratic tutoring dialogues in the terminal",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()

QUIT_COMMANDS = ("/quit", "/exit")
DONE_COMMANDS = ("/done",)


# ========================================
# Wiring
# ========================================


def build_orchestrator(settings: Settings, offline: bool = False) -> DialogueOrchestrator:
    """Construct the orchestrator and its collaborators from settings."""
    rng = random.Random(settings.random_seed)
    if settings.has_llm_configured() and not offline:
        generator = HttpTextGenerator(**settings.get_llm_config())
    else:
        generator = TemplateTextGenerator(rng)

    return DialogueOrchestrator(
        generator=generator,
        profiles=build_profile_store(settings),
        mastery=InMemoryMasteryLedger(),
        rng=rng,
        engine_config=EngineConfig.from_settings(settings),
    )


def _speaker(kind: DialogueKind) -> str:
    return "Learner" if kind == DialogueKind.INVERSE else "Tutor"


def _print_completion(completion: CompletionResult) -> None:
    summary = completion.summary.to_dict()

    table = Table(title="Dialogue Summary", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in summary.items():
        if isinstance(value, (list, tuple)):
            value = "\n".join(str(v) for v in value) or "-"
        elif isinstance(value, float):
            value = f"{value:.2f}"
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)

    console.print(
        f"Effectiveness: [bold]{completion.effectiveness.score:.0%}[/bold]  "
        f"Mastery adjustment: [bold]{completion.mastery_adjustment:+.2f}[/bold]"
    )
    console.print(f"[dim]{completion.effectiveness.interpretation}[/dim]")


# ========================================
# Commands
# ========================================


@app.command("start")
def start(
    skill: str = typer.Option(..., "--skill", "-s", help="Skill to practice"),
    concept: str = typer.Option(None, "--concept", "-c", help="Target concept (defaults to the skill)"),
    misconception: list[str] = typer.Option(
        None, "--misconception", "-m", help="Known misconception (repeatable)"
    ),
    kind: DialogueKind = typer.Option(DialogueKind.SOCRATIC, "--kind", "-k", help="Dialogue mode"),
    persona: LearnerPersona = typer.Option(
        LearnerPersona.CURIOUS_BEGINNER, "--persona", help="Simulated learner for inverse mode"
    ),
    learner: str = typer.Option("default", "--learner", "-l", help="Learner id"),
    offline: bool = typer.Option(False, "--offline", help="Use template responses instead of the LLM"),
) -> None:
    """Run an interactive tutoring dialogue."""
    settings = get_settings()
    orchestrator = build_orchestrator(settings, offline=offline)

    started = orchestrator.start_dialogue(
        skill_id=skill.lower().replace(" ", "-"),
        skill_name=skill,
        target_concept=concept or skill,
        known_misconceptions=tuple(misconception or ()),
        learner_id=learner,
        kind=kind,
        persona=persona.value if kind == DialogueKind.INVERSE else None,
    )
    dialogue = started.dialogue
    speaker = _speaker(kind)

    console.print(Panel(
        f"[bold]{skill}[/bold] ({kind.value})\n"
        "[dim]Type /done to finish and save, /quit to leave without saving[/dim]",
        title="cortex-tutor",
    ))
    console.print(f"[bold cyan]{speaker}:[/bold cyan] {started.opening_message}")

    while dialogue.is_active:
        asked_at = time.monotonic()
        answer = console.input("[bold green]You:[/bold green] ")
        latency_ms = int((time.monotonic() - asked_at) * 1000)
        command = answer.strip().lower()

        if command in QUIT_COMMANDS:
            orchestrator.abandon_dialogue(dialogue)
            console.print("[yellow]Dialogue abandoned. Nothing was saved.[/yellow]")
            return
        if command in DONE_COMMANDS:
            break

        try:
            result = orchestrator.process_exchange(dialogue, answer, latency_ms)
        except EmptyResponse:
            console.print("[yellow]Please type a response (or /quit).[/yellow]")
            continue
        except GenerationUnavailable as e:
            console.print(f"[red]Could not generate the next message: {e}. Try again.[/red]")
            continue

        dialogue = result.dialogue
        if result.next_message:
            console.print(f"[bold cyan]{speaker}:[/bold cyan] {result.next_message}")

    try:
        completion = orchestrator.complete_dialogue(dialogue)
    except ProfileStoreError as e:
        console.print(f"[red]Profile could not be saved: {e}[/red]")
        raise typer.Exit(1)

    _print_completion(completion)


@app.command("profile")
def show_profile(
    learner: str = typer.Option("default", "--learner", "-l", help="Learner id"),
) -> None:
    """Show a stored learner profile."""
    store = build_profile_store(get_settings())
    profile = store.load(learner)
    if profile is None:
        console.print(f"[yellow]No profile stored for {learner}[/yellow]")
        raise typer.Exit(1)
    _print_profile(profile)


def _print_profile(profile: LearnerProfile) -> None:
    data = profile.to_dict()
    table = Table(title=f"Learner Profile: {profile.learner_id}")
    table.add_column("Axis", style="cyan")
    table.add_column("Indicator")
    table.add_column("Value", style="green")

    for axis in AXES:
        for name, value in data[axis].items():
            shown = f"{value:.2f}" if isinstance(value, float) else str(value)
            table.add_row(axis, name, shown)
    for name, value in data["axis_confidence"].items():
        table.add_row("confidence", name, f"{value:.2f}")

    console.print(table)
    console.print(f"Dialogues completed: [bold]{profile.dialogues_completed}[/bold]")
    if profile.misconceptions:
        console.print(f"Misconceptions: {', '.join(profile.misconceptions)}")


@app.command("reset")
def reset_profile(
    learner: str = typer.Option("default", "--learner", "-l", help="Learner id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a stored learner profile."""
    if not yes and not typer.confirm(f"Delete the profile for {learner}?"):
        raise typer.Exit(0)

    store = build_profile_store(get_settings())
    if store.delete(learner):
        logger.info(f"Profile deleted: {learner}")
        console.print(f"[green]Profile for {learner} deleted[/green]")
    else:
        console.print(f"[yellow]No profile stored for {learner}[/yellow]")


def main() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    app()


if __name__ == "__main__":
    main()
