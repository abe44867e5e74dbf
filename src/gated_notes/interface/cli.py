"""gated-notes CLI: study sessions, gating diagnostics and card maintenance."""

import asyncio
import json
import logging
import math
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, NoReturn, TypeVar

import typer

from gated_notes.application.config import AppConfig, resolve_config
from gated_notes.application.factory import Services, build_services
from gated_notes.domain.exceptions import CardNotFoundError, GatedNotesError
from gated_notes.domain.models import Card, Paragraph, Rating, StudyMode

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="gated-notes: unlock your notes one learned flashcard at a time.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage gated-notes configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

VaultOption = Annotated[
    Path | None, typer.Option("--vault", help="Vault root. Defaults to config, or CWD.")
]


def _log_level(verbosity: int) -> int:
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for gated-notes."""
    # Each -v raises the configured verbosity by one level.
    logging.getLogger().setLevel(_log_level(AppConfig().verbose + verbose))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup(vault: Path | None) -> tuple[AppConfig, Services]:
    config = resolve_config({"vault_root": vault})
    return config, build_services(config)


def _chapter_path(config: AppConfig, path: Path) -> str:
    """Turn a user-supplied note path into the vault-relative form cards store."""
    vault_root = config.vault_root or Path.cwd()
    candidate = path if path.is_absolute() else Path.cwd() / path
    try:
        return candidate.resolve().relative_to(vault_root).as_posix()
    except ValueError:
        return path.as_posix()


def _fmt_boundary(boundary: float) -> str:
    return "none" if math.isinf(boundary) else str(int(boundary))


def _abort_missing(e: CardNotFoundError) -> NoReturn:
    typer.secho(f"{e}. It may have been deleted; action aborted.", fg="yellow")
    raise typer.Exit(1)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a service call, turning domain errors into a message and exit code 1."""
    try:
        return asyncio.run(coro)
    except CardNotFoundError as e:
        _abort_missing(e)
    except GatedNotesError as e:
        typer.secho(str(e), fg="yellow")
        raise typer.Exit(1)


async def _note_paragraphs(
    services: Services, chapter_path: str
) -> tuple[list[Paragraph], dict[str, int]]:
    """Paragraphs of a note plus its image hash -> paragraph index."""
    from gated_notes.application.recalculation import build_image_index
    from gated_notes.infrastructure.utils.note_format import extract_paragraphs

    paragraphs = extract_paragraphs(await services.notes.read_note(chapter_path))
    index = await build_image_index(paragraphs, chapter_path, services.images)
    return paragraphs, index


async def _card_context(services: Services, card: Card) -> str:
    """`chapter:line` of the paragraph a card is anchored to."""
    from gated_notes.infrastructure.utils.note_format import paragraph_line

    if card.para_idx is None:
        return card.chapter
    try:
        content = await services.notes.read_note(card.chapter)
    except GatedNotesError:
        return f"{card.chapter} paragraph {card.para_idx}"
    return f"{card.chapter}:{paragraph_line(content, card.para_idx) + 1}"


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


@app.command()
def review(
    chapter: Annotated[Path, typer.Argument(help="Note you are currently reading.")],
    mode: Annotated[StudyMode | None, typer.Option(help="Study scope.")] = None,
    vault: VaultOption = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List the cards due for review, in study order."""
    config, services = _setup(vault)
    active = _chapter_path(config, chapter)
    pool = _run(
        services.decks.review_pool(
            mode or config.study_mode, active, new_cards_first=config.new_cards_first
        )
    )

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {"deck": e.deck_path, **e.card.to_dict()}
                    for e in pool
                ],
                indent=2,
            )
        )
        return

    if not pool:
        typer.secho("No cards due for review.", fg="green")
        return
    for i, entry in enumerate(pool, start=1):
        card = entry.card
        typer.echo(
            f"{i:>3}. [{card.status.value}] {card.front}  "
            f"({card.chapter} #{card.para_idx if card.para_idx is not None else '?'})"
        )


@app.command()
def study(
    chapter: Annotated[Path, typer.Argument(help="Note you are currently reading.")],
    mode: Annotated[StudyMode | None, typer.Option(help="Study scope.")] = None,
    vault: VaultOption = None,
):
    """Run an interactive review session."""
    config, services = _setup(vault)
    active = _chapter_path(config, chapter)
    scheduler = config.scheduler_config()

    async def run():
        # A failed last card sends the learner to its context, then the pool
        # is collected again so the card comes straight back.
        while True:
            pool = await services.decks.review_pool(
                mode or config.study_mode, active, new_cards_first=config.new_cards_first
            )
            if not pool:
                typer.secho("All reviews complete!", fg="green")
                return

            failed_last = False
            for i, entry in enumerate(pool):
                card = entry.card
                typer.echo(f"\n[{i + 1}/{len(pool)}] {card.front}")
                typer.prompt("Press enter to reveal", default="", show_default=False)
                typer.echo(card.back)

                choice = typer.prompt(
                    "Rate (again/hard/good/easy, skip, quit)", default="good"
                ).strip().lower()
                if choice == "quit":
                    typer.secho("Review session aborted.", fg="yellow")
                    return
                if choice == "skip":
                    continue
                try:
                    rating = Rating(choice.capitalize())
                except ValueError:
                    typer.secho(f"Unknown rating '{choice}', skipping card.", fg="yellow")
                    continue

                try:
                    outcome = await services.decks.rate_card(
                        entry.deck_path, card.id, rating, scheduler
                    )
                except CardNotFoundError as e:
                    typer.secho(f"{e}; skipping.", fg="yellow")
                    continue

                if outcome.boundary_changed:
                    typer.secho(
                        f"Unlock boundary of {card.chapter}: "
                        f"{_fmt_boundary(outcome.boundary_before)} -> "
                        f"{_fmt_boundary(outcome.boundary_after)}",
                        fg="green",
                    )
                if rating == Rating.AGAIN and i == len(pool) - 1:
                    typer.secho(
                        f"Last card failed. Context: {await _card_context(services, card)}",
                        fg="yellow",
                    )
                    failed_last = True
                    break

            if not failed_last:
                return

    _run(run())


@app.command()
def rate(
    chapter: Annotated[Path, typer.Argument(help="Note the card belongs to.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    rating: Annotated[Rating, typer.Argument(case_sensitive=False, help="Rating.")],
    vault: VaultOption = None,
):
    """Rate a single card."""
    from gated_notes.application.utils.paths import deck_path_for_chapter

    config, services = _setup(vault)
    deck_path = deck_path_for_chapter(_chapter_path(config, chapter))
    outcome = _run(
        services.decks.rate_card(deck_path, card_id, rating, config.scheduler_config())
    )

    typer.echo(f"{card_id}: {outcome.card.status.value}, due {outcome.card.due}")
    if outcome.boundary_changed:
        typer.secho(
            f"Boundary {_fmt_boundary(outcome.boundary_before)} -> "
            f"{_fmt_boundary(outcome.boundary_after)}; re-render needed.",
            fg="green",
        )


# ---------------------------------------------------------------------------
# Card creation
# ---------------------------------------------------------------------------


@app.command()
def add(
    chapter: Annotated[Path, typer.Argument(help="Finalized note the card is drawn from.")],
    front: Annotated[str, typer.Option(help="Question side.")],
    back: Annotated[str, typer.Option(help="Answer side.")],
    tag: Annotated[str, typer.Option(help="Verbatim quote locating the paragraph.")],
    vault: VaultOption = None,
):
    """Create a card and anchor it to the paragraph its tag was quoted from."""
    from gated_notes.application.deck_service import NewCard

    config, services = _setup(vault)
    active = _chapter_path(config, chapter)

    async def run():
        paragraphs, index = await _note_paragraphs(services, active)
        return await services.decks.add_cards(
            active, [NewCard(front=front, back=back, tag=tag)], paragraphs, index
        )

    card = _run(run())[0]
    if card.para_idx is None:
        typer.secho(
            f"Added {card.id}, but its tag matches no paragraph. Fix it with `retag`.",
            fg="yellow",
        )
        return
    typer.secho(f"Added {card.id} at paragraph {card.para_idx}.", fg="green")


@app.command()
def retag(
    chapter: Annotated[Path, typer.Argument(help="Note the card belongs to.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    tag: Annotated[str, typer.Argument(help="New quote locating the paragraph.")],
    vault: VaultOption = None,
):
    """Replace a card's tag and realign it."""
    from gated_notes.application.utils.paths import deck_path_for_chapter

    config, services = _setup(vault)
    active = _chapter_path(config, chapter)

    async def run():
        paragraphs, index = await _note_paragraphs(services, active)
        return await services.decks.update_tag(
            deck_path_for_chapter(active), card_id, tag, paragraphs, index
        )

    card = _run(run())
    if card.para_idx is None:
        typer.secho(f"{card_id} is now unaligned; it no longer gates.", fg="yellow")
        return
    typer.echo(f"{card_id} -> paragraph {card.para_idx}")


# ---------------------------------------------------------------------------
# Gating diagnostics
# ---------------------------------------------------------------------------


@app.command()
def gate(
    chapter: Annotated[Path, typer.Argument(help="Finalized note.")],
    vault: VaultOption = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the unlock boundary of a note and which paragraphs are obscured."""
    from gated_notes.application.gate_resolver import split_visible
    from gated_notes.infrastructure.utils.note_format import extract_paragraphs

    config, services = _setup(vault)
    active = _chapter_path(config, chapter)

    async def run():
        paragraphs = extract_paragraphs(await services.notes.read_note(active))
        boundary = await services.decks.chapter_boundary(active)
        return paragraphs, boundary

    paragraphs, boundary = _run(run())
    if not config.gating_enabled:
        boundary = math.inf
    visible, obscured = split_visible(paragraphs, boundary)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "chapter": active,
                    "gating_enabled": config.gating_enabled,
                    "boundary": None if math.isinf(boundary) else int(boundary),
                    "visible": [p.id for p in visible],
                    "obscured": [p.id for p in obscured],
                },
                indent=2,
            )
        )
        return

    if not paragraphs:
        typer.secho("Note is not finalized.", fg="yellow")
        return
    typer.echo(f"Boundary: {_fmt_boundary(boundary)}")
    typer.echo(f"Visible: {len(visible)}  Obscured: {len(obscured)}")


@app.command()
def align(
    chapter: Annotated[Path, typer.Argument(help="Finalized note.")],
    tag: Annotated[str, typer.Argument(help="Quoted snippet to locate.")],
    vault: VaultOption = None,
):
    """Find the paragraph a quote was drawn from."""
    from gated_notes.application.aligner import align_tag, best_alignment, is_image_tag

    config, services = _setup(vault)
    active = _chapter_path(config, chapter)
    paragraphs, index = _run(_note_paragraphs(services, active))

    if is_image_tag(tag):
        para_id = align_tag(tag, paragraphs, index)
        if para_id is not None:
            typer.echo(f"Paragraph {para_id} (image)")
            return
    else:
        best = best_alignment(tag, paragraphs)
        if best is not None and best.accepted:
            typer.echo(f"Paragraph {best.para_id} (score {best.score.combined:.2f})")
            return

    typer.secho("No match. Assign the paragraph manually.", fg="yellow")
    raise typer.Exit(1)


@app.command()
def recalc(
    chapter: Annotated[
        Path | None, typer.Argument(help="Note to recalculate. Omit with --all.")
    ] = None,
    all_notes: Annotated[bool, typer.Option("--all", help="Recalculate every note.")] = False,
    vault: VaultOption = None,
):
    """Realign paragraph indexes after notes were edited."""
    from gated_notes.application.recalculation import recalculate_all, recalculate_chapter

    config, services = _setup(vault)

    if all_notes:
        bulk = _run(recalculate_all(services.store, services.notes, services.images))
        if bulk is None:
            typer.secho("Recalculation for all notes is already in progress.", fg="yellow")
            raise typer.Exit(1)
        typer.secho(
            f"Recalculation complete for {len(bulk.chapters)} notes: "
            f"{bulk.updated} index(es) updated.",
            fg="green",
        )
        for path, err in bulk.failed.items():
            typer.secho(f"  {path}: {err}", fg="red")
        return

    if chapter is None:
        typer.secho("Pass a note path or --all.", fg="red")
        raise typer.Exit(2)

    result = _run(
        recalculate_chapter(
            _chapter_path(config, chapter), services.store, services.notes, services.images
        )
    )
    if not result.finalized:
        typer.secho("Note is not finalized. Cannot recalculate.", fg="yellow")
        raise typer.Exit(1)
    msg = f"Recalculation complete. {result.updated} card index(es) updated."
    if result.not_found:
        msg += f" {len(result.not_found)} cards could not be located."
    typer.echo(msg)


# ---------------------------------------------------------------------------
# Note finalization
# ---------------------------------------------------------------------------


@app.command()
def finalize(
    chapter: Annotated[Path, typer.Argument(help="Plain markdown note.")],
    manual: Annotated[
        bool, typer.Option("--manual", help="Split on ---GATED-NOTES-SPLIT--- markers.")
    ] = False,
    vault: VaultOption = None,
):
    """Wrap a note's paragraphs so gating becomes active."""
    from gated_notes.infrastructure.utils.note_format import auto_finalize, manual_finalize

    config, services = _setup(vault)
    active = _chapter_path(config, chapter)

    async def run():
        content = await services.notes.read_note(active)
        wrapped = manual_finalize(content) if manual else auto_finalize(content)
        await services.notes.write_note(active, wrapped)

    _run(run())
    typer.secho(
        f"Note {'manually' if manual else 'auto'}-finalized. Gating is now active.", fg="green"
    )


@app.command()
def unfinalize(
    chapter: Annotated[Path, typer.Argument(help="Finalized note.")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
    vault: VaultOption = None,
):
    """Remove gating markup and restore plain markdown."""
    from gated_notes.infrastructure.utils.note_format import unfinalize as strip_gating

    config, services = _setup(vault)
    active = _chapter_path(config, chapter)

    if not force and not typer.confirm(f"Unfinalize {active}? All gating will be removed."):
        raise typer.Exit()

    async def run():
        content = await services.notes.read_note(active)
        await services.notes.write_note(active, strip_gating(content))

    _run(run())
    typer.secho("Note unfinalized successfully.", fg="green")


# ---------------------------------------------------------------------------
# Status and card maintenance
# ---------------------------------------------------------------------------


@app.command()
def status(vault: VaultOption = None):
    """Show due counts, unaligned cards and per-note gating state."""
    from gated_notes.application.gate_resolver import chapter_cards, chapter_state
    from gated_notes.application.scheduler import now_ms

    config, services = _setup(vault)

    async def run():
        now = now_ms()
        decks = await services.decks.load_all_decks()
        learning, review_due = await services.decks.due_counts(now)
        missing = await services.decks.cards_missing_para_idx()
        chapters = sorted({c.chapter for deck in decks.values() for c in deck.values()})
        states = {
            ch: chapter_state(
                chapter_cards((c for deck in decks.values() for c in deck.values()), ch), now
            )
            for ch in chapters
        }
        return learning, review_due, missing, states

    learning, review_due, missing, states = _run(run())
    typer.echo(f"Due: {learning} learning, {review_due} review")
    typer.echo(f"Gating: {'on' if config.gating_enabled else 'off'}")
    if missing:
        typer.secho(f"Missing index: {len(missing)}", fg="yellow")
    colors = {"blocked": "red", "due": "yellow", "done": "green"}
    for ch, state in states.items():
        if state:
            typer.secho(f"  {state:<8} {ch}", fg=colors[state])


@app.command()
def missing(vault: VaultOption = None):
    """List cards that have no paragraph index."""
    _, services = _setup(vault)
    entries = _run(services.decks.cards_missing_para_idx())
    if not entries:
        typer.secho("All cards have a paragraph index.", fg="green")
        return
    for e in entries:
        typer.echo(f"{e.card.id}  {e.card.chapter}  {e.card.front}")


def _card_action(chapter: Path, card_id: str, vault: Path | None, action: str):
    from gated_notes.application.utils.paths import deck_path_for_chapter

    config, services = _setup(vault)
    deck_path = deck_path_for_chapter(_chapter_path(config, chapter))
    decks = services.decks
    calls = {
        "bury": lambda: decks.bury(deck_path, card_id, config.bury_delay_hours),
        "reset": lambda: decks.reset(deck_path, card_id),
        "suspend": lambda: decks.toggle_suspended(deck_path, card_id),
        "flag": lambda: decks.toggle_flagged(deck_path, card_id),
        "delete": lambda: decks.delete_card(deck_path, card_id),
    }
    return _run(calls[action]())


CardChapterArg = Annotated[Path, typer.Argument(help="Note the card belongs to.")]
CardIdArg = Annotated[str, typer.Argument(help="Card id.")]


@app.command()
def bury(chapter: CardChapterArg, card_id: CardIdArg, vault: VaultOption = None):
    """Postpone a card by the configured bury delay."""
    card = _card_action(chapter, card_id, vault, "bury")
    typer.echo(f"Buried {card_id} until {card.due}.")


@app.command()
def reset(chapter: CardChapterArg, card_id: CardIdArg, vault: VaultOption = None):
    """Reset a card to new; it blocks again."""
    _card_action(chapter, card_id, vault, "reset")
    typer.echo(f"Reset {card_id}.")


@app.command()
def suspend(chapter: CardChapterArg, card_id: CardIdArg, vault: VaultOption = None):
    """Toggle suspension of a card."""
    card = _card_action(chapter, card_id, vault, "suspend")
    typer.echo(f"{card_id} {'suspended' if card.suspended else 'unsuspended'}.")


@app.command()
def flag(chapter: CardChapterArg, card_id: CardIdArg, vault: VaultOption = None):
    """Toggle the flag of a card."""
    card = _card_action(chapter, card_id, vault, "flag")
    typer.echo(f"{card_id} {'flagged' if card.flagged else 'unflagged'}.")


@app.command()
def delete(
    chapter: CardChapterArg,
    card_id: CardIdArg,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
    vault: VaultOption = None,
):
    """Delete a card permanently."""
    if not force and not typer.confirm("Delete this card permanently?"):
        raise typer.Exit()
    _card_action(chapter, card_id, vault, "delete")
    typer.echo(f"Deleted {card_id}.")


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8787,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("gated_notes.server:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
