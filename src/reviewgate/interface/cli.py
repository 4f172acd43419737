"""reviewgate CLI — vocabulary management, interactive gate and server."""

import asyncio
import json
import logging
import sys
from typing import Annotated

import typer

from reviewgate.application.config import resolve_config
from reviewgate.application.factory import build_services
from reviewgate.application.gate import utc_now
from reviewgate.application.vocabulary_service import TranslationCheck, check_translation
from reviewgate.domain.constants import DEFAULT_HOST, DEFAULT_PORT
from reviewgate.domain.decisions import Allow, Deny, PresentReview
from reviewgate.domain.errors import ReviewGateError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="reviewgate: earn your app time with a vocabulary review.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage reviewgate configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def _services():
    return build_services(resolve_config())


def _fail(e: ReviewGateError) -> None:
    typer.secho(f"Error: {e}", fg="red", err=True)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for reviewgate."""
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------


@app.command()
def add(
    word: Annotated[str, typer.Argument(help="Word to learn.")],
    translation: Annotated[str, typer.Argument(help="Its translation.")],
):
    """[bold green]Add[/bold green] a word to the vocabulary."""
    services = _services()
    try:
        card = asyncio.run(services.vocabulary.add_card(word, translation, utc_now()))
    except ReviewGateError as e:
        _fail(e)
    typer.secho(f"Added '{card.word}' -> '{card.translation}' ({card.id})", fg="green")


@app.command()
def edit(
    card_id: Annotated[str, typer.Argument(help="Card to change.")],
    word: Annotated[str, typer.Argument(help="New word.")],
    translation: Annotated[str, typer.Argument(help="New translation.")],
):
    """Replace the word and translation of CARD_ID. Its progress starts over."""
    services = _services()
    try:
        card = asyncio.run(
            services.vocabulary.override_card(card_id, word, translation, utc_now())
        )
    except ReviewGateError as e:
        _fail(e)
    typer.secho(
        f"Updated {card.id}: '{card.word}' -> '{card.translation}' (progress reset)",
        fg="green",
    )


@app.command("list")
def list_cards(
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON.")] = False,
):
    """List every card with its statistics."""
    services = _services()
    cards = asyncio.run(services.vocabulary.list_cards())

    if as_json:
        rows = [
            {
                "id": c.id,
                "word": c.word,
                "translation": c.translation,
                "kind": c.kind.value,
                "correct": c.correct_count,
                "incorrect": c.incorrect_count,
                "due_at": c.due_at.isoformat(),
            }
            for c in cards
        ]
        typer.echo(json.dumps(rows, indent=2))
        return

    if not cards:
        typer.secho("No cards yet. Add one with 'reviewgate add WORD TRANSLATION'.", fg="yellow")
        return
    for c in cards:
        typer.echo(
            f"{c.word:<24} {c.translation:<24} {c.kind.value:<6} "
            f"+{c.correct_count}/-{c.incorrect_count}  due {c.due_at:%Y-%m-%d %H:%M}"
        )


@app.command()
def today():
    """Show today's new/review counters against the daily quotas."""
    services = _services()

    async def run():
        prefs = await services.config.learning_preferences()
        counters = await services.counters.current_counters(utc_now())
        return prefs, counters

    prefs, counters = asyncio.run(run())
    typer.echo(f"Day:     {counters.day_key}")
    typer.echo(f"New:     {counters.new_shown}/{prefs.new_per_day}")
    typer.echo(f"Review:  {counters.review_shown}/{prefs.review_per_day}")
    typer.echo(f"Mix:     {prefs.mix_mode.value}")


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


@app.command()
def review(
    app_id: Annotated[str, typer.Argument(help="Application identifier being launched.")],
):
    """Simulate a launch of APP_ID and answer the review in the terminal.

    Leave the answer empty to back out; the app stays locked and nothing is
    recorded.
    """
    services = _services()
    gate = services.gate

    async def run():
        decision = await gate.on_launch_attempt(app_id)
        if not isinstance(decision, PresentReview):
            return decision

        card = decision.card
        answer = typer.prompt(f"Translate '{card.word}'", default="", show_default=False)
        check = check_translation(answer, card.translation)
        if check is TranslationCheck.EMPTY:
            return await gate.on_abandon(app_id)

        if check is TranslationCheck.CORRECT:
            typer.secho("Correct!", fg="green")
        elif check is TranslationCheck.CLOSE:
            typer.secho(f"Close! Expected '{card.translation}'.", fg="yellow")
        else:
            typer.secho(f"Expected '{card.translation}'.", fg="red")
        return await gate.on_answer(app_id, check is TranslationCheck.CORRECT)

    try:
        decision = asyncio.run(run())
    except ReviewGateError as e:
        _fail(e)

    match decision:
        case Allow(reason=reason):
            typer.secho(f"ALLOW {app_id} ({reason.value})", fg="green")
        case Deny(reason=reason, detail=detail):
            suffix = f": {detail}" if detail else ""
            typer.secho(f"DENY {app_id} ({reason.value}){suffix}", fg="red")
            raise typer.Exit(1)


@app.command()
def lock(
    app_id: Annotated[str, typer.Argument(help="Application identifier to re-lock.")],
):
    """End the unlock window of APP_ID now."""
    services = _services()
    try:
        asyncio.run(services.gate.force_lock(app_id))
    except ReviewGateError as e:
        _fail(e)
    typer.echo(f"Locked {app_id}")


@app.command()
def flagged():
    """List cards whose scheduling state could not be read."""
    services = _services()

    async def run():
        cards = await services.store.list_cards()
        return services.processor.screen(cards), services.processor.flagged()

    _, ids = asyncio.run(run())
    if not ids:
        typer.echo("No flagged cards.")
        return
    for card_id in ids:
        typer.echo(card_id)


@app.command("reset-card")
def reset_card(
    card_id: Annotated[str, typer.Argument(help="Card to repair.")],
):
    """Give CARD_ID fresh scheduling state, keeping its statistics."""
    services = _services()
    try:
        card = asyncio.run(services.processor.reset_scheduling_state(card_id, utc_now()))
    except ReviewGateError as e:
        _fail(e)
    typer.secho(f"Reset '{card.word}'; due now.", fg="green")


# ---------------------------------------------------------------------------
# Config & server
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display the resolved configuration."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2, sort_keys=True))


@app.command()
def server(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = DEFAULT_HOST,
    port: Annotated[int, typer.Option(help="Port to listen on.")] = DEFAULT_PORT,
    reload: Annotated[bool, typer.Option(help="Reload on code changes.")] = False,
):
    """Run the HTTP API for out-of-process launch interceptors."""
    import uvicorn

    uvicorn.run("reviewgate.server:app", host=host, port=port, reload=reload)
