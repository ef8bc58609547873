"""
CLI entry point for kard.
"""

# Standard library imports
import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from kard import config as kard_config
from kard.app_state import AppState
from kard.auth import AuthService
from kard.db import KardDatabase
from kard.exceptions import (
    AuthenticationError,
    DatabaseError,
    DeckNotFoundError,
    InputValidationError,
    UserNotFoundError,
)
from kard.models import AuthSession, Deck, Flashcard
from kard.search import filter_decks
from kard.storage import LocalStorage
from kard.validation import (
    CardDraft,
    clean_card_drafts,
    clean_deck_input,
    password_strength,
    strength_label,
)
from kard.web import create_app
from kard.cli._study_logic import study_logic


logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    name="kard",
    help="Kard: flashcard decks you can study from the terminal.",
    add_completion=False,
    rich_markup_mode="markdown",
)

CARD_SEPARATOR = "::"


# ---------------------------------------------------------------------------
# Shared options and helpers
# ---------------------------------------------------------------------------

_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. Falls back to KARD_DB env var.",
    envvar="KARD_DB",
)

_storage_option = typer.Option(  # noqa: B008
    None,
    "--storage",
    help="Device storage file or directory. Falls back to KARD_STORAGE env var.",
    envvar="KARD_STORAGE",
)


@app.callback()
def cli(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log debug output to stderr."
    ),
):
    """Kard command-line front end."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )


@contextmanager
def _open_app(
    db: Optional[Path], storage: Optional[Path]
) -> Iterator[Tuple[KardDatabase, LocalStorage, AppState]]:
    """Open the database, device storage and app state for one command."""
    db_path = db if db is not None else kard_config.settings.db_path
    storage_path = (
        storage if storage is not None else kard_config.settings.storage_dir
    )
    device_storage = LocalStorage(storage_path)
    with KardDatabase(db_path=db_path) as db_inst:
        db_inst.initialize_schema()
        state = AppState(AuthService(db_inst, device_storage), device_storage)
        try:
            yield db_inst, device_storage, state.start()
        finally:
            state.close()


def _require_session(state: AppState) -> AuthSession:
    if not state.is_authenticated:
        console.print(
            "[bold red]Not signed in.[/bold red] Run `kard signin` first."
        )
        raise typer.Exit(code=1)
    return state.session


def _find_deck(db_inst: KardDatabase, user_id: uuid.UUID, ref: str) -> Deck:
    """Resolve a deck by id or by exact (case-insensitive) name."""
    try:
        deck_id = uuid.UUID(ref)
    except ValueError:
        deck_id = None
    if deck_id is not None:
        return db_inst.get_deck(deck_id, user_id=user_id)

    matches = [
        d for d in db_inst.list_decks(user_id) if d.name.lower() == ref.lower()
    ]
    if not matches:
        raise DeckNotFoundError(f"Deck '{ref}' not found.")
    if len(matches) > 1:
        console.print(
            f"[yellow]Several decks are named '{ref}'; using the newest. "
            "Pass the deck id to pick another.[/yellow]"
        )
    return matches[0]


def _parse_card_option(raw: str) -> CardDraft:
    front, sep, back = raw.partition(CARD_SEPARATOR)
    if not sep:
        return CardDraft(front=front, back="")
    return CardDraft(front=front, back=back)


def _fail(prefix: str, error: Exception) -> None:
    console.print(f"[bold red]{prefix}:[/bold red] {error}")
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Auth commands
# ---------------------------------------------------------------------------


@app.command()
def signup(
    email: str = typer.Option(..., "--email", prompt=True, help="Account email."),
    password: Optional[str] = typer.Option(
        None, "--password", help="Account password. Prompted for when omitted."
    ),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Create an account."""
    confirm_password = None
    if password is None:
        password = typer.prompt("Password", hide_input=True)
        confirm_password = typer.prompt("Confirm password", hide_input=True)

    score = password_strength(password)
    console.print(f"Password strength: [bold]{strength_label(score)}[/bold]")

    try:
        with _open_app(db, storage) as (db_inst, _, state):
            user = state.auth.sign_up(email, password, confirm_password)
            db_inst.create_user_record(user.id, user.email)
    except (InputValidationError, AuthenticationError) as e:
        _fail("Sign up failed", e)
    except DatabaseError as e:
        _fail("Database Error", e)
    console.print(
        f"[bold green]Account created for {user.email}.[/bold green] "
        "Sign in with `kard signin`."
    )


@app.command()
def signin(
    email: str = typer.Option(..., "--email", prompt=True, help="Account email."),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Account password."
    ),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Sign in and remember the session on this device."""
    try:
        with _open_app(db, storage) as (db_inst, _, state):
            session = state.auth.sign_in_with_password(email, password)
            try:
                db_inst.update_last_login(session.user_id)
            except UserNotFoundError as e:
                logger.warning(f"No user record to stamp on sign-in: {e}")
    except AuthenticationError as e:
        _fail("Sign in failed", e)
    except DatabaseError as e:
        _fail("Database Error", e)
    console.print(f"[bold green]Signed in as {session.email}.[/bold green]")


@app.command()
def signout(
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Sign out on this device."""
    try:
        with _open_app(db, storage) as (_, _, state):
            was_signed_in = state.is_authenticated
            state.auth.sign_out()
    except DatabaseError as e:
        _fail("Database Error", e)
    if was_signed_in:
        console.print("[green]Signed out.[/green]")
    else:
        console.print("[yellow]Not signed in.[/yellow]")


@app.command()
def whoami(
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Show the signed-in account."""
    try:
        with _open_app(db, storage) as (db_inst, _, state):
            session = _require_session(state)
            record = db_inst.get_user_record(session.user_id)
    except DatabaseError as e:
        _fail("Database Error", e)

    table = Table(title="Account", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Email", session.email)
    table.add_row("User ID", str(session.user_id))
    last_login = record.last_login if record else None
    table.add_row(
        "Last Login",
        last_login.strftime("%Y-%m-%d %H:%M UTC") if last_login else "never",
    )
    console.print(table)


# ---------------------------------------------------------------------------
# Deck commands
# ---------------------------------------------------------------------------


def _display_decks(decks: List[Deck], query: str) -> None:
    title = f"Decks matching '{query}'" if query.strip() else "Decks"
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Cards", style="magenta", justify="right")
    table.add_column("Created", style="yellow")
    table.add_column("ID", style="dim")
    for deck in decks:
        table.add_row(
            deck.name,
            deck.description or "",
            str(deck.card_count),
            deck.created_at.strftime("%Y-%m-%d"),
            str(deck.id),
        )
    console.print(table)


@app.command()
def decks(
    search: str = typer.Option("", "--search", "-s", help="Filter decks by text."),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """List your decks, newest first."""
    try:
        with _open_app(db, storage) as (db_inst, _, state):
            session = _require_session(state)
            all_decks = db_inst.list_decks(session.user_id)
    except DatabaseError as e:
        _fail("Database Error", e)

    if not all_decks:
        console.print(
            "[yellow]No decks yet.[/yellow] Create one with `kard create-deck`."
        )
        return
    matching = filter_decks(all_decks, search)
    if not matching:
        console.print(f"[yellow]No decks match '{search}'.[/yellow]")
        return
    _display_decks(matching, search)


@app.command("create-deck")
def create_deck(
    name: str = typer.Argument(..., help="Name of the new deck."),
    description: Optional[str] = typer.Option(
        None, "--description", "-d", help="Optional description."
    ),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Create an empty deck."""
    try:
        name, description = clean_deck_input(name, description)
        with _open_app(db, storage) as (db_inst, _, state):
            session = _require_session(state)
            deck = db_inst.create_deck(session.user_id, name, description)
    except InputValidationError as e:
        _fail("Invalid deck", e)
    except DatabaseError as e:
        _fail("Failed to create deck", e)
    console.print(
        f"[bold green]Created deck '{deck.name}'[/bold green] ([dim]{deck.id}[/dim])."
    )


@app.command("add-cards")
def add_cards(
    deck: str = typer.Argument(..., help="Deck name or id."),
    cards: List[str] = typer.Option(  # noqa: B008
        ...,
        "--card",
        "-c",
        help=f"Card as 'TERM{CARD_SEPARATOR}DEFINITION'. Repeat for more cards.",
    ),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Add flashcards to a deck in one batch."""
    drafts = [_parse_card_option(raw) for raw in cards]
    try:
        valid = clean_card_drafts(drafts)
        with _open_app(db, storage) as (db_inst, _, state):
            session = _require_session(state)
            target = _find_deck(db_inst, session.user_id, deck)
            created = db_inst.create_flashcards(
                session.user_id,
                target.id,
                [
                    Flashcard(deck_id=target.id, front=d.front, back=d.back)
                    for d in valid
                ],
            )
    except InputValidationError as e:
        _fail("Invalid cards", e)
    except DeckNotFoundError as e:
        _fail("Deck not found", e)
    except DatabaseError as e:
        _fail("Error saving flashcards", e)

    skipped = len(drafts) - len(valid)
    console.print(
        f"[bold green]Successfully added {len(created)} flashcard(s) "
        f"to {target.name}![/bold green]"
    )
    if skipped:
        console.print(
            f"[yellow]Skipped {skipped} incomplete card(s).[/yellow]"
        )


@app.command("delete-deck")
def delete_deck(
    deck: str = typer.Argument(..., help="Deck name or id."),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Bypass confirmation prompt."
    ),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Delete a deck and all of its flashcards."""
    try:
        with _open_app(db, storage) as (db_inst, _, state):
            session = _require_session(state)
            target = _find_deck(db_inst, session.user_id, deck)
            if not yes:
                confirmed = typer.confirm(
                    f"Delete deck '{target.name}' and its "
                    f"{target.card_count} flashcard(s)?"
                )
                if not confirmed:
                    console.print("Delete cancelled.")
                    raise typer.Exit()
            removed = db_inst.delete_deck(target.id)
    except DeckNotFoundError as e:
        _fail("Deck not found", e)
    except DatabaseError as e:
        _fail("Failed to delete deck", e)
    console.print(
        f"[bold green]Deleted deck '{target.name}'[/bold green] "
        f"and {removed} flashcard(s)."
    )


# ---------------------------------------------------------------------------
# Study & serve
# ---------------------------------------------------------------------------


@app.command()
def study(
    deck: str = typer.Argument(..., help="Deck name or id."),
    refresh: bool = typer.Option(
        False,
        "--refresh",
        help="Reload cards from the database instead of the saved session.",
    ),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Study a deck card by card. Progress is kept until you quit with `q`."""
    try:
        with _open_app(db, storage) as (db_inst, device_storage, state):
            session = _require_session(state)
            target = _find_deck(db_inst, session.user_id, deck)
            study_logic(db_inst, device_storage, target, refresh=refresh)
    except DeckNotFoundError as e:
        _fail("Deck not found", e)
    except DatabaseError as e:
        _fail("Database Error", e)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port."),
    db: Optional[Path] = _db_option,
    storage: Optional[Path] = _storage_option,
):
    """Run the web server."""
    host = host or kard_config.settings.host
    port = port or kard_config.settings.port
    try:
        with _open_app(db, storage) as (db_inst, _, state):
            web_app = create_app(db_inst, auth=state.auth)
            console.print(f"Serving kard on [cyan]http://{host}:{port}[/cyan]")
            web_app.run(host=host, port=port, threaded=False)
    except DatabaseError as e:
        _fail("Database Error", e)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application.

    An unexpected exception is printed in red and exits with status 1.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
