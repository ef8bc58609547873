"""
Command-line interface for studying a deck.
"""

import logging
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kard.card_list import CardListItem, build_card_list
from kard.db import KardDatabase
from kard.exceptions import DatabaseError, InputValidationError
from kard.keyboard import EditingGuard, KeyDispatcher
from kard.study_session import StudySession

logger = logging.getLogger(__name__)
console = Console()

# Typed input -> key name understood by KeyDispatcher.
INPUT_KEYS: Dict[str, str] = {
    "n": "ArrowRight",
    ">": "ArrowRight",
    "p": "ArrowLeft",
    "<": "ArrowLeft",
    "": "Enter",
    "f": "Enter",
    "q": "Escape",
    "esc": "Escape",
}

HELP_TEXT = (
    "[dim]n/> next  p/< previous  Enter/f flip  q/esc exit  "
    "g N go to  e N edit  d N delete[/dim]"
)


def _display_card(session: StudySession) -> None:
    card = session.current_card
    if card is None:
        return
    console.rule(
        f"[bold]{session.deck_name}[/bold]  "
        f"Card {session.current_index + 1} of {len(session.flashcards)}"
    )
    if session.is_flipped:
        console.print(Panel(card.back, title="Definition", border_style="blue"))
    else:
        console.print(Panel(card.front, title="Term", border_style="green"))


def _display_card_list(items: List[CardListItem]) -> None:
    table = Table(title="Cards", show_lines=False)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Term", style="magenta")
    table.add_column("Definition")
    for item in items:
        marker = "[bold yellow]>[/bold yellow] " if item.is_current else ""
        table.add_row(f"{marker}{item.index + 1}", item.card.front, item.card.back)
    console.print(table)


def _pick_item(items: List[CardListItem], arg: str) -> Optional[CardListItem]:
    try:
        position = int(arg)
    except ValueError:
        console.print("[bold red]Card number must be an integer.[/bold red]")
        return None
    if not 1 <= position <= len(items):
        console.print(
            f"[bold red]No card {position}. Choose 1 to {len(items)}.[/bold red]"
        )
        return None
    return items[position - 1]


def _edit_item(item: CardListItem) -> None:
    """Prompt for new text until a save succeeds or the user gives up."""
    item.start_edit()
    while item.is_editing:
        front = typer.prompt("Term", default=item.card.front)
        back = typer.prompt("Definition", default=item.card.back)
        try:
            item.save(front, back)
        except (InputValidationError, DatabaseError) as e:
            console.print(f"[bold red]Could not save card:[/bold red] {e}")
            if not typer.confirm("Try again?", default=False):
                item.cancel_edit()
        else:
            console.print("[green]Card updated.[/green]")


def _delete_item(item: CardListItem) -> None:
    try:
        deleted = item.delete(
            confirm=lambda card: typer.confirm(f"Delete card '{card.front}'?")
        )
    except DatabaseError as e:
        console.print(f"[bold red]Could not delete card:[/bold red] {e}")
        return
    if deleted:
        console.print("[green]Card deleted.[/green]")


def _run_list_command(
    command: str, arg: str, items: List[CardListItem]
) -> bool:
    if command not in ("g", "e", "d"):
        return False
    item = _pick_item(items, arg)
    if item is None:
        return True
    if command == "g":
        item.select()
    elif command == "e":
        _edit_item(item)
    else:
        _delete_item(item)
    return True


def show_empty_deck() -> None:
    console.print(
        "[bold yellow]This deck has no flashcards yet.[/bold yellow] "
        "Add some with `kard add-cards`."
    )


def start_study_flow(session: StudySession, db: KardDatabase) -> None:
    """
    Run the interactive study loop until the user exits or input runs out.

    Leaving without `q` keeps the session's saved position for next time.
    An empty session is closed straight away so nothing stays saved for it.
    """
    if session.is_empty:
        show_empty_deck()
        session.exit()
        return

    if session.resumed:
        console.print(
            f"[cyan]Resuming at card {session.current_index + 1} "
            f"of {len(session.flashcards)}.[/cyan]"
        )

    guard = EditingGuard()
    dispatcher = KeyDispatcher(
        session,
        guard=guard,
        on_exit=lambda: console.print("[bold cyan]Study session ended.[/bold cyan]"),
    )

    with dispatcher:
        while not session.closed:
            if session.is_empty:
                console.print(
                    "[bold yellow]All cards have been deleted.[/bold yellow]"
                )
                session.exit()
                break

            items = build_card_list(session, db, guard)
            _display_card(session)
            _display_card_list(items)
            console.print(HELP_TEXT)

            try:
                raw = console.input("[bold]> [/bold]")
            except EOFError:
                console.print("[cyan]Progress saved.[/cyan]")
                break

            text = raw.strip().lower()
            key = INPUT_KEYS.get(text)
            if key is not None:
                dispatcher.handle_key(key)
                continue

            command, _, arg = text.partition(" ")
            if not _run_list_command(command, arg.strip(), items):
                console.print(f"[bold red]Unknown command '{raw.strip()}'.[/bold red]")
