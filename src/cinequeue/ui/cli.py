from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cinequeue.app import build_local_store, build_rest_store, mutate_item, show_list
from cinequeue.config import configure_logging
from cinequeue.domain.model import PERSONAL_LIST, MutationAction, canonicalize, format_item_id
from cinequeue.domain.sync import OutcomeStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from cinequeue.domain.model import ListEntry
    from cinequeue.domain.ports import ListStore

log = logging.getLogger(__name__)

_ITEM_COMMANDS = {
    "add": MutationAction.ADD,
    "remove": MutationAction.REMOVE,
    "toggle": MutationAction.TOGGLE,
}


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vote on and edit movie watchlists")
    parser.add_argument(
        "--list",
        dest="list_id",
        default=PERSONAL_LIST,
        help="Team id of the watchlist to use (default: %(default)s)",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Use the local SQLite store instead of the watchlist API",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("show", help="Print the watchlist, highest score first")

    vote = subparsers.add_parser("vote", help="Upvote a movie (again to withdraw the vote)")
    vote.add_argument("item", help="Movie id: tmdb-<id>, youtube-<id> or a media UUID")
    vote.add_argument("--down", action="store_true", help="Downvote instead of upvote")
    vote.add_argument("--title", default="", help="Title to store for a new catalog item")

    for name, help_text in (
        ("add", "Add a movie to the watchlist"),
        ("remove", "Remove a movie from the watchlist"),
        ("toggle", "Add the movie if missing, remove it otherwise"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("item", help="Movie id: tmdb-<id>, youtube-<id> or a media UUID")
        command.add_argument("--title", default="", help="Title to store for a new catalog item")

    return parser.parse_args(list(argv))


def _action_for(args: argparse.Namespace) -> MutationAction:
    if args.command == "vote":
        return MutationAction.DOWNVOTE if args.down else MutationAction.UPVOTE
    return _ITEM_COMMANDS[args.command]


def _build_store(args: argparse.Namespace) -> ListStore:
    return build_local_store() if args.local else build_rest_store()


def _format_entry(entry: ListEntry) -> str:
    marker = {None: " ", "upvote": "+", "downvote": "-"}[entry.user_vote]
    label = entry.title or format_item_id(entry.item_id)
    return f"{entry.score:>+4d} {marker} {label} ({entry.upvotes}/{entry.downvotes})"


def _print_entries(entries: Sequence[ListEntry]) -> None:
    if not entries:
        print("(empty)")  # noqa: T201
    for entry in entries:
        print(_format_entry(entry))  # noqa: T201


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command != "show":
            canonicalize(parsed_args.item)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        store = _build_store(parsed_args)
        if parsed_args.command == "show":
            _print_entries(show_list(parsed_args.list_id, store=store))
            return
        outcome, entries = mutate_item(
            parsed_args.list_id,
            parsed_args.item,
            _action_for(parsed_args),
            store=store,
            title=parsed_args.title,
        )
    except Exception:
        log.exception("Fatal error while talking to the watchlist store")
        sys.exit(1)

    print(outcome.message)  # noqa: T201
    _print_entries(entries)
    if outcome.status is OutcomeStatus.ROLLED_BACK:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
