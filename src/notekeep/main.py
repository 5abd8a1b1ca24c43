#!/usr/bin/env python
"""Interactive console for notekeep."""
import argparse
import cmd
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from pydantic import ValidationError as PydanticValidationError

from notekeep import __version__
from notekeep.config import NotekeepConfig, config
from notekeep.exceptions import ConfigurationError, NotekeepError
from notekeep.models.db_models import init_db
from notekeep.observability import configure_logging, metrics
from notekeep.services.list_sync import ListSyncController, ListUpdate
from notekeep.services.notes_service import NotesService
from notekeep.storage.queries import NoteQuery

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="notekeep - personal notes")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("NOTEKEEP_DATABASE_PATH"),
    )
    parser.add_argument(
        "--in-memory",
        help="Keep notes in memory only (lost on exit)",
        action="store_true",
    )
    parser.add_argument(
        "--undo-window",
        help="Seconds a deleted note can be restored",
        type=float,
        default=None,
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=config.log_level,
    )
    parser.add_argument("--log-dir", help="Directory for log files", type=str, default=None)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def update_config(args: argparse.Namespace) -> None:
    """Update the global config with command line arguments."""
    changes = {}
    if args.database_path:
        changes["database_path"] = Path(args.database_path)
    if args.in_memory:
        changes["in_memory_db"] = True
    if args.undo_window is not None:
        changes["undo_window_seconds"] = args.undo_window
    if args.log_dir:
        changes["log_dir"] = Path(args.log_dir)

    # Validate the combined settings first so a bad option leaves config untouched
    try:
        validated = NotekeepConfig.model_validate({**config.model_dump(), **changes})
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid option: {e}") from e
    for key in changes:
        setattr(config, key, getattr(validated, key))


class ConsoleSurface:
    """Rendering surface that prints the whole list after each update."""

    def __init__(self, out: TextIO):
        self.out = out

    def __call__(self, update: ListUpdate) -> None:
        print(f"-- {update.query.describe()} ({len(update.items)}) --", file=self.out)
        if update.is_empty:
            print("   (no notes)", file=self.out)
        for index, item in enumerate(update.items):
            line = f"{index:>3}. [{item.priority_label:<6}] {item.title or '(untitled)'}"
            if item.preview:
                line += f" - {item.preview}"
            print(line, file=self.out)


class NotesShell(cmd.Cmd):
    """Line-oriented front end over a ListSyncController."""

    intro = "notekeep. Type help or ? to list commands."
    prompt = "notes> "

    def __init__(self, service: NotesService, stdout: Optional[TextIO] = None):
        super().__init__(stdout=stdout)
        self.service = service
        self.controller = ListSyncController(service, ConsoleSurface(self.stdout))

    def preloop(self) -> None:
        self.controller.show(NoteQuery.all())

    def postloop(self) -> None:
        self.controller.close()

    def _say(self, message: str) -> None:
        print(message, file=self.stdout)

    def onecmd(self, line: str) -> bool:
        try:
            return super().onecmd(line)
        except NotekeepError as e:
            self._say(e.message)
        except (ValueError, IndexError) as e:
            self._say(str(e))
        return False

    def emptyline(self) -> bool:
        return False

    def do_add(self, arg: str) -> None:
        """add <priority> <title> [content]: create a note (priority high|medium|low)."""
        parts = shlex.split(arg)
        if len(parts) < 2:
            raise ValueError("usage: add <priority> <title> [content]")
        self.service.create_note(
            title=parts[1], content=" ".join(parts[2:]), priority=parts[0]
        )

    def do_edit(self, arg: str) -> None:
        """edit <index> <field>=<value> ...: change title, content or priority."""
        parts = shlex.split(arg)
        if len(parts) < 2:
            raise ValueError("usage: edit <index> title=... content=... priority=...")
        note = self.controller.note_at(int(parts[0]))
        patch = dict(part.split("=", 1) for part in parts[1:])
        self.service.update(note.id, patch)

    def do_rm(self, arg: str) -> None:
        """rm <index>: delete a note (undo available for a few seconds)."""
        pending = self.controller.swipe_delete(int(arg))
        self._say(f"{pending.message} - type 'undo' to restore")

    def do_undo(self, arg: str) -> None:
        """undo: restore the last deleted note."""
        restored = self.service.undo_last_delete()
        self._say(f"Restored '{restored.title}'")

    def do_clear(self, arg: str) -> None:
        """clear: delete every note (asks for confirmation)."""
        answer = input("Delete everything? [y/N] ") if arg.strip() != "-y" else "y"
        if answer.strip().lower() in ("y", "yes"):
            self.service.delete_all()
            self._say("Successfully removed everything")

    def do_search(self, arg: str) -> None:
        """search <text>: show only notes containing text."""
        self.controller.show(NoteQuery.search(arg.strip()))

    def do_sort(self, arg: str) -> None:
        """sort high|low: order by priority."""
        direction = arg.strip().lower()
        if direction not in ("high", "low"):
            raise ValueError("usage: sort high|low")
        self.controller.show(NoteQuery.by_priority(descending=direction == "high"))

    def do_all(self, arg: str) -> None:
        """all: show every note."""
        self.controller.show(NoteQuery.all())

    def do_stats(self, arg: str) -> None:
        """stats: operation counts and timings."""
        for op, values in sorted(metrics.get_metrics().items()):
            self._say(
                f"{op:<18} count={values['count']} errors={values['error_count']} "
                f"avg={values['avg_duration_ms']}ms"
            )

    def do_quit(self, arg: str) -> bool:
        """quit: exit."""
        return True

    do_EOF = do_quit


def main(argv: Optional[List[str]] = None) -> int:
    """Run the notekeep console."""
    args = parse_args(argv)
    try:
        update_config(args)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        return 2

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        configure_logging(log_dir=config.log_dir, level=log_level)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=logging.WARNING)
        logger.warning(f"Failed to configure file logging: {e}")

    try:
        logger.info(f"Using database: {config.get_db_url()}")
        engine = init_db()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"Cannot open database: {e}", file=sys.stderr)
        return 1

    service = NotesService(engine=engine)
    try:
        NotesShell(service).cmdloop()
    except KeyboardInterrupt:
        pass
    finally:
        service.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
