"""
CLI for Muddle.

Minimal CLI using stdlib argument handling for fast startup.
Subcommands are imported lazily to avoid startup overhead.

Usage:
    muddle "your messy note"        # Classify and keep a note
    muddle watch notes.txt          # Live-organise a text file
    muddle --help                   # Show help
"""

import logging
import os
import sys
from pathlib import Path


def print_help() -> None:
    """Print help message."""
    print("""muddle - messy notes in, organised notes out

Usage:
    muddle "your messy note"      Classify a note and keep it

Commands:
    muddle list [--tag T]         List kept notes (optionally by tag)
    muddle show <id>              Print a note as Markdown
    muddle export <id> <file>     Write a note as Markdown to a file
    muddle watch <file>           Organise a text file as you edit it
                                  (Ctrl-C keeps the note)

Options:
    muddle --tag, -t <tag>        Tag the captured note (repeatable)
    muddle --help, -h             Show this help
    muddle --version, -v          Show version

Examples:
    muddle "Buy milk. Decide on venue by Friday."
    muddle -t work "Ship the beta? Ask Sam about pricing"
    muddle list --tag work
    muddle show 3f2c

Note IDs may be abbreviated to any unique prefix.""")


def print_version() -> None:
    """Print version."""
    from muddle import __version__
    print(f"muddle {__version__}")


def setup_logging() -> None:
    """Configure logging. MUDDLE_DEBUG turns on INFO-level output."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO if os.environ.get("MUDDLE_DEBUG") else logging.WARNING,
    )


def split_tags(args: list[str]) -> tuple[list[str], list[str]]:
    """Pull --tag/-t options out of args. Returns (tags, remaining)."""
    tags: list[str] = []
    rest: list[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--tag", "-t") and i + 1 < len(args):
            tags.append(args[i + 1])
            i += 2
        else:
            rest.append(arg)
            i += 1

    return tags, rest


def open_store():
    """Load the note store from its default location."""
    from muddle.store import NoteStore

    store = NoteStore()
    store.load()
    return store


def find_note(store, prefix: str):
    """Find a stored note by full ID or unique prefix."""
    matches = [note for note in store.notes if note.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise LookupError(f"Ambiguous note ID: {prefix}")
    raise LookupError(f"Note not found: {prefix}")


def format_structured(note) -> str:
    """Plain-text view of a note's structured content."""
    from muddle.models import CATEGORIES

    lines = []
    for name in CATEGORIES:
        items = getattr(note.structured, name)
        if items:
            lines.append(f"{name.title()}:")
            lines.extend(f"  - {item}" for item in items)
    if note.structured.summary:
        lines.append(f"Summary: {note.structured.summary}")
    return "\n".join(lines) if lines else "(nothing organised yet)"


def capture(text: str, tags: list[str]) -> str:
    """
    Classify a note once and keep it.

    Returns the note ID. The note is kept even if classification fails.
    """
    import asyncio

    from muddle.classifier import Classifier
    from muddle.config import load_config
    from muddle.session import NoteSession

    config = load_config()
    session = NoteSession(open_store(), Classifier(config))
    session.set_raw_text(text)
    for tag in tags:
        session.add_tag(tag)

    async def organise() -> None:
        request = session.refresh_now()
        if request is not None:
            await request

    asyncio.run(organise())

    if session.watcher.last_error is not None:
        print(f"Warning: not organised ({session.watcher.last_error})", file=sys.stderr)

    return session.keep().id


def cmd_capture(args: list[str]) -> int:
    """Capture a note from args."""
    from muddle.errors import StorageError

    tags, words = split_tags(args)
    text = " ".join(words)

    if not text.strip():
        print("Error: Empty note", file=sys.stderr)
        return 1

    try:
        print(capture(text, tags))
        return 0
    except (ValueError, StorageError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_list(args: list[str]) -> int:
    """List kept notes, optionally filtered by tag."""
    tags, _ = split_tags(args)
    store = open_store()
    notes = store.filter_by_tag(tags[0] if tags else "")

    if not notes:
        print("No notes found.")
        return 0

    for note in notes:
        first_line = note.raw_text.strip().split("\n", 1)[0][:60]
        created = note.date_created.strftime("%Y-%m-%d %H:%M")
        tag_str = f"  [{', '.join(note.tags)}]" if note.tags else ""
        print(f"{note.id[:8]}  {created}  {first_line}{tag_str}")

    return 0


def cmd_show(args: list[str]) -> int:
    """Print a note as Markdown."""
    from muddle.export import render_markdown

    if not args:
        print("Usage: muddle show <id>", file=sys.stderr)
        return 1

    try:
        note = find_note(open_store(), args[0])
    except LookupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(render_markdown(note), end="")
    return 0


def cmd_export(args: list[str]) -> int:
    """Export a note to a Markdown file."""
    from muddle.export import export_markdown

    if len(args) < 2:
        print("Usage: muddle export <id> <file>", file=sys.stderr)
        return 1

    try:
        note = find_note(open_store(), args[0])
        path = export_markdown(note, Path(args[1]))
    except (LookupError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Exported: {path}")
    return 0


def cmd_watch(args: list[str]) -> int:
    """
    Organise a text file while it is being edited.

    The file is read every second into the active note; the change watcher
    re-classifies it on its own schedule. Ctrl-C keeps the note.
    """
    import asyncio

    from muddle.classifier import Classifier
    from muddle.config import load_config
    from muddle.errors import StorageError
    from muddle.session import NoteSession

    tags, rest = split_tags(args)
    if not rest:
        print("Usage: muddle watch <file>", file=sys.stderr)
        return 1

    path = Path(rest[0])
    if not path.exists():
        print(f"Error: {path} not found", file=sys.stderr)
        return 1

    config = load_config()
    try:
        classifier = Classifier(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    def show(note) -> None:
        print(f"\n--- organised ---\n{format_structured(note)}", flush=True)

    session = NoteSession(
        open_store(),
        classifier,
        poll_interval=config["watcher"]["poll_interval"],
        on_update=show,
    )
    for tag in tags:
        session.add_tag(tag)

    async def follow() -> None:
        session.watcher.start()
        try:
            while True:
                try:
                    session.set_raw_text(path.read_text(encoding="utf-8"))
                except OSError as e:
                    logging.getLogger(__name__).warning("Could not read %s: %s", path, e)
                await asyncio.sleep(1.0)
        finally:
            await session.watcher.stop()

    print(f"Watching {path} (Ctrl-C to keep and exit)")
    try:
        asyncio.run(follow())
    except KeyboardInterrupt:
        pass

    if not session.note.raw_text.strip():
        print("\nNothing to keep.")
        return 0

    try:
        note = session.keep()
    except StorageError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    print(f"\nKept: {note.id}")
    return 0


def main() -> int:
    """
    Main entry point.

    Optimized for minimal startup time on the capture path.
    """
    setup_logging()
    args = sys.argv[1:]

    # No args - check for piped input
    if not args:
        if not sys.stdin.isatty():
            text = sys.stdin.read().strip()
            if text:
                return cmd_capture([text])
        print_help()
        return 0

    first_arg = args[0]

    if first_arg in ("--help", "-h", "help"):
        print_help()
        return 0

    if first_arg in ("--version", "-v", "version"):
        print_version()
        return 0

    # Subcommands (lazy import to keep startup fast)
    if first_arg == "list":
        return cmd_list(args[1:])

    if first_arg == "show":
        return cmd_show(args[1:])

    if first_arg == "export":
        return cmd_export(args[1:])

    if first_arg == "watch":
        return cmd_watch(args[1:])

    # Everything else is a note to capture
    return cmd_capture(args)


if __name__ == "__main__":
    sys.exit(main())
