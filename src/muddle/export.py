"""
Markdown export for Muddle.

The rendered string is handed unchanged to whatever writes it out
(a file, the clipboard, stdout).
"""

from pathlib import Path

from muddle.models import Note


def render_markdown(note: Note) -> str:
    """Render a note as a Markdown document."""
    structured = note.structured

    def section(label: str, items: list[str]) -> str:
        return f"- **{label}:**\n" + "".join(f"  - {item}\n" for item in items)

    md = "# Messy Note\n\n"
    md += f"**Created:** {note.date_created.isoformat()}\n\n"
    md += f"**Tags:** {', '.join(note.tags)}\n\n"
    md += f"## Raw Text\n{note.raw_text}\n\n"
    md += "## Organizer\n"
    md += section("Ideas", structured.ideas)
    md += section("Decisions", structured.decisions)
    md += section("Questions", structured.questions)
    md += section("Actions", structured.actions)
    md += f"## Summary\n{structured.summary or ''}\n"
    return md


def export_markdown(note: Note, path: Path) -> Path:
    """Write a note's Markdown rendering to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_markdown(note))
    return path
