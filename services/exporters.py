"""
Export a stored meeting artifact as portable JSON or Markdown.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from domain.models import MeetingArtifact, to_iso, utc_now
from services.action_item_view import parse_due_date

EXPORT_VERSION = "1.0"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


def safe_filename_part(value: Optional[str]) -> str:
    """Reduce a title to a short filesystem-safe slug."""
    text = _UNSAFE_FILENAME_CHARS.sub("-", str(value or "meeting").strip())
    text = re.sub(r"-+", "-", text)[:80]
    return text or "meeting"


def _export_due_date(value: Any) -> Optional[str]:
    due = parse_due_date(value)
    return to_iso(due) if due else None


def to_export_json(
    artifact: MeetingArtifact, exported_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """Flatten *artifact* into the export document.

    Action items carry only the fields the pipeline produces; there is no
    priority or confidence column.
    """
    result = artifact.result
    action_items: List[Dict[str, Any]] = []
    for index, item in enumerate(result.action_items):
        action_items.append(
            {
                "id": str(index + 1),
                "text": item.task,
                "assignee": item.owner,
                "completed": False,
                "due_date": _export_due_date(item.due_date),
                "evidence": item.evidence.model_dump(),
            }
        )

    return {
        "version": EXPORT_VERSION,
        "exported_at": to_iso(exported_at or utc_now()),
        "meeting": {
            "id": artifact.meeting_id,
            "job_id": artifact.job_id,
            "title": artifact.title or "Meeting",
            "date": artifact.created_at,
            "mode": artifact.meeting_mode,
        },
        "outputs": {
            "tldr": result.summary.tldr or None,
            "bullets": list(result.summary.bullets),
            "transcript": (artifact.transcript_text or "").strip() or None,
        },
        "action_items": action_items,
    }


def _md(text: Any) -> str:
    return str(text or "").replace("\r\n", "\n")


def to_markdown(artifact: MeetingArtifact, exported_at: Optional[datetime] = None) -> str:
    """Render *artifact* as a Markdown document ending in a single newline."""
    exported = to_export_json(artifact, exported_at)
    meeting = exported["meeting"]
    outputs = exported["outputs"]

    date = f" ({_md(meeting['date'][:10])})" if meeting["date"] else ""
    lines = [
        f"# {_md(meeting['title'])}{date}",
        "",
        f"**Meeting ID:** {_md(meeting['id'] or '-')}",
        f"**Mode:** {_md(meeting['mode'] or '-')}",
        "",
    ]

    if outputs["tldr"]:
        lines += ["## TL;DR", _md(outputs["tldr"]), ""]

    if outputs["bullets"]:
        lines.append("## Summary")
        lines += [f"- {_md(b)}" for b in outputs["bullets"]]
        lines.append("")

    if exported["action_items"]:
        lines.append("## Action Items")
        for item in exported["action_items"]:
            box = "[x]" if item["completed"] else "[ ]"
            who = _md(item["assignee"]) if item["assignee"] else "Unassigned"
            due = f", due {item['due_date'][:10]}" if item["due_date"] else ""
            lines.append(f"- {box} ({who}{due}) {_md(item['text'])}")
        lines.append("")

    if outputs["transcript"]:
        lines += ["## Transcript", _md(outputs["transcript"]), ""]

    return "\n".join(lines).strip() + "\n"


def default_export_filenames(artifact: MeetingArtifact) -> Dict[str, str]:
    base = safe_filename_part(artifact.title)
    return {
        "json": f"{base}-meeting.json",
        "md": f"{base}-meeting.md",
    }
