"""Assembles the markdown narrative mirrored into a task description.

The narrative is a header block (author, creation time in two zones, source
link), the entity body, a file-change summary for pull requests and, for every
event except a fresh open, the full comment thread in chronological order.
"""

from datetime import datetime, timezone
from typing import Sequence
from zoneinfo import ZoneInfo

from github_asana_relay.synchronize.models import Comment, FileChange, SyncEvent
from github_asana_relay.utils.constants import (
    COMMENTS_UNAVAILABLE_NOTE,
    FILES_UNAVAILABLE_NOTE,
    NO_DESCRIPTION_PLACEHOLDER,
    PRIMARY_TIMEZONE,
    SECONDARY_TIMEZONE,
)

SECTION_RULE = "\n\n<hr><h2>{title}</h2>\n\n"


def format_timestamp(moment: datetime) -> str:
    """Format a moment as ``M/D/YYYY at HH:MM AM PST (HH:MM GMT)``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    primary = moment.astimezone(ZoneInfo(PRIMARY_TIMEZONE))
    secondary = moment.astimezone(ZoneInfo(SECONDARY_TIMEZONE))
    return (
        f"{primary.month}/{primary.day}/{primary.year} at {primary.strftime('%I:%M %p')} {primary.strftime('%Z')} "
        f"({secondary.strftime('%H:%M')} {secondary.strftime('%Z')})"
    )


def profile_url(login: str, url: str | None = None) -> str:
    return url or f"https://github.com/{login}"


def build_header(event: SyncEvent) -> str:
    """Build the header block that opens every task description."""
    author = f"[@{event.author_handle}]({profile_url(event.author_handle, event.author_url)})"
    return (
        f"**Created by:** {author} • {format_timestamp(event.created_at)}\n"
        f"**GitHub:** [{event.canonical_url}]({event.canonical_url})\n\n---\n\n"
    )


def _file_link(filename: str, blob_url: str | None) -> str:
    return f"[{filename}]({blob_url})" if blob_url else f"`{filename}`"


def format_file_changes(files: Sequence[FileChange]) -> str:
    """Summarize PR file changes grouped by added, modified, renamed and deleted."""
    if not files:
        return ""

    text = SECTION_RULE.format(title=f"Files Changed ({len(files)})")

    added = [f for f in files if f.status == "added"]
    modified = [f for f in files if f.status == "modified"]
    renamed = [f for f in files if f.status == "renamed"]
    deleted = [f for f in files if f.status == "removed"]

    if added:
        text += f"**Added ({len(added)}):**\n"
        text += "".join(f"- {_file_link(f.filename, f.blob_url)} (+{f.additions} lines)\n" for f in added)
        text += "\n"
    if modified:
        text += f"**Modified ({len(modified)}):**\n"
        text += "".join(f"- {_file_link(f.filename, f.blob_url)} (+{f.additions}/-{f.deletions} lines)\n" for f in modified)
        text += "\n"
    if renamed:
        text += f"**Renamed ({len(renamed)}):**\n"
        for f in renamed:
            old_link = _file_link(f.previous_filename or f.filename, f.blob_url)
            text += f"- {old_link} → {_file_link(f.filename, f.blob_url)}\n"
        text += "\n"
    if deleted:
        text += f"**Deleted ({len(deleted)}):**\n"
        text += "".join(f"- {_file_link(f.filename, f.blob_url)} (-{f.deletions} lines)\n" for f in deleted)
        text += "\n"

    total_additions = sum(f.additions for f in files)
    total_deletions = sum(f.deletions for f in files)
    text += f"**Summary:** +{total_additions}/-{total_deletions} lines across {len(files)} files\n"
    return text


def format_comments(comments: Sequence[Comment]) -> str:
    """Render the comment thread, oldest first, each with its own header line."""
    if not comments:
        return ""
    text = SECTION_RULE.format(title="Comments")
    for comment in sorted(comments, key=lambda c: c.created_at):
        link = comment.url or profile_url(comment.author_login, comment.author_url)
        text += f"**[@{comment.author_login}]({link})** • {format_timestamp(comment.created_at)}\n"
        text += f"{comment.body}\n\n"
    return text


def assemble_narrative(
    event: SyncEvent,
    comments: Sequence[Comment] = (),
    file_changes: Sequence[FileChange] = (),
    comments_unavailable: bool = False,
    files_unavailable: bool = False,
) -> str:
    """Assemble the full markdown narrative for an event."""
    text = build_header(event)
    text += event.body_markdown.strip() or NO_DESCRIPTION_PLACEHOLDER
    if event.is_pull_request:
        text += FILES_UNAVAILABLE_NOTE if files_unavailable else format_file_changes(file_changes)
    text += COMMENTS_UNAVAILABLE_NOTE if comments_unavailable else format_comments(comments)
    return text
