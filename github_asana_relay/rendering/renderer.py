"""Renders a sync event into rich text for the task description."""

import structlog

from github_asana_relay.github.abc import GitHubClientBase
from github_asana_relay.rendering.attachments import AttachmentPipeline
from github_asana_relay.rendering.markdown import apply_rich_text_dialect, markdown_to_html, parse_html, serialize_rich_text
from github_asana_relay.rendering.narrative import assemble_narrative
from github_asana_relay.rendering.tables import flatten_tables
from github_asana_relay.synchronize.models import Comment, EventAction, FileChange, RenderedContent, SyncEvent

logger = structlog.get_logger(__name__)


class ContentRenderer:
    """Converts an event and its conversation history into dialect-safe HTML.

    Without a GitHub client no history is fetched, and without an attachment
    pipeline images degrade to links.
    """

    def __init__(self, github: GitHubClientBase | None = None, attachments: AttachmentPipeline | None = None) -> None:
        self.github = github
        self.attachments = attachments

    async def render(self, event: SyncEvent, task_id: str) -> RenderedContent:
        """Render the full narrative for an event targeting the given task."""
        comments, comments_unavailable = await self._fetch_comments(event)
        file_changes, files_unavailable = await self._fetch_file_changes(event)
        raw_markdown = assemble_narrative(
            event,
            comments=comments,
            file_changes=file_changes,
            comments_unavailable=comments_unavailable,
            files_unavailable=files_unavailable,
        )
        html = await self.render_markdown(raw_markdown, task_id)
        return RenderedContent(html=html, raw_markdown=raw_markdown)

    async def render_markdown(self, markdown: str, task_id: str | None = None) -> str:
        """Convert markdown to the rich text dialect, resolving images for the task."""
        soup = parse_html(markdown_to_html(markdown))
        flatten_tables(soup)
        if self.attachments is not None and task_id:
            await self.attachments.process(soup, task_id)
        apply_rich_text_dialect(soup)
        return serialize_rich_text(soup)

    async def _fetch_comments(self, event: SyncEvent) -> tuple[list[Comment], bool]:
        """Fetch the comment thread; a fresh open never has one worth fetching."""
        if self.github is None or event.action == EventAction.OPENED:
            return [], False
        try:
            comments = await self.github.list_issue_comments(event.repository_full_name, event.number)
            if event.is_pull_request:
                comments += await self.github.list_review_comments(event.repository_full_name, event.number)
        except Exception as exc:
            logger.warning("Error fetching comments from GitHub", url=event.canonical_url, error=str(exc), error_type=type(exc).__name__)
            return [], True
        return sorted(comments, key=lambda comment: comment.created_at), False

    async def _fetch_file_changes(self, event: SyncEvent) -> tuple[list[FileChange], bool]:
        if self.github is None or not event.is_pull_request:
            return [], False
        try:
            return await self.github.list_pull_request_files(event.repository_full_name, event.number), False
        except Exception as exc:
            logger.warning("Error fetching file changes from GitHub", url=event.canonical_url, error=str(exc), error_type=type(exc).__name__)
            return [], True
