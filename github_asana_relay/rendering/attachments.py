"""Image attachment pipeline.

Images in a rendered description are uploaded to the task as file attachments
and referenced inline by attachment id. Attachments are named after a hash of
(source URL, content type, alt text), so re-rendering the same content for the
same task reuses the existing attachment instead of uploading it again.
"""

import asyncio
import mimetypes
from urllib.parse import urlparse

import httpx
import structlog
from bs4 import BeautifulSoup, Tag

from github_asana_relay.rendering.markdown import degrade_image
from github_asana_relay.synchronize.models import AttachmentRecord
from github_asana_relay.tasks.abc import TaskServiceBase
from github_asana_relay.tasks.exceptions import TaskServiceError
from github_asana_relay.utils.constants import (
    ATTACHMENT_ADDED_SUBTYPE,
    ATTACHMENT_FILENAME_PREFIX,
    DEFAULT_IMAGE_CONTENT_TYPE,
    DEFAULT_IMAGE_SETTLE_DELAY,
    IMAGE_EXTENSIONS,
)
from github_asana_relay.utils.hashing import rolling_hash_32

logger = structlog.get_logger(__name__)


def infer_content_type(url: str) -> str:
    """Guess an image content type from the URL path, defaulting to PNG."""
    guessed, _ = mimetypes.guess_type(urlparse(url).path)
    if guessed in IMAGE_EXTENSIONS:
        return guessed
    return DEFAULT_IMAGE_CONTENT_TYPE


def attachment_content_hash(url: str, content_type: str, alt: str) -> str:
    """Eight hex digits identifying an image by URL, content type and alt text."""
    return f"{rolling_hash_32(f'{url}|{content_type}|{alt}') & 0xFFFFFFFF:08x}"


def attachment_filename(content_hash: str, content_type: str) -> str:
    return f"{ATTACHMENT_FILENAME_PREFIX}{content_hash}{IMAGE_EXTENSIONS.get(content_type, '.png')}"


def is_remote_image(src: str | None) -> bool:
    return bool(src) and src.lower().startswith(("http://", "https://"))


class AttachmentPipeline:
    """Resolves images in a rendered tree to task attachments."""

    def __init__(self, task_service: TaskServiceBase, http_client: httpx.AsyncClient, settle_delay: float = DEFAULT_IMAGE_SETTLE_DELAY) -> None:
        self.task_service = task_service
        self.http_client = http_client
        self.settle_delay = settle_delay

    async def process(self, soup: BeautifulSoup, task_id: str) -> list[AttachmentRecord]:
        """Replace remote images in the tree with attachment references.

        Any single image that cannot be downloaded or uploaded is replaced by a
        text link instead; the other images are unaffected. Images inside a
        link, such as badges, are left for the dialect pass to reduce to text.
        """
        images = [image for image in soup.find_all("img") if is_remote_image(image.get("src")) and image.find_parent("a") is None]
        if not images:
            return []

        existing = await self._existing_attachments(task_id)
        records: list[AttachmentRecord] = []
        for image in images:
            src = image["src"]
            alt = image.get("alt") or ""
            try:
                record = await self._resolve_image(task_id, src, alt, existing)
            except (httpx.HTTPError, httpx.InvalidURL, TaskServiceError, ValueError) as exc:
                logger.warning("Failed to attach image, falling back to a link", task_id=task_id, src=src, error=str(exc), error_type=type(exc).__name__)
                degrade_image(soup, image)
                continue
            existing[record.filename] = record.remote_attachment_id
            records.append(record)
            image.replace_with(self._attachment_reference(soup, record))

        created = [record.filename for record in records if record.created_in_this_pass]
        if created:
            # Asana computes image dimensions asynchronously after upload.
            await asyncio.sleep(self.settle_delay)
            await self._remove_upload_activity(task_id, created)
        logger.info("Processed images", task_id=task_id, images=len(images), uploaded=len(created), reused=len(records) - len(created))
        return records

    @staticmethod
    def _attachment_reference(soup: BeautifulSoup, record: AttachmentRecord) -> Tag:
        reference = soup.new_tag("img")
        reference["data-asana-gid"] = record.remote_attachment_id
        return reference

    async def _existing_attachments(self, task_id: str) -> dict[str, str]:
        """Map attachment names on the task to their ids."""
        try:
            attachments = await self.task_service.list_attachments(task_id)
        except TaskServiceError as exc:
            logger.warning("Could not list existing attachments, uploads will not be deduplicated", task_id=task_id, error=str(exc))
            return {}
        return {attachment["name"]: attachment["gid"] for attachment in attachments if attachment.get("name") and attachment.get("gid")}

    async def _resolve_image(self, task_id: str, src: str, alt: str, existing: dict[str, str]) -> AttachmentRecord:
        content_type = infer_content_type(src)
        content_hash = attachment_content_hash(src, content_type, alt)
        filename = attachment_filename(content_hash, content_type)

        if filename in existing:
            logger.debug("Reusing existing attachment", task_id=task_id, src=src, filename=filename, attachment_id=existing[filename])
            return AttachmentRecord(content_hash=content_hash, filename=filename, remote_attachment_id=existing[filename])

        response = await self.http_client.get(src, follow_redirects=True)
        response.raise_for_status()
        upload_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not upload_type.startswith("image/"):
            upload_type = content_type

        attachment = await self.task_service.create_attachment(task_id, response.content, filename, upload_type)
        logger.debug("Uploaded attachment", task_id=task_id, src=src, filename=filename, attachment_id=attachment["gid"], size=len(response.content))
        return AttachmentRecord(content_hash=content_hash, filename=filename, remote_attachment_id=attachment["gid"], created_in_this_pass=True)

    async def _remove_upload_activity(self, task_id: str, filenames: list[str]) -> None:
        """Delete the "attachment added" activity entries for uploads made in this pass."""
        try:
            stories = await self.task_service.list_activity(task_id)
        except TaskServiceError as exc:
            logger.warning("Could not list task activity to remove upload entries", task_id=task_id, error=str(exc))
            return

        for story in stories:
            if story.get("resource_subtype") != ATTACHMENT_ADDED_SUBTYPE:
                continue
            text = story.get("text") or ""
            if not any(filename in text for filename in filenames):
                continue
            try:
                await self.task_service.delete_activity(story["gid"])
            except TaskServiceError as exc:
                logger.warning("Could not delete upload activity entry", task_id=task_id, story_id=story.get("gid"), error=str(exc))
