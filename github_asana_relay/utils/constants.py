"""Shared constants used across the application."""

# Coordinator Constants
# ---------------------

DEFAULT_MAX_ATTEMPTS = 3
"""Total attempts per delivery (1 initial + 2 retries)."""

DEFAULT_RETRY_DELAYS = (5.0, 10.0)
"""Seconds to wait before the second and third attempt."""

DEFAULT_ATTEMPT_TIMEOUT = 120.0
"""Upper bound in seconds for a single orchestrator attempt."""

DEFAULT_COORDINATOR_IDLE_TIMEOUT = 900.0
"""Seconds an unused coordinator stays in the registry before eviction."""

# Task Service Constants
# ----------------------

DEFAULT_ASANA_API_URL = "https://app.asana.com/api/1.0"
"""Base URL of the Asana REST API."""

ASANA_PAGE_LIMIT = 100
"""Maximum page size accepted by Asana list endpoints."""

ASANA_ENUM_COLORS = (
    "red",
    "orange",
    "yellow-orange",
    "yellow",
    "yellow-green",
    "green",
    "blue-green",
    "aqua",
    "blue",
    "indigo",
    "purple",
    "magenta",
    "hot-pink",
    "pink",
    "cool-gray",
)
"""Colors Asana accepts for enum options, in a fixed order for hashing."""

ENTITY_TYPE_ISSUE = "Issue"
"""Entity-type option name for GitHub issues."""

ENTITY_TYPE_PULL_REQUEST = "Pull Request"
"""Entity-type option name for GitHub pull requests."""

ATTACHMENT_ADDED_SUBTYPE = "attachment_added"
"""Story subtype Asana records whenever a file is attached to a task."""

# Rendering Constants
# -------------------

PRIMARY_TIMEZONE = "America/Los_Angeles"
"""Zone used for the date and 12-hour time of every header block."""

SECONDARY_TIMEZONE = "Europe/London"
"""Zone used for the 24-hour time shown in parentheses."""

NO_DESCRIPTION_PLACEHOLDER = "_No description provided_"
"""Markdown rendered in place of an empty issue or PR body."""

COMMENTS_UNAVAILABLE_NOTE = "\n\n_Error fetching comments from GitHub_\n"
"""Markdown appended when the comment thread could not be fetched."""

FILES_UNAVAILABLE_NOTE = "\n\n_Error fetching file changes from GitHub_\n"
"""Markdown appended when the PR file list could not be fetched."""

DEFAULT_IMAGE_SETTLE_DELAY = 1.0
"""Seconds to wait after uploads so Asana can compute image dimensions."""

DEFAULT_IMAGE_CONTENT_TYPE = "image/png"
"""Content type assumed for image URLs without a recognizable extension."""

IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}
"""File extension used for each supported image content type."""

ATTACHMENT_FILENAME_PREFIX = "gh-img-"
"""Prefix of hash-derived attachment filenames."""

ALLOWED_RICH_TEXT_TAGS = frozenset(
    {
        "body",
        "h1",
        "h2",
        "strong",
        "em",
        "u",
        "s",
        "code",
        "pre",
        "a",
        "ol",
        "ul",
        "li",
        "blockquote",
        "hr",
        "img",
    }
)
"""Tags the destination accepts inside rich task notes."""

ALLOWED_RICH_TEXT_ATTRIBUTES = {
    "a": frozenset({"href"}),
    "img": frozenset({"data-asana-gid"}),
}
"""Attributes kept per tag; every other attribute is dropped."""
