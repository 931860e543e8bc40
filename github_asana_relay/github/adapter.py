"""GitHub client adapter for the githubkit library."""

from typing import Any, Self

import structlog
from githubkit import Response
from githubkit.versions.latest.models import DiffEntry, IssueComment, PullRequestReviewComment

from github_asana_relay.synchronize.models import Comment, FileChange
from github_asana_relay.utils.github import split_repository
from github_asana_relay.utils.retry import retry_on_rate_limit

from .abc import GitHubClientBase
from .client import GitHubClient, get_github_client

logger = structlog.get_logger(__name__)

PER_PAGE = 100


def _comment_from_api(comment: IssueComment | PullRequestReviewComment) -> Comment:
    """Normalize an issue or review comment into a Comment."""
    user = getattr(comment, "user", None)
    return Comment(
        author_login=getattr(user, "login", None) or "ghost",
        author_url=getattr(user, "html_url", None),
        body=comment.body or "",
        created_at=comment.created_at,
        url=comment.html_url,
    )


def _file_change_from_api(file_data: DiffEntry | dict[str, Any]) -> FileChange:
    """Normalize PR file data from an API object or a plain dict."""
    if isinstance(file_data, dict):
        get = file_data.get
    else:

        def get(key: str, default: Any = None) -> Any:
            return getattr(file_data, key, default)

    return FileChange(
        filename=get("filename", "") or "",
        status=get("status", "modified") or "modified",
        additions=int(get("additions", 0) or 0),
        deletions=int(get("deletions", 0) or 0),
        previous_filename=get("previous_filename"),
        blob_url=get("blob_url"),
    )


class GitHubKitAdapter(GitHubClientBase):
    """GitHub client adapter for the githubkit library.

    Unlike a per-repository client, one adapter serves every repository the
    relay receives events for, so each call names its repository.
    """

    def __init__(self, client: GitHubClient) -> None:
        """Initialize the GitHub client adapter with an already-initialized client."""
        self.client = client

    @classmethod
    def create(cls, github_api_url: str = "https://api.github.com", github_pat_token: str | None = None) -> Self:
        """Create a new GitHub client adapter."""
        logger.info("Creating client for GitHub instance", github_api_url=github_api_url, authenticated=bool(github_pat_token))
        return cls(get_github_client(github_api_url, github_pat_token))

    @retry_on_rate_limit()
    async def list_issue_comments(self, repository: str, number: int) -> list[Comment]:
        """List all conversation comments of an issue or pull request, handling pagination."""
        owner, repo_name = split_repository(repository)
        all_comments: list[IssueComment] = []
        page: int = 1
        while True:
            response: Response[list[IssueComment]] = await self.client.rest.issues.async_list_comments(
                owner=owner,
                repo=repo_name,
                issue_number=number,
                per_page=PER_PAGE,
                page=page,
            )
            comments: list[IssueComment] = response.parsed_data
            if not comments:
                break
            all_comments.extend(comments)
            if len(comments) < PER_PAGE:
                break
            page += 1
        logger.debug("Fetched issue comments", repository=repository, number=number, count=len(all_comments))
        return [_comment_from_api(comment) for comment in all_comments]

    @retry_on_rate_limit()
    async def list_review_comments(self, repository: str, number: int) -> list[Comment]:
        """List all review comments of a pull request, handling pagination."""
        owner, repo_name = split_repository(repository)
        all_comments: list[PullRequestReviewComment] = []
        page: int = 1
        while True:
            response: Response[list[PullRequestReviewComment]] = await self.client.rest.pulls.async_list_review_comments(
                owner=owner,
                repo=repo_name,
                pull_number=number,
                per_page=PER_PAGE,
                page=page,
            )
            comments: list[PullRequestReviewComment] = response.parsed_data
            if not comments:
                break
            all_comments.extend(comments)
            if len(comments) < PER_PAGE:
                break
            page += 1
        logger.debug("Fetched review comments", repository=repository, number=number, count=len(all_comments))
        return [_comment_from_api(comment) for comment in all_comments]

    @retry_on_rate_limit()
    async def list_pull_request_files(self, repository: str, number: int) -> list[FileChange]:
        """List all files changed by a pull request, handling pagination."""
        owner, repo_name = split_repository(repository)
        all_files: list[DiffEntry] = []
        page: int = 1
        while True:
            response: Response[list[DiffEntry]] = await self.client.rest.pulls.async_list_files(
                owner=owner,
                repo=repo_name,
                pull_number=number,
                per_page=PER_PAGE,
                page=page,
            )
            files: list[DiffEntry] = response.parsed_data
            if not files:
                break
            all_files.extend(files)
            if len(files) < PER_PAGE:
                break
            page += 1
        normalized = [_file_change_from_api(file_data) for file_data in all_files]
        logger.debug(
            "Fetched pull request files",
            repository=repository,
            number=number,
            file_count=len(normalized),
            total_additions=sum(f.additions for f in normalized),
            total_deletions=sum(f.deletions for f in normalized),
        )
        return normalized
