"""Base ABC for GitHub clients."""

from abc import ABC, abstractmethod

from github_asana_relay.synchronize.models import Comment, FileChange


class GitHubClientBase(ABC):
    """Base ABC for the read-only GitHub calls the relay makes."""

    # Conversation history
    @abstractmethod
    async def list_issue_comments(self, repository: str, number: int) -> list[Comment]:
        """List the conversation comments of an issue or pull request."""
        pass

    @abstractmethod
    async def list_review_comments(self, repository: str, number: int) -> list[Comment]:
        """List the review comments of a pull request."""
        pass

    # Pull request files
    @abstractmethod
    async def list_pull_request_files(self, repository: str, number: int) -> list[FileChange]:
        """List the files changed by a pull request."""
        pass
