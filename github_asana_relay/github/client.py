"""Sets up the authenticated githubkit client."""

from typing import TypeAlias

from githubkit import GitHub
from githubkit.auth import TokenAuthStrategy, UnauthAuthStrategy

GitHubClient: TypeAlias = GitHub[TokenAuthStrategy] | GitHub[UnauthAuthStrategy]


def get_github_client(github_api_url: str, github_pat_token: str | None = None) -> GitHubClient:
    """Returns a githubkit client, authenticated when a token is configured.

    Public repositories can be read anonymously, so a missing token only limits
    the rate budget. HTTP caching is disabled to always get fresh data.
    """
    if github_pat_token:
        return GitHub(auth=TokenAuthStrategy(github_pat_token), base_url=github_api_url, http_cache=False)
    return GitHub(auth=UnauthAuthStrategy(), base_url=github_api_url, http_cache=False)
