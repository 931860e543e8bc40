"""Contains utility functions for GitHub interactions."""


def split_repository(repository: str | None) -> tuple[str, str]:
    """Splits an 'owner/repo' full name into owner and repository."""
    if repository is None:
        raise ValueError("A repository full name is required.")
    repository = repository.strip("/")
    parts = repository.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError("Repository must be in the format 'owner/repo' with no leading/trailing slashes or extra parts.")
    owner, name = parts
    return owner, name
