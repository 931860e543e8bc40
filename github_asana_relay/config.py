"""Configuration objects consumed by the synchronization core."""

from dataclasses import dataclass, field
from pathlib import Path

from github_asana_relay.configuration.env import Settings
from github_asana_relay.configuration.exceptions import RequiredConfigurationElementError
from github_asana_relay.utils.constants import (
    DEFAULT_ATTEMPT_TIMEOUT,
    DEFAULT_COORDINATOR_IDLE_TIMEOUT,
    DEFAULT_IMAGE_SETTLE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAYS,
)


def _normalize_field_id(value: str | None) -> str | None:
    """Treat blank field ids as not configured."""
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class FieldConfig:
    """Optional Asana custom field ids; any of them may be absent."""

    repository: str | None = None
    creator: str | None = None
    source_url: str | None = None
    entity_type: str | None = None
    labels: str | None = None

    def __post_init__(self) -> None:
        for name in ("repository", "creator", "source_url", "entity_type", "labels"):
            object.__setattr__(self, name, _normalize_field_id(getattr(self, name)))


@dataclass(frozen=True)
class RelayConfig:
    """Configuration class for the GitHub to Asana relay."""

    project_id: str
    workspace_id: str | None = None
    fields: FieldConfig = field(default_factory=FieldConfig)
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS
    attempt_timeout: float | None = DEFAULT_ATTEMPT_TIMEOUT
    image_settle_delay: float = DEFAULT_IMAGE_SETTLE_DELAY
    coordinator_idle_timeout: float = DEFAULT_COORDINATOR_IDLE_TIMEOUT

    def __post_init__(self) -> None:
        if not self.project_id or not self.project_id.strip():
            raise RequiredConfigurationElementError(name="Asana project ID", cli_name="asana_project_id", env_name="ASANA_PROJECT_ID")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def retry_delay(self, failed_attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        if not self.retry_delays:
            return 0.0
        return self.retry_delays[min(failed_attempt, len(self.retry_delays)) - 1]

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayConfig":
        """Build the relay configuration from environment settings."""
        return cls(
            project_id=settings.ASANA_PROJECT_ID or "",
            workspace_id=_normalize_field_id(settings.ASANA_WORKSPACE_ID),
            fields=FieldConfig(
                repository=settings.REPOSITORY_FIELD_ID,
                creator=settings.CREATOR_FIELD_ID,
                source_url=settings.GITHUB_URL_FIELD_ID,
                entity_type=settings.ISSUE_TYPE_FIELD_ID,
                labels=settings.LABELS_FIELD_ID,
            ),
        )


@dataclass(frozen=True)
class ServiceCredentials:
    """Credentials and endpoints for the two remote services."""

    asana_pat: str
    asana_api_url: str
    github_token: str | None
    github_api_url: str
    state_db_path: Path

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceCredentials":
        """Extract credentials from settings, failing fast on a missing Asana token."""
        if not settings.ASANA_PAT:
            raise RequiredConfigurationElementError(name="Asana personal access token", cli_name="asana_pat", env_name="ASANA_PAT")
        return cls(
            asana_pat=settings.ASANA_PAT,
            asana_api_url=settings.ASANA_API_URL,
            github_token=settings.GITHUB_TOKEN,
            github_api_url=settings.GITHUB_API_URL,
            state_db_path=settings.STATE_DB_PATH,
        )
