"""Contains unit tests for the config module."""

from pathlib import Path

import pytest

from github_asana_relay.config import FieldConfig, RelayConfig, ServiceCredentials
from github_asana_relay.configuration.env import Settings
from github_asana_relay.configuration.exceptions import RequiredConfigurationElementError


def make_settings(**overrides: object) -> Settings:
    """Build settings without reading the environment or a .env file."""
    return Settings.model_construct(**overrides)


@pytest.mark.parametrize(
    "project_id",
    [
        pytest.param("", id="empty"),
        pytest.param("   ", id="whitespace"),
    ],
)
def test_relay_config_requires_project_id(project_id: str) -> None:
    """Test that a missing project id fails immediately."""
    with pytest.raises(RequiredConfigurationElementError) as exc_info:
        RelayConfig(project_id=project_id)
    assert exc_info.value.env_name == "ASANA_PROJECT_ID"


def test_relay_config_rejects_zero_attempts() -> None:
    """Test that at least one attempt is required."""
    with pytest.raises(ValueError):
        RelayConfig(project_id="123", max_attempts=0)


def test_field_config_normalizes_blank_ids() -> None:
    """Test that blank or whitespace field ids count as not configured."""
    fields = FieldConfig(repository="  ", creator="", source_url=" 555 ", entity_type=None, labels="777")
    assert fields.repository is None
    assert fields.creator is None
    assert fields.source_url == "555"
    assert fields.entity_type is None
    assert fields.labels == "777"


@pytest.mark.parametrize(
    "failed_attempt,expected",
    [
        pytest.param(1, 5.0, id="after first attempt"),
        pytest.param(2, 10.0, id="after second attempt"),
        pytest.param(7, 10.0, id="clamped to last delay"),
    ],
)
def test_retry_delay(failed_attempt: int, expected: float) -> None:
    """Test the default backoff between attempts."""
    assert RelayConfig(project_id="123").retry_delay(failed_attempt) == expected


def test_retry_delay_without_delays() -> None:
    """Test that an empty delay schedule retries immediately."""
    assert RelayConfig(project_id="123", retry_delays=()).retry_delay(1) == 0.0


def test_relay_config_from_settings() -> None:
    """Test building the relay configuration from settings."""
    settings = make_settings(
        ASANA_PROJECT_ID="1200",
        ASANA_WORKSPACE_ID=" ",
        REPOSITORY_FIELD_ID="1",
        GITHUB_URL_FIELD_ID="3",
        LABELS_FIELD_ID="",
    )
    config = RelayConfig.from_settings(settings)
    assert config.project_id == "1200"
    assert config.workspace_id is None
    assert config.fields == FieldConfig(repository="1", source_url="3")
    assert config.max_attempts == 3
    assert config.retry_delays == (5.0, 10.0)


def test_relay_config_from_settings_without_project() -> None:
    """Test that settings without a project id are rejected."""
    with pytest.raises(RequiredConfigurationElementError):
        RelayConfig.from_settings(make_settings(ASANA_PROJECT_ID=None))


def test_service_credentials_require_asana_token() -> None:
    """Test that a missing Asana token is rejected."""
    with pytest.raises(RequiredConfigurationElementError) as exc_info:
        ServiceCredentials.from_settings(make_settings(ASANA_PAT=None))
    assert exc_info.value.env_name == "ASANA_PAT"


def test_service_credentials_from_settings() -> None:
    """Test extracting credentials and endpoints from settings."""
    credentials = ServiceCredentials.from_settings(make_settings(ASANA_PAT="pat", GITHUB_TOKEN=None, STATE_DB_PATH=Path("/tmp/state.db")))
    assert credentials.asana_pat == "pat"
    assert credentials.github_token is None
    assert credentials.asana_api_url == "https://app.asana.com/api/1.0"
    assert credentials.state_db_path == Path("/tmp/state.db")
