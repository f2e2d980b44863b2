"""Configuration for TestRail adapter."""

from collections.abc import Mapping
from typing import Any

from pydantic import AnyHttpUrl, Field, SecretStr, field_validator

from outcome_reporter.adapters.base import BackendConfig
from outcome_reporter.models.outcome import OutcomeStatus

# TestRail system status IDs.
DEFAULT_STATUS_IDS: Mapping[OutcomeStatus, int] = {
    "passed": 1,
    "skipped": 2,  # blocked
    "unknown": 3,  # untested
    "failed": 5,
}


class TestRailConfig(BackendConfig):
    """Configuration for TestRail adapter.

    Authenticates with HTTP basic auth using the user's email and API key.
    ``project_key`` is the numeric project ID and ``existing_container_key``
    an existing run ID; without it a run is created on initialize.
    """

    __test__ = False

    server_url: AnyHttpUrl
    username: str
    credential: SecretStr
    project_key: str
    suite_id: int | None = None
    api_prefix: str = "index.php?/api/v2/"
    # Close runs created by the adapter when it is finalized
    close_run: bool = False
    status_ids: Mapping[OutcomeStatus, int] = Field(
        default_factory=lambda: dict(DEFAULT_STATUS_IDS)
    )

    @field_validator("status_ids", mode="after")
    @classmethod
    def _merge_status_ids(cls, value: Mapping[OutcomeStatus, int]) -> Any:
        return {**DEFAULT_STATUS_IDS, **value}
