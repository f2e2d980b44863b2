"""Configuration for Zephyr Scale adapter."""

from collections.abc import Mapping
from typing import Any

from pydantic import AnyHttpUrl, Field, SecretStr, field_validator

from outcome_reporter.adapters.base import BackendConfig
from outcome_reporter.models.outcome import OutcomeStatus

DEFAULT_STATUS_NAMES: Mapping[OutcomeStatus, str] = {
    "passed": "Pass",
    "failed": "Fail",
    "skipped": "Blocked",
    "unknown": "Not Executed",
}


class ZephyrScaleConfig(BackendConfig):
    """Configuration for Zephyr Scale adapter.

    ``credential`` is an API access token, ``project_key`` the Jira project
    key (e.g. "PROJ") and ``existing_container_key`` an existing test cycle
    key; without it a cycle is created on initialize.
    """

    server_url: AnyHttpUrl = Field(
        default="https://api.zephyrscale.smartbear.com/v2/", validate_default=True
    )
    credential: SecretStr
    project_key: str = Field(..., pattern=r"^[A-Z][A-Z0-9_]*$")
    environment_name: str | None = None
    status_names: Mapping[OutcomeStatus, str] = Field(
        default_factory=lambda: dict(DEFAULT_STATUS_NAMES)
    )

    @field_validator("status_names", mode="after")
    @classmethod
    def _merge_status_names(cls, value: Mapping[OutcomeStatus, str]) -> Any:
        return {**DEFAULT_STATUS_NAMES, **value}
