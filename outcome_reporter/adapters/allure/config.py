"""Configuration for Allure report adapter."""

from collections.abc import Mapping
from typing import Any

from pydantic import AnyHttpUrl, Field, SecretStr, field_validator

from outcome_reporter.adapters.base import BackendConfig
from outcome_reporter.models.outcome import OutcomeStatus

DEFAULT_STATUS_NAMES: Mapping[OutcomeStatus, str] = {
    "passed": "passed",
    "failed": "failed",
    "skipped": "skipped",
    "unknown": "unknown",
}


class AllureConfig(BackendConfig):
    """Configuration for the Allure docker service.

    ``server_url`` includes the service prefix, e.g.
    ``http://allure:5050/allure-docker-service``. ``existing_container_key``
    is the project ID results are sent to; without it the project named by
    ``new_container_name`` is reused or created.
    """

    server_url: AnyHttpUrl
    credential: SecretStr | None = None
    new_container_name: str = "default"
    # Ask the service to build the report when the adapter is finalized
    generate_report: bool = True
    status_names: Mapping[OutcomeStatus, str] = Field(
        default_factory=lambda: dict(DEFAULT_STATUS_NAMES)
    )

    @field_validator("status_names", mode="after")
    @classmethod
    def _merge_status_names(cls, value: Mapping[OutcomeStatus, str]) -> Any:
        return {**DEFAULT_STATUS_NAMES, **value}
