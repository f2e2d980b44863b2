"""Pydantic models for Zephyr Scale API responses."""

from outcome_reporter.models.base import ApiModel


class CreatedResource(ApiModel):
    """Response of a create call (test cycle, test execution)."""

    id: int
    key: str | None = None
