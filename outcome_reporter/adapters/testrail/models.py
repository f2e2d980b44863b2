"""Pydantic models for TestRail API responses."""

from outcome_reporter.models.base import ApiModel


class Run(ApiModel):
    """A test run from TestRail API."""

    id: int
    name: str
    url: str | None = None
