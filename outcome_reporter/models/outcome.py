"""Normalized representation of a single test's result."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import Field, field_validator

from outcome_reporter.models.base import Model

type OutcomeStatus = Literal["passed", "failed", "skipped", "unknown"]

type AttributeValue = str | int | float | bool

OUTCOME_STATUSES: frozenset[str] = frozenset(get_args(OutcomeStatus.__value__))


def coerce_status(raw: Any) -> OutcomeStatus:
    """Map a raw runner status onto the outcome vocabulary.

    Matching is case-insensitive; anything unrecognized becomes "unknown".
    """
    if isinstance(raw, str) and (value := raw.strip().lower()) in OUTCOME_STATUSES:
        return value  # type: ignore[return-value]
    return "unknown"


class Outcome(Model):
    """Result of one test execution, immutable once built."""

    identity: str = Field(..., min_length=1, description="Unique key of the test")
    display_name: str = Field(..., description="Human-readable short name")
    status: OutcomeStatus = Field(..., description="Normalized status")
    duration: float = Field(default=0.0, ge=0, description="Elapsed seconds")
    message: str | None = Field(default=None, description="Short failure message")
    detail: str | None = Field(default=None, description="Long diagnostic text")
    tags: Sequence[str] = Field(default=(), description="Markers, in order")
    attributes: Mapping[str, AttributeValue] = Field(
        default_factory=dict, description="Free-form metadata"
    )
    started_at: datetime | None = Field(default=None, description="Start time")

    @field_validator("identity")
    @classmethod
    def _require_identity(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("identity must not be blank")
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> OutcomeStatus:
        return coerce_status(value)

    @property
    def comment(self) -> str | None:
        """Message and detail joined by a blank line."""
        parts = [part for part in (self.message, self.detail) if part]
        if not parts:
            return None
        return "\n\n".join(parts)
