"""Base classes for reporting data models."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable value passed between reporting components.

    Unknown fields are rejected.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")


class ApiModel(BaseModel):
    """Backend API response; fields adapters do not read are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")
