"""Models for identifier resolution and delivery results."""

from dataclasses import dataclass
from typing import Literal

type IdentifierSource = Literal["attribute", "tag", "identity"]

type AdapterState = Literal["initializing", "ready", "not_ready", "finalized"]


@dataclass(frozen=True, kw_only=True)
class ResolvedIdentifier:
    """Backend identifier found for one outcome, if any."""

    found: bool
    value: str = ""
    source: IdentifierSource | None = None


NOT_FOUND = ResolvedIdentifier(found=False)


@dataclass(frozen=True, kw_only=True)
class DeliveryResult:
    """Outcome of one report attempt against one backend."""

    backend_name: str
    identity: str
    success: bool
    error_detail: str | None = None


@dataclass(frozen=True, kw_only=True)
class BackendSummary:
    """Per-backend delivery counts for the run summary."""

    backend_name: str
    state: AdapterState
    ready: bool
    delivered: int
    total: int

    @property
    def failed(self) -> int:
        """Number of outcomes that were not delivered."""
        return self.total - self.delivered
