"""Abstract base class for result reporting backends."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, cast

from pydantic import AnyHttpUrl, BaseModel, SecretStr, ValidationError

from outcome_reporter.adapters.transport import (
    AiohttpTransport,
    Transport,
    TransportError,
    TransportFactory,
)
from outcome_reporter.exceptions import (
    AdapterStateError,
    BackendResponseError,
    InvalidIdentifierError,
)
from outcome_reporter.models.outcome import Outcome
from outcome_reporter.models.result import AdapterState, ResolvedIdentifier
from outcome_reporter.resolver import IdentifierPattern, IdentifierResolver

log = logging.getLogger(__name__)

# Errors a delivery call may raise that are converted to a non-success.
DELIVERY_ERRORS: tuple[type[Exception], ...] = (
    TransportError,
    BackendResponseError,
    InvalidIdentifierError,
    ValidationError,
)


class BackendConfig(BaseModel):
    """Connection parameters shared by all backends.

    Subclasses redeclare the fields they require without a default.
    """

    server_url: AnyHttpUrl | None = None
    credential: SecretStr | None = None
    project_key: str | None = None
    existing_container_key: str | None = None
    new_container_name: str = "Automated test run"
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        """Server URL with a trailing slash, for relative request paths."""
        if not self.server_url:
            raise ValueError("server_url is not configured")
        return str(self.server_url).rstrip("/") + "/"


@dataclass(kw_only=True)
class ReportingAdapter[ConfigT: BackendConfig](ABC):
    """Delivers outcomes to one external system and owns its session.

    The adapter moves through ``initializing -> ready | not_ready ->
    finalized``. Only a ready adapter accepts reports.
    """

    backend_name: ClassVar[str]
    config_cls: ClassVar[type[BackendConfig]]

    transport_factory: TransportFactory = AiohttpTransport.open
    config: ConfigT | None = field(default=None, init=False)
    container_key: str | None = field(default=None, init=False)
    _transport: Transport | None = field(default=None, init=False, repr=False)
    _resolver: IdentifierResolver | None = field(default=None, init=False, repr=False)
    _state: AdapterState = field(default="initializing", init=False)

    @property
    def state(self) -> AdapterState:
        """Current lifecycle state."""
        return self._state

    @property
    def ready(self) -> bool:
        """Whether the adapter accepts reports."""
        return self._state == "ready"

    @property
    def settings(self) -> ConfigT:
        """Validated configuration; only available once initialized."""
        if self.config is None:
            raise AdapterStateError(f"{self.backend_name} adapter is not configured")
        return self.config

    @abstractmethod
    def identifier_pattern(self, config: ConfigT) -> IdentifierPattern:
        """Patterns that recognize this backend's identifiers."""

    @abstractmethod
    def auth_headers(self, config: ConfigT) -> Mapping[str, str]:
        """Headers that authenticate every request of the session."""

    @abstractmethod
    async def create_container(self, config: ConfigT) -> str:
        """Create the run/cycle/bucket results are filed under, return its key."""

    @abstractmethod
    async def deliver(self, outcome: Outcome, identifier: str) -> None:
        """Send one outcome, raising on any failure."""

    async def close_container(self) -> None:  # noqa: B027
        """Close out the container before the session is released."""

    async def initialize(self, config: Mapping[str, Any]) -> bool:
        """Validate configuration, open the session and set up the container.

        Returns:
            True when the adapter is ready to accept reports

        """
        if self._state != "initializing":
            raise AdapterStateError(
                f"{self.backend_name} adapter cannot be initialized in state "
                f"{self._state}"
            )

        try:
            parsed = cast(ConfigT, self.config_cls.model_validate(dict(config)))
            base_url = parsed.base_url
            self._transport = self.transport_factory(
                base_url, self.auth_headers(parsed), parsed.timeout
            )
        except (ValidationError, ValueError) as exc:
            log.error("Invalid %s configuration: %s", self.backend_name, exc)
            self._state = "not_ready"
            return False

        self.config = parsed
        self._resolver = IdentifierResolver(
            backend_name=self.backend_name,
            pattern=self.identifier_pattern(parsed),
        )

        try:
            self.container_key = (
                parsed.existing_container_key or await self.create_container(parsed)
            )
        except DELIVERY_ERRORS as exc:
            log.error("Failed to set up %s container: %s", self.backend_name, exc)
            await self._close_transport()
            self._state = "not_ready"
            return False

        log.info(
            "Connected to %s at %s (container=%s)",
            self.backend_name,
            base_url,
            self.container_key,
        )
        self._state = "ready"
        return True

    def resolve(self, outcome: Outcome) -> ResolvedIdentifier:
        """Resolve this backend's identifier for an outcome."""
        if self._resolver is None:
            raise AdapterStateError(f"{self.backend_name} adapter is not initialized")
        return self._resolver.resolve(outcome)

    async def report_one(self, outcome: Outcome) -> bool:
        """Report a single outcome.

        Returns:
            True only when the backend accepted the result

        """
        self._require_ready()

        identifier = self.resolve(outcome)
        if not identifier.found:
            log.debug(
                "No %s identifier for %s, skipping", self.backend_name, outcome.identity
            )
            return False

        try:
            await self.deliver(outcome, identifier.value)
        except DELIVERY_ERRORS as exc:
            log.warning(
                "Failed to report %s to %s: %s",
                outcome.identity,
                self.backend_name,
                exc,
            )
            return False

        log.debug(
            "Reported %s to %s as %s",
            outcome.identity,
            self.backend_name,
            identifier.value,
        )
        return True

    async def report_batch(self, outcomes: Sequence[Outcome]) -> Mapping[str, bool]:
        """Report several outcomes, returning success per outcome identity."""
        self._require_ready()
        return {
            outcome.identity: await self.report_one(outcome) for outcome in outcomes
        }

    async def finalize(self) -> bool:
        """Close out the container and release the session.

        Safe to call more than once; later calls are no-ops returning True.
        """
        if self._state == "finalized":
            return True

        success = True
        try:
            if self._state == "ready":
                await self.close_container()
        except DELIVERY_ERRORS as exc:
            log.warning("Failed to close %s container: %s", self.backend_name, exc)
            success = False
        finally:
            await self._close_transport()
            self._state = "finalized"
        return success

    def partition(
        self, outcomes: Sequence[Outcome]
    ) -> tuple[dict[str, bool], list[tuple[Outcome, str]]]:
        """Split a batch into resolved items and pre-filled non-successes.

        Returns:
            Results with every identity mapped to False, and the outcomes that
            resolved paired with their identifier

        """
        results = {outcome.identity: False for outcome in outcomes}
        resolved: list[tuple[Outcome, str]] = []
        for outcome in outcomes:
            identifier = self.resolve(outcome)
            if identifier.found:
                resolved.append((outcome, identifier.value))
            else:
                log.debug(
                    "No %s identifier for %s, skipping",
                    self.backend_name,
                    outcome.identity,
                )
        return results, resolved

    async def request(
        self,
        operation: str,
        method: str,
        path: str,
        body: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a request and return the body of a 2xx response.

        Raises:
            BackendResponseError: If the backend answers with a non-2xx status
            TransportError: If the request could not be completed

        """
        if self._transport is None:
            raise AdapterStateError(f"{self.backend_name} adapter has no session")
        response = await self._transport.send(method, path, body, params)
        if not response.ok:
            raise BackendResponseError(operation, response.status, response.body)
        return response.body

    def _require_ready(self) -> None:
        if self._state != "ready":
            raise AdapterStateError(
                f"{self.backend_name} adapter is {self._state}, not ready"
            )

    async def _close_transport(self) -> None:
        if self._transport is not None:
            transport, self._transport = self._transport, None
            await transport.close()
