"""Reporting coordinator fanning outcomes out to backend adapters."""

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Collection, Mapping, Sequence
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from outcome_reporter.adapters.base import ReportingAdapter
from outcome_reporter.adapters.registry import AdapterRegistry
from outcome_reporter.exceptions import CoordinatorClosedError
from outcome_reporter.models.outcome import Outcome
from outcome_reporter.models.result import AdapterState, BackendSummary, DeliveryResult

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

type AdapterCall[T] = Callable[[ReportingAdapter[Any]], Awaitable[T]]


@dataclass(kw_only=True)
class _Slot:
    """A registered adapter and its lifecycle state as seen by the coordinator."""

    adapter: ReportingAdapter[Any]
    state: AdapterState
    ready: bool
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def describe_error(error: BaseException, timeout: float) -> str:
    """Short description of a failed adapter call for the delivery log."""
    if isinstance(error, asyncio.CancelledError):
        return "cancelled"
    if isinstance(error, TimeoutError):
        return f"timed out after {timeout:g}s"
    return f"{type(error).__name__}: {error}"


@dataclass(kw_only=True)
class ReportingCoordinator:
    """Owns the active adapters and isolates them from each other.

    Every adapter call runs in its own failure boundary with its own timeout:
    an adapter that raises, hangs or is cancelled yields a non-success for its
    items while the other adapters proceed. Calls to one adapter are
    serialized so results reach each backend in the order they were reported.

    Use as an async context manager to guarantee ``finalize_all`` runs when
    the run ends or is aborted.
    """

    registry: AdapterRegistry = field(default_factory=AdapterRegistry)
    timeout: float = DEFAULT_TIMEOUT
    _slots: dict[str, _Slot] = field(default_factory=dict, init=False)
    _deliveries: list[DeliveryResult] = field(default_factory=list, init=False)
    _closed: bool = field(default=False, init=False)

    async def __aenter__(self) -> "ReportingCoordinator":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if not self._closed:
            await self.finalize_all()

    @property
    def closed(self) -> bool:
        """Whether finalize_all has run."""
        return self._closed

    @property
    def names(self) -> Sequence[str]:
        """Registered backend names, in registration order."""
        return list(self._slots)

    @property
    def deliveries(self) -> Sequence[DeliveryResult]:
        """Every delivery attempt recorded so far."""
        return tuple(self._deliveries)

    def state(self, name: str) -> AdapterState | None:
        """Lifecycle state of a registered backend, None when unregistered."""
        slot = self._slots.get(name)
        return slot.state if slot else None

    def add_adapter(self, name: str, adapter: ReportingAdapter[Any]) -> None:
        """Register an initialized adapter.

        Adapters that did not initialize successfully are kept as not ready
        and never receive outcomes.

        Raises:
            ValueError: If the name is taken or the adapter was finalized

        """
        self._check_open()
        if name in self._slots:
            raise ValueError(f"Adapter '{name}' is already registered")
        if adapter.state == "finalized":
            raise ValueError(f"Adapter '{name}' was finalized and cannot be reused")

        state: AdapterState = "ready" if adapter.ready else "not_ready"
        self._slots[name] = _Slot(adapter=adapter, state=state, ready=adapter.ready)
        log.info("Registered adapter %s (%s)", name, state)

    async def create_and_add_adapter(
        self, name: str, config: Mapping[str, Any]
    ) -> ReportingAdapter[Any]:
        """Create a fresh adapter through the registry and register it."""
        self._check_open()
        if name in self._slots:
            raise ValueError(f"Adapter '{name}' is already registered")
        adapter = await self.registry.create(name, config)
        self.add_adapter(name, adapter)
        return adapter

    async def remove_adapter(self, name: str) -> bool:
        """Finalize and drop an adapter.

        Returns:
            Whether an adapter was registered under the name

        """
        slot = self._slots.pop(name, None)
        if slot is None:
            return False
        if slot.state != "finalized":
            await self._finalize([(name, slot)])
        return True

    async def report_result(
        self, outcome: Outcome, subset: Collection[str] | None = None
    ) -> Mapping[str, bool]:
        """Report one outcome to every ready adapter in the subset.

        Returns:
            Success per requested backend; backends that are not registered
            or not ready map to False without being contacted

        """
        self._check_open()
        targets = self._targets(subset)
        results = dict.fromkeys(targets, False)
        active = self._active(targets, [outcome])

        responses = await asyncio.gather(
            *(
                self._call(slot, lambda adapter: adapter.report_one(outcome))
                for _, slot in active
            ),
            return_exceptions=True,
        )

        for (name, _), response in zip(active, responses, strict=True):
            if isinstance(response, BaseException):
                detail = describe_error(response, self.timeout)
                log.warning(
                    "Adapter %s failed to report %s: %s",
                    name,
                    outcome.identity,
                    detail,
                    exc_info=response if isinstance(response, Exception) else None,
                )
                self._record(name, outcome.identity, False, detail)
            else:
                results[name] = bool(response)
                self._record(name, outcome.identity, results[name])

        return results

    async def report_results(
        self, outcomes: Sequence[Outcome], subset: Collection[str] | None = None
    ) -> Mapping[str, Mapping[str, bool]]:
        """Report a batch of outcomes to every ready adapter in the subset.

        Returns:
            Success per backend and outcome identity

        Raises:
            ValueError: If two outcomes share an identity

        """
        self._check_open()
        identities = [outcome.identity for outcome in outcomes]
        duplicates = sorted(i for i, n in Counter(identities).items() if n > 1)
        if duplicates:
            raise ValueError(f"Duplicate outcome identities in batch: {duplicates}")

        targets = self._targets(subset)
        results = {name: dict.fromkeys(identities, False) for name in targets}
        if not outcomes:
            return results
        active = self._active(targets, outcomes)

        responses = await asyncio.gather(
            *(
                self._call(slot, lambda adapter: adapter.report_batch(outcomes))
                for _, slot in active
            ),
            return_exceptions=True,
        )

        for (name, _), response in zip(active, responses, strict=True):
            if isinstance(response, BaseException):
                detail = describe_error(response, self.timeout)
                log.warning(
                    "Adapter %s failed to report batch of %d: %s",
                    name,
                    len(outcomes),
                    detail,
                    exc_info=response if isinstance(response, Exception) else None,
                )
                for identity in identities:
                    self._record(name, identity, False, detail)
                continue

            for identity in identities:
                success = bool(response.get(identity, False))
                results[name][identity] = success
                self._record(name, identity, success)

        return results

    async def finalize_all(self) -> Mapping[str, bool]:
        """Finalize every adapter, attempting all even when some fail.

        Calling it again is a no-op that reports True for each adapter.
        """
        results = {
            name: True
            for name, slot in self._slots.items()
            if slot.state == "finalized"
        }
        pending = [
            (name, slot)
            for name, slot in self._slots.items()
            if slot.state != "finalized"
        ]
        results.update(await self._finalize(pending))
        self._closed = True
        return results

    def summary(self) -> Mapping[str, BackendSummary]:
        """Delivered and attempted counts per registered backend."""
        delivered: Counter[str] = Counter()
        total: Counter[str] = Counter()
        for delivery in self._deliveries:
            total[delivery.backend_name] += 1
            if delivery.success:
                delivered[delivery.backend_name] += 1

        return {
            name: BackendSummary(
                backend_name=name,
                state=slot.state,
                ready=slot.ready,
                delivered=delivered[name],
                total=total[name],
            )
            for name, slot in self._slots.items()
        }

    async def _finalize(self, pending: Sequence[tuple[str, _Slot]]) -> dict[str, bool]:
        responses = await asyncio.gather(
            *(
                self._call(slot, lambda adapter: adapter.finalize())
                for _, slot in pending
            ),
            return_exceptions=True,
        )

        results: dict[str, bool] = {}
        for (name, slot), response in zip(pending, responses, strict=True):
            slot.state = "finalized"
            if isinstance(response, BaseException):
                log.warning(
                    "Adapter %s failed to finalize: %s",
                    name,
                    describe_error(response, self.timeout),
                    exc_info=response if isinstance(response, Exception) else None,
                )
                results[name] = False
            else:
                results[name] = bool(response)
        return results

    async def _call[T](self, slot: _Slot, call: AdapterCall[T]) -> T:
        async with slot.lock:
            return await asyncio.wait_for(call(slot.adapter), self.timeout)

    def _targets(self, subset: Collection[str] | None) -> list[str]:
        if subset is None:
            return list(self._slots)
        return list(dict.fromkeys(subset))

    def _active(
        self, targets: Sequence[str], outcomes: Sequence[Outcome]
    ) -> list[tuple[str, _Slot]]:
        """Ready slots among the targets; not-ready ones are recorded as misses."""
        active: list[tuple[str, _Slot]] = []
        for name in targets:
            slot = self._slots.get(name)
            if slot is None:
                log.debug("Adapter %s is not registered, skipping", name)
            elif slot.state != "ready":
                for outcome in outcomes:
                    self._record(name, outcome.identity, False, f"adapter {slot.state}")
            else:
                active.append((name, slot))
        return active

    def _record(
        self, name: str, identity: str, success: bool, error_detail: str | None = None
    ) -> None:
        self._deliveries.append(
            DeliveryResult(
                backend_name=name,
                identity=identity,
                success=success,
                error_detail=error_detail,
            )
        )

    def _check_open(self) -> None:
        if self._closed:
            raise CoordinatorClosedError(
                "Reporting coordinator was finalized and cannot be used"
            )
