"""Bridge between test runner events and the reporting coordinator."""

import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from outcome_reporter.coordinator import ReportingCoordinator
from outcome_reporter.models.outcome import Outcome, OutcomeStatus, coerce_status
from outcome_reporter.models.result import BackendSummary
from outcome_reporter.summary import log_delivery_summary

log = logging.getLogger(__name__)

type Phase = Literal["setup", "call", "teardown"]

type ReportMode = Literal["batch", "stream"]

# Worst status wins when phases of one test disagree.
STATUS_SEVERITY: Mapping[OutcomeStatus, int] = {
    "passed": 0,
    "skipped": 1,
    "unknown": 2,
    "failed": 3,
}


@dataclass(frozen=True, kw_only=True)
class RawTestRecord:
    """One phase report from a test runner.

    ``terminal`` marks the last record of a test; runners that report a
    single phase per test (e.g., JUnit XML replay) set it on that record.
    """

    nodeid: str
    when: Phase
    outcome: str
    duration: float = 0.0
    longrepr: str | None = None
    message: str | None = None
    tags: Sequence[str] = ()
    properties: Mapping[str, Any] = field(default_factory=dict)
    wasxfail: bool = False
    started_at: datetime | None = None
    terminal: bool = False


def display_name(nodeid: str) -> str:
    """Short name of a test from its node ID ("pkg/mod.py::Cls::test_x[1]")."""
    return nodeid.rsplit("::", 1)[-1] or nodeid


def phase_status(record: RawTestRecord) -> OutcomeStatus:
    """Status contributed by a single phase record."""
    if record.wasxfail and record.outcome == "skipped":
        return "skipped"
    if record.outcome == "error":
        return "failed"
    return coerce_status(record.outcome)


def build_outcome(records: Sequence[RawTestRecord]) -> Outcome:
    """Combine the phase records of one test into an Outcome."""
    status = max(
        (phase_status(record) for record in records),
        key=lambda value: STATUS_SEVERITY[value],
    )
    failing = next(
        (record for record in records if phase_status(record) == status), records[-1]
    )

    tags: list[str] = []
    attributes: dict[str, Any] = {}
    for record in records:
        tags.extend(tag for tag in record.tags if tag not in tags)
        attributes.update(
            (str(key), value)
            for key, value in record.properties.items()
            if isinstance(value, str | int | float | bool)
        )

    message, detail = None, None
    if status != "passed":
        message, detail = failing.message, failing.longrepr

    return Outcome(
        identity=records[0].nodeid,
        display_name=display_name(records[0].nodeid),
        status=status,
        duration=max(0.0, sum(record.duration for record in records)),
        message=message,
        detail=detail,
        tags=tuple(tags),
        attributes=attributes,
        started_at=records[0].started_at,
    )


@dataclass(kw_only=True)
class RunEventBridge:
    """Turns runner records into outcomes and forwards them for reporting.

    In ``stream`` mode each outcome is reported as soon as its test
    finishes; in ``batch`` mode outcomes are buffered until ``finish``,
    and a test finishing again (e.g., a rerun) replaces its earlier outcome.
    """

    coordinator: ReportingCoordinator
    mode: ReportMode = "batch"
    backends: Collection[str] | None = None
    _phases: dict[str, list[RawTestRecord]] = field(default_factory=dict, init=False)
    _buffer: dict[str, Outcome] = field(default_factory=dict, init=False)

    @property
    def buffered(self) -> Sequence[Outcome]:
        """Outcomes waiting for the end of the run."""
        return tuple(self._buffer.values())

    async def on_test_finished(self, record: RawTestRecord) -> Outcome | None:
        """Consume one runner record.

        Returns:
            The outcome when the record completes a test, None otherwise

        """
        records = self._phases.setdefault(record.nodeid, [])
        records.append(record)
        if not (record.terminal or record.when == "teardown"):
            return None

        del self._phases[record.nodeid]
        outcome = build_outcome(records)
        log.debug("Test finished: %s status=%s", outcome.identity, outcome.status)

        if self.mode == "stream":
            await self.coordinator.report_result(outcome, self.backends)
        else:
            if self._buffer.pop(outcome.identity, None) is not None:
                log.warning(
                    "Test %s finished more than once, reporting the latest outcome",
                    outcome.identity,
                )
            self._buffer[outcome.identity] = outcome
        return outcome

    async def finish(self) -> Mapping[str, BackendSummary]:
        """Deliver buffered outcomes, finalize adapters and log the summary."""
        if self._phases:
            log.warning(
                "%d test(s) did not finish and will not be reported", len(self._phases)
            )
            self._phases.clear()

        try:
            if self._buffer and not self.coordinator.closed:
                outcomes, self._buffer = list(self._buffer.values()), {}
                log.info("Reporting %d outcome(s)...", len(outcomes))
                await self.coordinator.report_results(outcomes, self.backends)
        finally:
            if not self.coordinator.closed:
                await self.coordinator.finalize_all()

        summary = self.coordinator.summary()
        log_delivery_summary(log, summary)
        return summary
