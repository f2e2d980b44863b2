"""Tests for run event bridge."""

from datetime import datetime, timezone
from typing import Any
from unittest.mock import Mock

import pytest

from outcome_reporter.adapters.base import ReportingAdapter
from outcome_reporter.bridge import (
    Phase,
    RawTestRecord,
    RunEventBridge,
    build_outcome,
    display_name,
    phase_status,
)
from outcome_reporter.coordinator import ReportingCoordinator
from outcome_reporter.models.result import BackendSummary

NODEID = "tests/test_login.py::TestLogin::test_C345_valid"


def record(
    when: Phase = "call", outcome: str = "passed", **kwargs: Any
) -> RawTestRecord:
    """Create a runner record for NODEID."""
    return RawTestRecord(nodeid=NODEID, when=when, outcome=outcome, **kwargs)


def phase_records(*outcomes: str) -> list[RawTestRecord]:
    """Create setup/call/teardown records with the given outcomes."""
    return [
        record(when=when, outcome=outcome)
        for when, outcome in zip(("setup", "call", "teardown"), outcomes, strict=True)
    ]


@pytest.fixture
def coordinator_mock() -> Mock:
    """Create mock coordinator."""
    coordinator = Mock(spec=ReportingCoordinator)
    coordinator.closed = False
    coordinator.summary.return_value = {}
    return coordinator


@pytest.mark.parametrize(
    ("nodeid", "expected"),
    [
        ("tests/test_a.py::test_x", "test_x"),
        ("tests/test_a.py::Cls::test_x[1]", "test_x[1]"),
        ("standalone", "standalone"),
    ],
)
def test_display_name(nodeid: str, expected: str) -> None:
    """Uses the last node ID segment."""
    assert display_name(nodeid) == expected


@pytest.mark.parametrize(
    ("outcome", "wasxfail", "expected"),
    [
        ("passed", False, "passed"),
        ("FAILED", False, "failed"),
        ("error", False, "failed"),
        ("skipped", True, "skipped"),
        ("xpassed", False, "unknown"),
    ],
)
def test_phase_status(outcome: str, wasxfail: bool, expected: str) -> None:
    """Maps runner outcomes onto outcome statuses."""
    assert phase_status(record(outcome=outcome, wasxfail=wasxfail)) == expected


class TestBuildOutcome:
    """Tests for build_outcome."""

    def test_all_phases_passed(self) -> None:
        """Passing phases produce a passed outcome without message."""
        outcome = build_outcome(phase_records("passed", "passed", "passed"))

        assert outcome.identity == NODEID
        assert outcome.display_name == "test_C345_valid"
        assert outcome.status == "passed"
        assert outcome.message is None

    def test_failed_teardown_wins(self) -> None:
        """A failing teardown fails the test."""
        outcome = build_outcome(phase_records("passed", "passed", "failed"))

        assert outcome.status == "failed"

    def test_failed_setup_over_skipped(self) -> None:
        """Failure is worse than skip."""
        outcome = build_outcome(phase_records("failed", "skipped", "passed"))

        assert outcome.status == "failed"

    def test_message_from_worst_phase(self) -> None:
        """Message and detail come from the phase that decided the status."""
        records = [
            record(when="setup", outcome="passed"),
            record(
                when="call",
                outcome="failed",
                message="AssertionError: 1 != 2",
                longrepr="Traceback...",
            ),
            record(when="teardown", outcome="passed"),
        ]

        outcome = build_outcome(records)

        assert outcome.message == "AssertionError: 1 != 2"
        assert outcome.detail == "Traceback..."

    def test_sums_durations(self) -> None:
        """Duration is the total of all phases."""
        records = [
            record(when="setup", duration=0.5),
            record(when="call", duration=1.25),
            record(when="teardown", duration=0.25),
        ]

        assert build_outcome(records).duration == 2.0

    def test_merges_tags_and_scalar_properties(self) -> None:
        """Tags are de-duplicated in order; only scalar properties are kept."""
        started = datetime(2026, 1, 1, tzinfo=timezone.utc)
        records = [
            record(when="setup", tags=["smoke", "C345"], started_at=started),
            record(
                when="call",
                tags=["C345", "slow"],
                properties={"testrail_id": 345, "data": [1, 2]},
            ),
        ]

        outcome = build_outcome(records)

        assert outcome.tags == ("smoke", "C345", "slow")
        assert outcome.attributes == {"testrail_id": 345}
        assert outcome.started_at == started

    def test_xfail_is_skipped(self) -> None:
        """Expected failures are reported as skipped."""
        records = [
            record(when="setup"),
            record(when="call", outcome="skipped", wasxfail=True, message="bug 1"),
            record(when="teardown"),
        ]

        outcome = build_outcome(records)

        assert outcome.status == "skipped"
        assert outcome.message == "bug 1"


class TestRunEventBridge:
    """Tests for RunEventBridge."""

    async def test_emits_after_teardown(self, coordinator_mock: Mock) -> None:
        """An outcome is built only once the teardown record arrives."""
        bridge = RunEventBridge(coordinator=coordinator_mock)
        setup, call, teardown = phase_records("passed", "failed", "passed")

        assert await bridge.on_test_finished(setup) is None
        assert await bridge.on_test_finished(call) is None
        outcome = await bridge.on_test_finished(teardown)

        assert outcome is not None
        assert outcome.status == "failed"
        assert bridge.buffered == (outcome,)

    async def test_terminal_record_emits_immediately(
        self, coordinator_mock: Mock
    ) -> None:
        """Single-record tests are complete on their terminal record."""
        bridge = RunEventBridge(coordinator=coordinator_mock)

        outcome = await bridge.on_test_finished(record(terminal=True))

        assert outcome is not None
        assert len(bridge.buffered) == 1

    async def test_stream_mode_reports_immediately(
        self, coordinator_mock: Mock
    ) -> None:
        """Stream mode forwards each outcome to the coordinator."""
        bridge = RunEventBridge(
            coordinator=coordinator_mock, mode="stream", backends=["testrail"]
        )

        outcome = await bridge.on_test_finished(record(terminal=True))

        coordinator_mock.report_result.assert_awaited_once_with(outcome, ["testrail"])
        assert bridge.buffered == ()

    async def test_batch_mode_reports_on_finish(
        self, coordinator_mock: Mock
    ) -> None:
        """Batch mode delivers everything at the end and finalizes."""
        bridge = RunEventBridge(coordinator=coordinator_mock)
        outcome = await bridge.on_test_finished(record(terminal=True))

        await bridge.finish()

        coordinator_mock.report_results.assert_awaited_once_with([outcome], None)
        coordinator_mock.finalize_all.assert_awaited_once()
        assert bridge.buffered == ()

    async def test_finish_without_outcomes(self, coordinator_mock: Mock) -> None:
        """Finishing an empty run only finalizes."""
        bridge = RunEventBridge(coordinator=coordinator_mock)

        await bridge.finish()

        coordinator_mock.report_results.assert_not_awaited()
        coordinator_mock.finalize_all.assert_awaited_once()

    async def test_finish_drops_unfinished_tests(
        self, coordinator_mock: Mock
    ) -> None:
        """Tests that never reached teardown are not reported."""
        bridge = RunEventBridge(coordinator=coordinator_mock)
        await bridge.on_test_finished(record(when="setup"))

        await bridge.finish()

        coordinator_mock.report_results.assert_not_awaited()

    async def test_finish_finalizes_when_delivery_raises(
        self, coordinator_mock: Mock
    ) -> None:
        """Adapters are finalized even when delivery blows up."""
        coordinator_mock.report_results.side_effect = RuntimeError("loop closed")
        bridge = RunEventBridge(coordinator=coordinator_mock)
        await bridge.on_test_finished(record(terminal=True))

        with pytest.raises(RuntimeError):
            await bridge.finish()

        coordinator_mock.finalize_all.assert_awaited_once()

    async def test_rerun_replaces_buffered_outcome(
        self, coordinator_mock: Mock, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A test finishing twice is buffered once, with its latest status."""
        bridge = RunEventBridge(coordinator=coordinator_mock)
        for phase in phase_records("passed", "failed", "passed"):
            await bridge.on_test_finished(phase)
        for phase in phase_records("passed", "passed", "passed"):
            await bridge.on_test_finished(phase)

        [outcome] = bridge.buffered
        assert outcome.status == "passed"
        assert "finished more than once" in caplog.text

        await bridge.finish()

        coordinator_mock.report_results.assert_awaited_once_with([outcome], None)

    async def test_rerun_reaches_adapters_once(self) -> None:
        """Repeated identities do not abort delivery to the backends."""
        adapter = Mock(spec=ReportingAdapter)
        adapter.ready = True
        adapter.state = "ready"
        adapter.report_batch.return_value = {NODEID: True}
        adapter.finalize.return_value = True
        coordinator = ReportingCoordinator()
        coordinator.add_adapter("testrail", adapter)
        bridge = RunEventBridge(coordinator=coordinator)
        await bridge.on_test_finished(record(outcome="failed", terminal=True))
        await bridge.on_test_finished(record(outcome="passed", terminal=True))

        summary = await bridge.finish()

        [outcomes] = adapter.report_batch.await_args.args
        assert [outcome.status for outcome in outcomes] == ["passed"]
        assert summary["testrail"].delivered == summary["testrail"].total == 1

    async def test_finish_returns_summary(self) -> None:
        """Returns the coordinator summary after delivery."""
        coordinator = ReportingCoordinator()
        bridge = RunEventBridge(coordinator=coordinator)

        summary = await bridge.finish()

        assert summary == {}
        assert coordinator.closed

    async def test_finish_skips_closed_coordinator(
        self, coordinator_mock: Mock
    ) -> None:
        """Nothing is sent through a coordinator that was already finalized."""
        coordinator_mock.closed = True
        coordinator_mock.summary.return_value = {
            "allure": BackendSummary(
                backend_name="allure",
                state="finalized",
                ready=True,
                delivered=0,
                total=0,
            )
        }
        bridge = RunEventBridge(coordinator=coordinator_mock)
        await bridge.on_test_finished(record(terminal=True))

        summary = await bridge.finish()

        assert list(summary) == ["allure"]
        coordinator_mock.report_results.assert_not_awaited()
        coordinator_mock.finalize_all.assert_not_awaited()
