"""pytest plugin reporting test outcomes to external backends.

Activated by passing at least one ``--report-to`` option:

    pytest --report-to testrail --report-to allure --report-config report.json

Options:
    --report-to NAME: Backend to deliver results to (repeatable)
    --report-config PATH: JSON file with per-backend configuration
    --report-mode MODE: "batch" (default) reports at the end of the session,
        "stream" reports every test as soon as it finishes
    --report-timeout SECONDS: Bound for each backend call

Tags are collected from markers (names and string arguments) and
``record_property`` values become outcome attributes, e.g.
``record_property("testrail_id", "345")``.
"""

import asyncio
import logging
from collections.abc import Generator, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from outcome_reporter.adapters.registry import AdapterNotFoundError, AdapterRegistry
from outcome_reporter.bridge import RawTestRecord, ReportMode, RunEventBridge
from outcome_reporter.config import ConfigError, load_backend_configs
from outcome_reporter.coordinator import DEFAULT_TIMEOUT, ReportingCoordinator
from outcome_reporter.models.result import BackendSummary
from outcome_reporter.summary import format_summary_lines

log = logging.getLogger(__name__)

PLUGIN_NAME = "outcome-reporter"

# Markers whose arguments are not identifiers.
IGNORED_MARKERS: frozenset[str] = frozenset(
    ["parametrize", "usefixtures", "filterwarnings", "skip", "skipif", "xfail"]
)


def item_tags(item: pytest.Item) -> list[str]:
    """Marker names and string marker arguments, closest marker first."""
    tags: list[str] = []
    for marker in item.iter_markers():
        if marker.name in IGNORED_MARKERS:
            continue
        strings = [arg for arg in marker.args if isinstance(arg, str)]
        candidates = [marker.name, *strings]
        tags.extend(tag for tag in candidates if tag not in tags)
    return tags


def _message(report: pytest.TestReport) -> str | None:
    if report.skipped:
        if wasxfail := getattr(report, "wasxfail", None):
            return f"xfail: {wasxfail}"
        if isinstance(report.longrepr, tuple):
            return str(report.longrepr[2]).removeprefix("Skipped: ")
        return None
    if report.failed:
        crash = getattr(report.longrepr, "reprcrash", None)
        return getattr(crash, "message", None)
    return None


def record_from_report(report: pytest.TestReport) -> RawTestRecord:
    """Convert a pytest phase report into a runner record."""
    start = getattr(report, "start", None)
    return RawTestRecord(
        nodeid=report.nodeid,
        when=report.when,  # type: ignore[arg-type]
        outcome=report.outcome,
        duration=report.duration,
        longrepr=(report.longreprtext or None) if report.failed else None,
        message=_message(report),
        tags=tuple(getattr(report, "outcome_tags", ())),
        properties=dict(report.user_properties),
        wasxfail=hasattr(report, "wasxfail"),
        started_at=(
            datetime.fromtimestamp(start, timezone.utc) if start is not None else None
        ),
    )


class ReportingPlugin:
    """Session-scoped plugin driving the reporting core on one event loop."""

    def __init__(
        self,
        *,
        backends: Sequence[str],
        backend_configs: Mapping[str, Mapping[str, Any]],
        mode: ReportMode = "batch",
        timeout: float = DEFAULT_TIMEOUT,
        registry: AdapterRegistry | None = None,
    ) -> None:
        self.backends = list(dict.fromkeys(backends))
        self.backend_configs = backend_configs
        self.mode = mode
        self.timeout = timeout
        self.registry = registry
        self.summary: Mapping[str, BackendSummary] = {}
        self._runner = asyncio.Runner()
        self._bridge: RunEventBridge | None = None

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        """Create and initialize the selected adapters."""
        registry = self.registry or AdapterRegistry.from_entry_points()
        coordinator = ReportingCoordinator(registry=registry, timeout=self.timeout)
        self._runner.run(self._add_adapters(coordinator))
        self._bridge = RunEventBridge(coordinator=coordinator, mode=self.mode)

    async def _add_adapters(self, coordinator: ReportingCoordinator) -> None:
        for name in self.backends:
            try:
                await coordinator.create_and_add_adapter(
                    name, self.backend_configs.get(name, {})
                )
            except AdapterNotFoundError as exc:
                log.error("%s", exc)

    @pytest.hookimpl(wrapper=True)
    def pytest_runtest_makereport(
        self, item: pytest.Item, call: pytest.CallInfo[None]
    ) -> Generator[None, pytest.TestReport, pytest.TestReport]:
        """Attach marker tags to every phase report."""
        report = yield
        report.outcome_tags = item_tags(item)  # type: ignore[attr-defined]
        return report

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        """Forward phase reports to the bridge."""
        if self._bridge is None:
            return
        self._runner.run(self._bridge.on_test_finished(record_from_report(report)))

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        """Deliver buffered outcomes and release all sessions."""
        try:
            if self._bridge is not None:
                self.summary = self._runner.run(self._bridge.finish())
        finally:
            self._runner.close()

    def pytest_terminal_summary(
        self, terminalreporter: pytest.TerminalReporter
    ) -> None:
        """Print delivered/total counts per backend."""
        terminalreporter.write_sep("=", "result delivery")
        if not self.summary:
            terminalreporter.write_line("no results delivered")
        for line in format_summary_lines(self.summary):
            terminalreporter.write_line(line)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register reporting command line options."""
    group = parser.getgroup("outcome-reporter", "test result reporting")
    group.addoption(
        "--report-to",
        action="append",
        default=[],
        dest="report_to",
        metavar="NAME",
        help="Backend to deliver results to (repeatable)",
    )
    group.addoption(
        "--report-config",
        dest="report_config",
        metavar="PATH",
        help="JSON file with per-backend configuration",
    )
    group.addoption(
        "--report-mode",
        dest="report_mode",
        choices=["batch", "stream"],
        default="batch",
        help="Report at session end (batch) or as each test finishes (stream)",
    )
    group.addoption(
        "--report-timeout",
        dest="report_timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        metavar="SECONDS",
        help="Timeout for each backend call",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the reporting plugin when backends are selected."""
    backends: list[str] = config.getoption("report_to")
    if not backends:
        return

    config_path = config.getoption("report_config")
    if config_path is None:
        raise pytest.UsageError("--report-config is required with --report-to")
    try:
        backend_configs = load_backend_configs(Path(config_path))
    except ConfigError as exc:
        raise pytest.UsageError(str(exc)) from exc

    plugin = ReportingPlugin(
        backends=backends,
        backend_configs=backend_configs,
        mode=config.getoption("report_mode"),
        timeout=config.getoption("report_timeout"),
    )
    config.pluginmanager.register(plugin, PLUGIN_NAME)
