"""TestRail adapter implementation."""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

import aiohttp

from outcome_reporter.adapters.base import (
    DELIVERY_ERRORS,
    BackendConfig,
    ReportingAdapter,
)
from outcome_reporter.adapters.testrail.config import TestRailConfig
from outcome_reporter.adapters.testrail.models import Run
from outcome_reporter.exceptions import InvalidIdentifierError
from outcome_reporter.models.outcome import Outcome
from outcome_reporter.resolver import IdentifierPattern

log = logging.getLogger(__name__)

CASE_TAG = re.compile(r"C(\d+)")
CASE_IN_IDENTITY = re.compile(r"(?<![A-Za-z0-9])C(\d+)(?!\d)")


def case_id(identifier: str) -> int:
    """Convert a resolved identifier such as "345" or "C345" to a case ID."""
    value = identifier.strip().removeprefix("C")
    if not value.isdigit():
        raise InvalidIdentifierError(f"Not a TestRail case ID: {identifier!r}")
    return int(value)


def format_elapsed(duration: float) -> str | None:
    """Format seconds as a TestRail timespan, e.g. "1m 5s".

    TestRail rejects zero timespans, so sub-second durations are omitted.
    """
    seconds = round(duration)
    if seconds < 1:
        return None
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    parts = [
        f"{value}{unit}"
        for value, unit in ((hours, "h"), (minutes, "m"), (seconds, "s"))
        if value
    ]
    return " ".join(parts)


@dataclass(kw_only=True)
class TestRailAdapter(ReportingAdapter[TestRailConfig]):
    """TestRail case/run tracking adapter.

    Results are filed under a test run; cases are identified by their
    numeric ID, written as ``C<id>`` in tags and test names.
    """

    __test__ = False

    backend_name: ClassVar[str] = "testrail"
    config_cls: ClassVar[type[BackendConfig]] = TestRailConfig

    _created_run: bool = field(default=False, init=False)

    def identifier_pattern(self, config: TestRailConfig) -> IdentifierPattern:
        """Match ``C<id>`` tags and ``C<id>`` inside test identities."""
        return IdentifierPattern(tag=CASE_TAG, identity=CASE_IN_IDENTITY)

    def auth_headers(self, config: TestRailConfig) -> Mapping[str, str]:
        """Basic auth with username and API key."""
        auth = aiohttp.BasicAuth(config.username, config.credential.get_secret_value())
        return {"Authorization": auth.encode()}

    async def create_container(self, config: TestRailConfig) -> str:
        """Create a run including all cases of the project (or suite)."""
        payload: dict[str, Any] = {
            "name": config.new_container_name,
            "include_all": True,
        }
        if config.suite_id is not None:
            payload["suite_id"] = config.suite_id

        data = await self.request(
            "create run", "POST", self._path(f"add_run/{config.project_key}"), payload
        )
        run = Run.model_validate(data)
        self._created_run = True

        log.info("Created TestRail run %s (%s)", run.id, run.url or run.name)
        return str(run.id)

    async def deliver(self, outcome: Outcome, identifier: str) -> None:
        """Add a result for one case in the run."""
        path = self._path(
            f"add_result_for_case/{self.container_key}/{case_id(identifier)}"
        )
        await self.request("add result", "POST", path, self._result_payload(outcome))

    async def report_batch(self, outcomes: Sequence[Outcome]) -> Mapping[str, bool]:
        """Add results for all resolved cases in a single request."""
        self._require_ready()
        results, resolved = self.partition(outcomes)

        entries: list[tuple[Outcome, int]] = []
        for outcome, identifier in resolved:
            try:
                entries.append((outcome, case_id(identifier)))
            except InvalidIdentifierError as exc:
                log.warning("Skipping %s: %s", outcome.identity, exc)

        if not entries:
            return results

        payload = {
            "results": [
                {"case_id": case, **self._result_payload(outcome)}
                for outcome, case in entries
            ]
        }
        path = self._path(f"add_results_for_cases/{self.container_key}")
        try:
            await self.request("add results", "POST", path, payload)
        except DELIVERY_ERRORS as exc:
            log.warning(
                "Failed to report %d result(s) to testrail: %s", len(entries), exc
            )
            return results

        for outcome, _ in entries:
            results[outcome.identity] = True
        return results

    async def close_container(self) -> None:
        """Close the run if this adapter created it and closing is enabled."""
        config = self.settings
        if not (config.close_run and self._created_run):
            return
        await self.request(
            "close run", "POST", self._path(f"close_run/{self.container_key}")
        )
        log.info("Closed TestRail run %s", self.container_key)

    def _result_payload(self, outcome: Outcome) -> dict[str, Any]:
        config = self.settings
        payload: dict[str, Any] = {"status_id": config.status_ids[outcome.status]}
        if comment := outcome.comment:
            payload["comment"] = comment
        if elapsed := format_elapsed(outcome.duration):
            payload["elapsed"] = elapsed
        return payload

    def _path(self, endpoint: str) -> str:
        return f"{self.settings.api_prefix}{endpoint}"
