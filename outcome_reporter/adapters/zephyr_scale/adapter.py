"""Zephyr Scale adapter implementation."""

import html
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from outcome_reporter.adapters.base import BackendConfig, ReportingAdapter
from outcome_reporter.adapters.zephyr_scale.config import ZephyrScaleConfig
from outcome_reporter.adapters.zephyr_scale.models import CreatedResource
from outcome_reporter.exceptions import BackendResponseError, InvalidIdentifierError
from outcome_reporter.models.outcome import Outcome
from outcome_reporter.resolver import IdentifierPattern

log = logging.getLogger(__name__)


def case_key(project_key: str, identifier: str) -> str:
    """Build a test case key ("PROJ-T12") from a resolved identifier."""
    value = identifier.strip()
    if value.isdigit():
        return f"{project_key}-T{value}"
    if re.fullmatch(r"[A-Z][A-Z0-9_]*-T\d+", value):
        return value
    raise InvalidIdentifierError(f"Not a Zephyr Scale test case key: {identifier!r}")


def format_comment(outcome: Outcome) -> str | None:
    """Render message and detail as the HTML comment Zephyr Scale displays."""
    if (comment := outcome.comment) is None:
        return None
    return "<br>".join(html.escape(line) for line in comment.splitlines())


@dataclass(kw_only=True)
class ZephyrScaleAdapter(ReportingAdapter[ZephyrScaleConfig]):
    """Zephyr Scale test-cycle tracking adapter.

    Results are filed as test executions in a test cycle; test cases are
    identified by ``<PROJECT>-T<n>`` keys, and tags of the form
    ``<PROJECT>-<n>`` are accepted as well.
    """

    backend_name: ClassVar[str] = "zephyr-scale"
    config_cls: ClassVar[type[BackendConfig]] = ZephyrScaleConfig

    def identifier_pattern(self, config: ZephyrScaleConfig) -> IdentifierPattern:
        """Match ``<PROJECT>-T<n>`` or ``<PROJECT>-<n>`` keys."""
        key = re.escape(config.project_key)
        return IdentifierPattern(
            tag=re.compile(rf"{key}-T?(\d+)"),
            identity=re.compile(rf"(?<![A-Za-z0-9]){key}-T?(\d+)(?!\d)"),
        )

    def auth_headers(self, config: ZephyrScaleConfig) -> Mapping[str, str]:
        """Bearer token authentication."""
        return {"Authorization": f"Bearer {config.credential.get_secret_value()}"}

    async def create_container(self, config: ZephyrScaleConfig) -> str:
        """Create a test cycle in the project."""
        payload = {"projectKey": config.project_key, "name": config.new_container_name}
        data = await self.request("create test cycle", "POST", "testcycles", payload)
        cycle = CreatedResource.model_validate(data)
        if cycle.key is None:
            raise BackendResponseError("create test cycle", 201, data)

        log.info("Created Zephyr Scale test cycle %s", cycle.key)
        return cycle.key

    async def deliver(self, outcome: Outcome, identifier: str) -> None:
        """Create a test execution in the cycle."""
        config = self.settings
        payload: dict[str, Any] = {
            "projectKey": config.project_key,
            "testCaseKey": case_key(config.project_key, identifier),
            "testCycleKey": self.container_key,
            "statusName": config.status_names[outcome.status],
            "executionTime": int(outcome.duration * 1000),
        }
        if comment := format_comment(outcome):
            payload["comment"] = comment
        if config.environment_name:
            payload["environmentName"] = config.environment_name

        await self.request("create test execution", "POST", "testexecutions", payload)
