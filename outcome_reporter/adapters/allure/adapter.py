"""Allure docker service adapter implementation."""

import base64
import hashlib
import json
import logging
import re
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar

from outcome_reporter.adapters.allure.config import AllureConfig
from outcome_reporter.adapters.base import (
    DELIVERY_ERRORS,
    BackendConfig,
    ReportingAdapter,
)
from outcome_reporter.exceptions import BackendResponseError
from outcome_reporter.models.outcome import Outcome
from outcome_reporter.resolver import IdentifierPattern

log = logging.getLogger(__name__)

ALLURE_ID_TAG = re.compile(r"allure_id[:=](\d+)")
WHOLE_IDENTITY = re.compile(r".+")


def project_id(name: str) -> str:
    """Derive an Allure project ID (lowercase, dashes) from a name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "default"


def _epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@dataclass(kw_only=True)
class AllureAdapter(ReportingAdapter[AllureConfig]):
    """Rich-report adapter for the Allure docker service.

    Every outcome becomes an Allure result file uploaded to a project; the
    identity doubles as test case key when no ``allure_id`` is given.
    """

    backend_name: ClassVar[str] = "allure"
    config_cls: ClassVar[type[BackendConfig]] = AllureConfig

    def identifier_pattern(self, config: AllureConfig) -> IdentifierPattern:
        """Match ``allure_id=<n>`` tags, falling back to the whole identity."""
        return IdentifierPattern(tag=ALLURE_ID_TAG, identity=WHOLE_IDENTITY)

    def auth_headers(self, config: AllureConfig) -> Mapping[str, str]:
        """Bearer token when the service has security enabled."""
        if config.credential is None:
            return {}
        return {"Authorization": f"Bearer {config.credential.get_secret_value()}"}

    async def create_container(self, config: AllureConfig) -> str:
        """Reuse the named project, creating it when it does not exist."""
        project = project_id(config.new_container_name)
        try:
            await self.request("get project", "GET", f"projects/{project}")
        except BackendResponseError as exc:
            if exc.status != 404:
                raise
            await self.request("create project", "POST", "projects", {"id": project})
            log.info("Created Allure project %s", project)
        return project

    async def deliver(self, outcome: Outcome, identifier: str) -> None:
        """Upload one result file."""
        await self._send_results([self.result_file(outcome, identifier)])

    async def report_batch(self, outcomes: Sequence[Outcome]) -> Mapping[str, bool]:
        """Upload all result files in a single request."""
        self._require_ready()
        results, resolved = self.partition(outcomes)
        if not resolved:
            return results

        files = [self.result_file(outcome, ident) for outcome, ident in resolved]
        try:
            await self._send_results(files)
        except DELIVERY_ERRORS as exc:
            log.warning("Failed to send %d result(s) to allure: %s", len(files), exc)
            return results

        for outcome, _ in resolved:
            results[outcome.identity] = True
        return results

    async def close_container(self) -> None:
        """Trigger report generation for the project."""
        if not self.settings.generate_report:
            return
        data = await self.request(
            "generate report",
            "GET",
            "generate-report",
            params={"project_id": str(self.container_key)},
        )
        log.info("Generated Allure report for project %s: %s", self.container_key, data)

    def result_file(self, outcome: Outcome, identifier: str) -> dict[str, str]:
        """Encode an outcome as an Allure ``*-result.json`` upload entry."""
        result = self.build_result(outcome, identifier)
        content = json.dumps(result).encode()
        return {
            "file_name": f"{result['uuid']}-result.json",
            "content_base64": base64.b64encode(content).decode(),
        }

    def build_result(self, outcome: Outcome, identifier: str) -> dict[str, Any]:
        """Build the Allure result document for an outcome."""
        case_hash = hashlib.md5(identifier.encode()).hexdigest()  # noqa: S324
        stop = datetime.now(timezone.utc)
        start = outcome.started_at or stop - timedelta(seconds=outcome.duration)
        if outcome.started_at is not None:
            stop = start + timedelta(seconds=outcome.duration)

        labels = [{"name": "tag", "value": tag} for tag in outcome.tags]
        if identifier.isdigit():
            labels.append({"name": "AS_ID", "value": identifier})

        result: dict[str, Any] = {
            "uuid": str(uuid.uuid4()),
            "historyId": case_hash,
            "testCaseId": case_hash,
            "name": outcome.display_name,
            "fullName": outcome.identity,
            "status": self.settings.status_names[outcome.status],
            "stage": "finished",
            "start": _epoch_millis(start),
            "stop": _epoch_millis(stop),
            "labels": labels,
        }
        if outcome.message or outcome.detail:
            result["statusDetails"] = {
                "message": outcome.message or "",
                "trace": outcome.detail or "",
            }
        return result

    async def _send_results(self, files: Sequence[Mapping[str, str]]) -> None:
        await self.request(
            "send results",
            "POST",
            "send-results",
            {"results": list(files)},
            params={"project_id": str(self.container_key)},
        )
