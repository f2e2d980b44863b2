"""Conversion of JUnit XML reports into runner records."""

import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from outcome_reporter.bridge import RawTestRecord


def _nodeid(testcase: ET.Element) -> str:
    classname = testcase.get("classname", "")
    name = testcase.get("name", "")
    if classname:
        return f"{classname}::{name}"
    return name


def _float(value: str | None) -> float:
    try:
        return max(0.0, float(value or 0))
    except ValueError:
        return 0.0


def _properties(testcase: ET.Element) -> tuple[list[str], dict[str, Any]]:
    """Split ``<property>`` elements into tags and attributes.

    Properties named ``tag`` or ``marker`` become tags, the rest attributes.
    """
    tags: list[str] = []
    attributes: dict[str, Any] = {}
    for prop in testcase.iterfind("properties/property"):
        name = prop.get("name")
        value = prop.get("value", prop.text or "")
        if not name:
            continue
        if name in {"tag", "marker"}:
            tags.append(value)
        else:
            attributes[name] = value
    return tags, attributes


def record_from_testcase(testcase: ET.Element) -> RawTestRecord:
    """Build a terminal record from one ``<testcase>`` element."""
    outcome = "passed"
    message: str | None = None
    longrepr: str | None = None
    for child_tag, child_outcome in (
        ("failure", "failed"),
        ("error", "failed"),
        ("skipped", "skipped"),
    ):
        if (child := testcase.find(child_tag)) is not None:
            outcome = child_outcome
            message = child.get("message")
            longrepr = (child.text or "").strip() or None
            break

    tags, attributes = _properties(testcase)
    return RawTestRecord(
        nodeid=_nodeid(testcase),
        when="call",
        outcome=outcome,
        duration=_float(testcase.get("time")),
        message=message,
        longrepr=longrepr,
        tags=tags,
        properties=attributes,
        terminal=True,
    )


def parse_junit_xml(path: Path) -> Sequence[RawTestRecord]:
    """Read every ``<testcase>`` of a JUnit XML report, in document order."""
    root = ET.parse(path).getroot()
    return [record_from_testcase(testcase) for testcase in root.iter("testcase")]
