"""Tests for JUnit XML replay."""

from pathlib import Path

from outcome_reporter.junit import parse_junit_xml

REPORT = """\
<?xml version="1.0" encoding="utf-8"?>
<testsuites>
  <testsuite name="pytest" tests="4">
    <testcase classname="tests.test_login" name="test_C345_valid" time="1.5">
      <properties>
        <property name="tag" value="smoke"/>
        <property name="testrail_id" value="345"/>
      </properties>
    </testcase>
    <testcase classname="tests.test_login" name="test_invalid" time="0.2">
      <failure message="AssertionError: 401 != 200">Traceback (most recent call last):
  assert 401 == 200
</failure>
    </testcase>
    <testcase classname="tests.test_cart" name="test_broken" time="-1">
      <error message="fixture 'db' not found"/>
    </testcase>
    <testcase name="test_later">
      <skipped message="not implemented"/>
    </testcase>
  </testsuite>
</testsuites>
"""


def write_report(tmp_path: Path) -> Path:
    """Write REPORT to a temporary file."""
    path = tmp_path / "junit.xml"
    path.write_text(REPORT, encoding="utf-8")
    return path


def test_parses_every_testcase_in_order(tmp_path: Path) -> None:
    """Yields one terminal record per testcase."""
    records = parse_junit_xml(write_report(tmp_path))

    assert [r.nodeid for r in records] == [
        "tests.test_login::test_C345_valid",
        "tests.test_login::test_invalid",
        "tests.test_cart::test_broken",
        "test_later",
    ]
    assert all(r.terminal for r in records)
    assert [r.outcome for r in records] == ["passed", "failed", "failed", "skipped"]


def test_passed_testcase_properties(tmp_path: Path) -> None:
    """Tag properties become tags, others attributes."""
    passed = parse_junit_xml(write_report(tmp_path))[0]

    assert passed.duration == 1.5
    assert passed.tags == ["smoke"]
    assert passed.properties == {"testrail_id": "345"}
    assert passed.message is None


def test_failure_message_and_detail(tmp_path: Path) -> None:
    """Failure message and text are kept."""
    failed = parse_junit_xml(write_report(tmp_path))[1]

    assert failed.message == "AssertionError: 401 != 200"
    assert failed.longrepr is not None
    assert failed.longrepr.endswith("assert 401 == 200")


def test_negative_time_is_clamped(tmp_path: Path) -> None:
    """Negative times become zero; empty error bodies have no detail."""
    broken = parse_junit_xml(write_report(tmp_path))[2]

    assert broken.duration == 0.0
    assert broken.longrepr is None
    assert broken.message == "fixture 'db' not found"
