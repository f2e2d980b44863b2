"""CLI entry point replaying JUnit XML reports to reporting backends."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from xml.etree.ElementTree import ParseError

from outcome_reporter.adapters.registry import AdapterNotFoundError, AdapterRegistry
from outcome_reporter.bridge import RunEventBridge
from outcome_reporter.config import ConfigError, load_backend_configs
from outcome_reporter.coordinator import DEFAULT_TIMEOUT, ReportingCoordinator
from outcome_reporter.junit import parse_junit_xml
from outcome_reporter.summary import format_output


async def run(
    junit_xml: Path,
    backends: Sequence[str],
    config_path: Path,
    timeout: float = DEFAULT_TIMEOUT,
    registry: AdapterRegistry | None = None,
) -> int:
    """Deliver the results of a JUnit report and return exit code.

    Returns:
        0 when every backend was ready, 1 when any was not, 2 on usage errors

    """
    log = logging.getLogger("outcome_reporter")

    try:
        configs = load_backend_configs(config_path)
    except ConfigError as exc:
        log.error("%s", exc)
        return 2

    log.info("Reading results from %s", junit_xml)
    try:
        records = parse_junit_xml(junit_xml)
    except (OSError, ParseError) as exc:
        log.error("Cannot read JUnit report %s: %s", junit_xml, exc)
        return 2
    log.info("Found %d test case(s)", len(records))

    registry = registry or AdapterRegistry.from_entry_points()
    async with ReportingCoordinator(registry=registry, timeout=timeout) as coordinator:
        for name in dict.fromkeys(backends):
            try:
                await coordinator.create_and_add_adapter(name, configs.get(name, {}))
            except AdapterNotFoundError as exc:
                log.error("%s", exc)
                return 2

        bridge = RunEventBridge(coordinator=coordinator, mode="batch")
        for record in records:
            await bridge.on_test_finished(record)
        summary = await bridge.finish()

    print(json.dumps(format_output(summary), indent=2))

    return 0 if all(item.ready for item in summary.values()) else 1


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Report JUnit XML test results to test-management backends"
    )
    parser.add_argument(
        "--junit-xml",
        type=Path,
        required=True,
        help="Path to the JUnit XML report",
    )
    parser.add_argument(
        "--backend",
        action="append",
        required=True,
        help="Backend to report to (testrail, zephyr-scale, allure); repeatable",
    )
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="JSON file with per-backend configuration",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Timeout in seconds for each backend call",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            junit_xml=args.junit_xml,
            backends=args.backend,
            config_path=args.config,
            timeout=args.timeout,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
