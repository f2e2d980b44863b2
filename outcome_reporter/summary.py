"""Operator-facing delivery summary."""

import logging
from collections.abc import Mapping
from typing import Any

from outcome_reporter.models.result import BackendSummary

SUMMARY_SYMBOLS = {
    "delivered": "✅",
    "partial": "❌",
    "not_ready": "❗",
}


def summary_symbol(summary: BackendSummary) -> str:
    """Symbol for a backend line."""
    if not summary.ready:
        return SUMMARY_SYMBOLS["not_ready"]
    if summary.failed:
        return SUMMARY_SYMBOLS["partial"]
    return SUMMARY_SYMBOLS["delivered"]


def format_summary_lines(summary: Mapping[str, BackendSummary]) -> list[str]:
    """One ``delivered/total`` line per backend."""
    lines: list[str] = []
    for name, item in summary.items():
        line = f"{summary_symbol(item)} {name}: {item.delivered}/{item.total} delivered"
        if not item.ready:
            line += " (not ready)"
        lines.append(line)
    return lines


def log_delivery_summary(
    log: logging.Logger, summary: Mapping[str, BackendSummary]
) -> None:
    """Log a framed summary of per-backend delivery counts."""
    log.info("=" * 80)
    log.info("Result Delivery Summary:")
    log.info("=" * 80)

    if not summary:
        log.info("No reporting backends configured")
    for line in format_summary_lines(summary):
        log.info("%s", line)


def format_output(summary: Mapping[str, BackendSummary]) -> dict[str, Any]:
    """Format the summary for JSON output."""
    backends = [
        {
            "backend": name,
            "ready": item.ready,
            "delivered": item.delivered,
            "total": item.total,
        }
        for name, item in summary.items()
    ]
    return {
        "delivered": sum(item.delivered for item in summary.values()),
        "total": sum(item.total for item in summary.values()),
        "backends": backends,
    }
