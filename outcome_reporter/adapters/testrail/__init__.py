"""TestRail adapter module."""

from outcome_reporter.adapters.testrail.adapter import TestRailAdapter
from outcome_reporter.adapters.testrail.config import TestRailConfig

__all__ = ["TestRailAdapter", "TestRailConfig"]
