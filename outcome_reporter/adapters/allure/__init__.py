"""Allure report adapter module."""

from outcome_reporter.adapters.allure.adapter import AllureAdapter
from outcome_reporter.adapters.allure.config import AllureConfig

__all__ = ["AllureAdapter", "AllureConfig"]
