"""Zephyr Scale adapter module."""

from outcome_reporter.adapters.zephyr_scale.adapter import ZephyrScaleAdapter
from outcome_reporter.adapters.zephyr_scale.config import ZephyrScaleConfig

__all__ = ["ZephyrScaleAdapter", "ZephyrScaleConfig"]
