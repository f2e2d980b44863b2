"""Deliver test outcomes to external test-management systems."""
