"""Test factories for generating test data."""

from polyfactory import Use
from polyfactory.factories.pydantic_factory import ModelFactory

from outcome_reporter.models.outcome import Outcome


class OutcomeFactory(ModelFactory[Outcome]):
    """Factory for Outcome.

    Tags and attributes are empty so generated outcomes never resolve by
    accident; tests set the identifier sources they exercise.
    """

    display_name = "test_example"
    duration = 0.0
    message = None
    detail = None
    started_at = None
    tags = Use(tuple)
    attributes = Use(dict)
