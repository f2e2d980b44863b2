"""Registry mapping backend names to adapter factories."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any

from outcome_reporter.adapters.base import ReportingAdapter

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "outcome_reporter.adapters"

type AdapterFactory = Callable[[], ReportingAdapter[Any]]


class AdapterNotFoundError(Exception):
    """Raised when no adapter is registered under a name."""


@dataclass(kw_only=True)
class AdapterRegistry:
    """Name to adapter factory table, populated at start-up.

    Registering a name again replaces the previous factory, which lets tests
    substitute doubles for production adapters.
    """

    _factories: dict[str, AdapterFactory] = field(default_factory=dict)

    @classmethod
    def from_entry_points(cls) -> "AdapterRegistry":
        """Build a registry from adapters declared in package metadata.

        Adapters register under the ``outcome_reporter.adapters`` group in
        pyproject.toml (e.g., ``testrail``, ``zephyr-scale``, ``allure``).
        """
        registry = cls()
        for entry in entry_points(group=ENTRY_POINT_GROUP):
            factory: AdapterFactory = entry.load()
            registry.register(entry.name, factory)
        return registry

    def register(self, name: str, factory: AdapterFactory) -> None:
        """Register an adapter factory under a backend name."""
        if name in self._factories:
            log.debug("Replacing adapter factory for %s", name)
        self._factories[name] = factory

    def names(self) -> frozenset[str]:
        """Names of all registered adapters."""
        return frozenset(self._factories)

    async def create(
        self, name: str, config: Mapping[str, Any]
    ) -> ReportingAdapter[Any]:
        """Construct and initialize an adapter.

        The adapter is returned even when initialization fails; check
        ``adapter.ready`` before sending reports.

        Raises:
            AdapterNotFoundError: If no adapter is registered under the name

        """
        try:
            factory = self._factories[name]
        except KeyError:
            available = sorted(self._factories)
            raise AdapterNotFoundError(
                f"Adapter '{name}' not found. Available adapters: {available}"
            ) from None

        adapter = factory()
        if not await adapter.initialize(config):
            log.error("Adapter %s is not ready and will not receive results", name)
        return adapter
