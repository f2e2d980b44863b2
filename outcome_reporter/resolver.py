"""Resolution of backend-specific identifiers for test outcomes.

An identifier is looked up through an ordered chain of strategies, each a
pure function of the outcome. The first strategy that yields a value wins:

1. an explicit ``<backend>_id`` attribute,
2. the first tag that fully matches the backend's tag pattern,
3. a search of the backend's identity pattern in the outcome identity.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from outcome_reporter.models.outcome import Outcome
from outcome_reporter.models.result import (
    NOT_FOUND,
    IdentifierSource,
    ResolvedIdentifier,
)

type LookupStrategy = Callable[[Outcome], str | None]


@dataclass(frozen=True, kw_only=True)
class IdentifierPattern:
    """Patterns a backend uses to recognize its identifiers.

    Capture group 1 is the identifier when the pattern defines groups,
    otherwise the whole match is used.
    """

    tag: re.Pattern[str]
    identity: re.Pattern[str] | None = None


def _extract(match: re.Match[str]) -> str:
    if match.re.groups:
        return match.group(1)
    return match.group(0)


def attribute_keys(backend_name: str) -> Sequence[str]:
    """Attribute names that carry an explicit identifier for the backend."""
    key = f"{backend_name}_id"
    underscored = key.replace("-", "_")
    if underscored == key:
        return (key,)
    return (key, underscored)


def attribute_lookup(backend_name: str) -> LookupStrategy:
    """Look up an explicit identifier hint in the outcome attributes."""
    keys = attribute_keys(backend_name)

    def lookup(outcome: Outcome) -> str | None:
        for key in keys:
            value = outcome.attributes.get(key)
            if value is None or isinstance(value, bool):
                continue
            if text := str(value).strip():
                return text
        return None

    return lookup


def tag_lookup(pattern: re.Pattern[str]) -> LookupStrategy:
    """Return the identifier from the first fully matching tag."""

    def lookup(outcome: Outcome) -> str | None:
        for tag in outcome.tags:
            if match := pattern.fullmatch(tag.strip()):
                return _extract(match)
        return None

    return lookup


def identity_lookup(pattern: re.Pattern[str]) -> LookupStrategy:
    """Search the outcome identity for the identifier."""

    def lookup(outcome: Outcome) -> str | None:
        if match := pattern.search(outcome.identity):
            return _extract(match)
        return None

    return lookup


@dataclass(frozen=True, kw_only=True)
class IdentifierResolver:
    """Ordered lookup chain for a single backend."""

    backend_name: str
    pattern: IdentifierPattern
    strategies: Sequence[tuple[IdentifierSource, LookupStrategy]] = field(
        init=False, repr=False
    )

    def __post_init__(self) -> None:
        strategies: list[tuple[IdentifierSource, LookupStrategy]] = [
            ("attribute", attribute_lookup(self.backend_name)),
            ("tag", tag_lookup(self.pattern.tag)),
        ]
        if self.pattern.identity is not None:
            strategies.append(("identity", identity_lookup(self.pattern.identity)))
        object.__setattr__(self, "strategies", tuple(strategies))

    def resolve(self, outcome: Outcome) -> ResolvedIdentifier:
        """Resolve the backend identifier of an outcome."""
        for source, strategy in self.strategies:
            if (value := strategy(outcome)) is not None:
                return ResolvedIdentifier(found=True, value=value, source=source)
        return NOT_FOUND


def resolve(
    outcome: Outcome, backend_name: str, pattern: IdentifierPattern
) -> ResolvedIdentifier:
    """Resolve the identifier of an outcome for the named backend."""
    return IdentifierResolver(backend_name=backend_name, pattern=pattern).resolve(
        outcome
    )
