"""
campaign_insights/services/fields.py – ordered field-candidate extraction.

Klaviyo has shipped several incompatible schema revisions, so one logical
field can live under different keys. Each logical field is described by a
FieldCandidates instance: an ordered tuple of key paths plus an acceptance
predicate. The first path whose value is accepted wins.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

Path = tuple[str, ...]


def dig(resource: Any, path: Path) -> Any:
    """Follow *path* through nested mappings; None on any miss."""
    current = resource
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


# ── Acceptance predicates ─────────────────────────────────────────────────────


def is_present(value: Any) -> bool:
    return value is not None


def is_truthy(value: Any) -> bool:
    return bool(value)


def is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class FieldCandidates:
    """One logical field and the places it may be found, most specific first."""

    name: str
    paths: tuple[Path, ...]
    accept: Callable[[Any], bool] = is_present

    def pick(self, resource: Any) -> Optional[Any]:
        for path in self.paths:
            value = dig(resource, path)
            if self.accept(value):
                return value
        return None

    def values(self, resource: Any) -> list[Any]:
        """Every accepted value, in path order (used for collection fields)."""
        found = []
        for path in self.paths:
            value = dig(resource, path)
            if self.accept(value):
                found.append(value)
        return found
