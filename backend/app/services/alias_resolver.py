"""
Map group references written in a coach's plan ("LS", "Long Sprints", "hurdlers") to the coach's
own group ids.

Lookup keys are registered in precedence order and the first registration of a key wins:
1. group slugs, verbatim;
2. group display names, case-folded, as-is / without spaces / with spaces hyphenated;
3. a static domain vocabulary of nicknames, each registered only when the coach owns a group
   with the nickname's canonical slug.
A token that matches nothing is dropped; it never fails the caller.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from app.services.group_directory import GroupInfo

logger = logging.getLogger(__name__)

# Track & field event groups. Keys are case-folded aliases, values canonical group slugs.
TRACK_AND_FIELD_ALIASES: dict[str, str] = {
    # short sprints
    "ss": "short-sprints",
    "short sprints": "short-sprints",
    "short sprint": "short-sprints",
    "short sprinters": "short-sprints",
    "sprints": "short-sprints",
    "sprinters": "short-sprints",
    # long sprints
    "ls": "long-sprints",
    "long sprints": "long-sprints",
    "long sprint": "long-sprints",
    "long sprinters": "long-sprints",
    "quarter milers": "long-sprints",
    # hurdles
    "hurdles": "hurdles",
    "hurdle": "hurdles",
    "hurdlers": "hurdles",
    # jumps
    "jumps": "jumps",
    "jump": "jumps",
    "jumpers": "jumps",
    "horizontal jumps": "jumps",
    "vertical jumps": "jumps",
    # throws
    "throws": "throws",
    "throw": "throws",
    "throwers": "throws",
    # distance
    "distance": "distance",
    "dist": "distance",
    "distance runners": "distance",
    "mid distance": "distance",
    "middle distance": "distance",
    "xc": "distance",
    # multi-events
    "multi": "multi",
    "multis": "multi",
    "multi-events": "multi",
    "multi events": "multi",
    "heptathletes": "multi",
    "decathletes": "multi",
}


def _normalize(token: str) -> str:
    return " ".join(token.strip().casefold().split())


class AliasResolver:
    """Per-coach lookup table. Build one per operation; it is not refreshed afterwards."""

    def __init__(self, groups: Iterable[GroupInfo], aliases: Mapping[str, str] | None = None) -> None:
        self._lookup: dict[str, int] = {}
        groups = list(groups)
        by_slug: dict[str, int] = {}

        for g in groups:
            self._register(g.slug, g.id)
            by_slug.setdefault(g.slug, g.id)

        for g in groups:
            folded = _normalize(g.name)
            if not folded:
                continue
            self._register(folded, g.id)
            self._register(folded.replace(" ", ""), g.id)
            self._register(folded.replace(" ", "-"), g.id)

        vocabulary = TRACK_AND_FIELD_ALIASES if aliases is None else aliases
        for alias, canonical_slug in vocabulary.items():
            group_id = by_slug.get(canonical_slug)
            if group_id is not None:
                self._register(_normalize(alias), group_id)

    def _register(self, key: str, group_id: int) -> None:
        if key and key not in self._lookup:
            self._lookup[key] = group_id

    def resolve_one(self, token: str) -> int | None:
        if not token:
            return None
        if token in self._lookup:
            return self._lookup[token]
        folded = _normalize(token)
        for key in (folded, folded.replace(" ", "-"), folded.replace(" ", "")):
            if key in self._lookup:
                return self._lookup[key]
        return None

    def resolve(self, tokens: Iterable[str] | None) -> list[int]:
        """Resolved group ids in first-seen order, duplicates collapsed. Unresolved tokens are skipped."""
        resolved: list[int] = []
        for token in tokens or []:
            group_id = self.resolve_one(token)
            if group_id is None:
                logger.debug("Alias resolver: no group for %r", token)
                continue
            if group_id not in resolved:
                resolved.append(group_id)
        return resolved
