"""Query engine: filtered, searched and sorted views of the inventory.

Everything here is a pure function of a store snapshot and a ViewConfig.
The same inputs always produce the same ordered sequence.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum

from scope.models.package import AppKind, Package, PackageSource

# Fuzzy scoring weights
_MATCH_SCORE = 1
_CONTIGUOUS_BONUS = 5
_PREFIX_BONUS = 10
_WORD_START_BONUS = 3
_GAP_PENALTY = 1
_MAX_GAP_PENALTY = 5

# Characters after which a match counts as the start of a word
_WORD_SEPARATORS = frozenset(" -_./:+")

# Description substring matches rank below every name match
_DESCRIPTION_SCORE = 0


class KindFilter(Enum):
    """Filter by application kind. UNKNOWN packages only appear under ALL."""

    ALL = "all"
    GUI = "gui"
    CLI = "cli"

    def matches(self, kind: AppKind) -> bool:
        if self == KindFilter.ALL:
            return True
        if self == KindFilter.GUI:
            return kind == AppKind.GUI
        return kind == AppKind.CLI

    def next(self) -> KindFilter:
        """Cycle ALL -> GUI -> CLI -> ALL."""
        members = list(KindFilter)
        return members[(members.index(self) + 1) % len(members)]


class SortKey(Enum):
    SIZE = "size"
    NAME = "name"
    SOURCE = "source"


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> SortDirection:
        return SortDirection.ASC if self == SortDirection.DESC else SortDirection.DESC


@dataclass(frozen=True, slots=True)
class ViewConfig:
    """How the inventory is presented.

    Attributes:
        source_filter: Sources to show; None shows every source.
        kind_filter: Application kind filter.
        search_text: Fuzzy search text; empty shows everything.
        sort_key: Primary sort key.
        sort_direction: Direction of the primary sort key. Ties are always
            broken by ascending name.
    """

    source_filter: frozenset[PackageSource] | None = None
    kind_filter: KindFilter = KindFilter.ALL
    search_text: str = ""
    sort_key: SortKey = SortKey.SIZE
    sort_direction: SortDirection = SortDirection.DESC

    def with_sources(self, sources: Iterable[PackageSource] | None) -> ViewConfig:
        """Return a copy filtering by the given sources (None or empty = all)."""
        selected = frozenset(sources) if sources is not None else frozenset()
        return replace(self, source_filter=selected or None)


def fuzzy_score(query: str, text: str) -> int | None:
    """Score how well a query matches text as a case-insensitive subsequence.

    Every matched character scores a point. Matches directly following the
    previous match, at the very start of the text, or at the start of a
    word earn bonuses; gaps between matches cost a little.

    Args:
        query: Search text typed by the user.
        text: Candidate text (usually a package name).

    Returns:
        Score (higher is better), or None if the query is not a subsequence
        of the text. An empty query scores 0.

    Example:
        >>> fuzzy_score("chr", "google-chrome") is not None
        True
        >>> fuzzy_score("chr", "docker.io") is None
        True
    """
    needle = query.lower()
    haystack = text.lower()
    if not needle:
        return 0

    score = 0
    previous = -1
    position = 0
    for char in needle:
        index = haystack.find(char, position)
        if index < 0:
            return None

        score += _MATCH_SCORE
        if index == 0:
            score += _PREFIX_BONUS
        elif haystack[index - 1] in _WORD_SEPARATORS:
            score += _WORD_START_BONUS

        if previous >= 0:
            gap = index - previous - 1
            if gap == 0:
                score += _CONTIGUOUS_BONUS
            else:
                score -= min(gap * _GAP_PENALTY, _MAX_GAP_PENALTY)

        previous = index
        position = index + 1

    return score


def _search_score(package: Package, query: str) -> int | None:
    """Best match of the query against a package, or None."""
    score = fuzzy_score(query, package.name)
    # Flatpak application ids are searchable too (org.mozilla.firefox)
    if package.source == PackageSource.FLATPAK and package.local_id != package.name:
        id_score = fuzzy_score(query, package.local_id)
        if id_score is not None and (score is None or id_score > score):
            score = id_score
    if score is not None:
        return score

    # Descriptions are prose; only whole substrings count there
    if package.description and query.lower() in package.description.lower():
        return _DESCRIPTION_SCORE
    return None


def _primary_key(sort_key: SortKey) -> Callable[[Package], int | str]:
    if sort_key == SortKey.SIZE:
        return lambda pkg: pkg.size_bytes
    if sort_key == SortKey.SOURCE:
        return lambda pkg: pkg.source.rank
    return lambda pkg: pkg.name.lower()


def query(packages: Iterable[Package], config: ViewConfig) -> list[Package]:
    """Derive the visible, ordered package list.

    Pipeline: source filter, kind filter, fuzzy search (non-matches are
    dropped and matches pre-ordered by descending score), then a stable
    sort by the configured key and direction with ascending name as the
    tie-break.

    Args:
        packages: Store snapshot.
        config: View configuration.

    Returns:
        New list of packages; the input is not modified.
    """
    selected = [
        pkg
        for pkg in packages
        if (config.source_filter is None or pkg.source in config.source_filter)
        and config.kind_filter.matches(pkg.kind)
    ]

    search = config.search_text.strip()
    if search:
        scored: list[tuple[int, Package]] = []
        for pkg in selected:
            score = _search_score(pkg, search)
            if score is not None:
                scored.append((score, pkg))
        scored.sort(key=lambda item: (-item[0], item[1].identity.sort_key))
        selected = [pkg for _, pkg in scored]
    else:
        selected.sort(key=lambda pkg: pkg.identity.sort_key)

    # Python's sort is stable: order by the tie-break first, then the key
    selected.sort(key=lambda pkg: pkg.name.lower())
    selected.sort(
        key=_primary_key(config.sort_key),
        reverse=config.sort_direction == SortDirection.DESC,
    )
    return selected
