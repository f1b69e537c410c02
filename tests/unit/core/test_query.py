"""Unit tests for the query engine.

Tests for filtering, fuzzy search and deterministic ordering.
"""

import pytest
from conftest import make_package
from scope.core.query import (
    KindFilter,
    SortDirection,
    SortKey,
    ViewConfig,
    fuzzy_score,
    query,
)
from scope.models.package import AppKind, Package, PackageSource


def _names(packages: list[Package]) -> list[str]:
    return [pkg.name for pkg in packages]


class TestFuzzyScore:
    """Tests for fuzzy_score."""

    def test_empty_query_scores_zero(self) -> None:
        assert fuzzy_score("", "anything") == 0

    def test_subsequence_matches(self) -> None:
        assert fuzzy_score("chr", "google-chrome-stable") is not None
        assert fuzzy_score("gcs", "google-chrome-stable") is not None

    def test_non_subsequence_does_not_match(self) -> None:
        assert fuzzy_score("chr", "docker.io") is None
        assert fuzzy_score("rch", "chrome") is None

    def test_case_insensitive(self) -> None:
        assert fuzzy_score("CHR", "chrome") == fuzzy_score("chr", "Chrome")

    def test_prefix_and_contiguous_bonus(self) -> None:
        # 1 + 10 prefix, then two contiguous matches at 1 + 5 each
        assert fuzzy_score("chr", "chrome") == 23

    def test_prefix_beats_word_start(self) -> None:
        assert fuzzy_score("chr", "chrome") > fuzzy_score("chr", "google-chrome")

    def test_word_start_beats_mid_word(self) -> None:
        assert fuzzy_score("chr", "google-chrome") > fuzzy_score("chr", "archer")

    def test_gaps_cost(self) -> None:
        assert fuzzy_score("ab", "ab") > fuzzy_score("ab", "a-b") > fuzzy_score("ab", "a----b")

    def test_gap_penalty_is_capped(self) -> None:
        assert fuzzy_score("ab", "a" + "x" * 50 + "b") == fuzzy_score("ab", "axxxxxb")


class TestViewConfig:
    """Tests for ViewConfig and its enums."""

    def test_defaults(self) -> None:
        config = ViewConfig()

        assert config.source_filter is None
        assert config.kind_filter == KindFilter.ALL
        assert config.search_text == ""
        assert config.sort_key == SortKey.SIZE
        assert config.sort_direction == SortDirection.DESC

    def test_with_sources(self) -> None:
        config = ViewConfig().with_sources([PackageSource.SNAP])

        assert config.source_filter == frozenset({PackageSource.SNAP})
        assert config.with_sources([]).source_filter is None
        assert config.with_sources(None).source_filter is None

    def test_kind_filter_cycles(self) -> None:
        assert KindFilter.ALL.next() == KindFilter.GUI
        assert KindFilter.GUI.next() == KindFilter.CLI
        assert KindFilter.CLI.next() == KindFilter.ALL

    @pytest.mark.parametrize(
        ("kind_filter", "kind", "expected"),
        [
            (KindFilter.ALL, AppKind.UNKNOWN, True),
            (KindFilter.GUI, AppKind.GUI, True),
            (KindFilter.GUI, AppKind.UNKNOWN, False),
            (KindFilter.CLI, AppKind.CLI, True),
            (KindFilter.CLI, AppKind.GUI, False),
        ],
    )
    def test_kind_filter_matches(
        self, kind_filter: KindFilter, kind: AppKind, expected: bool
    ) -> None:
        assert kind_filter.matches(kind) is expected

    def test_sort_direction_toggles(self) -> None:
        assert SortDirection.DESC.toggled() == SortDirection.ASC
        assert SortDirection.ASC.toggled() == SortDirection.DESC


class TestQuery:
    """Tests for query."""

    def test_default_order_is_size_descending(self, sample_packages: list[Package]) -> None:
        result = query(sample_packages, ViewConfig())

        assert _names(result) == [
            "vlc",
            "Spotify",
            "google-chrome-stable",
            "docker.io",
            "mystery",
            "libfoo-dev",
        ]

    def test_size_ascending(self, sample_packages: list[Package]) -> None:
        result = query(sample_packages, ViewConfig(sort_direction=SortDirection.ASC))

        assert _names(result)[:2] == ["libfoo-dev", "mystery"]
        assert _names(result)[-1] == "vlc"

    def test_ties_break_by_ascending_name(self) -> None:
        """Equal sizes order by name in both directions."""
        packages = [
            make_package("zsh", size_mib=3),
            make_package("Bash", size_mib=3),
            make_package("fish", size_mib=3),
        ]

        for direction in SortDirection:
            result = query(packages, ViewConfig(sort_direction=direction))
            assert _names(result) == ["Bash", "fish", "zsh"]

    def test_sort_by_name(self, sample_packages: list[Package]) -> None:
        config = ViewConfig(sort_key=SortKey.NAME, sort_direction=SortDirection.ASC)

        result = query(sample_packages, config)

        assert _names(result) == [
            "docker.io",
            "google-chrome-stable",
            "libfoo-dev",
            "mystery",
            "Spotify",
            "vlc",
        ]

    def test_sort_by_source(self, sample_packages: list[Package]) -> None:
        config = ViewConfig(sort_key=SortKey.SOURCE, sort_direction=SortDirection.ASC)

        result = query(sample_packages, config)

        assert [pkg.source for pkg in result] == [
            PackageSource.APT,
            PackageSource.APT,
            PackageSource.APT,
            PackageSource.APT,
            PackageSource.SNAP,
            PackageSource.FLATPAK,
        ]
        assert _names(result)[:4] == [
            "docker.io",
            "google-chrome-stable",
            "libfoo-dev",
            "mystery",
        ]

    def test_search_drops_non_matches(self, sample_packages: list[Package]) -> None:
        result = query(sample_packages, ViewConfig(search_text="chr"))

        assert _names(result) == ["google-chrome-stable"]

    def test_search_score_does_not_override_sort(self, sample_packages: list[Package]) -> None:
        """A better match that is smaller still sorts after a bigger one."""
        packages = [*sample_packages, make_package("chrony", size_mib=1)]

        result = query(packages, ViewConfig(search_text="chr"))

        assert _names(result) == ["google-chrome-stable", "chrony"]

    def test_blank_search_shows_everything(self, sample_packages: list[Package]) -> None:
        assert len(query(sample_packages, ViewConfig(search_text="   "))) == 6

    def test_search_matches_flatpak_application_id(self) -> None:
        firefox = make_package(
            "Firefox", PackageSource.FLATPAK, local_id="org.mozilla.firefox"
        )
        apt_pkg = make_package("mozilla-common-data", local_id="mozilla-common-data")

        result = query([firefox, make_package("vim")], ViewConfig(search_text="mozilla"))

        assert _names(result) == ["Firefox"]
        assert query([apt_pkg], ViewConfig(search_text="mozilla")) == [apt_pkg]

    def test_search_matches_description_substring(self, sample_packages: list[Package]) -> None:
        result = query(sample_packages, ViewConfig(search_text="streaming"))

        assert _names(result) == ["Spotify"]

    @pytest.mark.parametrize(
        ("kind_filter", "expected"),
        [
            (KindFilter.GUI, ["vlc", "Spotify", "google-chrome-stable"]),
            (KindFilter.CLI, ["docker.io", "libfoo-dev"]),
        ],
    )
    def test_kind_filter(
        self,
        sample_packages: list[Package],
        kind_filter: KindFilter,
        expected: list[str],
    ) -> None:
        assert _names(query(sample_packages, ViewConfig(kind_filter=kind_filter))) == expected

    def test_unknown_kind_only_under_all(self, sample_packages: list[Package]) -> None:
        for kind_filter in (KindFilter.GUI, KindFilter.CLI):
            result = query(sample_packages, ViewConfig(kind_filter=kind_filter))
            assert "mystery" not in _names(result)

    def test_source_filter(self, sample_packages: list[Package]) -> None:
        config = ViewConfig().with_sources([PackageSource.SNAP, PackageSource.FLATPAK])

        assert _names(query(sample_packages, config)) == ["vlc", "Spotify"]

    def test_filters_compose(self, sample_packages: list[Package]) -> None:
        config = ViewConfig(kind_filter=KindFilter.CLI, search_text="dock").with_sources(
            [PackageSource.APT]
        )

        assert _names(query(sample_packages, config)) == ["docker.io"]

    def test_is_deterministic(self, sample_packages: list[Package]) -> None:
        config = ViewConfig(search_text="o", sort_key=SortKey.SOURCE)

        first = query(sample_packages, config)
        second = query(list(reversed(sample_packages)), config)

        assert first == second
        assert query(first, config) == first

    def test_does_not_modify_input(self, sample_packages: list[Package]) -> None:
        original = list(sample_packages)

        query(sample_packages, ViewConfig(sort_key=SortKey.NAME))

        assert sample_packages == original

    def test_empty_input(self) -> None:
        assert query([], ViewConfig(search_text="x")) == []
