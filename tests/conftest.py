"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules: canned
package manager output, sample packages, and an in-memory backend.
"""

import threading
from collections.abc import Iterable, Iterator
from pathlib import Path

import pytest
from scope.backends.base import Backend, BackendError, DiagnosticSink, ParseDiagnostic
from scope.models.outcome import FailureKind, Outcome, failed, succeeded
from scope.models.package import AppKind, Package, PackageId, PackageSource

MIB = 1024 * 1024


class FakeBackend(Backend):
    """In-memory backend recording every call it receives.

    Args:
        source: Package source to impersonate.
        packages: Packages returned by enumerate().
        available: Value returned by is_available().
        error: Exception raised by enumerate() after yielding ``packages``.
        updates: Available version per local id (missing = up to date).
        outcomes: Outcome returned by uninstall/update per local id.
        gate: Event enumerate() waits on before yielding anything.
        diagnostics: Records reported as skipped before yielding packages.
    """

    def __init__(
        self,
        source: PackageSource,
        packages: Iterable[Package] = (),
        *,
        available: bool = True,
        error: Exception | None = None,
        updates: dict[str, str] | None = None,
        outcomes: dict[str, Outcome] | None = None,
        gate: threading.Event | None = None,
        diagnostics: Iterable[str] = (),
    ) -> None:
        super().__init__()
        self._source = source
        self.packages = list(packages)
        self.available = available
        self.error = error
        self.updates = dict(updates or {})
        self.outcomes = dict(outcomes or {})
        self.gate = gate
        self.diagnostics = list(diagnostics)
        self.calls: list[tuple[str, str]] = []

    @property
    def source(self) -> PackageSource:
        return self._source

    def is_available(self) -> bool:
        return self.available

    def enumerate(self, on_diagnostic: DiagnosticSink | None = None) -> Iterator[Package]:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        for record in self.diagnostics:
            if on_diagnostic is not None:
                on_diagnostic(ParseDiagnostic(self._source, record, "malformed"))
        yield from self.packages
        if self.error is not None:
            raise self.error

    def uninstall(self, package: Package) -> Outcome:
        self.calls.append(("uninstall", package.local_id))
        return self.outcomes.get(package.local_id, succeeded())

    def check_update(self, package: Package) -> Outcome:
        self.calls.append(("check_update", package.local_id))
        return succeeded(version=self.updates.get(package.local_id))

    def update(self, package: Package) -> Outcome:
        self.calls.append(("update", package.local_id))
        return self.outcomes.get(package.local_id, succeeded())


def make_package(
    name: str,
    source: PackageSource = PackageSource.APT,
    *,
    size_mib: float = 1,
    kind: AppKind = AppKind.UNKNOWN,
    version: str = "1.0",
    local_id: str | None = None,
    description: str = "",
) -> Package:
    """Build a package with sensible defaults."""
    return Package(
        source=source,
        local_id=local_id or name,
        name=name,
        version=version,
        size_bytes=int(size_mib * MIB),
        kind=kind,
        description=description,
    )


def pid(source: PackageSource, local_id: str) -> PackageId:
    return PackageId(source, local_id)


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories at a temporary home so no real config is read."""
    home = tmp_path / "home"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    return home


@pytest.fixture
def sample_packages() -> list[Package]:
    """Mixed-source inventory used by query, app and CLI tests."""
    return [
        make_package("vlc", PackageSource.SNAP, size_mib=710, kind=AppKind.GUI),
        make_package(
            "Spotify",
            PackageSource.FLATPAK,
            size_mib=636,
            kind=AppKind.GUI,
            local_id="com.spotify.Client",
            description="Music streaming service",
        ),
        make_package("google-chrome-stable", size_mib=104, kind=AppKind.GUI),
        make_package("docker.io", size_mib=90, kind=AppKind.CLI),
        make_package("libfoo-dev", size_mib=2, kind=AppKind.CLI),
        make_package("mystery", size_mib=5),
    ]


@pytest.fixture
def fake_backends(sample_packages: list[Package]) -> dict[PackageSource, FakeBackend]:
    """One fake backend per source, populated from sample_packages."""
    return {
        source: FakeBackend(source, [p for p in sample_packages if p.source == source])
        for source in PackageSource
    }


@pytest.fixture
def failing_backend() -> FakeBackend:
    """A Snap backend whose listing fails after one package."""
    return FakeBackend(
        PackageSource.SNAP,
        [make_package("partial", PackageSource.SNAP)],
        error=BackendError("snap list failed: cannot communicate with server"),
    )


@pytest.fixture
def permission_denied() -> Outcome:
    return failed(FailureKind.PERMISSION_DENIED, "Not authorized")


@pytest.fixture
def mock_dpkg_output() -> str:
    """Sample dpkg-query output (status, name, version, KiB, summary, depends)."""
    return (
        "ii \tfirefox\t128.0\t204800\tMozilla Firefox web browser\tlibgtk-3-0, libc6\n"
        "ii \tneovim\t0.9.5\t51200\tVim-based text editor\tlibc6\n"
        "ii \tlibgtk-3-0\t3.24.41\t10240\tGTK graphical toolkit\tlibc6\n"
        "rc \told-tool\t1.0\t100\tRemoved, config files left\t\n"
        "ii \tcurl\t8.5.0\t512\tCommand line tool for transferring data\tlibc6\n"
    )


@pytest.fixture
def mock_apt_mark_output() -> str:
    """Sample apt-mark showauto output."""
    return "libgtk-3-0\n"


@pytest.fixture
def mock_snap_output() -> str:
    """Sample snap list output."""
    return """Name               Version          Rev    Tracking         Publisher   Notes
core22             20240111         1122   latest/stable    canonical✓  base
firefox            128.0-2          4451   latest/stable    mozilla✓    -
gnome-42-2204      0+git.510a601    176    latest/stable    canonical✓  -
gtk-common-themes  0.1-81-g442e511  1535   latest/stable    canonical✓  -
snapd              2.61.3           21184  latest/stable    canonical✓  snapd
vlc                3.0.20           3777   latest/stable    videolan✓   -"""


@pytest.fixture
def mock_flatpak_output() -> str:
    """Sample flatpak list output (name, application, version, size, description)."""
    return (
        "Spotify\tcom.spotify.Client\t1.2.31.1205\t1.2 GB\tMusic streaming service\n"
        "Firefox\torg.mozilla.firefox\t128.0\t500 MB\tMozilla Firefox web browser\n"
        "Calculator\torg.gnome.Calculator\t46.1\t50 MB\tGNOME Calculator\n"
        "\tio.github.Unnamed\t0.1\t\t\n"
    )


@pytest.fixture
def mock_empty_output() -> str:
    """Empty output for testing edge cases."""
    return ""
