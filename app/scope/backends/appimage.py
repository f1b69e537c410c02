"""AppImage backend implementation.

AppImages have no central registry: installed applications are the
self-contained executables found in well-known drop directories.
"""

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from scope.backends.base import Backend, DiagnosticSink
from scope.core.paths import get_desktop_entries_dir
from scope.models.outcome import FailureKind, Outcome, failed, succeeded, unsupported
from scope.models.package import AppKind, Package, PackageSource

logger = logging.getLogger(__name__)

_ELF_MAGIC = b"\x7fELF"

# AppImage type 1 and type 2 carry "AI" plus the type byte at offset 8
_APPIMAGE_MAGICS: frozenset[bytes] = frozenset({b"AI\x01", b"AI\x02"})

_EXTENSION_PATTERN = re.compile(r"\.appimage$", re.IGNORECASE)

# Version and architecture suffixes stripped from file names
_NAME_SUFFIX_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[-_]v?\d+\.\d+.*$"),
    re.compile(r"[-_](x86[-_]64|amd64|aarch64|arm64|i386|i686).*$", re.IGNORECASE),
    re.compile(r"[-_]linux.*$", re.IGNORECASE),
)

_VERSION_PATTERN = re.compile(r"[-_]v?(\d+(?:\.\d+)+)")


def default_search_dirs(home: Path | None = None) -> list[Path]:
    """Return the directories AppImages are commonly dropped into.

    Args:
        home: Home directory override (defaults to the current user's).

    Returns:
        List of candidate directories; missing ones are skipped at scan time.
    """
    home = home or Path.home()
    return [
        Path("/opt"),
        Path("/usr/local/bin"),
        home / "Applications",
        home / "apps",
        home / ".local" / "bin",
        home / "AppImages",
        home / "Downloads",
    ]


class AppImageBackend(Backend):
    """Backend for AppImage files.

    Args:
        search_dirs: Directories to search. Defaults to default_search_dirs().
        max_depth: How many directory levels to descend below each root.
        desktop_dir: Directory with per-user desktop entries to clean up
            on uninstall. Defaults to ~/.local/share/applications.
    """

    def __init__(
        self,
        *,
        search_dirs: list[Path] | None = None,
        max_depth: int = 3,
        desktop_dir: Path | None = None,
        list_timeout: float = 60.0,
        mutation_timeout: float = 300.0,
    ) -> None:
        super().__init__(list_timeout=list_timeout, mutation_timeout=mutation_timeout)
        self._search_dirs = search_dirs if search_dirs is not None else default_search_dirs()
        self._max_depth = max_depth
        self._desktop_dir = desktop_dir

    @property
    def source(self) -> PackageSource:
        """Return APPIMAGE as the package source."""
        return PackageSource.APPIMAGE

    def is_available(self) -> bool:
        """Always available; the backend only reads the filesystem."""
        return True

    def enumerate(self, on_diagnostic: DiagnosticSink | None = None) -> Iterator[Package]:
        """Yield one package per AppImage found in the search directories."""
        seen: set[Path] = set()

        for root in self._search_dirs:
            if not root.is_dir():
                continue

            for path in self._walk(root, self._max_depth):
                if not self._is_appimage(path):
                    continue

                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)

                package = self._to_package(resolved, on_diagnostic)
                if package is not None:
                    yield package

    def _walk(self, directory: Path, depth: int) -> Iterator[Path]:
        """Yield regular files below a directory, not following symlinks."""
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            return

        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_file():
                yield entry
            elif entry.is_dir() and depth > 1:
                yield from self._walk(entry, depth - 1)

    @staticmethod
    def _is_appimage(path: Path) -> bool:
        """Check the file extension, then the ELF header and AppImage magic."""
        if _EXTENSION_PATTERN.search(path.name):
            return True

        try:
            with path.open("rb") as f:
                header = f.read(16)
            mode = path.stat().st_mode
        except OSError:
            return False

        return (
            len(header) == 16
            and header[:4] == _ELF_MAGIC
            and header[8:11] in _APPIMAGE_MAGICS
            and mode & 0o111 != 0
        )

    def _to_package(self, path: Path, on_diagnostic: DiagnosticSink | None) -> Package | None:
        try:
            size_bytes = path.stat().st_size
        except OSError as e:
            self._skip(str(path), f"cannot stat: {e}", on_diagnostic)
            return None

        return Package(
            source=PackageSource.APPIMAGE,
            local_id=str(path),
            name=extract_name(path.name),
            version=extract_version(path.name),
            size_bytes=size_bytes,
            # AppImages bundle desktop applications
            kind=AppKind.GUI,
            description=f"AppImage at {path}",
            install_path=str(path),
        )

    def uninstall(self, package: Package) -> Outcome:
        """Delete the AppImage file and desktop entries that launch it."""
        path = Path(package.install_path or package.local_id)

        logger.info("Deleting AppImage %s", path)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("AppImage %s was already removed", path)
        except PermissionError as e:
            return failed(FailureKind.PERMISSION_DENIED, str(e))
        except OSError as e:
            return failed(FailureKind.PROCESS_FAILURE, str(e))

        removed = self._remove_desktop_entries(path)
        message = "Deleted"
        if removed:
            message += f" (and {removed} desktop entr{'y' if removed == 1 else 'ies'})"
        return succeeded(message)

    def _remove_desktop_entries(self, path: Path) -> int:
        """Remove per-user desktop entries that reference the file.

        Returns:
            Number of entries removed.
        """
        desktop_dir = self._desktop_dir or get_desktop_entries_dir()
        if not desktop_dir.is_dir():
            return 0

        removed = 0
        for entry in desktop_dir.glob("*.desktop"):
            try:
                if str(path) in entry.read_text(encoding="utf-8", errors="replace"):
                    entry.unlink()
                    removed += 1
            except OSError as e:
                logger.warning("Could not remove desktop entry %s: %s", entry, e)
        return removed

    def check_update(self, package: Package) -> Outcome:
        """AppImages have no central update mechanism."""
        return unsupported("AppImages cannot be checked for updates")

    def update(self, package: Package) -> Outcome:
        """AppImages have no central update mechanism."""
        return unsupported("AppImage updates are not supported")


def extract_name(filename: str) -> str:
    """Derive an application name from an AppImage file name.

    Example:
        >>> extract_name("Obsidian-1.5.3-x86_64.AppImage")
        'Obsidian'
    """
    name = _EXTENSION_PATTERN.sub("", filename)
    stem = name
    for pattern in _NAME_SUFFIX_PATTERNS:
        name = pattern.sub("", name)
    return name or stem or filename


def extract_version(filename: str) -> str:
    """Derive a version from an AppImage file name, or "unknown"."""
    match = _VERSION_PATTERN.search(_EXTENSION_PATTERN.sub("", filename))
    return match.group(1) if match else "unknown"
