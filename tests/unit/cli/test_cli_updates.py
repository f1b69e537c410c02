"""Unit tests for check-updates command."""

import json
from unittest.mock import patch

from conftest import FakeBackend
from scope.cli.main import app
from scope.models.outcome import FailureKind, failed
from scope.models.package import PackageSource
from typer.testing import CliRunner

runner = CliRunner()

APT = PackageSource.APT


def _patch_backends(backends: dict[PackageSource, FakeBackend]):
    return patch(
        "scope.cli.commands.updates.get_backends",
        side_effect=lambda config, sources: {s: backends[s] for s in sources if s in backends},
    )


class TestCheckUpdatesCommand:
    """Tests for scope check-updates command."""

    def test_all_up_to_date(self, fake_backends) -> None:
        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates"])

        assert result.exit_code == 0
        assert "All packages are up to date." in result.stdout

    def test_lists_outdated(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates"])

        assert result.exit_code == 0
        assert "Available Updates" in result.stdout
        assert "docker.io" in result.stdout
        assert "1 update(s) available." in result.stdout
        assert fake_backends[APT].calls.count(("update", "docker.io")) == 0

    def test_json(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [p["id"] for p in data] == ["apt:docker.io"]
        assert data[0]["update_version"] == "27.0"

    def test_single_source(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates", "--source", "snap"])

        assert result.exit_code == 0
        assert "All packages are up to date." in result.stdout
        assert fake_backends[APT].calls == []

    def test_install_yes(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates", "--install", "--yes"])

        assert result.exit_code == 0
        assert "Updated 1 package(s)." in result.stdout
        assert ("update", "docker.io") in fake_backends[APT].calls

    def test_install_failure(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"
        fake_backends[APT].outcomes["docker.io"] = failed(FailureKind.PROCESS_FAILURE, "dpkg lock")

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates", "-i", "-y"])

        assert result.exit_code == 1
        assert "1 of 1 update(s) failed." in result.output

    def test_install_declined(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates", "--install"], input="n\n")

        assert result.exit_code == 0
        assert "1 update(s) available." in result.stdout
        assert ("update", "docker.io") not in fake_backends[APT].calls

    def test_install_confirmed(self, fake_backends) -> None:
        fake_backends[APT].updates["docker.io"] = "27.0"

        with _patch_backends(fake_backends):
            result = runner.invoke(app, ["check-updates", "--install"], input="y\n")

        assert result.exit_code == 0
        assert "will be updated" in result.stdout
        assert "Updated 1 package(s)." in result.stdout
