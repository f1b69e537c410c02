"""Unit tests for shell execution utilities."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from scope.utils.shell import CommandResult, command_exists, run_command, run_interactive


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success(self) -> None:
        assert CommandResult(stdout="", stderr="", returncode=0).success is True
        assert CommandResult(stdout="", stderr="", returncode=2).success is False

    def test_error_text_prefers_stderr(self) -> None:
        result = CommandResult(stdout="out", stderr="  E: locked\n", returncode=100)

        assert result.error_text == "E: locked"

    def test_error_text_falls_back_to_stdout(self) -> None:
        result = CommandResult(stdout="error: not installed\n", stderr="", returncode=1)

        assert result.error_text == "error: not installed"


class TestRunCommand:
    """Tests for run_command function."""

    @patch("scope.utils.shell.subprocess.run")
    def test_returns_result(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(stdout="ok\n", stderr="", returncode=0)

        result = run_command(["snap", "list"])

        assert result == CommandResult(stdout="ok\n", stderr="", returncode=0)

    @patch("scope.utils.shell.subprocess.run")
    def test_forces_c_locale_and_closes_stdin(self, mock_run: MagicMock) -> None:
        """Output stays parseable and commands never wait on a prompt."""
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)

        run_command(["dpkg-query", "-W"], timeout=5)

        kwargs = mock_run.call_args.kwargs
        assert kwargs["env"]["LC_ALL"] == "C.UTF-8"
        assert "PATH" in kwargs["env"]
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["timeout"] == 5
        assert kwargs["capture_output"] is True

    @patch("scope.utils.shell.subprocess.run")
    def test_decodes_lossily(self, mock_run: MagicMock) -> None:
        """Undecodable bytes are replaced instead of failing the whole call."""

        def fake_run(args: list[str], **kwargs: object) -> MagicMock:
            stdout = b"ok\nCaf\xff\n".decode(kwargs["encoding"], kwargs["errors"])
            return MagicMock(stdout=stdout, stderr="", returncode=0)

        mock_run.side_effect = fake_run

        result = run_command(["dpkg-query", "-W"])

        assert result.stdout == "ok\nCaf\ufffd\n"
        assert "text" not in mock_run.call_args.kwargs

    @patch("scope.utils.shell.subprocess.run")
    def test_timeout_propagates(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(["flatpak"], 60)

        with pytest.raises(subprocess.TimeoutExpired):
            run_command(["flatpak", "list"])

    def test_missing_executable(self) -> None:
        with pytest.raises(FileNotFoundError):
            run_command(["nonexistent_command_xyz_12345"])


class TestCommandExists:
    """Tests for command_exists function."""

    def test_existing(self) -> None:
        with patch("scope.utils.shell.shutil.which", return_value="/usr/bin/apt"):
            assert command_exists("apt") is True

    def test_missing(self) -> None:
        with patch("scope.utils.shell.shutil.which", return_value=None):
            assert command_exists("snap") is False


class TestRunInteractive:
    """Tests for run_interactive function."""

    @patch("scope.utils.shell.subprocess.run")
    def test_returns_exit_code(self, mock_run: MagicMock) -> None:
        """run_interactive returns the subprocess exit code."""
        mock_run.return_value = MagicMock(returncode=1)

        assert run_interactive(["false"]) == 1

    @patch("scope.utils.shell.subprocess.run")
    def test_does_not_capture_output(self, mock_run: MagicMock) -> None:
        """run_interactive does not capture stdout/stderr (inherits TTY)."""
        mock_run.return_value = MagicMock(returncode=0)

        run_interactive(["echo", "hello"])

        call_kwargs = mock_run.call_args
        assert "capture_output" not in call_kwargs.kwargs
        assert "stdout" not in call_kwargs.kwargs
        assert "stderr" not in call_kwargs.kwargs

    @patch("scope.utils.shell.subprocess.run")
    def test_inherits_environment(self, mock_run: MagicMock) -> None:
        """pip runs with the user's own locale and environment."""
        mock_run.return_value = MagicMock(returncode=0)

        run_interactive(["pip", "--version"])

        assert "env" not in mock_run.call_args.kwargs

    def test_raises_file_not_found(self) -> None:
        """run_interactive raises FileNotFoundError for missing commands."""
        with pytest.raises(FileNotFoundError):
            run_interactive(["nonexistent_command_xyz_12345"])
