"""Tests for the process entry point and its exit codes."""

from unittest.mock import patch

import click
import pytest

from mingw_dl import __main__ as entry
from mingw_dl.exceptions import FetchError


def _exit_code(app_side_effect=None, app_return=None) -> int:
    with patch.object(entry, "app", side_effect=app_side_effect, return_value=app_return):
        with pytest.raises(SystemExit) as exc_info:
            entry.main()
    return exc_info.value.code


class TestMain:
    def test_success_exits_zero(self):
        assert _exit_code(app_return=None) == 0

    def test_command_exit_code_is_kept(self):
        assert _exit_code(app_return=1) == 1

    def test_app_runs_outside_standalone_mode(self):
        with patch.object(entry, "app", return_value=0) as app:
            with pytest.raises(SystemExit):
                entry.main()
        app.assert_called_once_with(standalone_mode=False)

    def test_application_error_exits_one(self, capsys):
        assert _exit_code(FetchError("Could not fetch releases: refused")) == 1
        assert "Could not fetch releases" in capsys.readouterr().out

    def test_unexpected_error_exits_one(self):
        assert _exit_code(RuntimeError("boom")) == 1

    def test_usage_error_uses_click_exit_code(self):
        assert _exit_code(click.UsageError("No such command 'x'.")) == 2

    def test_ctrl_c_exits_130(self):
        abort = click.exceptions.Abort()
        abort.__cause__ = KeyboardInterrupt()
        assert _exit_code(abort) == 130

    def test_declined_prompt_exits_one(self):
        assert _exit_code(click.exceptions.Abort()) == 1
