"""Tests for the keygate command line."""

import logging

import pytest

from keygate.cli import main
from keygate.settings import get_settings


@pytest.fixture
def sqlite_env(tmp_path, monkeypatch):
    monkeypatch.setenv("KEYGATE_STORE_BACKEND", "sql")
    monkeypatch.setenv("KEYGATE_DATABASE_URL", f"sqlite:///{tmp_path / 'keygate.db'}")
    monkeypatch.setenv("KEYGATE_MONITOR_WORKERS", "0")
    monkeypatch.setenv("KEYGATE_LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    get_settings.cache_clear()


class TestCLI:
    def test_create_account_then_issue_key(self, sqlite_env, capsys):
        assert main(["create-account", "acct_cli", "--tier", "basic"]) == 0
        assert "Account acct_cli: basic (active)" in capsys.readouterr().out

        assert main(["issue-key", "acct_cli", "laptop"]) == 0
        out = capsys.readouterr().out
        assert "Key id:" in out
        assert "Key:    pk_" in out

    def test_issue_key_over_limit(self, sqlite_env, capsys):
        main(["create-account", "acct_free"])
        assert main(["issue-key", "acct_free", "first"]) == 0
        assert main(["issue-key", "acct_free", "second"]) == 1
        assert "API key" in capsys.readouterr().err

    def test_sweep(self, sqlite_env, capsys):
        assert main(["sweep"]) == 0
        assert "Removed 0 expired rate window records" in capsys.readouterr().out

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            main([])

    def test_memory_backend_is_refused(self, sqlite_env, monkeypatch, capsys):
        monkeypatch.setenv("KEYGATE_STORE_BACKEND", "memory")
        get_settings.cache_clear()
        assert main(["create-account", "acct_tmp"]) == 1
        assert main(["issue-key", "acct_tmp", "laptop"]) == 1
        assert main(["sweep"]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "KEYGATE_STORE_BACKEND=sql" in captured.err
