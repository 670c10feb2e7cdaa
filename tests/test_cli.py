"""Tests for the mailsbe command line."""

import re

import pytest
from click.testing import CliRunner

from mailsbe.cli import cli
from mailsbe.config import load_settings

from conftest import OWNER, PIXEL_BASE


@pytest.fixture
def runner(tmp_path, monkeypatch):
    # No .env or config.yaml from the working tree
    monkeypatch.chdir(tmp_path)
    load_settings.cache_clear()
    yield CliRunner(env={
        "MAILSBE_BACKEND": "sql",
        "MAILSBE_BACKEND_URL": f"sqlite:///{tmp_path / 'cli.db'}",
        "MAILSBE_ENDPOINT_BASE_URL": PIXEL_BASE,
        "MAILSBE_LOG_CONSOLE_OUTPUT": "false",
        "MAILSBE_OWNER": OWNER,
    })
    load_settings.cache_clear()


def invoke(runner, *args):
    return runner.invoke(cli, list(args), obj={}, catch_exceptions=False)


def create(runner, email="a@x.com", description="invoice"):
    result = invoke(runner, "create", "--email", email, "--description", description)
    assert result.exit_code == 0, result.output
    email_id = int(re.search(r"ID: (\d+)", result.output).group(1))
    token = re.search(r"Tracking token: (\w+)", result.output).group(1)
    return email_id, token


class TestCli:
    """Tests for the CLI commands."""

    def test_create_prints_pixel(self, runner):
        result = invoke(runner, "create", "--email", "a@x.com", "--description", "invoice")

        assert result.exit_code == 0
        assert f"Pixel URL: {PIXEL_BASE}?text=" in result.output
        assert '<img src="' in result.output

    def test_create_invalid_email(self, runner):
        result = invoke(runner, "create", "--email", "nope")

        assert result.exit_code == 1
        assert "Invalid recipient address" in result.output

    def test_list_empty(self, runner):
        result = invoke(runner, "list")

        assert result.exit_code == 0
        assert "No emails tracked yet." in result.output

    def test_open_then_list(self, runner):
        email_id, token = create(runner)

        first = invoke(runner, "open", token)
        second = invoke(runner, "open", token)
        listed = invoke(runner, "list")

        assert "Outcome: marked" in first.output
        assert "Outcome: already_seen" in second.output
        assert "a@x.com" in listed.output
        assert "yes" in listed.output

    def test_open_unknown_token(self, runner):
        result = invoke(runner, "open", "missing")

        assert "Outcome: not_found" in result.output

    def test_show(self, runner):
        email_id, token = create(runner)

        result = invoke(runner, "show", str(email_id))

        assert result.exit_code == 0
        assert f"Pixel URL: {PIXEL_BASE}?text={token}" in result.output
        assert "Seen: no" in result.output
        assert f'Snippet: <img src="{PIXEL_BASE}?text={token}"' in result.output

    def test_show_other_owner(self, runner):
        email_id, _ = create(runner)

        result = invoke(runner, "show", "--owner", "user-bob", str(email_id))

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show_unknown_uuid(self, runner):
        result = invoke(runner, "show", "5b0e7c1e-2f4a-4d8e-9c61-0a3f2b7d9e10")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete(self, runner):
        email_id, _ = create(runner)

        result = invoke(runner, "delete", "--yes", str(email_id))

        assert result.exit_code == 0
        assert f"Email {email_id} deleted." in result.output
        assert "No emails tracked yet." in invoke(runner, "list").output

    def test_remote_backend_needs_credential(self, runner):
        result = runner.invoke(
            cli, ["list"], obj={},
            env={"MAILSBE_BACKEND": "rest", "MAILSBE_BACKEND_URL": "https://backend.example.com"},
        )

        assert result.exit_code == 1
        assert "SERVICE_CREDENTIAL" in result.output

    def test_unsupported_config_file(self, runner, tmp_path):
        config = tmp_path / "settings.ini"
        config.write_text("[mailsbe]\n")

        result = runner.invoke(cli, ["--config", str(config), "list"], obj={})

        assert result.exit_code == 1
        assert "Unsupported config file format" in result.output
