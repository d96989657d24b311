"""Command-line tests driven through Typer's CliRunner."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

import bdex.cli.app as cli_app
from bdex import __version__
from tests.conftest import FakeTransport, make_manifest_png, make_png

runner = CliRunner()

MANIFEST_URL = "https://i0.hdslb.com/bfs/album/abc123.png"
BLOCKS = [
    ("http://i0.hdslb.com/bfs/album/b1.png", b"hello "),
    ("http://i0.hdslb.com/bfs/album/b2.png", b"world"),
]


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Points the CLI at a temp config file and a fake transport."""
    transport = FakeTransport({MANIFEST_URL: make_manifest_png("hello.txt", BLOCKS)})
    monkeypatch.setattr(cli_app, "CONFIG_FILE", tmp_path / "config" / "config.ini")
    monkeypatch.setattr(cli_app, "HttpTransport", lambda *args, **kwargs: transport)
    return transport


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_show_config_lists_defaults(cli_env):
    result = runner.invoke(cli_app.app, ["--show-config"])
    assert result.exit_code == 0
    assert "max_workers = 8" in result.output


def test_download_writes_merged_file(cli_env, tmp_path):
    for url, content in BLOCKS:
        cli_env.responses[url] = make_png(content)
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    result = runner.invoke(cli_app.app, ["download", "bdex://abc123", str(out_dir)])

    assert result.exit_code == 0, result.output
    assert (out_dir / "hello.txt").read_bytes() == b"hello world"
    assert not (out_dir / "abc123").exists()
    assert cli_env.closed


def test_download_with_missing_blocks_exits_with_error(cli_env, tmp_path):
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    result = runner.invoke(
        cli_app.app, ["download", "abc123", str(out_dir), "-R", "2", "-w", "1"]
    )

    assert result.exit_code == 1
    assert "IncompleteDownloadError" in result.output
    assert not (out_dir / "hello.txt").exists()


def test_download_rejects_invalid_identifier(cli_env, tmp_path):
    result = runner.invoke(cli_app.app, ["download", "not/valid", str(tmp_path)])
    assert result.exit_code == 1
    assert "ConfigurationError" in result.output
    assert cli_env.calls == []


def test_conflicting_flags_exit_with_error(cli_env, tmp_path):
    result = runner.invoke(
        cli_app.app, ["download", "abc123", str(tmp_path), "-S", "--verify-blocks"]
    )
    assert result.exit_code == 1
    assert cli_env.calls == []


def test_inspect_shows_manifest(cli_env):
    result = runner.invoke(cli_app.app, ["inspect", "abc123"])
    assert result.exit_code == 0, result.output
    assert "hello.txt" in result.output
    assert cli_env.calls == [MANIFEST_URL]


def test_inspect_unknown_manifest_exits_with_error(cli_env):
    result = runner.invoke(cli_app.app, ["inspect", "zzz999"])
    assert result.exit_code == 1
    assert "ManifestError" in result.output
