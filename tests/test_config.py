"""Tests for run configuration and the INI config file."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bdex.exceptions import ConfigurationError
from bdex.models.config import DEFAULT_MIRROR_HOSTS, RunConfig
from bdex.storage import ConfigManager


@pytest.mark.parametrize(
    "raw",
    ["abc123", "bdex://abc123", "bdex://abc123/", "  abc123  ", "anything://abc123"],
)
def test_identifier_prefix_is_stripped(raw):
    assert RunConfig(identifier=raw).identifier == "abc123"


@pytest.mark.parametrize("raw", ["", "bdex://", "abc/123", "../etc", "a b"])
def test_invalid_identifier_is_rejected(raw):
    with pytest.raises(ValidationError, match="Invalid manifest identifier"):
        RunConfig(identifier=raw)


def test_defaults():
    config = RunConfig(identifier="abc")
    assert config.max_workers == 8
    assert config.retry_times == 8
    assert config.skip_hash is False
    assert config.keep_files is False
    assert config.mirror_hosts == DEFAULT_MIRROR_HOSTS
    assert config.manifest_url == "https://i0.hdslb.com/bfs/album/abc.png"


@pytest.mark.parametrize("workers", [0, 65, -1])
def test_worker_count_out_of_range(workers):
    with pytest.raises(ValidationError, match="between 1 and 64"):
        RunConfig(identifier="abc", max_workers=workers)


def test_retry_times_must_be_positive():
    with pytest.raises(ValidationError, match="at least 1"):
        RunConfig(identifier="abc", retry_times=0)


def test_template_requires_hash_placeholder():
    with pytest.raises(ValidationError, match="hash"):
        RunConfig(identifier="abc", manifest_url_template="https://cdn.test/x.png")


def test_skip_hash_conflicts_with_verify_blocks():
    with pytest.raises(ValidationError, match="simultaneously"):
        RunConfig(identifier="abc", skip_hash=True, verify_blocks=True)


def test_mirror_hosts_from_comma_string():
    config = RunConfig(identifier="abc", mirror_hosts="a.test, b.test ,c.test")
    assert config.mirror_hosts == ("a.test", "b.test", "c.test")


def test_ini_keys_exclude_per_run_fields():
    keys = RunConfig.get_ini_keys()
    assert "max_workers" in keys
    assert not keys & {"identifier", "destination", "config_path"}


def test_missing_config_file_uses_defaults(tmp_path):
    manager = ConfigManager(tmp_path / "missing.ini")
    assert manager.read_file_settings() == {}
    assert manager.load_config({"identifier": "abc"}).max_workers == 8


def test_config_file_values_are_applied(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text(
        "[DEFAULT]\n"
        "max_workers = 4\n"
        "retry_times = 3\n"
        "keep_files = yes\n"
        "stall_timeout = 2.5\n"
        "mirror_hosts = m1.test,m2.test,m3.test\n",
        encoding="utf-8",
    )

    config = ConfigManager(path).load_config({"identifier": "abc"})

    assert config.max_workers == 4
    assert config.retry_times == 3
    assert config.keep_files is True
    assert config.stall_timeout == 2.5
    assert config.mirror_hosts == ("m1.test", "m2.test", "m3.test")
    assert config.config_path == str(tmp_path)


def test_cli_options_override_config_file(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nmax_workers = 4\n", encoding="utf-8")

    config = ConfigManager(path).load_config({"identifier": "abc", "max_workers": 12})

    assert config.max_workers == 12


def test_non_numeric_value_raises_configuration_error(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nmax_workers = lots\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid value"):
        ConfigManager(path).load_config({"identifier": "abc"})


def test_out_of_range_value_raises_configuration_error(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nmax_workers = 500\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="validation failed"):
        ConfigManager(path).load_config({"identifier": "abc"})


def test_malformed_file_raises_configuration_error(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("max_workers = 4\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="parsing"):
        ConfigManager(path).read_file_settings()
