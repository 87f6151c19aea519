from __future__ import annotations

import os

import pytest
import yaml

from s1singularity.cfg import (
    ENV_API_ENDPOINT,
    ENV_API_TOKEN,
    ProviderConfig,
    load_package_download_config,
    load_provider_config,
    load_yaml,
)
from s1singularity.errors import ConfigError


def test_block_values_used_without_env():
    cfg = load_provider_config(
        {"provider": {"api_token": "t1", "api_endpoint": "h1.example.net", "max_pages": 5}}, env={}
    )
    assert (cfg.api_token, cfg.api_endpoint) == ("t1", "h1.example.net")
    assert cfg.max_pages == 5
    assert cfg.timeout_s == 60.0


def test_env_overrides_block():
    cfg = load_provider_config(
        {"provider": {"api_token": "t1", "api_endpoint": "h1.example.net"}},
        env={ENV_API_TOKEN: "t-env", ENV_API_ENDPOINT: "h-env.example.net"},
    )
    assert (cfg.api_token, cfg.api_endpoint) == ("t-env", "h-env.example.net")


def test_missing_token_and_endpoint_are_reported_together():
    with pytest.raises(ConfigError) as ei:
        load_provider_config({}, env={})

    summaries = [d.summary for d in ei.value.diagnostics]
    assert summaries == ["Missing API Token Configuration", "Missing API Endpoint Configuration"]


def test_invalid_timeout():
    with pytest.raises(ConfigError):
        load_provider_config({"provider": {"timeout_s": 0}}, env={ENV_API_TOKEN: "t", ENV_API_ENDPOINT: "h"})


def test_repr_masks_token():
    assert "secret" not in repr(ProviderConfig(api_token="secret", api_endpoint="h"))


def test_package_download_block(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text(
        "package_download:\n"
        "  package_id: '225494730938493804'\n"
        "  site_id: '225494730938493805'\n"
        "  local_filename: agent.msi\n"
        f"  local_folder: {tmp_path}\n"
        "  file_mode: 0600\n"
        "  directory_mode: '0700'\n"
        "  overwrite_existing_file: false\n",
        encoding="utf-8",
    )

    cfg = load_package_download_config(load_yaml(p))

    assert cfg.package_id == "225494730938493804"
    # unquoted YAML octal-looking values still mean the octal mode
    assert cfg.file_mode == "0600"
    assert cfg.directory_mode == "0700"
    assert cfg.local_folder == str(tmp_path)
    assert cfg.overwrite_existing_file is False


def test_package_download_defaults():
    cfg = load_package_download_config(
        {"package_download": {"package_id": "p1", "site_id": "s1", "local_filename": "a.msi"}}
    )
    assert cfg.local_folder == os.getcwd()
    assert (cfg.directory_mode, cfg.file_mode) == ("0755", "0644")
    assert cfg.overwrite_existing_file is True


def test_package_download_missing_keys():
    with pytest.raises(ConfigError):
        load_package_download_config({})
    with pytest.raises(ConfigError):
        load_package_download_config({"package_download": {"package_id": "p1"}})


def test_package_download_bad_mode():
    d = yaml.safe_load(
        "package_download: {package_id: p1, site_id: s1, local_filename: a, file_mode: 'rw-r--r--'}"
    )
    with pytest.raises(ConfigError) as ei:
        load_package_download_config(d)
    assert ei.value.diagnostics[0].summary == "Invalid Value Used"
