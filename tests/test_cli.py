from __future__ import annotations

import hashlib
import json

import pytest

from s1singularity import cli
from s1singularity.cfg import ENV_API_ENDPOINT, ENV_API_TOKEN
from s1singularity.io.state import load_state

from fakes import FakeResponse, envelope, package_json

PAYLOAD = b"cli-download" * 10


@pytest.fixture
def wire(monkeypatch, make_client):
    monkeypatch.setenv(ENV_API_TOKEN, "s3cr3t-token")
    monkeypatch.setenv(ENV_API_ENDPOINT, "usea1.example.net")

    def _wire(responses):
        client, session = make_client(responses)
        monkeypatch.setattr(cli, "_make_client", lambda cfg: client)
        return session

    return _wire


def _router(method, url, kw):
    if "/update/agent/download/" in url:
        return FakeResponse(content=PAYLOAD)
    return FakeResponse(
        json_body=envelope([package_json("p1", sha1=hashlib.sha1(PAYLOAD).hexdigest(), size=len(PAYLOAD))])
    )


def test_packages_prints_json(wire, capsys):
    session = wire([FakeResponse(json_body=envelope([package_json("p1"), package_json("p2")]))])

    cli.main(["packages", "--os-type", "windows,linux", "--status", "ga"])

    out = json.loads(capsys.readouterr().out)
    assert [p["id"] for p in out["packages"]] == ["p1", "p2"]
    assert session.calls[0]["params"] == {"osTypes": "windows,linux", "status": "ga"}


def test_sites_bool_filter(wire, capsys):
    session = wire([FakeResponse(json_body=envelope({"allSites": {}, "sites": [{"id": "s1"}]}))])

    cli.main(["sites", "--is-default", "false"])

    assert json.loads(capsys.readouterr().out)["sites"][0]["id"] == "s1"
    assert session.calls[0]["params"] == {"isDefault": "false"}


def test_groups_csv_export(wire, tmp_path, capsys):
    wire([FakeResponse(json_body=envelope([{"id": "g1", "name": "Default"}]))])
    out = tmp_path / "groups.csv"

    cli.main(["groups", "--csv", str(out)])

    assert "Rows: 1" in capsys.readouterr().out
    assert out.read_text(encoding="utf-8").startswith("id,")


def test_group_not_found_exits_nonzero(wire, capsys):
    wire([FakeResponse(json_body=envelope([]))])

    with pytest.raises(SystemExit) as ei:
        cli.main(["group", "--id", "g404"])

    assert ei.value.code == 1
    assert "Group Not Found" in capsys.readouterr().err


def test_missing_credentials_exit_nonzero(monkeypatch, capsys):
    monkeypatch.delenv(ENV_API_TOKEN, raising=False)
    monkeypatch.delenv(ENV_API_ENDPOINT, raising=False)

    with pytest.raises(SystemExit):
        cli.main(["packages"])

    err = capsys.readouterr().err
    assert "Missing API Token Configuration" in err
    assert "Missing API Endpoint Configuration" in err


def test_download_lifecycle(wire, tmp_path, capsys):
    wire(_router)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        "package_download:\n"
        "  package_id: p1\n"
        "  site_id: s1\n"
        "  local_filename: agent.msi\n"
        f"  local_folder: {tmp_path / 'out'}\n",
        encoding="utf-8",
    )
    state = tmp_path / "state.json"
    args = ["--config", str(cfg), "--state", str(state)]

    cli.main(["download", "plan", *args])
    assert "Plan: create" in capsys.readouterr().out

    cli.main(["download", "apply", *args])
    assert (tmp_path / "out" / "agent.msi").read_bytes() == PAYLOAD
    assert load_state(state).sha1 == hashlib.sha1(PAYLOAD).hexdigest()

    cli.main(["download", "plan", *args])
    assert "Plan: update in place" in capsys.readouterr().out

    cli.main(["download", "destroy", *args])
    assert not (tmp_path / "out" / "agent.msi").exists()
    assert load_state(state) is None


def test_plan_sees_file_deleted_by_hand(wire, tmp_path, capsys):
    wire(_router)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        "package_download:\n"
        "  package_id: p1\n"
        "  site_id: s1\n"
        "  local_filename: agent.msi\n"
        f"  local_folder: {tmp_path}\n",
        encoding="utf-8",
    )
    args = ["--config", str(cfg), "--state", str(tmp_path / "state.json")]
    cli.main(["download", "apply", *args])
    (tmp_path / "agent.msi").unlink()
    capsys.readouterr()

    cli.main(["download", "plan", *args])

    assert "Plan: create" in capsys.readouterr().out


def test_corrupt_state_file_exits_nonzero(wire, tmp_path, capsys):
    wire([])
    state = tmp_path / "state.json"
    state.write_text("{not json", encoding="utf-8")
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("provider: {}\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        cli.main(["download", "refresh", "--config", str(cfg), "--state", str(state)])

    assert str(state) in capsys.readouterr().err
