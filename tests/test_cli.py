import json
import sys

import pytest

import scripts.accounts as accounts
from directory_accounts.config import DirectoryConfig
from directory_accounts.core.directory import DirectoryLookupError
from directory_accounts.core.options import DirectoryCredential
from tests.fakes import BOB_DN, make_bob


@pytest.fixture(autouse=True)
def restore_sys_argv():
    """Make sure every test sees a clean CLI invocation."""
    original = sys.argv[:]
    yield
    sys.argv = original


@pytest.fixture
def cli_client(monkeypatch, fake_client, temp_audit_dir):
    """Wire the CLI to the fake directory without touching the environment."""
    cfg = DirectoryConfig(demo_mode=True, ldap_server="dc01", ldap_search_base="DC=example,DC=com")
    monkeypatch.setattr(accounts, "load_settings", lambda: cfg)
    monkeypatch.setattr(accounts, "build_client", lambda _cfg: fake_client)
    return fake_client


def read_events(temp_audit_dir):
    _, audit_file = temp_audit_dir
    return [json.loads(line) for line in audit_file.read_text().splitlines()]


def test_show_prints_record_json(cli_client, capsys):
    accounts.main(["show", "bob"])

    record = json.loads(capsys.readouterr().out)
    assert record["accountName"] == "bob"
    assert record["manager"]["name"] == "Alice Jones"


def test_show_unknown_identity_exits_nonzero(cli_client, capsys):
    with pytest.raises(SystemExit) as exc:
        accounts.main(["show", "ghost"])

    assert exc.value.code == 1
    assert "not found" in capsys.readouterr().err


def test_show_reports_partial_failures_as_warnings(cli_client, capsys):
    cli_client.errors["lookup_groups_by_references"] = DirectoryLookupError(BOB_DN, "timeout")

    accounts.main(["show", "bob"])

    captured = capsys.readouterr()
    assert "[show] Warning" in captured.err
    assert json.loads(captured.out)["groups"] is None


def test_disable_mutates_and_audits(cli_client, temp_audit_dir, capsys):
    accounts.main(["--operator", "alice", "disable", "bob"])

    assert cli_client.calls_to("set_enabled")[0][1] == (BOB_DN, False)
    assert "now Disabled" in capsys.readouterr().err
    event = read_events(temp_audit_dir)[0]
    assert event["event_type"] == "disable"
    assert event["operator"] == "alice"


def test_disable_is_idempotent(cli_client, temp_audit_dir, capsys):
    cli_client.add(make_bob(enabled=False))

    accounts.main(["disable", "bob"])

    assert cli_client.calls_to("set_enabled") == []
    assert "nothing to do" in capsys.readouterr().err
    assert read_events(temp_audit_dir)[0]["event_type"] == "disable_noop"


def test_enable_pass_thru_prints_verified_record(cli_client, capsys):
    cli_client.add(make_bob(enabled=False))

    accounts.main(["enable", "bob", "--pass-thru"])

    assert json.loads(capsys.readouterr().out)["enabled"] is True


def test_transition_failure_exits_nonzero_and_audits(cli_client, temp_audit_dir, capsys):
    with pytest.raises(SystemExit) as exc:
        accounts.main(["disable", "ghost"])

    assert exc.value.code == 1
    assert "[disable] Error" in capsys.readouterr().err
    event = read_events(temp_audit_dir)[0]
    assert event["success"] is False
    assert event["error_type"] == "IdentityNotFoundError"


def test_server_and_bind_overrides_reach_directory(cli_client):
    accounts.main([
        "--server", "dc02",
        "--bind-user", "EXAMPLE\\ops",
        "--bind-password", "pw",
        "disable", "bob",
    ])

    kwargs = cli_client.calls_to("set_enabled")[0][2]
    assert kwargs == {"server": "dc02", "credential": DirectoryCredential("EXAMPLE\\ops", "pw")}


def test_bind_user_without_password_is_rejected(cli_client, monkeypatch):
    monkeypatch.delenv("LDAP_ALT_BIND_PASSWORD", raising=False)

    with pytest.raises(SystemExit) as exc:
        accounts.main(["--bind-user", "EXAMPLE\\ops", "show", "bob"])

    assert exc.value.code == 2
    assert cli_client.calls == []


def test_no_command_prints_help(cli_client, capsys):
    accounts.main([])

    assert "usage" in capsys.readouterr().out.lower()
