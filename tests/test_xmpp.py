"""Tests for meetsite.xmpp: account listing from prosodyctl and data files."""

from meetsite.models import OutcomeStatus
from meetsite.tools import Toolbox
from meetsite.xmpp import list_xmpp_users, parse_prosodyctl_output, scan_account_files

from conftest import FakeRunner

PROSODYCTL_OUTPUT = """\
Warning: Could not find luarocks, some features may be unavailable
alice@meet.jitsi
focus@auth.meet.jitsi
not an account line
"""


def _touch_account(data_dir, host_dir, user):
    accounts = data_dir / host_dir / "accounts"
    accounts.mkdir(parents=True, exist_ok=True)
    (accounts / f"{user}.dat").write_text("return {};")


def _docker_runner(names, list_output=PROSODYCTL_OUTPUT, list_rc=0, available=("docker",)):
    return FakeRunner(
        available=available,
        responses={
            ("docker", "ps"): (0, "\n".join(names) + "\n", ""),
            ("docker", "exec"): (list_rc, list_output, ""),
        },
    )


def test_parse_filters_noise():
    assert parse_prosodyctl_output(PROSODYCTL_OUTPUT) == ["alice@meet.jitsi", "focus@auth.meet.jitsi"]


def test_scan_account_files(config):
    data = config.prosody_data_dir
    _touch_account(data, "meet%2ejitsi", "bob")
    _touch_account(data, "auth%2emeet%2ejitsi", "jvb")
    (data / "meet%2ejitsi" / "roster").mkdir()
    (data / "meet%2ejitsi" / "roster" / "bob.dat").write_text("")

    assert sorted(scan_account_files(data)) == ["bob@meet.jitsi", "jvb@auth.meet.jitsi"]


def test_union_of_both_sources(config):
    _touch_account(config.prosody_data_dir, "meet%2ejitsi", "alice")
    _touch_account(config.prosody_data_dir, "meet%2ejitsi", "carol")
    runner = _docker_runner(["jitsi-web-1", "jitsi-prosody-1"])

    outcome = list_xmpp_users(config, Toolbox.from_runner(runner))
    assert outcome.details["accounts"] == ["alice@meet.jitsi", "carol@meet.jitsi", "focus@auth.meet.jitsi"]
    assert outcome.warnings == []
    assert ["docker", "exec", "jitsi-prosody-1", "prosodyctl", "--config", "/config/prosody.cfg.lua", "list"] in runner.calls


def test_container_absent_falls_back_to_files(config):
    _touch_account(config.prosody_data_dir, "meet%2ejitsi", "dave")
    runner = _docker_runner(["jitsi-web-1"])

    outcome = list_xmpp_users(config, Toolbox.from_runner(runner))
    assert outcome.details["accounts"] == ["dave@meet.jitsi"]
    assert len(outcome.warnings) == 1
    assert not runner.called("docker", "exec")


def test_never_raises_without_docker_or_data(config):
    runner = FakeRunner(available=(), responses={("docker",): (127, "", "docker: not found")})
    outcome = list_xmpp_users(config, Toolbox.from_runner(runner))
    assert outcome.status == OutcomeStatus.WARNING
    assert outcome.details["accounts"] == []
    assert len(outcome.warnings) == 2


def test_prosodyctl_failure_is_warning(config):
    runner = _docker_runner(["jitsi-prosody-1"], list_output="", list_rc=1)
    outcome = list_xmpp_users(config, Toolbox.from_runner(runner))
    assert any("prosodyctl" in w for w in outcome.warnings)
