"""Tests for meetsite.status: the read-only report and its best-effort checks."""

from types import SimpleNamespace

import httpx
import psutil

from meetsite import status as status_module
from meetsite.certs import generate_self_signed
from meetsite.models import OutcomeStatus
from meetsite.nginx import activate_config, render_config
from meetsite.status import listening_ports, status_report
from meetsite.tools import Toolbox

from conftest import FakeRunner

DOCKER_PS = "jitsi-web-1\tUp 2 hours\njitsi-prosody-1\tUp 2 hours\npostgres\tUp 3 days\n"


def test_report_on_empty_host(config):
    runner = FakeRunner(responses={("docker", "ps"): (0, "", "")})
    outcome = status_report(config, Toolbox.from_runner(runner))
    report = outcome.details["report"]

    assert outcome.status == OutcomeStatus.OK
    assert report.domain == "meet.example.com"
    assert report.web_local_port == 8445
    assert report.colibri_host_port == 9091
    assert not report.vhost_exists
    assert not report.enabled_exists
    assert report.certificate is None
    assert report.cert_dir == str(config.cert_dir)
    assert "Domain:            meet.example.com" in outcome.message


def test_report_after_deploy_steps(config, tools):
    runner = FakeRunner(responses={("docker", "ps"): (0, DOCKER_PS, "")})
    render_config(config, tools)
    activate_config(config)
    generate_self_signed(config)

    report = status_report(config, Toolbox.from_runner(runner)).details["report"]
    assert report.vhost_exists
    assert report.enabled_exists
    assert report.certificate.self_signed
    assert report.containers == [("jitsi-web-1", "Up 2 hours"), ("jitsi-prosody-1", "Up 2 hours")]
    assert report.listening_ports == [443]
    assert report.upstream_status == 200


def test_check_failures_are_warnings(config, monkeypatch):
    def refuse(port, timeout=3.0):
        raise httpx.ConnectError("connection refused")

    def denied(ports):
        raise psutil.AccessDenied()

    monkeypatch.setattr(status_module, "check_upstream", refuse)
    monkeypatch.setattr(status_module, "listening_ports", denied)
    runner = FakeRunner(responses={("docker",): (1, "", "Cannot connect to the Docker daemon")})

    outcome = status_report(config, Toolbox.from_runner(runner))
    report = outcome.details["report"]
    assert outcome.status == OutcomeStatus.WARNING
    assert len(outcome.warnings) == 3
    assert report.upstream_status is None
    assert report.containers == []
    assert "unreachable" in outcome.message


def test_unreadable_certificate_is_warning(config):
    config.cert_dir.mkdir(parents=True)
    config.fullchain.write_text("not a pem")
    outcome = status_report(config, Toolbox.from_runner(FakeRunner()))
    assert any("certificate" in w for w in outcome.warnings)


def test_listening_ports_filters(monkeypatch):
    conns = [
        SimpleNamespace(status=psutil.CONN_LISTEN, laddr=SimpleNamespace(port=443)),
        SimpleNamespace(status=psutil.CONN_LISTEN, laddr=SimpleNamespace(port=22)),
        SimpleNamespace(status=psutil.CONN_ESTABLISHED, laddr=SimpleNamespace(port=80)),
        SimpleNamespace(status=psutil.CONN_LISTEN, laddr=SimpleNamespace(port=443)),
        SimpleNamespace(status=psutil.CONN_LISTEN, laddr=()),
    ]
    monkeypatch.setattr(psutil, "net_connections", lambda kind="tcp": conns)
    assert listening_ports({80, 443, 8445}) == [443]
