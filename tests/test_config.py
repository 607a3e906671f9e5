"""Tests for meetsite.config: environment parsing and validation."""

from pathlib import Path

import pytest

from meetsite.config import Config, DeploymentParameters, load_config
from meetsite.errors import ConfigError


def test_defaults():
    config = load_config(env={})
    assert config.params == DeploymentParameters("meet.funnelskingdom.com", 8445, 9091)
    assert config.vhost_file == Path("/etc/nginx/sites-available/meet.funnelskingdom.com")
    assert config.enabled_link == Path("/etc/nginx/sites-enabled/meet.funnelskingdom.com")
    assert config.fullchain == Path("/etc/letsencrypt/live/meet.funnelskingdom.com/fullchain.pem")
    assert config.systemd_unit_path == Path("/etc/systemd/system/jitsi-stack.service")
    assert config.unit_name == "jitsi-stack"
    assert config.command_timeout is None


def test_environment_overrides(tmp_path):
    config = load_config(env={
        "DOMAIN": "meet.example.com",
        "WEB_LOCAL_PORT": "8000",
        "COLIBRI_HOST_PORT": "9000",
        "NGINX_SITES_AVAILABLE": str(tmp_path / "avail"),
        "SYSTEMD_UNIT_PATH": str(tmp_path / "stack.service"),
        "COMMAND_TIMEOUT": "30",
    })
    assert config.domain == "meet.example.com"
    assert config.params.web_local_port == 8000
    assert config.params.colibri_host_port == 9000
    assert config.vhost_file == tmp_path / "avail" / "meet.example.com"
    assert config.unit_name == "stack"
    assert config.command_timeout == 30


def test_empty_values_use_defaults():
    config = load_config(env={"DOMAIN": "", "WEB_LOCAL_PORT": ""})
    assert config.domain == "meet.funnelskingdom.com"
    assert config.params.web_local_port == 8445


@pytest.mark.parametrize(
    "env",
    [
        {"WEB_LOCAL_PORT": "eighty"},
        {"COLIBRI_HOST_PORT": "70000"},
        {"WEB_LOCAL_PORT": "0"},
        {"DOMAIN": "meet example.com"},
        {"DOMAIN": "../etc/passwd"},
        {"COMMAND_TIMEOUT": "0"},
    ],
)
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        load_config(env=env)


def test_config_is_immutable():
    config = Config()
    with pytest.raises(AttributeError):
        config.command_timeout = 1
