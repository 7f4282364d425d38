from __future__ import annotations

from pathlib import Path

import pytest

from tunnelready.config import DEFAULT_MANIFEST, TunnelCheckConfig, parse_selector


def test_defaults_match_the_nginx_fixture():
    config = TunnelCheckConfig()

    assert config.kube_context == "minikube"
    assert dict(config.selector) == {"run": "nginx-svc"}
    assert config.service == "nginx-svc"
    assert config.expected_marker == "Welcome to nginx!"
    assert config.address_poll.interval == 1.0
    assert config.address_poll.timeout == 120.0
    assert config.http_backoff.max_attempts == 6
    assert DEFAULT_MANIFEST.name == "testsvc.yaml"
    assert DEFAULT_MANIFEST.is_file()


def test_tunnel_command_targets_the_profile():
    command = TunnelCheckConfig(profile="tunnel-test").tunnel_command()

    assert command[:4] == ["minikube", "-p", "tunnel-test", "tunnel"]
    assert "--cleanup" in command


def test_from_env_overrides_defaults():
    config = TunnelCheckConfig.from_env(
        {
            "TUNNELREADY_PROFILE": "tunnel-test",
            "TUNNELREADY_NAMESPACE": "web",
            "TUNNELREADY_SELECTOR": "app=nginx, tier=front",
            "TUNNELREADY_MANIFEST": "/tmp/svc.yaml",
            "TUNNELREADY_HTTP_TIMEOUT": "2.5",
            "TUNNELREADY_ADDRESS_TIMEOUT": "30",
            "UNRELATED": "ignored",
        }
    )

    assert config.profile == "tunnel-test"
    assert config.kube_context == "tunnel-test"
    assert config.namespace == "web"
    assert config.selector == {"app": "nginx", "tier": "front"}
    assert config.manifest == Path("/tmp/svc.yaml")
    assert config.http_timeout == 2.5
    assert config.address_poll.timeout == 30.0
    assert config.address_poll.interval == 1.0


def test_from_env_ignores_blank_values():
    assert TunnelCheckConfig.from_env({"TUNNELREADY_PROFILE": "  "}).profile == "minikube"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("TUNNELREADY_HTTP_TIMEOUT", "soon"),
        ("TUNNELREADY_OVERALL_TIMEOUT", "-1"),
        ("TUNNELREADY_ADDRESS_TIMEOUT", "0"),
        ("TUNNELREADY_SELECTOR", "run"),
    ],
)
def test_from_env_rejects_invalid_values(name, value):
    with pytest.raises(ValueError) as excinfo:
        TunnelCheckConfig.from_env({name: value})
    assert name in str(excinfo.value)


def test_parse_selector_rejects_empty_input():
    with pytest.raises(ValueError):
        parse_selector(" , ")
