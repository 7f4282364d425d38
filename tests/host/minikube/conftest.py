from __future__ import annotations

import pytest
from testinfra.host import Host

from tests.host import common
from tests.host.minikube import env as minikube_env
from tunnelready.background import BackgroundCommand
from tunnelready.config import TunnelCheckConfig
from tunnelready.kube import KubeClient


@pytest.fixture(scope="session")
def tunnel_config(pytestconfig: pytest.Config) -> TunnelCheckConfig:
    try:
        return minikube_env.make_config(
            pytestconfig.getoption("tunnel_profile"),
            pytestconfig.getoption("tunnel_address_timeout"),
        )
    except ValueError as exc:
        pytest.fail(f"Invalid tunnel configuration: {exc}")


@pytest.fixture(scope="session")
def minikube_host(tunnel_config: TunnelCheckConfig) -> Host:
    minikube_env.require_minikube_environment(tunnel_config.profile)
    host = common.get_host()
    common.require_passwordless_route(host)
    return host


@pytest.fixture(scope="session")
def kube_client(minikube_host: Host, tunnel_config: TunnelCheckConfig) -> KubeClient:
    return minikube_env.kube_client(minikube_host, tunnel_config)


@pytest.fixture
def tunnel_process(minikube_host: Host, tunnel_config: TunnelCheckConfig):
    tunnel = BackgroundCommand(tunnel_config.tunnel_command()).start()
    try:
        yield tunnel
    finally:
        tunnel.stop()


@pytest.fixture
def nginx_service(kube_client: KubeClient, tunnel_config: TunnelCheckConfig):
    yield tunnel_config
    minikube_env.delete_test_service(kube_client, tunnel_config)
