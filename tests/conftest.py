from __future__ import annotations

import pytest


# Options live in the root conftest: pytest only honours pytest_addoption from
# conftest files it loads before collection.
def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("tunnelready", "minikube tunnel readiness options")
    group.addoption(
        "--tunnel-profile",
        action="store",
        default=None,
        help="minikube profile to tunnel into (default: $TUNNELREADY_PROFILE or 'minikube').",
    )
    group.addoption(
        "--tunnel-address-timeout",
        action="store",
        type=float,
        default=None,
        help="Seconds to wait for the LoadBalancer ingress address.",
    )
