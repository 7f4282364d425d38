# Shared helpers for host-side tests (minikube, kubectl, local routes).
from __future__ import annotations

import shutil
import subprocess
from functools import lru_cache
from pathlib import Path

import pytest
import testinfra
from testinfra.host import Host

REPO_ROOT = Path(__file__).resolve().parents[2]


def require_executable(name: str) -> None:
    if shutil.which(name) is None:
        pytest.skip(f"`{name}` executable not found on host; tunnel tests are unavailable.")


def require_passwordless_route(host: Host) -> None:
    # minikube tunnel edits the routing table and would block on a sudo prompt.
    result = host.run("sudo -n route")
    if result.rc != 0:
        pytest.skip(
            "password required to execute 'route', skipping tunnel tests "
            f"(exit {result.rc}).\nSTDERR:\n{result.stderr}"
        )


def ensure_profile_running(profile: str) -> None:
    try:
        state = profile_state(profile)
    except subprocess.CalledProcessError as exc:
        pytest.skip(
            f"Unable to determine state for minikube profile '{profile}' "
            f"(minikube status exited with code {exc.returncode}). "
            f"Run `minikube start -p {profile}` and retry."
        )
    if state != "Running":
        pytest.skip(
            f"minikube profile '{profile}' is not running (state={state!r}). "
            f"Run `minikube start -p {profile}` and retry."
        )


@lru_cache(maxsize=8)
def profile_state(profile: str) -> str | None:
    output = subprocess.check_output(
        ["minikube", "status", "-p", profile, "--format", "{{.Host}}"],
        text=True,
    )
    for line in output.splitlines():
        line = line.strip()
        if line:
            return line
    return None


def get_host(connection: str = "local://") -> Host:
    return testinfra.get_host(connection)
