from __future__ import annotations

import logging
import shlex
from pathlib import Path, PurePosixPath
from typing import Mapping

from testinfra.backend.base import CommandResult
from testinfra.host import Host

from .errors import mark_retryable

logger = logging.getLogger(__name__)

# Substrings of kubectl stderr that mean the API server was momentarily
# unavailable rather than that the request itself was wrong.
RETRYABLE_MARKERS: tuple[str, ...] = (
    "connection refused",
    "connection reset by peer",
    "i/o timeout",
    "tls handshake timeout",
    "the server is currently unable to handle the request",
    "serviceunavailable",
    "service unavailable",
    "toomanyrequests",
    "too many requests",
    "the server was unable to return a response in the time allotted",
    "servertimeout",
    "etcdserver: request timed out",
    "unexpected eof",
)
# Exit status of a shell that could not find the kubectl binary.
COMMAND_NOT_FOUND_RC = 127


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in markers)


class KubectlError(RuntimeError):
    def __init__(self, command: str, result: CommandResult):
        self.command = command
        self.rc = result.rc
        self.stdout = result.stdout or ""
        self.stderr = result.stderr or ""
        super().__init__(
            f"`{command}` failed (exit {self.rc}).\nSTDOUT:\n{self.stdout}\nSTDERR:\n{self.stderr}"
        )

    @property
    def retryable(self) -> bool:
        return _contains_any(self.stderr, RETRYABLE_MARKERS)

    def not_found(self, kind: str, name: str) -> bool:
        """True when the API server reported that the named object does not exist."""
        if self.rc == COMMAND_NOT_FOUND_RC:
            return False
        return _contains_any(self.stderr, (f'{kind} "{name}" not found'.lower(),))


def format_selector(selector: Mapping[str, str] | str) -> str:
    if isinstance(selector, str):
        return selector
    return ",".join(f"{key}={value}" for key, value in sorted(selector.items()))


def _posix(value: str | Path | PurePosixPath) -> str:
    if isinstance(value, (Path, PurePosixPath)):
        return value.as_posix()
    return str(value)


class KubeClient:
    def __init__(self, host: Host, context: str | None = None, kubectl: str = "kubectl"):
        self.host = host
        self.context = context
        self.kubectl = kubectl

    def command(self, *args: str) -> str:
        parts = [self.kubectl]
        if self.context:
            parts.extend(["--context", self.context])
        parts.extend(args)
        return " ".join(shlex.quote(part) for part in parts)

    def run(self, *args: str) -> str:
        """
        Run kubectl and return its stdout. Failures raise KubectlError, wrapped
        with mark_retryable when stderr names a transient API condition.
        """
        command = self.command(*args)
        result = self.host.run(command)
        if result.rc == 0:
            return result.stdout or ""
        error = KubectlError(command, result)
        if error.retryable:
            logger.debug("transient kubectl failure: %s", error.stderr.strip())
            raise mark_retryable(error)
        raise error

    def apply(self, manifest: str | Path | PurePosixPath) -> str:
        return self.run("apply", "-f", _posix(manifest))

    def pod_phases(self, namespace: str, selector: Mapping[str, str] | str) -> list[str]:
        stdout = self.run(
            "get",
            "pods",
            "--namespace",
            namespace,
            "--selector",
            format_selector(selector),
            "-o",
            "jsonpath={.items[*].status.phase}",
        )
        return stdout.split()

    def pods_running(self, namespace: str, selector: Mapping[str, str] | str) -> bool:
        phases = self.pod_phases(namespace, selector)
        return bool(phases) and all(phase == "Running" for phase in phases)

    def service_exists(self, namespace: str, name: str) -> bool:
        try:
            self.run("get", "service", name, "--namespace", namespace, "-o", "name")
        except KubectlError as exc:
            if exc.not_found("services", name):
                return False
            raise
        return True

    def jsonpath(self, kind: str, name: str, path: str, namespace: str = "default") -> str:
        return self.run("get", kind, name, "--namespace", namespace, "-o", f"jsonpath={path}").strip()

    def status(self, kind: str, name: str, namespace: str = "default") -> str:
        return self.jsonpath(kind, name, "{.status}", namespace)
