from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Mapping

from .retry import BackoffConfig
from .wait import PollConfig

ENV_PREFIX = "TUNNELREADY_"
DEFAULT_MARKER = "Welcome to nginx!"
DEFAULT_MANIFEST = Path(__file__).resolve().parent / "testdata" / "testsvc.yaml"


@dataclass(frozen=True)
class TunnelCheckConfig:
    profile: str = "minikube"
    context: str | None = None
    namespace: str = "default"
    selector: Mapping[str, str] = field(default_factory=lambda: {"run": "nginx-svc"})
    service: str = "nginx-svc"
    manifest: Path = DEFAULT_MANIFEST
    expected_marker: str = DEFAULT_MARKER
    pods_poll: PollConfig = PollConfig(interval=0.5, timeout=600.0)
    service_poll: PollConfig = PollConfig(interval=1.0, timeout=120.0)
    address_poll: PollConfig = PollConfig(interval=1.0, timeout=120.0)
    http_backoff: BackoffConfig = BackoffConfig(initial_delay=0.5, max_total_duration=120.0, max_attempts=6)
    http_timeout: float = 5.0
    overall_timeout: float = 900.0

    @property
    def kube_context(self) -> str:
        return self.context or self.profile

    def tunnel_command(self, minikube: str = "minikube") -> list[str]:
        return [minikube, "-p", self.profile, "tunnel", "--cleanup", "--alsologtostderr", "-v", "8"]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TunnelCheckConfig":
        environ = os.environ if environ is None else environ
        config = cls()
        updates: dict[str, object] = {}

        def _value(name: str, parse: Callable[[str], object]) -> None:
            key = f"{ENV_PREFIX}{name.upper()}"
            raw = environ.get(key)
            if raw is None or not raw.strip():
                return
            try:
                updates[name] = parse(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for {key}: {raw!r} ({exc})") from exc

        _value("profile", str)
        _value("context", str)
        _value("namespace", str)
        _value("selector", parse_selector)
        _value("service", str)
        _value("manifest", Path)
        _value("expected_marker", str)
        _value("http_timeout", _positive_float)
        _value("overall_timeout", _positive_float)

        address_timeout = environ.get(f"{ENV_PREFIX}ADDRESS_TIMEOUT")
        if address_timeout:
            try:
                updates["address_poll"] = replace(config.address_poll, timeout=_positive_float(address_timeout))
            except ValueError as exc:
                raise ValueError(f"Invalid value for {ENV_PREFIX}ADDRESS_TIMEOUT: {address_timeout!r} ({exc})") from exc

        return replace(config, **updates)


def parse_selector(raw: str) -> dict[str, str]:
    selector: dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"selector entry {item!r} is not key=value")
        selector[key.strip()] = value.strip()
    if not selector:
        raise ValueError("selector is empty")
    return selector


def _positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise ValueError("must be > 0")
    return value
