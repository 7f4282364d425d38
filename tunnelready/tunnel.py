from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Mapping

from .background import BackgroundCommand
from .config import TunnelCheckConfig
from .errors import PayloadMismatchError
from .fetch import fetch_body
from .kube import KubeClient, format_selector
from .pipeline import PipelineReport, ReadinessPipeline, Stage

logger = logging.getLogger(__name__)

DEPLOY = "deploy"
PODS_RUNNING = "pods-running"
SERVICE_EXISTS = "service-exists"
INGRESS_ADDRESS = "ingress-address"
HTTP_FETCH = "http-fetch"
PAYLOAD_MARKER = "payload-marker"

INGRESS_IP_PATH = "{.status.loadBalancer.ingress[0].ip}"

Fetch = Callable[[str], str]


def build_pipeline(
    config: TunnelCheckConfig,
    kube: KubeClient,
    *,
    fetch: Fetch | None = None,
    guard: Callable[[], None] | None = None,
    deploy: bool = False,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessPipeline:
    if fetch is None:
        fetch = functools.partial(fetch_body, timeout=config.http_timeout)
    timing = {"clock": clock, "sleep": sleep}
    observed: dict[str, str] = {"address": ""}
    selector = format_selector(config.selector)

    def _deploy(results: Mapping[str, Any]) -> str:
        return kube.apply(config.manifest)

    def _pods_running(results: Mapping[str, Any]) -> int:
        return config.pods_poll.poll(lambda: kube.pods_running(config.namespace, selector), **timing)

    def _service_exists(results: Mapping[str, Any]) -> int:
        return config.service_poll.poll(lambda: kube.service_exists(config.namespace, config.service), **timing)

    def _address_probe() -> bool:
        observed["address"] = kube.jsonpath("service", config.service, INGRESS_IP_PATH, config.namespace)
        return bool(observed["address"])

    def _ingress_address(results: Mapping[str, Any]) -> str:
        config.address_poll.poll(_address_probe, **timing)
        logger.info("service %s has ingress address %s", config.service, observed["address"])
        return observed["address"]

    def _describe_service() -> str:
        status = kube.status("service", config.service, config.namespace)
        return (
            f"last observed ingress address: {observed['address']!r}\n"
            f"status of service {config.namespace}/{config.service}:\n{status}"
        )

    def _http_fetch(results: Mapping[str, Any]) -> str:
        address = results[INGRESS_ADDRESS]
        return config.http_backoff.retry(lambda: fetch(address), **timing)

    def _payload_marker(results: Mapping[str, Any]) -> str:
        body = results[HTTP_FETCH]
        if config.expected_marker not in body:
            raise PayloadMismatchError(config.expected_marker, body)
        return config.expected_marker

    stages = [
        Stage(PODS_RUNNING, _pods_running),
        Stage(SERVICE_EXISTS, _service_exists),
        Stage(INGRESS_ADDRESS, _ingress_address, diagnose=_describe_service),
        Stage(HTTP_FETCH, _http_fetch, diagnose=lambda: f"address: {observed['address']}"),
        Stage(PAYLOAD_MARKER, _payload_marker),
    ]
    if deploy:
        stages.insert(0, Stage(DEPLOY, _deploy))
    return ReadinessPipeline(stages, guard=guard, overall_timeout=config.overall_timeout, clock=clock)


def verify_tunnel(
    config: TunnelCheckConfig,
    kube: KubeClient,
    *,
    fetch: Fetch | None = None,
    tunnel: BackgroundCommand | None = None,
    deploy: bool = False,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PipelineReport:
    """
    Wait until the service behind the tunnel answers with the expected page.

    Returns the report of every completed stage, or raises StageFailure naming
    the stage that failed, its last error and any diagnostics captured. When
    ``tunnel`` is given, its early exit aborts the run at the next stage.
    """
    pipeline = build_pipeline(
        config,
        kube,
        fetch=fetch,
        guard=tunnel.check if tunnel is not None else None,
        deploy=deploy,
        clock=clock,
        sleep=sleep,
    )
    return pipeline.run()
