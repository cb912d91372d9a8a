from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from app import config
from app.services.errors import (
    GatewayException,
    ProvisioningCancelledException,
    ReadinessTimeoutException,
)
from app.services.kube_gateway import ClusterGateway, WorkloadStatus

logger = logging.getLogger(__name__)


class ReadinessPoller:
    """Block until a Deployment has at least one ready replica."""

    def __init__(
        self,
        gateway: ClusterGateway,
        *,
        interval: float | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self.interval = interval if interval is not None else config.ready_interval()
        self.timeout = timeout if timeout is not None else config.ready_timeout()
        self._sleep = sleep
        self._clock = clock

    def await_healthy(
        self,
        namespace: str,
        name: str,
        *,
        cancel: threading.Event | None = None,
    ) -> WorkloadStatus:
        """Poll immediately, then every ``interval`` seconds until ready or ``timeout``.

        Each status lookup is bounded by the time left before the deadline.
        Fetch errors count as "not ready yet". Raises ReadinessTimeoutException
        when the deadline passes and ProvisioningCancelledException when
        ``cancel`` is set.
        """
        logger.info("Checking readiness for deployment: %s/%s", namespace, name)
        deadline = self._clock() + self.timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise ProvisioningCancelledException(f"Cancelled while waiting for Deployment {name}")

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise self._timed_out(name)

            try:
                status = self._gateway.get_workload_status(namespace, name, timeout=remaining)
            except GatewayException as exc:
                logger.warning("Error fetching deployment status for %s/%s: %s", namespace, name, exc)
                status = None

            if status is not None:
                if status.ready:
                    logger.info("Deployment %s/%s is ready (ready_replicas=%s)", namespace, name, status.ready_replicas)
                    return status
                logger.debug(
                    "Deployment %s not ready yet. ready_replicas=%s replicas=%s",
                    name,
                    status.ready_replicas,
                    status.replicas,
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise self._timed_out(name)
            self._wait(min(self.interval, remaining), cancel)

    def _timed_out(self, name: str) -> ReadinessTimeoutException:
        return ReadinessTimeoutException(
            f"Deployment {name} did not become ready within {self.timeout:g}s",
            kind="Deployment",
            name=name,
            timeout=self.timeout,
        )

    def _wait(self, seconds: float, cancel: threading.Event | None) -> None:
        if cancel is None:
            self._sleep(seconds)
        elif cancel.wait(seconds):
            raise ProvisioningCancelledException("Cancelled while waiting for readiness")
