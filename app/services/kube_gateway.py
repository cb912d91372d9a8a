from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import math
from pathlib import Path
from typing import Any, Protocol

from app import config
from app.proc import AdapterCommandError, CommandRunner, run_command
from app.services.errors import GatewayException, NotFoundException

logger = logging.getLogger(__name__)

Manifest = dict[str, Any]


@dataclass(frozen=True)
class WorkloadStatus:
    name: str
    namespace: str
    replicas: int
    ready_replicas: int

    @property
    def ready(self) -> bool:
        return self.ready_replicas >= 1


class ClusterGateway(Protocol):
    """Create/get capability against the cluster control plane.

    Lookups raise NotFoundException when the object is absent and
    GatewayException for any other failure. ``timeout`` caps a single status
    lookup; a lookup that exceeds it fails with GatewayException.
    """

    def get_namespace(self, name: str) -> Manifest: ...

    def create_namespace(self, manifest: Manifest) -> str: ...

    def create_volume(self, manifest: Manifest) -> str: ...

    def create_volume_claim(self, namespace: str, manifest: Manifest) -> str: ...

    def create_credential_store(self, namespace: str, manifest: Manifest) -> str: ...

    def create_workload(self, namespace: str, manifest: Manifest) -> str: ...

    def create_network_endpoint(self, namespace: str, manifest: Manifest) -> str: ...

    def get_workload_status(self, namespace: str, name: str, *, timeout: float | None = None) -> WorkloadStatus: ...


def _manifest_name(manifest: Manifest) -> str:
    return str(manifest.get("metadata", {}).get("name", ""))


def _request_timeout(seconds: float) -> list[str]:
    return ["--request-timeout", f"{max(math.ceil(seconds), 1)}s"]


class KubectlGateway:
    """ClusterGateway backed by the ``kubectl`` binary.

    Manifests are piped on stdin so generated credentials never touch disk.
    """

    def __init__(
        self,
        *,
        kubeconfig: str | None = None,
        runner: CommandRunner | None = None,
        kubectl: str | None = None,
        command_timeout: float | None = None,
    ) -> None:
        self._runner = runner
        self.command_timeout = command_timeout if command_timeout is not None else config.command_timeout()
        self._base = [kubectl or config.kubectl_binary()]
        if kubeconfig:
            self._base.extend(["--kubeconfig", str(Path(kubeconfig).expanduser().resolve())])

    def get_namespace(self, name: str) -> Manifest:
        logger.debug("Looking up namespace: %s", name)
        return self._get(["namespace", name], kind="Namespace", name=name)

    def create_namespace(self, manifest: Manifest) -> str:
        return self._create(manifest, kind="Namespace")

    def create_volume(self, manifest: Manifest) -> str:
        return self._create(manifest, kind="PersistentVolume")

    def create_volume_claim(self, namespace: str, manifest: Manifest) -> str:
        return self._create(manifest, kind="PersistentVolumeClaim", namespace=namespace)

    def create_credential_store(self, namespace: str, manifest: Manifest) -> str:
        return self._create(manifest, kind="Secret", namespace=namespace)

    def create_workload(self, namespace: str, manifest: Manifest) -> str:
        return self._create(manifest, kind="Deployment", namespace=namespace)

    def create_network_endpoint(self, namespace: str, manifest: Manifest) -> str:
        return self._create(manifest, kind="Service", namespace=namespace)

    def get_workload_status(self, namespace: str, name: str, *, timeout: float | None = None) -> WorkloadStatus:
        payload = self._get(
            ["deployment", name, "--namespace", namespace],
            kind="Deployment",
            name=name,
            timeout=timeout,
        )
        status = payload.get("status") or {}
        return WorkloadStatus(
            name=name,
            namespace=namespace,
            replicas=int(status.get("replicas") or 0),
            ready_replicas=int(status.get("readyReplicas") or 0),
        )

    def _bound(self, timeout: float | None) -> float:
        if timeout is None:
            return self.command_timeout
        return max(min(timeout, self.command_timeout), 0.0)

    def _get(self, args: list[str], *, kind: str, name: str, timeout: float | None = None) -> Manifest:
        bound = self._bound(timeout)
        try:
            result = run_command(
                [*self._base, "get", *args, "--output", "json", *_request_timeout(bound)],
                runner=self._runner,
                timeout=bound,
                error_message=f"Failed to get {kind} {name}",
            )
        except AdapterCommandError as exc:
            if exc.not_found:
                raise NotFoundException(f"{kind} {name} not found", kind=kind, name=name) from exc
            raise GatewayException(f"Unable to get {kind} {name}: {exc}", kind=kind, name=name) from exc

        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise GatewayException(f"Invalid JSON from kubectl for {kind} {name}", kind=kind, name=name) from exc
        if not isinstance(payload, dict):
            raise GatewayException(f"Unexpected kubectl output for {kind} {name}", kind=kind, name=name)
        return payload

    def _create(self, manifest: Manifest, *, kind: str, namespace: str | None = None) -> str:
        name = _manifest_name(manifest)
        if manifest.get("kind") != kind:
            raise GatewayException(
                f"Refusing to create {manifest.get('kind')!r} through the {kind} operation",
                kind=kind,
                name=name,
            )
        cmd = [*self._base, "create", "--filename", "-", "--output", "name"]
        if namespace:
            cmd.extend(["--namespace", namespace])
        cmd.extend(_request_timeout(self.command_timeout))
        logger.info("Creating %s %s", kind, name if namespace is None else f"{namespace}/{name}")
        try:
            result = run_command(
                cmd,
                runner=self._runner,
                stdin=json.dumps(manifest),
                timeout=self.command_timeout,
                error_message=f"Failed to create {kind} {name}",
            )
        except AdapterCommandError as exc:
            raise GatewayException(f"Unable to create {kind} {name}: {exc}", kind=kind, name=name) from exc
        logger.debug("kubectl created %s", result.stdout.strip() or name)
        return name
