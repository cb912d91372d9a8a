"""Kubernetes manifests for the database and application tiers.

Every function here is pure: it takes names, sizes and credentials that were
computed upstream and returns a JSON-compatible dict ready for ``kubectl create``.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Literal

from app import config
from app.services.naming import CredentialSet, StackNames

ProbeKind = Literal["tcp", "http"]

APP_LABEL = "app"
STACK_LABEL = "stackpress.io/stack"


@dataclass(frozen=True)
class TierSpec:
    role: str
    display_name: str
    container_name: str
    image: str
    port: int
    port_name: str
    mount_path: str
    probe: ProbeKind

    @property
    def volume_name(self) -> str:
        return f"{self.container_name}-persistent-storage"


@dataclass(frozen=True)
class ProbeTiming:
    initial_delay_seconds: int
    period_seconds: int


READINESS_TIMING = ProbeTiming(initial_delay_seconds=10, period_seconds=5)
LIVENESS_TIMING = ProbeTiming(initial_delay_seconds=30, period_seconds=10)


def database_tier(image: str | None = None) -> TierSpec:
    return TierSpec(
        role="database",
        display_name="MySQL",
        container_name="mysql",
        image=image or config.database_image(),
        port=3306,
        port_name="mysql",
        mount_path="/var/lib/mysql",
        probe="tcp",
    )


def application_tier(image: str | None = None) -> TierSpec:
    return TierSpec(
        role="application",
        display_name="WordPress",
        container_name="wordpress",
        image=image or config.application_image(),
        port=80,
        port_name="http",
        mount_path="/var/www/html",
        probe="http",
    )


def _quantity(size_gb: int) -> str:
    if isinstance(size_gb, bool) or not isinstance(size_gb, int) or size_gb <= 0:
        raise ValueError(f"size must be a positive integer number of GB, got {size_gb!r}")
    return f"{size_gb}Gi"


def _labels(app: str, suffix: str | None) -> dict[str, str]:
    labels = {APP_LABEL: app}
    if suffix:
        labels[STACK_LABEL] = suffix
    return labels


def host_path_for(namespace: str, volume_name: str) -> str:
    root = config.host_path_root().rstrip("/")
    return f"{root}/{namespace}/{volume_name}_data"


def namespace_manifest(name: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name},
    }


def volume_manifest(
    *,
    name: str,
    host_path: str,
    size_gb: int,
    suffix: str | None = None,
) -> dict[str, Any]:
    """Cluster-scoped hostPath volume labelled so exactly one claim selects it."""
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolume",
        "metadata": {"name": name, "labels": _labels(name, suffix)},
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "persistentVolumeReclaimPolicy": "Retain",
            "storageClassName": "",
            "capacity": {"storage": _quantity(size_gb)},
            "hostPath": {"path": host_path, "type": "DirectoryOrCreate"},
        },
    }


def volume_claim_manifest(
    *,
    name: str,
    namespace: str,
    volume_name: str,
    size_gb: int,
    suffix: str | None = None,
) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": name, "namespace": namespace, "labels": _labels(name, suffix)},
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            # Empty class disables dynamic provisioning so the selector binds our volume.
            "storageClassName": "",
            "resources": {"requests": {"storage": _quantity(size_gb)}},
            "selector": {"matchLabels": {APP_LABEL: volume_name}},
        },
    }


def credential_store_data(credentials: CredentialSet, *, database_host: str) -> dict[str, str]:
    return {
        "MYSQL_ROOT_PASSWORD": credentials.admin_password,
        "MYSQL_DATABASE": credentials.database_name,
        "MYSQL_USER": credentials.app_username,
        "MYSQL_PASSWORD": credentials.app_password,
        "WORDPRESS_DB_HOST": database_host,
        "WORDPRESS_DB_USER": credentials.app_username,
        "WORDPRESS_DB_PASSWORD": credentials.app_password,
        "WORDPRESS_DB_NAME": credentials.database_name,
    }


def credential_store_manifest(
    *,
    name: str,
    namespace: str,
    credentials: CredentialSet,
    database_host: str,
    suffix: str | None = None,
) -> dict[str, Any]:
    data = credential_store_data(credentials, database_host=database_host)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {"name": name, "namespace": namespace, "labels": _labels(name, suffix)},
        "data": {key: base64.b64encode(value.encode("utf-8")).decode("ascii") for key, value in data.items()},
    }


def probe(tier: TierSpec, timing: ProbeTiming) -> dict[str, Any]:
    if tier.probe == "tcp":
        handler: dict[str, Any] = {"tcpSocket": {"port": tier.port}}
    elif tier.probe == "http":
        handler = {"httpGet": {"path": "/", "port": tier.port}}
    else:
        raise ValueError(f"Unsupported probe kind: {tier.probe}")
    return {
        **handler,
        "initialDelaySeconds": timing.initial_delay_seconds,
        "periodSeconds": timing.period_seconds,
    }


def workload_manifest(
    *,
    name: str,
    namespace: str,
    tier: TierSpec,
    claim_name: str,
    credential_store: str,
    suffix: str | None = None,
) -> dict[str, Any]:
    """Single-replica Deployment whose whole environment comes from the credential store."""
    labels = _labels(name, suffix)
    container = {
        "name": tier.container_name,
        "image": tier.image,
        "ports": [{"containerPort": tier.port, "name": tier.port_name}],
        "envFrom": [{"secretRef": {"name": credential_store}}],
        "volumeMounts": [{"name": tier.volume_name, "mountPath": tier.mount_path}],
        "readinessProbe": probe(tier, READINESS_TIMING),
        "livenessProbe": probe(tier, LIVENESS_TIMING),
    }
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {APP_LABEL: name}},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "containers": [container],
                    "volumes": [
                        {
                            "name": tier.volume_name,
                            "persistentVolumeClaim": {"claimName": claim_name},
                        }
                    ],
                },
            },
        },
    }


def endpoint_manifest(
    *,
    name: str,
    namespace: str,
    tier: TierSpec,
    workload_name: str,
    suffix: str | None = None,
) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace, "labels": _labels(workload_name, suffix)},
        "spec": {
            "type": "ClusterIP",
            "selector": {APP_LABEL: workload_name},
            "ports": [{"name": tier.port_name, "protocol": "TCP", "port": tier.port}],
        },
    }


def stack_manifests(
    *,
    namespace: str,
    names: StackNames,
    credentials: CredentialSet,
    database_size_gb: int,
    persistence_size_gb: int,
    database: TierSpec | None = None,
    application: TierSpec | None = None,
) -> list[dict[str, Any]]:
    """Every manifest of one stack, in the order they are created."""
    database = database or database_tier()
    application = application or application_tier()
    suffix = names.suffix
    return [
        namespace_manifest(namespace),
        volume_manifest(
            name=names.db_volume,
            host_path=host_path_for(namespace, names.db_volume),
            size_gb=database_size_gb,
            suffix=suffix,
        ),
        volume_claim_manifest(
            name=names.db_claim,
            namespace=namespace,
            volume_name=names.db_volume,
            size_gb=database_size_gb,
            suffix=suffix,
        ),
        volume_manifest(
            name=names.app_volume,
            host_path=host_path_for(namespace, names.app_volume),
            size_gb=persistence_size_gb,
            suffix=suffix,
        ),
        volume_claim_manifest(
            name=names.app_claim,
            namespace=namespace,
            volume_name=names.app_volume,
            size_gb=persistence_size_gb,
            suffix=suffix,
        ),
        credential_store_manifest(
            name=names.credential_store,
            namespace=namespace,
            credentials=credentials,
            database_host=names.db_endpoint,
            suffix=suffix,
        ),
        workload_manifest(
            name=names.db_workload,
            namespace=namespace,
            tier=database,
            claim_name=names.db_claim,
            credential_store=names.credential_store,
            suffix=suffix,
        ),
        endpoint_manifest(
            name=names.db_endpoint,
            namespace=namespace,
            tier=database,
            workload_name=names.db_workload,
            suffix=suffix,
        ),
        workload_manifest(
            name=names.app_workload,
            namespace=namespace,
            tier=application,
            claim_name=names.app_claim,
            credential_store=names.credential_store,
            suffix=suffix,
        ),
        endpoint_manifest(
            name=names.app_endpoint,
            namespace=namespace,
            tier=application,
            workload_name=names.app_workload,
            suffix=suffix,
        ),
    ]


def redact_credential_store(manifest: dict[str, Any]) -> dict[str, Any]:
    """Copy of a Secret manifest with every value replaced, safe to print."""
    redacted = dict(manifest)
    redacted["data"] = {key: "<redacted>" for key in manifest.get("data", {})}
    return redacted
