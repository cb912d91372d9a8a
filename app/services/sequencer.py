"""Forward-only provisioning of the database + application stack.

The pipeline is a fixed list of named stages run strictly in order. The first
stage that raises ends the run; resources created by earlier stages are left in
place for inspection and are only reported through the logs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Callable

from app.models import ManifestEntry, ProvisioningOutcome, ProvisionRequest
from app.services import manifests, naming
from app.services.errors import NotFoundException, StackpressException
from app.services.kube_gateway import ClusterGateway, KubectlGateway
from app.services.naming import CredentialSet, EntropySource, StackNames
from app.services.readiness import ReadinessPoller

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "WordPress + MySQL stack created successfully. Strong random credentials have been set for MySQL."
)


@dataclass
class ProvisioningContext:
    request: ProvisionRequest
    cancel: threading.Event | None = None
    names: StackNames | None = None
    credentials: CredentialSet | None = None
    created: list[ManifestEntry] = field(default_factory=list)

    def record(self, kind: str, name: str, *, tier: str | None = None) -> None:
        self.created.append(ManifestEntry(kind, name, tier))

    def identity(self) -> tuple[StackNames, CredentialSet]:
        assert self.names is not None and self.credentials is not None, "identity stage has not run"
        return self.names, self.credentials


@dataclass(frozen=True)
class Stage:
    name: str
    action: Callable[[ProvisioningContext], None]
    failure_message: str


class ProvisioningSequencer:
    def __init__(
        self,
        gateway: ClusterGateway,
        *,
        poller: ReadinessPoller | None = None,
        entropy: EntropySource | None = None,
        database: manifests.TierSpec | None = None,
        application: manifests.TierSpec | None = None,
    ) -> None:
        self._gateway = gateway
        self._poller = poller or ReadinessPoller(gateway)
        self._entropy = entropy or naming.system_entropy
        self._database = database or manifests.database_tier()
        self._application = application or manifests.application_tier()
        self.stages: tuple[Stage, ...] = (
            Stage("namespace", self._ensure_namespace, "Failed to ensure namespace"),
            Stage("identity", self._generate_identity, "Could not generate unique suffix and credentials"),
            Stage("database-storage", self._create_database_storage, "Failed to create MySQL PV/PVC"),
            Stage("application-storage", self._create_application_storage, "Failed to create WordPress PV/PVC"),
            Stage("credential-store", self._create_credential_store, "Failed to create MySQL/WordPress Secret"),
            Stage("database-tier", self._create_database_tier, "Failed to create MySQL deployment/service"),
            Stage("database-readiness", self._await_database, "MySQL deployment failed to become ready"),
            Stage("application-tier", self._create_application_tier, "Failed to create WordPress deployment/service"),
            Stage("application-readiness", self._await_application, "WordPress deployment failed to become ready"),
        )

    def run(self, request: ProvisionRequest, *, cancel: threading.Event | None = None) -> ProvisioningOutcome:
        logger.info(
            "Provisioning stack namespace=%s prefix=%s persistence_gb=%s database_gb=%s",
            request.namespace,
            request.deployment_prefix,
            request.persistence_size_gb,
            request.database_size_gb,
        )
        context = ProvisioningContext(request=request, cancel=cancel)
        for stage in self.stages:
            logger.debug("Running stage '%s'", stage.name)
            try:
                stage.action(context)
            except StackpressException as exc:
                return self._fail(stage, context, exc)

        logger.info("Successfully created resources: %s", _describe(context.created))
        return ProvisioningOutcome(success=True, message=SUCCESS_MESSAGE, resources=tuple(context.created))

    @staticmethod
    def _fail(stage: Stage, context: ProvisioningContext, exc: StackpressException) -> ProvisioningOutcome:
        logger.error("Stage '%s' failed: %s", stage.name, exc)
        if context.created:
            logger.warning(
                "Leaving %d resource(s) in place after failure: %s",
                len(context.created),
                _describe(context.created),
            )
        return ProvisioningOutcome(success=False, message=f"{stage.failure_message}: {exc}", error=exc)

    def _ensure_namespace(self, context: ProvisioningContext) -> None:
        namespace = context.request.namespace
        logger.info("Ensuring namespace '%s' exists...", namespace)
        try:
            self._gateway.get_namespace(namespace)
            logger.debug("Namespace already exists: %s", namespace)
        except NotFoundException:
            self._gateway.create_namespace(manifests.namespace_manifest(namespace))
            logger.info("Created namespace: %s", namespace)
        context.record("Namespace", namespace)

    def _generate_identity(self, context: ProvisioningContext) -> None:
        suffix = naming.new_suffix(self._entropy)
        context.names = naming.derive_names(context.request.deployment_prefix, suffix)
        context.credentials = naming.generate_credentials(self._entropy)
        logger.info("Suffix for uniqueness: %s", suffix)

    def _create_storage(self, context: ProvisioningContext, *, volume: str, claim: str, size_gb: int) -> None:
        names, _ = context.identity()
        namespace = context.request.namespace
        logger.info("Creating hostPath PV/PVC: PV=%s, PVC=%s", volume, claim)
        self._gateway.create_volume(
            manifests.volume_manifest(
                name=volume,
                host_path=manifests.host_path_for(namespace, volume),
                size_gb=size_gb,
                suffix=names.suffix,
            )
        )
        context.record("PersistentVolume", volume)
        self._gateway.create_volume_claim(
            namespace,
            manifests.volume_claim_manifest(
                name=claim,
                namespace=namespace,
                volume_name=volume,
                size_gb=size_gb,
                suffix=names.suffix,
            ),
        )
        context.record("PersistentVolumeClaim", claim)

    def _create_database_storage(self, context: ProvisioningContext) -> None:
        names, _ = context.identity()
        self._create_storage(
            context,
            volume=names.db_volume,
            claim=names.db_claim,
            size_gb=context.request.database_size_gb,
        )

    def _create_application_storage(self, context: ProvisioningContext) -> None:
        names, _ = context.identity()
        self._create_storage(
            context,
            volume=names.app_volume,
            claim=names.app_claim,
            size_gb=context.request.persistence_size_gb,
        )

    def _create_credential_store(self, context: ProvisioningContext) -> None:
        names, credentials = context.identity()
        namespace = context.request.namespace
        logger.info("Creating combined MySQL & WordPress secret: %s", names.credential_store)
        self._gateway.create_credential_store(
            namespace,
            manifests.credential_store_manifest(
                name=names.credential_store,
                namespace=namespace,
                credentials=credentials,
                database_host=names.db_endpoint,
                suffix=names.suffix,
            ),
        )
        context.record("Secret", names.credential_store)

    def _create_tier(
        self,
        context: ProvisioningContext,
        *,
        tier: manifests.TierSpec,
        workload: str,
        endpoint: str,
        claim: str,
    ) -> None:
        names, _ = context.identity()
        namespace = context.request.namespace
        logger.info("Creating %s deployment: %s", tier.role, workload)
        self._gateway.create_workload(
            namespace,
            manifests.workload_manifest(
                name=workload,
                namespace=namespace,
                tier=tier,
                claim_name=claim,
                credential_store=names.credential_store,
                suffix=names.suffix,
            ),
        )
        context.record("Deployment", workload, tier=tier.display_name)
        logger.info("Creating %s service: %s", tier.role, endpoint)
        self._gateway.create_network_endpoint(
            namespace,
            manifests.endpoint_manifest(
                name=endpoint,
                namespace=namespace,
                tier=tier,
                workload_name=workload,
                suffix=names.suffix,
            ),
        )
        context.record("Service", endpoint, tier=tier.display_name)

    def _create_database_tier(self, context: ProvisioningContext) -> None:
        names, _ = context.identity()
        self._create_tier(
            context,
            tier=self._database,
            workload=names.db_workload,
            endpoint=names.db_endpoint,
            claim=names.db_claim,
        )

    def _create_application_tier(self, context: ProvisioningContext) -> None:
        names, _ = context.identity()
        self._create_tier(
            context,
            tier=self._application,
            workload=names.app_workload,
            endpoint=names.app_endpoint,
            claim=names.app_claim,
        )

    def _await_database(self, context: ProvisioningContext) -> None:
        names, _ = context.identity()
        logger.info("Waiting for MySQL deployment to be ready...")
        self._poller.await_healthy(context.request.namespace, names.db_workload, cancel=context.cancel)

    def _await_application(self, context: ProvisioningContext) -> None:
        names, _ = context.identity()
        logger.info("Waiting for WordPress deployment to be ready...")
        self._poller.await_healthy(context.request.namespace, names.app_workload, cancel=context.cancel)


def _describe(entries: list[ManifestEntry]) -> str:
    return ", ".join(entry.describe() for entry in entries)


SequencerFactory = Callable[[ProvisionRequest], ProvisioningSequencer]


def build_sequencer(request: ProvisionRequest) -> ProvisioningSequencer:
    return ProvisioningSequencer(KubectlGateway(kubeconfig=request.kubeconfig))
