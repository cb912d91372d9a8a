from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from app.services.errors import GatewayException, NotFoundException
from app.services.kube_gateway import WorkloadStatus
from app.services.readiness import ReadinessPoller
from app.services.sequencer import ProvisioningSequencer


class FakeClock:
    """Monotonic clock that only advances when the poller sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FixedEntropy:
    def __init__(self, value: int = 0) -> None:
        self.value = value
        self.calls: list[int] = []

    def randbelow(self, upper: int) -> int:
        self.calls.append(upper)
        return self.value % upper


class FakeGateway:
    """In-memory ClusterGateway recording every call in order."""

    def __init__(self, *, existing_namespaces: tuple[str, ...] = ()) -> None:
        self.calls: list[tuple[str, str]] = []
        self.namespaces: set[str] = set(existing_namespaces)
        self.objects: dict[tuple[str, str], dict] = {}
        self.namespace_lookup_error: Exception | None = None
        # workload-name suffix ("-db", "-wp") -> polls before ready; None means never.
        self.ready_after: dict[str, int | None] = {}
        self.status_errors: dict[str, int] = {}
        self.status_timeouts: list[float | None] = []
        self._failures: list[tuple[str, str, Exception]] = []
        self._polls: dict[str, int] = {}

    def fail_on(self, operation: str, *, name_endswith: str = "", exc: Exception | None = None) -> None:
        self._failures.append((operation, name_endswith, exc or GatewayException("boom", kind="?", name="?")))

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def created(self, operation: str) -> list[str]:
        return [name for op, name in self.calls if op == operation]

    def manifest(self, kind: str, name_endswith: str) -> dict:
        for (obj_kind, name), manifest in self.objects.items():
            if obj_kind == kind and name.endswith(name_endswith):
                return manifest
        raise KeyError(f"{kind} *{name_endswith} not created")

    def get_namespace(self, name: str) -> dict:
        self.calls.append(("get_namespace", name))
        if self.namespace_lookup_error is not None:
            raise self.namespace_lookup_error
        if name not in self.namespaces:
            raise NotFoundException(f"Namespace {name} not found", kind="Namespace", name=name)
        return {"metadata": {"name": name}}

    def create_namespace(self, manifest: dict) -> str:
        name = self._create("create_namespace", manifest)
        self.namespaces.add(name)
        return name

    def create_volume(self, manifest: dict) -> str:
        return self._create("create_volume", manifest)

    def create_volume_claim(self, namespace: str, manifest: dict) -> str:
        return self._create("create_volume_claim", manifest)

    def create_credential_store(self, namespace: str, manifest: dict) -> str:
        return self._create("create_credential_store", manifest)

    def create_workload(self, namespace: str, manifest: dict) -> str:
        return self._create("create_workload", manifest)

    def create_network_endpoint(self, namespace: str, manifest: dict) -> str:
        return self._create("create_network_endpoint", manifest)

    def get_workload_status(self, namespace: str, name: str, *, timeout: float | None = None) -> WorkloadStatus:
        self.calls.append(("get_workload_status", name))
        self.status_timeouts.append(timeout)
        for suffix, remaining in list(self.status_errors.items()):
            if name.endswith(suffix) and remaining > 0:
                self.status_errors[suffix] = remaining - 1
                raise GatewayException("connection refused", kind="Deployment", name=name)
        polls = self._polls.get(name, 0)
        self._polls[name] = polls + 1
        needed = next((v for s, v in self.ready_after.items() if name.endswith(s)), 0)
        ready = needed is not None and polls >= needed
        return WorkloadStatus(name=name, namespace=namespace, replicas=1, ready_replicas=1 if ready else 0)

    def _create(self, operation: str, manifest: dict) -> str:
        name = manifest["metadata"]["name"]
        self.calls.append((operation, name))
        for failing_op, name_endswith, exc in self._failures:
            if failing_op == operation and name.endswith(name_endswith):
                raise exc
        self.objects[(manifest["kind"], name)] = manifest
        return name


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_sequencer(gateway, clock):
    def _make(*, entropy=None, timeout: float = 120, interval: float = 5) -> ProvisioningSequencer:
        poller = ReadinessPoller(gateway, interval=interval, timeout=timeout, sleep=clock.sleep, clock=clock)
        return ProvisioningSequencer(gateway, poller=poller, entropy=entropy)

    return _make


@pytest.fixture
def client(make_sequencer):
    from app.api.provision import get_sequencer_factory
    from app.main import app

    app.dependency_overrides[get_sequencer_factory] = lambda: (lambda request: make_sequencer())

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
