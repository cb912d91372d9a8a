from __future__ import annotations

import json
import subprocess

import pytest

from app.proc import AdapterCommandError, classify_error, run_command
from app.services import manifests
from app.services.errors import GatewayException, NotFoundException
from app.services.kube_gateway import KubectlGateway
from app.services.naming import CredentialSet


def _result(*, args: list[str], returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr=stderr)


def test_get_namespace_not_found_raises_not_found() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        assert cmd[:4] == ["kubectl", "get", "namespace", "demo"]
        return _result(args=cmd, returncode=1, stderr='Error from server (NotFound): namespaces "demo" not found')

    with pytest.raises(NotFoundException) as exc_info:
        KubectlGateway(runner=runner).get_namespace("demo")
    assert exc_info.value.kind == "Namespace"
    assert exc_info.value.name == "demo"


def test_get_namespace_other_errors_are_not_treated_as_missing() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        return _result(args=cmd, returncode=1, stderr="Unable to connect to the server: i/o timeout")

    with pytest.raises(GatewayException) as exc_info:
        KubectlGateway(runner=runner).get_namespace("demo")
    assert not isinstance(exc_info.value, NotFoundException)
    assert "i/o timeout" in str(exc_info.value).lower()
    assert isinstance(exc_info.value.__cause__, AdapterCommandError)
    assert exc_info.value.__cause__.retryable is True


def test_create_pipes_manifest_on_stdin() -> None:
    calls: list[tuple[list[str], str | None]] = []

    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        calls.append((cmd, stdin))
        return _result(args=cmd, returncode=0, stdout="secret/site-abcde-db-secret created")

    secret = manifests.credential_store_manifest(
        name="site-abcde-db-secret",
        namespace="demo",
        credentials=CredentialSet(admin_password="R00t!pass-word12", app_password="Wp!pass-word1234"),
        database_host="site-abcde-db-svc",
    )
    name = KubectlGateway(runner=runner, command_timeout=30).create_credential_store("demo", secret)

    assert name == "site-abcde-db-secret"
    cmd, stdin = calls[0]
    assert cmd == [
        "kubectl", "create", "--filename", "-", "--output", "name",
        "--namespace", "demo", "--request-timeout", "30s",
    ]
    assert json.loads(stdin) == secret
    assert not any("pass-word" in part for part in cmd)


def test_create_cluster_scoped_volume_has_no_namespace_flag() -> None:
    calls: list[list[str]] = []

    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        calls.append(cmd)
        return _result(args=cmd, returncode=0, stdout="persistentvolume/v created")

    KubectlGateway(runner=runner).create_volume(manifests.volume_manifest(name="v", host_path="/mnt/v", size_gb=5))
    assert "--namespace" not in calls[0]


def test_create_failure_carries_kind_and_name() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        return _result(args=cmd, returncode=1, stderr='persistentvolumeclaims "c" is forbidden: exceeded quota')

    claim = manifests.volume_claim_manifest(name="c", namespace="demo", volume_name="v", size_gb=5)
    with pytest.raises(GatewayException) as exc_info:
        KubectlGateway(runner=runner).create_volume_claim("demo", claim)

    assert exc_info.value.kind == "PersistentVolumeClaim"
    assert exc_info.value.name == "c"
    assert "exceeded quota" in str(exc_info.value)
    assert exc_info.value.__cause__.retryable is False


def test_create_rejects_manifest_of_another_kind() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        raise AssertionError(f"unexpected command: {cmd}")

    with pytest.raises(GatewayException):
        KubectlGateway(runner=runner).create_workload("demo", manifests.namespace_manifest("demo"))


def test_get_workload_status_parses_replica_counts() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        assert cmd[:4] == ["kubectl", "get", "deployment", "site-abcde-db"]
        assert cmd[cmd.index("--namespace") + 1] == "demo"
        payload = {"status": {"replicas": 1, "readyReplicas": 1}}
        return _result(args=cmd, returncode=0, stdout=json.dumps(payload))

    status = KubectlGateway(runner=runner).get_workload_status("demo", "site-abcde-db")
    assert status.ready is True
    assert (status.replicas, status.ready_replicas) == (1, 1)


def test_get_workload_status_without_status_block_is_not_ready() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        return _result(args=cmd, returncode=0, stdout=json.dumps({"metadata": {"name": "x"}}))

    status = KubectlGateway(runner=runner).get_workload_status("demo", "x")
    assert status.ready is False
    assert status.ready_replicas == 0


def test_invalid_json_from_kubectl_is_a_gateway_error() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        return _result(args=cmd, returncode=0, stdout="not json")

    with pytest.raises(GatewayException):
        KubectlGateway(runner=runner).get_workload_status("demo", "x")


def test_kubeconfig_is_passed_as_absolute_path(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    calls: list[list[str]] = []

    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        calls.append(cmd)
        return _result(args=cmd, returncode=0, stdout="{}")

    KubectlGateway(kubeconfig="cfg/kube.yaml", runner=runner, kubectl="/usr/local/bin/kubectl").get_namespace("demo")

    expected = str((tmp_path / "cfg" / "kube.yaml").resolve())
    assert calls[0][:3] == ["/usr/local/bin/kubectl", "--kubeconfig", expected]


def test_missing_binary_becomes_command_error() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", "kubectl")

    with pytest.raises(AdapterCommandError) as exc_info:
        run_command(["kubectl", "version"], runner=runner, error_message="kubectl failed")
    assert exc_info.value.result.returncode == 127
    assert "No such file or directory" in str(exc_info.value)


def test_error_classification() -> None:
    assert classify_error(returncode=1, stderr="dial tcp: connection refused", stdout="") == "retryable"
    assert classify_error(returncode=-9, stderr="", stdout="") == "retryable"
    assert classify_error(returncode=1, stderr='secrets "x" already exists', stdout="") == "fatal"


def test_command_exceeding_timeout_is_retryable() -> None:
    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        assert timeout == 3
        raise subprocess.TimeoutExpired(cmd, timeout)

    with pytest.raises(AdapterCommandError) as exc_info:
        run_command(["kubectl", "get", "nodes"], runner=runner, timeout=3, error_message="kubectl failed")
    assert exc_info.value.retryable is True
    assert exc_info.value.not_found is False
    assert "timed out after 3s" in str(exc_info.value)


def test_creates_are_bounded_by_command_timeout() -> None:
    seen: list[float | None] = []

    def runner(cmd: list[str], stdin: str | None, timeout: float | None) -> subprocess.CompletedProcess[str]:
        seen.append(timeout)
        raise subprocess.TimeoutExpired(cmd, timeout)

    with pytest.raises(GatewayException) as exc_info:
        KubectlGateway(runner=runner, command_timeout=4.5).create_namespace(manifests.namespace_manifest("demo"))
    assert seen == [4.5]
    assert exc_info.value.__cause__.retryable is True
