from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel

from app.services.errors import StackpressException, ValidationException
from app.services.naming import is_valid_dns_label, is_valid_prefix

DEFAULT_PREFIX = "wp"
DEFAULT_DISK_SIZE_GB = 5


class ProvisionPayload(BaseModel):
    kubeconfig: Optional[str] = None
    namespace: Optional[str] = None
    persistence_disk_size: Optional[int] = None
    database_disk_size: Optional[int] = None
    deployment_name: Optional[str] = None


class ProvisionResponse(BaseModel):
    success: bool
    message: str
    resources: list[str] = []


def _size_or_default(value: int | None) -> int:
    if value is None or value <= 0:
        return DEFAULT_DISK_SIZE_GB
    return value


@dataclass(frozen=True)
class ProvisionRequest:
    namespace: str
    deployment_prefix: str = DEFAULT_PREFIX
    persistence_size_gb: int = DEFAULT_DISK_SIZE_GB
    database_size_gb: int = DEFAULT_DISK_SIZE_GB
    kubeconfig: str | None = None

    @classmethod
    def from_payload(cls, payload: ProvisionPayload) -> "ProvisionRequest":
        namespace = (payload.namespace or "").strip()
        if not namespace:
            raise ValidationException("namespace is required")
        if not is_valid_dns_label(namespace):
            raise ValidationException(
                f"namespace {namespace!r} must be a lowercase DNS label of at most 63 characters"
            )
        prefix = (payload.deployment_name or "").strip() or DEFAULT_PREFIX
        if not is_valid_prefix(prefix):
            raise ValidationException(
                f"deployment_name {prefix!r} may only contain lowercase letters, digits and '-'"
                " and must start and end with a letter or digit"
            )
        return cls(
            namespace=namespace,
            deployment_prefix=prefix,
            persistence_size_gb=_size_or_default(payload.persistence_disk_size),
            database_size_gb=_size_or_default(payload.database_disk_size),
            kubeconfig=payload.kubeconfig or None,
        )


@dataclass(frozen=True)
class ManifestEntry:
    kind: str
    name: str
    tier: str | None = None

    def describe(self) -> str:
        if self.tier:
            return f"{self.tier} {self.kind}: {self.name}"
        return f"{self.kind}: {self.name}"


@dataclass(frozen=True)
class ProvisioningOutcome:
    success: bool
    message: str
    resources: tuple[ManifestEntry, ...] = ()
    error: StackpressException | None = field(default=None, compare=False, repr=False)

    def to_response(self) -> ProvisionResponse:
        return ProvisionResponse(
            success=self.success,
            message=self.message,
            resources=[entry.describe() for entry in self.resources],
        )
