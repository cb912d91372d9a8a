from __future__ import annotations

from dataclasses import dataclass, field
import re
import secrets
from typing import Protocol

from app.services.errors import RandomSourceException

DNS_LABEL_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
# Prefixes may be any length; build_name clips them.
PREFIX_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")

MAX_NAME_LEN = 60
SUFFIX_LEN = 5
CREDENTIAL_LEN = 16

SUFFIX_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
CREDENTIAL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!@#$%^&*()-_+"

DATABASE_NAME = "wordpressdb"
APP_USERNAME = "wordpress"

DB_VOLUME = "db-pv"
DB_CLAIM = "db-pvc"
DB_WORKLOAD = "db"
DB_ENDPOINT = "db-svc"
CREDENTIAL_STORE = "db-secret"
APP_VOLUME = "wp-pv"
APP_CLAIM = "wp-pvc"
APP_WORKLOAD = "wp"
APP_ENDPOINT = "wp-svc"


class EntropySource(Protocol):
    def randbelow(self, upper: int) -> int: ...


class SystemEntropy:
    """Entropy backed by the OS CSPRNG via :mod:`secrets`."""

    def randbelow(self, upper: int) -> int:
        return secrets.randbelow(upper)


system_entropy = SystemEntropy()


@dataclass(frozen=True)
class StackNames:
    suffix: str
    db_volume: str
    db_claim: str
    db_workload: str
    db_endpoint: str
    credential_store: str
    app_volume: str
    app_claim: str
    app_workload: str
    app_endpoint: str


@dataclass(frozen=True)
class CredentialSet:
    admin_password: str = field(repr=False)
    app_password: str = field(repr=False)
    database_name: str = DATABASE_NAME
    app_username: str = APP_USERNAME


def is_valid_dns_label(value: str) -> bool:
    return bool(DNS_LABEL_RE.fullmatch(value))


def is_valid_prefix(value: str) -> bool:
    return bool(PREFIX_RE.fullmatch(value))


def _random_string(length: int, alphabet: str, entropy: EntropySource) -> str:
    if length < 0:
        raise ValueError("length must not be negative")
    try:
        # randbelow rejects out-of-range draws, so each character is uniform.
        return "".join(alphabet[entropy.randbelow(len(alphabet))] for _ in range(length))
    except (OSError, NotImplementedError) as exc:
        raise RandomSourceException(f"Could not read from the random source: {exc}") from exc


def new_suffix(entropy: EntropySource | None = None) -> str:
    return _random_string(SUFFIX_LEN, SUFFIX_ALPHABET, entropy or system_entropy)


def new_credential(length: int = CREDENTIAL_LEN, entropy: EntropySource | None = None) -> str:
    return _random_string(length, CREDENTIAL_ALPHABET, entropy or system_entropy)


def build_name(prefix: str, resource_type: str, suffix: str) -> str:
    """Return ``<prefix>-<suffix>-<resource_type>`` bounded to MAX_NAME_LEN.

    Only the prefix is shortened; suffix and type are always kept whole.
    """
    fixed_len = len(resource_type) + len(suffix) + 2
    allowed = max(MAX_NAME_LEN - fixed_len, 0)
    return f"{prefix[:allowed]}-{suffix}-{resource_type}"


def derive_names(prefix: str, suffix: str) -> StackNames:
    return StackNames(
        suffix=suffix,
        db_volume=build_name(prefix, DB_VOLUME, suffix),
        db_claim=build_name(prefix, DB_CLAIM, suffix),
        db_workload=build_name(prefix, DB_WORKLOAD, suffix),
        db_endpoint=build_name(prefix, DB_ENDPOINT, suffix),
        credential_store=build_name(prefix, CREDENTIAL_STORE, suffix),
        app_volume=build_name(prefix, APP_VOLUME, suffix),
        app_claim=build_name(prefix, APP_CLAIM, suffix),
        app_workload=build_name(prefix, APP_WORKLOAD, suffix),
        app_endpoint=build_name(prefix, APP_ENDPOINT, suffix),
    )


def generate_credentials(entropy: EntropySource | None = None) -> CredentialSet:
    return CredentialSet(
        admin_password=new_credential(CREDENTIAL_LEN, entropy),
        app_password=new_credential(CREDENTIAL_LEN, entropy),
    )
