from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
DEFAULT_READY_TIMEOUT = 120.0
DEFAULT_READY_INTERVAL = 5.0
DEFAULT_COMMAND_TIMEOUT = 30.0


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %s", name, raw, default)
        return default
    return value


def port() -> int:
    return int(_float_env("PORT", DEFAULT_PORT))


def kubectl_binary() -> str:
    return os.getenv("STACKPRESS_KUBECTL", "kubectl")


def ready_timeout() -> float:
    return _float_env("STACKPRESS_READY_TIMEOUT", DEFAULT_READY_TIMEOUT)


def ready_interval() -> float:
    return _float_env("STACKPRESS_READY_INTERVAL", DEFAULT_READY_INTERVAL)


def command_timeout() -> float:
    return _float_env("STACKPRESS_COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT)


def database_image() -> str:
    return os.getenv("STACKPRESS_DATABASE_IMAGE", "mysql:8")


def application_image() -> str:
    return os.getenv("STACKPRESS_APPLICATION_IMAGE", "wordpress:6.7.1")


def host_path_root() -> str:
    return os.getenv("STACKPRESS_HOST_PATH_ROOT", "/mnt/data").rstrip("/") or "/"
