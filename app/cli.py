from __future__ import annotations

import logging

import typer
import uvicorn
import yaml
from fastapi.encoders import jsonable_encoder

from app import config
from app.logging_config import configure_logging
from app.models import ProvisionPayload, ProvisionRequest
from app.services import manifests, naming
from app.services.errors import StackpressException
from app.services.sequencer import build_sequencer

configure_logging()
logger = logging.getLogger(__name__)
app = typer.Typer(help="Stackpress CLI", pretty_exceptions_show_locals=False)

_NAMESPACE = typer.Option(..., "--namespace", "-n", help="Target namespace (created when missing).")
_DEPLOYMENT_NAME = typer.Option(None, "--deployment-name", help="Prefix for every resource name (default 'wp').")
_PERSISTENCE_SIZE = typer.Option(None, "--persistence-disk-size", help="WordPress volume size in GB (default 5).")
_DATABASE_SIZE = typer.Option(None, "--database-disk-size", help="MySQL volume size in GB (default 5).")
_KUBECONFIG = typer.Option(None, "--kubeconfig", help="Path to a kubeconfig; kubectl defaults apply when omitted.")


def _exit_for_domain_error(exc: StackpressException) -> None:
    logger.warning("CLI command failed with domain error: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _echo_yaml_entity(entity: object) -> None:
    encoded = jsonable_encoder(entity)
    typer.echo(yaml.safe_dump(encoded, sort_keys=False), nl=False)


def _request_from_options(
    *,
    namespace: str,
    deployment_name: str | None,
    persistence_disk_size: int | None,
    database_disk_size: int | None,
    kubeconfig: str | None,
) -> ProvisionRequest:
    return ProvisionRequest.from_payload(
        ProvisionPayload(
            namespace=namespace,
            deployment_name=deployment_name,
            persistence_disk_size=persistence_disk_size,
            database_disk_size=database_disk_size,
            kubeconfig=kubeconfig,
        )
    )


@app.command("provision")
def provision(
    namespace: str = _NAMESPACE,
    deployment_name: str | None = _DEPLOYMENT_NAME,
    persistence_disk_size: int | None = _PERSISTENCE_SIZE,
    database_disk_size: int | None = _DATABASE_SIZE,
    kubeconfig: str | None = _KUBECONFIG,
) -> None:
    """Create the full WordPress + MySQL stack and wait for it to become ready."""
    try:
        request = _request_from_options(
            namespace=namespace,
            deployment_name=deployment_name,
            persistence_disk_size=persistence_disk_size,
            database_disk_size=database_disk_size,
            kubeconfig=kubeconfig,
        )
    except StackpressException as e:
        _exit_for_domain_error(e)

    outcome = build_sequencer(request).run(request)
    if not outcome.success:
        typer.echo(f"Error: {outcome.message}", err=True)
        raise typer.Exit(code=1)
    _echo_yaml_entity(outcome.to_response())


@app.command("render")
def render(
    namespace: str = _NAMESPACE,
    deployment_name: str | None = _DEPLOYMENT_NAME,
    persistence_disk_size: int | None = _PERSISTENCE_SIZE,
    database_disk_size: int | None = _DATABASE_SIZE,
) -> None:
    """Print the manifests a provision run would create, with credentials redacted."""
    try:
        request = _request_from_options(
            namespace=namespace,
            deployment_name=deployment_name,
            persistence_disk_size=persistence_disk_size,
            database_disk_size=database_disk_size,
            kubeconfig=None,
        )
        suffix = naming.new_suffix()
        credentials = naming.generate_credentials()
    except StackpressException as e:
        _exit_for_domain_error(e)

    documents = manifests.stack_manifests(
        namespace=request.namespace,
        names=naming.derive_names(request.deployment_prefix, suffix),
        credentials=credentials,
        database_size_gb=request.database_size_gb,
        persistence_size_gb=request.persistence_size_gb,
    )
    documents = [
        manifests.redact_credential_store(doc) if doc["kind"] == "Secret" else doc for doc in documents
    ]
    typer.echo(yaml.safe_dump_all(documents, sort_keys=False), nl=False)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int | None = typer.Option(None, "--port", help="Listen port (default $PORT or 8080)."),
) -> None:
    """Run the HTTP provisioning API."""
    uvicorn.run("app.main:app", host=host, port=port or config.port(), log_level="info")


if __name__ == "__main__":
    app()
