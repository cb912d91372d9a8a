from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.api.utils import envelope, status_for
from app.models import ProvisionPayload, ProvisionRequest, ProvisionResponse
from app.services.sequencer import SequencerFactory, build_sequencer

router = APIRouter(tags=["provisioning"])

logger = logging.getLogger(__name__)


def get_sequencer_factory() -> SequencerFactory:
    return build_sequencer


@router.post("/create-wordpress", response_model=ProvisionResponse)
def create_wordpress(
    payload: ProvisionPayload,
    sequencer_factory: SequencerFactory = Depends(get_sequencer_factory),
):
    request = ProvisionRequest.from_payload(payload)
    logger.info(
        "Received request to deploy WordPress: namespace=%s deployment_name=%s kubeconfig=%s",
        request.namespace,
        request.deployment_prefix,
        request.kubeconfig or "<default>",
    )
    outcome = sequencer_factory(request).run(request)
    if not outcome.success:
        return envelope(status_code=status_for(outcome.error), message=outcome.message)
    return outcome.to_response()


@router.api_route(
    "/create-wordpress",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
def create_wordpress_method_not_allowed():
    return envelope(status_code=405, message="Only POST is allowed", headers={"Allow": "POST"})


@router.get("/healthz", include_in_schema=False)
def healthz() -> dict[str, str]:
    return {"status": "ok"}
