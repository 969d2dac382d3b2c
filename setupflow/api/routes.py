from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from setupflow.api.auth import require_api_key
from setupflow.api.schemas import (
    ClientConfig,
    ElementUpdate,
    FieldUpdate,
    ReferenceField,
    SetupCompleteView,
    WorkflowView,
)
from setupflow.core.controller import CollectingPaymentDetails, CollectingReference, WorkflowController
from setupflow.core.detail_stage import SecureDetailCollectionStage
from setupflow.core.errors import StageConflictError
from setupflow.core.reference_stage import ReferenceCollectionStage
from setupflow.observability.logging import log
from setupflow.provider.stripe_client import retrieve_setup_intent
from setupflow.settings import settings
from setupflow.store.workflow_registry import WorkflowRegistry, get_registry

router = APIRouter(dependencies=[Depends(require_api_key)])
# Browser-facing: the provider redirects here without our API key
public_router = APIRouter()

UNVERIFIED_MESSAGE = "Setup status could not be verified"


def registry_dep() -> WorkflowRegistry:
    return get_registry()


def _controller(workflow_id: str, registry: WorkflowRegistry) -> WorkflowController:
    return registry.get(workflow_id)


def _reference_stage(controller: WorkflowController, operation: str) -> ReferenceCollectionStage:
    if not isinstance(controller.stage, CollectingReference):
        raise StageConflictError(operation, controller.stage.name)
    return controller.stage.form


def _detail_stage(controller: WorkflowController, operation: str) -> SecureDetailCollectionStage:
    if not isinstance(controller.stage, CollectingPaymentDetails):
        raise StageConflictError(operation, controller.stage.name)
    return controller.stage.details


@router.post("/workflows", response_model=WorkflowView, status_code=201)
async def create_workflow(registry: WorkflowRegistry = Depends(registry_dep)):
    controller = registry.create()
    return controller.view()


@router.get("/workflows/{workflow_id}", response_model=WorkflowView)
async def get_workflow(workflow_id: str, registry: WorkflowRegistry = Depends(registry_dep)):
    return _controller(workflow_id, registry).view()


@router.delete("/workflows/{workflow_id}", status_code=204)
async def delete_workflow(workflow_id: str, registry: WorkflowRegistry = Depends(registry_dep)):
    registry.remove(workflow_id)


# ---------------------------------------------------------------------------
# Screen A: reference collection
# ---------------------------------------------------------------------------
@router.put("/workflows/{workflow_id}/reference/{field}", response_model=WorkflowView)
async def update_reference_field(
    workflow_id: str,
    field: ReferenceField,
    body: FieldUpdate,
    registry: WorkflowRegistry = Depends(registry_dep),
):
    controller = _controller(workflow_id, registry)
    _reference_stage(controller, "update_field").update_field(field, body.value)
    return controller.view()


@router.post("/workflows/{workflow_id}/reference/submit", response_model=WorkflowView)
async def submit_reference(workflow_id: str, registry: WorkflowRegistry = Depends(registry_dep)):
    controller = _controller(workflow_id, registry)
    if not _reference_stage(controller, "submit").submit():
        return JSONResponse(status_code=422, content=controller.view())
    return controller.view()


# ---------------------------------------------------------------------------
# Screen B: secure detail collection
# ---------------------------------------------------------------------------
@router.put("/workflows/{workflow_id}/element", response_model=WorkflowView)
async def update_element(workflow_id: str, body: ElementUpdate, registry: WorkflowRegistry = Depends(registry_dep)):
    controller = _controller(workflow_id, registry)
    details = _detail_stage(controller, "update_element")
    if details.in_flight:
        # The submitted input is already on its way to the provider
        raise StageConflictError("update_element", details.state.name)
    element = getattr(details.provider, "element", None)
    if element is None:
        raise HTTPException(status_code=409, detail="Provider does not accept element updates")
    element.update(body.paymentMethod, body.paymentMethodType)
    return controller.view()


@router.post("/workflows/{workflow_id}/confirm", response_model=WorkflowView)
async def confirm_setup(workflow_id: str, registry: WorkflowRegistry = Depends(registry_dep)):
    controller = _controller(workflow_id, registry)
    await _detail_stage(controller, "confirm").confirm()
    return controller.view()


@router.post("/workflows/{workflow_id}/back", response_model=WorkflowView)
async def go_back(workflow_id: str, registry: WorkflowRegistry = Depends(registry_dep)):
    controller = _controller(workflow_id, registry)
    _detail_stage(controller, "back").back()
    return controller.view()


@router.post("/workflows/{workflow_id}/start-another", response_model=WorkflowView)
async def start_another(workflow_id: str, registry: WorkflowRegistry = Depends(registry_dep)):
    controller = _controller(workflow_id, registry)
    _detail_stage(controller, "start_another").start_another()
    return controller.view()


# ---------------------------------------------------------------------------
# Client bootstrap + redirect return target
# ---------------------------------------------------------------------------
@router.get("/config", response_model=ClientConfig)
async def client_config():
    """Values the client needs to mount the embedded element."""
    return ClientConfig(
        publishableKey=settings.STRIPE_PUBLISHABLE_KEY,
        returnUrl=settings.return_url,
        elementOptions={"layout": settings.ELEMENT_LAYOUT, "paymentMethodOrder": settings.payment_method_order()},
        appearance=settings.element_appearance(),
    )


@public_router.get(settings.SETUP_RETURN_PATH, response_model=SetupCompleteView)
async def setup_complete(
    setup_intent: str,
    redirect_status: str = "",
    setup_intent_client_secret: Optional[str] = None,
    workflow_id: Optional[str] = None,
    registry: WorkflowRegistry = Depends(registry_dep),
):
    """
    Return target after a provider redirect.

    The status is always read back from the provider; redirect_status from the query is
    only logged. When the owning workflow is still waiting on this redirect it is settled
    to complete or failed.
    """
    controller = registry.find(workflow_id)
    reference = controller.reference if controller is not None else None
    if reference is None or reference.id != setup_intent:
        controller, reference = None, None

    secret = setup_intent_client_secret or (reference.confirmationSecret if reference else None)
    if not secret:
        log(event="setup_complete_unverified", setupId=setup_intent, redirectStatus=redirect_status)
        return SetupCompleteView(setupId=setup_intent, status="unverified", succeeded=False, message=UNVERIFIED_MESSAGE)

    try:
        intent = await retrieve_setup_intent(setup_intent, secret)
    except httpx.HTTPError as e:
        log(event="setup_complete_lookup_failed", setupId=setup_intent, errorType=type(e).__name__)
        raise HTTPException(status_code=502, detail="Could not verify setup status")

    status = intent.get("status") or "unknown"
    message = (intent.get("last_setup_error") or {}).get("message")
    succeeded = status == "succeeded"
    if not succeeded and not message:
        message = "Setup failed"

    resolved = False
    if controller is not None:
        # processing settles later on the provider side; treat it like confirm() does
        resolved = controller.stage.details.resolve_redirect(status in ("succeeded", "processing"), message)
    log(event="setup_complete", setupId=setup_intent, status=status, redirectStatus=redirect_status, workflowResolved=resolved)
    return SetupCompleteView(setupId=setup_intent, status=status, succeeded=succeeded, message=message)
