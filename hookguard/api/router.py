import math
from fastapi import APIRouter, Depends, Header, Query, Request, status
from .schemas import (
    WebhookCreateRequest,
    WebhookCreateResponse,
    WebhookListResponse,
    MessageResponse,
)
from ..event_models import Event
from ..security.rate_limiter import resolve_client_identity
from ..security.signature import SIGNATURE_HEADER
from ..services.intake import IntakeGuard

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


def get_intake(request: Request) -> IntakeGuard:
    return request.app.state.intake


def client_identity(request: Request) -> str:
    peer = request.client.host if request.client else None
    return resolve_client_identity(request.headers.get("x-forwarded-for"), peer)


@router.post("", response_model=WebhookCreateResponse, status_code=status.HTTP_201_CREATED)
def receive_webhook(
    req: WebhookCreateRequest,
    signature: str | None = Header(default=None, alias=SIGNATURE_HEADER),
    identity: str = Depends(client_identity),
    intake: IntakeGuard = Depends(get_intake),
):
    event = intake.accept(req.to_inbound(), signature, identity)
    return WebhookCreateResponse(id=event.id)


@router.get("", response_model=WebhookListResponse)
def list_webhooks(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    source: str | None = None,
    event_type: str | None = Query(default=None, alias="eventType"),
    intake: IntakeGuard = Depends(get_intake),
):
    result = intake.list_events(page=page, limit=limit, source=source, event_type=event_type)
    return WebhookListResponse(
        items=result.items,
        count=len(result.items),
        page=page,
        limit=limit,
        total_pages=math.ceil(result.total / limit),
    )


@router.get("/{event_id}", response_model=Event)
def get_webhook(event_id: str, intake: IntakeGuard = Depends(get_intake)):
    return intake.get_event(event_id)


@router.delete("/{event_id}", response_model=MessageResponse)
def delete_webhook(event_id: str, intake: IntakeGuard = Depends(get_intake)):
    intake.delete_event(event_id)
    return MessageResponse(message="Webhook deleted successfully")
