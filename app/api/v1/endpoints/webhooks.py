"""Webhook intake: payments, CRM and identity provider.

Bodies are read raw because signatures cover the exact bytes. Status
codes come from the exception handlers: 401 bad signature, 400
malformed, 503 not configured, 500 processing failure.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.api.v1.dependencies import get_webhook_reconciler
from app.application.services import WebhookReconciler
from app.core.limiter import limit_webhooks
from app.domain.enums import WebhookSource
from app.schemas.webhook import WebhookResponse

router = APIRouter()

ReconcilerDep = Annotated[WebhookReconciler, Depends(get_webhook_reconciler)]


async def _receive(source: WebhookSource, request: Request, reconciler: WebhookReconciler) -> WebhookResponse:
    raw_body = await request.body()
    outcome = await reconciler.receive(source, raw_body, request.headers)
    return WebhookResponse(**outcome.to_dict())


@router.post("/payments", response_model=WebhookResponse, response_model_exclude_none=True)
@limit_webhooks
async def payments_webhook(request: Request, reconciler: ReconcilerDep) -> WebhookResponse:
    return await _receive(WebhookSource.PAYMENTS, request, reconciler)


@router.post("/crm", response_model=WebhookResponse, response_model_exclude_none=True)
@limit_webhooks
async def crm_webhook(request: Request, reconciler: ReconcilerDep) -> WebhookResponse:
    return await _receive(WebhookSource.CRM, request, reconciler)


@router.post("/identity", response_model=WebhookResponse, response_model_exclude_none=True)
@limit_webhooks
async def identity_webhook(request: Request, reconciler: ReconcilerDep) -> WebhookResponse:
    return await _receive(WebhookSource.IDENTITY, request, reconciler)
