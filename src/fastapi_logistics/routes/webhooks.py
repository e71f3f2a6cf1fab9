"""Courier webhook endpoint."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request

from fastapi_logistics.dependencies import get_webhook_intake
from fastapi_logistics.schemas import WebhookResponse
from fastapi_logistics.webhooks import WebhookIntake

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADERS = ("x-logistics-secret", "x-webhook-secret", "x-signature")


def extract_signature(request: Request, payload: dict) -> str | None:
    """Find the webhook signature in headers, then in the body."""
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.strip()
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, token = authorization.strip().partition(" ")
        return (token or scheme).strip()
    signature = payload.get("signature")
    return str(signature) if signature else None


@router.post(
    "/webhooks/{provider_code}",
    response_model=WebhookResponse,
)
async def courier_webhook(
    provider_code: str,
    request: Request,
    intake: WebhookIntake = Depends(get_webhook_intake),
) -> WebhookResponse:
    """Accept a courier status callback.

    Answers 200 for every outcome except a bad signature (401); the
    real outcome goes to the webhook audit log.
    """
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        logger.warning("Webhook for %s carried a non-JSON body", provider_code)
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    outcome = await intake.handle(
        provider_code,
        payload,
        extract_signature(request, payload),
        raw_body=raw_body,
        headers=dict(request.headers),
    )
    return WebhookResponse.from_outcome(outcome)
