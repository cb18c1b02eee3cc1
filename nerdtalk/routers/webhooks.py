from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from nerdtalk.core.crypto import verify_webhook_signature
from nerdtalk.core.settings import S
from nerdtalk.services.webhooks import handle_org_event

router = APIRouter(tags=["webhooks"])


@router.post("/api/webhook/organizations")
async def organization_webhook(req: Request):
    raw_body = await req.body()
    if not S.webhook_secret:
        raise HTTPException(500, "ORG_WEBHOOK_SECRET not set; cannot verify webhook signatures")

    verified = verify_webhook_signature(
        S.webhook_secret,
        req.headers.get("svix-id"),
        req.headers.get("svix-timestamp"),
        req.headers.get("svix-signature"),
        raw_body,
        tolerance_seconds=S.webhook_tolerance_seconds,
    )
    if not verified:
        return JSONResponse({"message": "Invalid webhook signature"}, status_code=400)

    try:
        event = json.loads(raw_body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        return JSONResponse({"message": "Invalid JSON payload"}, status_code=400)
    if not isinstance(event, dict):
        return JSONResponse({"message": "Invalid JSON payload"}, status_code=400)

    status, message = handle_org_event(event)
    return JSONResponse({"message": message}, status_code=status)
