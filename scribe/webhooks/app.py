"""Webhook receiver that feeds async job results into the job store."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from scribe.jobs.store import JobStore, normalize_job_id

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "elevenlabs-signature"
SIGNATURE_TOLERANCE_SECONDS = 30 * 60
COMPLETION_EVENTS = frozenset({
    "speech_to_text_transcription",
    "speech_to_text.completed",
    "speech_to_text.transcription",
})
FAILURE_EVENTS = frozenset({"speech_to_text.failed"})


class SignatureError(Exception):
    pass


def sign_payload(body: bytes, secret: str, timestamp: int) -> str:
    """Build a header value ``t=<ts>,v0=<hex>`` for ``body``."""
    message = f"{timestamp}.".encode() + body
    digest = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    return f"t={timestamp},v0={digest}"


def verify_signature(
    body: bytes,
    header: str,
    secret: str,
    tolerance_seconds: float = SIGNATURE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    parts = dict(
        item.split("=", 1) for item in header.split(",") if "=" in item
    )
    timestamp = parts.get("t", "")
    signature = parts.get("v0")
    if not timestamp.isdigit() or not signature:
        raise SignatureError("Malformed signature header")
    now = time.time() if now is None else now
    if abs(now - int(timestamp)) > tolerance_seconds:
        raise SignatureError("Signature timestamp outside tolerance")
    expected = sign_payload(body, secret, int(timestamp)).split("v0=", 1)[1]
    if not hmac.compare_digest(expected, signature):
        raise SignatureError("Invalid signature")


def create_app(
    store: JobStore,
    secret: str | None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    app = FastAPI(title="scribe webhook receiver")

    @app.get("/webhooks/elevenlabs")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "endpoint": "ElevenLabs speech-to-text webhook",
            "configured": bool(secret),
            "pending_jobs": len(store),
        }

    @app.post("/webhooks/elevenlabs")
    async def receive(request: Request) -> JSONResponse:
        header = request.headers.get(SIGNATURE_HEADER)
        if not header:
            logger.error("Webhook call without %s header", SIGNATURE_HEADER)
            return JSONResponse({"error": "Missing signature"}, status_code=401)
        if not secret:
            logger.error("ELEVENLABS_WEBHOOK_SECRET is not configured")
            return JSONResponse(
                {"error": "Webhook secret not configured"}, status_code=500,
            )

        body = await request.body()
        try:
            verify_signature(body, header, secret, now=clock())
        except SignatureError as e:
            logger.warning("Rejected webhook: %s", e)
            return JSONResponse({"error": "Invalid signature"}, status_code=401)

        try:
            event = json.loads(body)
            event_type = event.get("type")
            data = event.get("data") or {}
        except (ValueError, AttributeError):
            logger.error("Webhook body is not a JSON object")
            return JSONResponse({"error": "Invalid payload"}, status_code=400)

        request_id = data.get("request_id") if isinstance(data, dict) else None
        if event_type in COMPLETION_EVENTS and request_id:
            store.complete(
                normalize_job_id(request_id),
                {"transcription": data.get("transcription")},
            )
            return JSONResponse(
                {"received": True, "requestId": request_id, "type": event_type},
            )
        if event_type in FAILURE_EVENTS and request_id:
            store.fail(normalize_job_id(request_id), str(data.get("error") or event_type))
            return JSONResponse(
                {"received": True, "requestId": request_id, "type": event_type},
            )

        logger.info("Ignoring webhook event %s", event_type)
        return JSONResponse({"received": True, "type": event_type})

    return app
