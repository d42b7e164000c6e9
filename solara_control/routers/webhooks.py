"""Webhook ingestion route for the Telegram bot."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from ..channels import TelegramAdapter
from ..conversations.models import NormalizedMessage, ProcessedReply
from ..conversations.schemas import WebhookReply, WebhookResponse
from ..services import Services, service_context
from ..settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@contextmanager
def _service_context() -> Iterator[Services]:
    with service_context() as services:
        yield services


def _dispatch(
    services: Services, messages: list[NormalizedMessage]
) -> list[tuple[NormalizedMessage, ProcessedReply]]:
    handled = []
    for message in messages:
        if services.settings.dispatch_mode == "direct":
            reply = services.conversations.handle_direct(message)
        else:
            reply = services.conversations.handle_message(message)
        if reply is not None:
            handled.append((message, reply))
    return handled


@router.post("/api/webhooks/telegram")
async def telegram_webhook(request: Request) -> Response:
    settings = get_settings()
    body_bytes = await request.body()
    adapter = TelegramAdapter(secret_token=settings.telegram_secret_token)
    if not adapter.verify_signature(body_bytes, request.headers):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret token"
        )
    try:
        payload = json.loads(body_bytes.decode("utf-8")) if body_bytes else {}
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(
            status_code=400, detail=f"Invalid JSON payload: {exc}"
        ) from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Telegram update must be an object")

    messages = list(adapter.parse_incoming(payload, request.headers))
    if not messages:
        return Response(status_code=status.HTTP_202_ACCEPTED)
    for message in messages:
        if len(message.text) > settings.chat_max_message_length:
            message.text = message.text[: settings.chat_max_message_length]

    with _service_context() as services:
        handled = await run_in_threadpool(_dispatch, services, messages)

    result = WebhookResponse(
        processed=len(messages),
        replies=[
            WebhookReply(
                chat_id=message.external_conversation_id,
                text=reply.text,
                agent=reply.agent_slug,
                response_time_ms=reply.response_time_ms,
                decision=reply.decision,
                outgoing=adapter.build_outgoing_payload(
                    message.external_conversation_id, reply.text
                ),
            )
            for message, reply in handled
        ],
    )
    logger.info(
        "Telegram update processed: %s message(s), %s reply(ies)",
        result.processed,
        len(result.replies),
    )
    return Response(content=result.model_dump_json(), media_type="application/json")
