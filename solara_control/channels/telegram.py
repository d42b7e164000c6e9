"""Telegram Bot API webhook adapter.

Only inbound parsing lives here. Replies are returned to the caller as
``sendMessage`` payloads; delivering them is the bot gateway's job.
"""
from __future__ import annotations

import hmac
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .base import ChannelAdapter
from ..conversations.models import NormalizedMessage

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

# Media kinds forwarded as attachments; photos arrive as a list of sizes.
_MEDIA_KINDS = ("document", "voice", "audio", "video")


def _sent_at(timestamp: int | None) -> datetime:
    if not timestamp:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _attachments(message: Mapping[str, Any]) -> list[dict[str, Any]]:
    found: list[dict[str, Any]] = []
    if message.get("photo"):
        found.append({"type": "photo", "sizes": message["photo"]})
    for kind in _MEDIA_KINDS:
        media = message.get(kind)
        if media:
            found.append({"type": kind, **media})
    return found


class TelegramAdapter(ChannelAdapter):
    """Turn bot updates into visitor messages for the orchestrator.

    ``secret_token`` is the value registered with ``setWebhook``; when set,
    updates without the matching header are rejected.
    """

    channel_name = "telegram"

    def __init__(self, *, secret_token: str | None = None) -> None:
        self.secret_token = secret_token

    def verify_signature(self, body: bytes, headers: Mapping[str, str]) -> bool:
        if not self.secret_token:
            return True
        received = headers.get(SECRET_HEADER)
        return bool(received) and hmac.compare_digest(received, self.secret_token)

    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> Iterable[NormalizedMessage]:
        message = payload.get("message") or payload.get("edited_message")
        callback = payload.get("callback_query")
        if message:
            normalized = self._normalize(
                chat=message.get("chat") or {},
                user=message.get("from") or {},
                text=message.get("text") or message.get("caption") or "",
                attachments=_attachments(message),
                metadata={"message_id": message.get("message_id")},
                sent_at=_sent_at(message.get("date")),
            )
        elif callback:
            normalized = self._normalize(
                chat=(callback.get("message") or {}).get("chat") or {},
                user=callback.get("from") or {},
                text=callback.get("data") or "",
                metadata={"callback_query_id": callback.get("id")},
            )
        else:
            return
        # Stickers, joins and empty button presses carry nothing to answer.
        if normalized.text.strip():
            yield normalized

    def build_outgoing_payload(self, chat_id: str, text: str) -> dict[str, Any]:
        return {"method": "sendMessage", "chat_id": chat_id, "text": text}

    def _normalize(
        self,
        *,
        chat: Mapping[str, Any],
        user: Mapping[str, Any],
        text: str,
        metadata: dict[str, Any],
        attachments: list[dict[str, Any]] | None = None,
        sent_at: datetime | None = None,
    ) -> NormalizedMessage:
        return NormalizedMessage(
            channel=self.channel_name,
            external_conversation_id=str(chat.get("id")),
            sender_id=str(user.get("id")),
            sender_name=self._visitor_name(user),
            text=text,
            attachments=attachments or [],
            metadata={**metadata, "chat": dict(chat)},
            sent_at=sent_at or datetime.now(timezone.utc),
        )

    @staticmethod
    def _visitor_name(user: Mapping[str, Any]) -> str | None:
        full_name = " ".join(
            part for part in (user.get("first_name"), user.get("last_name")) if part
        )
        return full_name or user.get("username") or None
