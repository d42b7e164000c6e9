"""Channel adapters for inbound messaging."""

from __future__ import annotations

from .base import ChannelAdapter
from .telegram import TelegramAdapter

__all__ = ["ChannelAdapter", "TelegramAdapter"]
