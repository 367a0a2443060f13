"""
Update middleware that attributes handler log lines to the chat.
"""

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from svitlo.logging_config import chat_logging


class ChatLoggingMiddleware(BaseMiddleware):
    """
    Registered on dp.update after aiogram's own context middleware, so the
    chat and sender of any update type are already resolved in `data`.
    Callback queries on messages too old to carry a chat fall back to the sender.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        chat = data.get("event_chat") or data.get("event_from_user")
        with chat_logging(chat.id if chat else None):
            return await handler(event, data)
