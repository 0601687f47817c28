"""Messaging gateway interface consumed by the navigation core.

The core never talks to python-telegram-bot directly; it calls these
coroutines instead. handlers/message_sender.py provides the Telegram
implementation, tests provide a recording fake.

Every method reports failure through its return value and never raises:
  - send_text: new message id, or None when sending failed.
  - edit_text / delete_message: False when the message is gone or the call failed.
  - send_document: False on any upload failure.

Keyboards are plain data: rows of (label, callback_data) pairs.
"""

from pathlib import Path
from typing import Protocol

KeyboardButton = tuple[str, str]
Keyboard = list[list[KeyboardButton]]


class MessagingGateway(Protocol):
    async def send_text(
        self,
        chat_id: int,
        text: str,
        keyboard: Keyboard | None = None,
        *,
        plain: bool = False,
    ) -> int | None: ...

    async def edit_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Keyboard | None = None,
    ) -> bool: ...

    async def delete_message(self, chat_id: int, message_id: int) -> bool: ...

    async def send_document(
        self, chat_id: int, path: Path, filename: str
    ) -> bool: ...

    async def answer_callback(
        self, callback_id: str, text: str | None = None
    ) -> None: ...

    async def send_typing(self, chat_id: int, upload: bool = False) -> None: ...
