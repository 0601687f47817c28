"""Menu rendering for the catalog browser.

Builds inline keyboards from (label, callback_data) items and shows them,
either by editing the menu message in place or by sending a new message.
Optional animation reveals the keyboard row by row through repeated edits;
it always ends with a single message holding the full text and keyboard.

Key class: MenuRenderer.
"""

import asyncio
import logging

from ..gateway import Keyboard, KeyboardButton, MessagingGateway
from ..session import SessionStore
from .callback_data import CB_NAV_BACK, CB_NAV_MENU

logger = logging.getLogger(__name__)

BACK_LABEL = "⬅ Back"
HOME_LABEL = "🏠 Main Menu"

# Rows revealed per animation frame
_ANIMATION_ROWS_PER_FRAME = 2


def build_keyboard(
    items: list[KeyboardButton],
    *,
    numbered: bool = False,
    back: bool = False,
    home: bool = False,
) -> Keyboard:
    """One row per item, followed by the optional back and home rows."""
    rows: Keyboard = []
    for i, (label, data) in enumerate(items, start=1):
        text = f"{i}. {label}" if numbered else label
        rows.append([(text, data)])
    if back:
        rows.append([(BACK_LABEL, CB_NAV_BACK)])
    if home:
        rows.append([(HOME_LABEL, CB_NAV_MENU)])
    return rows


class MenuRenderer:
    """Shows menus and notices, tracking sent message ids in the session."""

    def __init__(
        self,
        gateway: MessagingGateway,
        store: SessionStore,
        *,
        animate: bool = False,
        animation_step: float = 0.08,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.animate = animate
        self.animation_step = animation_step

    async def render(
        self,
        chat_id: int,
        text: str,
        keyboard: Keyboard | None = None,
        message_id: int | None = None,
    ) -> int | None:
        """Show text + keyboard, in place when message_id is given.

        Returns the id of the message now holding the menu, or None if
        nothing could be shown.
        """
        if self.animate and keyboard:
            return await self._render_animated(chat_id, text, keyboard, message_id)

        if message_id is not None:
            if await self.gateway.edit_text(chat_id, message_id, text, keyboard):
                return message_id
            logger.debug("Edit of %d in chat %d failed, resending", message_id, chat_id)
        return await self._send(chat_id, text, keyboard)

    async def notice(self, chat_id: int, text: str) -> int | None:
        """Standalone message without keyboard."""
        return await self._send(chat_id, text, None)

    async def _send(
        self, chat_id: int, text: str, keyboard: Keyboard | None
    ) -> int | None:
        sent_id = await self.gateway.send_text(chat_id, text, keyboard)
        if sent_id is not None:
            self.store.record_message(chat_id, sent_id)
        return sent_id

    async def _render_animated(
        self,
        chat_id: int,
        text: str,
        keyboard: Keyboard,
        message_id: int | None,
    ) -> int | None:
        first = keyboard[:_ANIMATION_ROWS_PER_FRAME]
        if message_id is None or not await self.gateway.edit_text(
            chat_id, message_id, text, first
        ):
            message_id = await self._send(chat_id, text, first)
            if message_id is None:
                return None

        for end in range(
            2 * _ANIMATION_ROWS_PER_FRAME, len(keyboard), _ANIMATION_ROWS_PER_FRAME
        ):
            await asyncio.sleep(self.animation_step)
            await self.gateway.edit_text(chat_id, message_id, text, keyboard[:end])

        if len(keyboard) > len(first):
            await asyncio.sleep(self.animation_step)
            if not await self.gateway.edit_text(chat_id, message_id, text, keyboard):
                # Partial keyboard left behind; replace it with a complete menu
                await self.gateway.delete_message(chat_id, message_id)
                self.store.forget_message(chat_id, message_id)
                return await self._send(chat_id, text, keyboard)
        return message_id
