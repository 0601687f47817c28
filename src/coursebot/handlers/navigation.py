"""Catalog navigation state machine.

Turns inbound chat events into menu transitions:
  ROOT -> YEAR -> SEMESTER -> CATEGORY -> COURSE [-> SUBCOURSE] -> DELIVERING

A state names the catalog level selected last; its menu lists that level's
children. Selecting a course without sub-folders, or any sub-course, hands
the folder to the delivery pipeline. Back rebuilds the parent menu from the
session's navigation stack; Main Menu returns to the years.

Session reads and writes happen under the chat's lock. The delivery itself
runs after the lock is released so /start can cancel it.

Key class: Navigator (handle_command, handle_callback).
"""

import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from ..catalog import Catalog
from ..errors import (
    DeliveryCancelled,
    DeliveryInProgress,
    DeliveryStopping,
    EmptyListing,
    InvalidSelection,
    NavigationError,
)
from ..gateway import Keyboard, MessagingGateway
from ..session import Session, SessionStore
from ..utils import display_name
from .callback_data import (
    Action,
    ActionKind,
    decode_action,
    depth_for_kind,
    resolve_action,
    select_data,
)
from .delivery import DeliveryPipeline
from .menu_ui import MenuRenderer, build_keyboard

logger = logging.getLogger(__name__)

# Catalog depths (number of selected segments)
CATEGORY_DEPTH = 3
COURSE_DEPTH = 4
MAX_DEPTH = 5

ERROR_TEXT = "❌ Error occurred"
HELP_TEXT = (
    "📚 **Course Materials**\n\n"
    "Send /start to open the main menu, then pick a year, semester, "
    "category and course. The files of the course are sent to this chat.\n\n"
    "/menu starts over and stops any download in progress."
)
HINT_TEXT = "Send /start to browse the materials."

# Heading of the menu listing the children of each depth
_MENU_TITLES = (
    "📚 **Select Academic Year**",
    "📆 **Select Semester**",
    "📂 **Select Category**",
    "📘 **Select Course**",
    "📁 **Select Section**",
)

# Shown instead of a menu when a level has no children
_EMPTY_TEXTS = (
    "⚠ No materials found.",
    "⚠ No semesters available.",
    "⚠ No categories available.",
    "⚠ No courses available.",
)


class NavState(Enum):
    ROOT = "root"
    YEAR = "year"
    SEMESTER = "semester"
    CATEGORY = "category"
    COURSE = "course"
    SUBCOURSE = "subcourse"
    DELIVERING = "delivering"


_STATE_BY_DEPTH = (
    NavState.ROOT,
    NavState.YEAR,
    NavState.SEMESTER,
    NavState.CATEGORY,
    NavState.COURSE,
    NavState.SUBCOURSE,
)


def state_for_depth(depth: int) -> NavState:
    return _STATE_BY_DEPTH[min(depth, MAX_DEPTH)]


@dataclass(frozen=True)
class CommandEvent:
    chat_id: int
    text: str


@dataclass(frozen=True)
class CallbackEvent:
    chat_id: int
    message_id: int | None
    callback_id: str
    data: str


@dataclass(frozen=True)
class Transition:
    """Outcome of one event: the state reached and the delivered leaf."""

    state: NavState
    path: Path | None = None


class Navigator:
    def __init__(
        self,
        catalog: Catalog,
        store: SessionStore,
        renderer: MenuRenderer,
        pipeline: DeliveryPipeline,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.renderer = renderer
        self.pipeline = pipeline

    @property
    def gateway(self) -> MessagingGateway:
        return self.renderer.gateway

    def state_of(self, chat_id: int) -> NavState:
        session = self.store.get(chat_id)
        if session is None:
            return NavState.ROOT
        if self.store.delivery_active(chat_id):
            return NavState.DELIVERING
        return state_for_depth(len(session.navigation_stack))

    # --- Event entry points ---

    async def handle_command(self, event: CommandEvent) -> Transition:
        parts = event.text.split(None, 1)
        command = parts[0].split("@")[0].lower() if parts else ""
        if command in ("/start", "/menu"):
            return await self._guarded(event.chat_id, self._start(event.chat_id))
        if command == "/help":
            await self.renderer.notice(event.chat_id, HELP_TEXT)
        else:
            await self.renderer.notice(event.chat_id, HINT_TEXT)
        return Transition(self.state_of(event.chat_id))

    async def handle_callback(self, event: CallbackEvent) -> Transition:
        await self.gateway.answer_callback(event.callback_id)
        return await self._guarded(event.chat_id, self._dispatch(event))

    async def _guarded(
        self, chat_id: int, work: Coroutine[Any, Any, Transition]
    ) -> Transition:
        """Run one event; every failure becomes at most one notice."""
        try:
            return await work
        except DeliveryCancelled:
            logger.debug("Delivery for chat %d ended by reset", chat_id)
        except NavigationError as e:
            logger.debug("Chat %d: %s", chat_id, type(e).__name__)
            await self.renderer.notice(chat_id, e.user_message)
        except Exception:
            logger.exception("Error handling event for chat %d", chat_id)
            await self.renderer.notice(chat_id, ERROR_TEXT)
        return Transition(self.state_of(chat_id))

    # --- Transitions ---

    async def _start(self, chat_id: int) -> Transition:
        async with self.store.lock(chat_id):
            stale_ids = self.store.reset(chat_id)
            for message_id in stale_ids:
                await self.gateway.delete_message(chat_id, message_id)
            session = self.store.get_or_create(chat_id)
            years = self.catalog.list_directories(self.catalog.root)
            if not years:
                raise EmptyListing(_EMPTY_TEXTS[0])
            logger.info("Chat %d started browsing", chat_id)
            return await self._open(session, (), None, years)

    async def _dispatch(self, event: CallbackEvent) -> Transition:
        action = decode_action(event.data)
        if action.kind is ActionKind.UNKNOWN:
            logger.debug("Unknown callback data %r", event.data)
            raise InvalidSelection()

        chat_id = event.chat_id
        async with self.store.lock(chat_id):
            session = self.store.get_or_create(chat_id)
            if self.store.delivery_stopping(chat_id):
                raise DeliveryStopping()
            if self.store.delivery_active(chat_id):
                raise DeliveryInProgress()

            if action.kind is ActionKind.GO_MENU:
                return await self._open(session, (), event.message_id)
            if action.kind is ActionKind.GO_BACK:
                parent = tuple(session.navigation_stack[:-1])
                return await self._open(session, parent, event.message_id)

            segments = self._resolve_segments(chat_id, action)
            path = self.catalog.path_for(segments)
            # One listing per event, reused for the menu or the delivery
            children = self.catalog.list_directories(path)
            if children and len(segments) < MAX_DEPTH:
                return await self._open(session, segments, event.message_id, children)
            if len(segments) < COURSE_DEPTH:
                raise EmptyListing(_EMPTY_TEXTS[len(segments)])

            files = self.catalog.list_files(path)
            cancel_event = self.store.try_begin_delivery(chat_id)
            if cancel_event is None:
                raise DeliveryInProgress()
            session.navigation_stack[:] = segments[:-1]

        category = segments[CATEGORY_DEPTH - 1]
        try:
            await self.pipeline.run(
                chat_id, path, category, files=files, cancel_event=cancel_event
            )
        finally:
            self.store.end_delivery(chat_id, cancel_event)
        return Transition(NavState.DELIVERING, path)

    def _resolve_segments(self, chat_id: int, action: Action) -> tuple[str, ...]:
        path = resolve_action(self.store, chat_id, action)
        try:
            segments = self.catalog.segments_for(path)
        except ValueError as e:
            raise InvalidSelection() from e
        if len(segments) != depth_for_kind(action.kind):
            raise InvalidSelection()
        return segments

    async def _open(
        self,
        session: Session,
        segments: tuple[str, ...],
        message_id: int | None,
        children: list[str] | None = None,
    ) -> Transition:
        """Make segments the current level and show its menu."""
        if children is None:
            children = self.catalog.list_directories(self.catalog.path_for(segments))
        session.navigation_stack[:] = segments
        text, keyboard = self.build_menu(session.chat_id, segments, children)
        await self.renderer.render(session.chat_id, text, keyboard, message_id)
        return Transition(state_for_depth(len(segments)))

    def build_menu(
        self, chat_id: int, segments: tuple[str, ...], children: list[str]
    ) -> tuple[str, Keyboard]:
        """Menu text and keyboard listing children of the level at segments."""
        depth = len(segments)
        child_depth = depth + 1
        items = [
            (
                display_name(name, upper=child_depth == CATEGORY_DEPTH),
                select_data(
                    self.store,
                    chat_id,
                    child_depth,
                    self.catalog.path_for((*segments, name)),
                ),
            )
            for name in children
        ]
        keyboard = build_keyboard(
            items,
            numbered=child_depth >= COURSE_DEPTH,
            back=depth >= 2,
            home=depth >= 1,
        )

        lines = [_MENU_TITLES[min(depth, MAX_DEPTH - 1)]]
        if segments:
            lines.append(" › ".join(display_name(s) for s in segments))
        if not children:
            lines.append(_EMPTY_TEXTS[min(depth, len(_EMPTY_TEXTS) - 1)])
        return "\n\n".join(lines), keyboard
