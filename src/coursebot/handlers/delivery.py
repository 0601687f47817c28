"""File delivery pipeline: sends every file of a catalog leaf to a chat.

Files are sent one at a time in listing order:
  - Reference categories (name contains a link keyword such as "video"):
    the file's text, usually a URL, is sent as a plain message.
  - Everything else: the file is uploaded as a document under its own name.

A single progress message is edited as files go out, at most once per
PROGRESS_EDIT_INTERVAL and only when the percentage changes. A missing,
empty or failing file produces a skip notice and the batch continues.
Each send is bounded by a timeout. The chat's cancel event (set by /start)
is checked before and after every file and awaited during the inter-file
pause, so a reset stops the batch without sending anything further.

Key class: DeliveryPipeline.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import NoReturn

from ..catalog import Catalog
from ..errors import DeliveryCancelled, TransientSendFailure
from ..gateway import MessagingGateway
from ..utils import split_message
from .menu_ui import MenuRenderer

logger = logging.getLogger(__name__)

NO_FILES_TEXT = "⚠ No files found."


def progress_text(percent: int, completed: int, total: int) -> str:
    filled = percent // 10
    bar = "▰" * filled + "▱" * (10 - filled)
    return f"📤 Sending files… {bar} {percent}% ({completed}/{total})"


def summary_text(sent: int, total: int) -> str:
    icon = "✅" if sent == total else "⚠"
    return f"{icon} {sent} of {total} sent"


@dataclass
class DeliveryReport:
    total: int
    sent: int = 0
    skipped: list[str] = field(default_factory=list)


class ProgressReporter:
    """Throttled edits of the progress message.

    Percentages only move forward; the last update can be forced so the
    final 100% is always shown.
    """

    def __init__(
        self,
        gateway: MessagingGateway,
        chat_id: int,
        message_id: int | None,
        total: int,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.chat_id = chat_id
        self.message_id = message_id
        self.total = total
        self.min_interval = min_interval
        self._clock = clock
        self._last_edit = clock()
        self.emitted: list[int] = [0]

    @property
    def percent(self) -> int:
        return self.emitted[-1]

    async def update(self, completed: int, *, force: bool = False) -> None:
        percent = completed * 100 // self.total
        if percent <= self.percent:
            return
        now = self._clock()
        if not force and now - self._last_edit < self.min_interval:
            return
        self._last_edit = now
        self.emitted.append(percent)
        if self.message_id is not None:
            await self.gateway.edit_text(
                self.chat_id,
                self.message_id,
                progress_text(percent, completed, self.total),
            )


class DeliveryPipeline:
    """Sequential, rate-limited transmission of a leaf's files."""

    def __init__(
        self,
        gateway: MessagingGateway,
        catalog: Catalog,
        renderer: MenuRenderer,
        *,
        link_categories: tuple[str, ...] = ("video",),
        delay: float = 0.4,
        send_timeout: float = 30.0,
        progress_interval: float = 1.0,
    ) -> None:
        self.gateway = gateway
        self.catalog = catalog
        self.renderer = renderer
        self.link_categories = tuple(kw.lower() for kw in link_categories)
        self.delay = delay
        self.send_timeout = send_timeout
        self.progress_interval = progress_interval

    def is_reference(self, category: str) -> bool:
        """Whether files in this category hold links rather than material."""
        lowered = category.lower()
        return any(kw in lowered for kw in self.link_categories)

    async def run(
        self,
        chat_id: int,
        leaf: Path,
        category: str,
        *,
        files: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> DeliveryReport:
        """Send every file in leaf. Raises DeliveryCancelled on reset.

        files is the listing already read for this event; when omitted the
        leaf is listed here.
        """
        cancel = cancel_event if cancel_event is not None else asyncio.Event()
        names = list(files) if files is not None else self.catalog.list_files(leaf)
        report = DeliveryReport(total=len(names))
        if not names:
            await self.renderer.notice(chat_id, NO_FILES_TEXT)
            return report

        reference = self.is_reference(category)
        logger.info(
            "Delivering %d file(s) from %s to chat %d (%s)",
            report.total,
            leaf,
            chat_id,
            "links" if reference else "documents",
        )
        progress_id = await self.renderer.notice(
            chat_id, progress_text(0, 0, report.total)
        )
        progress = ProgressReporter(
            self.gateway, chat_id, progress_id, report.total, self.progress_interval
        )

        for index, name in enumerate(names, start=1):
            if cancel.is_set():
                self._cancelled(chat_id, report, index - 1)
            failure = await self._deliver_file(chat_id, leaf / name, name, reference)
            # A reset during the send leaves nothing more for this chat
            if cancel.is_set():
                self._cancelled(chat_id, report, index)
            if failure is None:
                report.sent += 1
            else:
                report.skipped.append(name)
                await self.renderer.notice(chat_id, failure)
            await progress.update(index, force=index == report.total)
            if index < report.total and await self._pause(cancel):
                self._cancelled(chat_id, report, index)

        if progress_id is not None:
            await self.gateway.delete_message(chat_id, progress_id)
        await self.renderer.notice(chat_id, summary_text(report.sent, report.total))
        logger.info(
            "Delivery to chat %d done: %d of %d sent",
            chat_id,
            report.sent,
            report.total,
        )
        return report

    def _cancelled(
        self, chat_id: int, report: DeliveryReport, done: int
    ) -> NoReturn:
        logger.info(
            "Delivery to chat %d cancelled after %d of %d file(s)",
            chat_id,
            done,
            report.total,
        )
        raise DeliveryCancelled()

    async def _pause(self, cancel: asyncio.Event) -> bool:
        """Inter-file delay. Returns True if cancelled while waiting."""
        if self.delay <= 0:
            return cancel.is_set()
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self.delay)
        except TimeoutError:
            return False
        return True

    async def _deliver_file(
        self, chat_id: int, path: Path, name: str, reference: bool
    ) -> str | None:
        """Send one file. Returns the skip notice for the user, None if sent."""
        if self.catalog.file_size(path) <= 0:
            logger.warning("Skipping %s: missing or empty", path)
            return f"⚠ Skipped {name}: file is missing or empty."
        try:
            await asyncio.wait_for(
                self._transmit(chat_id, path, name, reference),
                timeout=self.send_timeout,
            )
        except TransientSendFailure as e:
            logger.warning("Failed to send %s to chat %d", path, chat_id)
            return e.user_message
        except TimeoutError:
            logger.warning(
                "Sending %s to chat %d timed out after %.1fs",
                path,
                chat_id,
                self.send_timeout,
            )
            return f"⚠ Skipped {name}: sending timed out."
        except OSError as e:
            logger.warning("Failed to read %s: %s", path, e)
            return f"⚠ Skipped {name}: file unreadable."
        return None

    async def _transmit(
        self, chat_id: int, path: Path, name: str, reference: bool
    ) -> None:
        await self.gateway.send_typing(chat_id, upload=not reference)
        if reference:
            text = self.catalog.read_text(path).strip()
            if not text:
                raise TransientSendFailure(f"⚠ Skipped {name}: no link inside.")
            for chunk in split_message(text):
                if await self.gateway.send_text(chat_id, chunk, plain=True) is None:
                    raise TransientSendFailure(f"⚠ Failed to send {name}.")
        elif not await self.gateway.send_document(chat_id, path, name):
            raise TransientSendFailure(f"⚠ Failed to send {name}.")
