"""Shared fixtures for coursebot unit tests.

Provides a recording MessagingGateway fake, a small materials tree on disk,
and a fully wired Navigator built on both.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path

import pytest

from coursebot.catalog import Catalog
from coursebot.gateway import Keyboard
from coursebot.handlers.delivery import DeliveryPipeline
from coursebot.handlers.menu_ui import MenuRenderer
from coursebot.handlers.navigation import Navigator
from coursebot.session import SessionStore


@dataclass
class SentMessage:
    chat_id: int
    message_id: int
    text: str
    keyboard: Keyboard | None
    plain: bool = False


class FakeGateway:
    """Records every gateway call; messages get increasing ids."""

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self.edits: list[tuple[int, int, str, Keyboard | None]] = []
        self.deleted: list[tuple[int, int]] = []
        self.documents: list[tuple[int, str]] = []
        self.answered: list[str] = []
        self.typing: list[tuple[int, bool]] = []
        self.edit_ok = True
        self.fail_documents: set[str] = set()
        # Awaited before each document upload when set
        self.document_gate: asyncio.Event | None = None
        self.document_delay = 0.0
        self._next_id = 100
        # (text, keyboard) of every send and edit, in call order
        self.screens: list[tuple[str, Keyboard | None]] = []

    async def send_text(self, chat_id, text, keyboard=None, *, plain=False):
        self._next_id += 1
        self.sent.append(SentMessage(chat_id, self._next_id, text, keyboard, plain))
        self.screens.append((text, keyboard))
        return self._next_id

    async def edit_text(self, chat_id, message_id, text, keyboard=None):
        self.edits.append((chat_id, message_id, text, keyboard))
        if self.edit_ok:
            self.screens.append((text, keyboard))
        return self.edit_ok

    async def delete_message(self, chat_id, message_id):
        self.deleted.append((chat_id, message_id))
        return True

    async def send_document(self, chat_id, path, filename):
        if self.document_gate is not None:
            await self.document_gate.wait()
        if self.document_delay:
            await asyncio.sleep(self.document_delay)
        if filename in self.fail_documents:
            return False
        self.documents.append((chat_id, filename))
        return True

    async def answer_callback(self, callback_id, text=None):
        self.answered.append(callback_id)

    async def send_typing(self, chat_id, upload=False):
        self.typing.append((chat_id, upload))

    # --- helpers for assertions ---

    def texts(self) -> list[str]:
        return [m.text for m in self.sent]

    def last_keyboard(self) -> Keyboard | None:
        """Keyboard of the most recent menu, sent or edited."""
        for _text, keyboard in reversed(self.screens):
            if keyboard:
                return keyboard
        return None

    def last_menu_text(self) -> str | None:
        for text, keyboard in reversed(self.screens):
            if keyboard:
                return text
        return None

    def button(self, label: str) -> str:
        """Callback data of the first latest-menu button containing label."""
        for row in self.last_keyboard() or []:
            for text, data in row:
                if label in text:
                    return data
        raise AssertionError(f"no button {label!r} in {self.last_keyboard()}")

    def labels(self) -> list[str]:
        return [text for row in self.last_keyboard() or [] for text, _ in row]


def _write(path: Path, content: bytes = b"data") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


@pytest.fixture
def materials(tmp_path: Path) -> Path:
    """Small catalog tree covering every menu level.

    2023/fall/videos/Algorithms          two link files
    2023/fall/notes/Data_Structures      two documents and one empty file
    2023/fall/notes/Operating_Systems    two sub-courses with one file each
    2023/spring                          no categories
    2024/fall/books                      no courses
    """
    root = tmp_path / "materials"
    _write(root / "2023/fall/videos/Algorithms/lecture1.txt", b"https://youtu.be/a\n")
    _write(root / "2023/fall/videos/Algorithms/lecture2.txt", b"https://youtu.be/b\n")
    _write(root / "2023/fall/notes/Data_Structures/ch1.pdf", b"%PDF-1")
    _write(root / "2023/fall/notes/Data_Structures/ch2.pdf", b"%PDF-2")
    _write(root / "2023/fall/notes/Data_Structures/empty.pdf", b"")
    _write(root / "2023/fall/notes/Operating_Systems/Part_1/a.pdf")
    _write(root / "2023/fall/notes/Operating_Systems/Part_2/b.pdf")
    (root / "2023/spring").mkdir(parents=True)
    (root / "2024/fall/books").mkdir(parents=True)
    return root


@pytest.fixture
def catalog(materials: Path) -> Catalog:
    return Catalog(materials)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def renderer(gateway: FakeGateway, store: SessionStore) -> MenuRenderer:
    return MenuRenderer(gateway, store)


@pytest.fixture
def pipeline(
    gateway: FakeGateway, catalog: Catalog, renderer: MenuRenderer
) -> DeliveryPipeline:
    return DeliveryPipeline(
        gateway, catalog, renderer, delay=0, send_timeout=5, progress_interval=0
    )


@pytest.fixture
def navigator(
    catalog: Catalog,
    store: SessionStore,
    renderer: MenuRenderer,
    pipeline: DeliveryPipeline,
) -> Navigator:
    return Navigator(catalog, store, renderer, pipeline)
