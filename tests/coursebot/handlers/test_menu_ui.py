"""Tests for keyboard building and menu rendering."""

from coursebot.handlers.callback_data import CB_NAV_BACK, CB_NAV_MENU
from coursebot.handlers.menu_ui import (
    BACK_LABEL,
    HOME_LABEL,
    MenuRenderer,
    build_keyboard,
)


class TestBuildKeyboard:
    def test_one_row_per_item(self):
        rows = build_keyboard([("A", "y:0"), ("B", "y:1")])
        assert rows == [[("A", "y:0")], [("B", "y:1")]]

    def test_numbered(self):
        rows = build_keyboard([("A", "f:0"), ("B", "f:1")], numbered=True)
        assert [r[0][0] for r in rows] == ["1. A", "2. B"]

    def test_navigation_rows(self):
        rows = build_keyboard([("A", "c:0")], back=True, home=True)
        assert rows[-2] == [(BACK_LABEL, CB_NAV_BACK)]
        assert rows[-1] == [(HOME_LABEL, CB_NAV_MENU)]

    def test_empty_items_keep_navigation(self):
        assert build_keyboard([], home=True) == [[(HOME_LABEL, CB_NAV_MENU)]]


class TestRender:
    async def test_edits_in_place(self, gateway, store):
        renderer = MenuRenderer(gateway, store)
        keyboard = [[("A", "y:0")]]
        assert await renderer.render(1, "menu", keyboard, message_id=7) == 7
        assert gateway.edits == [(1, 7, "menu", keyboard)]
        assert gateway.sent == []

    async def test_failed_edit_sends_new(self, gateway, store):
        gateway.edit_ok = False
        renderer = MenuRenderer(gateway, store)
        message_id = await renderer.render(1, "menu", [[("A", "y:0")]], message_id=7)
        assert message_id == gateway.sent[-1].message_id
        assert store.get(1).message_history == [message_id]

    async def test_notice_tracked(self, gateway, store):
        renderer = MenuRenderer(gateway, store)
        message_id = await renderer.notice(1, "hi")
        assert gateway.sent[-1].keyboard is None
        assert store.get(1).message_history == [message_id]


class TestAnimatedRender:
    async def test_ends_with_full_keyboard(self, gateway, store):
        renderer = MenuRenderer(gateway, store, animate=True, animation_step=0)
        keyboard = [[(str(i), f"y:{i}")] for i in range(7)]
        message_id = await renderer.render(1, "menu", keyboard)
        assert gateway.sent[0].keyboard == keyboard[:2]
        assert gateway.edits[-1] == (1, message_id, "menu", keyboard)
        assert len(gateway.sent) == 1

    async def test_failed_final_edit_replaced(self, gateway, store):
        gateway.edit_ok = False
        renderer = MenuRenderer(gateway, store, animate=True, animation_step=0)
        keyboard = [[(str(i), f"y:{i}")] for i in range(5)]
        await renderer.render(1, "menu", keyboard)
        first = gateway.sent[0].message_id
        assert (1, first) in gateway.deleted
        assert gateway.sent[-1].keyboard == keyboard
        assert store.get(1).message_history == [gateway.sent[-1].message_id]
