"""Callback data for the catalog menus: the action codec.

Every inline button carries callback data of the form <prefix><key>, where
the prefix names the menu level being selected and the key is an opaque
token issued by the SessionStore for the target path. Fixed navigation
buttons use literal payloads.

Constants:
  - CB_SELECT_*: select an entry at a given catalog depth
  - CB_NAV_MENU / CB_NAV_BACK: jump to the root menu / one level up

Key functions: encode_action, decode_action, resolve_action.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import InvalidSelection
from ..session import SessionStore

# Telegram rejects callback_data longer than 64 bytes
MAX_CALLBACK_BYTES = 64

# Catalog selections (prefix + token key)
CB_SELECT_YEAR = "y:"
CB_SELECT_SEMESTER = "s:"
CB_SELECT_CATEGORY = "c:"
CB_SELECT_COURSE = "f:"
CB_SELECT_SUBCOURSE = "sc:"

# Navigation
CB_NAV_MENU = "nav:menu"
CB_NAV_BACK = "nav:back"


class ActionKind(Enum):
    SELECT_YEAR = "select_year"
    SELECT_SEMESTER = "select_semester"
    SELECT_CATEGORY = "select_category"
    SELECT_COURSE = "select_course"
    SELECT_SUBCOURSE = "select_subcourse"
    GO_MENU = "go_menu"
    GO_BACK = "go_back"
    UNKNOWN = "unknown"


# Select kinds in catalog order; index + 1 is the depth of the selected path
SELECT_KINDS: tuple[ActionKind, ...] = (
    ActionKind.SELECT_YEAR,
    ActionKind.SELECT_SEMESTER,
    ActionKind.SELECT_CATEGORY,
    ActionKind.SELECT_COURSE,
    ActionKind.SELECT_SUBCOURSE,
)

_SELECT_PREFIXES: dict[ActionKind, str] = {
    ActionKind.SELECT_YEAR: CB_SELECT_YEAR,
    ActionKind.SELECT_SEMESTER: CB_SELECT_SEMESTER,
    ActionKind.SELECT_CATEGORY: CB_SELECT_CATEGORY,
    ActionKind.SELECT_COURSE: CB_SELECT_COURSE,
    ActionKind.SELECT_SUBCOURSE: CB_SELECT_SUBCOURSE,
}

# Longest prefix first so "sc:" is not read as "s:" + "c:..."
_PREFIX_TO_KIND: list[tuple[str, ActionKind]] = sorted(
    ((prefix, kind) for kind, prefix in _SELECT_PREFIXES.items()),
    key=lambda item: len(item[0]),
    reverse=True,
)

_LITERALS: dict[str, ActionKind] = {
    CB_NAV_MENU: ActionKind.GO_MENU,
    CB_NAV_BACK: ActionKind.GO_BACK,
}

_KEY_CHARS = frozenset("0123456789abcdefghijklmnopqrstuvwxyz")


@dataclass(frozen=True)
class Action:
    """A decoded button press. key is empty for navigation and UNKNOWN."""

    kind: ActionKind
    key: str = ""

    @property
    def is_select(self) -> bool:
        return self.kind in _SELECT_PREFIXES


UNKNOWN_ACTION = Action(ActionKind.UNKNOWN)


def select_kind_for_depth(depth: int) -> ActionKind:
    """Select kind for choosing an entry that sits at depth (1 = year)."""
    if not 1 <= depth <= len(SELECT_KINDS):
        raise ValueError(f"no selection level at depth {depth}")
    return SELECT_KINDS[depth - 1]


def depth_for_kind(kind: ActionKind) -> int:
    return SELECT_KINDS.index(kind) + 1


def encode_action(action: Action) -> str:
    """Callback data for an action. Raises ValueError if it cannot fit."""
    if action.kind is ActionKind.GO_MENU:
        data = CB_NAV_MENU
    elif action.kind is ActionKind.GO_BACK:
        data = CB_NAV_BACK
    elif action.is_select:
        if not action.key:
            raise ValueError(f"{action.kind.value} needs a token key")
        data = f"{_SELECT_PREFIXES[action.kind]}{action.key}"
    else:
        raise ValueError("UNKNOWN actions cannot be encoded")
    if len(data.encode("utf-8")) > MAX_CALLBACK_BYTES:
        raise ValueError(f"callback data too long: {len(data.encode('utf-8'))} bytes")
    return data


def decode_action(data: str | None) -> Action:
    """Parse callback data. Anything unrecognized becomes UNKNOWN_ACTION."""
    if not data:
        return UNKNOWN_ACTION
    literal = _LITERALS.get(data)
    if literal is not None:
        return Action(literal)
    for prefix, kind in _PREFIX_TO_KIND:
        if data.startswith(prefix):
            key = data[len(prefix) :]
            if key and set(key) <= _KEY_CHARS:
                return Action(kind, key)
            return UNKNOWN_ACTION
    return UNKNOWN_ACTION


def select_data(store: SessionStore, chat_id: int, depth: int, path: Path) -> str:
    """Issue a token for path and encode the select action for its depth."""
    key = store.cache_path(chat_id, path)
    return encode_action(Action(select_kind_for_depth(depth), key))


def resolve_action(store: SessionStore, chat_id: int, action: Action) -> Path:
    """Target path of a select action.

    Raises SessionExpired when the token is no longer cached and
    InvalidSelection for actions that do not name a path.
    """
    if not action.is_select:
        raise InvalidSelection()
    return store.resolve(chat_id, action.key)
