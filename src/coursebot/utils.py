"""Shared utility functions used across multiple CourseBot modules.

Provides:
  - coursebot_dir(): resolve config directory from COURSEBOT_DIR env var.
  - display_name(): turn a catalog directory name into a button label.
  - split_message(): split long text into Telegram-safe chunks (≤4096 chars).
"""

import os
from pathlib import Path

COURSEBOT_DIR_ENV = "COURSEBOT_DIR"

# Max characters to show in a button label before truncating with "…"
MAX_LABEL_LEN = 48


def coursebot_dir() -> Path:
    """Resolve config directory from COURSEBOT_DIR env var or default ~/.coursebot."""
    raw = os.environ.get(COURSEBOT_DIR_ENV, "")
    return Path(raw) if raw else Path.home() / ".coursebot"


def display_name(name: str, *, upper: bool = False) -> str:
    """Button label for a catalog entry: underscores become spaces."""
    label = name.replace("_", " ").strip() or name
    if upper:
        label = label.upper()
    if len(label) > MAX_LABEL_LEN:
        label = label[: MAX_LABEL_LEN - 1] + "…"
    return label


TELEGRAM_MAX_MESSAGE_LENGTH = 4096


def split_message(
    text: str, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH
) -> list[str]:
    """Split text into chunks that fit Telegram's message length limit.

    Splits on newlines where possible; a single overlong line is cut into
    fixed-size pieces.
    """
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        if len(line) > max_length:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(
                line[i : i + max_length] for i in range(0, len(line), max_length)
            )
        elif not current:
            current = line
        elif len(current) + 1 + len(line) > max_length:
            chunks.append(current)
            current = line
        else:
            current = f"{current}\n{line}"
    if current:
        chunks.append(current)
    return chunks
