"""Application configuration: reads env vars and exposes a singleton.

Loads TELEGRAM_BOT_TOKEN, the materials directory, webhook settings, and
session/delivery tuning values from environment variables (with .env support).
.env loading priority: local .env (cwd) > $COURSEBOT_DIR/.env (default ~/.coursebot).
The module-level `config` instance is imported by bot.py and main.py; the
navigation core receives its settings explicitly.

Key class: Config (singleton instantiated as `config`).
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .utils import coursebot_dir

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_float(
    name: str, default: float, *, minimum: float = 0.0, positive: bool = False
) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if positive and value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        self.config_dir = coursebot_dir()

        # Load .env: local (cwd) takes priority over config_dir
        # load_dotenv default override=False means first-loaded wins
        local_env = Path(".env")
        global_env = self.config_dir / ".env"
        if local_env.is_file():
            load_dotenv(local_env)
            logger.debug("Loaded env from %s", local_env.resolve())
        if global_env.is_file():
            load_dotenv(global_env)
            logger.debug("Loaded env from %s", global_env)

        self.telegram_bot_token: str = (
            os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("BOT_TOKEN") or ""
        )
        if not self.telegram_bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        self.materials_dir = (
            Path(os.getenv("MATERIALS_DIR", "materials")).expanduser().resolve()
        )

        # Webhook mode when a public URL is known, long polling otherwise
        self.webhook_url = (
            os.getenv("WEBHOOK_URL") or os.getenv("RENDER_EXTERNAL_URL") or ""
        ).rstrip("/")
        self.port = _env_int("PORT", 3000, minimum=1)

        # Session store bounds
        self.session_ttl = (
            _env_float("SESSION_TTL_MINUTES", 60.0, positive=True) * 60
        )
        self.max_sessions = _env_int("MAX_SESSIONS", 1000, minimum=1)
        self.message_history_size = _env_int("MESSAGE_HISTORY_SIZE", 20, minimum=1)

        # Delivery pacing
        self.delivery_delay = _env_float("DELIVERY_DELAY", 0.4)
        self.send_timeout = _env_float("SEND_TIMEOUT", 30.0, minimum=0.1)
        self.delivery_timeout = _env_float("DELIVERY_TIMEOUT", 900.0, minimum=1.0)
        self.progress_edit_interval = _env_float("PROGRESS_EDIT_INTERVAL", 1.0)

        # Categories whose files hold links sent as text instead of documents
        self.link_categories: tuple[str, ...] = tuple(
            kw.strip().lower()
            for kw in os.getenv("LINK_CATEGORIES", "video").split(",")
            if kw.strip()
        )

        self.menu_animation = (
            os.getenv("MENU_ANIMATION", "").strip().lower() in _TRUE_VALUES
        )

        logger.debug(
            "Config initialized: dir=%s, token=%s..., materials=%s, webhook=%s",
            self.config_dir,
            self.telegram_bot_token[:8],
            self.materials_dir,
            self.webhook_url or "(polling)",
        )

    @property
    def use_webhook(self) -> bool:
        return bool(self.webhook_url)


config = Config()
