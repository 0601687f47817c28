"""Application entry point: Click CLI dispatcher and bot bootstrap.

main() hands control to the Click group in cli.py. The ``run`` command
applies its flags to the environment and then calls run_bot(), which sets
up logging, loads the configuration and starts serving updates.
"""

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(short_name)-20s %(message)s"
_LOG_DATEFMT = "%H:%M:%S"
_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party loggers that are too chatty below WARNING
_QUIET_LOGGERS = ("httpx", "httpcore", "telegram.ext", "apscheduler")

_PACKAGE_PREFIXES = ("coursebot.handlers.", "coursebot.")


class _ShortNameFilter(logging.Filter):
    """Expose record.short_name: logger name without package prefix, 20 chars."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        for prefix in _PACKAGE_PREFIXES:
            if name.startswith(prefix):
                name = name[len(prefix) :]
                break
        record.short_name = name[:20]  # type: ignore[attr-defined]
        return True


def _console_handler() -> logging.Handler:
    try:
        import colorlog
    except ImportError:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
        return handler

    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s" + _LOG_FORMAT,
            datefmt=_LOG_DATEFMT,
            log_colors=_LOG_COLORS,
        )
    )
    return handler


def setup_logging(log_level: str) -> None:
    """Route all logging to one colored console handler.

    Unknown level names fall back to INFO. Only the coursebot loggers follow
    log_level; everything else stays at WARNING.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = _console_handler()
    handler.addFilter(_ShortNameFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("coursebot").setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _exit_with_config_help(error: ValueError) -> None:
    from .utils import coursebot_dir

    env_path = coursebot_dir() / ".env"
    print(f"Configuration error: {error}\n")
    print(f"Put the settings in ./.env or {env_path}, for example:\n")
    print("  TELEGRAM_BOT_TOKEN=123456:ABC...")
    print("  MATERIALS_DIR=/srv/materials")
    print("\nA bot token can be created with @BotFather on Telegram.")
    sys.exit(1)


def run_bot() -> None:
    """Start the bot. Called by the ``run`` Click command after env is set."""
    setup_logging(os.environ.get("COURSEBOT_LOG_LEVEL", "INFO"))
    logger = logging.getLogger(__name__)

    try:
        from .config import config
    except ValueError as e:
        _exit_with_config_help(e)
        return

    if not config.materials_dir.is_dir():
        logger.warning(
            "Materials directory %s does not exist; menus will be empty",
            config.materials_dir,
        )

    from .bot import create_bot, run_application

    logger.info("CourseBot starting (materials: %s)", config.materials_dir)
    run_application(create_bot())


def main() -> None:
    """Console script entry point."""
    from .cli import cli

    cli()


if __name__ == "__main__":
    main()
