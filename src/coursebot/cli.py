"""Click-based CLI for coursebot.

Commands:
  - run (default): start the bot. Its flags override env vars and .env
    files by being exported before the configuration is loaded.
  - catalog: print the materials tree with file counts.
"""

import os
from collections.abc import Callable
from pathlib import Path

import click

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _min_value(minimum: float, *, inclusive: bool) -> Callable[..., float | None]:
    """Option callback rejecting values below (or at) minimum."""
    message = "must be non-negative" if inclusive else "must be positive"

    def _check(
        _ctx: click.Context, _param: click.Parameter, value: float | None
    ) -> float | None:
        if value is None:
            return None
        if value < minimum or (not inclusive and value == minimum):
            raise click.BadParameter(message)
        return value

    return _check


class _DefaultToRun(click.Group):
    """Group whose bare flags (``coursebot -v``) belong to ``run``."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        # Long options such as --help and --version stay with the group
        first = args[0] if args else None
        if first is not None and first not in self.commands:
            if not first.startswith("--"):
                args = ["run", *args]
        return super().parse_args(ctx, args)


@click.group(
    cls=_DefaultToRun,
    invoke_without_command=True,
    help="Telegram bot for browsing and downloading course materials.",
)
@click.version_option(package_name="coursebot", prog_name="coursebot")
@click.pass_context
def cli(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        ctx.invoke(run_cmd)


# --- run command -----------------------------------------------------------

# run option name -> environment variable read by Config
_FLAG_TO_ENV: list[tuple[str, str]] = [
    ("config_dir", "COURSEBOT_DIR"),
    ("materials_dir", "MATERIALS_DIR"),
    ("webhook_url", "WEBHOOK_URL"),
    ("port", "PORT"),
    ("delivery_delay", "DELIVERY_DELAY"),
    ("session_ttl", "SESSION_TTL_MINUTES"),
]


def _env_value(value: object) -> str:
    if isinstance(value, Path):
        return str(value.expanduser().resolve())
    return str(value)


def apply_args_to_env(**kwargs: object) -> None:
    """Export the run flags that were given so Config picks them up.

    Must run before coursebot.config is first imported. Flags left at None
    do not touch the environment. --verbose wins over --log-level.
    """
    if kwargs.get("verbose"):
        os.environ["COURSEBOT_LOG_LEVEL"] = "DEBUG"
    elif kwargs.get("log_level") is not None:
        os.environ["COURSEBOT_LOG_LEVEL"] = str(kwargs["log_level"]).upper()

    os.environ.update(
        {
            env_var: _env_value(kwargs[attr])
            for attr, env_var in _FLAG_TO_ENV
            if kwargs.get(attr) is not None
        }
    )


@cli.command("run")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level.",
)
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default=None,
    envvar="COURSEBOT_DIR",
    help="Config directory (default: ~/.coursebot).",
)
@click.option(
    "--materials-dir",
    type=click.Path(path_type=Path),
    default=None,
    envvar="MATERIALS_DIR",
    help="Root of the materials tree (default: ./materials).",
)
@click.option(
    "--webhook-url",
    default=None,
    envvar="WEBHOOK_URL",
    help="Public base URL; enables webhook mode instead of polling.",
)
@click.option(
    "--port",
    type=click.IntRange(1, 65535),
    default=None,
    envvar="PORT",
    help="Webhook listen port (default: 3000).",
)
@click.option(
    "--delivery-delay",
    type=float,
    default=None,
    callback=_min_value(0, inclusive=True),
    envvar="DELIVERY_DELAY",
    help="Pause between delivered files in seconds (default: 0.4).",
)
@click.option(
    "--session-ttl",
    type=float,
    default=None,
    callback=_min_value(0, inclusive=False),
    envvar="SESSION_TTL_MINUTES",
    help="Evict sessions idle for N minutes (default: 60).",
)
def run_cmd(**kwargs: object) -> None:
    """Start the bot with optional overrides."""
    apply_args_to_env(**kwargs)

    from .main import run_bot

    run_bot()


# --- catalog command -------------------------------------------------------


@cli.command("catalog")
@click.option(
    "--materials-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    envvar="MATERIALS_DIR",
    help="Root of the materials tree (default: ./materials).",
)
@click.option(
    "--depth",
    type=click.IntRange(0, 5),
    default=5,
    show_default=True,
    help="Deepest level to print.",
)
def catalog_cmd(materials_dir: Path | None, depth: int) -> None:
    """Print the materials tree with per-directory file counts."""
    from .catalog import Catalog

    root = (materials_dir or Path("materials")).expanduser().resolve()
    if not root.is_dir():
        raise click.ClickException(f"materials directory not found: {root}")

    catalog = Catalog(root)
    for segments, file_count in catalog.walk(max_depth=depth):
        name = segments[-1] if segments else str(root)
        indent = "  " * len(segments)
        suffix = f" ({file_count} files)" if file_count else ""
        click.echo(f"{indent}{name}{suffix}")
