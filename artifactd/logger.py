from __future__ import annotations

import sys
from typing import Any, TextIO, cast

from loguru import logger as loguru_logger

from .settings import Settings, load_settings

_LOGGING_CONFIGURED = False

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "artifact=<cyan>{extra[artifact]}</cyan> "
    "medium=<magenta>{extra[medium]}</magenta> | "
    "{message}"
)


def _patch_record(record: dict[str, Any]) -> None:
    extra = cast(dict[str, object], record["extra"])
    for key in ("artifact", "medium"):
        value = str(extra.get(key, "-") or "-").strip() or "-"
        extra[key] = value


def setup_logging(settings: Settings | None = None, *, sink: TextIO | None = None, force: bool = False) -> None:
    """
    Install the process-wide log sink.

    Idempotent unless `force` is set; the CLI calls this once at startup.
    Library code only ever calls get_logger().
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and not force:
        return

    config = settings or load_settings()

    loguru_logger.remove()
    loguru_logger.configure(patcher=_patch_record)
    loguru_logger.add(
        sink or sys.stderr,
        level=config.log_level,
        format=_TEXT_FORMAT,
        colorize=False if config.log_json else None,
        serialize=config.log_json,
        backtrace=True,
        diagnose=False,
    )

    _LOGGING_CONFIGURED = True


def get_logger():
    return loguru_logger.bind(artifact="-", medium="-")
