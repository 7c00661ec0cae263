from __future__ import annotations
from datetime import date
from pathlib import Path
from typing import Any, Optional
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

THEME = Theme({"info": "cyan", "warn": "yellow", "error": "bold red"})

# results go to stdout, log records to stderr so --json output stays parseable
_console = Console(theme=THEME)
_log_console = Console(theme=THEME, stderr=True)
_mirror: Optional[Console] = None

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_console() -> Console:
    return _console


def log_file_for(log_dir: Path, day: Optional[date] = None) -> Path:
    """Dated log path, one file per day: deploy_YYYYMMDD.log."""
    day = day or date.today()
    return log_dir / f"deploy_{day.strftime('%Y%m%d')}.log"


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    global _mirror
    if _mirror is not None:
        _mirror.file.close()
        _mirror = None

    handlers: list[logging.Handler] = [
        RichHandler(console=_log_console, show_path=False, markup=False),
    ]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(fh)
        _mirror = Console(
            file=log_file.open("a", encoding="utf-8"),
            theme=THEME,
            width=120,
            color_system=None,
        )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def echo(*objects: Any) -> None:
    """Print for the operator and write the same rendering to the log file."""
    _console.print(*objects)
    if _mirror is not None:
        _mirror.print(*objects)


def echo_json(text: str) -> None:
    print(text)
    record(text)


def record(text: str) -> None:
    """Append plain text to the log file without showing it."""
    if _mirror is not None:
        _mirror.out(text, highlight=False)


def log_output(logger: logging.Logger, text: str, level: int = logging.INFO) -> None:
    """Log captured command output line by line so the log file mirrors the terminal."""
    for line in text.splitlines():
        if line.strip():
            logger.log(level, "  %s", line)
