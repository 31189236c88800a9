"""Logging setup with component and sync-cycle context."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "code_wiki"


class CodeWikiLogFormatter(logging.Formatter):
    """Custom formatter with component and repository context."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        # "code_wiki.sync.engine" -> "sync.engine"
        component = record.name
        if component.startswith(ROOT_LOGGER_NAME + "."):
            component = component[len(ROOT_LOGGER_NAME) + 1:]

        context = ""
        if hasattr(record, "cycle_id"):
            context += f"[cycle {record.cycle_id}] "
        if hasattr(record, "repo"):
            context += f"[{record.repo}] "

        if self.use_colors:
            level_colors = {
                "DEBUG": "\033[36m",      # Cyan
                "INFO": "\033[32m",       # Green
                "WARNING": "\033[33m",    # Yellow
                "ERROR": "\033[31m",      # Red
                "CRITICAL": "\033[35m",   # Magenta
            }
            reset = "\033[0m"
            level_color = level_colors.get(record.levelname, "")
        else:
            level_color = ""
            reset = ""

        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"[{component}] {context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that tags records with the current sync cycle and repo."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})
        self.cycle_id: Optional[int] = None
        self.repo: Optional[str] = None

    def set_context(self, cycle_id: Optional[int] = None, repo: Optional[str] = None):
        if cycle_id is not None:
            self.cycle_id = cycle_id
        self.repo = repo

    def clear_context(self):
        self.cycle_id = None
        self.repo = None

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        if self.cycle_id is not None:
            extra["cycle_id"] = self.cycle_id
        if self.repo:
            extra["repo"] = self.repo
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Console output goes to stderr; stdout is left for command output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional plain-text log file

    Returns:
        The configured ``code_wiki`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    use_colors = sys.stderr.isatty() if hasattr(sys.stderr, "isatty") else False
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(CodeWikiLogFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(CodeWikiLogFormatter(use_colors=False))
        logger.addHandler(file_handler)

    return logger
