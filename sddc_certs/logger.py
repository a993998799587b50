"""
Centralized logging setup and configuration.

Console output of certificate operations against SDDC Manager, with
banner helpers for the CLI and redaction of credentials on every handler.
"""

import logging
import re
import sys
from typing import List, Optional

DEFAULT_LOGGER_NAME = "SddcCerts"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
REDACTED = "********"

# Credential shapes that can reach a message through request errors
_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s'\"]+"),
    re.compile(r"""(["']?(?:accessToken|refreshToken|password)["']?\s*[:=]\s*["']?)[^\s'",}]+""", re.IGNORECASE),
)


class SecretRedactingFilter(logging.Filter):
    """
    Masks credentials in log records before any handler writes them.

    Bearer tokens and password/token fields are masked by shape; values
    registered with add_secret() are masked wherever they appear.
    """

    def __init__(self):
        super().__init__()
        self._secrets: List[str] = []

    def add_secret(self, value: Optional[str]) -> None:
        if value and value not in self._secrets:
            self._secrets.append(value)

    def redact(self, text: str) -> str:
        for pattern in _SECRET_PATTERNS:
            text = pattern.sub(lambda m: m.group(1) + REDACTED, text)
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.getMessage())
        record.args = None
        return True


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when stdout is a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(LOG_FORMAT)
        self.use_colors = use_colors and sys.stdout.isatty()

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        if not self.use_colors:
            return line
        color = self.COLORS.get(record.levelname, "")
        tag = f"[{record.levelname}]"
        return line.replace(tag, f"[{color}{record.levelname}{self.RESET}]", 1)


class StructuredLogger(logging.Logger):
    """
    Logger with helpers for the banner-style output of the CLI.
    """

    def section(self, title: str) -> None:
        """Log a section header."""
        self.info("")
        self.info("=" * 60)
        self.info(title)
        self.info("=" * 60)

    def success(self, message: str) -> None:
        self.info(f"[OK] {message}")

    def failure(self, message: str) -> None:
        self.error(f"[FAIL] {message}")

    def diagnostics(self, lines: List[str]) -> None:
        """
        Log one ERROR line per diagnostic entry.

        Args:
            lines: Pre-rendered diagnostic lines, one per failing resource
        """
        for line in lines:
            self.error(f"  - {line}")


_logger: Optional[StructuredLogger] = None
_redactor = SecretRedactingFilter()


def mask_secret(value: Optional[str]) -> None:
    """Never print `value` in any log output from now on."""
    _redactor.add_secret(value)


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    verbose: bool = False,
    use_colors: bool = True,
    log_file: Optional[str] = None,
) -> StructuredLogger:
    """
    Setup and configure the global logger.

    Args:
        name: Logger name
        verbose: Enable debug-level logging
        use_colors: Enable colored console output
        log_file: Optional file path for an uncolored copy of the log

    Returns:
        Configured StructuredLogger instance
    """
    global _logger

    logger = logging.getLogger(name)
    logger.__class__ = StructuredLogger

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    logger.propagate = False

    # Re-running setup must not duplicate output
    logger.handlers.clear()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(ColoredFormatter(use_colors=use_colors))
    if log_file:
        handlers.append(logging.FileHandler(log_file))
        handlers[-1].setFormatter(logging.Formatter(LOG_FORMAT))

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(_redactor)
        logger.addHandler(handler)

    _logger = logger
    return logger


def get_logger() -> StructuredLogger:
    """
    Get the global logger instance, creating a default one on first use.

    Returns:
        The configured StructuredLogger instance
    """
    global _logger

    if _logger is None:
        _logger = setup_logger()

    return _logger
