# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

Levels, handlers and formats live in etc/logging.conf.  This module points
the file handler at the log directory (``PREP360_LOG_DIR`` or ``<root>/log``),
applies the config via the standard-library fileConfig loader and attaches
a filter that masks credential-looking values before any record is emitted.

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser
import logging
import logging.config
import os
import re
from pathlib import Path

# project root: backend/core/logger.py  →  ../../  →  prep360/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR      = Path(os.environ.get("PREP360_LOG_DIR", _PROJECT_ROOT / "log"))
_LOG_FILE     = _LOG_DIR / "app.log"
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"

# key=value / "key": "value" pairs whose value must never reach a log file
_SECRET_PATTERN = re.compile(
    r"(?i)(password|token|secret|authorization|totp_secret)"
    r"(\"?\s*[:=]\s*\"?)(Bearer\s+)?([^\s\",&]+)"
)


class SecretMaskingFilter(logging.Filter):
    """Rewrite the rendered message so secrets appear as ``******``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}******", message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _configure() -> logging.Logger:
    _LOG_DIR.mkdir(parents=True, exist_ok=True)

    # logging.conf uses %(log_file)s as a placeholder for the handler path.
    raw = _LOGGING_CONF.read_text(encoding="utf-8")
    raw = raw.replace("%(log_file)s", _LOG_FILE.as_posix())

    # RawConfigParser: the format strings contain %(asctime)s etc.
    parser = configparser.RawConfigParser()
    parser.read_string(raw)
    logging.config.fileConfig(parser, disable_existing_loggers=False)

    app_logger = logging.getLogger("prep360")
    for handler in app_logger.handlers:
        handler.addFilter(SecretMaskingFilter())
    return app_logger


logger = _configure()
