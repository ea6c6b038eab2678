"""Loguru logging configuration.

Human-readable stderr output by default, with per-record JSON output for
records bound with ``json_output=True``. ``json_logs=True`` switches stderr to
JSON for every record (container deployments). Optionally writes to a rotating
log file when a ``log_dir`` is provided.
"""

import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"
LOG_FILE_NAME = "location-api.log"


def setup_logging(log_level: str = "INFO", log_dir: str | None = None, *, json_logs: bool = False) -> None:
    """Replace Loguru's default sink with the application sinks.

    Args:
        log_level: Minimum log level to emit.
        log_dir: Optional directory for log files.  When set, a rotating
            file sink is added (rotated every 24 hours, retained 7 days).
        json_logs: Serialize every stderr record as JSON.
    """
    level = log_level.upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=_LOG_FORMAT,
            serialize=False,
            filter=lambda record: not record["extra"].get("json_output", False),
        )
        logger.add(
            sys.stderr,
            level=level,
            serialize=True,
            filter=lambda record: record["extra"].get("json_output", False),
        )

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / LOG_FILE_NAME,
            level=level,
            format=_LOG_FORMAT,
            rotation="24h",
            retention="7 days",
        )
