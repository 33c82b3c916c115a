"""Loguru-based structured logging configuration.

All logs are written to the configured file as JSON lines.
Stdlib logging is intercepted and funneled to loguru.
Context vars (signals, source) from contextualize() are
included at top level for easy grep/filter, along with the pid and thread
name, since handlers only ever run on the main thread of one process.
"""

import json
import logging
import sys
from loguru import logger


_configured = False

# Context keys we promote to top-level JSON for traceability
_CONTEXT_KEYS = ("signals", "source")


def _serialize_with_context(record) -> str:
    """Format record as JSON with context vars at top level.
    Returns a format template; we inject _json into record for output.
    """
    extra = record.get("extra", {})
    out = {
        "time": str(record["time"]),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
        "pid": record["process"].id,
        "thread": record["thread"].name,
    }
    for key in _CONTEXT_KEYS:
        if key in extra and extra[key] is not None:
            out[key] = extra[key]
    record["extra"]["_json"] = json.dumps(out, default=str)
    return "{extra[_json]}\n"


class InterceptHandler(logging.Handler):
    """Redirect stdlib logging to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(
    log_file: str,
    *,
    level: str = "DEBUG",
    console: bool = False,
    force: bool = False,
) -> None:
    """Configure loguru with JSON output to log_file and intercept stdlib logging.

    Idempotent: skips if already configured.
    Use force=True to reconfigure (e.g. in tests with a different log path).
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    # Remove default loguru handler (writes to stderr)
    logger.remove()

    # Truncate log file on fresh start for clean debugging
    open(log_file, "w", encoding="utf-8").close()

    # File sink: JSON lines, context vars at top level
    logger.add(
        log_file,
        level=level,
        format=_serialize_with_context,
        encoding="utf-8",
        mode="a",
    )

    # Human-readable sink for interactive runs
    if console:
        logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")

    # Intercept stdlib logging: route all root logger output to loguru
    intercept = InterceptHandler()
    logging.root.handlers = [intercept]
    logging.root.setLevel(logging.DEBUG)
