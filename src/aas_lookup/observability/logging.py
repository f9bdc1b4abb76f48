"""Log output for the lookup service.

Everything the service logs goes through stdlib loggers: lookup, match and
upload diagnostics come from ``LoggingObserver`` on ``aas_lookup.events``, and
the CLI and servers log on their module loggers. ``setup_logging`` renders
those records with structlog, as JSON lines or for the console, on stderr.
stdout is left to command output such as ``aas-lookup lookup``.
"""

import logging
import sys
from typing import Literal

import structlog

# Collaborator clients log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")

_handler: logging.Handler | None = None


def setup_logging(
    level: str = "INFO",
    format_type: Literal["json", "console"] = "console",
) -> logging.Handler:
    """Route service logging to stderr through structlog.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format_type: 'json' for one JSON object per line, 'console' for humans.

    Returns:
        The installed root handler.
    """
    global _handler

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    pre_chain: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: structlog.typing.Processor
    if format_type == "json":
        pre_chain.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(numeric_level)
    _handler = handler

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
