"""
Logging setup shared by the CLI and library callers.

Modules take a logger with ``structlog.get_logger()`` and emit snake_case
events with keyword context. The orchestrator binds ``run_id`` so every
event of one run can be grouped::

    log = logger.bind(run_id=state.run_id)
    log.info("issues_fetched", repository="octo/app", count=12)

Records from libraries that use plain ``logging`` (httpx, keyring) pass
through the same renderer via ``ProcessorFormatter``. Everything goes to
stderr; stdout is reserved for the generated commit message. API keys and
tokens are never passed as event values.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import Processor

# Third-party loggers that are chatty at INFO/DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore")


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool) -> Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _owned_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [
        h for h in root.handlers if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
    ]


def configure_logging(*, level: str = "WARNING", json_output: bool = False) -> None:
    """Send structlog and stdlib records to stderr at *level*.

    A second call re-renders through the existing handler instead of adding
    another one, so ``--log-json`` can be toggled per command. Unknown level
    names mean WARNING.
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_output),
        ],
    )

    root = logging.getLogger()
    handlers = _owned_handlers(root)
    if not handlers:
        handlers = [logging.StreamHandler(sys.stderr)]
        root.addHandler(handlers[0])
    for handler in handlers:
        handler.setFormatter(formatter)

    root.setLevel(logging.getLevelNamesMapping().get(level.upper(), logging.WARNING))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
