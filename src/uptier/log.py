"""Logging setup for the command line and MCP entry points.

Library modules only call ``logging.getLogger(__name__)``; handlers are installed
here, once, by whichever process starts up. Output goes to stderr because stdout
carries the MCP stdio transport.
"""

from __future__ import annotations

import logging

import logfire
from rich.console import Console
from rich.logging import RichHandler

from uptier.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings, service_name: str = "uptier") -> None:
    root = logging.getLogger("uptier")
    root.setLevel(settings.log_level.upper())
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        root.addHandler(handler)

    if settings.logfire_token:
        logfire.configure(
            token=settings.logfire_token,
            service_name=service_name,
            send_to_logfire="if-token-present",
            console=False,
        )
        root.addHandler(logfire.LogfireLoggingHandler())
        logger.info("Logfire configured", extra={"service": service_name})
