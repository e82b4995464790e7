"""
Logging subsystem: structlog setup and the diagnostic events of a fetch cycle.

Every DiagnosticsLog call is made while holding the coordinator's print lock,
so lines from concurrent units never interleave.
"""

import logging
import sys
from typing import Any, Dict

import structlog

from ratepoll.errors import FetchError


def setup_logging(log_config: Dict[str, Any] = None):
    """Initialize stdlib logging and structlog. Called once before the cycle loop."""
    log_config = log_config or {}
    level = str(log_config.get('level', 'INFO')).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    if log_config.get('format', 'json') == 'console':
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class DiagnosticsLog:
    """Diagnostic output of the cycle coordinator and its fetch units."""

    def __init__(self, logger=None):
        self.logger = logger or structlog.get_logger("ratepoll.cycle")

    def begin_marker(self, cycle: int, batch_size: int):
        self.logger.info("requests_pool_begin", cycle=cycle, batch_size=batch_size)

    def end_marker(self, cycle: int, outcome: str):
        self.logger.info("requests_pool_end", cycle=cycle, outcome=outcome)

    def timeout_notice(self, cycle: int, cadence: float, outstanding: int):
        self.logger.warning(
            "requests_pool_timeout",
            cycle=cycle,
            cadence=cadence,
            outstanding=outstanding,
            message="Timeout, performing next requests group...",
        )

    def unit_report(self, outcome):
        self.logger.info(
            "request_completed",
            index=outcome.index,
            elapsed_ms=round(outcome.elapsed * 1000, 2),
            status_code=outcome.status_code,
            content_type=outcome.content_type,
            json_valid=outcome.json_valid,
            rates_out_of_scope=outcome.out_of_scope_dates,
        )

    def unit_failure(self, index: int, error: Exception):
        stage = error.stage if isinstance(error, FetchError) else "unexpected"
        self.logger.error(
            "request_failed",
            index=index,
            stage=stage,
            error=str(error),
            error_type=type(error).__name__,
        )
