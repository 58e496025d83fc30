"""
Logging for the inventory service processes.

Stdlib logging to stdout. Every line names the service, the thread (one per
consuming loop) and, while a span is active, the OpenTelemetry trace id, so
the log lines for one order can be matched to its trace.
"""

from __future__ import annotations

import logging
import os
import sys

from opentelemetry import trace

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(service_name)s %(threadName)s trace=%(trace_id)s %(name)s %(message)s"
NO_TRACE = "-"


class _TraceContextFormatter(logging.Formatter):
    """Adds service_name and trace_id to each record before formatting."""

    def __init__(self, service_name: str, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        record.service_name = getattr(record, "service_name", self._service_name)
        if not hasattr(record, "trace_id"):
            ctx = trace.get_current_span().get_span_context()
            record.trace_id = trace.format_trace_id(ctx.trace_id) if ctx.is_valid else NO_TRACE
        return super().format(record)


def setup_logging(service_name: str, level: str | None = None) -> None:
    """
    Configure the root logger for one service process.

    Level comes from the argument, then LOG_LEVEL, then INFO. Calling it
    again reconfigures the existing handlers instead of adding new ones.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    formatter = _TraceContextFormatter(service_name, fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        root.addHandler(handler)
    for h in root.handlers:
        h.setFormatter(formatter)

    # kafka-python is chatty at INFO
    logging.getLogger("kafka").setLevel(max(root.level, logging.WARNING))
