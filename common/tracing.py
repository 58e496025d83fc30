"""
OpenTelemetry tracing setup and the trace-context carrier for Kafka messages.

The carrier is an opaque header bag: it is extracted from every consumed
message and attached unchanged to every message produced while handling it.
Nothing in the reservation logic reads its contents; only the tracer does,
to parent the consumer span on the producer's span.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagate import extract
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = logging.getLogger(__name__)

KafkaHeaders = Iterable[tuple[str, bytes | None]]


class TraceCarrier:
    """
    Kafka headers carried from consumed to produced messages.

    The header list is kept as received, duplicate keys and raw bytes
    included, so it round-trips exactly. Only the tracer looks inside,
    through ``text_map()``.

    >>> c = TraceCarrier.from_headers([("traceparent", b"00-abc-def-01")])
    >>> c.to_headers()
    [('traceparent', b'00-abc-def-01')]
    """

    def __init__(self, headers: KafkaHeaders = ()) -> None:
        self._headers = [(key, value) for key, value in headers]

    @classmethod
    def from_headers(cls, headers: KafkaHeaders | None) -> TraceCarrier:
        return cls(headers or ())

    def to_headers(self) -> list[tuple[str, bytes | None]]:
        return list(self._headers)

    def text_map(self) -> dict[str, str]:
        """Headers as a propagator text map; a repeated key resolves to its last value."""
        return {
            key: value.decode("utf-8", "surrogateescape")
            for key, value in self._headers
            if value is not None
        }

    def __len__(self) -> int:
        return len(self._headers)


def extract_context(carrier: TraceCarrier) -> Context | None:
    """OpenTelemetry context propagated in the carrier, or None if it carries nothing."""
    text_headers = carrier.text_map()
    if not text_headers:
        return None
    return extract(text_headers)


def setup_tracing(service_name: str) -> TracerProvider:
    """
    Install a global TracerProvider.

    Exports over OTLP when OTEL_EXPORTER_OTLP_ENDPOINT is set and to stdout
    when OTEL_CONSOLE_EXPORT=true. With neither, spans are recorded and dropped.
    Call once per process.
    """
    provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: service_name}))

    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
        logger.info("Tracing exports to %s", otlp_endpoint)

    if os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() in ("1", "true", "yes"):
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    return provider
