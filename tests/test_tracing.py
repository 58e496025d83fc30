"""
Test: trace carrier round trip and context extraction.
"""

from opentelemetry import trace

from common.tracing import TraceCarrier, extract_context


def test_carrier_round_trips_arbitrary_bytes():
    headers = [("traceparent", b"00-abc-def-01"), ("bin", b"\x80\xff"), ("empty", None)]
    assert TraceCarrier.from_headers(headers).to_headers() == headers


def test_carrier_from_no_headers():
    carrier = TraceCarrier.from_headers(None)
    assert len(carrier) == 0
    assert carrier.to_headers() == []
    assert extract_context(carrier) is None


def test_extract_context_reads_traceparent():
    carrier = TraceCarrier.from_headers(
        [("traceparent", b"00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01")]
    )
    ctx = extract_context(carrier)
    span_context = trace.get_current_span(ctx).get_span_context()
    assert span_context.trace_id == 0x4BF92F3577B34DA6A3CE929D0E0E4736
    assert span_context.span_id == 0x00F067AA0BA902B7


def test_carrier_keeps_duplicate_header_keys():
    headers = [("baggage", b"a=1"), ("traceparent", b"00-abc-def-01"), ("baggage", b"b=2")]
    carrier = TraceCarrier.from_headers(headers)

    assert carrier.to_headers() == headers
    assert carrier.text_map()["baggage"] == "b=2"
