"""Unit tests for the instrumentation module.

Tests use unittest.mock for OTel interactions.  ``opentelemetry-api``
is a test dependency so we can import ``StatusCode`` directly for
assertion accuracy.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.trace import StatusCode

import chatfold.instrumentation as inst
from chatfold.assembler import AssembleOutcome, AssembleResult
from chatfold.instrumentation import (
    record_chunk,
    record_error,
    record_usage,
    stream_span,
    uninstrument,
)


@pytest.fixture(autouse=True)
def _reset_tracer():
    """Ensure _tracer is reset to None before and after each test."""
    inst._tracer = None
    yield
    inst._tracer = None


# -------------------------------------------------------------------
# instrument()
# -------------------------------------------------------------------


class TestInstrument:
    def test_raises_without_otel_installed(self):
        with patch(
            "importlib.util.find_spec", return_value=None
        ):
            with pytest.raises(
                ImportError, match="pip install"
            ):
                inst.instrument()

    def _mock_otel(self, mock_trace):
        """Patch find_spec + sys.modules for a mock OTel env."""
        return (
            patch(
                "importlib.util.find_spec",
                return_value=MagicMock(),
            ),
            patch.dict(
                "sys.modules",
                {
                    "opentelemetry": MagicMock(
                        trace=mock_trace
                    ),
                    "opentelemetry.trace": mock_trace,
                },
            ),
        )

    def test_sets_global_tracer(self):
        mock_tracer = MagicMock()
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = mock_tracer
        mock_trace.NoOpTracer = type("NoOpTracer", (), {})

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            inst.instrument()

        assert inst._tracer is mock_tracer
        mock_trace.get_tracer.assert_called_once_with("chatfold")

    def test_logs_message_for_noop_tracer(self, caplog):
        NoOpTracer = type("NoOpTracer", (), {})
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = NoOpTracer()
        mock_trace.NoOpTracer = NoOpTracer

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            with caplog.at_level(
                logging.INFO,
                logger="chatfold.instrumentation",
            ):
                inst.instrument()

        assert any(
            "No TracerProvider configured" in r.message
            for r in caplog.records
        )

    def test_uninstrument_clears_tracer(self):
        inst._tracer = MagicMock()
        uninstrument()
        assert inst._tracer is None


# -------------------------------------------------------------------
# stream_span
# -------------------------------------------------------------------


class TestStreamSpan:
    @pytest.mark.asyncio
    async def test_yields_none_without_tracer(self):
        async with stream_span("t1", "asst") as s:
            assert s is None

    @pytest.mark.asyncio
    async def test_creates_span_with_ids(self):
        mock_span = MagicMock()
        mock_tracer = MagicMock()
        mock_tracer.start_as_current_span.return_value.__enter__ = (
            MagicMock(return_value=mock_span)
        )
        mock_tracer.start_as_current_span.return_value.__exit__ = (
            MagicMock(return_value=False)
        )
        inst._tracer = mock_tracer

        async with stream_span(None, "asst") as s:
            assert s is mock_span

        mock_tracer.start_as_current_span.assert_called_once_with(
            "stream_messages",
            attributes={
                "chatfold.operation.name": "stream_messages",
                "chatfold.assistant.id": "asst",
            },
        )


# -------------------------------------------------------------------
# record_chunk / record_usage
# -------------------------------------------------------------------


class TestRecordChunk:
    def test_noop_on_none_span(self):
        record_chunk(None, AssembleResult(messages=[], outcome=AssembleOutcome.SKIPPED))

    def test_adds_chunk_event(self):
        span = MagicMock()
        result = AssembleResult(messages=[], outcome=AssembleOutcome.CREATED, run_id="r1")
        record_chunk(span, result)

        span.add_event.assert_called_once_with(
            "chunk",
            attributes={
                "chatfold.chunk.outcome": "created",
                "chatfold.run.id": "r1",
            },
        )

    def test_usage_sets_token_counts(self):
        span = MagicMock()
        record_usage(span, {"input_tokens": 10, "output_tokens": 4, "total_tokens": 14})

        span.set_attribute.assert_any_call("gen_ai.usage.input_tokens", 10)
        span.set_attribute.assert_any_call("gen_ai.usage.output_tokens", 4)

    def test_usage_handles_missing_fields(self):
        span = MagicMock()
        record_usage(span, None)
        record_usage(span, {})
        record_usage(span, {"total_tokens": 3})
        span.set_attribute.assert_not_called()


# -------------------------------------------------------------------
# record_error
# -------------------------------------------------------------------


class TestRecordError:
    def test_sets_status_and_records_exception(self):
        span = MagicMock()
        exc = RuntimeError("boom")
        record_error(span, exc)

        span.set_status.assert_called_once_with(
            StatusCode.ERROR, "boom"
        )
        span.record_exception.assert_called_once_with(exc)
        span.set_attribute.assert_called_once_with(
            "error.type", "RuntimeError"
        )

    def test_noop_on_none_span(self):
        record_error(None, RuntimeError("boom"))
