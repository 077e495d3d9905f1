"""Optional OpenTelemetry instrumentation for chatfold.

Call ``chatfold.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; streaming works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "chatfold") -> None:
    """Enable OpenTelemetry tracing for streamed turns.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install chatfold[otel]``

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install chatfold[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("chatfold instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def stream_span(thread_id: str | None, assistant_id: str | None):
    """Wrap one streamed turn in a ``stream_messages`` span."""
    if _tracer is None:
        yield None
        return
    attributes = {"chatfold.operation.name": "stream_messages"}
    if thread_id:
        attributes["chatfold.thread.id"] = thread_id
    if assistant_id:
        attributes["chatfold.assistant.id"] = assistant_id
    with _tracer.start_as_current_span(
        "stream_messages", attributes=attributes,
    ) as span:
        yield span


def record_chunk(span, result) -> None:
    """Add a ``chunk`` event describing one assemble outcome."""
    if span is None:
        return
    attributes = {"chatfold.chunk.outcome": result.outcome.value}
    if result.run_id:
        attributes["chatfold.run.id"] = result.run_id
    span.add_event("chunk", attributes=attributes)


def record_usage(span, usage: dict | None) -> None:
    """Set token-usage attributes from a chunk's ``usage_metadata``."""
    if span is None or not usage:
        return
    if usage.get("input_tokens") is not None:
        span.set_attribute(
            "gen_ai.usage.input_tokens",
            usage["input_tokens"],
        )
    if usage.get("output_tokens") is not None:
        span.set_attribute(
            "gen_ai.usage.output_tokens",
            usage["output_tokens"],
        )


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
