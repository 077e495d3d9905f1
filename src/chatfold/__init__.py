from chatfold.assembler import (
    AssembleOutcome,
    AssembleResult,
    assemble,
    assemble_result,
)
from chatfold.config import StreamSettings, configure_logging
from chatfold.instrumentation import instrument, uninstrument
from chatfold.message import Message, MessageRole, ToolCallRecord
from chatfold.runner import ChatStream, StreamRunner
from chatfold.streaming import (
    DecodeResult,
    RawChunk,
    RunMetadata,
    ToolCallDelta,
    ToolCallFragment,
    decode_chunk,
    is_assistant_content,
    resolve_run_id,
    try_decode_chunk,
)
from chatfold.throttle import UpdateThrottle
from chatfold.tool_calls import merge_tool_calls

__all__ = [
    "AssembleOutcome",
    "AssembleResult",
    "ChatStream",
    "DecodeResult",
    "Message",
    "MessageRole",
    "RawChunk",
    "RunMetadata",
    "StreamRunner",
    "StreamSettings",
    "ToolCallDelta",
    "ToolCallFragment",
    "ToolCallRecord",
    "UpdateThrottle",
    "assemble",
    "assemble_result",
    "configure_logging",
    "decode_chunk",
    "instrument",
    "is_assistant_content",
    "merge_tool_calls",
    "resolve_run_id",
    "try_decode_chunk",
    "uninstrument",
]
