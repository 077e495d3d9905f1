"""Folding tool call fragments into ordered tool call records.

Complete tool calls are matched by ``id``; argument deltas are matched by
their positional ``index``.  Records live in an explicit slot map while
merging and are compacted into a dense, slot-ordered list on return.
"""

from __future__ import annotations

from collections.abc import Iterable

from chatfold.message import ToolCallRecord
from chatfold.streaming import ToolCallDelta, ToolCallFragment


def synthesize_tool_call(delta: ToolCallDelta, index: int) -> ToolCallRecord:
    """Create the record a delta opens when its slot is free."""
    return ToolCallRecord(
        id=delta.id or f"tool_call_{index}",
        name=delta.name or "",
        args=delta.args or "",
        index=index,
    )


def _record_from_fragment(fragment: ToolCallFragment, index: int) -> ToolCallRecord:
    return ToolCallRecord(
        id=fragment.id or f"tool_call_{index}",
        name=fragment.name or "",
        args=fragment.args if fragment.args is not None else "",
        index=index,
        anonymous=not fragment.id,
    )


def _merge_fragment(record: ToolCallRecord, fragment: ToolCallFragment) -> ToolCallRecord:
    # Incoming wins on non-empty scalars and structured args; string args
    # concatenate.
    updates = {}
    if fragment.name:
        updates["name"] = fragment.name
    if isinstance(record.args, str) and isinstance(fragment.args, str):
        updates["args"] = record.args + fragment.args
    elif fragment.args is not None and fragment.args != "":
        updates["args"] = fragment.args
    return record.model_copy(update=updates)


def _append_args(record: ToolCallRecord, args: str | None) -> ToolCallRecord:
    if not args:
        return record
    if isinstance(record.args, str):
        return record.model_copy(update={"args": record.args + args})
    return record.model_copy(update={"args": args})


def _slots(records: Iterable[ToolCallRecord]) -> dict[int, ToolCallRecord]:
    slots: dict[int, ToolCallRecord] = {}
    for position, record in enumerate(records):
        slot = record.index if record.index is not None else position
        if slot in slots:
            slot = max(slots) + 1
        if record.index != slot:
            record = record.model_copy(update={"index": slot})
        slots[slot] = record
    return slots


def _next_slot(slots: dict[int, ToolCallRecord]) -> int:
    return max(slots) + 1 if slots else 0


def merge_tool_calls(
    existing: Iterable[ToolCallRecord],
    incoming_full: Iterable[ToolCallFragment] = (),
    incoming_deltas: Iterable[ToolCallDelta] = (),
) -> list[ToolCallRecord]:
    """Merge complete tool calls and argument deltas into *existing*.

    Args:
        existing: Records already attached to the message. Not mutated.
        incoming_full: Complete tool calls; a matching ``id`` updates the
            record in place, otherwise a record is appended. Tool calls
            without an id all fold into the first record opened by one.
        incoming_deltas: Argument fragments addressed by slot index
            (default ``0``); a free slot opens a new record.

    Returns:
        A new list ordered by slot, without holes.
    """
    slots = _slots(existing)

    for fragment in incoming_full:
        if fragment.id:
            match = next(
                (slot for slot, record in slots.items() if record.id == fragment.id),
                None,
            )
        else:
            match = next(
                (slot for slot, record in slots.items() if record.anonymous),
                None,
            )
        if match is None:
            slot = _next_slot(slots)
            slots[slot] = _record_from_fragment(fragment, slot)
        else:
            slots[match] = _merge_fragment(slots[match], fragment)

    for delta in incoming_deltas:
        index = delta.index if delta.index is not None else 0
        record = slots.get(index)
        if record is None:
            slots[index] = synthesize_tool_call(delta, index)
        else:
            slots[index] = _append_args(record, delta.args)

    return [slots[slot] for slot in sorted(slots)]
