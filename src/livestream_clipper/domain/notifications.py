from __future__ import annotations

import json
import time
from enum import StrEnum
from typing import Any
from uuid import uuid4

from .models import ClipQueueItem, NotificationEnvelope, TriggerType


class EventType(StrEnum):
    CLIP_INTENT_START = "CLIP_INTENT_START"
    CLIP_INTENT_END = "CLIP_INTENT_END"
    CLIP_QUEUE_UPDATED = "CLIP_QUEUE_UPDATED"


# Wire vocabulary seen by subscribers; persisted rows keep the TriggerType enum.
WIRE_SOURCE: dict[TriggerType, str] = {
    TriggerType.AUDIO: "voice",
    TriggerType.VISUAL: "gesture",
    TriggerType.MANUAL: "button",
}
_FROM_WIRE: dict[str, TriggerType] = {v: k for k, v in WIRE_SOURCE.items()}


def to_wire_source(trigger_type: TriggerType | str) -> str:
    return WIRE_SOURCE[TriggerType(trigger_type)]


def from_wire_source(source: str) -> TriggerType:
    try:
        return _FROM_WIRE[source]
    except KeyError:
        raise ValueError(f"Unknown trigger source: {source}") from None


def _envelope(session_id: str, event_type: EventType, payload: dict[str, Any]) -> NotificationEnvelope:
    return NotificationEnvelope(
        id=uuid4().hex,
        session_id=session_id,
        ts=int(time.time() * 1000),
        type=event_type.value,
        payload=payload,
    )


def clip_intent_start(
    session_id: str,
    t: float,
    trigger_type: TriggerType,
    confidence: float | None = None,
) -> NotificationEnvelope:
    payload: dict[str, Any] = {"t": t, "source": to_wire_source(trigger_type)}
    if confidence is not None:
        payload["confidence"] = confidence
    return _envelope(session_id, EventType.CLIP_INTENT_START, payload)


def clip_intent_end(session_id: str, t: float, trigger_type: TriggerType) -> NotificationEnvelope:
    return _envelope(
        session_id,
        EventType.CLIP_INTENT_END,
        {"t": t, "source": to_wire_source(trigger_type)},
    )


def queue_snapshot(item: ClipQueueItem) -> dict[str, Any]:
    return {
        "queueItemId": item.id,
        "status": item.status.value.lower(),
        "triggerType": to_wire_source(item.trigger_type),
        "triggerSource": item.trigger_source,
        "t0": item.t0,
        "t1": item.t1,
        "clipId": item.clip_id,
        "thumbnailPath": item.thumbnail_path,
        "title": item.title,
        "errorMessage": item.error_message,
    }


def queue_updated(item: ClipQueueItem) -> NotificationEnvelope:
    return _envelope(item.session_id, EventType.CLIP_QUEUE_UPDATED, queue_snapshot(item))


def to_json(envelope: NotificationEnvelope) -> str:
    return json.dumps(envelope.to_dict(), ensure_ascii=False)
