"""Trigger normalization.

Audio phrase matches, visual detections and manual button presses arrive in
different shapes. ``normalize`` maps each of them onto a single
``TriggerEvent`` that the auto-clip manager understands.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import TriggerType

MANUAL_SOURCE = "manual"


@dataclass(frozen=True, slots=True)
class AudioMatch:
    session_id: str
    phrase: str
    confidence: float
    t: float


@dataclass(frozen=True, slots=True)
class VisualMatch:
    session_id: str
    label: str
    confidence: float
    t: float


@dataclass(frozen=True, slots=True)
class ManualPress:
    session_id: str
    t: float


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    type: TriggerType
    session_id: str
    t: float
    source_label: str
    confidence: float | None = None

    @property
    def is_manual(self) -> bool:
        return self.type == TriggerType.MANUAL


TriggerSignal = AudioMatch | VisualMatch | ManualPress


def normalize(signal: TriggerSignal) -> TriggerEvent:
    if isinstance(signal, AudioMatch):
        return TriggerEvent(
            type=TriggerType.AUDIO,
            session_id=signal.session_id,
            t=float(signal.t),
            source_label=signal.phrase,
            confidence=float(signal.confidence),
        )
    if isinstance(signal, VisualMatch):
        return TriggerEvent(
            type=TriggerType.VISUAL,
            session_id=signal.session_id,
            t=float(signal.t),
            source_label=signal.label,
            confidence=float(signal.confidence),
        )
    if isinstance(signal, ManualPress):
        return TriggerEvent(
            type=TriggerType.MANUAL,
            session_id=signal.session_id,
            t=float(signal.t),
            source_label=MANUAL_SOURCE,
        )
    raise TypeError(f"Unsupported trigger signal: {type(signal).__name__}")


def default_title(event: TriggerEvent) -> str:
    if event.is_manual:
        return "Manual clip"
    return f"{event.source_label} clip"
