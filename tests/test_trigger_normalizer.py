import pytest

from livestream_clipper.domain.models import TriggerType
from livestream_clipper.domain.triggers import (
    AudioMatch,
    ManualPress,
    VisualMatch,
    default_title,
    normalize,
)


def test_audio_match_keeps_phrase_and_confidence():
    event = normalize(AudioMatch(session_id="s1", phrase="clip that", confidence=0.92, t=12.5))

    assert event.type == TriggerType.AUDIO
    assert event.session_id == "s1"
    assert event.t == 12.5
    assert event.source_label == "clip that"
    assert event.confidence == 0.92
    assert default_title(event) == "clip that clip"


def test_visual_match_uses_label():
    event = normalize(VisualMatch(session_id="s1", label="thumbs_up", confidence=0.8, t=3))

    assert event.type == TriggerType.VISUAL
    assert event.source_label == "thumbs_up"
    assert event.t == 3.0


def test_manual_press_has_no_confidence():
    event = normalize(ManualPress(session_id="s1", t=40))

    assert event.type == TriggerType.MANUAL
    assert event.is_manual
    assert event.source_label == "manual"
    assert event.confidence is None
    assert default_title(event) == "Manual clip"


def test_unknown_signal_is_rejected():
    with pytest.raises(TypeError):
        normalize({"session_id": "s1", "t": 1.0})
