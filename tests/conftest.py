"""
Shared fixtures for the test suite.

Centralizes the progressions, catalogs and renderer configs that several
comping test files use, so each file only builds what is specific to it.
"""

import pytest

from core.comping.config import renderer_preset
from core.comping.patterns import RhythmPatternLibrary
from core.comping.types import Chord, ChordEvent, ChordQuality

# ---------------------------------------------------------------------------
# Progressions
# ---------------------------------------------------------------------------


def make_event(root: str, quality: ChordQuality, start: float, duration: float = 4.0) -> ChordEvent:
    """ChordEvent from a note name, e.g. make_event("D", ChordQuality.MINOR7, 0.0)."""
    return ChordEvent(chord=Chord.from_name(root, quality), start_beat=start, duration=duration)


@pytest.fixture
def two_five() -> list[ChordEvent]:
    """Dm7 (beats 0–4) → G7 (beats 4–8)."""
    return [
        make_event("D", ChordQuality.MINOR7, 0.0),
        make_event("G", ChordQuality.DOMINANT7, 4.0),
    ]


@pytest.fixture
def two_five_one() -> list[ChordEvent]:
    """Dm7 → G7 → Cmaj7 (held for two bars)."""
    return [
        make_event("D", ChordQuality.MINOR7, 0.0),
        make_event("G", ChordQuality.DOMINANT7, 4.0),
        make_event("C", ChordQuality.MAJOR7, 8.0, 8.0),
    ]


# ---------------------------------------------------------------------------
# Catalog and renderer config
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def library() -> RhythmPatternLibrary:
    return RhythmPatternLibrary.from_templates()


@pytest.fixture
def robotic():
    """Zero-jitter renderer config: onsets land exactly on the grid."""
    return renderer_preset("robotic")
