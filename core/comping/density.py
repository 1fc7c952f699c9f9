"""
core/comping/density.py — Adaptive rhythm selection by harmonic density.

The number of chords in a measure decides how busy the comping may be:

    >= 4 chords, each <= 1 beat   → no pattern: sound each chord on its own beat
    exactly 2 chords              → "Syncopated"
    exactly 1 chord filling a bar → "Whole Note" (90%) or "Syncopated" (10%)
    anything else                 → caller-supplied fallback (may be None)

The sparse-bar split favours sustain so open charts do not sound clipped,
while still adding the occasional rhythmic push. Randomness comes from an
injected random.Random so tests can pin every outcome.

Also provides intensity-driven and weighted pattern choice for callers that
pick patterns per phrase rather than per measure.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from collections.abc import Mapping, Sequence

from core.comping.config import MusicStyle
from core.comping.patterns import SYNCOPATED, WHOLE_NOTE, RhythmPatternLibrary, load_default_library
from core.comping.types import ChordEvent, RhythmPattern

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SPARSE_WHOLE_NOTE_PROBABILITY: float = 0.9
"""Chance that a one-chord measure is sustained rather than syncopated."""

DENSE_CHORD_COUNT: int = 4
DENSE_MAX_DURATION: float = 1.0  # beats
FULL_MEASURE_TOLERANCE: float = 0.1  # beats

LOW_INTENSITY: float = 0.3
HIGH_INTENSITY: float = 0.6


# ---------------------------------------------------------------------------
# Density analysis
# ---------------------------------------------------------------------------


def analyze_measure_density(events: Sequence[ChordEvent], beats_per_measure: float = 4.0) -> dict[int, int]:
    """Count chord events per 1-based measure number.

    Raises:
        ValueError: If beats_per_measure is not positive.
    """
    if beats_per_measure <= 0:
        raise ValueError(f"beats_per_measure must be positive, got {beats_per_measure}")
    return dict(Counter(event.measure_number(beats_per_measure) for event in events))


def select_pattern_for_density(
    chords_in_measure: int,
    chord_duration: float,
    beats_per_measure: float,
    fallback: RhythmPattern | None,
    *,
    library: RhythmPatternLibrary | None = None,
    style: str | MusicStyle | None = None,
    rng: random.Random | None = None,
    whole_note_probability: float = SPARSE_WHOLE_NOTE_PROBABILITY,
) -> RhythmPattern | None:
    """Choose the pattern governing one chord given its measure's density.

    Args:
        chords_in_measure:      Chord events starting in the chord's measure.
        chord_duration:         The chord's duration in beats.
        beats_per_measure:      Measure length in beats.
        fallback:               Pattern used when no rule applies (may be None).
        library:                Pattern catalog; the shared default when None.
        style:                  Look patterns up within this style when given.
        rng:                    Uniform source for the sparse-measure draw.
        whole_note_probability: Probability of "Whole Note" in a one-chord measure.

    Returns:
        A RhythmPattern, or None meaning "sound the chord once on its start beat".

    Raises:
        ValueError: On negative counts, non-positive durations or a
                    probability outside [0, 1].
    """
    if chords_in_measure < 0:
        raise ValueError(f"chords_in_measure must be >= 0, got {chords_in_measure}")
    if chord_duration <= 0:
        raise ValueError(f"chord_duration must be positive, got {chord_duration}")
    if beats_per_measure <= 0:
        raise ValueError(f"beats_per_measure must be positive, got {beats_per_measure}")
    if not (0.0 <= whole_note_probability <= 1.0):
        raise ValueError(f"whole_note_probability must be in [0, 1], got {whole_note_probability}")

    library = library or load_default_library()

    if chords_in_measure >= DENSE_CHORD_COUNT and chord_duration <= DENSE_MAX_DURATION:
        logger.debug("Dense measure (%d chords): playing on the beat", chords_in_measure)
        return None

    if chords_in_measure == 2:
        return library.get_pattern(SYNCOPATED, style) or fallback

    if chords_in_measure == 1 and chord_duration >= beats_per_measure - FULL_MEASURE_TOLERANCE:
        draw = (rng or random.Random()).random()
        if draw < whole_note_probability:
            chosen = library.get_pattern(WHOLE_NOTE, style)
        else:
            chosen = library.get_pattern(SYNCOPATED, style) or library.get_pattern(WHOLE_NOTE, style)
        return chosen or fallback

    return fallback


# ---------------------------------------------------------------------------
# Phrase-level selectors
# ---------------------------------------------------------------------------


def select_pattern_for_intensity(
    style: str | MusicStyle,
    intensity: float,
    *,
    previous: RhythmPattern | None = None,
    library: RhythmPatternLibrary | None = None,
    rng: random.Random | None = None,
) -> RhythmPattern | None:
    """Pick a pattern whose hit count suits an intensity in [0, 1].

    Low intensity prefers <= 3 hits, medium 2–5 hits, high >= 3 hits. The
    previous pattern is avoided when an alternative exists.

    Raises:
        ValueError: If intensity is outside [0, 1].
    """
    if not (0.0 <= intensity <= 1.0):
        raise ValueError(f"intensity must be in [0, 1], got {intensity}")
    patterns = (library or load_default_library()).get_patterns(style)
    if not patterns:
        return None

    if intensity < LOW_INTENSITY:
        suitable = [p for p in patterns if len(p.hits) <= 3]
    elif intensity < HIGH_INTENSITY:
        suitable = [p for p in patterns if 2 <= len(p.hits) <= 5]
    else:
        suitable = [p for p in patterns if len(p.hits) >= 3]

    candidates = suitable or list(patterns)
    fresh = [p for p in candidates if p != previous] or candidates
    return (rng or random.Random()).choice(fresh)


def select_weighted_pattern(
    style: str | MusicStyle,
    weights: Mapping[str, float],
    *,
    library: RhythmPatternLibrary | None = None,
    rng: random.Random | None = None,
) -> RhythmPattern | None:
    """Weighted random choice among a style's patterns.

    Patterns missing from ``weights`` weigh 1.0.

    Raises:
        ValueError: If any weight is negative.
    """
    patterns = (library or load_default_library()).get_patterns(style)
    if not patterns:
        return None
    values = [float(weights.get(p.name, 1.0)) for p in patterns]
    if any(v < 0 for v in values):
        raise ValueError("pattern weights must be non-negative")
    if sum(values) == 0:
        return None
    return (rng or random.Random()).choices(patterns, weights=values, k=1)[0]
