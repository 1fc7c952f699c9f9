"""
core/comping/patterns.py — Rhythm pattern catalog.

RhythmPatternLibrary is an explicitly constructed, immutable catalog. Build
one with RhythmPatternLibrary.from_templates() (or share the cached
load_default_library()) and pass it to the density selector and renderer;
nothing in this module holds mutable global state.

Every style receives the four canonical shapes from styles.yaml:
    Whole Note    one hit, full-bar sustain
    Syncopated    and-of-one + beat three; swung by SWING_FEEL_FACTOR in swing styles
    Quarter Note  four hits, accents on one and three
    Half Note     beats one and three
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Iterable, Iterator

from core.comping.config import MusicStyle, pattern_shapes
from core.comping.types import HitType, RhythmHit, RhythmPattern

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SWING_FEEL_FACTOR: float = 0.17
"""Off-beat delay (beats) for swingable patterns in swing-feel styles."""

FAST_TEMPO_BPM: float = 220.0
"""Above this tempo, patterns with more than MAX_HITS_WHEN_FAST hits per bar are dropped."""

MAX_HITS_WHEN_FAST: int = 2

WHOLE_NOTE: str = "Whole Note"
SYNCOPATED: str = "Syncopated"
QUARTER_NOTE: str = "Quarter Note"
HALF_NOTE: str = "Half Note"


def _style_key(style: str | MusicStyle) -> str:
    if isinstance(style, MusicStyle):
        return style.value
    return style.strip().lower().replace(" ", "_").replace("-", "_")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class RhythmPatternLibrary:
    """Read-only catalog of RhythmPatterns keyed by style and by name.

    Args:
        patterns: Patterns in catalog order. Name lookups without a style
                  return the first pattern registered under that name.
    """

    def __init__(self, patterns: Iterable[RhythmPattern]) -> None:
        by_style: dict[str, list[RhythmPattern]] = {}
        by_name: dict[str, RhythmPattern] = {}
        for pattern in patterns:
            by_style.setdefault(pattern.style, []).append(pattern)
            by_name.setdefault(pattern.name.lower(), pattern)
        self._by_style: dict[str, tuple[RhythmPattern, ...]] = {k: tuple(v) for k, v in by_style.items()}
        self._by_name = by_name

    @classmethod
    def from_templates(cls, swing_factor: float = SWING_FEEL_FACTOR) -> RhythmPatternLibrary:
        """Build the catalog from styles.yaml: every style × every canonical shape."""
        shapes = pattern_shapes()
        patterns: list[RhythmPattern] = []
        for style in MusicStyle:
            for shape in shapes:
                hits = tuple(
                    RhythmHit(
                        position=float(h["position"]),
                        velocity=float(h["velocity"]),
                        hit_type=HitType(h.get("type", HitType.FULL_CHORD.value)),
                        duration=float(h["duration"]) if h.get("duration") is not None else None,
                    )
                    for h in shape["hits"]
                )
                swing = swing_factor if (shape.get("swingable") and style.swings) else 0.0
                patterns.append(
                    RhythmPattern(
                        name=shape["name"],
                        style=style.value,
                        length_in_beats=float(shape["length"]),
                        hits=hits,
                        swing_factor=swing,
                        description=shape.get("description", ""),
                    )
                )
        logger.debug("Built rhythm pattern catalog: %d patterns", len(patterns))
        return cls(patterns)

    def __len__(self) -> int:
        return sum(len(p) for p in self._by_style.values())

    def __iter__(self) -> Iterator[RhythmPattern]:
        for patterns in self._by_style.values():
            yield from patterns

    @property
    def styles(self) -> tuple[str, ...]:
        return tuple(self._by_style)

    def get_patterns(self, style: str | MusicStyle) -> tuple[RhythmPattern, ...]:
        """All patterns of a style, in catalog order (empty if the style has none)."""
        return self._by_style.get(_style_key(style), ())

    def get_pattern(self, name: str, style: str | MusicStyle | None = None) -> RhythmPattern | None:
        """Look up a pattern by name (case-insensitive).

        Args:
            name:  Pattern name, e.g. "Syncopated".
            style: Restrict the search to one style. Without it the first
                   pattern of that name in catalog order is returned.

        Returns:
            The pattern, or None when nothing matches. Callers supply their
            own fallback.
        """
        if style is None:
            return self._by_name.get(name.lower())
        return next((p for p in self.get_patterns(style) if p.name.lower() == name.lower()), None)

    def patterns(self, style: str | MusicStyle, tempo: float) -> tuple[RhythmPattern, ...]:
        """Patterns of a style suited to a tempo.

        Filtering is coarse: at very fast tempos only sparse patterns are
        kept. If that would leave nothing, the full style set is returned.
        """
        candidates = self.get_patterns(style)
        if tempo <= FAST_TEMPO_BPM:
            return candidates
        sparse = tuple(
            p for p in candidates if len(p.hits) * 4.0 / p.length_in_beats <= MAX_HITS_WHEN_FAST
        )
        return sparse or candidates


@functools.cache
def load_default_library() -> RhythmPatternLibrary:
    """Shared catalog built from the bundled templates (built once, never mutated)."""
    return RhythmPatternLibrary.from_templates()
