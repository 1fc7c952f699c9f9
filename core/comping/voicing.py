"""
core/comping/voicing.py — Two-hand piano voicing generator.

VoicingGenerator turns a Chord into candidate Voicings for the voice-leading
optimizer. Every family is a tagged variant: a VoicingTemplate carries its
VoicingFamily plus left-hand and right-hand interval lists, so the set of
families is a closed table rather than a class hierarchy.

Placement:
    Each hand is anchored independently. The left hand is centred near C3
    (MIDI 48), the right hand near E4 (MIDI 64). find_best_octave() tries
    octaves 2–6 of the root and keeps the one whose integer note centre is
    closest to the hand's anchor.

Variants (generate_all_variants):
    template × left-hand shift {-12, 0} × right-hand shift {-12, 0, +12},
    kept only when every note is inside [36, 96] and the set has at most
    MAX_VARIANT_CLUSTERS seconds, plus open "spread" voicings built from the
    quality's chord tones. Duplicate note sets are removed in generation
    order, so the result is deterministic.

Failure policy:
    A quality without a template yields the close-position FALLBACK voicing —
    generate() and generate_all_variants() never return an empty tuple.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from core.comping.types import (
    PIANO_HIGH,
    PIANO_LOW,
    Chord,
    ChordQuality,
    Voicing,
    VoicingFamily,
    count_clusters,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LEFT_HAND_CENTER: int = 48  # C3
RIGHT_HAND_CENTER: int = 64  # E4
FALLBACK_CENTER: int = 54  # F#3, between the hands
MAX_VARIANT_CLUSTERS: int = 2
MAX_SPREAD_CLUSTERS: int = 1
_OCTAVE_SEARCH_LOW: int = 24  # placement search may dip below the piano floor
_LEFT_SHIFTS: tuple[int, ...] = (-12, 0)
_RIGHT_SHIFTS: tuple[int, ...] = (-12, 0, 12)

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VoicingTemplate:
    """Interval recipe for one voicing family.

    Attributes:
        family:      VoicingFamily this template realises
        left_hand:   Semitone offsets from the left-hand root anchor
        right_hand:  Semitone offsets from the right-hand root anchor
        description: Chord-tone spelling, for display
    """

    family: VoicingFamily
    left_hand: tuple[int, ...]
    right_hand: tuple[int, ...]
    description: str = ""


def _t(family: VoicingFamily, left: tuple[int, ...], right: tuple[int, ...], desc: str) -> VoicingTemplate:
    return VoicingTemplate(family, left, right, desc)


_A = VoicingFamily.ROOTLESS_A
_B = VoicingFamily.ROOTLESS_B
_Q = VoicingFamily.QUARTAL
_S = VoicingFamily.SHELL
_D2 = VoicingFamily.DROP2
_D3 = VoicingFamily.DROP3

_MAJOR7_TEMPLATES: tuple[VoicingTemplate, ...] = (
    _t(_A, (0, 11), (4, 7, 14), "1-7 | 3-5-9"),
    _t(_A, (0, 4), (7, 11, 14), "1-3 | 5-7-9"),
    _t(_A, (-12, 11), (4, 7, 14, 21), "1-7 | 3-5-9-13"),
    _t(_B, (0, 7), (11, 14, 16), "1-5 | 7-9-3"),
    _t(_B, (-1, 4), (7, 14, 19), "7-3 | 5-9-5"),
    _t(_Q, (0, 7), (11, 16, 21), "1-5 | 7-3-13"),
    _t(_Q, (0, 5), (9, 14, 19), "1-4 | 6-9-5"),
    _t(_S, (0, 11), (4, 7), "1-7 | 3-5"),
    _t(_D2, (0, 7), (4, 11, 14), "1-5 | 3-7-9"),
    _t(_D3, (0, 4), (7, 11, 14), "1-3 | 5-7-9"),
)

_MINOR7_TEMPLATES: tuple[VoicingTemplate, ...] = (
    _t(_A, (0, 10), (3, 7, 14), "1-b7 | b3-5-9"),
    _t(_A, (0, 3), (7, 10, 14), "1-b3 | 5-b7-9"),
    _t(_A, (-12, 10), (3, 7, 14, 17), "1-b7 | b3-5-9-11"),
    _t(_B, (0, 7), (10, 14, 15), "1-5 | b7-9-b3"),
    _t(_B, (-2, 3), (7, 14, 17), "b7-b3 | 5-9-11"),
    _t(_Q, (0, 5), (10, 15, 19), "1-4 | b7-b3-5"),
    _t(_Q, (0, 7), (10, 15, 20), "1-5 | b7-b3-b13"),
    _t(_S, (0, 10), (3, 7), "1-b7 | b3-5"),
    _t(_D2, (0, 7), (3, 10, 14), "1-5 | b3-b7-9"),
    _t(_D3, (0, 3), (7, 10, 14), "1-b3 | 5-b7-9"),
)

_DOMINANT7_TEMPLATES: tuple[VoicingTemplate, ...] = (
    _t(_A, (0, 10), (4, 9, 14), "1-b7 | 3-13-9"),
    _t(_A, (0, 4), (10, 14, 21), "1-3 | b7-9-13"),
    _t(_A, (0, 10), (4, 6, 13), "1-b7 | 3-#11-b9"),
    _t(_A, (-12, 10), (4, 7, 14, 21), "1-b7 | 3-5-9-13"),
    _t(_B, (0, 7), (10, 14, 16, 21), "1-5 | b7-9-3-13"),
    _t(_B, (-2, 4), (9, 14, 19), "b7-3 | 13-9-5"),
    _t(_Q, (0, 5), (10, 15, 20), "1-4 | b7-#9-b13"),
    _t(_Q, (0, 10), (4, 9, 14), "1-b7 | 3-13-9"),
    _t(_S, (0, 10), (4, 7), "1-b7 | 3-5"),
    _t(_S, (0, 4), (7, 10), "1-3 | 5-b7"),
    _t(_D2, (0, 7), (4, 10, 14), "1-5 | 3-b7-9"),
    _t(_D3, (0, 4), (7, 10, 14), "1-3 | 5-b7-9"),
)

_ALTERED_TEMPLATES: tuple[VoicingTemplate, ...] = (
    _t(_A, (0, 10), (4, 6, 13, 15), "1-b7 | 3-#11-b9-#9"),
    _t(_A, (0, 4), (8, 10, 13), "1-3 | b13-b7-b9"),
    _t(_B, (-2, 4), (6, 8, 13), "b7-3 | #11-b13-b9"),
    _t(_Q, (0, 6), (10, 13, 16), "1-b5 | b7-b9-3"),
    _t(_S, (0, 10), (4, 8), "1-b7 | 3-b13"),
    _t(_D2, (0, 8), (4, 10, 13), "1-b13 | 3-b7-b9"),
    _t(_D3, (0, 4), (8, 10, 13), "1-3 | b13-b7-b9"),
)

_HALF_DIMINISHED_TEMPLATES: tuple[VoicingTemplate, ...] = (
    _t(_A, (0, 10), (3, 6, 14), "1-b7 | b3-b5-9"),
    _t(_A, (0, 3), (6, 10, 14), "1-b3 | b5-b7-9"),
    _t(_B, (-2, 3), (6, 10, 14), "b7-b3 | b5-b7-9"),
    _t(_Q, (0, 6), (10, 15, 18), "1-b5 | b7-b3-b5"),
    _t(_S, (0, 10), (3, 6), "1-b7 | b3-b5"),
    _t(_D2, (0, 6), (3, 10, 14), "1-b5 | b3-b7-9"),
    _t(_D3, (0, 3), (6, 10, 14), "1-b3 | b5-b7-9"),
)

_DIMINISHED7_TEMPLATES: tuple[VoicingTemplate, ...] = (
    _t(_A, (0, 9), (3, 6, 12), "1-bb7 | b3-b5-1"),
    _t(_B, (0, 6), (9, 12, 15), "1-b5 | bb7-1-b3"),
    _t(_Q, (0, 6), (9, 15, 21), "1-b5 | bb7-b3-bb7"),
    _t(_S, (0, 9), (3, 6), "1-bb7 | b3-b5"),
    _t(_D2, (0, 6), (3, 9, 12), "1-b5 | b3-bb7-1"),
    _t(_D3, (0, 3), (6, 9, 12), "1-b3 | b5-bb7-1"),
)


def _triad_templates(third: int, fifth: int, quartal: tuple[tuple[int, ...], tuple[int, ...]]) -> tuple[VoicingTemplate, ...]:
    return (
        _t(_A, (0, fifth), (third, 12), "1-5 | 3-1"),
        _t(_B, (0, third), (fifth, 12), "1-3 | 5-1"),
        _t(_Q, quartal[0], quartal[1], "fourths"),
        _t(_S, (0,), (third, fifth), "1 | 3-5"),
        _t(_D2, (0, fifth), (third, 12), "1-5 | 3-1"),
        _t(_D3, (0, third), (fifth, 12), "1-3 | 5-1"),
    )


VOICING_TEMPLATES: dict[ChordQuality, tuple[VoicingTemplate, ...]] = {
    ChordQuality.MAJOR7: _MAJOR7_TEMPLATES,
    ChordQuality.MAJOR9: _MAJOR7_TEMPLATES,
    ChordQuality.MINOR7: _MINOR7_TEMPLATES,
    ChordQuality.MINOR9: _MINOR7_TEMPLATES,
    ChordQuality.DOMINANT7: _DOMINANT7_TEMPLATES,
    ChordQuality.DOMINANT9: _DOMINANT7_TEMPLATES,
    ChordQuality.DOMINANT13: _DOMINANT7_TEMPLATES,
    ChordQuality.ALTERED: _ALTERED_TEMPLATES,
    ChordQuality.HALF_DIMINISHED: _HALF_DIMINISHED_TEMPLATES,
    ChordQuality.DIMINISHED7: _DIMINISHED7_TEMPLATES,
    ChordQuality.DIMINISHED: _DIMINISHED7_TEMPLATES,
    ChordQuality.MAJOR: _triad_templates(4, 7, ((0, 5), (9, 14))),
    ChordQuality.MINOR: _triad_templates(3, 7, ((0, 5), (10, 15))),
    ChordQuality.SUS4: _triad_templates(5, 7, ((0, 5), (10, 15))),
    ChordQuality.SUS2: _triad_templates(2, 7, ((0, 7), (2, 9))),
    ChordQuality.AUGMENTED: _triad_templates(4, 8, ((0, 4), (8, 12))),
}
"""Templates per quality, in generation order. Ninth/thirteenth qualities share their seventh tables."""

# Extension name → semitones above the root
EXTENSION_INTERVALS: dict[str, int] = {
    "b9": 13,
    "9": 14,
    "#9": 15,
    "11": 17,
    "#11": 18,
    "b13": 20,
    "13": 21,
}

SUGGESTED_EXTENSIONS: dict[ChordQuality, tuple[str, ...]] = {
    ChordQuality.MAJOR7: ("9", "#11", "13"),
    ChordQuality.MAJOR9: ("#11", "13"),
    ChordQuality.MINOR7: ("9", "11"),
    ChordQuality.MINOR9: ("11",),
    ChordQuality.DOMINANT7: ("9", "13", "b9", "#11"),
    ChordQuality.DOMINANT9: ("13", "#11"),
    ChordQuality.DOMINANT13: ("9", "#11"),
    ChordQuality.ALTERED: ("b9", "#9", "b13"),
    ChordQuality.HALF_DIMINISHED: ("9", "11"),
    ChordQuality.MAJOR: ("9",),
    ChordQuality.MINOR: ("9", "11"),
}


# ---------------------------------------------------------------------------
# Placement helpers
# ---------------------------------------------------------------------------


def find_best_octave(root_pc: int, intervals: tuple[int, ...], target: int) -> int:
    """Return the root anchor (MIDI) placing ``intervals`` closest to ``target``.

    Octaves 2–6 of the root are tried; a placement is eligible when every
    note lies within [24, 96]. Distance is measured from the integer mean of
    the placed notes. Ties keep the lower octave.

    Examples:
        >>> find_best_octave(0, (0, 11), 48)
        48
        >>> find_best_octave(2, (3, 7, 14), 64)
        50
    """
    best_base = 48 + root_pc
    best_distance: int | None = None
    for octave in range(2, 7):
        base = octave * 12 + root_pc
        notes = [base + i for i in intervals]
        if not notes or not all(_OCTAVE_SEARCH_LOW <= n <= PIANO_HIGH for n in notes):
            continue
        distance = abs(sum(notes) // len(notes) - target)
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_base = base
    return best_base


def _in_range(notes: list[int] | tuple[int, ...]) -> bool:
    return all(PIANO_LOW <= n <= PIANO_HIGH for n in notes)


def _fit_to_range(notes: list[int]) -> list[int]:
    """Shift a whole note set by octaves until it fits the piano range."""
    shifted = list(notes)
    while shifted and min(shifted) < PIANO_LOW and max(shifted) + 12 <= PIANO_HIGH:
        shifted = [n + 12 for n in shifted]
    while shifted and max(shifted) > PIANO_HIGH and min(shifted) - 12 >= PIANO_LOW:
        shifted = [n - 12 for n in shifted]
    return [min(max(n, PIANO_LOW), PIANO_HIGH) for n in shifted]


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class VoicingGenerator:
    """Builds candidate Voicings for a Chord from the template table.

    Stateless apart from its (read-only) template table, so one instance
    can be shared by any number of optimizers.
    """

    def __init__(
        self,
        templates: dict[ChordQuality, tuple[VoicingTemplate, ...]] | None = None,
    ) -> None:
        self._templates = VOICING_TEMPLATES if templates is None else templates

    def templates_for(self, chord: Chord, family: VoicingFamily | None = None) -> tuple[VoicingTemplate, ...]:
        """Templates for the chord's quality, optionally restricted to one family."""
        templates = self._templates.get(chord.quality, ())
        if family is None:
            return templates
        return tuple(t for t in templates if t.family is family)

    # -- single voicings ------------------------------------------------------

    def realize(self, chord: Chord, template: VoicingTemplate, *, left_shift: int = 0, right_shift: int = 0) -> Voicing | None:
        """Place one template at its anchored octaves plus optional shifts.

        Returns None when any resulting note leaves the piano range.
        """
        left_base = find_best_octave(chord.root, template.left_hand, LEFT_HAND_CENTER) + left_shift
        right_base = find_best_octave(chord.root, template.right_hand, RIGHT_HAND_CENTER) + right_shift
        left = [left_base + i for i in template.left_hand]
        right = [right_base + i for i in template.right_hand]
        if len(set(left + right)) != len(left) + len(right):
            return None
        if not _in_range(left + right):
            return None
        return Voicing(
            chord=chord,
            notes=tuple(left + right),
            family=template.family,
            left_hand=tuple(left),
            right_hand=tuple(right),
        )

    def fallback(self, chord: Chord, target: int = FALLBACK_CENTER) -> Voicing:
        """Close-position chord tones (root, third, fifth, seventh if present)."""
        intervals = chord.quality.intervals
        base = find_best_octave(chord.root, intervals, target)
        notes = _fit_to_range([base + i for i in intervals])
        return Voicing(chord=chord, notes=tuple(sorted(set(notes))), family=VoicingFamily.FALLBACK)

    def diminished_stack(self, chord: Chord, *, major_triads: bool = True) -> Voicing:
        """Polychord voicing: a triad a minor third below the root under the root triad.

        C7 → A major triad (left hand) + C major triad (right hand).
        """
        lower_root = (chord.root - 3) % 12
        third = 4 if major_triads else 3
        left = [48 + lower_root, 48 + lower_root + third, 48 + lower_root + 7]
        right = [60 + chord.root, 60 + chord.root + third, 60 + chord.root + 7]
        right = [n for n in right if n not in left]  # shared tone stays in the left hand
        return Voicing(
            chord=chord,
            notes=tuple(left + right),
            family=VoicingFamily.DIM_STACK,
            left_hand=tuple(left),
            right_hand=tuple(right),
        )

    def generate_voicing(self, chord: Chord, family: VoicingFamily = VoicingFamily.ROOTLESS_A) -> Voicing:
        """Canonical voicing of one family; falls back when the family has no template."""
        if chord.uses_dim_stack:
            return self.diminished_stack(chord)
        for template in self.templates_for(chord, family):
            voicing = self.realize(chord, template)
            if voicing is not None:
                return voicing
        return self.fallback(chord)

    def generate(self, chord: Chord) -> tuple[Voicing, ...]:
        """One canonical voicing per available family, deduplicated, never empty."""
        if chord.uses_dim_stack:
            return (self.diminished_stack(chord), self.diminished_stack(chord, major_triads=False))
        if chord.quality not in self._templates:
            logger.warning("No voicing templates for quality %s; using fallback", chord.quality.name)
            return (self.fallback(chord),)

        families: list[VoicingFamily] = []
        for template in self._templates[chord.quality]:
            if template.family not in families:
                families.append(template.family)
        return _dedupe(self.generate_voicing(chord, family) for family in families)

    # -- variant search -------------------------------------------------------

    def generate_all_variants(
        self,
        chord: Chord,
        family: VoicingFamily | None = VoicingFamily.ROOTLESS_A,
    ) -> tuple[Voicing, ...]:
        """Candidate set for the optimizer: octave-shifted templates plus spread voicings.

        Args:
            chord:  Chord to voice.
            family: Restrict templates to one family; None uses every family.

        Returns:
            Non-empty tuple of distinct Voicings in deterministic generation order.
        """
        if chord.uses_dim_stack:
            return (self.diminished_stack(chord),)

        variants: list[Voicing] = []
        for template in self.templates_for(chord, family):
            for left_shift in _LEFT_SHIFTS:
                for right_shift in _RIGHT_SHIFTS:
                    voicing = self.realize(chord, template, left_shift=left_shift, right_shift=right_shift)
                    if voicing is not None and voicing.cluster_count <= MAX_VARIANT_CLUSTERS:
                        variants.append(voicing)

        spread_family = family or VoicingFamily.FALLBACK
        variants.extend(self.spread_voicings(chord, spread_family))

        result = _dedupe(variants)
        if not result:
            logger.warning("No in-range variants for %s; using canonical voicing", chord.symbol)
            return (self.generate_voicing(chord, family or VoicingFamily.ROOTLESS_A),)
        return result

    def spread_voicings(self, chord: Chord, family: VoicingFamily) -> list[Voicing]:
        """Open-position voicings of the chord tones with at least a minor third between neighbours."""
        voicings: list[Voicing] = []
        for base_octave in (3, 4):
            base = base_octave * 12 + chord.root
            notes: list[int] = []
            octave_offset = 0
            for index, interval in enumerate(chord.quality.intervals):
                note = base + interval + octave_offset
                if notes:
                    while note - notes[-1] < 3 and note < PIANO_HIGH:
                        note += 12
                        octave_offset += 12
                if PIANO_LOW <= note <= PIANO_HIGH and (not notes or note > notes[-1]):
                    notes.append(note)
                if index % 2 == 0 and octave_offset < 24:
                    octave_offset += 12

            if len(notes) >= 3 and count_clusters(notes) <= MAX_SPREAD_CLUSTERS:
                ordered = sorted(notes)
                split = len(ordered) // 2
                voicings.append(
                    Voicing(
                        chord=chord,
                        notes=tuple(ordered),
                        family=family,
                        left_hand=tuple(ordered[:split]),
                        right_hand=tuple(ordered[split:]),
                    )
                )
        return voicings

    # -- transformations ------------------------------------------------------

    def invert(self, voicing: Voicing, times: int = 1) -> Voicing | None:
        """Move the lowest note up an octave ``times`` times; None if it would exceed 96.

        Notes keep their hand except the raised one, which goes to the right
        hand. If that empties the left hand, the lowest right-hand note moves
        down to it.
        """
        left = list(voicing.left_hand)
        right = list(voicing.right_hand)
        for _ in range(times):
            lowest = min(left + right)
            if lowest + 12 > PIANO_HIGH:
                return None
            if lowest in left:
                left.remove(lowest)
            else:
                right.remove(lowest)
            right = sorted(right + [lowest + 12])
            if not left and len(right) > 1:
                left.append(right.pop(0))
        return Voicing(
            chord=voicing.chord,
            notes=tuple(sorted(left + right)),
            family=voicing.family,
            left_hand=tuple(left),
            right_hand=tuple(right),
        )

    def transpose(self, voicing: Voicing, semitones: int) -> Voicing | None:
        """Shift every note; None when the result leaves [36, 96]."""
        notes = [n + semitones for n in voicing.notes]
        if not _in_range(notes):
            return None
        return Voicing(
            chord=voicing.chord,
            notes=tuple(notes),
            family=voicing.family,
            left_hand=tuple(n + semitones for n in voicing.left_hand),
            right_hand=tuple(n + semitones for n in voicing.right_hand),
        )

    def variant_with_extension(
        self,
        voicing: Voicing,
        extension: str | None = None,
        *,
        rng: random.Random | None = None,
    ) -> Voicing:
        """Colour a voicing by swapping one note for an extension tone.

        The fifth is replaced first, then a doubled root, and as a last resort
        the top note when the extension lands within a major third of it.
        Voice count never changes, so voice leading stays smooth. The new
        tone stays in the hand that played the note it replaces.

        Args:
            voicing:   Voicing to colour.
            extension: Extension name such as "9" or "#11". When None the
                       chord's own extensions are used, else a suggestion for
                       its quality is drawn from ``rng``.
            rng:       Random source for the suggestion draw.

        Returns:
            A new Voicing, or ``voicing`` unchanged when nothing applies.
        """
        chord = voicing.chord
        if extension is None:
            own = [e for e in chord.extensions if e in EXTENSION_INTERVALS]
            if own:
                extension = own[0]
            else:
                suggestions = SUGGESTED_EXTENSIONS.get(chord.quality, ())
                if not suggestions:
                    return voicing
                extension = (rng or random.Random()).choice(suggestions)
        interval = EXTENSION_INTERVALS.get(extension)
        if interval is None:
            return voicing

        ext_pc = (chord.root + interval) % 12
        notes = list(voicing.notes)
        if any(n % 12 == ext_pc for n in notes):
            return voicing

        def _near(old: int) -> int:
            new = (old // 12) * 12 + ext_pc
            if new - old > 6:
                new -= 12
            if old - new > 6:
                new += 12
            return new

        fifth_pc = (chord.root + 7) % 12
        roots = [i for i, n in enumerate(notes) if n % 12 == chord.root]
        fifth_idx = next((i for i, n in enumerate(notes) if n % 12 == fifth_pc), None)
        if fifth_idx is not None:
            candidate = _near(notes[fifth_idx])
            if PIANO_LOW <= candidate <= PIANO_HIGH:
                notes[fifth_idx] = candidate
        elif len(roots) > 1:
            candidate = _near(notes[roots[-1]])
            if PIANO_LOW <= candidate <= PIANO_HIGH:
                notes[roots[-1]] = candidate
        else:
            highest = notes[-1]
            candidate = (highest // 12) * 12 + ext_pc
            while candidate <= highest and candidate + 12 <= PIANO_HIGH:
                candidate += 12
            if abs(candidate - highest) <= 4 and PIANO_LOW <= candidate <= PIANO_HIGH:
                notes[-1] = candidate

        if len(set(notes)) != len(notes):
            return voicing
        swapped = dict(zip(voicing.notes, notes))
        return Voicing(
            chord=chord,
            notes=tuple(notes),
            family=voicing.family,
            left_hand=tuple(swapped[n] for n in voicing.left_hand),
            right_hand=tuple(swapped[n] for n in voicing.right_hand),
        )


def _dedupe(voicings) -> tuple[Voicing, ...]:
    seen: set[tuple[int, ...]] = set()
    unique: list[Voicing] = []
    for voicing in voicings:
        if voicing.notes in seen:
            continue
        seen.add(voicing.notes)
        unique.append(voicing)
    return tuple(unique)
