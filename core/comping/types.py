"""
core/comping/types.py — Frozen value objects for the comping engine.

All types are immutable frozen dataclasses — safe to hash, cache, and share
between the optimizer, the pattern catalog, and the renderer. No I/O.

Types:
    ChordQuality   — enumerated chord quality with its interval stack
    Chord          — root pitch class + quality (+ slash bass, extensions)
    ChordEvent     — a Chord placed on the absolute beat timeline
    TimeSignature  — meter, used to derive beats per measure
    VoicingFamily  — closed set of voicing families (tagged variants)
    Voicing        — concrete MIDI notes split between two hands
    HitType        — which part of a voicing a rhythm hit sounds
    RhythmHit      — one hit inside a rhythm pattern
    RhythmPattern  — named, styled, swing-aware collection of hits
    ScheduledHit   — a hit placed on the absolute beat timeline
    NoteEvent      — the terminal artifact: one sounding note

Conventions:
    - Pitches are MIDI note numbers; pitch classes are 0–11 with C=0.
    - Time is measured in beats (quarter notes) from progression start.
    - NoteEvent.velocity is an integer MIDI velocity in [0, 127].
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PIANO_LOW: int = 36  # C2, lowest note a voicing may use
PIANO_HIGH: int = 96  # C7, highest note a voicing may use
MIDDLE_C: int = 60
MIN_CHORD_DURATION: float = 0.5  # beats

NOTE_NAMES: tuple[str, ...] = ("C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B")

# Canonical spelling → pitch class, sharps and flats both accepted
_NOTE_PITCH_CLASSES: dict[str, int] = {
    "C": 0, "B#": 0,
    "C#": 1, "Db": 1,
    "D": 2,
    "D#": 3, "Eb": 3,
    "E": 4, "Fb": 4,
    "F": 5, "E#": 5,
    "F#": 6, "Gb": 6,
    "G": 7,
    "G#": 8, "Ab": 8,
    "A": 9,
    "A#": 10, "Bb": 10,
    "B": 11, "Cb": 11,
}  # fmt: skip


def note_name_to_pitch_class(name: str) -> int:
    """Return the pitch class (0–11) for a note name such as "F#" or "Bb".

    Raises:
        ValueError: If the name is not a recognised note spelling.
    """
    key = name.strip()
    if key[:1].islower():
        key = key[:1].upper() + key[1:]
    if key not in _NOTE_PITCH_CLASSES:
        raise ValueError(f"Unknown note name {name!r}")
    return _NOTE_PITCH_CLASSES[key]


def midi_to_name(pitch: int) -> str:
    """Return scientific pitch notation for a MIDI number, e.g. 60 → "C4"."""
    return f"{NOTE_NAMES[pitch % 12]}{pitch // 12 - 1}"


def count_clusters(notes: tuple[int, ...] | list[int]) -> int:
    """Count adjacent intervals of a minor or major second in a note set."""
    ordered = sorted(notes)
    return sum(1 for low, high in zip(ordered, ordered[1:]) if high - low <= 2)


# ---------------------------------------------------------------------------
# ChordQuality
# ---------------------------------------------------------------------------


class ChordQuality(enum.Enum):
    """Chord quality; the value is the display suffix used in chord symbols."""

    MAJOR = ""
    MINOR = "-"
    DOMINANT7 = "7"
    MAJOR7 = "maj7"
    MINOR7 = "-7"
    DIMINISHED = "dim"
    DIMINISHED7 = "dim7"
    HALF_DIMINISHED = "-7b5"
    AUGMENTED = "aug"
    SUS4 = "sus4"
    SUS2 = "sus2"
    DOMINANT9 = "9"
    DOMINANT13 = "13"
    MINOR9 = "-9"
    MAJOR9 = "maj9"
    ALTERED = "7alt"

    @property
    def intervals(self) -> tuple[int, ...]:
        """Semitone intervals above the root."""
        return _QUALITY_INTERVALS[self]

    @property
    def is_dominant(self) -> bool:
        return self in _DOMINANT_QUALITIES


_QUALITY_INTERVALS: dict[ChordQuality, tuple[int, ...]] = {
    ChordQuality.MAJOR: (0, 4, 7),
    ChordQuality.MINOR: (0, 3, 7),
    ChordQuality.DOMINANT7: (0, 4, 7, 10),
    ChordQuality.MAJOR7: (0, 4, 7, 11),
    ChordQuality.MINOR7: (0, 3, 7, 10),
    ChordQuality.DIMINISHED: (0, 3, 6),
    ChordQuality.DIMINISHED7: (0, 3, 6, 9),
    ChordQuality.HALF_DIMINISHED: (0, 3, 6, 10),
    ChordQuality.AUGMENTED: (0, 4, 8),
    ChordQuality.SUS4: (0, 5, 7),
    ChordQuality.SUS2: (0, 2, 7),
    ChordQuality.DOMINANT9: (0, 4, 7, 10, 14),
    ChordQuality.DOMINANT13: (0, 4, 7, 10, 14, 21),
    ChordQuality.MINOR9: (0, 3, 7, 10, 14),
    ChordQuality.MAJOR9: (0, 4, 7, 11, 14),
    ChordQuality.ALTERED: (0, 4, 6, 10, 13, 15),  # 7#9b13 colour
}

_DOMINANT_QUALITIES: frozenset[ChordQuality] = frozenset(
    {
        ChordQuality.DOMINANT7,
        ChordQuality.DOMINANT9,
        ChordQuality.DOMINANT13,
        ChordQuality.ALTERED,
    }
)

DIM_STACK_EXTENSION: str = "dim_stack"
"""Extension tag requesting the diminished-stack polychord voicing on a dominant."""


# ---------------------------------------------------------------------------
# Chord
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Chord:
    """A chord symbol reduced to pitch classes.

    Attributes:
        root:       Root pitch class, 0–11 (C=0)
        quality:    ChordQuality member
        bass:       Optional slash-bass pitch class
        extensions: Extra alterations, e.g. ("b9", "#11"); "dim_stack" is a
                    voicing request rather than a sounding tension
    """

    root: int
    quality: ChordQuality
    bass: int | None = None
    extensions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not (0 <= self.root <= 11):
            raise ValueError(f"Chord.root must be a pitch class in [0, 11], got {self.root}")
        if self.bass is not None and not (0 <= self.bass <= 11):
            raise ValueError(f"Chord.bass must be a pitch class in [0, 11], got {self.bass}")

    @classmethod
    def from_name(
        cls,
        root: str,
        quality: ChordQuality,
        *,
        bass: str | None = None,
        extensions: tuple[str, ...] = (),
    ) -> Chord:
        """Build a Chord from note names, e.g. Chord.from_name("D", ChordQuality.MINOR7)."""
        return cls(
            root=note_name_to_pitch_class(root),
            quality=quality,
            bass=note_name_to_pitch_class(bass) if bass else None,
            extensions=extensions,
        )

    @property
    def is_dominant(self) -> bool:
        return self.quality.is_dominant

    @property
    def uses_dim_stack(self) -> bool:
        return self.is_dominant and DIM_STACK_EXTENSION in self.extensions

    @property
    def symbol(self) -> str:
        """Display name, e.g. "Dm7" is rendered as "D-7", slash chords as "C/E"."""
        if self.uses_dim_stack:
            lower = NOTE_NAMES[(self.root - 3) % 12]
            return f"{NOTE_NAMES[self.root]}/{lower} triads"
        name = NOTE_NAMES[self.root] + self.quality.value
        visible = [e for e in self.extensions if e != DIM_STACK_EXTENSION]
        if visible:
            name += "(" + ",".join(visible) + ")"
        if self.bass is not None:
            name += "/" + NOTE_NAMES[self.bass]
        return name

    def pitch_classes(self) -> tuple[int, ...]:
        return tuple((self.root + i) % 12 for i in self.quality.intervals)


# ---------------------------------------------------------------------------
# TimeSignature
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeSignature:
    """Meter of a progression.

    Attributes:
        beats:     Numerator, e.g. 4 in 4/4
        beat_type: Denominator, e.g. 4 in 4/4
    """

    beats: int = 4
    beat_type: int = 4

    def __post_init__(self) -> None:
        if self.beats <= 0:
            raise ValueError(f"TimeSignature.beats must be positive, got {self.beats}")
        if self.beat_type not in (1, 2, 4, 8, 16):
            raise ValueError(f"TimeSignature.beat_type must be a power of two <= 16, got {self.beat_type}")

    @property
    def beats_per_measure(self) -> float:
        """Measure length in quarter-note beats."""
        return self.beats * (4.0 / self.beat_type)


COMMON_TIME = TimeSignature(4, 4)
WALTZ_TIME = TimeSignature(3, 4)
CUT_TIME = TimeSignature(2, 2)


# ---------------------------------------------------------------------------
# ChordEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChordEvent:
    """A Chord on the absolute beat timeline.

    Attributes:
        chord:      The harmony sounding during this event
        start_beat: Absolute start position in beats (>= 0)
        duration:   Length in beats (>= MIN_CHORD_DURATION)
    """

    chord: Chord
    start_beat: float
    duration: float

    def __post_init__(self) -> None:
        if self.start_beat < 0:
            raise ValueError(f"ChordEvent.start_beat must be >= 0, got {self.start_beat}")
        if self.duration < MIN_CHORD_DURATION:
            raise ValueError(
                f"ChordEvent.duration must be >= {MIN_CHORD_DURATION} beats, got {self.duration}"
            )

    @property
    def end_beat(self) -> float:
        return self.start_beat + self.duration

    def measure_number(self, beats_per_measure: float = 4.0) -> int:
        """1-based measure containing this event's start beat."""
        return int(self.start_beat // beats_per_measure) + 1


def validate_progression(events: tuple[ChordEvent, ...] | list[ChordEvent]) -> None:
    """Reject progressions whose events are out of order or overlap.

    Raises:
        ValueError: If any event starts before the previous one has ended.
    """
    for prev, curr in zip(events, events[1:]):
        if curr.start_beat < prev.end_beat - 1e-9:
            raise ValueError(
                f"Chord events overlap or are out of order: {prev.chord.symbol} ends at "
                f"{prev.end_beat}, {curr.chord.symbol} starts at {curr.start_beat}"
            )


def progression_length(events: tuple[ChordEvent, ...] | list[ChordEvent]) -> float:
    """Loop length in beats: the end of the last event (0.0 when empty)."""
    return max((e.end_beat for e in events), default=0.0)


# ---------------------------------------------------------------------------
# Voicing
# ---------------------------------------------------------------------------


class VoicingFamily(enum.Enum):
    """Closed set of voicing families a Voicing can be drawn from."""

    ROOTLESS_A = "rootless_a"  # 3-5-7-9 upper structure
    ROOTLESS_B = "rootless_b"  # 7-9-3-5 upper structure
    QUARTAL = "quartal"  # stacked fourths
    SHELL = "shell"  # root-3-7
    DROP2 = "drop2"
    DROP3 = "drop3"
    DIM_STACK = "dim_stack"  # two triads a minor third apart
    FALLBACK = "fallback"  # close-position chord tones


def _split_hands(notes: tuple[int, ...]) -> tuple[tuple[int, ...], tuple[int, ...]]:
    """Split sorted notes at middle C, keeping at least one note in each hand."""
    left = tuple(n for n in notes if n < MIDDLE_C)
    right = tuple(n for n in notes if n >= MIDDLE_C)
    if not left and notes:
        left, right = notes[:1], notes[1:]
    if not right and len(notes) > 1:
        left, right = notes[:-1], notes[-1:]
    return left, right


@dataclass(frozen=True)
class Voicing:
    """A concrete two-hand realization of a Chord.

    Attributes:
        chord:       The Chord being voiced
        notes:       All MIDI notes, sorted ascending, each in [PIANO_LOW, PIANO_HIGH]
        family:      VoicingFamily the voicing came from
        left_hand:   Notes taken by the left hand (sorted)
        right_hand:  Notes taken by the right hand (sorted)

    When both hands are left empty they are derived by splitting at middle C.
    """

    chord: Chord
    notes: tuple[int, ...]
    family: VoicingFamily = VoicingFamily.FALLBACK
    left_hand: tuple[int, ...] = field(default=())
    right_hand: tuple[int, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.notes:
            raise ValueError("Voicing.notes must not be empty")
        for pitch in self.notes:
            if not (PIANO_LOW <= pitch <= PIANO_HIGH):
                raise ValueError(f"Voicing note {pitch} out of range [{PIANO_LOW}, {PIANO_HIGH}]")
        ordered = tuple(sorted(self.notes))
        if len(set(ordered)) != len(ordered):
            raise ValueError(f"Voicing notes must be distinct, got {ordered}")
        object.__setattr__(self, "notes", ordered)
        if not self.left_hand and not self.right_hand:
            left, right = _split_hands(ordered)
            object.__setattr__(self, "left_hand", left)
            object.__setattr__(self, "right_hand", right)
        else:
            object.__setattr__(self, "left_hand", tuple(sorted(self.left_hand)))
            object.__setattr__(self, "right_hand", tuple(sorted(self.right_hand)))
            if sorted(self.left_hand + self.right_hand) != list(ordered):
                raise ValueError("Voicing hands must partition Voicing.notes")

    @property
    def spread(self) -> int:
        """Top note minus bottom note, in semitones."""
        return self.notes[-1] - self.notes[0]

    @property
    def center(self) -> float:
        """Mean pitch of the voicing."""
        return sum(self.notes) / len(self.notes)

    @property
    def bass_note(self) -> int:
        return self.notes[0]

    @property
    def top_note(self) -> int:
        return self.notes[-1]

    @property
    def cluster_count(self) -> int:
        return count_clusters(self.notes)

    def third_note(self) -> int | None:
        """Lowest note carrying the chord's third (minor if present, else major)."""
        interval = 3 if 3 in self.chord.quality.intervals else 4
        pc = (self.chord.root + interval) % 12
        return next((n for n in self.notes if n % 12 == pc), None)

    def seventh_note(self) -> int | None:
        """Lowest note carrying a seventh, searched as b7, maj7, then dim7."""
        for interval in (10, 11, 9):
            pc = (self.chord.root + interval) % 12
            note = next((n for n in self.notes if n % 12 == pc), None)
            if note is not None:
                return note
        return None

    def note_names(self) -> tuple[str, ...]:
        return tuple(midi_to_name(n) for n in self.notes)


# ---------------------------------------------------------------------------
# Rhythm
# ---------------------------------------------------------------------------


class HitType(enum.Enum):
    """Which notes of the current voicing a rhythm hit sounds."""

    FULL_CHORD = "full_chord"
    BASS_ONLY = "bass_only"
    TOP_NOTE = "top_note"
    LEFT_HAND = "left_hand"
    RIGHT_HAND = "right_hand"
    REST = "rest"


@dataclass(frozen=True)
class RhythmHit:
    """One hit of a rhythm pattern.

    Attributes:
        position:  Straight (unswung) offset in beats from the pattern start
        velocity:  Relative velocity 0.0–1.0
        hit_type:  HitType selecting the sounding notes
        duration:  Optional explicit duration in beats
    """

    position: float
    velocity: float = 0.8
    hit_type: HitType = HitType.FULL_CHORD
    duration: float | None = None

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError(f"RhythmHit.position must be >= 0, got {self.position}")
        if not (0.0 <= self.velocity <= 1.0):
            raise ValueError(f"RhythmHit.velocity must be in [0.0, 1.0], got {self.velocity}")
        if self.duration is not None and self.duration <= 0:
            raise ValueError(f"RhythmHit.duration must be positive, got {self.duration}")


MAX_SWING_FACTOR: float = 0.45


@dataclass(frozen=True)
class RhythmPattern:
    """A named comping rhythm belonging to one style.

    Hits store straight positions; the swing factor is applied on read by
    ``swung_hits()`` so re-applying swing never accumulates drift.

    Attributes:
        name:            Pattern identity, e.g. "Syncopated"
        style:           Owning style identifier, e.g. "swing"
        length_in_beats: Pattern length in beats (> 0)
        hits:            Hits ordered by position
        swing_factor:    0.0 = straight, ~0.17 = light swing, ~0.33 = heavy swing
        description:     Free text
    """

    name: str
    style: str
    length_in_beats: float
    hits: tuple[RhythmHit, ...]
    swing_factor: float = 0.0
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("RhythmPattern.name must not be empty")
        if self.length_in_beats <= 0:
            raise ValueError(f"RhythmPattern.length_in_beats must be positive, got {self.length_in_beats}")
        if not (0.0 <= self.swing_factor <= MAX_SWING_FACTOR):
            raise ValueError(
                f"RhythmPattern.swing_factor must be in [0.0, {MAX_SWING_FACTOR}], got {self.swing_factor}"
            )
        for hit in self.hits:
            if not (0 <= hit.position < self.length_in_beats):
                raise ValueError(
                    f"Hit position {hit.position} outside pattern {self.name!r} "
                    f"of length {self.length_in_beats}"
                )
        object.__setattr__(self, "hits", tuple(sorted(self.hits, key=lambda h: h.position)))

    def swung_hits(self) -> tuple[RhythmHit, ...]:
        """Hits with off-beat eighths delayed by ``swing_factor``.

        A hit is an off-beat eighth when its fractional beat lies within 0.1
        of 0.5; it moves to floor(position) + 0.5 + swing_factor.
        """
        if self.swing_factor == 0.0:
            return self.hits
        swung: list[RhythmHit] = []
        for hit in self.hits:
            whole = int(hit.position)
            if abs((hit.position - whole) - 0.5) < 0.1:
                position = min(whole + 0.5 + self.swing_factor, self.length_in_beats - 1e-6)
                hit = RhythmHit(position, hit.velocity, hit.hit_type, hit.duration)
            swung.append(hit)
        return tuple(swung)

    def with_swing(self, factor: float | None = None) -> RhythmPattern:
        """Return the same pattern with a new swing factor (defaults to the current one)."""
        return RhythmPattern(
            name=self.name,
            style=self.style,
            length_in_beats=self.length_in_beats,
            hits=self.hits,
            swing_factor=self.swing_factor if factor is None else factor,
            description=self.description,
        )


@dataclass(frozen=True)
class ScheduledHit:
    """A pattern hit stamped onto the absolute beat timeline.

    Attributes:
        start_beat:        Absolute position in beats
        pattern_position:  Position within the pattern (swung), 0 <= p < length
        duration:          Sounding duration in beats
        velocity:          Relative velocity 0.0–1.0
        hit_type:          HitType selecting the sounding notes
    """

    start_beat: float
    pattern_position: float
    duration: float
    velocity: float
    hit_type: HitType


# ---------------------------------------------------------------------------
# NoteEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoteEvent:
    """One sounding note, ready for a playback or MIDI consumer.

    Attributes:
        start_beat: Absolute onset in beats
        pitch:      MIDI note number 0–127
        velocity:   MIDI velocity 0–127
        duration:   Length in beats (> 0)
        hand:       "left" or "right"
        channel:    MIDI channel 0–15
    """

    start_beat: float
    pitch: int
    velocity: int
    duration: float
    hand: str = "right"
    channel: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.pitch <= 127):
            raise ValueError(f"NoteEvent.pitch must be in [0, 127], got {self.pitch}")
        if not (0 <= self.velocity <= 127):
            raise ValueError(f"NoteEvent.velocity must be in [0, 127], got {self.velocity}")
        if self.duration <= 0:
            raise ValueError(f"NoteEvent.duration must be positive, got {self.duration}")
        if self.hand not in ("left", "right"):
            raise ValueError(f"NoteEvent.hand must be 'left' or 'right', got {self.hand!r}")
        if not (0 <= self.channel <= 15):
            raise ValueError(f"NoteEvent.channel must be in [0, 15], got {self.channel}")

    @property
    def end_beat(self) -> float:
        return self.start_beat + self.duration
