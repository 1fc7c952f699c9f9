"""
Tests for core/comping/types.py — frozen value objects.

Tests cover:
    - Note name parsing and MIDI naming
    - Chord: validation, symbols, pitch classes, dominant detection
    - ChordEvent: validation, end beat, measure numbers, progression checks
    - Voicing: range/duplicate validation, hand split, derived properties
    - RhythmHit / RhythmPattern: validation, sorting, idempotent swing
    - NoteEvent: validation
"""

import dataclasses

import pytest

from core.comping.types import (
    PIANO_HIGH,
    PIANO_LOW,
    WALTZ_TIME,
    Chord,
    ChordEvent,
    ChordQuality,
    NoteEvent,
    RhythmHit,
    RhythmPattern,
    TimeSignature,
    Voicing,
    VoicingFamily,
    count_clusters,
    midi_to_name,
    note_name_to_pitch_class,
    progression_length,
    validate_progression,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

D_MINOR7 = Chord(root=2, quality=ChordQuality.MINOR7)
G7 = Chord(root=7, quality=ChordQuality.DOMINANT7)


def _pattern(positions: list[float], swing: float = 0.0, length: float = 4.0) -> RhythmPattern:
    return RhythmPattern(
        name="Test",
        style="swing",
        length_in_beats=length,
        hits=tuple(RhythmHit(position=p) for p in positions),
        swing_factor=swing,
    )


# ---------------------------------------------------------------------------
# Note names
# ---------------------------------------------------------------------------


class TestNoteNames:
    def test_sharps_and_flats(self) -> None:
        assert note_name_to_pitch_class("F#") == 6
        assert note_name_to_pitch_class("Gb") == 6
        assert note_name_to_pitch_class("Bb") == 10

    def test_lowercase_accepted(self) -> None:
        assert note_name_to_pitch_class("eb") == 3

    def test_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown note name"):
            note_name_to_pitch_class("H")

    def test_midi_to_name(self) -> None:
        assert midi_to_name(60) == "C4"
        assert midi_to_name(58) == "Bb3"

    def test_count_clusters(self) -> None:
        assert count_clusters((60, 62, 63, 67)) == 2
        assert count_clusters((48, 55, 64)) == 0


# ---------------------------------------------------------------------------
# Chord
# ---------------------------------------------------------------------------


class TestChord:
    def test_root_out_of_range_raises(self) -> None:
        with pytest.raises(ValueError, match="root"):
            Chord(root=12, quality=ChordQuality.MAJOR)

    def test_from_name(self) -> None:
        chord = Chord.from_name("D", ChordQuality.MINOR7)
        assert chord == D_MINOR7

    def test_symbol(self) -> None:
        assert D_MINOR7.symbol == "D-7"
        assert Chord.from_name("C", ChordQuality.MAJOR7, bass="E").symbol == "Cmaj7/E"
        assert Chord(7, ChordQuality.DOMINANT7, extensions=("b9",)).symbol == "G7(b9)"

    def test_dim_stack_symbol(self) -> None:
        chord = Chord(0, ChordQuality.DOMINANT7, extensions=("dim_stack",))
        assert chord.uses_dim_stack
        assert chord.symbol == "C/A triads"

    def test_dim_stack_requires_dominant(self) -> None:
        chord = Chord(0, ChordQuality.MAJOR7, extensions=("dim_stack",))
        assert not chord.uses_dim_stack

    def test_pitch_classes(self) -> None:
        assert G7.pitch_classes() == (7, 11, 2, 5)

    def test_is_dominant(self) -> None:
        assert G7.is_dominant
        assert Chord(7, ChordQuality.ALTERED).is_dominant
        assert not D_MINOR7.is_dominant

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            D_MINOR7.root = 3  # type: ignore[misc]


# ---------------------------------------------------------------------------
# TimeSignature / ChordEvent
# ---------------------------------------------------------------------------


class TestTimeSignature:
    def test_beats_per_measure(self) -> None:
        assert TimeSignature().beats_per_measure == 4.0
        assert WALTZ_TIME.beats_per_measure == 3.0
        assert TimeSignature(6, 8).beats_per_measure == 3.0

    def test_invalid_beat_type(self) -> None:
        with pytest.raises(ValueError, match="beat_type"):
            TimeSignature(4, 3)


class TestChordEvent:
    def test_end_beat(self) -> None:
        assert ChordEvent(G7, 4.0, 2.0).end_beat == 6.0

    def test_negative_start_raises(self) -> None:
        with pytest.raises(ValueError, match="start_beat"):
            ChordEvent(G7, -1.0, 4.0)

    def test_short_duration_raises(self) -> None:
        with pytest.raises(ValueError, match="duration"):
            ChordEvent(G7, 0.0, 0.25)

    def test_minimum_duration_accepted(self) -> None:
        assert ChordEvent(G7, 0.0, 0.5).duration == 0.5

    def test_measure_number(self) -> None:
        assert ChordEvent(G7, 0.0, 4.0).measure_number() == 1
        assert ChordEvent(G7, 4.0, 4.0).measure_number() == 2
        assert ChordEvent(G7, 6.0, 2.0).measure_number(3.0) == 3

    def test_validate_progression_overlap(self) -> None:
        events = [ChordEvent(D_MINOR7, 0.0, 4.0), ChordEvent(G7, 3.0, 4.0)]
        with pytest.raises(ValueError, match="overlap"):
            validate_progression(events)

    def test_validate_progression_gap_allowed(self) -> None:
        validate_progression([ChordEvent(D_MINOR7, 0.0, 2.0), ChordEvent(G7, 4.0, 4.0)])

    def test_progression_length(self) -> None:
        assert progression_length([ChordEvent(D_MINOR7, 0.0, 4.0), ChordEvent(G7, 4.0, 4.0)]) == 8.0
        assert progression_length([]) == 0.0


# ---------------------------------------------------------------------------
# Voicing
# ---------------------------------------------------------------------------


class TestVoicing:
    def test_notes_sorted(self) -> None:
        v = Voicing(D_MINOR7, (64, 48, 53))
        assert v.notes == (48, 53, 64)

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            Voicing(D_MINOR7, ())

    def test_out_of_range_raises(self) -> None:
        with pytest.raises(ValueError, match="out of range"):
            Voicing(D_MINOR7, (PIANO_LOW - 1, 60))
        with pytest.raises(ValueError, match="out of range"):
            Voicing(D_MINOR7, (60, PIANO_HIGH + 1))

    def test_duplicates_raise(self) -> None:
        with pytest.raises(ValueError, match="distinct"):
            Voicing(D_MINOR7, (60, 60, 64))

    def test_default_hand_split_at_middle_c(self) -> None:
        v = Voicing(D_MINOR7, (48, 53, 60, 65))
        assert v.left_hand == (48, 53)
        assert v.right_hand == (60, 65)

    def test_hand_split_keeps_one_note_per_hand(self) -> None:
        high = Voicing(D_MINOR7, (62, 65, 69))
        assert high.left_hand == (62,)
        assert high.right_hand == (65, 69)
        low = Voicing(D_MINOR7, (41, 45, 48))
        assert low.left_hand == (41, 45)
        assert low.right_hand == (48,)

    def test_explicit_hands_must_partition(self) -> None:
        with pytest.raises(ValueError, match="partition"):
            Voicing(D_MINOR7, (48, 53, 60), left_hand=(48,), right_hand=(60,))

    def test_derived_properties(self) -> None:
        v = Voicing(D_MINOR7, (38, 48, 53, 57, 64), VoicingFamily.ROOTLESS_A)
        assert v.spread == 26
        assert v.bass_note == 38
        assert v.top_note == 64
        assert v.center == pytest.approx(52.0)
        assert v.third_note() == 53  # F
        assert v.seventh_note() == 48  # C

    def test_seventh_search_includes_major_seventh(self) -> None:
        cmaj7 = Chord(0, ChordQuality.MAJOR7)
        assert Voicing(cmaj7, (48, 52, 59)).seventh_note() == 59

    def test_note_names(self) -> None:
        assert Voicing(D_MINOR7, (50, 53, 57)).note_names() == ("D3", "F3", "A3")


# ---------------------------------------------------------------------------
# RhythmPattern
# ---------------------------------------------------------------------------


class TestRhythmPattern:
    def test_hit_velocity_validated(self) -> None:
        with pytest.raises(ValueError, match="velocity"):
            RhythmHit(position=0.0, velocity=1.5)

    def test_hit_position_outside_length_raises(self) -> None:
        with pytest.raises(ValueError, match="outside pattern"):
            _pattern([4.0])

    def test_hits_sorted(self) -> None:
        assert [h.position for h in _pattern([2.0, 0.5]).hits] == [0.5, 2.0]

    def test_swing_moves_offbeats_only(self) -> None:
        swung = _pattern([0.0, 0.5, 2.0, 3.5], swing=0.17).swung_hits()
        assert [h.position for h in swung] == pytest.approx([0.0, 0.67, 2.0, 3.67])

    def test_swing_is_idempotent(self) -> None:
        pattern = _pattern([0.5, 2.0], swing=0.17)
        again = pattern.with_swing(0.17).with_swing(0.17)
        assert again.swung_hits() == pattern.swung_hits()
        assert again.hits == pattern.hits

    def test_straight_pattern_unchanged(self) -> None:
        pattern = _pattern([0.5, 2.0])
        assert pattern.swung_hits() == pattern.hits

    def test_swing_factor_bounds(self) -> None:
        with pytest.raises(ValueError, match="swing_factor"):
            _pattern([0.5], swing=0.5)


# ---------------------------------------------------------------------------
# NoteEvent
# ---------------------------------------------------------------------------


class TestNoteEvent:
    def test_valid(self) -> None:
        n = NoteEvent(start_beat=1.0, pitch=60, velocity=80, duration=0.5, hand="left")
        assert n.end_beat == 1.5

    def test_velocity_range(self) -> None:
        with pytest.raises(ValueError, match="velocity"):
            NoteEvent(start_beat=0.0, pitch=60, velocity=128, duration=1.0)

    def test_duration_positive(self) -> None:
        with pytest.raises(ValueError, match="duration"):
            NoteEvent(start_beat=0.0, pitch=60, velocity=80, duration=0.0)

    def test_hand_validated(self) -> None:
        with pytest.raises(ValueError, match="hand"):
            NoteEvent(start_beat=0.0, pitch=60, velocity=80, duration=1.0, hand="both")
