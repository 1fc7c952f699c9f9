"""
Tests for core/comping/voice_leading.py — cost function and looped DP optimizer.

Validates:
    - transition_cost: 7th→3rd reward, parallel fifth penalty, voice-count penalty
    - optimize_progression: one voicing per event, input order, determinism
    - loop closure: DP result matches brute force over every path
    - spread normalization: keeps the looped optimum and pitch classes
    - error handling: empty candidate sets, mismatched candidate lists
    - find_best_voicing, path_cost, analyze
"""

import dataclasses
import itertools

import pytest

from core.comping.types import Chord, ChordEvent, ChordQuality, Voicing
from core.comping.voice_leading import (
    CANDIDATE_MAX_SPREAD,
    DEFAULT_WEIGHTS,
    CandidateSetExhaustedError,
    CostWeights,
    VoiceLeadingOptimizer,
)
from core.comping.voicing import VoicingGenerator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

D_MINOR7 = Chord(2, ChordQuality.MINOR7)
G7 = Chord(7, ChordQuality.DOMINANT7)
C_MAJOR7 = Chord(0, ChordQuality.MAJOR7)
A7 = Chord(9, ChordQuality.DOMINANT7)
C_MAJOR = Chord(0, ChordQuality.MAJOR)


def _events(*chords: Chord, duration: float = 4.0) -> list[ChordEvent]:
    return [ChordEvent(chord, i * duration, duration) for i, chord in enumerate(chords)]


def _optimizer(**weight_overrides: float) -> VoiceLeadingOptimizer:
    return VoiceLeadingOptimizer(weights=dataclasses.replace(DEFAULT_WEIGHTS, **weight_overrides))


def _brute_force(optimizer: VoiceLeadingOptimizer, candidates, loop: bool) -> float:
    return min(optimizer.path_cost(path, loop=loop) for path in itertools.product(*candidates))


# ---------------------------------------------------------------------------
# Cost function
# ---------------------------------------------------------------------------


class TestTransitionCost:
    def test_seventh_to_third_reward(self) -> None:
        a = Voicing(D_MINOR7, (48, 53, 57, 60))  # C is the 7th
        b = Voicing(G7, (47, 53, 57, 59))  # B is the 3rd
        rewarded = _optimizer().transition_cost(a, b)
        neutral = _optimizer(seventh_to_third=0.0).transition_cost(a, b)
        assert rewarded - neutral == pytest.approx(-15.0)

    def test_upward_resolution_half_reward(self) -> None:
        a = Voicing(D_MINOR7, (48, 53, 57))  # C is the 7th
        b = Voicing(Chord(10, ChordQuality.MAJOR), (50, 53, 58))  # D is the 3rd of Bb
        rewarded = _optimizer().transition_cost(a, b)
        neutral = _optimizer(seventh_to_third=0.0).transition_cost(a, b)
        assert rewarded - neutral == pytest.approx(-7.5)

    def test_no_reward_without_step(self) -> None:
        a = Voicing(D_MINOR7, (48, 53, 57))
        b = Voicing(Chord(5, ChordQuality.MAJOR), (53, 57, 60))  # 3rd A is far from C
        assert _optimizer().transition_cost(a, b) == _optimizer(seventh_to_third=0.0).transition_cost(a, b)

    def test_parallel_fifths_penalised(self) -> None:
        a = Voicing(C_MAJOR, (48, 55))
        b = Voicing(C_MAJOR, (50, 57))
        penalised = _optimizer().transition_cost(a, b)
        allowed = _optimizer(parallel_fifths=0.0).transition_cost(a, b)
        assert penalised - allowed == pytest.approx(20.0)

    def test_voice_count_mismatch(self) -> None:
        a = Voicing(C_MAJOR, (48, 52, 55))
        b = Voicing(C_MAJOR, (48, 52, 55, 60))
        assert VoiceLeadingOptimizer().transition_cost(a, b) == pytest.approx(20.0)

    def test_smooth_beats_leap(self) -> None:
        opt = VoiceLeadingOptimizer()
        a = Voicing(D_MINOR7, (48, 53, 57, 64))
        near = Voicing(G7, (47, 53, 57, 62))
        far = Voicing(G7, (59, 65, 69, 74))
        assert opt.transition_cost(a, near) < opt.transition_cost(a, far)

    def test_sorted_voicings_never_cross(self) -> None:
        """Voices pair by rank, so only the overlap term can charge sorted voicings."""
        a = Voicing(C_MAJOR, (48, 52, 55))
        b = Voicing(C_MAJOR, (55, 60, 64))
        default = _optimizer().transition_cost(a, b)
        assert _optimizer(voice_crossing=0.0).transition_cost(a, b) == default
        assert _optimizer(voice_overlap=0.0).transition_cost(a, b) < default

    def test_crossing_charged_on_hand_ordered_voices(self) -> None:
        assert _optimizer(voice_overlap=0.0)._crossing((48, 52), (55, 50)) == pytest.approx(15.0)

    def test_weights_validated(self) -> None:
        with pytest.raises(ValueError, match="max_allowed_clusters"):
            CostWeights(max_allowed_clusters=-1)


# ---------------------------------------------------------------------------
# optimize_progression
# ---------------------------------------------------------------------------


class TestOptimizeProgression:
    def test_empty(self) -> None:
        assert VoiceLeadingOptimizer().optimize_progression([]) == ()

    def test_one_voicing_per_event_in_order(self) -> None:
        events = _events(D_MINOR7, G7, C_MAJOR7, A7)
        voicings = VoiceLeadingOptimizer().optimize_progression(events)
        assert len(voicings) == len(events)
        assert [v.chord for v in voicings] == [e.chord for e in events]

    def test_deterministic(self) -> None:
        events = _events(D_MINOR7, G7, C_MAJOR7, A7)
        first = VoiceLeadingOptimizer().optimize_progression(events)
        second = VoiceLeadingOptimizer().optimize_progression(events)
        assert first == second

    def test_single_event(self) -> None:
        voicings = VoiceLeadingOptimizer().optimize_progression(_events(C_MAJOR7))
        assert len(voicings) == 1

    def test_candidates_for_filters_spread(self) -> None:
        opt = VoiceLeadingOptimizer(family=None)
        for v in opt.candidates_for(_events(C_MAJOR7)[0]):
            assert v.spread <= CANDIDATE_MAX_SPREAD

    def test_empty_candidate_set_is_fatal(self) -> None:
        events = _events(D_MINOR7, G7)
        generator = VoicingGenerator()
        with pytest.raises(CandidateSetExhaustedError, match="event 1"):
            VoiceLeadingOptimizer().optimize_progression(
                events, candidates=[generator.generate(D_MINOR7), ()]
            )

    def test_candidate_count_mismatch(self) -> None:
        events = _events(D_MINOR7, G7)
        with pytest.raises(ValueError, match="one set per event"):
            VoiceLeadingOptimizer().optimize_progression(events, candidates=[VoicingGenerator().generate(D_MINOR7)])


class TestLoopClosure:
    def _candidates(self):
        generator = VoicingGenerator()
        return [generator.generate(chord) for chord in (D_MINOR7, G7, C_MAJOR7, A7)]

    def test_loop_matches_brute_force(self) -> None:
        opt = VoiceLeadingOptimizer()
        candidates = self._candidates()
        events = _events(D_MINOR7, G7, C_MAJOR7, A7)
        chosen = opt.optimize_progression(events, candidates=candidates, loop=True, normalize=False)
        assert opt.path_cost(chosen, loop=True) == pytest.approx(_brute_force(opt, candidates, loop=True))

    def test_open_path_matches_brute_force(self) -> None:
        opt = VoiceLeadingOptimizer()
        candidates = self._candidates()
        events = _events(D_MINOR7, G7, C_MAJOR7, A7)
        chosen = opt.optimize_progression(events, candidates=candidates, loop=False, normalize=False)
        assert opt.path_cost(chosen, loop=False) == pytest.approx(_brute_force(opt, candidates, loop=False))

    def test_closing_edge_is_honoured(self) -> None:
        """No other last voicing gives a cheaper total with the rest of the path fixed."""
        opt = VoiceLeadingOptimizer()
        candidates = self._candidates()
        events = _events(D_MINOR7, G7, C_MAJOR7, A7)
        chosen = list(opt.optimize_progression(events, candidates=candidates, normalize=False))
        best = opt.path_cost(chosen)
        for alternative in candidates[-1]:
            assert opt.path_cost(chosen[:-1] + [alternative]) >= best - 1e-9

    def test_chosen_voicings_come_from_candidates(self) -> None:
        candidates = self._candidates()
        chosen = VoiceLeadingOptimizer().optimize_progression(
            _events(D_MINOR7, G7, C_MAJOR7, A7), candidates=candidates, normalize=False
        )
        for voicing, cands in zip(chosen, candidates):
            assert voicing in cands


SEAM_PROGRESSIONS = [
    [
        Chord(6, ChordQuality.MINOR),
        Chord(1, ChordQuality.MINOR7),
        Chord(11, ChordQuality.HALF_DIMINISHED),
        Chord(0, ChordQuality.DOMINANT7),
        Chord(0, ChordQuality.MAJOR7),
    ],
    [
        Chord(9, ChordQuality.MAJOR7),
        Chord(6, ChordQuality.DOMINANT7),
        Chord(5, ChordQuality.MAJOR7),
        Chord(0, ChordQuality.MAJOR),
    ],
    [D_MINOR7, G7] * 4,
]


class TestSpreadNormalization:
    """The default optimize path (loop and normalize on) keeps the DP optimum."""

    @pytest.mark.parametrize("chords", SEAM_PROGRESSIONS)
    def test_normalization_never_raises_loop_cost(self, chords) -> None:
        opt = VoiceLeadingOptimizer()
        events = _events(*chords)
        raw = opt.optimize_progression(events, normalize=False)
        normalized = opt.optimize_progression(events)
        assert opt.path_cost(normalized) == pytest.approx(opt.path_cost(raw))

    @pytest.mark.parametrize("chords", SEAM_PROGRESSIONS)
    def test_seam_voicings_cannot_be_improved(self, chords) -> None:
        """Swapping only the first or last voicing never yields a cheaper loop."""
        opt = VoiceLeadingOptimizer()
        events = _events(*chords)
        chosen = list(opt.optimize_progression(events))
        best = opt.path_cost(chosen)
        for alternative in opt.candidates_for(events[0]):
            assert opt.path_cost([alternative] + chosen[1:]) >= best - 1e-9
        for alternative in opt.candidates_for(events[-1]):
            assert opt.path_cost(chosen[:-1] + [alternative]) >= best - 1e-9

    @pytest.mark.parametrize("chords", SEAM_PROGRESSIONS)
    def test_swaps_keep_pitch_classes(self, chords) -> None:
        opt = VoiceLeadingOptimizer()
        events = _events(*chords)
        raw = opt.optimize_progression(events, normalize=False)
        normalized = opt.optimize_progression(events)
        for before, after in zip(raw, normalized):
            assert {n % 12 for n in after.notes} == {n % 12 for n in before.notes}

    def test_open_path_matches_brute_force_with_normalization(self) -> None:
        opt = VoiceLeadingOptimizer()
        generator = VoicingGenerator()
        chords = (D_MINOR7, G7, C_MAJOR7, A7)
        candidates = [generator.generate(chord) for chord in chords]
        chosen = opt.optimize_progression(_events(*chords), candidates=candidates, loop=False)
        assert opt.path_cost(chosen, loop=False) == pytest.approx(_brute_force(opt, candidates, loop=False))


# ---------------------------------------------------------------------------
# Incremental use and analysis
# ---------------------------------------------------------------------------


class TestFindBestVoicing:
    def test_without_previous_uses_canonical(self) -> None:
        opt = VoiceLeadingOptimizer()
        event = _events(D_MINOR7)[0]
        assert opt.find_best_voicing(event) == VoicingGenerator().generate_voicing(D_MINOR7)

    def test_with_previous_is_cheapest(self) -> None:
        opt = VoiceLeadingOptimizer()
        previous = VoicingGenerator().generate_voicing(D_MINOR7)
        event = _events(G7)[0]
        chosen = opt.find_best_voicing(event, previous)
        assert opt.transition_cost(previous, chosen) == min(
            opt.transition_cost(previous, c) for c in opt.candidates_for(event)
        )


class TestAnalyze:
    def test_loop_includes_closing_edge(self) -> None:
        opt = VoiceLeadingOptimizer()
        voicings = opt.optimize_progression(_events(D_MINOR7, G7, C_MAJOR7))
        analysis = opt.analyze(voicings)
        assert len(analysis.transitions) == 3
        assert analysis.transitions[-1].from_index == 2
        assert analysis.transitions[-1].to_index == 0
        assert analysis.loop_cost == analysis.transitions[-1].cost
        assert analysis.total_cost == pytest.approx(opt.path_cost(voicings))

    def test_open_analysis(self) -> None:
        opt = VoiceLeadingOptimizer()
        voicings = opt.optimize_progression(_events(D_MINOR7, G7, C_MAJOR7), loop=False)
        analysis = opt.analyze(voicings, loop=False)
        assert len(analysis.transitions) == 2
        assert analysis.loop_cost is None

    def test_quality_grade(self) -> None:
        opt = VoiceLeadingOptimizer()
        analysis = opt.analyze(opt.optimize_progression(_events(D_MINOR7, G7)))
        assert analysis.quality in {"excellent", "good", "fair", "poor"}
        assert all(t.cost > 10.0 for t in analysis.problem_spots)

    def test_single_voicing(self) -> None:
        analysis = VoiceLeadingOptimizer().analyze([VoicingGenerator().generate_voicing(C_MAJOR7)])
        assert analysis.transitions == ()
        assert analysis.quality == "excellent"
