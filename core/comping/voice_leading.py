"""
core/comping/voice_leading.py — Global voice-leading optimizer.

optimize_progression() picks one Voicing per ChordEvent so that the summed
transition cost over the whole progression, including the wrap-around from
the last chord back to the first, is minimal.

Algorithm (dynamic programming over a layered DAG):
    1. Candidates Cᵢ for every event come from VoicingGenerator.generate_all_variants(),
       filtered to spread <= 30 and clusters <= 2 (unfiltered if nothing survives).
    2. Transition matrices Tᵢ[j, k] = cost(Cᵢ[j], Cᵢ₊₁[k]) are built once.
    3. dp[s, k] = cheapest path that starts at first-chord candidate s and
       reaches candidate k of the current step. With loop closure every start
       s is tracked separately, so the closing edge last → first is charged
       against the start the path really used. Without loop closure a single
       row with dp[0][k] = 0 is used.
    4. The terminal state minimises dp[s, k] + cost(C_last[k], C₀[s]); integer
       predecessor tables recover the path.
    5. A normalisation pass swaps voicings whose spread strays far from the
       progression's target spread for octave-equivalent candidates, only
       when the swap does not make the neighbouring transitions dearer.

Complexity: O(N · M²) cost evaluations plus O(N · M³) vectorised numpy work,
where N = events and M = candidates per event.

Determinism: numpy.argmin returns the first minimum, so ties go to the
earliest candidate in generation order. No randomness is used here.

Cost function (negative = reward):
    7th → 3rd stepwise resolution   -15 (down) / -7.5 (up)
    common tones                    -5 each, -1.5 per octave-displaced pitch class
    half / whole step motion        -3 / -1 per voice
    leaps                           +2 per semitone beyond a minor third
    parallel fifths / octaves       +20 per voice pair
    voice crossing / overlap        +15 / +8
    outer voices in contrary motion -2
    range                           +5 per semitone outside [48, 72], +20 outside [36, 84]
    register jump                   +5 per semitone of centre motion beyond 6
    spread                          +3 per semitone beyond 24
    spread change                   +8 per semitone beyond 12
    clusters                        +12 × excess² beyond 1
    inner movement                  -4 per 1–3 semitone move, +8 per missing moving voice
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from core.comping.types import ChordEvent, Voicing, VoicingFamily, count_clusters
from core.comping.voicing import VoicingGenerator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_VOICING_SPREAD: int = 24  # two octaves
MAX_SPREAD_CHANGE: int = 12  # one octave between neighbours
IDEAL_LOW: int = 48  # C3
IDEAL_HIGH: int = 72  # C5
ABSOLUTE_LOW: int = 36  # C2
ABSOLUTE_HIGH: int = 84  # C6
REGISTER_TOLERANCE: float = 6.0  # semitones of centre motion before penalty
VOICE_COUNT_PENALTY: float = 20.0  # per added or dropped voice

CANDIDATE_MAX_SPREAD: int = MAX_VOICING_SPREAD + 6
SPREAD_NORMALIZE_TOLERANCE: int = 6
SPREAD_NORMALIZE_WEIGHT: float = 0.5
PROBLEM_COST_THRESHOLD: float = 10.0


class CandidateSetExhaustedError(RuntimeError):
    """Raised when a chord event has no candidate voicings to choose from."""


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CostWeights:
    """Tunable weights of the transition cost. Negative values are rewards.

    Attributes:
        seventh_to_third:     7th of chord A stepping down into the 3rd of chord B
        half_step:            Per voice moving one semitone
        whole_step:           Per voice moving two semitones
        common_tone:          Per pitch held in the same register
        large_leap:           Per semitone of motion beyond a minor third
        parallel_fifths:      Per voice pair moving in parallel perfect fifths
        parallel_octaves:     Per voice pair moving in parallel octaves/unisons
        voice_crossing:       Per adjacent pair whose vertical order flips
        voice_overlap:        Per adjacent pair passing the other's old pitch
        out_of_range:         Per semitone outside the ideal register (×0.5) or
                              the absolute register (×2)
        register_jump:        Per semitone of centre motion beyond REGISTER_TOLERANCE
        contrary_motion:      Outer voices moving in opposite directions
        spread:               Per semitone of spread beyond MAX_VOICING_SPREAD
        spread_change:        Per semitone of spread change beyond MAX_SPREAD_CHANGE
        cluster:              Multiplied by the squared cluster excess
        max_allowed_clusters: Seconds tolerated before the cluster penalty applies
        inner_movement:       Per voice moving 1–3 semitones
        static_voicing:       Per moving voice missing below min_moving_voices
        min_moving_voices:    Voices that must move to articulate a chord change
    """

    seventh_to_third: float = -15.0
    half_step: float = -3.0
    whole_step: float = -1.0
    common_tone: float = -5.0
    large_leap: float = 2.0
    parallel_fifths: float = 20.0
    parallel_octaves: float = 20.0
    voice_crossing: float = 15.0
    voice_overlap: float = 8.0
    out_of_range: float = 10.0
    register_jump: float = 5.0
    contrary_motion: float = -2.0
    spread: float = 3.0
    spread_change: float = 8.0
    cluster: float = 12.0
    max_allowed_clusters: int = 1
    inner_movement: float = -4.0
    static_voicing: float = 8.0
    min_moving_voices: int = 2

    def __post_init__(self) -> None:
        if self.max_allowed_clusters < 0:
            raise ValueError(f"max_allowed_clusters must be >= 0, got {self.max_allowed_clusters}")
        if self.min_moving_voices < 0:
            raise ValueError(f"min_moving_voices must be >= 0, got {self.min_moving_voices}")


DEFAULT_WEIGHTS = CostWeights()
"""Weights tuned for jazz comping: the 7th → 3rd pull dominates."""


# ---------------------------------------------------------------------------
# Analysis result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionAnalysis:
    """One scored voicing-to-voicing move."""

    from_index: int
    to_index: int
    cost: float
    common_tones: int
    largest_leap: int
    seventh_resolves: bool


@dataclass(frozen=True)
class VoiceLeadingAnalysis:
    """Summary of a voiced progression.

    Attributes:
        transitions:   Scored transitions in order (the loop edge last, if any)
        total_cost:    Sum of transition costs
        average_cost:  total_cost / len(transitions), 0.0 when empty
        loop_cost:     Cost of the wrap-around edge, None when not looping
        quality:       "excellent" (< 0), "good" (< 5), "fair" (< 10) or "poor"
        problem_spots: Transitions costing more than PROBLEM_COST_THRESHOLD
    """

    transitions: tuple[TransitionAnalysis, ...]
    total_cost: float
    average_cost: float
    loop_cost: float | None
    quality: str
    problem_spots: tuple[TransitionAnalysis, ...]


def _grade(average: float) -> str:
    if average < 0:
        return "excellent"
    if average < 5:
        return "good"
    if average < 10:
        return "fair"
    return "poor"


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------


class VoiceLeadingOptimizer:
    """Chooses voicings for a progression by minimising transition cost.

    Args:
        generator: Source of candidate voicings (a default generator if None).
        weights:   Cost weights.
        family:    Voicing family searched; None searches every family.
    """

    def __init__(
        self,
        generator: VoicingGenerator | None = None,
        weights: CostWeights = DEFAULT_WEIGHTS,
        family: VoicingFamily | None = VoicingFamily.ROOTLESS_A,
    ) -> None:
        self.generator = generator or VoicingGenerator()
        self.weights = weights
        self.family = family

    # -- cost -----------------------------------------------------------------

    def transition_cost(self, a: Voicing, b: Voicing) -> float:
        """Weighted cost of moving from voicing ``a`` to voicing ``b`` (lower is smoother)."""
        w = self.weights
        src, dst = a.notes, b.notes

        if len(src) != len(dst):
            cost = abs(len(src) - len(dst)) * VOICE_COUNT_PENALTY
            for s, d in zip(src, dst):
                motion = abs(d - s)
                if motion > 3:
                    cost += (motion - 3) * w.large_leap
            return cost

        cost = 0.0
        cost += self._motion_cost(src, dst)
        cost += self._seventh_to_third(a, b)
        cost += self._common_tones(src, dst)
        cost += self._parallels(src, dst)
        cost += self._crossing(src, dst)
        cost += self._contrary_motion(src, dst)
        cost += self._range(dst)

        center_diff = abs(a.center - b.center)
        if center_diff > REGISTER_TOLERANCE:
            cost += (center_diff - REGISTER_TOLERANCE) * w.register_jump
        if b.spread > MAX_VOICING_SPREAD:
            cost += (b.spread - MAX_VOICING_SPREAD) * w.spread
        spread_change = abs(a.spread - b.spread)
        if spread_change > MAX_SPREAD_CHANGE:
            cost += (spread_change - MAX_SPREAD_CHANGE) * w.spread_change

        clusters = count_clusters(dst)
        if clusters > w.max_allowed_clusters:
            excess = clusters - w.max_allowed_clusters
            cost += excess * excess * w.cluster

        cost += self._inner_movement(src, dst)
        return cost

    def _motion_cost(self, src: tuple[int, ...], dst: tuple[int, ...]) -> float:
        cost = 0.0
        for s, d in zip(src, dst):
            motion = abs(d - s)
            if motion == 1:
                cost += self.weights.half_step
            elif motion == 2:
                cost += self.weights.whole_step
            elif motion > 3:
                cost += (motion - 3) * self.weights.large_leap
        return cost

    def _seventh_to_third(self, a: Voicing, b: Voicing) -> float:
        seventh = a.seventh_note()
        third = b.third_note()
        if seventh is None or third is None:
            return 0.0
        resolution = seventh - third
        if resolution in (1, 2):
            return self.weights.seventh_to_third
        if resolution in (-1, -2):
            return self.weights.seventh_to_third * 0.5
        return 0.0

    def _common_tones(self, src: tuple[int, ...], dst: tuple[int, ...]) -> float:
        exact = len(set(src) & set(dst))
        by_class = len({n % 12 for n in src} & {n % 12 for n in dst})
        return exact * self.weights.common_tone + (by_class - exact) * self.weights.common_tone * 0.3

    def _parallels(self, src: tuple[int, ...], dst: tuple[int, ...]) -> float:
        penalty = 0.0
        for i in range(len(src)):
            for j in range(i + 1, len(src)):
                motion_i = dst[i] - src[i]
                if motion_i == 0 or motion_i != dst[j] - src[j]:
                    continue
                before = abs(src[j] - src[i]) % 12
                after = abs(dst[j] - dst[i]) % 12
                if before == 7 and after == 7:
                    penalty += self.weights.parallel_fifths
                if before == 0 and after == 0:
                    penalty += self.weights.parallel_octaves
        return penalty

    def _crossing(self, src: tuple[int, ...], dst: tuple[int, ...]) -> float:
        """Crossing and overlap between voices paired by rank.

        Voicing.notes is always sorted, so the i-th voice is the i-th lowest
        note and the crossing check never fires for voicings built here. It
        stays so callers passing hand-ordered tuples are still charged
        ``voice_crossing``. Overlap does fire on sorted voicings.
        """
        penalty = 0.0
        for i in range(len(src) - 1):
            if dst[i] > dst[i + 1]:
                penalty += self.weights.voice_crossing
            if dst[i] > src[i + 1] or dst[i + 1] < src[i]:
                penalty += self.weights.voice_overlap
        return penalty

    def _contrary_motion(self, src: tuple[int, ...], dst: tuple[int, ...]) -> float:
        if len(src) < 2:
            return 0.0
        bass = dst[0] - src[0]
        soprano = dst[-1] - src[-1]
        if (bass > 0 > soprano) or (bass < 0 < soprano):
            return self.weights.contrary_motion
        return 0.0

    def _range(self, notes: tuple[int, ...]) -> float:
        unit = self.weights.out_of_range
        penalty = 0.0
        for note in notes:
            if note < IDEAL_LOW:
                penalty += (IDEAL_LOW - note) * unit * 0.5
            elif note > IDEAL_HIGH:
                penalty += (note - IDEAL_HIGH) * unit * 0.5
            if note < ABSOLUTE_LOW:
                penalty += (ABSOLUTE_LOW - note) * unit * 2
            elif note > ABSOLUTE_HIGH:
                penalty += (note - ABSOLUTE_HIGH) * unit * 2
        return penalty

    def _inner_movement(self, src: tuple[int, ...], dst: tuple[int, ...]) -> float:
        w = self.weights
        score = 0.0
        moving = 0
        meaningful = 0
        for s, d in zip(src, dst):
            motion = abs(d - s)
            if motion > 0:
                moving += 1
                if motion <= 3:
                    meaningful += 1
                    score += w.inner_movement
        if moving < w.min_moving_voices:
            score += w.static_voicing * (w.min_moving_voices - moving)
        held = len(src) - moving
        if 1 <= held <= 2 and meaningful >= 2:
            score += w.inner_movement * 2
        return score

    # -- candidates -----------------------------------------------------------

    def candidates_for(self, event: ChordEvent) -> tuple[Voicing, ...]:
        """Variant set for one event, filtered to playable spreads and few clusters."""
        variants = self.generator.generate_all_variants(event.chord, self.family)
        filtered = tuple(
            v
            for v in variants
            if v.spread <= CANDIDATE_MAX_SPREAD and v.cluster_count <= self.weights.max_allowed_clusters + 1
        )
        return filtered or variants

    def _cost_matrix(self, rows: Sequence[Voicing], cols: Sequence[Voicing]) -> np.ndarray:
        matrix = np.empty((len(rows), len(cols)), dtype=np.float64)
        for j, a in enumerate(rows):
            for k, b in enumerate(cols):
                matrix[j, k] = self.transition_cost(a, b)
        return matrix

    # -- global optimisation --------------------------------------------------

    def optimize_progression(
        self,
        events: Sequence[ChordEvent],
        *,
        candidates: Sequence[Sequence[Voicing]] | None = None,
        loop: bool = True,
        normalize: bool = True,
    ) -> tuple[Voicing, ...]:
        """Choose one voicing per event minimising total (optionally cyclic) cost.

        Args:
            events:     Chord events in timeline order.
            candidates: Explicit candidate sets, one per event. When None they
                        come from candidates_for().
            loop:       Charge the last → first transition as well.
            normalize:  Run the spread normalisation pass afterwards.

        Returns:
            Tuple of Voicings, same length and order as ``events``. Empty
            input gives an empty tuple.

        Raises:
            CandidateSetExhaustedError: If any event has no candidates.
            ValueError: If ``candidates`` does not match ``events`` in length.
        """
        if not events:
            return ()
        if candidates is None:
            candidate_sets = [self.candidates_for(event) for event in events]
        else:
            if len(candidates) != len(events):
                raise ValueError(
                    f"candidates must have one set per event: {len(candidates)} sets for {len(events)} events"
                )
            candidate_sets = [tuple(c) for c in candidates]
        for index, cands in enumerate(candidate_sets):
            if not cands:
                raise CandidateSetExhaustedError(
                    f"No candidate voicings for event {index} ({events[index].chord.symbol})"
                )
        logger.debug(
            "Optimizing %d events, candidate counts %s",
            len(events),
            [len(c) for c in candidate_sets],
        )

        path = self._solve(candidate_sets, loop=loop)
        chosen = [candidate_sets[i][k] for i, k in enumerate(path)]
        if normalize:
            chosen = self._normalize_spread(chosen, candidate_sets, loop=loop)

        result = tuple(chosen)
        logger.info(
            "Voiced %d chords (loop=%s), total cost %.2f",
            len(result),
            loop,
            self.path_cost(result, loop=loop),
        )
        return result

    def _solve(self, candidate_sets: list[tuple[Voicing, ...]], *, loop: bool) -> list[int]:
        """Run the DP and return the chosen candidate index per step."""
        first = len(candidate_sets[0])
        if loop:
            dp = np.full((first, first), np.inf)
            np.fill_diagonal(dp, 0.0)
        else:
            dp = np.zeros((1, first))

        predecessors: list[np.ndarray] = []
        for i in range(1, len(candidate_sets)):
            step = self._cost_matrix(candidate_sets[i - 1], candidate_sets[i])
            total = dp[:, :, np.newaxis] + step[np.newaxis, :, :]
            back = np.argmin(total, axis=1)
            dp = np.take_along_axis(total, back[:, np.newaxis, :], axis=1)[:, 0, :]
            predecessors.append(back)

        if loop:
            closing = self._cost_matrix(candidate_sets[-1], candidate_sets[0])
            terminal = dp + closing.T
        else:
            terminal = dp

        start, last = divmod(int(np.argmin(terminal)), terminal.shape[1])
        path = [last]
        for back in reversed(predecessors):
            path.append(int(back[start, path[-1]]))
        path.reverse()
        return path

    def _normalize_spread(
        self,
        voicings: list[Voicing],
        candidate_sets: list[tuple[Voicing, ...]],
        *,
        loop: bool,
    ) -> list[Voicing]:
        """Swap outlying spreads for octave-equivalent variants nearer the target.

        A replacement must keep the pitch-class set of the voicing it replaces,
        must not raise the cost of the transitions touching that step (the
        wrap-around edge included when ``loop`` is set) and must lower that
        cost plus the spread penalty. The total path cost never goes up.
        """
        if len(voicings) <= 2:
            return voicings
        optimized = list(voicings)
        average = sum(v.spread for v in voicings) / len(voicings)
        target = min(int(average), MAX_VOICING_SPREAD)

        for i, current in enumerate(optimized):
            current_gap = abs(current.spread - target)
            if current_gap <= SPREAD_NORMALIZE_TOLERANCE:
                continue
            pitch_classes = {n % 12 for n in current.notes}
            closer = [
                c
                for c in candidate_sets[i]
                if abs(c.spread - target) < current_gap and {n % 12 for n in c.notes} == pitch_classes
            ]
            if not closer:
                continue

            current_local = self._local_cost(optimized, i, current, loop=loop)
            best = current
            best_score = current_local + SPREAD_NORMALIZE_WEIGHT * current_gap
            for candidate in closer:
                local = self._local_cost(optimized, i, candidate, loop=loop)
                if local > current_local:
                    continue
                score = local + SPREAD_NORMALIZE_WEIGHT * abs(candidate.spread - target)
                if score < best_score:
                    best_score = score
                    best = candidate
            if best is not current:
                logger.debug("Spread normalised at step %d: %d -> %d", i, current.spread, best.spread)
                optimized[i] = best
        return optimized

    def _local_cost(self, voicings: list[Voicing], i: int, candidate: Voicing, *, loop: bool) -> float:
        """Cost of the transitions into and out of step ``i`` with ``candidate`` in place."""
        last = len(voicings) - 1
        cost = 0.0
        if i > 0:
            cost += self.transition_cost(voicings[i - 1], candidate)
        elif loop:
            cost += self.transition_cost(voicings[last], candidate)
        if i < last:
            cost += self.transition_cost(candidate, voicings[i + 1])
        elif loop:
            cost += self.transition_cost(candidate, voicings[0])
        return cost

    # -- incremental / analysis -----------------------------------------------

    def find_best_voicing(self, event: ChordEvent, previous: Voicing | None = None) -> Voicing:
        """Greedy choice: the cheapest candidate after ``previous``."""
        if previous is None:
            return self.generator.generate_voicing(event.chord, self.family or VoicingFamily.ROOTLESS_A)
        candidates = self.candidates_for(event)
        costs = [self.transition_cost(previous, c) for c in candidates]
        return candidates[int(np.argmin(costs))]

    def path_cost(self, voicings: Sequence[Voicing], *, loop: bool = True) -> float:
        """Sum of transition costs along ``voicings`` (plus the closing edge when looping)."""
        total = sum(self.transition_cost(a, b) for a, b in zip(voicings, voicings[1:]))
        if loop and len(voicings) > 1:
            total += self.transition_cost(voicings[-1], voicings[0])
        return float(total)

    def analyze(self, voicings: Sequence[Voicing], *, loop: bool = True) -> VoiceLeadingAnalysis:
        """Score every transition of a voiced progression."""
        if len(voicings) < 2:
            return VoiceLeadingAnalysis((), 0.0, 0.0, None, "excellent", ())

        pairs = [(i, i + 1) for i in range(len(voicings) - 1)]
        if loop:
            pairs.append((len(voicings) - 1, 0))
        transitions = tuple(self._analyze_transition(voicings, i, j) for i, j in pairs)
        total = sum(t.cost for t in transitions)
        average = total / len(transitions)
        return VoiceLeadingAnalysis(
            transitions=transitions,
            total_cost=total,
            average_cost=average,
            loop_cost=transitions[-1].cost if loop else None,
            quality=_grade(average),
            problem_spots=tuple(t for t in transitions if t.cost > PROBLEM_COST_THRESHOLD),
        )

    def _analyze_transition(self, voicings: Sequence[Voicing], i: int, j: int) -> TransitionAnalysis:
        a, b = voicings[i], voicings[j]
        seventh, third = a.seventh_note(), b.third_note()
        leaps = [abs(d - s) for s, d in zip(a.notes, b.notes)]
        return TransitionAnalysis(
            from_index=i,
            to_index=j,
            cost=self.transition_cost(a, b),
            common_tones=len(set(a.notes) & set(b.notes)),
            largest_leap=max(leaps, default=0),
            seventh_resolves=seventh is not None and third is not None and seventh - third in (1, 2),
        )
