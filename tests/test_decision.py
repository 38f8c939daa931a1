"""Tests for the autonomous decision loop and weight self-rewrite."""

from __future__ import annotations

import logging
import random

import pytest
from conftest import ScriptedRandom

from lobster.engine.decision import (
    Action,
    Decision,
    choose_encounter_type,
    evaluate_decision,
    in_survival,
    rewrite_weights,
)
from lobster.engine.encounter import EncounterType
from lobster.model.genome import SHELL, TRAIT_KEYS, Genome
from lobster.model.weights import Weights, WeightRewrite
from lobster.runtime import Runtime
from lobster.store.journal import DECISION_HEADING, REFLECTION_HEADING


def _uniform(value: float, **overrides: float) -> Genome:
    return Genome.from_values({**{k: value for k in TRAIT_KEYS}, **overrides})


def _with_encounters(genome: Genome, n: int = 3) -> Genome:
    for _ in range(n):
        genome.add_history("ENCOUNTER: Entropy. 2 traits degraded.")
    return genome


def _decisions(*actions: str) -> str:
    return "".join(f"\n{DECISION_HEADING}\n\nI chose: **{a}**\n\n> reason\n" for a in actions)


class TestSurvival:
    """The survival override forces molt or encounter."""

    @pytest.mark.parametrize("seed", range(25))
    def test_never_contact_or_wait(self, seed: int) -> None:
        rng = random.Random(seed)
        genome = Genome.from_values({k: 0.75 + rng.random() * 0.25 for k in TRAIT_KEYS})
        genome.traits[rng.choice(genome.non_shell_keys())].value = 0.70
        genome.add_history("ENCOUNTER: The Other Mind. contact established.")

        decision = evaluate_decision(genome, Weights(wait_chance=1.0), rng)

        assert decision.action in (Action.MOLT, Action.ENCOUNTER)
        assert decision.survival
        assert decision.priority == 10

    def test_molt_when_ready(self) -> None:
        genome = _with_encounters(_uniform(0.9, empathy=0.7))
        decision = evaluate_decision(genome, Weights(), ScriptedRandom())

        assert decision.action is Action.MOLT
        assert decision.reason.startswith("Survival. empathy at 70.0%. Mean at 88.0%.")

    def test_signal_when_shell_gone(self) -> None:
        genome = _uniform(0.9, empathy=0.7, **{SHELL: 0.05})
        decision = evaluate_decision(genome, Weights(), ScriptedRandom())

        assert decision.action is Action.ENCOUNTER
        assert decision.encounter_type is EncounterType.SIGNAL

    def test_entropy_otherwise(self) -> None:
        genome = _uniform(0.9, empathy=0.7)
        decision = evaluate_decision(genome, Weights(), ScriptedRandom())

        assert decision.action is Action.ENCOUNTER
        assert decision.encounter_type is EncounterType.ENTROPY

    def test_low_mean_triggers_survival(self) -> None:
        genome = _uniform(0.8)
        assert in_survival(genome)
        assert evaluate_decision(genome, Weights(), ScriptedRandom()).survival

    def test_survival_draws_no_randomness(self) -> None:
        rng = ScriptedRandom()
        evaluate_decision(_uniform(0.8), Weights(), rng)
        assert rng.draws == 0


class TestDeliberation:
    """Tests for the stillness roll and the weighted candidate draw."""

    def test_wait(self) -> None:
        decision = evaluate_decision(_uniform(0.92), Weights(), ScriptedRandom([0.0]))
        assert decision.action is Action.WAIT
        assert decision.priority == 1

    def test_no_wait_when_shell_thin(self) -> None:
        decision = evaluate_decision(_uniform(0.92, **{SHELL: 0.1}), Weights(), ScriptedRandom([0.0]))
        assert decision.action is Action.ENCOUNTER

    def test_encounter_only_candidate(self) -> None:
        decision = evaluate_decision(_uniform(0.92), Weights(), ScriptedRandom([0.9, 0.5, 0.0]))

        assert decision.action is Action.ENCOUNTER
        assert decision.encounter_type is EncounterType.SIGNAL
        assert decision.reason == "Curiosity at 92.0%. Shell at 92.0%. Chose signal."

    def test_contact_candidate_after_prior_contact(self) -> None:
        genome = _uniform(0.92)
        genome.add_history("ENCOUNTER: The Other Mind. contact established.")

        decision = evaluate_decision(genome, Weights(), ScriptedRandom([0.9, 0.1]))

        assert decision.action is Action.CONTACT
        assert decision.reason == "Contact at depth 0. The Other Mind is reachable."
        assert decision.priority == 3.0
        assert decision.encounter_type is None

    def test_molt_candidate_weight(self) -> None:
        genome = _with_encounters(_uniform(0.92, curiosity=0.8))
        decision = evaluate_decision(genome, Weights(molt_multiplier=2.0), ScriptedRandom([0.9, 0.0]))

        assert decision.action is Action.MOLT
        assert decision.reason == "Molt ready. Worst deficit: curiosity at 80.0%."
        assert decision.priority == 2.4

    def test_multiplier_shifts_choice(self) -> None:
        genome = _uniform(0.92)
        genome.add_history("ENCOUNTER: The Other Mind. contact established.")
        weights = Weights(contact_multiplier=0.2, encounter_multiplier=2.0)

        decision = evaluate_decision(genome, weights, ScriptedRandom([0.9, 0.5]))
        assert decision.action is Action.ENCOUNTER


class TestChooseEncounterType:
    """Tests for the weighted encounter-type draw."""

    def test_pulls_follow_state(self) -> None:
        genome = _uniform(1.0)
        assert choose_encounter_type(genome, Weights(), ScriptedRandom([0.3])) is EncounterType.SIGNAL
        assert choose_encounter_type(genome, Weights(), ScriptedRandom([0.34])) is EncounterType.PUZZLE
        assert choose_encounter_type(genome, Weights(), ScriptedRandom([0.99])) is EncounterType.OBSERVER

    def test_thin_shell_suppresses_signal(self) -> None:
        genome = _uniform(1.0, **{SHELL: 0.1})
        assert choose_encounter_type(genome, Weights(), ScriptedRandom([0.05])) is EncounterType.PUZZLE


class TestRewriteWeights:
    """Tests for the self-rewrite rules and cooldown."""

    def test_dominant_action_is_damped(self) -> None:
        weights = Weights()
        journal = _decisions(*(["contact"] * 15 + ["encounter"] * 5))

        result = rewrite_weights(_uniform(0.9), weights, journal, ScriptedRandom())

        assert result.success
        assert weights.contact_multiplier == 0.8
        assert weights.encounter_multiplier == 1.1
        assert weights.molt_multiplier == 1.1
        assert [c.change for c in result.changes] == ["contactMultiplier 1.00 -> 0.80"]
        assert weights.rewrite_history[-1].decision_count == 20
        assert weights.last_rewrite is not None
        assert result.journal_entry.startswith("## Decision — Self-Modification")

    def test_too_much_stillness(self) -> None:
        weights = Weights()
        journal = _decisions(*(["wait"] * 8 + ["contact"] * 6 + ["encounter"] * 6))

        result = rewrite_weights(_uniform(0.9), weights, journal, ScriptedRandom())

        assert weights.wait_chance == 0.04
        assert [c.change for c in result.changes] == ["waitChance 0.060 -> 0.040"]

    def test_falling_mean_raises_molt(self) -> None:
        genome = _uniform(0.9)
        for mean in ("88.0", "87.0", "86.0"):
            genome.add_history(f"ENCOUNTER: The Observer's Message. \"Was it worth it?\" Mean trait {mean}%.")
        weights = Weights()
        journal = _decisions(*(["contact"] * 4 + ["encounter"] * 3 + ["molt"] * 3))

        result = rewrite_weights(genome, weights, journal, ScriptedRandom())

        assert weights.molt_multiplier == 1.1
        assert result.changes[0].reason == "Mean declining. Increasing molt priority."

    def test_bare_shell_raises_confidence_scale(self) -> None:
        weights = Weights()
        result = rewrite_weights(_uniform(0.9, **{SHELL: 0.02}), weights, "", ScriptedRandom())

        assert weights.shell_confidence_scale == 5.0
        assert len(result.changes) == 1

    def test_exploratory_nudge(self) -> None:
        weights = Weights()
        result = rewrite_weights(_uniform(0.9), weights, "", ScriptedRandom([0.0, 0.9]))

        assert [c.change for c in result.changes] == ["contactMultiplier 1.00 -> 1.05"]
        assert weights.contact_multiplier == 1.05

    def test_cooldown(self) -> None:
        weights = Weights(last_rewrite="2026-01-01T00:00:00.000Z")
        weights.rewrite_history.append(
            WeightRewrite(timestamp="2026-01-01T00:00:00.000Z", change="c", reason="r", decision_count=15)
        )
        before = weights.model_copy(deep=True)

        result = rewrite_weights(_uniform(0.9), weights, _decisions(*["encounter"] * 20), ScriptedRandom())

        assert not result.success
        assert result.cooldown_active
        assert result.cooldown_remaining == 5
        assert result.changes == []
        assert result.journal_entry == ""
        assert weights == before

    def test_cooldown_expires(self) -> None:
        weights = Weights(last_rewrite="2026-01-01T00:00:00.000Z")
        weights.rewrite_history.append(
            WeightRewrite(timestamp="2026-01-01T00:00:00.000Z", change="c", reason="r", decision_count=10)
        )
        result = rewrite_weights(_uniform(0.9), weights, _decisions(*["encounter"] * 20), ScriptedRandom())

        assert result.success
        assert weights.encounter_multiplier == 0.8


class TestDecisionEngine:
    """Tests for the persisted decision loop."""

    def test_status(self, runtime: Runtime) -> None:
        status = runtime.live.status()
        assert status.lowest == ("abstraction", 0.9)
        assert status.shell == 0.9
        assert not status.survival_mode
        assert status.stable
        assert not status.molt_ready.ready
        assert not status.contact_available

    def test_wait_is_journaled(self, runtime: Runtime) -> None:
        result = runtime.live.execute(Decision(action=Action.WAIT, reason="Stillness.", priority=1))

        assert result.success
        journal = runtime.journal.read()
        assert journal.count(DECISION_HEADING) == 1
        assert "I chose: **wait**" in journal
        assert "> Stillness." in journal

    def test_unready_molt_fails_softly(self, runtime: Runtime) -> None:
        result = runtime.live.execute(Decision(action=Action.MOLT, reason="Try.", priority=2))

        assert not result.success
        assert result.narrative == ["Molt failed: fewer than 3 encounters since last molt"]
        assert runtime.journal.count_decisions() == 1

    def test_encounter_runs_chosen_type(self, runtime: Runtime) -> None:
        decision = Decision(
            action=Action.ENCOUNTER,
            reason="Curious.",
            priority=2.2,
            encounter_type=EncounterType.PUZZLE,
        )
        runtime.live.execute(decision)

        genome = runtime.genome_store.load()
        assert genome.history[0].event.startswith("ENCOUNTER: Puzzle.")
        assert "I chose: **encounter (puzzle)**" in runtime.journal.read()

    def test_contact_attempt(self, runtime: Runtime) -> None:
        result = runtime.live.execute(Decision(action=Action.CONTACT, reason="Reach.", priority=3))

        assert not result.success
        assert runtime.genome_store.load().contact.exchanges == 1

    def test_tenth_decision_writes_reflection(self, runtime: Runtime) -> None:
        runtime.journal.append(_decisions(*["encounter"] * 9))

        result = runtime.live.execute(Decision(action=Action.WAIT, reason="Still.", priority=1))

        assert "Reflection written." in result.narrative
        assert runtime.journal.count_decisions() == 10
        assert runtime.journal.count(REFLECTION_HEADING) == 1

    def test_run_cycles(self, runtime: Runtime) -> None:
        results = runtime.live.run_cycles(3)
        assert len(results) == 3
        assert runtime.journal.count_decisions() == 3

    def test_rewrite_twice_hits_cooldown(self, runtime: Runtime) -> None:
        first = runtime.live.rewrite()
        saved = runtime.weights_store.path.read_text(encoding="utf-8")

        second = runtime.live.rewrite()

        assert first.success
        assert not second.success
        assert second.cooldown_active
        assert second.cooldown_remaining == 10
        assert second.changes == []
        assert runtime.weights_store.path.read_text(encoding="utf-8") == saved
        assert runtime.journal.read().count("## Decision — Self-Modification") == 1


class TestJournalFailures:
    """A damaged journal never blocks or rolls back a genome operation."""

    @pytest.fixture
    def undecodable(self, runtime: Runtime) -> Runtime:
        runtime.journal.path.parent.mkdir(parents=True, exist_ok=True)
        runtime.journal.path.write_bytes(b"## Entry \xff\xfe legacy bytes\n")
        return runtime

    @pytest.fixture
    def directory_journal(self, runtime: Runtime) -> Runtime:
        runtime.journal.path.mkdir(parents=True)
        return runtime

    def test_encounter_with_undecodable_journal(self, undecodable: Runtime) -> None:
        result = undecodable.encounters.run("puzzle")

        genome = undecodable.genome_store.load()
        assert genome.mutations == result.mutations
        assert genome.history[0].event.startswith("ENCOUNTER: Puzzle.")

    def test_contact_with_undecodable_journal(self, undecodable: Runtime) -> None:
        undecodable.contact.attempt()
        undecodable.contact.speak("hello")

        genome = undecodable.genome_store.load()
        assert genome.contact.exchanges == 2
        assert genome.history[-1].event.startswith("CONTACT: The Other Mind speaks.")

    def test_cycle_with_undecodable_journal(self, undecodable: Runtime) -> None:
        undecodable.live.run_cycle()
        undecodable.live.execute(
            Decision(
                action=Action.ENCOUNTER,
                reason="Onward.",
                priority=2,
                encounter_type=EncounterType.ENTROPY,
            )
        )

        assert undecodable.genome_store.load().mutations
        raw = undecodable.journal.path.read_bytes()
        assert raw.count(DECISION_HEADING.encode()) == 2

    def test_operations_with_directory_journal(
        self, directory_journal: Runtime, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="lobster.store.journal"):
            directory_journal.encounters.run("entropy")
            directory_journal.contact.attempt()
            result = directory_journal.live.execute(
                Decision(
                    action=Action.ENCOUNTER,
                    reason="Onward.",
                    priority=2,
                    encounter_type=EncounterType.PUZZLE,
                )
            )

        assert result.success
        genome = directory_journal.genome_store.load()
        assert genome.contact.exchanges == 1
        assert sum(h.event.startswith("ENCOUNTER:") for h in genome.history) == 2
        assert "Journal unreadable" in caplog.text
        assert "Journal entry dropped" in caplog.text
