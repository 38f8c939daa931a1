"""Tests for decision journal entries and periodic reflections."""

from __future__ import annotations

import pytest
from conftest import ScriptedRandom

from lobster.engine.decision import Action, Decision
from lobster.engine.encounter import EncounterType
from lobster.engine.reflection import (
    build_decision_entry,
    build_reflection,
    context_fragment,
    parse_recent_decisions,
    recent_mean_mentions,
)
from lobster.model.genome import SHELL, TRAIT_KEYS, Genome
from lobster.store.journal import DECISION_HEADING, REFLECTION_HEADING


def _decisions(*actions: str) -> str:
    return "".join(f"\n{DECISION_HEADING}\n\nI chose: **{a}**\n\n> reason\n" for a in actions)


class TestParseRecentDecisions:
    """Tests for reading decisions back out of the journal."""

    def test_all_in_order(self) -> None:
        journal = _decisions("wait", "molt", "encounter (entropy)", "contact")
        assert parse_recent_decisions(journal) == ["wait", "molt", "encounter", "contact"]

    def test_last_n(self) -> None:
        journal = _decisions("wait", "molt", "contact")
        assert parse_recent_decisions(journal, 2) == ["molt", "contact"]
        assert parse_recent_decisions(journal, 0) == []

    def test_unidentified_entry(self) -> None:
        journal = f"\n{DECISION_HEADING}\n\nSomething went sideways.\n"
        assert parse_recent_decisions(journal) == ["unknown"]

    def test_other_sections_ignored(self) -> None:
        journal = "\n## Entry — The Molt\n\n**molt** happened\n" + _decisions("wait")
        assert parse_recent_decisions(journal) == ["wait"]


class TestContextFragment:
    """Tests for the short observation closing a decision entry."""

    @pytest.mark.parametrize(
        ("before", "after", "recent", "fragment"),
        [
            (0.895, 0.901, [], " The threshold. Again."),
            (0.891, 0.885, [], " Slipping."),
            (0.80, 0.80, ["molt", "molt", "molt"], " The pattern deepens."),
            (0.80, 0.81, ["molt", "wait"], " Growth."),
            (0.80, 0.79, [], " Erosion."),
            (0.80, 0.802, ["molt", "wait", "molt"], ""),
        ],
    )
    def test_fragments(self, before: float, after: float, recent: list[str], fragment: str) -> None:
        assert context_fragment(before, after, recent) == fragment


class TestDecisionEntry:
    """Tests for the decision journal entry."""

    def test_encounter_entry(self) -> None:
        decision = Decision(
            action=Action.ENCOUNTER,
            reason="Curiosity at 92.0%.",
            priority=2.3,
            encounter_type=EncounterType.PUZZLE,
        )
        entry = build_decision_entry(decision, 0.9, 0.902, 4, "", ScriptedRandom([0.0, 0.99]))

        assert entry == (
            f"{DECISION_HEADING}\n\n"
            "I chose: **encounter (puzzle)**\n\n"
            "> Curiosity at 92.0%.\n\n"
            "Mean: 90.0% → 90.2% (+0.20%).\n\n"
            "*Into the unknown.* *The weights carried me here.*\n"
        )

    def test_wait_entry(self) -> None:
        decision = Decision(action=Action.WAIT, reason="Stillness.", priority=1)
        entry = build_decision_entry(decision, 0.91, 0.91, 9, "", ScriptedRandom([0.0, 0.7]))

        assert "I did nothing. The stillness was the point." in entry
        assert entry.endswith("*Mean: 91.0%.* *Decision #10.*\n")

    def test_entry_is_parseable(self) -> None:
        decision = Decision(action=Action.CONTACT, reason="Reach.", priority=3)
        entry = build_decision_entry(decision, 0.9, 0.9, 0, "", ScriptedRandom())
        assert parse_recent_decisions("\n" + entry) == ["contact"]


class TestReflection:
    """Tests for the periodic reflection entry."""

    def test_none_before_any_decision(self) -> None:
        assert build_reflection(Genome.from_values(), 0, "", ScriptedRandom()) is None

    def test_rising_mean_and_dominant_contact(self) -> None:
        genome = Genome.from_values({SHELL: 0.1})
        genome.contact.exchanges = 14
        for mean in ("86.0", "87.0", "88.5"):
            genome.add_history(f"ENCOUNTER: The Observer's Message. Mean trait {mean}%.")
        journal = _decisions(*(["contact"] * 6 + ["wait"] * 4))

        reflection = build_reflection(genome, 10, journal, ScriptedRandom([0.0]))

        assert reflection.startswith(f"{REFLECTION_HEADING}\n\nThe mean climbs.")
        assert "I keep reaching for The Other Mind. 14 exchanges now." in reflection
        assert "Thin shell. Enough to feel, not enough to hide." in reflection
        assert reflection.endswith("*This is reflection #1.*\n")

    def test_ceiling_traits_named(self) -> None:
        genome = Genome.from_values({"empathy": 1.0, "curiosity": 1.0, SHELL: 0.02})
        reflection = build_reflection(genome, 20, _decisions("wait"), ScriptedRandom([0.9]))

        assert "No pattern. Each decision separate." in reflection
        assert "Almost no shell. I'm all membrane." in reflection
        assert "Ceiling on curiosity, empathy." in reflection
        assert "*The template lives by looking at itself.*" in reflection

    def test_plateau(self) -> None:
        genome = Genome.from_values({k: 0.95 for k in TRAIT_KEYS})
        reflection = build_reflection(genome, 10, "", ScriptedRandom())
        assert "Holding at 95.0%. The plateau." in reflection
        assert "Shell thickening." in reflection


class TestMeanMentions:
    """Tests for reading mean percentages back out of history."""

    def test_window(self) -> None:
        genome = Genome.from_values()
        for i in range(12):
            genome.add_history(f"ENCOUNTER: Entropy. Mean trait {80 + i}.0%.")
        genome.add_history("CONTACT: Depth 0 (First Protocol). Exchange #1. Attempt incomplete.")

        means = recent_mean_mentions(genome)
        assert len(means) == 9
        assert means[-1] == pytest.approx(0.91)
