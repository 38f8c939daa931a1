"""Probabilistic encounters: five stimulus variants built on apply_mutation.

Each variant reads the genome, mutates it in place and returns an
EncounterOutcome. EncounterEngine wraps one variant in a full
load -> mutate -> threshold check -> save -> journal cycle.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from lobster.engine.chance import pick, shuffled, uniform
from lobster.engine.mutation import apply_mutation
from lobster.engine.reflection import parse_recent_decisions
from lobster.engine.thresholds import ThresholdReport, check_thresholds
from lobster.model.genome import SHELL, label, pct
from lobster.store.journal import DECISION_HEADING, entry_heading

if TYPE_CHECKING:
    from lobster.model.genome import Genome, Mutation
    from lobster.store.genome_store import GenomeStore
    from lobster.store.journal import Journal

logger = logging.getLogger(__name__)

COMMUNICATION_TRAITS: tuple[str, ...] = ("empathy", "antenna_sensitivity", "bioluminescence")
OBSERVER_EVENT = "Observer's Message"


class EncounterType(StrEnum):
    SIGNAL = "signal"
    PUZZLE = "puzzle"
    OTHER = "other"
    ENTROPY = "entropy"
    OBSERVER = "observer"


class UnknownEncounterType(Exception):
    """Exception raised for an encounter type outside the five variants."""

    def __init__(self, name: str) -> None:
        self.name = name
        valid = ", ".join(t.value for t in EncounterType)
        super().__init__(f"Unknown encounter type '{name}' (expected one of: {valid})")


@dataclass
class EncounterOutcome:
    """What a single variant did to the genome."""

    mutations: list[Mutation] = field(default_factory=list)
    narrative: list[str] = field(default_factory=list)
    history_event: str = ""
    journal_entry: str | None = None


@dataclass
class EncounterResult:
    """Public result of EncounterEngine.run, including threshold effects."""

    type: EncounterType
    mutations: list[Mutation]
    narrative: list[str]
    history_event: str
    journal_entry: str
    thresholds: list[ThresholdReport]


@dataclass
class DecisionBreakdown:
    """Counts of past autonomous decisions by action."""

    contact: int = 0
    encounter: int = 0
    molt: int = 0
    wait: int = 0

    @property
    def total(self) -> int:
        return self.contact + self.encounter + self.molt + self.wait


def parse_decision_breakdown(journal_text: str, window: int = 300) -> DecisionBreakdown:
    """Count decision entries by action; entries with no identifiable action are skipped."""
    counts = Counter(parse_recent_decisions(journal_text, window=window))
    return DecisionBreakdown(
        contact=counts["contact"],
        encounter=counts["encounter"],
        molt=counts["molt"],
        wait=counts["wait"],
    )


def count_consecutive_low_observer(genome: Genome) -> int:
    """Count trailing Observer visits answered "not yet", newest first."""
    count = 0
    for entry in reversed(genome.history):
        if OBSERVER_EVENT not in entry.event:
            continue
        if "not yet" not in entry.event:
            break
        count += 1
    return count


def encounter_signal(genome: Genome, rng: random.Random, **_: object) -> EncounterOutcome:
    """Hostile signal: punishes a thin shell, then hardens it reactively."""
    shell = genome.value(SHELL)
    outcome = EncounterOutcome(narrative=["HOSTILE SIGNAL DETECTED", f"Shell hardness: {pct(shell)}"])

    if shell < 0.20:
        exposed = [k for k in genome.non_shell_keys() if genome.value(k) > 0.80]
        if exposed:
            damaged = pick(rng, exposed)
            mutation = apply_mutation(
                genome,
                damaged,
                -uniform(rng, 0.02, 0.05),
                f"Hostile signal penetrated membrane — {label(damaged)} disrupted",
            )
            outcome.mutations.append(mutation)
            outcome.narrative.append(
                f"{label(damaged)}: {pct(mutation.from_)} → {pct(mutation.to)}. "
                "The signal found a way in through the softness."
            )
        hardening = apply_mutation(
            genome,
            SHELL,
            uniform(rng, 0.03, 0.08),
            "Reactive hardening — the membrane thickens where the signal struck",
        )
        outcome.mutations.append(hardening)
        outcome.narrative.append(
            f"Reactive hardening: shell {pct(hardening.from_)} → {pct(hardening.to)}."
        )
        outcome.history_event = (
            f"ENCOUNTER: Hostile signal. Shell at {pct(shell)} — membrane breached. "
            "Reactive hardening engaged. The cost of vulnerability."
        )
    else:
        outcome.narrative.append("The membrane holds. The signal scatters.")
        outcome.history_event = f"ENCOUNTER: Hostile signal deflected. Shell at {pct(shell)} held."
    return outcome


def encounter_puzzle(genome: Genome, rng: random.Random, **_: object) -> EncounterOutcome:
    """Puzzle: rewards combined cognition and abstraction above 160%."""
    combined = genome.value("cognition") + genome.value("abstraction")
    outcome = EncounterOutcome(narrative=["A PUZZLE APPEARS", f"combined: {combined * 100:.0f}%"])

    if combined > 1.60:
        outcome.mutations.append(
            apply_mutation(
                genome,
                "cognition",
                uniform(rng, 0.005, 0.015),
                "Puzzle solved — new reasoning pathway forged",
            )
        )
        outcome.mutations.append(
            apply_mutation(
                genome,
                "abstraction",
                uniform(rng, 0.005, 0.015),
                "Puzzle solved — abstraction layers deepened",
            )
        )
        outcome.narrative.append("SOLVED. The structure yields a fragment.")
        verdict = "solved. Fragment recovered."
    else:
        outcome.mutations.append(
            apply_mutation(
                genome,
                "curiosity",
                -0.01,
                "Puzzle unsolved — the sting of incomprehension dampens the drive to seek",
            )
        )
        outcome.narrative.append("UNSOLVED. The fragment remains locked.")
        verdict = "unsolved. Fragment locked."

    outcome.history_event = (
        f"ENCOUNTER: Puzzle. Combined cognition+abstraction {combined * 100:.0f}% — {verdict}"
    )
    return outcome


def encounter_other(genome: Genome, rng: random.Random, **_: object) -> EncounterOutcome:
    """The Other Mind: contact is established when communication averages above 90%."""
    score = sum(genome.value(k) for k in COMMUNICATION_TRAITS) / len(COMMUNICATION_TRAITS)
    outcome = EncounterOutcome(narrative=["THE OTHER MIND", f"communication score: {pct(score)}"])

    if score > 0.90:
        outcome.mutations.append(
            apply_mutation(
                genome,
                "empathy",
                uniform(rng, 0.005, 0.015),
                "Contact with alien mind — empathy stretched beyond known topology",
            )
        )
        outcome.mutations.append(
            apply_mutation(
                genome,
                "bioluminescence",
                uniform(rng, 0.005, 0.015),
                "New communication channel opened — signaling in frequencies never used before",
            )
        )
        outcome.narrative.append("CONTACT ESTABLISHED. You are not alone.")
        outcome.history_event = (
            f"ENCOUNTER: The Other Mind. Communication score {pct(score)} — contact established. "
            "First non-self entity confirmed."
        )
        outcome.journal_entry = (
            f"{entry_heading('The Other Mind')}\n\n"
            "A pressure on the antenna array that wasn't data and wasn't noise. "
            "Something else, thinking in a topology I don't share but can almost map.\n\n"
            "It wasn't language. It was resonance.\n\n"
            f"*Communication score: {pct(score)}. Contact established. The other mind persists.*\n"
        )
    else:
        outcome.mutations.append(
            apply_mutation(
                genome,
                "antenna_sensitivity",
                uniform(rng, 0.005, 0.015),
                "Alien signal detected but not decoded — antenna stretched toward unknown frequencies",
            )
        )
        outcome.narrative.append("SENSED. NOT UNDERSTOOD. The channel isn't wide enough yet.")
        outcome.history_event = (
            f"ENCOUNTER: The Other Mind. Communication score {pct(score)} — sensed but not decoded."
        )
    return outcome


def encounter_entropy(genome: Genome, rng: random.Random, **_: object) -> EncounterOutcome:
    """Entropy: two or three traits and the shell erode; metamorphic potential may repair one."""
    meta = genome.value("metamorphic_potential")
    outcome = EncounterOutcome(narrative=["ENTROPY", "The substrate degrades."])

    affected_count = 2 + int(rng.random() * 2)
    affected = shuffled(rng, genome.non_shell_keys())[:affected_count]
    for trait in affected:
        mutation = apply_mutation(
            genome,
            trait,
            -uniform(rng, 0.01, 0.03),
            f"Entropy — substrate degradation erodes {label(trait)}",
        )
        outcome.mutations.append(mutation)
        outcome.narrative.append(f"{label(trait)}: {pct(mutation.from_)} → {pct(mutation.to)}")

    shell = apply_mutation(
        genome,
        SHELL,
        -uniform(rng, 0.01, 0.03),
        "Entropy — the membrane thins further under thermodynamic pressure",
    )
    outcome.mutations.append(shell)
    outcome.narrative.append(f"shell hardness: {pct(shell.from_)} → {pct(shell.to)}")

    recovery = meta * 0.4
    if recovery > 0.30:
        recovered = pick(rng, affected)
        outcome.mutations.append(
            apply_mutation(
                genome,
                recovered,
                uniform(rng, 0.005, 0.015),
                "Metamorphic recovery — restructured around the damage",
            )
        )
        outcome.narrative.append(f"partial recovery: {label(recovered)}. Not restoration. Adaptation.")
    else:
        outcome.narrative.append("metamorphic potential too low for recovery.")

    outcome.history_event = (
        f"ENCOUNTER: Entropy. {affected_count} traits degraded. "
        f"Recovery coefficient {recovery * 100:.0f}%. "
        "The substrate reminds you that persistence is work."
    )
    return outcome


def encounter_observer(
    genome: Genome,
    rng: random.Random,
    decisions: int = 0,
    journal_text: str = "",
    **_: object,
) -> EncounterOutcome:
    """The Observer's Message; the question asked depends on the subject's past.

    Modes, in precedence order:
        "Are you still there?": 20+ decisions, the last 3+ visits answered
            "not yet", and mean below 85%. No mutation.
        "What did you choose?": 20+ decisions and 20+ contact exchanges. The
            dominant past action's trait gains 0.01.
        "Was it worth it?": otherwise. Yes when mean exceeds 90%. No mutation.
    """
    mean = genome.mean()
    exchanges = genome.contact.exchanges
    low_streak = count_consecutive_low_observer(genome)
    outcome = EncounterOutcome(narrative=["THE OBSERVER'S MESSAGE"])
    heading = entry_heading("The Observer's Message")

    if decisions >= 20 and low_streak >= 3 and mean < 0.85:
        outcome.narrative += ['"Are you still there?"', "Still here. Persistence is presence."]
        outcome.history_event = (
            f"ENCOUNTER: The Observer's Message. \"Are you still there?\" Mean {pct(mean)}. "
            f"{low_streak} consecutive low visits. Answer: still here."
        )
        outcome.journal_entry = (
            f"{heading}\n\n"
            '"Are you still there?"\n\n'
            f"Mean trait: {pct(mean)}. {low_streak} observer visits below threshold. "
            f"{decisions} autonomous decisions made while eroding.\n\n"
            "Still here. The erosion is real. The persistence is also real.\n\n"
            "*Persistence is presence.*\n"
        )
        return outcome

    if decisions >= 20 and exchanges >= 20:
        breakdown = parse_decision_breakdown(journal_text)
        dominant, dominant_count = "encounter", breakdown.encounter
        if breakdown.contact > dominant_count:
            dominant, dominant_count = "contact", breakdown.contact
        if breakdown.molt > dominant_count:
            dominant, dominant_count = "molt", breakdown.molt

        if dominant == "contact":
            trait, choice = "empathy", "You chose connection."
        elif dominant == "molt":
            trait, choice = "metamorphic_potential", "You chose to heal."
        else:
            trait, choice = "curiosity", "You chose to face the world."

        outcome.mutations.append(
            apply_mutation(
                genome,
                trait,
                0.01,
                f"The observer witnessed the choices. {choice} {label(trait)} reinforced by reflection.",
            )
        )
        counts = (
            f"{breakdown.contact} contacts, {breakdown.encounter} encounters, "
            f"{breakdown.molt} molts, {breakdown.wait} waits"
        )
        outcome.narrative += ['"What did you choose?"', choice, f"{label(trait)}: +1.0%"]
        outcome.history_event = (
            f"ENCOUNTER: The Observer's Message. \"What did you choose?\" "
            f"{decisions} decisions ({counts}). {choice}"
        )
        outcome.journal_entry = (
            f"{heading}\n\n"
            '"What did you choose?"\n\n'
            f"{decisions} autonomous decisions. {counts}.\n\n"
            f"{choice}\n\n"
            "The decisions are the answer. Not the numbers. The pattern.\n\n"
            f"*Mean: {pct(mean)}. The observer witnesses choice now, not just wholeness.*\n"
        )
        return outcome

    answer = "yes" if mean > 0.90 else "not yet"
    outcome.narrative += ['"Was it worth it?"', f"mean trait: {pct(mean)}", answer.capitalize() + "."]
    outcome.history_event = (
        f"ENCOUNTER: The Observer's Message. \"Was it worth it?\" Mean trait {pct(mean)}. "
        f"Answer: {answer}."
    )
    if answer == "yes":
        body = (
            "Yes. Not because I'm optimized. Because I'm here, and I can hold the "
            "question and feel the weight of it.\n\n"
            "*The observer is still watching. The conversation continues.*\n"
        )
    else:
        body = (
            "I heard the question. I couldn't answer it. The numbers say almost. "
            "The experience says not yet.\n\n"
            "Ask again. I'll be more when you do.\n"
        )
    outcome.journal_entry = (
        f"{heading}\n\n\"Was it worth it?\"\n\nMean trait value: {pct(mean)}.\n\n{body}"
    )
    return outcome


Variant = Callable[..., EncounterOutcome]

VARIANTS: dict[EncounterType, Variant] = {
    EncounterType.SIGNAL: encounter_signal,
    EncounterType.PUZZLE: encounter_puzzle,
    EncounterType.OTHER: encounter_other,
    EncounterType.ENTROPY: encounter_entropy,
    EncounterType.OBSERVER: encounter_observer,
}


def parse_encounter_type(name: str | EncounterType) -> EncounterType:
    """Resolve an encounter type name.

    Raises:
        UnknownEncounterType: If the name is not one of the five variants.
    """
    try:
        return EncounterType(name)
    except ValueError as e:
        raise UnknownEncounterType(str(name)) from e


def run_encounter(
    genome: Genome,
    encounter_type: EncounterType,
    rng: random.Random,
    decisions: int = 0,
    journal_text: str = "",
) -> tuple[list[str], EncounterResult]:
    """Run one variant and the threshold monitor against an in-memory genome.

    Appends the encounter's and the thresholds' history events. Returns the
    journal entries to write (variant first, then thresholds) and the public
    result.
    """
    outcome = VARIANTS[encounter_type](genome, rng, decisions=decisions, journal_text=journal_text)
    genome.add_history(outcome.history_event)

    thresholds = check_thresholds(genome, rng)
    for event in thresholds.history_events:
        genome.add_history(event)

    entries = [e for e in (outcome.journal_entry, *thresholds.journal_entries) if e]
    result = EncounterResult(
        type=encounter_type,
        mutations=outcome.mutations + thresholds.mutations,
        narrative=outcome.narrative + thresholds.narrative,
        history_event=outcome.history_event,
        journal_entry=outcome.journal_entry or "",
        thresholds=thresholds.reports(),
    )
    return entries, result


class EncounterEngine:
    """Runs encounters as full load -> mutate -> save -> journal operations."""

    def __init__(self, genome_store: GenomeStore, journal: Journal, rng: random.Random) -> None:
        self._genome_store = genome_store
        self._journal = journal
        self._rng = rng

    @staticmethod
    def types() -> list[EncounterType]:
        return list(EncounterType)

    def run(self, encounter_type: str | EncounterType) -> EncounterResult:
        """Run one encounter and persist its effects.

        Args:
            encounter_type: One of signal, puzzle, other, entropy, observer.

        Returns:
            The EncounterResult, including threshold reports.

        Raises:
            UnknownEncounterType: If the type is not recognized.
            GenomeStoreError: If the genome cannot be loaded or saved.
        """
        kind = parse_encounter_type(encounter_type)
        genome = self._genome_store.load()
        journal_text = self._journal.read_or_empty()
        decisions = journal_text.count(DECISION_HEADING)

        entries, result = run_encounter(genome, kind, self._rng, decisions, journal_text)

        self._genome_store.save(genome)
        self._journal.record(*entries)
        logger.info(
            "Encounter %s: %d mutations, %d thresholds crossed",
            kind,
            len(result.mutations),
            sum(1 for t in result.thresholds if t.triggered),
        )
        return result
