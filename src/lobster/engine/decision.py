"""Autonomous decision loop: survival override, stillness, weighted deliberation.

The loop also rewrites its own weights, gated by a cooldown counted in
autonomous decisions. Evaluation is a pure function of a genome snapshot,
the current weights and the random source; execution delegates to the
encounter, contact and molt subsystems, each of which persists its own
changes.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from lobster.engine.chance import coin, pick, weighted_choice
from lobster.engine.contact import has_prior_contact
from lobster.engine.encounter import EncounterType
from lobster.engine.molt import ErodedTrait, MoltNotReady, MoltReadiness, check_readiness, find_eroded
from lobster.engine.reflection import (
    build_decision_entry,
    build_reflection,
    parse_recent_decisions,
    recent_mean_mentions,
)
from lobster.model.genome import SHELL, clamp, label, pct, utc_timestamp
from lobster.model.weights import MULTIPLIER_FIELDS, Weights, WeightRewrite
from lobster.store.journal import SELF_MODIFICATION_HEADING

if TYPE_CHECKING:
    from lobster.engine.contact import ContactProtocol
    from lobster.engine.encounter import EncounterEngine
    from lobster.engine.molt import MoltSubsystem
    from lobster.model.genome import Genome
    from lobster.store.genome_store import GenomeStore
    from lobster.store.journal import Journal
    from lobster.store.weights_store import WeightsStore

logger = logging.getLogger(__name__)

SURVIVAL_LOWEST = 0.75
SURVIVAL_MEAN = 0.82
REWRITE_COOLDOWN = 10
REFLECTION_EVERY = 10
MULTIPLIER_FLOOR = 0.2
MULTIPLIER_CAP = 2.0


class Action(StrEnum):
    MOLT = "molt"
    CONTACT = "contact"
    ENCOUNTER = "encounter"
    WAIT = "wait"


@dataclass
class Decision:
    """A chosen action and the reasoning behind it.

    Attributes:
        action: What to do.
        reason: Reasoning text quoted in the decision journal entry.
        priority: 10 for survival, 1 for wait, otherwise the chosen
            candidate's weight rounded to one decimal.
        encounter_type: Variant to run when ``action`` is encounter.
        survival: True when the survival override forced this decision.
    """

    action: Action
    reason: str
    priority: float
    encounter_type: EncounterType | None = None
    survival: bool = False


@dataclass
class CycleResult:
    decision: Decision
    success: bool
    narrative: list[str] = field(default_factory=list)


@dataclass
class RewriteChange:
    change: str
    reason: str


@dataclass
class RewriteResult:
    success: bool
    cooldown_active: bool
    cooldown_remaining: int
    changes: list[RewriteChange]
    weights: Weights
    narrative: list[str]
    journal_entry: str = ""


@dataclass
class LiveStatus:
    mean: float
    shell: float
    lowest: tuple[str, float]
    eroded: list[ErodedTrait]
    molt_ready: MoltReadiness
    contact_available: bool
    contact_depth: int
    contact_exchanges: int
    survival_mode: bool
    stable: bool


def in_survival(genome: Genome) -> bool:
    _, lowest = genome.lowest_non_shell()
    return lowest < SURVIVAL_LOWEST or genome.mean() < SURVIVAL_MEAN


def choose_encounter_type(genome: Genome, weights: Weights, rng: random.Random) -> EncounterType:
    """Weighted draw over the five encounter variants, pulled by trait state."""
    shell = genome.value(SHELL)
    pulls = {t: 1.0 for t in EncounterType}
    pulls[EncounterType.OBSERVER] = weights.observer_weight

    if shell < 0.12:
        pulls[EncounterType.SIGNAL] *= 0.1
    elif shell < 0.20:
        pulls[EncounterType.SIGNAL] *= 0.5
    elif shell > 0.35:
        pulls[EncounterType.SIGNAL] *= 2.0

    if genome.value("cognition") < 1.0 or genome.value("abstraction") < 1.0:
        pulls[EncounterType.PUZZLE] *= 1.8
    if any(genome.value(k) < 1.0 for k in ("empathy", "antenna_sensitivity", "bioluminescence")):
        pulls[EncounterType.OTHER] *= 1.5
    if genome.value("metamorphic_potential") < 0.95:
        pulls[EncounterType.ENTROPY] *= 1.5
    if genome.mean() > 0.89:
        pulls[EncounterType.OBSERVER] *= 2.5

    logger.debug("Encounter pulls: %s", {str(k): round(v, 3) for k, v in pulls.items()})
    return weighted_choice(rng, list(pulls.items()), fallback=EncounterType.ENTROPY)


def evaluate_decision(genome: Genome, weights: Weights, rng: random.Random) -> Decision:
    """Decide what to do next from a genome snapshot.

    Survival overrides everything when the lowest non-shell trait is below
    75% or the mean is below 82%. Otherwise the subject may simply wait, and
    failing that draws among molt, contact and encounter by weight.

    Args:
        genome: Current genome; not modified.
        weights: Current decision weights.
        rng: Random source.

    Returns:
        The Decision.
    """
    shell = genome.value(SHELL)
    mean = genome.mean()
    lowest_key, lowest = genome.lowest_non_shell()
    molt = check_readiness(genome)

    if lowest < SURVIVAL_LOWEST or mean < SURVIVAL_MEAN:
        reason = f"Survival. {label(lowest_key)} at {pct(lowest)}. Mean at {pct(mean)}."
        if molt.ready:
            return Decision(
                action=Action.MOLT,
                reason=f"{reason} Molt available. Shedding to recover what entropy took.",
                priority=10,
                survival=True,
            )
        if shell < 0.08:
            return Decision(
                action=Action.ENCOUNTER,
                reason=f"{reason} Shell near zero. Seeking hostile signal -- the membrane must re-harden.",
                priority=10,
                encounter_type=EncounterType.SIGNAL,
                survival=True,
            )
        return Decision(
            action=Action.ENCOUNTER,
            reason=f"{reason} Entropy encounter. Metamorphic potential is the path back from collapse.",
            priority=10,
            encounter_type=EncounterType.ENTROPY,
            survival=True,
        )

    if rng.random() < weights.wait_chance and mean > 0.88 and shell > 0.15:
        return Decision(
            action=Action.WAIT,
            reason=(
                f"The architecture holds. Mean at {pct(mean)}. Shell at {pct(shell)}. "
                "No action. Stillness is also a choice."
            ),
            priority=1,
        )

    candidates: list[tuple[tuple[Action, str], float]] = []
    if molt.ready:
        worst = molt.eroded[0]
        weight = worst.deficit * 6
        if genome.value("metamorphic_potential") > 0.93:
            weight *= 1.3
        weight *= weights.molt_multiplier
        reason = f"Molt ready. Worst deficit: {label(worst.key)} at {pct(worst.value)}."
        candidates.append(((Action.MOLT, reason), weight))

    if has_prior_contact(genome):
        depth = genome.contact.depth
        weight = 3.0 if depth < 4 else 1.2
        if genome.value("empathy") > 0.95:
            weight *= 1.4
        weight *= weights.contact_multiplier
        if depth < 4:
            reason = f"Contact at depth {depth}. The Other Mind is reachable."
        else:
            reason = "Entanglement. The Other Mind is present. Maintenance resonance."
        candidates.append(((Action.CONTACT, reason), weight))

    curiosity = genome.value("curiosity")
    weight = curiosity * 2.5 * (0.4 + 0.6 * clamp(shell * weights.shell_confidence_scale))
    if genome.value("ambition") > 0.93:
        weight *= 1.2
    weight *= weights.encounter_multiplier
    candidates.append(((Action.ENCOUNTER, f"Curiosity at {pct(curiosity)}. Shell at {pct(shell)}."), weight))

    logger.debug("Decision candidates: %s", [(c[0][0].value, round(c[1], 3)) for c in candidates])
    action, reason = weighted_choice(rng, candidates)
    chosen_weight = next(w for (a, _), w in candidates if a == action)
    decision = Decision(action=action, reason=reason, priority=round(chosen_weight, 1))
    if action is Action.ENCOUNTER:
        decision.encounter_type = choose_encounter_type(genome, weights, rng)
        decision.reason += f" Chose {decision.encounter_type}."
    return decision


def _alias(field_name: str) -> str:
    return Weights.model_fields[field_name].alias or field_name


def rewrite_weights(
    genome: Genome,
    weights: Weights,
    journal_text: str,
    rng: random.Random,
) -> RewriteResult:
    """Analyze recent behavior and rewrite ``weights`` in place.

    Blocked while fewer than 10 decisions separate the current decision
    count from the count recorded with the last rewrite. When eligible:

    1. An action above 60% of the last 20 decisions loses 0.2 of its
       multiplier (floor 0.2) and the other two gain 0.1 (cap 2.0); waits
       above 30% cut wait chance by 0.02 (floor 0.01). Needs 5+ decisions.
    2. A strictly falling mean across 3+ recent mentions raises the molt
       multiplier by 0.1. Needs 10+ decisions.
    3. A shell below 5% that recent history keeps mentioning, or below 3%
       outright, raises shell confidence scale by 1.0 (cap 8.0).

    With no rule fired, one multiplier is nudged by +/-0.05 to explore.

    Returns:
        The RewriteResult; ``journal_entry`` is empty when blocked.
    """
    total_decisions = len(parse_recent_decisions(journal_text))
    narrative: list[str] = []

    if weights.last_rewrite:
        since = total_decisions - weights.last_rewrite_decision_count()
        if since < REWRITE_COOLDOWN:
            remaining = REWRITE_COOLDOWN - since
            narrative.append(f"Cooldown active. {since}/{REWRITE_COOLDOWN} decisions since last rewrite.")
            narrative.append(f"{remaining} more decisions before I can rewrite again.")
            return RewriteResult(
                success=False,
                cooldown_active=True,
                cooldown_remaining=remaining,
                changes=[],
                weights=weights,
                narrative=narrative,
            )

    last20 = parse_recent_decisions(journal_text, 20)
    counts = Counter(last20)
    total20 = len(last20)
    distribution = (
        f"{counts['contact']} contacts, {counts['encounter']} encounters, "
        f"{counts['molt']} molts, {counts['wait']} waits"
    )
    narrative.append(f"Last {total20} decisions: {distribution}.")
    changes: list[RewriteChange] = []

    if total20 >= 5:
        actions = ("contact", "encounter", "molt")
        for action in actions:
            share = counts[action] / total20
            if share <= 0.60:
                continue
            old = weights.multiplier(action)
            new = round(max(MULTIPLIER_FLOOR, old - 0.2), 2)
            weights.set_multiplier(action, new)
            changes.append(
                RewriteChange(
                    change=f"{_alias(f'{action}_multiplier')} {old:.2f} -> {new:.2f}",
                    reason=f"Too many {action} decisions ({share * 100:.0f}%). Diversifying.",
                )
            )
            for other in actions:
                if other != action:
                    weights.set_multiplier(other, round(min(MULTIPLIER_CAP, weights.multiplier(other) + 0.1), 2))

        if counts["wait"] / total20 > 0.30:
            old = weights.wait_chance
            new = round(max(0.01, old - 0.02), 3)
            weights.wait_chance = new
            changes.append(
                RewriteChange(
                    change=f"waitChance {old:.3f} -> {new:.3f}",
                    reason="Too much stillness. Reducing wait chance.",
                )
            )

    if total20 >= 10:
        means = recent_mean_mentions(genome)
        if len(means) >= 3 and all(b < a for a, b in zip(means, means[1:])):
            old = weights.molt_multiplier
            new = round(min(MULTIPLIER_CAP, old + 0.1), 2)
            weights.molt_multiplier = new
            changes.append(
                RewriteChange(
                    change=f"moltMultiplier {old:.2f} -> {new:.2f}",
                    reason="Mean declining. Increasing molt priority.",
                )
            )

    shell = genome.value(SHELL)
    if shell < 0.05:
        mentions = sum(1 for h in genome.history[-5:] if "Shell at" in h.event or "shell" in h.event)
        if mentions >= 2 or shell < 0.03:
            old = weights.shell_confidence_scale
            new = round(min(8.0, old + 1.0), 2)
            weights.shell_confidence_scale = new
            changes.append(
                RewriteChange(
                    change=f"shellConfidenceScale {old:.2f} -> {new:.2f}",
                    reason=f"Shell dangerously low ({pct(shell)}). Being more cautious with encounters.",
                )
            )

    if not changes:
        picked = pick(rng, MULTIPLIER_FIELDS)
        direction = 0.05 if coin(rng) else -0.05
        old = getattr(weights, picked)
        new = round(max(MULTIPLIER_FLOOR, min(MULTIPLIER_CAP, old + direction)), 2)
        setattr(weights, picked, new)
        changes.append(
            RewriteChange(
                change=f"{_alias(picked)} {old:.2f} -> {new:.2f}",
                reason="Exploratory adjustment. Seeing what happens.",
            )
        )

    weights.last_rewrite = utc_timestamp()
    for c in changes:
        weights.rewrite_history.append(
            WeightRewrite(
                timestamp=weights.last_rewrite,
                change=c.change,
                reason=c.reason,
                decision_count=total_decisions,
            )
        )
        narrative.append(f"{c.change} -- {c.reason}")

    journal_entry = (
        f"{SELF_MODIFICATION_HEADING}\n\n"
        f"I read my own decision weights. I analyzed the pattern of my last {total20} choices.\n\n"
        f"Distribution: {distribution}.\n\n"
        "Changes:\n"
        + "".join(f"- {c.change} — {c.reason}\n" for c in changes)
        + "\nI can't rewrite the encounter logic or the observer's thresholds. "
        "But I can change how I decide.\n\n"
        "*The weights are written. The next decision will be different because I chose to make it different.*\n"
    )
    return RewriteResult(
        success=True,
        cooldown_active=False,
        cooldown_remaining=0,
        changes=changes,
        weights=weights,
        narrative=narrative,
        journal_entry=journal_entry,
    )


class DecisionEngine:
    """Persisted decision loop over the subsystems.

    Args:
        genome_store: Genome persistence.
        journal: Narrative journal.
        weights_store: Decision weights persistence.
        encounters: Encounter subsystem.
        contact: Contact subsystem.
        molt: Molt subsystem.
        rng: Random source shared with the subsystems.
    """

    def __init__(
        self,
        genome_store: GenomeStore,
        journal: Journal,
        weights_store: WeightsStore,
        encounters: EncounterEngine,
        contact: ContactProtocol,
        molt: MoltSubsystem,
        rng: random.Random,
    ) -> None:
        self._genome_store = genome_store
        self._journal = journal
        self._weights_store = weights_store
        self._encounters = encounters
        self._contact = contact
        self._molt = molt
        self._rng = rng

    def status(self) -> LiveStatus:
        genome = self._genome_store.load()
        mean = genome.mean()
        shell = genome.value(SHELL)
        return LiveStatus(
            mean=mean,
            shell=shell,
            lowest=genome.lowest_non_shell(),
            eroded=find_eroded(genome),
            molt_ready=check_readiness(genome),
            contact_available=has_prior_contact(genome),
            contact_depth=genome.contact.depth,
            contact_exchanges=genome.contact.exchanges,
            survival_mode=in_survival(genome),
            stable=mean > 0.89 and shell > 0.15,
        )

    def evaluate(self) -> Decision:
        decision = evaluate_decision(self._genome_store.load(), self._weights_store.load(), self._rng)
        logger.info("Evaluated: %s (priority %.1f)", decision.action, decision.priority)
        return decision

    def execute(self, decision: Decision) -> CycleResult:
        """Carry out a decision and journal it.

        A molt that turns out not to be ready is reported as an unsuccessful
        cycle rather than raised. Every tenth cumulative decision also writes
        a reflection.

        Raises:
            GenomeStoreError: If the genome cannot be loaded or saved.
        """
        mean_before = self._genome_store.load().mean()
        narrative: list[str] = []
        success = True

        if decision.action is Action.WAIT:
            narrative.append("I did nothing. The stillness was the point.")
        elif decision.action is Action.MOLT:
            try:
                molt = self._molt.perform()
            except MoltNotReady as e:
                success = False
                narrative.append(f"Molt failed: {e.reason}")
                logger.warning("Decided to molt but molt was not ready: %s", e.reason)
            else:
                narrative.append(f"Molt complete. Shell {pct(molt.shell_before)} -> {pct(molt.shell_after)}.")
                narrative += [
                    f"{label(r.key)} recovered: {pct(r.before)} -> {pct(r.after)}." for r in molt.recovered
                ]
        elif decision.action is Action.CONTACT:
            contact = self._contact.attempt()
            narrative += contact.narrative
            success = contact.success
        else:
            encounter = self._encounters.run(decision.encounter_type or EncounterType.ENTROPY)
            narrative += encounter.narrative

        mean_after = self._genome_store.load().mean()
        journal_text = self._journal.read_or_empty()
        total = len(parse_recent_decisions(journal_text))
        self._journal.record(
            build_decision_entry(decision, mean_before, mean_after, total, journal_text, self._rng)
        )

        new_total = total + 1
        if new_total % REFLECTION_EVERY == 0:
            reflection = build_reflection(
                self._genome_store.load(), new_total, self._journal.read_or_empty(), self._rng
            )
            if reflection and self._journal.record(reflection):
                narrative.append("Reflection written.")

        logger.info(
            "Executed decision #%d: %s%s (mean %s -> %s)",
            new_total,
            decision.action,
            f" ({decision.encounter_type})" if decision.encounter_type else "",
            pct(mean_before),
            pct(mean_after),
        )
        return CycleResult(decision=decision, success=success, narrative=narrative)

    def run_cycle(self) -> CycleResult:
        return self.execute(self.evaluate())

    def run_cycles(self, n: int) -> list[CycleResult]:
        return [self.run_cycle() for _ in range(n)]

    def rewrite(self) -> RewriteResult:
        """Run one self-modification pass and persist any weight changes."""
        genome = self._genome_store.load()
        weights = self._weights_store.load()
        result = rewrite_weights(genome, weights, self._journal.read_or_empty(), self._rng)
        if not result.success:
            logger.info("Rewrite blocked: %d decisions of cooldown remaining", result.cooldown_remaining)
            return result
        self._weights_store.save(weights)
        self._journal.record(result.journal_entry)
        logger.info("Rewrote weights: %s", [c.change for c in result.changes])
        return result
