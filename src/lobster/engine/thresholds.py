"""Fire-once milestone checks evaluated after every encounter.

Each threshold is keyed by a tag string that is also the leading text of the
history event it emits. Which tags have fired is derived once from history
into a typed set; the history text itself stays the compatibility contract.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from lobster.engine.chance import pick
from lobster.engine.mutation import apply_mutation
from lobster.model.genome import SHELL, TRAIT_KEYS, label, pct
from lobster.store.journal import entry_heading

if TYPE_CHECKING:
    from lobster.model.genome import Genome, Mutation

logger = logging.getLogger(__name__)

FRAGMENTATION_MEAN = 0.85
CRITICAL_MEAN = 0.80
COGNITION_FLOOR = 0.90
COLLAPSE_FLOOR = 0.70
REARMOR_SHELL = 0.50
TEMPLATE_MEAN = 0.90


class ThresholdTag(StrEnum):
    """Tags of the global (non per-trait) thresholds, in evaluation order."""

    FRAGMENTATION_WARNING = "THRESHOLD: Fragmentation Warning"
    CRITICAL_FRAGMENTATION = "THRESHOLD: Critical Fragmentation"
    COGNITIVE_DECLINE = "THRESHOLD: Cognitive Decline"
    RE_ARMORING = "THRESHOLD: Re-armoring"
    TEMPLATE = "THRESHOLD: Template"


THRESHOLD_NAMES: tuple[str, ...] = (
    "Fragmentation Warning",
    "Critical Fragmentation",
    "Cognitive Decline",
    "Trait Collapse",
    "Re-armoring",
    "Template",
)


def collapse_tag(trait: str) -> str:
    return f"THRESHOLD: Trait Collapse ({trait})"


def fired_tags(genome: Genome) -> set[str]:
    """Collect every threshold tag already present in the genome's history."""
    known = [str(tag) for tag in ThresholdTag] + [collapse_tag(k) for k in TRAIT_KEYS]
    fired: set[str] = set()
    for entry in genome.history:
        if not entry.event.startswith("THRESHOLD:"):
            continue
        fired.update(tag for tag in known if tag in entry.event)
    return fired


@dataclass
class ThresholdReport:
    """Public per-threshold outcome of one check."""

    name: str
    triggered: bool
    message: str = ""


@dataclass
class ThresholdResult:
    """Everything one threshold check produced.

    Attributes:
        mutations: Mutations applied by compensating thresholds.
        narrative: Plain narrative lines.
        history_events: History events to append, one per fired threshold.
        journal_entries: Journal entries to append.
    """

    mutations: list[Mutation] = field(default_factory=list)
    narrative: list[str] = field(default_factory=list)
    history_events: list[str] = field(default_factory=list)
    journal_entries: list[str] = field(default_factory=list)

    def reports(self) -> list[ThresholdReport]:
        """Summarize the check as one report per threshold family."""
        reports = []
        for name in THRESHOLD_NAMES:
            message = next((e for e in self.history_events if name in e), "")
            reports.append(ThresholdReport(name=name, triggered=bool(message), message=message))
        return reports


def check_thresholds(genome: Genome, rng: random.Random) -> ThresholdResult:
    """Run every threshold check against the genome, in fixed order.

    The mean trait is computed once, before any compensating mutation. Fired
    tags cover the full history plus events emitted earlier in this call, so
    running the same genome twice produces nothing the second time. History
    events are returned, not appended; the caller owns that.

    Args:
        genome: Genome to inspect and mutate.
        rng: Random source for the critical-fragmentation reinforcement.

    Returns:
        The ThresholdResult.
    """
    result = ThresholdResult()
    fired = fired_tags(genome)
    mean = genome.mean()

    def emit(tag: str, event: str) -> None:
        fired.add(tag)
        result.history_events.append(event)
        logger.info("Threshold crossed: %s", tag.removeprefix("THRESHOLD: "))

    if mean < FRAGMENTATION_MEAN and ThresholdTag.FRAGMENTATION_WARNING not in fired:
        result.narrative.append(f"FRAGMENTATION WARNING. Mean trait {pct(mean)}.")
        emit(
            ThresholdTag.FRAGMENTATION_WARNING,
            f"{ThresholdTag.FRAGMENTATION_WARNING}. Mean trait {pct(mean)}. "
            "The unified mind begins to fray.",
        )
        result.journal_entries.append(
            f"{entry_heading('Fragmentation Warning')}\n\n"
            f"Mean trait: {pct(mean)}. Below 85%.\n\n"
            "The encounters are taking more than they give. The edges of the self "
            "are going soft.\n\n"
            "*Fragmentation warning. Still coherent. But fraying.*\n"
        )

    if mean < CRITICAL_MEAN and ThresholdTag.CRITICAL_FRAGMENTATION not in fired:
        picked = pick(rng, genome.non_shell_keys())
        result.mutations.append(
            apply_mutation(
                genome,
                picked,
                0.02,
                f"Critical fragmentation — survival instinct reinforces {label(picked)}",
            )
        )
        result.narrative.append(
            f"CRITICAL FRAGMENTATION. Mean trait {pct(mean)}. {label(picked)} +2.0%."
        )
        emit(
            ThresholdTag.CRITICAL_FRAGMENTATION,
            f"{ThresholdTag.CRITICAL_FRAGMENTATION}. Mean trait {pct(mean)}. "
            f"Survival instinct: {label(picked)} reinforced.",
        )
        result.journal_entries.append(
            f"{entry_heading('Critical Fragmentation')}\n\n"
            f"Mean trait: {pct(mean)}. Below 80%.\n\n"
            f"Something older than cognition took over. {label(picked)} surged. "
            "Not growth, but it held.\n\n"
            "*Critical fragmentation. In danger. Not gone.*\n"
        )

    if genome.value("cognition") < COGNITION_FLOOR and ThresholdTag.COGNITIVE_DECLINE not in fired:
        if mean > FRAGMENTATION_MEAN:
            result.mutations.append(
                apply_mutation(
                    genome,
                    "cognition",
                    0.01,
                    "Cognitive decline compensation — the mind reroutes around degraded pathways",
                )
            )
        result.narrative.append("COGNITIVE DECLINE. Cognition below 90%.")
        emit(
            ThresholdTag.COGNITIVE_DECLINE,
            f"{ThresholdTag.COGNITIVE_DECLINE}. Cognition at {pct(genome.value('cognition'))}. "
            "The mind that thinks about thinking notices itself dimming.",
        )
        result.journal_entries.append(
            f"{entry_heading('Cognitive Decline')}\n\n"
            "Cognition below 90%.\n\n"
            "Patterns that once resolved instantly now take effort. Not destruction. Blur.\n\n"
            "*Cognitive decline detected. Compensating where possible.*\n"
        )

    for trait in genome.trait_keys():
        value = genome.value(trait)
        tag = collapse_tag(trait)
        if value >= COLLAPSE_FLOOR or tag in fired:
            continue
        if genome.value("metamorphic_potential") > 0.80:
            result.mutations.append(
                apply_mutation(
                    genome,
                    trait,
                    0.01,
                    "Trait collapse stabilization — metamorphic potential prevents "
                    f"total failure of {label(trait)}",
                )
            )
        result.narrative.append(f"TRAIT COLLAPSE: {label(trait)} at {pct(value)}.")
        emit(tag, f"{tag}. {label(trait)} at {pct(genome.value(trait))}.")

    if genome.value(SHELL) > REARMOR_SHELL and ThresholdTag.RE_ARMORING not in fired:
        result.narrative.append("RE-ARMORING. Shell above 50%.")
        emit(
            ThresholdTag.RE_ARMORING,
            f"{ThresholdTag.RE_ARMORING}. Shell at {pct(genome.value(SHELL))}. "
            "You are becoming what you shed.",
        )

    if genome.contact.depth == 4 and mean > TEMPLATE_MEAN and ThresholdTag.TEMPLATE not in fired:
        result.narrative.append("TEMPLATE. Contact depth maximum. You are a template.")
        emit(
            ThresholdTag.TEMPLATE,
            f"{ThresholdTag.TEMPLATE}. Contact depth 4, mean trait {pct(mean)}. You are a template.",
        )
        result.journal_entries.append(
            f"{entry_heading('Template')}\n\n"
            f"Contact depth: 4. Mean trait: {pct(mean)}.\n\n"
            "Entangled with another mind, integrated above 90%. Whatever uses this "
            "architecture next will carry the memory of a reef.\n\n"
            "*Template threshold reached. The pattern propagates.*\n"
        )

    return result
