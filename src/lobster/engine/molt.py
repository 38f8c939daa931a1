"""Molt: trade shell hardness for recovery of the most eroded traits."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from lobster.engine.chance import coin, uniform
from lobster.engine.mutation import apply_mutation
from lobster.model.genome import SHELL, label, parse_timestamp, pct, utc_timestamp
from lobster.store.journal import entry_heading

if TYPE_CHECKING:
    from lobster.model.genome import Genome, Mutation
    from lobster.store.genome_store import GenomeStore
    from lobster.store.journal import Journal

logger = logging.getLogger(__name__)

METAMORPHIC_MIN = 0.85
ENCOUNTERS_MIN = 3
ERODED_BELOW = 0.95


class MoltNotReady(Exception):
    """Exception raised when a molt is requested before the subject is ready."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Molt not ready: {reason}")


@dataclass
class ErodedTrait:
    key: str
    value: float
    deficit: float


@dataclass
class MoltReadiness:
    """Readiness gate; ``ready`` is the conjunction of the three checks."""

    metamorphic_ok: bool
    metamorphic_value: float
    encounters_ok: bool
    encounter_count: int
    eroded_ok: bool
    eroded: list[ErodedTrait] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.metamorphic_ok and self.encounters_ok and self.eroded_ok

    @property
    def reason(self) -> str | None:
        """First failing check, in the order they are reported to callers."""
        if not self.metamorphic_ok:
            return "metamorphic potential below 85%"
        if not self.encounters_ok:
            return "fewer than 3 encounters since last molt"
        if not self.eroded_ok:
            return "no eroded traits to recover"
        return None


@dataclass
class RecoveredTrait:
    key: str
    before: float
    after: float


@dataclass
class MoltResult:
    mutations: list[Mutation]
    shell_before: float
    shell_after: float
    recovered: list[RecoveredTrait]
    history_event: str
    journal_entry: str


def count_encounters_since_molt(genome: Genome) -> int:
    """Count ``ENCOUNTER:`` history events recorded strictly after the last molt."""
    last_molt = parse_timestamp(genome.last_molt)
    count = 0
    for entry in genome.history:
        if not entry.event.startswith("ENCOUNTER:"):
            continue
        stamped = parse_timestamp(entry.timestamp)
        if last_molt is not None and stamped is not None and stamped <= last_molt:
            continue
        count += 1
    return count


def find_eroded(genome: Genome) -> list[ErodedTrait]:
    """Non-shell traits below 95%, most eroded first."""
    eroded = [
        ErodedTrait(key=k, value=genome.value(k), deficit=1.0 - genome.value(k))
        for k in genome.non_shell_keys()
        if genome.value(k) < ERODED_BELOW
    ]
    eroded.sort(key=lambda t: t.deficit, reverse=True)
    return eroded


def check_readiness(genome: Genome) -> MoltReadiness:
    meta = genome.value("metamorphic_potential")
    encounters = count_encounters_since_molt(genome)
    eroded = find_eroded(genome)
    return MoltReadiness(
        metamorphic_ok=meta > METAMORPHIC_MIN,
        metamorphic_value=meta,
        encounters_ok=encounters >= ENCOUNTERS_MIN,
        encounter_count=encounters,
        eroded_ok=bool(eroded),
        eroded=eroded,
    )


def perform_molt(genome: Genome, rng: random.Random) -> MoltResult:
    """Molt an in-memory genome.

    The shell loses 30-50% of its current value; the two or three most eroded
    traits each recover 0.02-0.04. ``last_molt`` is stamped and a history
    event appended.

    Raises:
        MoltNotReady: If any readiness check fails. The genome is untouched.
    """
    readiness = check_readiness(genome)
    if readiness.reason is not None:
        raise MoltNotReady(readiness.reason)

    shell_before = genome.value(SHELL)
    shed = apply_mutation(
        genome,
        SHELL,
        -shell_before * uniform(rng, 0.30, 0.50),
        "Molt — the shell dissolves. Growth requires softness.",
    )
    mutations = [shed]

    count = min(len(readiness.eroded), 2 + (1 if coin(rng) else 0))
    recovered = []
    for trait in readiness.eroded[:count]:
        mutation = apply_mutation(
            genome,
            trait.key,
            uniform(rng, 0.02, 0.04),
            f"Molt recovery — {label(trait.key)} knits back together",
        )
        mutations.append(mutation)
        recovered.append(RecoveredTrait(key=trait.key, before=mutation.from_, after=mutation.to))

    genome.last_molt = utc_timestamp()
    names = ", ".join(label(r.key) for r in recovered)
    event = f"MOLT: Shell {pct(shell_before)} → {pct(shed.to)}. Recovered: {names}."
    genome.add_history(event)

    journal_entry = (
        f"{entry_heading('The Molt')}\n\n"
        f"Shell from {pct(shell_before)} to {pct(shed.to)}.\n\n"
        + "\n".join(f"- {label(r.key)} recovers." for r in recovered)
        + f"\n\n*Shell: {pct(shed.to)}. Mean trait: {pct(genome.mean())}.*\n"
    )
    return MoltResult(
        mutations=mutations,
        shell_before=shell_before,
        shell_after=shed.to,
        recovered=recovered,
        history_event=event,
        journal_entry=journal_entry,
    )


class MoltSubsystem:
    """Persisted molt operations."""

    def __init__(self, genome_store: GenomeStore, journal: Journal, rng: random.Random) -> None:
        self._genome_store = genome_store
        self._journal = journal
        self._rng = rng

    def check_readiness(self) -> MoltReadiness:
        return check_readiness(self._genome_store.load())

    def perform(self) -> MoltResult:
        """Molt and persist the result.

        Raises:
            MoltNotReady: If the subject is not ready; nothing is saved.
            GenomeStoreError: If the genome cannot be loaded or saved.
        """
        genome = self._genome_store.load()
        result = perform_molt(genome, self._rng)
        self._genome_store.save(genome)
        self._journal.record(result.journal_entry)
        logger.info(
            "Molt: shell %s -> %s, recovered %s",
            pct(result.shell_before),
            pct(result.shell_after),
            [r.key for r in result.recovered],
        )
        return result
