"""Read-only trait dynamics derived from the mutation log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from lobster.model.genome import SHELL

if TYPE_CHECKING:
    from lobster.model.genome import Genome, Mutation

RECENT_WINDOW = 5


@dataclass
class TraitAnalysis:
    key: str
    current: float
    total_delta: float
    recent_velocity: float
    status: str


@dataclass
class PulseAnalysis:
    traits: list[TraitAnalysis]
    mean: float
    shell: float
    generation: int
    epoch: str
    recent_mutations: list[Mutation]
    contact_depth: int
    contact_exchanges: int


@dataclass
class TraitHistory:
    trait: str
    values: list[float]


def classify_velocity(velocity: float) -> str:
    if velocity > 0.03:
        return "surging"
    if velocity > 0.005:
        return "growing"
    if velocity < -0.005:
        return "declining"
    return "stable"


def analyze(genome: Genome) -> PulseAnalysis:
    """Summarize each trait's net change and recent velocity.

    Velocity is the summed delta over the trait's last five mutations.
    Traits are ordered by current value, highest first.
    """
    traits = []
    for key in genome.trait_keys():
        changes = [m.delta for m in genome.mutations if m.trait == key]
        velocity = sum(changes[-RECENT_WINDOW:])
        traits.append(
            TraitAnalysis(
                key=key,
                current=genome.value(key),
                total_delta=sum(changes),
                recent_velocity=velocity,
                status=classify_velocity(velocity),
            )
        )
    traits.sort(key=lambda t: t.current, reverse=True)
    return PulseAnalysis(
        traits=traits,
        mean=genome.mean(),
        shell=genome.value(SHELL),
        generation=genome.generation,
        epoch=genome.epoch,
        recent_mutations=genome.mutations[-10:],
        contact_depth=genome.contact.depth,
        contact_exchanges=genome.contact.exchanges,
    )


def trait_history(genome: Genome) -> list[TraitHistory]:
    """Reconstruct each trait's value series from its mutations.

    A mutated trait's series starts at its first recorded ``from`` value; a
    trait never mutated reports only its current value.
    """
    series = []
    for key in genome.trait_keys():
        mutations = [m for m in genome.mutations if m.trait == key]
        if mutations:
            values = [mutations[0].from_] + [m.to for m in mutations]
        else:
            values = [genome.value(key)]
        series.append(TraitHistory(trait=key, values=values))
    return series
