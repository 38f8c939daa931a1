"""Bounded trait mutation: the only way subsystems change a trait."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lobster.model.genome import Mutation, clamp

if TYPE_CHECKING:
    from lobster.model.genome import Genome


def apply_mutation(genome: Genome, trait: str, delta: float, catalyst: str) -> Mutation:
    """Apply ``delta`` to a trait, clamped to [0, 1], and record the change.

    Both the old and new values are rounded to three decimals before being
    stored, and the rounded new value becomes the trait's value. The mutation
    is stamped with the genome's current generation.

    Args:
        genome: Genome to mutate in place.
        trait: Trait key.
        delta: Signed change; magnitude and direction are the caller's choice.
        catalyst: Narrative cause stored with the mutation.

    Returns:
        The appended Mutation.
    """
    old = genome.traits[trait].value
    new = clamp(old + delta)
    mutation = Mutation(
        generation=genome.generation,
        trait=trait,
        from_=round(old, 3),
        to=round(new, 3),
        catalyst=catalyst,
    )
    genome.traits[trait].value = mutation.to
    genome.add_mutation(mutation)
    return mutation
