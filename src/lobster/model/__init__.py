"""Domain model: Genome, Trait, Mutation, HistoryEntry, Contact, Weights."""

from lobster.model.genome import (
    SHELL,
    TRAIT_DESCRIPTIONS,
    TRAIT_KEYS,
    Contact,
    Genome,
    HistoryEntry,
    Mutation,
    Trait,
    clamp,
    label,
    parse_timestamp,
    pct,
    utc_timestamp,
)
from lobster.model.weights import MULTIPLIER_FIELDS, WeightRewrite, Weights

__all__ = [
    "MULTIPLIER_FIELDS",
    "SHELL",
    "TRAIT_DESCRIPTIONS",
    "TRAIT_KEYS",
    "Contact",
    "Genome",
    "HistoryEntry",
    "Mutation",
    "Trait",
    "WeightRewrite",
    "Weights",
    "clamp",
    "label",
    "parse_timestamp",
    "pct",
    "utc_timestamp",
]
