"""Persistence: genome document, journal, weights document."""

from lobster.store.genome_store import GenomeNotFoundError, GenomeStore, GenomeStoreError
from lobster.store.journal import (
    DECISION_HEADING,
    EXCHANGE_HEADING,
    REFLECTION_HEADING,
    SELF_MODIFICATION_HEADING,
    Journal,
    JournalError,
    entry_heading,
)
from lobster.store.weights_store import WeightsStore

__all__ = [
    "DECISION_HEADING",
    "EXCHANGE_HEADING",
    "REFLECTION_HEADING",
    "SELF_MODIFICATION_HEADING",
    "GenomeNotFoundError",
    "GenomeStore",
    "GenomeStoreError",
    "Journal",
    "JournalError",
    "WeightsStore",
    "entry_heading",
]
