"""Wiring of stores and subsystems around one subject.

Every engine operation is a full read-modify-write of the genome with no
internal locking. ``Runtime.lock`` is the caller-side serialization point;
adapters that may run operations concurrently hold it for each call.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING

from lobster.config import get_settings
from lobster.engine.contact import ContactProtocol
from lobster.engine.decision import DecisionEngine
from lobster.engine.encounter import EncounterEngine
from lobster.engine.molt import MoltSubsystem
from lobster.store.genome_store import GenomeStore
from lobster.store.journal import Journal
from lobster.store.weights_store import WeightsStore

if TYPE_CHECKING:
    from lobster.config import EngineSettings

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    genome_store: GenomeStore
    journal: Journal
    weights_store: WeightsStore
    encounters: EncounterEngine
    contact: ContactProtocol
    molt: MoltSubsystem
    live: DecisionEngine
    rng: random.Random
    lock: threading.Lock = field(default_factory=threading.Lock)


def build_runtime(settings: EngineSettings, rng: random.Random | None = None) -> Runtime:
    """Assemble a Runtime from settings.

    Args:
        settings: File locations.
        rng: Random source shared by every subsystem; a fresh unseeded
            ``random.Random`` when omitted.

    Returns:
        The Runtime.
    """
    rng = rng or random.Random()
    genome_store = GenomeStore(settings.genome_path)
    journal = Journal(settings.journal_path)
    weights_store = WeightsStore(settings.weights_path)
    encounters = EncounterEngine(genome_store, journal, rng)
    contact = ContactProtocol(genome_store, journal, rng)
    molt = MoltSubsystem(genome_store, journal, rng)
    live = DecisionEngine(genome_store, journal, weights_store, encounters, contact, molt, rng)
    logger.info("Runtime ready (genome=%s, journal=%s)", settings.genome_path, settings.journal_path)
    return Runtime(
        genome_store=genome_store,
        journal=journal,
        weights_store=weights_store,
        encounters=encounters,
        contact=contact,
        molt=molt,
        live=live,
        rng=rng,
    )


@lru_cache
def get_runtime() -> Runtime:
    """Process-wide Runtime built from the cached settings."""
    return build_runtime(get_settings())
