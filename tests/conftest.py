"""Shared fixtures for engine, store and API tests."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Iterator
from pathlib import Path

import pytest

from lobster.config import EngineSettings
from lobster.logging_config import NAMESPACE
from lobster.model.genome import Genome
from lobster.runtime import Runtime, build_runtime


class ScriptedRandom(random.Random):
    """Random source that replays scripted ``random()`` values.

    Once the script is exhausted every draw returns ``default``.
    """

    def __init__(self, values: Iterable[float] = (), default: float = 0.5) -> None:
        super().__init__(0)
        self.values = list(values)
        self.default = default
        self.draws = 0

    def random(self) -> float:
        self.draws += 1
        if self.values:
            return self.values.pop(0)
        return self.default


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo configure_logging so caplog keeps seeing ``lobster.*`` records."""
    yield
    root = logging.getLogger(NAMESPACE)
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def genome() -> Genome:
    """A healthy subject: every trait at 0.9."""
    return Genome.from_values(generation=7, epoch="tidal")


@pytest.fixture
def settings(tmp_path: Path) -> EngineSettings:
    """Settings rooted in a temporary data directory."""
    return EngineSettings(data_dir=tmp_path)


@pytest.fixture
def runtime(settings: EngineSettings, genome: Genome) -> Runtime:
    """A runtime over temporary files with the default genome saved."""
    rt = build_runtime(settings, rng=random.Random(7))
    rt.genome_store.save(genome)
    return rt
