"""Tests for the genome, journal and weights stores."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from lobster.model.genome import Genome
from lobster.model.weights import Weights
from lobster.store.genome_store import GenomeNotFoundError, GenomeStore, GenomeStoreError
from lobster.store.journal import (
    DECISION_HEADING,
    REFLECTION_HEADING,
    Journal,
    JournalError,
    entry_heading,
)
from lobster.store.weights_store import WeightsStore


@pytest.fixture
def genome_store(tmp_path: Path) -> GenomeStore:
    return GenomeStore(tmp_path / "genome.json")


@pytest.fixture
def journal(tmp_path: Path) -> Journal:
    return Journal(tmp_path / "exocortex" / "journal.md")


class TestGenomeStore:
    """Tests for GenomeStore."""

    def test_save_and_load(self, genome_store: GenomeStore, genome: Genome) -> None:
        genome.add_history("ENCOUNTER: saved")
        genome_store.save(genome)

        loaded = genome_store.load()
        assert loaded.generation == genome.generation
        assert loaded.history[0].event == "ENCOUNTER: saved"
        assert loaded.mean() == pytest.approx(genome.mean())

    def test_saved_document_is_indented_json(self, genome_store: GenomeStore, genome: Genome) -> None:
        genome_store.save(genome)
        text = genome_store.path.read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert '\n  "traits"' in text
        assert json.loads(text)["epoch"] == "tidal"

    def test_null_unmodelled_keys_survive_save(self, genome_store: GenomeStore, genome: Genome) -> None:
        """Keys written by other tools are kept through load/save, even when null."""
        document = genome.to_document()
        document.update({"lineage": None, "designation": "FIFTH"})
        genome_store.path.write_text(json.dumps(document), encoding="utf-8")

        genome_store.save(genome_store.load())

        saved = json.loads(genome_store.path.read_text(encoding="utf-8"))
        assert "lineage" in saved
        assert saved["lineage"] is None
        assert saved["designation"] == "FIFTH"
        assert "lastMolt" not in saved

    def test_missing_document(self, genome_store: GenomeStore) -> None:
        assert not genome_store.exists()
        with pytest.raises(GenomeNotFoundError, match="not found"):
            genome_store.load()

    def test_invalid_json(self, genome_store: GenomeStore) -> None:
        genome_store.path.write_text("{not json", encoding="utf-8")
        with pytest.raises(GenomeStoreError, match="Invalid JSON"):
            genome_store.load()

    def test_invalid_document(self, genome_store: GenomeStore) -> None:
        genome_store.path.write_text(json.dumps({"traits": {}}), encoding="utf-8")
        with pytest.raises(GenomeStoreError, match="invalid"):
            genome_store.load()

    def test_not_found_is_a_store_error(self) -> None:
        assert issubclass(GenomeNotFoundError, GenomeStoreError)


class TestJournal:
    """Tests for the append-only journal."""

    def test_missing_journal_reads_empty(self, journal: Journal) -> None:
        assert journal.read() == ""
        assert journal.count_decisions() == 0

    def test_append_prefixes_newline(self, journal: Journal) -> None:
        journal.append("## Entry — One\n")
        journal.append("## Entry — Two\n")
        assert journal.read() == "\n## Entry — One\n\n## Entry — Two\n"

    def test_append_creates_parent_directory(self, journal: Journal) -> None:
        journal.append("x")
        assert journal.path.parent.is_dir()

    def test_counts(self, journal: Journal) -> None:
        journal.append(f"{DECISION_HEADING}\n\nI chose: **wait**\n")
        journal.append(f"{DECISION_HEADING}\n\nI chose: **molt**\n")
        journal.append(f"{REFLECTION_HEADING}\n\nHolding.\n")
        assert journal.count_decisions() == 2
        assert journal.count_reflections() == 1

    def test_entry_heading(self) -> None:
        assert entry_heading("The Molt") == "## Entry — The Molt"

    def test_recent_starts_at_heading(self, journal: Journal) -> None:
        journal.append("## Entry — Old\n\n" + "a" * 300 + "\n")
        journal.append("## Entry — New\n\nfresh\n")
        recent = journal.recent(chars=100)
        assert recent.startswith("\n## Entry — New")
        assert "Old" not in recent

    def test_recent_short_journal_is_whole(self, journal: Journal) -> None:
        journal.append("## Entry — Only\n")
        assert journal.recent() == journal.read()

    def test_record_skips_empty_entries(self, journal: Journal) -> None:
        assert journal.record("", "## Entry — A\n", "") == 1
        assert journal.read() == "\n## Entry — A\n"

    def test_record_logs_failures(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """A failed append is logged and counted as not written."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        journal = Journal(blocker / "journal.md")

        with caplog.at_level(logging.ERROR, logger="lobster.store.journal"):
            assert journal.record("## Entry — Lost\n") == 0
        assert "Journal entry dropped" in caplog.text

    def test_append_failure_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(JournalError):
            Journal(blocker / "journal.md").append("x")

    def test_undecodable_journal_raises(self, journal: Journal) -> None:
        journal.path.parent.mkdir(parents=True, exist_ok=True)
        journal.path.write_bytes(b"## Entry \xff\xfe legacy bytes\n")
        with pytest.raises(JournalError, match="Failed to read journal"):
            journal.read()

    def test_directory_journal_raises(self, journal: Journal) -> None:
        journal.path.mkdir(parents=True)
        with pytest.raises(JournalError):
            journal.read()

    def test_read_or_empty_logs_failures(
        self, journal: Journal, caplog: pytest.LogCaptureFixture
    ) -> None:
        """An unreadable journal reads as empty and is logged."""
        journal.path.mkdir(parents=True)

        with caplog.at_level(logging.ERROR, logger="lobster.store.journal"):
            assert journal.read_or_empty() == ""
        assert "Journal unreadable" in caplog.text

    def test_read_or_empty_returns_content(self, journal: Journal) -> None:
        journal.append("## Entry — Kept\n")
        assert journal.read_or_empty() == "\n## Entry — Kept\n"


class TestWeightsStore:
    """Tests for WeightsStore."""

    def test_missing_document_gives_defaults(self, tmp_path: Path) -> None:
        assert WeightsStore(tmp_path / "weights.json").load() == Weights()

    def test_corrupt_document_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "weights.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert WeightsStore(path).load() == Weights()

    def test_save_and_load(self, tmp_path: Path) -> None:
        store = WeightsStore(tmp_path / "exocortex" / "weights.json")
        store.save(Weights(molt_multiplier=1.4, wait_chance=0.03))

        loaded = store.load()
        assert loaded.molt_multiplier == 1.4
        assert loaded.wait_chance == 0.03
        assert "moltMultiplier" in json.loads(store.path.read_text(encoding="utf-8"))
