"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from lobster import __version__
from lobster.cli import main
from lobster.config import get_settings
from lobster.model.genome import Genome
from lobster.store.journal import DECISION_HEADING


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Restore the LOBSTER_ variables the CLI exports and drop cached settings."""
    monkeypatch.delenv("LOBSTER_DATA_DIR", raising=False)
    monkeypatch.delenv("LOBSTER_LOG_LEVEL", raising=False)
    yield
    get_settings.cache_clear()


@pytest.fixture
def data_dir(tmp_path: Path, genome: Genome) -> Path:
    """A data directory holding a saved genome."""
    (tmp_path / "genome.json").write_text(json.dumps(genome.to_document()), encoding="utf-8")
    return tmp_path


class TestMain:
    """Tests for serving the API."""

    def test_defaults(self) -> None:
        """Test the server starts on localhost:8000 without reload."""
        with patch("lobster.cli.uvicorn.run") as run:
            assert main([]) == 0

        run.assert_called_once_with("lobster.server.app:app", host="127.0.0.1", port=8000, reload=False)

    def test_host_port_reload(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("lobster.cli.uvicorn.run") as run:
            assert main(["--host", "0.0.0.0", "--port", "9000", "--reload"]) == 0

        run.assert_called_once_with("lobster.server.app:app", host="0.0.0.0", port=9000, reload=True)
        assert "http://0.0.0.0:9000" in capsys.readouterr().out

    def test_data_dir_and_log_level_exported(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Overrides reach the server through LOBSTER_ variables."""
        with patch("lobster.cli.uvicorn.run"):
            assert main(["--data-dir", str(tmp_path), "--log-level", "debug"]) == 0

        assert os.environ["LOBSTER_DATA_DIR"] == str(tmp_path)
        assert os.environ["LOBSTER_LOG_LEVEL"] == "DEBUG"
        assert get_settings().data_dir == tmp_path
        assert str(tmp_path / "genome.json") in capsys.readouterr().out

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("lobster.cli.uvicorn.run") as run, pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out
        run.assert_not_called()

    def test_invalid_port(self) -> None:
        with patch("lobster.cli.uvicorn.run"), pytest.raises(SystemExit) as exc_info:
            main(["--port", "eighty"])
        assert exc_info.value.code == 2


class TestCommands:
    """Tests for the one-shot engine commands."""

    def test_encounter(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("lobster.cli.uvicorn.run") as run:
            assert main(["--data-dir", str(data_dir), "encounter", "puzzle"]) == 0

        run.assert_not_called()
        assert capsys.readouterr().out.startswith("ENCOUNTER: Puzzle.")
        saved = json.loads((data_dir / "genome.json").read_text(encoding="utf-8"))
        assert saved["history"][0]["event"].startswith("ENCOUNTER: Puzzle.")

    def test_unknown_encounter_type(self, data_dir: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--data-dir", str(data_dir), "encounter", "storm"])
        assert exc_info.value.code == 2

    def test_live_cycles(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--data-dir", str(data_dir), "live", "--cycles", "2"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert len([line for line in lines if line.startswith("[")]) == 2
        journal = (data_dir / "exocortex" / "journal.md").read_text(encoding="utf-8")
        assert journal.count(DECISION_HEADING) == 2

    def test_live_rejects_zero_cycles(self, data_dir: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--data-dir", str(data_dir), "live", "--cycles", "0"])
        assert exc_info.value.code == 2

    def test_missing_genome(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--data-dir", str(tmp_path), "encounter", "entropy"]) == 1
        assert "not found" in capsys.readouterr().err
