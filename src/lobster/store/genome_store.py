"""Persistence for the genome document.

The genome is a single JSON record overwritten wholesale on every save.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from lobster.model.genome import Genome

logger = logging.getLogger(__name__)


class GenomeStoreError(Exception):
    """Exception raised when the genome document cannot be read or written."""

    pass


class GenomeNotFoundError(GenomeStoreError):
    """Exception raised when no genome document exists at the configured path."""

    pass


class GenomeStore:
    """Load/save the Genome aggregate as JSON.

    Example:
        >>> store = GenomeStore("genome.json")
        >>> genome = store.load()
        >>> genome.add_history("ENCOUNTER: ...")
        >>> store.save(genome)
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the genome store.

        Args:
            path: Location of the genome JSON document.
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Genome:
        """Load the genome.

        Returns:
            The parsed Genome.

        Raises:
            GenomeNotFoundError: If the document is missing.
            GenomeStoreError: If the document is not JSON or fails validation.
        """
        if not self._path.exists():
            raise GenomeNotFoundError(f"Genome document '{self._path}' not found")
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise GenomeStoreError(f"Invalid JSON in genome document '{self._path}': {e}") from e
        except OSError as e:
            raise GenomeStoreError(f"Failed to read genome document '{self._path}': {e}") from e

        try:
            return Genome.model_validate(data)
        except ValidationError as e:
            raise GenomeStoreError(f"Genome document '{self._path}' is invalid: {e}") from e

    def save(self, genome: Genome) -> None:
        """Overwrite the genome document.

        Args:
            genome: Genome to persist.

        Raises:
            GenomeStoreError: If the write fails.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(genome.to_document(), f, indent=2, ensure_ascii=False)
                f.write("\n")
        except OSError as e:
            raise GenomeStoreError(f"Failed to save genome to '{self._path}': {e}") from e
        logger.debug(
            "Saved genome: mutations=%d history=%d mean=%.3f",
            len(genome.mutations),
            len(genome.history),
            genome.mean(),
        )
