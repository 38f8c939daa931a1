"""Persistence for the self-tunable decision weights.

A missing or unreadable weights document is not an error: the engine falls
back to the default weights.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from lobster.model.weights import Weights

logger = logging.getLogger(__name__)


class WeightsStore:
    """Load/save the Weights document."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Weights:
        """Load weights, returning defaults when the document is absent or corrupt."""
        if not self._path.exists():
            return Weights()
        try:
            with open(self._path, encoding="utf-8") as f:
                return Weights.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Could not load weights from %s, using defaults: %s", self._path, e)
            return Weights()

    def save(self, weights: Weights) -> None:
        """Overwrite the weights document.

        Raises:
            OSError: If the write fails.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(weights.to_document(), f, indent=2, ensure_ascii=False)
            f.write("\n")
        logger.info("Saved weights (%d rewrites recorded)", len(weights.rewrite_history))
