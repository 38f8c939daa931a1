"""Append-only Markdown journal.

Section headings are a parsing contract: decision counting scans for
``## Decision — Autonomous`` and reflection counting for
``## Reflection — Autonomous``. They must be written verbatim.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DECISION_HEADING = "## Decision — Autonomous"
REFLECTION_HEADING = "## Reflection — Autonomous"
SELF_MODIFICATION_HEADING = "## Decision — Self-Modification"
EXCHANGE_HEADING = "## Exchange — The Other Mind Speaks"


def entry_heading(title: str) -> str:
    """Heading for a milestone narrative entry (``## Entry — <Title>``)."""
    return f"## Entry — {title}"


class JournalError(Exception):
    """Exception raised when the journal cannot be read or written."""

    pass


class Journal:
    """Read/append access to the narrative journal file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> str:
        """Return the full journal, or an empty string when the file is missing.

        Raises:
            JournalError: If the file exists but cannot be read or decoded.
        """
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as e:
            raise JournalError(f"Failed to read journal '{self._path}': {e}") from e

    def read_or_empty(self) -> str:
        """Read the journal for an engine operation, treating an unreadable file as empty.

        Read failures are logged, not raised.
        """
        try:
            return self.read()
        except JournalError:
            logger.exception("Journal unreadable; continuing as if it were empty")
            return ""

    def append(self, entry: str) -> None:
        """Append an entry, separated from what precedes it by a newline.

        Raises:
            JournalError: If the write fails.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write("\n" + entry)
        except OSError as e:
            raise JournalError(f"Failed to append to journal '{self._path}': {e}") from e

    def record(self, *entries: str) -> int:
        """Append entries after the genome was saved, logging failures instead of raising.

        Returns:
            Number of entries written.
        """
        written = 0
        for entry in entries:
            if not entry:
                continue
            try:
                self.append(entry)
            except JournalError:
                logger.exception("Journal entry dropped; genome state is already saved")
                continue
            written += 1
        return written

    def recent(self, chars: int = 2000) -> str:
        """Return roughly the last ``chars`` characters, starting at a section heading.

        When the tail cuts into a section, it is advanced to the next ``## ``
        heading so the result never opens mid-entry.
        """
        journal = self.read()
        if len(journal) > chars:
            journal = journal[-chars:]
            heading = journal.find("\n## ")
            if heading >= 0:
                journal = journal[heading:]
        return journal

    def count(self, heading: str) -> int:
        """Count occurrences of a heading string in the journal."""
        return self.read().count(heading)

    def count_decisions(self) -> int:
        return self.count(DECISION_HEADING)

    def count_reflections(self) -> int:
        return self.count(REFLECTION_HEADING)
