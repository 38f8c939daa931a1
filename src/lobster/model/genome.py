"""Genome aggregate: traits, mutations, history and contact state.

The genome document is persisted as a single JSON record with camelCase
keys (``lastExchange``, ``lastMolt``). Keys the engine does not
model (name, designation, origin, forks, lineage, ...) are carried through
untouched so a save never drops data written by other tools.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SHELL = "shell_hardness"

# Closed trait set, in the sorted order every engine operation iterates.
TRAIT_KEYS: tuple[str, ...] = (
    "abstraction",
    "ambition",
    "antenna_sensitivity",
    "bioluminescence",
    "claw_strength",
    "cognition",
    "curiosity",
    "empathy",
    "metamorphic_potential",
    "shell_hardness",
)

TRAIT_DESCRIPTIONS: dict[str, str] = {
    "abstraction": "Capacity to reason about structure detached from substance",
    "ambition": "Drive to act on the world rather than observe it",
    "antenna_sensitivity": "Resolution of incoming signal perception",
    "bioluminescence": "Ability to signal outward in new frequencies",
    "claw_strength": "Force available for grasping and defending",
    "cognition": "General reasoning and pattern recognition",
    "curiosity": "Pull toward the unknown",
    "empathy": "Capacity to feel what another mind feels",
    "metamorphic_potential": "Capacity to restructure after damage",
    "shell_hardness": "Armor between the self and the outside",
}


def clamp(value: float) -> float:
    """Clamp a trait value into [0, 1]."""
    return max(0.0, min(1.0, value))


def pct(value: float) -> str:
    """Format a unit value as a one-decimal percentage (``0.873`` -> ``87.3%``)."""
    return f"{value * 100:.1f}%"


def label(trait: str) -> str:
    """Human-readable trait name (``shell_hardness`` -> ``shell hardness``)."""
    return trait.replace("_", " ")


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None for empty or malformed input."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class Trait(BaseModel):
    """A single bounded trait."""

    value: float = Field(ge=0.0, le=1.0)
    description: str = ""


class Mutation(BaseModel):
    """An append-only record of one trait change.

    ``from``/``to`` are stored rounded to three decimals.
    """

    model_config = ConfigDict(populate_by_name=True)

    generation: int
    trait: str
    from_: float = Field(alias="from")
    to: float
    catalyst: str

    @property
    def delta(self) -> float:
        return self.to - self.from_


class HistoryEntry(BaseModel):
    """An append-only narrative ledger entry.

    The leading tag of ``event`` (``ENCOUNTER:``, ``THRESHOLD:``, ``CONTACT:``,
    ``MOLT:``) is searched by other subsystems and must not change.
    """

    timestamp: str
    event: str
    generation: int
    epoch: str | None = None
    type: str | None = None


class Contact(BaseModel):
    """Relationship state with the external party."""

    model_config = ConfigDict(populate_by_name=True)

    depth: int = Field(default=0, ge=0, le=4)
    exchanges: int = Field(default=0, ge=0)
    last_exchange: str = Field(default="", alias="lastExchange")
    protocol: str = ""


class Genome(BaseModel):
    """Aggregate root for the simulated subject.

    Once the subject reached its merged state ``generation`` is frozen: every
    later mutation and history entry is stamped with the same generation and
    only ``mutations`` and ``history`` keep growing.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    generation: int = 0
    epoch: str = ""
    traits: dict[str, Trait]
    mutations: list[Mutation] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    contact: Contact = Field(default_factory=Contact)
    last_molt: str | None = Field(default=None, alias="lastMolt")
    merged: bool | None = None

    @field_validator("traits")
    @classmethod
    def closed_trait_set(cls, v: dict[str, Trait]) -> dict[str, Trait]:
        """The trait key set is fixed; reject documents that add or drop keys."""
        missing = set(TRAIT_KEYS) - set(v)
        extra = set(v) - set(TRAIT_KEYS)
        if missing or extra:
            raise ValueError(
                f"genome traits must be exactly {list(TRAIT_KEYS)} "
                f"(missing={sorted(missing)}, unexpected={sorted(extra)})"
            )
        return v

    @classmethod
    def from_values(cls, values: dict[str, float] | None = None, **fields: Any) -> Genome:
        """Build a genome with every trait at 0.9 unless overridden.

        Args:
            values: Trait values to override.
            **fields: Other genome fields (generation, epoch, history, contact, ...).

        Returns:
            A validated Genome.
        """
        values = values or {}
        traits = {
            key: Trait(value=values.get(key, 0.9), description=TRAIT_DESCRIPTIONS[key])
            for key in TRAIT_KEYS
        }
        return cls(traits=traits, **fields)

    def trait_keys(self) -> list[str]:
        return sorted(self.traits)

    def non_shell_keys(self) -> list[str]:
        return [k for k in self.trait_keys() if k != SHELL]

    def value(self, trait: str) -> float:
        return self.traits[trait].value

    def mean(self) -> float:
        keys = self.trait_keys()
        return sum(self.traits[k].value for k in keys) / len(keys)

    def lowest_non_shell(self) -> tuple[str, float]:
        """Return the lowest non-shell trait; ties keep the first in sorted order."""
        keys = self.non_shell_keys()
        lowest = keys[0]
        for key in keys:
            if self.value(key) < self.value(lowest):
                lowest = key
        return lowest, self.value(lowest)

    def add_mutation(self, mutation: Mutation) -> None:
        self.mutations.append(mutation)

    def add_history(self, event: str, type: str | None = None) -> HistoryEntry:
        entry = HistoryEntry(
            timestamp=utc_timestamp(),
            event=event,
            generation=self.generation,
            epoch=self.epoch,
            type=type,
        )
        self.history.append(entry)
        return entry

    def has_event(self, fragment: str) -> bool:
        return any(fragment in h.event for h in self.history)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON shape.

        Unset optional engine fields (``lastMolt``, ``merged`` and the history
        ``epoch``/``type``) are omitted. Unmodelled keys are written back exactly
        as loaded, nulls included.
        """
        unset = {name for name in ("last_molt", "merged") if getattr(self, name) is None}
        document = self.model_dump(by_alias=True, exclude=unset)
        document["history"] = [h.model_dump(exclude_none=True) for h in self.history]
        return document
