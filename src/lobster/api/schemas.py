"""Response and request bodies shared by the API routers.

Engine results are dataclasses; these models read them by attribute.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lobster.engine.decision import Action, Decision
from lobster.engine.encounter import EncounterType
from lobster.model.genome import Mutation
from lobster.model.weights import Weights


class _FromEngine(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ThresholdReportResponse(_FromEngine):
    name: str
    triggered: bool
    message: str


class EncounterResponse(_FromEngine):
    type: EncounterType
    mutations: list[Mutation]
    narrative: list[str]
    history_event: str
    journal_entry: str
    thresholds: list[ThresholdReportResponse]


class ContactStatusResponse(_FromEngine):
    depth: int
    exchanges: int
    last_exchange: str
    protocol: str
    has_prior_contact: bool


class ContactResponse(_FromEngine):
    success: bool
    depth: int
    exchanges: int
    mutations: list[Mutation]
    narrative: list[str]
    history_event: str
    journal_entry: str


class SpeakRequest(BaseModel):
    """Request body for a message from the external party."""

    message: str = Field(description="Free-text message", min_length=1)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty or whitespace only")
        return v


class SpeakResponse(_FromEngine):
    intent: str
    response: str
    mutations: list[Mutation]
    narrative: list[str]
    history_event: str
    journal_entry: str


class ErodedTraitResponse(_FromEngine):
    key: str
    value: float
    deficit: float


class MoltReadinessResponse(_FromEngine):
    ready: bool
    reason: str | None
    metamorphic_ok: bool
    metamorphic_value: float
    encounters_ok: bool
    encounter_count: int
    eroded_ok: bool
    eroded: list[ErodedTraitResponse]


class RecoveredTraitResponse(_FromEngine):
    key: str
    before: float
    after: float


class MoltResponse(_FromEngine):
    mutations: list[Mutation]
    shell_before: float
    shell_after: float
    recovered: list[RecoveredTraitResponse]
    history_event: str
    journal_entry: str


class TraitAnalysisResponse(_FromEngine):
    key: str
    current: float
    total_delta: float
    recent_velocity: float
    status: str


class PulseResponse(_FromEngine):
    traits: list[TraitAnalysisResponse]
    mean: float
    shell: float
    generation: int
    epoch: str
    recent_mutations: list[Mutation]
    contact_depth: int
    contact_exchanges: int


class TraitHistoryResponse(_FromEngine):
    trait: str
    values: list[float]


class DecisionBody(_FromEngine):
    """A decision, as returned by evaluate and accepted by execute."""

    action: Action
    reason: str = ""
    priority: float = 0.0
    encounter_type: EncounterType | None = None
    survival: bool = False

    def to_decision(self) -> Decision:
        return Decision(
            action=self.action,
            reason=self.reason,
            priority=self.priority,
            encounter_type=self.encounter_type,
            survival=self.survival,
        )


class CycleResponse(_FromEngine):
    decision: DecisionBody
    success: bool
    narrative: list[str]


class LowestTrait(BaseModel):
    key: str
    value: float


class LiveStatusResponse(BaseModel):
    mean: float
    shell: float
    lowest: LowestTrait
    eroded: list[ErodedTraitResponse]
    molt_ready: MoltReadinessResponse
    contact_available: bool
    contact_depth: int
    contact_exchanges: int
    survival_mode: bool
    stable: bool


class RewriteChangeResponse(_FromEngine):
    change: str
    reason: str


class RewriteResponse(_FromEngine):
    success: bool
    cooldown_active: bool
    cooldown_remaining: int
    changes: list[RewriteChangeResponse]
    weights: Weights
    narrative: list[str]


class JournalResponse(BaseModel):
    text: str
    decisions: int
    reflections: int
