"""Self-tunable decision weights and their rewrite audit trail."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MULTIPLIER_FIELDS: tuple[str, ...] = (
    "contact_multiplier",
    "encounter_multiplier",
    "molt_multiplier",
)


class WeightRewrite(BaseModel):
    """One applied change to the weights."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    change: str
    reason: str
    decision_count: int = Field(default=0, alias="decisionCount")


class Weights(BaseModel):
    """Decision parameters the engine may rewrite about itself.

    Only the self-rewrite operation mutates these; every change is appended
    to ``rewrite_history``.
    """

    model_config = ConfigDict(populate_by_name=True)

    contact_multiplier: float = Field(default=1.0, gt=0, alias="contactMultiplier")
    encounter_multiplier: float = Field(default=1.0, gt=0, alias="encounterMultiplier")
    molt_multiplier: float = Field(default=1.0, gt=0, alias="moltMultiplier")
    wait_chance: float = Field(default=0.06, ge=0.0, le=1.0, alias="waitChance")
    observer_weight: float = Field(default=0.4, gt=0, alias="observerWeight")
    shell_confidence_scale: float = Field(default=4.0, gt=0, alias="shellConfidenceScale")
    last_rewrite: str | None = Field(default=None, alias="lastRewrite")
    rewrite_history: list[WeightRewrite] = Field(default_factory=list, alias="rewriteHistory")

    def multiplier(self, action: str) -> float:
        return getattr(self, f"{action}_multiplier")

    def set_multiplier(self, action: str, value: float) -> None:
        setattr(self, f"{action}_multiplier", value)

    def last_rewrite_decision_count(self) -> int:
        if not self.rewrite_history:
            return 0
        return self.rewrite_history[-1].decision_count

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
