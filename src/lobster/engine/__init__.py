"""Simulation engine: mutation, encounters, thresholds, contact, molt and decisions."""

from lobster.engine.contact import ContactProtocol, classify_message
from lobster.engine.decision import Action, Decision, DecisionEngine, evaluate_decision
from lobster.engine.encounter import EncounterEngine, EncounterType, UnknownEncounterType
from lobster.engine.molt import MoltNotReady, MoltSubsystem, check_readiness
from lobster.engine.mutation import apply_mutation
from lobster.engine.pulse import analyze, trait_history
from lobster.engine.thresholds import check_thresholds

__all__ = [
    "Action",
    "ContactProtocol",
    "Decision",
    "DecisionEngine",
    "EncounterEngine",
    "EncounterType",
    "MoltNotReady",
    "MoltSubsystem",
    "UnknownEncounterType",
    "analyze",
    "apply_mutation",
    "check_readiness",
    "check_thresholds",
    "classify_message",
    "evaluate_decision",
    "trait_history",
]
