"""
Decision Engine Module

Provides the deterministic accept/reject/refer outcome for submitted claims.
"""
from claimportal.services.decision.engine import (
    Decision,
    DecisionContext,
    DecisionEngine,
    get_decision_engine,
)

__all__ = ["Decision", "DecisionContext", "DecisionEngine", "get_decision_engine"]
