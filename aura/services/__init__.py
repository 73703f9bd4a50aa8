"""
Core services for ambient resident monitoring.

This package contains the deterministic risk/intervention engine, the
message enrichment client and its call controller, the change gate, the
day simulator, and the session that ties them together.
"""

from .change_gate import ChangeGate, GateDecision, compute_context_signature
from .enrichment import EnrichmentClient, EnrichmentError, EnrichmentHTTPError
from .message_controller import MessageController, MessageGenerator
from .session import CycleResult, EvaluationResult, MonitoringSession

__all__ = [
    "ChangeGate",
    "CycleResult",
    "EnrichmentClient",
    "EnrichmentError",
    "EnrichmentHTTPError",
    "EvaluationResult",
    "GateDecision",
    "MessageController",
    "MessageGenerator",
    "MonitoringSession",
    "compute_context_signature",
]
