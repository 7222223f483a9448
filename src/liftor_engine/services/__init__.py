"""
Services layer for plan generation, titration and storage orchestration.
"""

from .clock import HttpDateClock, TrustedClock
from .completion_client import CompletionClient
from .generation import GenerationOutcome, PlanGenerator
from .plan_service import PlanService
from .titration import DailyTitrator, TitrationOutcome

__all__ = [
    "CompletionClient",
    "DailyTitrator",
    "GenerationOutcome",
    "HttpDateClock",
    "PlanGenerator",
    "PlanService",
    "TitrationOutcome",
    "TrustedClock",
]
