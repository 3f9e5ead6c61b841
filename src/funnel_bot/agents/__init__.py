"""
Agent modules for the Quiz Funnel Runner.

This package contains the decision engine:
- ScreenClassifier: Labels each screen with an archetype
- OptionSelector / RotationCursor: Picks an answer option
- ActionDispatcher: Runs the per-archetype interaction procedure
- FunnelRunner: Drives one funnel until paywall or a stop condition
"""
from .classifier import ScreenClassifier, classify_signals
from .dispatcher import ActionDispatcher
from .runner import FunnelRunner, RunState, StopReason
from .selection import OptionSelector, RotationCursor

__all__ = [
    "ActionDispatcher",
    "FunnelRunner",
    "OptionSelector",
    "RotationCursor",
    "RunState",
    "ScreenClassifier",
    "StopReason",
    "classify_signals",
]
