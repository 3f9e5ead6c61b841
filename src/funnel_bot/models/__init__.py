

# =============================================================================
# Screen Models (Classifier + Dispatcher)
# Used for: Describing what is on the page and what was done about it
# =============================================================================
from .screen import (
    ActionOutcome,  # performed flag + ordered trace
    ScreenClassification,  # archetype + justification
    ScreenSignals,  # Read-only probe snapshot
    ScreenType,  # Enum: QUESTION, INFO, INPUT, EMAIL, PAYWALL, OTHER
)

# =============================================================================
# Configuration Models (Driver Loop)
# Used for: Step budgets, thresholds, timeouts and form values
# =============================================================================
from .run_config import (
    DEFAULT_FUNNEL_URLS,  # Built-in funnel list
    InputDefaults,  # Values typed into forms
    RunConfig,  # Budgets and timeouts
)

# =============================================================================
# Result Models (Evidence Sink)
# Used for: Per-run and aggregate JSON summaries
# =============================================================================
from .run_result import (
    AggregateSummary,
    FunnelRunSummary,
)

# =============================================================================
# Public API
# =============================================================================
__all__ = [
    # Screen
    "ActionOutcome",
    "ScreenClassification",
    "ScreenSignals",
    "ScreenType",

    # Configuration
    "DEFAULT_FUNNEL_URLS",
    "InputDefaults",
    "RunConfig",

    # Results
    "AggregateSummary",
    "FunnelRunSummary",
]
