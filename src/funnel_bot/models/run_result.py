from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .screen import ScreenType


__all__ = [
    "FunnelRunSummary",
    "AggregateSummary",
]


class FunnelRunSummary(BaseModel):
    """
    Result of driving one funnel URL.

    Serialized with camelCase keys into ``<slug>/summary.json``.

    Attributes:
        url: Funnel start URL.
        total_steps: Steps that were classified and recorded.
        detected_types: Distinct archetypes in order of first sighting.
        reached_paywall: Whether the run ended on a paywall.
        execution_time_seconds: Wall time, rounded to 0.1 s.
        stop_reason: Why the loop ended.
        prices: Distinct price tokens seen on the paywall.
    """
    url: str
    total_steps: int = Field(default=0, alias="totalSteps")
    detected_types: list[ScreenType] = Field(default_factory=list, alias="detectedTypes")
    reached_paywall: bool = Field(default=False, alias="reachedPaywall")
    execution_time_seconds: float = Field(default=0.0, alias="executionTimeSeconds")
    stop_reason: Optional[str] = Field(default=None, alias="stopReason")
    prices: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "use_enum_values": True}

    def to_json_dict(self) -> dict:
        """Dictionary with camelCase keys, ready for json.dump."""
        return self.model_dump(by_alias=True, mode="json")


class AggregateSummary(BaseModel):
    """Totals across every funnel run in one invocation."""
    total_funnels: int = Field(default=0, alias="totalFunnels")
    funnels_reached_paywall: int = Field(default=0, alias="funnelsReachedPaywall")
    average_steps: float = Field(default=0.0, alias="averageSteps")
    total_paywalls_collected: int = Field(default=0, alias="totalPaywallsCollected")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_runs(cls, runs: list[FunnelRunSummary]) -> "AggregateSummary":
        """Aggregate a list of per-funnel summaries."""
        total = len(runs)
        reached = sum(1 for run in runs if run.reached_paywall)
        steps = sum(run.total_steps for run in runs)
        average = round(steps / total, 1) if total else 0.0
        return cls(
            total_funnels=total,
            funnels_reached_paywall=reached,
            average_steps=average,
            total_paywalls_collected=reached,
        )

    def to_json_dict(self) -> dict:
        """Dictionary with camelCase keys, ready for json.dump."""
        return self.model_dump(by_alias=True, mode="json")
