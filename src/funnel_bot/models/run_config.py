"""
Run configuration for the funnel runner.

All tunables live here so that the driver loop, dispatcher and browser
launcher never hard-code numbers. Values resolve in this order:
explicit argument > environment variable > default.

Environment variables:
- FUNNEL_MAX_STEPS, FUNNEL_POST_EMAIL_EXTRA_STEPS
- FUNNEL_SAME_DOM_HASH_LIMIT, FUNNEL_NO_ACTION_LIMIT, FUNNEL_LOOP_NO_ACTION_THRESHOLD
- FUNNEL_ACTION_RETRY_COUNT, FUNNEL_DEFAULT_TIMEOUT_MS
- FUNNEL_MAX_FUNNELS
- FUNNEL_INPUT_NAME, FUNNEL_INPUT_HEIGHT, FUNNEL_INPUT_WEIGHT,
  FUNNEL_INPUT_AGE, FUNNEL_INPUT_EMAIL

Example Usage:
    >>> config = RunConfig.from_env(max_steps=30)
    >>> config.step_budget(email_seen=True)
    45
"""
from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field


__all__ = [
    "DEFAULT_FUNNEL_URLS",
    "InputDefaults",
    "RunConfig",
]


DEFAULT_FUNNEL_URLS: list[str] = [
    "https://coursiv.io/dynamic?prc_id=1069",
    "https://coursiv.io/dynamic",
    "https://quiz.fitme.expert/intro-111",
    "https://madmuscles.com/funnel/default-uni-soft-new/step-one",
    "https://dance-bit.com/welcomeBellyRef",
]


def _env_int(env_var: str) -> Optional[int]:
    """Read an integer from the environment, ignoring junk."""
    value = os.environ.get(env_var, "").strip()
    if value.isdigit():
        return int(value)
    return None


class InputDefaults(BaseModel):
    """
    Values typed into profile and lead-capture fields.

    Attributes:
        name: First name.
        height: Height in centimetres.
        weight: Weight in kilograms.
        age: Age in years.
        email: Lead-capture email address.
    """
    name: str = "John"
    height: str = "170"
    weight: str = "65"
    age: str = "30"
    email: str = "test@example.com"

    @classmethod
    def from_env(cls, **overrides: Any) -> "InputDefaults":
        """Build defaults from FUNNEL_INPUT_* variables and overrides."""
        values: dict[str, Any] = {}
        for field_name in cls.model_fields:
            env_value = os.environ.get(f"FUNNEL_INPUT_{field_name.upper()}")
            if env_value:
                values[field_name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def ordered_fallbacks(self) -> list[str]:
        """Values used positionally when a field gives no hint."""
        return [self.name, self.height, self.weight, self.age]


class RunConfig(BaseModel):
    """
    Step budgets, loop-detection thresholds and timeouts for one run.

    The no-action stop and the loop stop are separate conditions. The
    loop stop needs both the same-fingerprint limit and the loop no-action
    threshold; each value is configured independently.
    """
    max_steps: int = Field(default=60, ge=1, description="Step budget before email")
    post_email_extra_steps: int = Field(default=15, ge=0, description="Extra steps once email was seen")
    same_dom_hash_limit: int = Field(default=12, ge=1, description="Repeated fingerprints before loop stop")
    no_action_limit: int = Field(default=2, ge=1, description="Consecutive no-action steps before stop")
    loop_no_action_threshold: int = Field(default=2, ge=0, description="No-action steps that corroborate a loop")
    loop_rescue_min_step: int = Field(default=8, ge=1, description="Earliest step for the loop-stop rescue")
    email_stuck_threshold: int = Field(default=3, ge=1, description="Repeated fingerprints on email before rescue")
    action_retry_count: int = Field(default=1, ge=0)
    default_timeout_ms: int = Field(default=20_000, ge=1)
    navigation_retry_timeout_ms: int = Field(default=25_000, ge=1)
    step_settle_ms: int = Field(default=1_500, ge=0)
    transition_settle_ms: int = Field(default=2_000, ge=0)
    transition_timeout_ms: int = Field(default=6_000, ge=0)
    rescue_wait_ms: int = Field(default=2_000, ge=0)
    max_funnels: int = Field(default=5, ge=1)
    inputs: InputDefaults = Field(default_factory=InputDefaults)

    @classmethod
    def from_env(cls, **overrides: Any) -> "RunConfig":
        """
        Build a config from FUNNEL_* environment variables.

        Args:
            overrides: Explicit values; None means "not given".

        Returns:
            Resolved RunConfig.
        """
        values: dict[str, Any] = {}
        for field_name in cls.model_fields:
            if field_name == "inputs":
                continue
            env_value = _env_int(f"FUNNEL_{field_name.upper()}")
            if env_value is not None:
                values[field_name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})
        values.setdefault("inputs", InputDefaults.from_env())
        return cls(**values)

    @property
    def hard_step_limit(self) -> int:
        """Largest step number any run may reach."""
        return self.max_steps + self.post_email_extra_steps

    def step_budget(self, email_seen: bool) -> int:
        """Step budget given whether an email screen was reached."""
        return self.hard_step_limit if email_seen else self.max_steps
