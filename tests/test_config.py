"""
Test suite for configuration, result models and error helpers.

Run with: pytest tests/test_config.py -v
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from src.funnel_bot.models.run_config import DEFAULT_FUNNEL_URLS, InputDefaults, RunConfig
from src.funnel_bot.models.run_result import AggregateSummary, FunnelRunSummary
from src.funnel_bot.models.screen import ScreenType
from src.funnel_bot.utils.errors import SessionClosedError, is_session_closed_error


# =============================================================================
# TEST: RUN CONFIG
# =============================================================================

class TestRunConfig:
    """Test defaults and resolution order."""

    def test_defaults(self, clean_env):
        config = RunConfig.from_env()

        assert config.max_steps == 60
        assert config.post_email_extra_steps == 15
        assert config.same_dom_hash_limit == 12
        assert config.no_action_limit == 2
        assert config.loop_no_action_threshold == 2
        assert config.max_funnels == 5
        assert config.inputs.email == "test@example.com"

    def test_env_overrides_default(self, clean_env):
        clean_env.setenv("FUNNEL_MAX_STEPS", "30")
        clean_env.setenv("FUNNEL_SAME_DOM_HASH_LIMIT", "4")

        config = RunConfig.from_env()

        assert config.max_steps == 30
        assert config.same_dom_hash_limit == 4

    def test_argument_overrides_env(self, clean_env):
        clean_env.setenv("FUNNEL_MAX_STEPS", "30")
        assert RunConfig.from_env(max_steps=10).max_steps == 10

    def test_none_argument_is_not_given(self, clean_env):
        clean_env.setenv("FUNNEL_MAX_STEPS", "30")
        assert RunConfig.from_env(max_steps=None).max_steps == 30

    def test_junk_env_is_ignored(self, clean_env):
        clean_env.setenv("FUNNEL_NO_ACTION_LIMIT", "many")
        assert RunConfig.from_env().no_action_limit == 2

    def test_input_values_from_env(self, clean_env):
        clean_env.setenv("FUNNEL_INPUT_NAME", "Anna")
        clean_env.setenv("FUNNEL_INPUT_EMAIL", "qa@example.org")

        inputs = RunConfig.from_env().inputs

        assert inputs.name == "Anna"
        assert inputs.email == "qa@example.org"
        assert inputs.height == "170"

    def test_step_budget(self):
        config = RunConfig(max_steps=20, post_email_extra_steps=5)

        assert config.step_budget(email_seen=False) == 20
        assert config.step_budget(email_seen=True) == 25
        assert config.hard_step_limit == 25

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            RunConfig(max_steps=0)

    def test_default_funnels(self):
        assert len(DEFAULT_FUNNEL_URLS) == 5
        assert all(url.startswith("https://") for url in DEFAULT_FUNNEL_URLS)

    def test_ordered_fallbacks(self):
        assert InputDefaults().ordered_fallbacks() == ["John", "170", "65", "30"]


# =============================================================================
# TEST: RESULT MODELS
# =============================================================================

def run(steps: int, paywall: bool) -> FunnelRunSummary:
    return FunnelRunSummary(
        url="https://quiz.example.com",
        total_steps=steps,
        reached_paywall=paywall,
        detected_types=[ScreenType.QUESTION, ScreenType.PAYWALL] if paywall else [ScreenType.QUESTION],
        stop_reason="paywall_reached" if paywall else "no_action",
    )


class TestSummaries:
    """Test per-run and aggregate summaries."""

    def test_run_summary_json_keys(self):
        data = run(9, True).to_json_dict()

        assert data == {
            "url": "https://quiz.example.com",
            "totalSteps": 9,
            "detectedTypes": ["question", "paywall"],
            "reachedPaywall": True,
            "executionTimeSeconds": 0.0,
            "stopReason": "paywall_reached",
            "prices": [],
        }

    def test_aggregate(self):
        aggregate = AggregateSummary.from_runs([run(9, True), run(4, False), run(10, True)])

        assert aggregate.total_funnels == 3
        assert aggregate.funnels_reached_paywall == 2
        assert aggregate.total_paywalls_collected == 2
        assert aggregate.average_steps == 7.7

    def test_aggregate_json_keys(self):
        data = AggregateSummary.from_runs([run(2, False)]).to_json_dict()
        assert set(data) == {"totalFunnels", "funnelsReachedPaywall", "averageSteps", "totalPaywallsCollected"}

    def test_empty_aggregate(self):
        aggregate = AggregateSummary.from_runs([])
        assert aggregate.total_funnels == 0
        assert aggregate.average_steps == 0.0


# =============================================================================
# TEST: ERRORS
# =============================================================================

class TestSessionClosedDetection:
    """Test how a dead browser session is recognised."""

    @pytest.mark.parametrize("message", [
        "Target closed",
        "Target page, context or browser has been closed",
        "Browser has been CLOSED",
    ])
    def test_closed_messages(self, message):
        assert is_session_closed_error(RuntimeError(message)) is True

    def test_ordinary_error(self):
        assert is_session_closed_error(TimeoutError("Timeout 3000ms exceeded")) is False

    def test_typed_error(self):
        assert is_session_closed_error(SessionClosedError("gone")) is True

    def test_closed_page(self):
        page = MagicMock()
        page.is_closed.return_value = True
        assert is_session_closed_error(ValueError("boom"), page) is True

    def test_page_probe_failure(self):
        page = MagicMock()
        page.is_closed.side_effect = RuntimeError("connection lost")
        assert is_session_closed_error(ValueError("boom"), page) is True

    def test_open_page(self):
        page = MagicMock()
        page.is_closed.return_value = False
        assert is_session_closed_error(ValueError("boom"), page) is False
