from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


__all__ = [
    "ScreenType",
    "ScreenClassification",
    "ScreenSignals",
    "ActionOutcome",
]


class ScreenType(str, Enum):
    """
    Archetypes a quiz funnel screen can be classified as.

    Exactly one value is assigned per observed page state. The value
    is recomputed on every classification and never cached across
    navigation.
    """
    QUESTION = "question"   # Radio/checkbox/button/card options
    INFO = "info"           # Text with a single call-to-action
    INPUT = "input"         # Free-text or numeric profile fields
    EMAIL = "email"         # Lead capture
    PAYWALL = "paywall"     # Prices + purchase call-to-action (terminal)
    OTHER = "other"         # Nothing matched


class ScreenClassification(BaseModel):
    """
    Result of classifying one page state.

    Attributes:
        archetype: Detected screen archetype.
        justification: Human-readable reason for the decision.
    """
    archetype: ScreenType = Field(description="Detected screen archetype")
    justification: str = Field(default="", description="Why this archetype was chosen")

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.archetype.value}: {self.justification}"


class ScreenSignals(BaseModel):
    """
    Read-only snapshot of everything the classifier looks at.

    Collected in a single pass by the ScreenObserver so that the rule
    chain can be evaluated without touching the page again.

    Attributes:
        url: Page URL at collection time.
        content: Lower-cased page markup.
        body_text: Visible body text with whitespace collapsed.
        control_texts: Texts of every button/link/submit control.
        visible_button_texts: Texts of visible buttons (first 20).
        email_typed_count: Visible input[type=email] controls.
        email_like_count: Visible inputs whose descriptors mention email.
        text_input_count: Visible text/number inputs.
        profile_hint_count: Inputs whose placeholder hints at height/weight/age/name.
        radio_count: Native and ARIA radios.
        checkbox_count: Native and ARIA checkboxes.
        option_card_count: Pointer-styled short-text cards.
        any_input_count: Visible input/textarea/select controls.
        visible_button_count: Visible button/[role=button] controls.
    """
    url: str = Field(default="", description="Page URL")
    content: str = Field(default="", description="Lower-cased page markup")
    body_text: str = Field(default="", description="Visible body text")
    control_texts: list[str] = Field(default_factory=list)
    visible_button_texts: list[str] = Field(default_factory=list)
    email_typed_count: int = 0
    email_like_count: int = 0
    text_input_count: int = 0
    profile_hint_count: int = 0
    radio_count: int = 0
    checkbox_count: int = 0
    option_card_count: int = 0
    any_input_count: int = 0
    visible_button_count: int = 0

    @property
    def option_control_count(self) -> int:
        """Total radio/checkbox-like controls."""
        return self.radio_count + self.checkbox_count


class ActionOutcome(BaseModel):
    """
    Result of dispatching an action for a classified screen.

    Attributes:
        performed: Whether anything meaningful was done.
        trace: Ordered audit log of what was attempted.
    """
    performed: bool = Field(default=False, description="Whether an action was performed")
    trace: list[str] = Field(default_factory=list, description="Ordered action trace")
