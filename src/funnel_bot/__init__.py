"""
Funnel Bot - Quiz Funnel Runner.

Drives an unattended browser through marketing quiz funnels:
1. Classify each screen (question, info, input, email, paywall, other)
2. Act on it with layered fallback strategies
3. Detect stagnation and stop on the paywall or when stuck

Quick Start:
    >>> from funnel_bot import FunnelBot
    >>>
    >>> bot = FunnelBot(verbose=True)
    >>> runs, aggregate = await bot.run(["https://quiz.example.com/start"])

CLI Usage:
    $ python -m funnel_bot run https://quiz.example.com/start

Modules:
    - agents: Classifier, option selection, dispatcher, driver loop
    - browser: Launcher, observer, interactor, popup closer, strategy runner
    - models: Screen, configuration and result models
    - utils: Errors, evidence files, step log
"""
__version__ = "0.1.0"

from .main import FunnelBot, run_cli

__all__ = [
    "FunnelBot",
    "run_cli",
    "__version__",
]
