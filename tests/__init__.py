"""
Test suite for Funnel Bot.

This package contains all tests for the funnel_bot application.

Test Structure:
- test_classifier.py: Screen Classifier rules and thresholds
- test_selection.py: Option selection and rotation
- test_strategies.py: Strategy runner and ancestor walk
- test_observer.py / test_interactor.py / test_popups.py: Browser primitives
- test_dispatcher.py: Per-archetype action procedures
- test_runner.py: Driver loop and stop reasons
- test_files.py / test_config.py / test_launcher.py / test_main.py: Ambient pieces
- test_integration.py: Real browser against the mock funnel server

Run all tests:
    pytest tests/ -v

Run with coverage:
    pytest tests/ -v --cov=src/funnel_bot
"""
