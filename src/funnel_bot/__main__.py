"""
Entry point for running funnel_bot as a module.

Usage:
    $ python -m funnel_bot run
    $ python -m funnel_bot run https://quiz.example.com/start --headful --max-steps 30
    $ python -m funnel_bot version
"""
from .main import run_cli

if __name__ == "__main__":
    run_cli()
