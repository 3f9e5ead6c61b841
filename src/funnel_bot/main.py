"""
Funnel Bot Main Module - Quiz Funnel Runner.

This module provides the FunnelBot class which drives a list of quiz
funnel URLs one after another:
1. Launch an emulated mobile browser per funnel
2. Drive the funnel step by step until a paywall or a stop condition
3. Persist screenshots, the step log and a per-funnel summary
4. Write an aggregate summary for the whole batch

CLI Usage:
    $ python -m funnel_bot run
    $ python -m funnel_bot run https://quiz.example.com/start --headful --max-steps 30

Example Python Usage:
    >>> from funnel_bot.main import FunnelBot
    >>>
    >>> bot = FunnelBot(verbose=True)
    >>> runs, aggregate = await bot.run(["https://quiz.example.com/start"])
    >>> print(aggregate.funnels_reached_paywall)
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import AsyncContextManager, Callable, Optional, Sequence, Union

import click

from . import __version__
from .agents.runner import FunnelRunner
from .agents.selection import RotationCursor
from .browser.launcher import BrowserManager
from .models.run_config import DEFAULT_FUNNEL_URLS, RunConfig
from .models.run_result import AggregateSummary, FunnelRunSummary
from .models.screen import ScreenClassification
from .utils.files import slug_from_url, write_json_file


__all__ = ["FunnelBot", "run_cli", "select_urls"]

logger = logging.getLogger(__name__)


class Reporter:
    """Echoes batch progress and forwards it to an optional callback(stage, message)."""

    PREFIXES = {
        "funnel": "==>",
        "step": "   ",
        "success": " OK",
        "warning": " !!",
    }

    def __init__(self, verbose: bool = True, callback: Optional[Callable[[str, str], None]] = None):
        self.verbose = verbose
        self.callback = callback

    def __call__(self, stage: str, message: str) -> None:
        logger.info(message)
        if self.callback is not None:
            self.callback(stage, message)
        if self.verbose:
            click.echo(f"{self.PREFIXES.get(stage, ' - ')} {message}")


def select_urls(args: Sequence[str], max_funnels: int) -> list[str]:
    """
    Pick the funnels to run.

    Only arguments that start with ``http`` count; with none, the
    built-in list is used. The result is capped at ``max_funnels``.
    """
    urls = [arg for arg in args if arg.startswith("http")]
    return (urls or list(DEFAULT_FUNNEL_URLS))[:max_funnels]


# =============================================================================
# FUNNEL BOT CLASS
# =============================================================================

BrowserFactory = Callable[[], AsyncContextManager]


class FunnelBot:
    """
    Runs a batch of funnels sequentially.

    Every funnel gets its own browser session. One RotationCursor is
    shared by all of them so fallback option choices keep rotating
    across the whole batch.

    Attributes:
        config: Run configuration.
        results_dir: Root directory for evidence.
        cursor: Process-wide option rotation cursor.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        results_dir: Union[Path, str] = "results",
        headless: Optional[bool] = None,
        safari: bool = False,
        verbose: bool = True,
        browser_factory: Optional[BrowserFactory] = None,
        callback: Optional[Callable] = None,
    ) -> None:
        """
        Initialize the FunnelBot.

        Args:
            config: Run configuration (default: from environment).
            results_dir: Root directory for evidence.
            headless: Run without GUI (default: BROWSER_HEADLESS or True).
            safari: Use WebKit instead of Chromium.
            verbose: Print progress messages.
            browser_factory: Builds the per-funnel page context manager.
            callback: Optional progress callback(stage, message).
        """
        self.config = config or RunConfig.from_env()
        self.results_dir = Path(results_dir)
        self.headless = headless
        self.safari = safari
        self.cursor = RotationCursor()
        self.report = Reporter(verbose=verbose, callback=callback)
        self._browser_factory = browser_factory or self._default_browser

    def _default_browser(self) -> BrowserManager:
        return BrowserManager(
            headless=self.headless,
            safari=self.safari,
            timeout=self.config.default_timeout_ms,
            crash_dir=self.results_dir / "_crashes",
        )

    async def run(self, urls: Sequence[str] = ()) -> tuple[list[FunnelRunSummary], AggregateSummary]:
        """
        Run every selected funnel and write the aggregate summary.

        Args:
            urls: Candidate URLs; non-http arguments are ignored.

        Returns:
            Per-funnel summaries and the aggregate.
        """
        targets = select_urls(urls, self.config.max_funnels)
        runs: list[FunnelRunSummary] = []

        for index, url in enumerate(targets, start=1):
            self.report("funnel", f"({index}/{len(targets)}) {url}")
            summary = await self.run_funnel(url)
            runs.append(summary)
            if summary.reached_paywall:
                self.report("success", f"Paywall after {summary.total_steps} steps")
            else:
                self.report("warning", f"Stopped: {summary.stop_reason} after {summary.total_steps} steps")

        aggregate = AggregateSummary.from_runs(runs)
        write_json_file(self.results_dir / "summary.json", aggregate.to_json_dict())
        return runs, aggregate

    async def run_funnel(self, url: str) -> FunnelRunSummary:
        """Drive one funnel in a fresh browser session."""
        slug = slug_from_url(url)

        def on_step(step: int, classification: ScreenClassification) -> None:
            self.report("step", f"[{slug}] STEP {step:02d} type={classification.archetype.value}")

        runner = FunnelRunner(
            config=self.config,
            results_dir=self.results_dir,
            cursor=self.cursor,
            on_step=on_step,
        )
        async with self._browser_factory() as page:
            return await runner.run(page, url)


# =============================================================================
# CLI INTERFACE
# =============================================================================

def _banner(title: str) -> None:
    rule = "-" * 50
    click.secho(f"\n{rule}\n  {title}\n{rule}", fg="blue", bold=True)


@click.group()
@click.version_option(version=__version__, prog_name="funnel-bot")
def cli():
    """
    Funnel Bot - Quiz Funnel Runner.

    Clicks through quiz funnels until the paywall and records every
    screen along the way.
    """
    pass


@cli.command()
@click.argument("urls", nargs=-1)
@click.option(
    "--headful",
    is_flag=True,
    default=False,
    help="Show the browser window.",
)
@click.option(
    "--safari",
    is_flag=True,
    default=False,
    help="Use WebKit instead of Chromium.",
)
@click.option(
    "--max-steps",
    type=int,
    default=None,
    help="Step budget before an email screen (default: 60).",
)
@click.option(
    "--same-dom-hash-limit",
    type=int,
    default=None,
    help="Repeated fingerprints before a loop stop (default: 12).",
)
@click.option(
    "--results-dir",
    type=click.Path(),
    default="results",
    help="Directory for screenshots, logs and summaries (default: results).",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
def run(
    urls: tuple[str, ...],
    headful: bool,
    safari: bool,
    max_steps: Optional[int],
    same_dom_hash_limit: Optional[int],
    results_dir: str,
    verbose: bool,
):
    """
    Run quiz funnels (built-in list when no URL is given).

    Example:

        $ python -m funnel_bot run

        $ python -m funnel_bot run https://quiz.example.com/start --headful
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    _banner("FUNNEL BOT - Quiz Funnel Runner")

    try:
        config = RunConfig.from_env(max_steps=max_steps, same_dom_hash_limit=same_dom_hash_limit)
        bot = FunnelBot(
            config=config,
            results_dir=results_dir,
            headless=False if headful else None,
            safari=safari,
        )
        runs, aggregate = asyncio.run(bot.run(urls))

        _banner("RESULTS")
        for summary in runs:
            status = click.style("PAYWALL", fg="green") if summary.reached_paywall else click.style(
                str(summary.stop_reason), fg="yellow"
            )
            click.echo(f"  {status}  {summary.total_steps:>3} steps  {summary.url}")
        click.echo()
        click.echo(
            f"[Summary] {aggregate.funnels_reached_paywall}/{aggregate.total_funnels} reached paywall, "
            f"average {aggregate.average_steps} steps"
        )
        sys.exit(0)

    except KeyboardInterrupt:
        click.secho("\nRun aborted (Ctrl+C)", fg="yellow")
        sys.exit(130)
    except Exception as e:
        click.secho(f"\nBatch failed: {e}", fg="red")
        logger.exception("Batch run failed")
        sys.exit(1)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"Funnel Bot v{__version__} (quiz funnel runner)")


def run_cli():
    """Console script entry point."""
    cli()


# =============================================================================
# MODULE ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    run_cli()
