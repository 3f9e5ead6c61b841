from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Union


__all__ = ["StepLogger"]

logger = logging.getLogger(__name__)


class StepLogger:
    """
    Append-only text log for one funnel run.

    Each step is written as a ``[STEP nn] archetype`` header followed by
    its trace lines and a blank line. Free-form events (navigation
    retries, fatal errors) are written as single lines.
    """

    def __init__(self, log_path: Union[Path, str]) -> None:
        self.log_path = Path(log_path)

    def init(self, url: str) -> None:
        """Start a fresh log with a header."""
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        started = datetime.now(timezone.utc).isoformat()
        header = f"Quiz Funnel Runner log\nURL: {url}\nStarted: {started}\n\n"
        self.log_path.write_text(header, encoding="utf-8")

    def step(self, step: int, screen_type: str, messages: Iterable[str]) -> None:
        lines = [f"[STEP {step:02d}] {screen_type}", *messages, ""]
        self._append("\n".join(lines) + "\n")

    def event(self, message: str) -> None:
        logger.debug(message)
        self._append(f"{message}\n")

    def _append(self, text: str) -> None:
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(text)
