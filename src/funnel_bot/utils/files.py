"""
Filesystem layout for run evidence.

Every funnel gets its own directory under the results root, named by a
slug derived from the URL. Screenshots are additionally filed by
archetype in a shared ``_classified`` tree so that all screens of one
kind can be reviewed side by side.

Layout:
    results/
        summary.json
        _classified/<archetype>/<slug>_NN_<archetype>.png
        <slug>/
            log.txt
            summary.json
            NN_<archetype>.png
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Union
from urllib.parse import urlparse

from ..models.screen import ScreenType


__all__ = [
    "FunnelArtifacts",
    "slug_from_url",
    "screenshot_filename",
    "classified_filename",
    "write_json_file",
]

logger = logging.getLogger(__name__)


DEFAULT_RESULTS_DIR = Path("results")
CLASSIFIED_DIR_NAME = "_classified"
MAX_SLUG_LENGTH = 80


def _sanitize(segment: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", segment.lower()).strip("-")


def slug_from_url(raw_url: str) -> str:
    """
    Derive a filesystem-safe slug from a funnel URL.

    Example:
        >>> slug_from_url("https://www.coursiv.io/dynamic?prc_id=1069")
        'coursiv-io-dynamic-prc-id-1069'
    """
    parsed = urlparse(raw_url)
    host = _sanitize(re.sub(r"^www\.", "", parsed.hostname or ""))
    path = _sanitize(parsed.path)
    query = _sanitize(re.sub(r"[?=&]", "-", parsed.query))
    slug = "-".join(part for part in (host, path, query) if part)
    return slug[:MAX_SLUG_LENGTH] or "funnel"


def screenshot_filename(step: int, screen_type: Union[ScreenType, str]) -> str:
    """Per-funnel screenshot name, e.g. ``03_question.png``."""
    return f"{step:02d}_{ScreenType(screen_type).value}.png"


def classified_filename(slug: str, step: int, screen_type: Union[ScreenType, str]) -> str:
    """Global classified screenshot name, e.g. ``slug_03_question.png``."""
    return f"{slug}_{screenshot_filename(step, screen_type)}"


def write_json_file(path: Union[Path, str], payload: Any) -> Path:
    """Write JSON with 2-space indent and a trailing newline."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.debug(f"Wrote {path}")
    return path


class FunnelArtifacts:
    """
    Paths and writers for one funnel's evidence.

    Attributes:
        slug: URL-derived directory name.
        funnel_dir: Per-funnel directory.
        classified_dir: Shared per-archetype screenshot tree.
        log_path: Step log file.
        summary_path: Per-funnel summary JSON.
    """

    def __init__(
        self,
        url: str,
        results_dir: Union[Path, str] = DEFAULT_RESULTS_DIR,
    ) -> None:
        self.results_dir = Path(results_dir)
        self.slug = slug_from_url(url)
        self.funnel_dir = self.results_dir / self.slug
        self.classified_dir = self.results_dir / CLASSIFIED_DIR_NAME
        self.log_path = self.funnel_dir / "log.txt"
        self.summary_path = self.funnel_dir / "summary.json"

    def prepare(self) -> "FunnelArtifacts":
        """Create the funnel directory and every archetype directory."""
        self.funnel_dir.mkdir(parents=True, exist_ok=True)
        for screen_type in ScreenType:
            (self.classified_dir / screen_type.value).mkdir(parents=True, exist_ok=True)
        return self

    def screenshot_path(self, step: int, screen_type: ScreenType) -> Path:
        return self.funnel_dir / screenshot_filename(step, screen_type)

    def classified_path(self, step: int, screen_type: ScreenType) -> Path:
        return (
            self.classified_dir
            / ScreenType(screen_type).value
            / classified_filename(self.slug, step, screen_type)
        )

    async def save_screenshot(self, page, step: int, screen_type: ScreenType) -> Path:
        """
        Capture a full-page screenshot into both locations.

        Returns:
            Path of the per-funnel screenshot.
        """
        path = self.screenshot_path(step, screen_type)
        data = await page.screenshot(path=str(path), full_page=True)
        classified = self.classified_path(step, screen_type)
        classified.parent.mkdir(parents=True, exist_ok=True)
        classified.write_bytes(data)
        logger.debug(f"Screenshot saved: {path}")
        return path

    def write_summary(self, payload: Any) -> Path:
        return write_json_file(self.summary_path, payload)
