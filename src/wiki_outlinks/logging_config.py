"""
Centralized logging configuration for the wiki_outlinks pipeline.

Dump ingestion runs for hours, so besides handler setup this module provides
ProgressLogger, which every reader and extractor uses for its periodic
progress lines.
"""

import logging
import sys
import time
from typing import Callable, Optional

from rich.logging import RichHandler
from rich.console import Console


def setup_logging(
    level: str = "INFO",
    use_rich: bool = True,
) -> None:
    """
    Set up consistent logging across the whole wiki_outlinks package.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        use_rich: Whether to use Rich's colored output (recommended for interactive runs)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if use_rich:
        # Log to stderr so TSV output on stdout stays clean
        console = Console(file=sys.stderr)

        handler = RichHandler(
            console=console,
            level=numeric_level,
            show_time=True,
            show_level=True,
            show_path=True,
            enable_link_path=True,
            rich_tracebacks=True,
            markup=False,
            log_time_format="[%H:%M:%S]"
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    else:
        # Plain text handler for batch jobs and log files
        handler = logging.StreamHandler(sys.stderr)

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)-5s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        )
        handler.setFormatter(formatter)

    handler.setLevel(numeric_level)
    root_logger.addHandler(handler)

    # aiosqlite logs every statement at DEBUG
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: level={level}, rich={use_rich}")


class ProgressLogger:
    """
    Periodic progress lines for long scans over a dump.

    Usage:
        progress = ProgressLogger(logger, "pages", interval=100_000)
        for page in pages:
            progress.step(lambda: f"{skipped:,} skipped")

    Logs "  1,200,000 pages | 8,512/s | 3,100 skipped" every interval steps,
    with "/total (pct%)" after the count when the total is known.
    """

    def __init__(self, logger: logging.Logger, unit: str, interval: int = 100_000, total: Optional[int] = None):
        if interval < 1:
            raise ValueError("interval must be at least 1")
        self.logger = logger
        self.unit = unit
        self.interval = interval
        self.total = total
        self.count = 0
        self.started = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def step(self, detail: Optional[Callable[[], str]] = None, n: int = 1) -> None:
        """Count n items; log a line whenever another interval has been crossed."""
        before = self.count
        self.count += n
        if self.count // self.interval > before // self.interval:
            self.logger.info(self.format(detail() if detail is not None else ""))

    def format(self, detail: str = "") -> str:
        if self.total:
            line = f"  {self.count:,}/{self.total:,} {self.unit} ({100 * self.count / self.total:.1f}%)"
        else:
            line = f"  {self.count:,} {self.unit}"
        line += f" | {self.count / max(self.elapsed, 1e-6):,.0f}/s"
        if detail:
            line += f" | {detail}"
        return line
