"""Logo store and progress sink collaborators consumed by the aggregator."""

import logging
import threading
from typing import Protocol

from pulse_portfolio_tracker.core.models import LoadingProgress

logger = logging.getLogger(__name__)


class LogoStore(Protocol):
    """Key-value store of token logos keyed by lowercase address."""

    def get_logo(self, token_address: str) -> str | None:
        """Return the stored logo for a token, None if unknown."""
        ...

    def save_logo(self, token_address: str, logo_url: str, symbol: str | None = None) -> None:
        """Persist a newly seen logo."""
        ...


class ProgressSink(Protocol):
    """Receiver of loading-progress reports."""

    def update_progress(self, progress: LoadingProgress) -> None:
        """Record the latest progress report."""
        ...


class InMemoryLogoStore:
    """Process-local logo store."""

    def __init__(self) -> None:
        self._logos: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_logo(self, token_address: str) -> str | None:
        with self._lock:
            return self._logos.get(token_address.lower())

    def save_logo(self, token_address: str, logo_url: str, symbol: str | None = None) -> None:
        with self._lock:
            self._logos[token_address.lower()] = logo_url

    def __len__(self) -> int:
        with self._lock:
            return len(self._logos)


class ProgressTracker:
    """
    Keeps the latest progress report so a UI layer can poll it.

    Attributes
    ----------
    current : LoadingProgress
        Most recent report
    history : list[LoadingProgress]
        Every report received, oldest first

    """

    def __init__(self) -> None:
        self.current = LoadingProgress()
        self.history: list[LoadingProgress] = []
        self._lock = threading.Lock()

    def update_progress(self, progress: LoadingProgress) -> None:
        with self._lock:
            self.current = progress
            self.history.append(progress)

    def reset(self) -> None:
        with self._lock:
            self.current = LoadingProgress()
            self.history.clear()


class LoggingProgressSink:
    """Writes progress reports to the log at DEBUG level."""

    def update_progress(self, progress: LoadingProgress) -> None:
        logger.debug(
            "[%s] %d/%d %s",
            progress.status,
            progress.current_batch,
            progress.total_batches,
            progress.message,
        )
