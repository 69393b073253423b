"""Periodic draft saving for an editor session."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Optional

from atelier.common.errors import AtelierError
from atelier.config import runtime_config

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """Calls ``save`` every ``interval`` seconds while ``should_save()`` holds.

    Failures never stop the loop; they are logged and handed to
    ``on_failure`` so the editor can show a non-fatal notification.
    """

    def __init__(
        self,
        save: Callable[[], object],
        should_save: Callable[[], bool],
        interval: Optional[float] = None,
        on_failure: Optional[Callable[[AtelierError], None]] = None,
    ) -> None:
        self.interval = interval if interval is not None else runtime_config.get_autosave_interval_seconds()
        if self.interval <= 0:
            raise ValueError("Autosave interval must be positive")
        self._save = save
        self._should_save = should_save
        self._on_failure = on_failure
        self._task: Optional[asyncio.Task] = None
        self.saves = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> bool:
        """Run one autosave check; returns True when a save happened."""
        if not self._should_save():
            return False
        try:
            self._save()
        except AtelierError as exc:
            self.failures += 1
            logger.warning("Autosave failed: %s", exc.message)
            if self._on_failure is not None:
                self._on_failure(exc)
            return False
        self.saves += 1
        return True

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["AutosaveScheduler"]
